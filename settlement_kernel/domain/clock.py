"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock interface so that engine and service code
    never call ``datetime.now()`` or ``date.today()`` directly.  Request
    dates, payment dates stamped by batch settlement and the "today" used
    by the dashboard all come from an injected Clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - None; clocks never raise.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone, tzinfo


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time must receive a Clock instance
        via constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` returns the calendar date of ``now()`` in the clock's
          business timezone.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current calendar date."""
        return self.now().date()


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Contract:
        The sole sanctioned I/O boundary for time.  ``business_tz`` decides
        which calendar day "today" is; it defaults to UTC.

    Non-goals:
        Not suitable for deterministic replay or testing.
    """

    def __init__(self, business_tz: tzinfo | None = None):
        self._tz = business_tz or timezone.utc

    def now(self) -> datetime:
        """Get current system time in the business timezone."""
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``set_time()`` or ``set_date()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 3, 3, 9, 0, 0, tzinfo=timezone.utc
        )

    def now(self) -> datetime:
        """Get the fixed/controlled time."""
        return self._fixed_time

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time

    def set_date(self, day: date) -> None:
        """Move the clock to 09:00 UTC on ``day``."""
        self.set_time(datetime(day.year, day.month, day.day, 9, 0, 0, tzinfo=timezone.utc))
