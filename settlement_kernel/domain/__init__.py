"""Pure kernel domain helpers (clock)."""

from settlement_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
