"""Tests for locked-counter sequence allocation."""

from settlement_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("payment_request:2025") == 1

    def test_values_increase(self, session):
        sequences = SequenceService(session)
        values = [sequences.next_value("payment_request:2025") for _ in range(3)]
        assert values == [1, 2, 3]

    def test_sequences_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("payment_request:2025")
        sequences.next_value("payment_request:2025")
        assert sequences.next_value("payment_request:2026") == 1

    def test_current_value(self, session):
        sequences = SequenceService(session)
        assert sequences.current_value("payment_request:2025") is None
        sequences.next_value("payment_request:2025")
        assert sequences.current_value("payment_request:2025") == 1
