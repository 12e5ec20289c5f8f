"""
Confirmation status of a signature, independent of payment checks.
"""

from __future__ import annotations

from .ledger import LedgerClient
from .models import Commitment, PaymentStatus

__all__ = ["StatusTracker"]


class StatusTracker:
    def __init__(self, ledger: LedgerClient) -> None:
        self.ledger = ledger

    def status(self, signature: str) -> PaymentStatus:
        """
        Query the ledger once per commitment level.

        :class:`~x402_gate.core.errors.LedgerUnavailableError` propagates.
        """
        confirmed = self.ledger.get_transaction(signature, Commitment.CONFIRMED)
        finalized = self.ledger.get_transaction(signature, Commitment.FINALIZED)
        return PaymentStatus(
            signature=signature,
            confirmed=confirmed is not None,
            finalized=finalized is not None,
        )
