"""
Verification of a client's proof of payment against the ledger.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Callable, Optional

from .addresses import is_valid_address
from .analyzer import analyze_transfer
from .errors import (
    InvalidAmountError,
    LedgerUnavailableError,
    NoTransferFoundError,
    VerificationError,
)
from .ledger import LedgerClient
from .models import Commitment, VerificationResult
from .replay import InMemoryReplayGuard, ReplayGuard
from .requirements import AmountLike, parse_amount

__all__ = [
    "DEFAULT_MAX_AGE_SECONDS",
    "DEFAULT_TOLERANCE",
    "PaymentVerifier",
]

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 300
DEFAULT_TOLERANCE = Decimal("0.0001")


class PaymentVerifier:
    """
    Checks that a signature proves a fresh, successful transfer of the
    expected amount to the expected recipient, and that it has not been
    accepted before.

    The checks run in a fixed order: fetch, age, outcome, receipt, amount,
    replay. Nothing is retried; a signature the ledger does not know yet is
    reported as not found and the caller decides whether to try again.
    The only state shared between calls is the replay guard.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        replay_guard: Optional[ReplayGuard] = None,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        if replay_guard is None:
            replay_guard = InMemoryReplayGuard(DEFAULT_MAX_AGE_SECONDS)
        self.replay_guard = replay_guard
        self.tolerance = Decimal(tolerance)
        self._clock = clock

    def verify(
        self,
        signature: str,
        expected_amount: AmountLike,
        expected_token: str,
        expected_recipient: str,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    ) -> VerificationResult:
        result = self._verify(
            signature,
            expected_amount,
            expected_token,
            expected_recipient,
            max_age_seconds,
        )
        if result.valid:
            logger.info(
                "Accepted payment %s: %s %s from %s",
                signature,
                result.amount,
                result.token,
                result.sender or "<unknown>",
            )
        else:
            logger.warning("Rejected payment %s: %s", signature, result.message)
        return result

    def _replay_ttl(self, block_time: int, now: int, max_age_seconds: int) -> int:
        """
        Seconds to keep an accepted signature so the entry outlives every
        age check that could still accept it: later calls may pass any limit
        up to the guard's window, and a block time ahead of the local clock
        stays fresh for longer.
        """
        if max_age_seconds > self.replay_guard.window_seconds:
            logger.warning(
                "max_age_seconds=%d exceeds the replay window of %ds",
                max_age_seconds,
                self.replay_guard.window_seconds,
            )
        ahead = max(block_time - now, 0)
        return ahead + max(max_age_seconds, self.replay_guard.window_seconds) + 1

    def _verify(
        self,
        signature: str,
        expected_amount: AmountLike,
        token: str,
        recipient: str,
        max_age_seconds: int,
    ) -> VerificationResult:
        recipient = recipient.strip() if isinstance(recipient, str) else recipient
        if not is_valid_address(recipient):
            return VerificationResult.failure(
                VerificationError.INVALID_ADDRESS,
                f"Invalid recipient address: {recipient}",
                signature=signature,
            )

        try:
            record = self.ledger.get_transaction(signature, Commitment.CONFIRMED)
        except LedgerUnavailableError as exc:
            return VerificationResult.failure(
                VerificationError.LEDGER_UNAVAILABLE,
                f"Ledger unavailable: {exc}",
                signature=signature,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error fetching transaction %s", signature)
            return VerificationResult.failure(
                VerificationError.LEDGER_UNAVAILABLE,
                f"Verification failed: {exc}",
                signature=signature,
            )

        if record is None:
            return VerificationResult.failure(
                VerificationError.TRANSACTION_NOT_FOUND,
                "Transaction not found",
                signature=signature,
            )

        # a missing block time counts as the epoch, i.e. expired
        block_time = record.block_time or 0
        now = int(self._clock())
        age = now - block_time
        if age > max_age_seconds:
            return VerificationResult.failure(
                VerificationError.TRANSACTION_EXPIRED,
                f"Transaction too old: {age}s (max {max_age_seconds}s)",
                signature=signature,
                age=age,
                max_age=max_age_seconds,
            )

        if not record.succeeded:
            return VerificationResult.failure(
                VerificationError.TRANSACTION_FAILED,
                "Transaction failed",
                signature=signature,
            )

        try:
            transfer = analyze_transfer(record, token, recipient)
        except NoTransferFoundError:
            return VerificationResult.failure(
                VerificationError.NO_TRANSFER_FOUND,
                f"No {token} transfer found to recipient address",
                signature=signature,
            )

        try:
            expected = parse_amount(expected_amount)
        except InvalidAmountError as exc:
            return VerificationResult.failure(
                VerificationError.AMOUNT_MISMATCH,
                str(exc),
                signature=signature,
                expected=str(expected_amount),
                actual=transfer.amount,
            )

        if abs(transfer.amount - expected) > self.tolerance:
            return VerificationResult.failure(
                VerificationError.AMOUNT_MISMATCH,
                f"Amount mismatch: expected {expected}, got {transfer.amount}",
                signature=signature,
                expected=expected,
                actual=transfer.amount,
            )

        ttl = self._replay_ttl(block_time, now, max_age_seconds)
        if not self.replay_guard.check_and_record(signature, ttl_seconds=ttl):
            return VerificationResult.failure(
                VerificationError.ALREADY_USED,
                "Signature has already been used",
                signature=signature,
            )

        return VerificationResult.success(
            signature=signature,
            amount=transfer.amount,
            token=token,
            sender=transfer.sender,
            recipient=recipient,
            timestamp=record.block_time,
            sender_attribution=transfer.attribution.basis,
        )
