"""
Tests for PaymentVerifier: every verdict and the boundary cases.
"""

from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from x402_gate.core.errors import LedgerUnavailableError, VerificationError
from x402_gate.core.models import AttributionBasis, Commitment, VerificationResult
from x402_gate.core.replay import InMemoryReplayGuard
from x402_gate.core.verifier import PaymentVerifier

from tests.fakes import (
    FEE_PAYER,
    NOW,
    RECIPIENT,
    SENDER,
    SIGNATURE,
    USDC_DEVNET,
    balance,
    make_record,
    usdc_payment_record,
)


def _verify(verifier, amount="0.01", *, signature=SIGNATURE, token=USDC_DEVNET, max_age=300):
    return verifier.verify(signature, amount, token, RECIPIENT, max_age)


class TestSuccessfulVerification:
    def test_usdc_payment_scenario(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        result = _verify(verifier, "0.01")

        assert result.valid
        assert result.error is None
        assert result.signature == SIGNATURE
        assert result.amount == Decimal("0.01")
        assert result.token == USDC_DEVNET
        assert result.sender == SENDER
        assert result.recipient == RECIPIENT
        assert result.timestamp == NOW - 10
        assert result.sender_attribution is AttributionBasis.BALANCE_DELTA

    def test_fetches_at_confirmed_commitment(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        _verify(verifier)

        assert ledger.calls == [(SIGNATURE, Commitment.CONFIRMED)]

    def test_placeholder_token_identifiers_are_matched_verbatim(self, verifier, ledger):
        ledger.add(usdc_payment_record(token="USDC-mint"))

        result = _verify(verifier, "0.01", token="USDC-mint")

        assert result.valid
        assert result.sender == SENDER

    def test_approximate_sender_is_reported_as_such(self, verifier, ledger):
        ledger.add(
            make_record(
                pre=[balance(1, RECIPIENT, "0")],
                post=[balance(1, RECIPIENT, "0.01")],
                account_keys=(FEE_PAYER,),
            )
        )

        result = _verify(verifier)

        assert result.valid
        assert result.sender == FEE_PAYER
        assert result.sender_attribution is AttributionBasis.FIRST_ACCOUNT

    def test_result_serialises_amount_as_string(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        payload = _verify(verifier).to_dict()

        assert payload["valid"] is True
        assert payload["amount"] == "0.01"
        assert payload["from"] == SENDER
        assert payload["to"] == RECIPIENT
        assert payload["error"] is None
        assert payload["senderAttribution"] == "balance_delta"


class TestRejections:
    @pytest.mark.parametrize("amount", ["0.01", "1000", "0", Decimal("0.02")])
    def test_unknown_signature_is_not_found(self, verifier, amount):
        result = _verify(verifier, amount)

        assert not result.valid
        assert result.error is VerificationError.TRANSACTION_NOT_FOUND

    def test_expired_one_second_past_the_limit(self, verifier, ledger):
        ledger.add(usdc_payment_record(block_time=NOW - 301))

        result = _verify(verifier, max_age=300)

        assert result.error is VerificationError.TRANSACTION_EXPIRED
        assert result.details == {"age": 301, "max_age": 300}
        assert "301s" in result.message and "300s" in result.message

    def test_age_equal_to_limit_is_accepted(self, verifier, ledger):
        ledger.add(usdc_payment_record(block_time=NOW - 300))

        assert _verify(verifier, max_age=300).valid

    def test_missing_block_time_is_expired(self, verifier, ledger):
        ledger.add(usdc_payment_record(block_time=None))

        assert _verify(verifier).error is VerificationError.TRANSACTION_EXPIRED

    def test_failed_transaction(self, verifier, ledger):
        ledger.add(usdc_payment_record(succeeded=False))

        result = _verify(verifier)

        assert result.error is VerificationError.TRANSACTION_FAILED

    def test_failed_transaction_without_balances(self, verifier, ledger):
        ledger.add(make_record(succeeded=False))

        assert _verify(verifier).error is VerificationError.TRANSACTION_FAILED

    def test_expiry_checked_before_outcome(self, verifier, ledger):
        ledger.add(usdc_payment_record(block_time=NOW - 1000, succeeded=False))

        assert _verify(verifier).error is VerificationError.TRANSACTION_EXPIRED

    def test_no_transfer_to_recipient(self, verifier, ledger):
        ledger.add(make_record(pre=[balance(1, SENDER, "1")], post=[balance(1, SENDER, "2")]))

        assert _verify(verifier).error is VerificationError.NO_TRANSFER_FOUND

    def test_wrong_token(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        result = _verify(verifier, token="native")

        assert result.error is VerificationError.NO_TRANSFER_FOUND

    def test_amount_mismatch_scenario(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        result = _verify(verifier, "0.02")

        assert result.error is VerificationError.AMOUNT_MISMATCH
        assert result.details == {"expected": Decimal("0.02"), "actual": Decimal("0.01")}
        assert result.to_dict()["expected"] == "0.02"
        assert result.to_dict()["actual"] == "0.01"

    def test_unparsable_expected_amount(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        result = _verify(verifier, "ten cents")

        assert result.error is VerificationError.AMOUNT_MISMATCH

    def test_invalid_recipient_skips_the_ledger(self, verifier, ledger):
        result = verifier.verify(SIGNATURE, "0.01", USDC_DEVNET, "nope", 300)

        assert result.error is VerificationError.INVALID_ADDRESS
        assert ledger.calls == []

    def test_recipient_whitespace_is_ignored(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        result = verifier.verify(SIGNATURE, "0.01", USDC_DEVNET, f"  {RECIPIENT}\n", 300)

        assert result.valid
        assert result.recipient == RECIPIENT

    def test_ledger_unavailable(self, verifier, ledger):
        ledger.error = LedgerUnavailableError("connection refused")

        result = _verify(verifier)

        assert result.error is VerificationError.LEDGER_UNAVAILABLE
        assert result.error.retryable

    def test_unexpected_ledger_exception_is_contained(self, verifier, ledger):
        ledger.error = KeyError("meta")

        result = _verify(verifier)

        assert not result.valid
        assert result.error is VerificationError.LEDGER_UNAVAILABLE

    @pytest.mark.parametrize(
        "error",
        [e for e in VerificationError if e is not VerificationError.LEDGER_UNAVAILABLE],
    )
    def test_only_ledger_outage_is_retryable(self, error):
        assert not error.retryable


class TestTolerance:
    def _record(self, received):
        return make_record(
            pre=[balance(1, RECIPIENT, "0")],
            post=[balance(1, RECIPIENT, received)],
        )

    def test_exactly_at_tolerance_is_accepted(self, verifier, ledger):
        ledger.add(self._record("0.0101"))

        assert _verify(verifier, "0.01").valid

    def test_just_beyond_tolerance_is_rejected(self, verifier, ledger):
        ledger.add(self._record("0.01010001"))

        assert _verify(verifier, "0.01").error is VerificationError.AMOUNT_MISMATCH

    def test_underpayment_within_tolerance(self, verifier, ledger):
        ledger.add(self._record("0.00995"))

        assert _verify(verifier, "0.01").valid

    def test_custom_tolerance(self, ledger, replay_guard, clock):
        strict = PaymentVerifier(ledger, replay_guard=replay_guard, tolerance=Decimal(0), clock=clock)
        ledger.add(self._record("0.0101"))

        assert _verify(strict, "0.01").error is VerificationError.AMOUNT_MISMATCH


class TestReplay:
    def test_second_presentation_is_already_used(self, verifier, ledger, replay_guard):
        ledger.add(usdc_payment_record())

        first = _verify(verifier)
        second = _verify(verifier)

        assert first.valid
        assert second.error is VerificationError.ALREADY_USED
        assert verifier.replay_guard is replay_guard
        assert replay_guard.is_used(SIGNATURE)

    def test_rejected_verification_does_not_burn_the_signature(self, verifier, ledger):
        ledger.add(usdc_payment_record())

        assert _verify(verifier, "0.02").error is VerificationError.AMOUNT_MISMATCH
        assert _verify(verifier, "0.01").valid

    def test_replay_entry_outlives_the_age_check(self, verifier, ledger, clock):
        ledger.add(usdc_payment_record())
        assert _verify(verifier).valid

        clock.advance(200)
        assert _verify(verifier).error is VerificationError.ALREADY_USED

        clock.advance(200)
        assert _verify(verifier).error is VerificationError.TRANSACTION_EXPIRED

    def test_still_used_at_the_inclusive_age_boundary(self, verifier, ledger, clock):
        ledger.add(usdc_payment_record(block_time=NOW))
        assert _verify(verifier).valid

        clock.advance(300)

        assert _verify(verifier, max_age=300).error is VerificationError.ALREADY_USED

    def test_later_call_with_a_larger_limit_is_already_used(self, verifier, ledger, clock):
        ledger.add(usdc_payment_record(block_time=NOW - 5))
        assert _verify(verifier, max_age=10).valid

        clock.advance(20)

        assert _verify(verifier, max_age=300).error is VerificationError.ALREADY_USED

    def test_block_time_ahead_of_the_clock_extends_the_entry(self, verifier, ledger, clock, replay_guard):
        ledger.add(usdc_payment_record(block_time=NOW + 100))
        assert _verify(verifier).valid
        assert replay_guard.get(SIGNATURE).expires_at == NOW + 100 + 300 + 1

        clock.advance(350)

        assert _verify(verifier).error is VerificationError.ALREADY_USED

    def test_concurrent_presentations_accept_exactly_once(self, ledger, clock):
        ledger.add(usdc_payment_record())
        verifier = PaymentVerifier(
            ledger,
            replay_guard=InMemoryReplayGuard(300, clock=clock),
            clock=clock,
        )
        barrier = threading.Barrier(8)
        results: list[VerificationResult] = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            outcome = _verify(verifier)
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(1 for r in results if r.valid) == 1
        assert sum(1 for r in results if r.error is VerificationError.ALREADY_USED) == 7


class TestVerificationResultInvariant:
    def test_valid_requires_fields(self):
        with pytest.raises(ValueError):
            VerificationResult(valid=True, signature=SIGNATURE)

    def test_invalid_requires_error(self):
        with pytest.raises(ValueError):
            VerificationResult(valid=False)

    def test_valid_cannot_carry_error(self):
        with pytest.raises(ValueError):
            VerificationResult(
                valid=True,
                signature=SIGNATURE,
                amount=Decimal("1"),
                sender=SENDER,
                recipient=RECIPIENT,
                error=VerificationError.ALREADY_USED,
            )
