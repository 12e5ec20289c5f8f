"""
Value objects shared by the requirement builder and the payment verifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import InvalidAmountError, VerificationError

__all__ = [
    "AttributionBasis",
    "Commitment",
    "PaymentOption",
    "PaymentRequirement",
    "PaymentScheme",
    "PaymentStatus",
    "ReplayRecord",
    "SenderAttribution",
    "TokenBalance",
    "TransactionRecord",
    "VerificationResult",
    "X402_VERSION",
]

X402_VERSION = 1


class PaymentScheme(str, Enum):
    SOLANA = "solana"


class Commitment(str, Enum):
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


def _fractional_digits(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        return 0
    return max(0, -exponent)


@dataclass(frozen=True)
class PaymentOption:
    """
    A single way of paying for a resource, serialised verbatim on the wire.
    """

    id: str
    scheme: PaymentScheme
    network: str
    recipient: str
    token: str
    amount: str
    decimals: int

    def __post_init__(self) -> None:
        try:
            value = Decimal(self.amount)
        except InvalidOperation as exc:
            raise InvalidAmountError(
                f"Amount '{self.amount}' is not a decimal number"
            ) from exc
        if not value.is_finite() or value < 0:
            raise InvalidAmountError(
                f"Amount '{self.amount}' must be a non-negative decimal"
            )
        if _fractional_digits(value) > self.decimals:
            raise InvalidAmountError(
                f"Amount {self.amount} cannot be represented with {self.decimals} decimals"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scheme": self.scheme.value,
            "network": self.network,
            "recipient": self.recipient,
            "token": self.token,
            "amount": self.amount,
            "decimals": self.decimals,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaymentOption":
        return cls(
            id=payload["id"],
            scheme=PaymentScheme(payload["scheme"]),
            network=payload["network"],
            recipient=payload["recipient"],
            token=payload["token"],
            amount=str(payload["amount"]),
            decimals=int(payload["decimals"]),
        )


@dataclass(frozen=True)
class PaymentRequirement:
    """
    The body of a ``402 Payment Required`` response.
    """

    version: int
    payment_options: Tuple[PaymentOption, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "paymentOptions": [option.to_dict() for option in self.payment_options],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaymentRequirement":
        return cls(
            version=int(payload["version"]),
            payment_options=tuple(
                PaymentOption.from_dict(item) for item in payload["paymentOptions"]
            ),
        )


@dataclass(frozen=True)
class TokenBalance:
    account_index: int
    owner: str
    token: str
    amount: Decimal


@dataclass(frozen=True)
class TransactionRecord:
    """
    A settled transaction as reported by the ledger at some commitment level.

    ``account_keys`` lists the participants in message order; the first entry
    is the fee payer.
    """

    signature: str
    block_time: Optional[int]
    succeeded: bool
    pre_token_balances: Tuple[TokenBalance, ...] = ()
    post_token_balances: Tuple[TokenBalance, ...] = ()
    account_keys: Tuple[str, ...] = ()

    def pre_balance_for(self, account_index: int, token: str) -> Optional[TokenBalance]:
        return _find_balance(self.pre_token_balances, account_index, token)

    def post_balance_for(self, account_index: int, token: str) -> Optional[TokenBalance]:
        return _find_balance(self.post_token_balances, account_index, token)


def _find_balance(
    balances: Tuple[TokenBalance, ...],
    account_index: int,
    token: str,
) -> Optional[TokenBalance]:
    for entry in balances:
        if entry.account_index == account_index and entry.token == token:
            return entry
    return None


class AttributionBasis(str, Enum):
    BALANCE_DELTA = "balance_delta"
    FIRST_ACCOUNT = "first_account"
    UNATTRIBUTED = "unattributed"


@dataclass(frozen=True)
class SenderAttribution:
    """
    Best-effort guess at who paid.

    Only ``BALANCE_DELTA`` is backed by the balance snapshots; ``FIRST_ACCOUNT``
    names the fee payer, which is usually but not necessarily the payer.
    """

    address: str
    basis: AttributionBasis

    @property
    def attributed(self) -> bool:
        return self.basis is not AttributionBasis.UNATTRIBUTED

    @property
    def exact(self) -> bool:
        return self.basis is AttributionBasis.BALANCE_DELTA

    @classmethod
    def unattributed(cls) -> "SenderAttribution":
        return cls(address="", basis=AttributionBasis.UNATTRIBUTED)


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    signature: Optional[str] = None
    amount: Optional[Decimal] = None
    token: Optional[str] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None
    timestamp: Optional[int] = None
    error: Optional[VerificationError] = None
    message: Optional[str] = None
    sender_attribution: Optional[AttributionBasis] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.valid:
            missing = [
                name
                for name in ("signature", "amount", "sender", "recipient")
                if getattr(self, name) is None
            ]
            if missing:
                raise ValueError(f"A valid result needs {', '.join(missing)}")
            if self.error is not None:
                raise ValueError("A valid result cannot carry an error")
        elif self.error is None:
            raise ValueError("An invalid result must carry an error")

    @classmethod
    def success(
        cls,
        *,
        signature: str,
        amount: Decimal,
        token: str,
        sender: str,
        recipient: str,
        timestamp: Optional[int],
        sender_attribution: AttributionBasis,
    ) -> "VerificationResult":
        return cls(
            valid=True,
            signature=signature,
            amount=amount,
            token=token,
            sender=sender,
            recipient=recipient,
            timestamp=timestamp,
            sender_attribution=sender_attribution,
        )

    @classmethod
    def failure(
        cls,
        error: VerificationError,
        message: str,
        *,
        signature: Optional[str] = None,
        **details: Any,
    ) -> "VerificationResult":
        return cls(
            valid=False,
            signature=signature,
            error=error,
            message=message,
            details=details,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "valid": self.valid,
            "signature": self.signature,
            "amount": None if self.amount is None else str(self.amount),
            "token": self.token,
            "from": self.sender,
            "to": self.recipient,
            "timestamp": self.timestamp,
            "error": None if self.error is None else self.error.value,
            "message": self.message,
        }
        if self.sender_attribution is not None:
            payload["senderAttribution"] = self.sender_attribution.value
        for key, value in self.details.items():
            payload[key] = str(value) if isinstance(value, Decimal) else value
        return payload


@dataclass(frozen=True)
class ReplayRecord:
    signature: str
    accepted_at: float
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class PaymentStatus:
    signature: str
    confirmed: bool
    finalized: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "confirmed": self.confirmed,
            "finalized": self.finalized,
        }
