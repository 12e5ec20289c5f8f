"""
Helpers for constructing the ``402 Payment Required`` payload.
"""

from __future__ import annotations

import secrets
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from .addresses import token_label, validate_address, validate_token
from .errors import InvalidAmountError
from .models import PaymentOption, PaymentRequirement, PaymentScheme, X402_VERSION

__all__ = [
    "AmountLike",
    "build_payment_required_response",
    "build_payment_requirement",
    "format_amount",
    "parse_amount",
]

AmountLike = Union[Decimal, str, int, float]


def parse_amount(value: AmountLike) -> Decimal:
    # floats go through str() so 0.1 stays 0.1
    raw = str(value) if isinstance(value, float) else value
    try:
        amount = Decimal(raw)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmountError(f"'{value}' is not a valid decimal amount") from exc
    if not amount.is_finite():
        raise InvalidAmountError(f"'{value}' is not a finite amount")
    return amount


def format_amount(amount: Decimal) -> str:
    """Render ``amount`` as a plain decimal string without exponent or trailing zeros."""
    text = format(amount.normalize(), "f")
    return "0" if text in ("-0", "") else text


def _resource_id(token: str) -> str:
    return f"{token_label(token)}-{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}"


def build_payment_requirement(
    amount: AmountLike,
    recipient: str,
    *,
    network: str,
    token: str,
    decimals: int,
    resource_id: Optional[str] = None,
) -> PaymentRequirement:
    """
    Describe a single ledger-native transfer of ``amount`` ``token`` to ``recipient``.

    The recipient is validated before anything else so an unusable address is
    reported without touching the ledger. When ``resource_id`` is omitted an
    advisory id is synthesised for client-side correlation only.
    """
    recipient = validate_address(recipient, network)
    token = validate_token(token, network)

    value = parse_amount(amount)
    if value <= 0:
        raise InvalidAmountError("Payment amount must be greater than zero")

    option = PaymentOption(
        id=resource_id or _resource_id(token),
        scheme=PaymentScheme.SOLANA,
        network=network,
        recipient=recipient,
        token=token,
        amount=format_amount(value),
        decimals=decimals,
    )
    return PaymentRequirement(version=X402_VERSION, payment_options=(option,))


def build_payment_required_response(requirement: PaymentRequirement) -> Dict[str, Any]:
    """Wrap ``requirement`` the way an HTTP layer returns it to the client."""
    return {
        "statusCode": 402,
        "headers": {
            "Content-Type": "application/json",
            "WWW-Authenticate": f'x402 version="{requirement.version}"',
        },
        "body": requirement.to_dict(),
    }
