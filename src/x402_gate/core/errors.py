"""
Exception types and the verification failure taxonomy.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ConfigError",
    "InvalidAddressError",
    "InvalidAmountError",
    "LedgerUnavailableError",
    "NoTransferFoundError",
    "UnsupportedLedgerError",
    "VerificationError",
    "X402Error",
]


class X402Error(Exception):
    """Base class for errors raised by the x402 gate."""


class ConfigError(X402Error):
    """Raised when the supplied configuration is invalid."""


class InvalidAddressError(X402Error, ValueError):
    """Raised when an address does not match the network's encoding."""

    def __init__(self, address: str, network: str) -> None:
        super().__init__(f"'{address}' is not a valid {network} address")
        self.address = address
        self.network = network


class InvalidAmountError(X402Error, ValueError):
    """Raised when a price cannot be advertised as a payment amount."""


class LedgerUnavailableError(X402Error):
    """Raised when the ledger RPC cannot be reached or answers with an error."""


class NoTransferFoundError(X402Error):
    """Raised when a transaction holds no positive receipt for the recipient."""


class UnsupportedLedgerError(X402Error):
    """Raised when the configured ledger client lacks a requested query."""


class VerificationError(str, Enum):
    INVALID_ADDRESS = "invalid_address"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    TRANSACTION_EXPIRED = "transaction_expired"
    TRANSACTION_FAILED = "transaction_failed"
    NO_TRANSFER_FOUND = "no_transfer_found"
    AMOUNT_MISMATCH = "amount_mismatch"
    ALREADY_USED = "already_used"
    LEDGER_UNAVAILABLE = "ledger_unavailable"

    @property
    def retryable(self) -> bool:
        """Only a ledger outage is worth retrying with the same signature."""
        return self is VerificationError.LEDGER_UNAVAILABLE
