"""
Public facade for the x402 payment gate.

The module re-exports the pieces a resource server needs so integrators can
``from x402_gate import ...`` without navigating the package.
"""

from .api import build_requirement, create_payment_server
from .core import (
    AttributionBasis,
    ConfigError,
    InMemoryReplayGuard,
    InvalidAddressError,
    InvalidAmountError,
    LedgerClient,
    LedgerUnavailableError,
    UnsupportedLedgerError,
    PaymentOption,
    PaymentRequirement,
    PaymentServer,
    PaymentStatus,
    PaymentVerifier,
    RedisReplayGuard,
    ReplayGuard,
    ServerConfig,
    ServerParameters,
    SolanaRpcClient,
    StatusTracker,
    TokenBalance,
    TransactionRecord,
    VerificationError,
    VerificationResult,
    X402_VERSION,
    analyze_transfer,
    build_payment_required_response,
    build_payment_requirement,
    load_server_config,
)

__all__ = (
    "AttributionBasis",
    "ConfigError",
    "InMemoryReplayGuard",
    "InvalidAddressError",
    "InvalidAmountError",
    "LedgerClient",
    "LedgerUnavailableError",
    "PaymentOption",
    "PaymentRequirement",
    "PaymentServer",
    "PaymentStatus",
    "PaymentVerifier",
    "RedisReplayGuard",
    "ReplayGuard",
    "ServerConfig",
    "ServerParameters",
    "SolanaRpcClient",
    "StatusTracker",
    "TokenBalance",
    "TransactionRecord",
    "UnsupportedLedgerError",
    "VerificationError",
    "VerificationResult",
    "X402_VERSION",
    "analyze_transfer",
    "build_payment_required_response",
    "build_payment_requirement",
    "build_requirement",
    "create_payment_server",
    "load_server_config",
)
