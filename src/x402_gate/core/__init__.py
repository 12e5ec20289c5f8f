"""
Core primitives that implement payment requirements and payment verification.
"""

from .analyzer import TransferAnalysis, analyze_transfer, attribute_sender
from .config import ServerConfig, ServerParameters, load_server_config
from .environment import GateEnvironment, build_environment, load_env_file
from .errors import (
    ConfigError,
    InvalidAddressError,
    InvalidAmountError,
    LedgerUnavailableError,
    NoTransferFoundError,
    UnsupportedLedgerError,
    VerificationError,
    X402Error,
)
from .ledger import LedgerClient, SolanaRpcClient, parse_transaction
from .models import (
    AttributionBasis,
    Commitment,
    PaymentOption,
    PaymentRequirement,
    PaymentScheme,
    PaymentStatus,
    ReplayRecord,
    SenderAttribution,
    TokenBalance,
    TransactionRecord,
    VerificationResult,
    X402_VERSION,
)
from .replay import InMemoryReplayGuard, RedisReplayGuard, ReplayGuard
from .requirements import build_payment_required_response, build_payment_requirement
from .server import PaymentServer, build_replay_guard
from .status import StatusTracker
from .verifier import PaymentVerifier

__all__ = [
    "AttributionBasis",
    "Commitment",
    "ConfigError",
    "GateEnvironment",
    "InMemoryReplayGuard",
    "InvalidAddressError",
    "InvalidAmountError",
    "LedgerClient",
    "LedgerUnavailableError",
    "NoTransferFoundError",
    "UnsupportedLedgerError",
    "PaymentOption",
    "PaymentRequirement",
    "PaymentScheme",
    "PaymentServer",
    "PaymentStatus",
    "PaymentVerifier",
    "RedisReplayGuard",
    "ReplayGuard",
    "ReplayRecord",
    "SenderAttribution",
    "ServerConfig",
    "ServerParameters",
    "SolanaRpcClient",
    "StatusTracker",
    "TokenBalance",
    "TransactionRecord",
    "TransferAnalysis",
    "VerificationError",
    "VerificationResult",
    "X402Error",
    "X402_VERSION",
    "analyze_transfer",
    "attribute_sender",
    "build_environment",
    "build_payment_required_response",
    "build_payment_requirement",
    "build_replay_guard",
    "load_env_file",
    "load_server_config",
    "parse_transaction",
]
