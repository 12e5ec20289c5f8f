"""
Resource-server facade tying configuration, ledger access and replay
protection together.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import requests

from .config import ServerConfig
from .errors import UnsupportedLedgerError
from .ledger import LedgerClient, SolanaRpcClient
from .models import PaymentRequirement, PaymentStatus, VerificationResult
from .replay import InMemoryReplayGuard, RedisReplayGuard, ReplayGuard
from .requirements import (
    AmountLike,
    build_payment_required_response,
    build_payment_requirement,
)
from .status import StatusTracker
from .verifier import PaymentVerifier

__all__ = ["PaymentServer", "build_replay_guard"]

logger = logging.getLogger(__name__)


def build_replay_guard(config: ServerConfig) -> ReplayGuard:
    if config.replay_backend == "redis":
        logger.info("Using redis replay guard with namespace %s", config.replay_namespace)
        return RedisReplayGuard.from_url(
            config.redis_url,
            config.max_age_seconds,
            namespace=config.replay_namespace,
        )
    return InMemoryReplayGuard(config.max_age_seconds)


class PaymentServer:
    """
    Everything a resource server needs to charge for a resource: build the
    ``402`` payload, verify the signature a client sends back and report
    confirmation status.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        ledger: Optional[LedgerClient] = None,
        session: Optional[requests.Session] = None,
        replay_guard: Optional[ReplayGuard] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config
        self.ledger = ledger if ledger is not None else SolanaRpcClient(
            config.rpc_url,
            session=session,
            timeout=config.rpc_timeout_seconds,
        )
        # an empty in-memory guard is falsy
        self.replay_guard = replay_guard if replay_guard is not None else build_replay_guard(config)
        verifier_kwargs: Dict[str, Any] = {}
        if clock is not None:
            verifier_kwargs["clock"] = clock
        self.verifier = PaymentVerifier(
            self.ledger,
            replay_guard=self.replay_guard,
            tolerance=config.amount_tolerance,
            **verifier_kwargs,
        )
        self.status_tracker = StatusTracker(self.ledger)

    def build_requirement(
        self,
        amount: AmountLike,
        resource_id: Optional[str] = None,
    ) -> PaymentRequirement:
        return build_payment_requirement(
            amount,
            self.config.recipient_address,
            network=self.config.network,
            token=self.config.token,
            decimals=self.config.token_decimals,
            resource_id=resource_id,
        )

    def create_402_response(
        self,
        amount: AmountLike,
        resource_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return build_payment_required_response(self.build_requirement(amount, resource_id))

    def verify(
        self,
        signature: str,
        expected_amount: AmountLike,
        max_age_seconds: Optional[int] = None,
    ) -> VerificationResult:
        return self.verifier.verify(
            signature,
            expected_amount,
            self.config.token,
            self.config.recipient_address,
            self.config.max_age_seconds if max_age_seconds is None else max_age_seconds,
        )

    def status(self, signature: str) -> PaymentStatus:
        return self.status_tracker.status(signature)

    def is_signature_used(self, signature: str) -> bool:
        return self.replay_guard.is_used(signature)

    def recipient_balance(self) -> Decimal:
        """
        Current balance of the configured token held by the recipient.

        Requires a ledger client that implements ``get_token_balance``.
        """
        get_balance = getattr(self.ledger, "get_token_balance", None)
        if get_balance is None:
            raise UnsupportedLedgerError(
                f"{type(self.ledger).__name__} cannot report token balances"
            )
        return get_balance(self.config.recipient_address, self.config.token)
