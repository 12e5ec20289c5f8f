"""
Public, high-level helpers for charging for a resource with x402.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Optional

import requests

from .core.addresses import NATIVE_DECIMALS, NATIVE_TOKEN, USDC_DECIMALS, USDC_MINTS
from .core.config import ServerConfig, ServerParameters, load_server_config
from .core.ledger import LedgerClient
from .core.models import PaymentRequirement
from .core.replay import ReplayGuard
from .core.requirements import AmountLike, build_payment_requirement
from .core.server import PaymentServer

__all__ = [
    "build_requirement",
    "create_payment_server",
]


def create_payment_server(
    *,
    config: Optional[ServerConfig] = None,
    ledger: Optional[LedgerClient] = None,
    session: Optional[requests.Session] = None,
    replay_guard: Optional[ReplayGuard] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ServerParameters] = None,
    network: Optional[str] = None,
    recipient_address: Optional[str] = None,
    token: Optional[str] = None,
    token_decimals: Optional[int | str] = None,
    rpc_url: Optional[str] = None,
    rpc_timeout_seconds: Optional[float | str] = None,
    max_age_seconds: Optional[int | str] = None,
    amount_tolerance: Optional[Decimal | str] = None,
    replay_backend: Optional[str] = None,
    redis_url: Optional[str] = None,
    replay_namespace: Optional[str] = None,
) -> PaymentServer:
    """
    Construct a :class:`PaymentServer`.

    Callers can either supply a ready-made :class:`ServerConfig` or let the
    helper assemble one from environment data.
    """
    if config is not None:
        extras = (
            overrides,
            base,
            parameters,
            network,
            recipient_address,
            token,
            token_decimals,
            rpc_url,
            rpc_timeout_seconds,
            max_age_seconds,
            amount_tolerance,
            replay_backend,
            redis_url,
            replay_namespace,
        )
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built ServerConfig or individual parameters, not both."
            )
        cfg = config
    else:
        cfg = load_server_config(
            env_file=env_file,
            overrides=overrides,
            base=base,
            parameters=parameters,
            network=network,
            recipient_address=recipient_address,
            token=token,
            token_decimals=token_decimals,
            rpc_url=rpc_url,
            rpc_timeout_seconds=rpc_timeout_seconds,
            max_age_seconds=max_age_seconds,
            amount_tolerance=amount_tolerance,
            replay_backend=replay_backend,
            redis_url=redis_url,
            replay_namespace=replay_namespace,
        )
    return PaymentServer(cfg, ledger=ledger, session=session, replay_guard=replay_guard)


def build_requirement(
    amount: AmountLike,
    recipient: str,
    network: str,
    token: str,
    resource_id: Optional[str] = None,
    decimals: Optional[int] = None,
) -> PaymentRequirement:
    """
    Build a payment requirement without any configuration or ledger access.

    ``decimals`` may be omitted for native SOL and the network's USDC mint.
    """
    if decimals is None:
        if token == NATIVE_TOKEN:
            decimals = NATIVE_DECIMALS
        elif token == USDC_MINTS.get(network):
            decimals = USDC_DECIMALS
        else:
            raise ValueError(f"Token decimals are required for token {token}")
    return build_payment_requirement(
        amount,
        recipient,
        network=network,
        token=token,
        decimals=decimals,
        resource_id=resource_id,
    )
