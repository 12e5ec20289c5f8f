"""
Configuration objects and helpers for the payment gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from .addresses import (
    DEFAULT_RPC_URLS,
    NATIVE_DECIMALS,
    NATIVE_TOKEN,
    NETWORKS,
    USDC_DECIMALS,
    USDC_MINTS,
    validate_address,
    validate_token,
)
from .environment import build_environment
from .errors import ConfigError, InvalidAddressError
from .replay import DEFAULT_NAMESPACE

__all__ = [
    "ConfigError",
    "ServerConfig",
    "ServerParameters",
    "load_server_config",
]

REPLAY_BACKENDS = ("memory", "redis")

_PARAMETER_TO_ENV_KEY = {
    "network": "X402_NETWORK",
    "recipient_address": "X402_RECIPIENT_ADDRESS",
    "token": "X402_TOKEN",
    "token_decimals": "X402_TOKEN_DECIMALS",
    "rpc_url": "X402_RPC_URL",
    "rpc_timeout_seconds": "X402_RPC_TIMEOUT_SECONDS",
    "max_age_seconds": "X402_MAX_AGE_SECONDS",
    "amount_tolerance": "X402_AMOUNT_TOLERANCE",
    "replay_backend": "X402_REPLAY_BACKEND",
    "redis_url": "X402_REDIS_URL",
    "replay_namespace": "X402_REPLAY_NAMESPACE",
}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class ServerParameters:
    """
    Explicit parameter bundle for constructing :class:`ServerConfig`.

    Callers can either instantiate this helper or pass the individual keyword
    arguments directly to :func:`load_server_config`.
    """

    network: Optional[str] = None
    recipient_address: Optional[str] = None
    token: Optional[str] = None
    token_decimals: Optional[int | str] = None
    rpc_url: Optional[str] = None
    rpc_timeout_seconds: Optional[float | str] = None
    max_age_seconds: Optional[int | str] = None
    amount_tolerance: Optional[Decimal | str] = None
    replay_backend: Optional[str] = None
    redis_url: Optional[str] = None
    replay_namespace: Optional[str] = None

    def as_overrides(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for field_name, env_key in _PARAMETER_TO_ENV_KEY.items():
            value = getattr(self, field_name)
            if value is None:
                continue
            overrides[env_key] = _stringify(value)
        return overrides


def _collect_parameter_overrides(
    parameters: Optional[ServerParameters],
    explicit: Mapping[str, Any],
) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    if parameters is not None:
        overrides.update(parameters.as_overrides())

    for key, value in explicit.items():
        if value is None:
            continue
        try:
            env_key = _PARAMETER_TO_ENV_KEY[key]
        except KeyError as exc:
            raise TypeError(f"Unknown server parameter '{key}'") from exc
        overrides[env_key] = _stringify(value)
    return overrides


def _parse_int(values: Mapping[str, str], key: str, default: str, minimum: int) -> int:
    raw = values.get(key) or default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got '{raw}'") from exc
    if parsed < minimum:
        raise ConfigError(f"{key} must be at least {minimum}, got {parsed}")
    return parsed


def _parse_decimal(values: Mapping[str, str], key: str, default: str) -> Decimal:
    raw = values.get(key) or default
    try:
        parsed = Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigError(f"{key} must be a valid decimal number, got '{raw}'") from exc
    if not parsed.is_finite() or parsed < 0:
        raise ConfigError(f"{key} must be a non-negative number, got '{raw}'")
    return parsed


def _default_decimals(token: str, network: str) -> Optional[int]:
    if token == NATIVE_TOKEN:
        return NATIVE_DECIMALS
    if token == USDC_MINTS[network]:
        return USDC_DECIMALS
    return None


@dataclass(frozen=True)
class ServerConfig:
    network: str
    recipient_address: str
    token: str
    token_decimals: int
    rpc_url: str
    rpc_timeout_seconds: float = 30.0
    max_age_seconds: int = 300
    amount_tolerance: Decimal = Decimal("0.0001")
    replay_backend: str = "memory"
    redis_url: Optional[str] = None
    replay_namespace: str = DEFAULT_NAMESPACE

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ServerConfig":
        network = values.get("X402_NETWORK") or "devnet"
        if network not in NETWORKS:
            raise ConfigError(
                f"X402_NETWORK must be one of {', '.join(NETWORKS)}, got '{network}'"
            )

        recipient_raw = values.get("X402_RECIPIENT_ADDRESS")
        if not recipient_raw:
            raise ConfigError("X402_RECIPIENT_ADDRESS must be provided")
        try:
            recipient_address = validate_address(recipient_raw, network)
        except InvalidAddressError as exc:
            raise ConfigError(f"X402_RECIPIENT_ADDRESS: {exc}") from exc

        token_raw = values.get("X402_TOKEN") or USDC_MINTS[network]
        try:
            token = validate_token(token_raw.strip(), network)
        except InvalidAddressError as exc:
            raise ConfigError(f"X402_TOKEN: {exc}") from exc

        if values.get("X402_TOKEN_DECIMALS"):
            token_decimals = _parse_int(values, "X402_TOKEN_DECIMALS", "0", 0)
        else:
            default_decimals = _default_decimals(token, network)
            if default_decimals is None:
                raise ConfigError(
                    f"X402_TOKEN_DECIMALS must be provided for token {token}"
                )
            token_decimals = default_decimals

        rpc_url = (values.get("X402_RPC_URL") or DEFAULT_RPC_URLS[network]).rstrip("/")

        timeout_raw = values.get("X402_RPC_TIMEOUT_SECONDS") or "30"
        try:
            rpc_timeout_seconds = float(timeout_raw)
        except ValueError as exc:
            raise ConfigError(
                f"X402_RPC_TIMEOUT_SECONDS must be a number, got '{timeout_raw}'"
            ) from exc

        max_age_seconds = _parse_int(values, "X402_MAX_AGE_SECONDS", "300", 1)
        amount_tolerance = _parse_decimal(values, "X402_AMOUNT_TOLERANCE", "0.0001")

        replay_backend = (values.get("X402_REPLAY_BACKEND") or "memory").lower()
        if replay_backend not in REPLAY_BACKENDS:
            raise ConfigError(
                f"X402_REPLAY_BACKEND must be one of {', '.join(REPLAY_BACKENDS)}, "
                f"got '{replay_backend}'"
            )
        redis_url = values.get("X402_REDIS_URL") or None
        if replay_backend == "redis" and redis_url is None:
            raise ConfigError("X402_REDIS_URL must be provided for the redis replay backend")

        return cls(
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
            replay_namespace=values.get("X402_REPLAY_NAMESPACE") or DEFAULT_NAMESPACE,
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_file: Optional[str] = ".env",
        overrides: Optional[Mapping[str, str]] = None,
        base: Optional[Mapping[str, str]] = None,
        parameters: Optional[ServerParameters] = None,
        **explicit: Any,
    ) -> "ServerConfig":
        parameter_overrides = _collect_parameter_overrides(parameters, explicit)
        merged_overrides = dict(overrides or {})
        merged_overrides.update(parameter_overrides)

        environment = build_environment(
            env_file=env_file,
            base=base,
            overrides=merged_overrides,
        )
        return cls.from_mapping(environment.variables)


def load_server_config(
    *,
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
) -> ServerConfig:
    """
    Convenience wrapper that mirrors :meth:`ServerConfig.from_env`.

    The configuration can be provided entirely through environment variables,
    a ``.env`` file, direct keyword arguments, or any combination of the three.
    """
    return ServerConfig.from_env(
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
