"""
Network identifiers, well-known mints and address validation.
"""

from __future__ import annotations

from typing import Dict

import base58

from .errors import InvalidAddressError

__all__ = [
    "DEFAULT_RPC_URLS",
    "NATIVE_DECIMALS",
    "NATIVE_TOKEN",
    "NETWORKS",
    "USDC_DECIMALS",
    "USDC_MINTS",
    "is_valid_address",
    "token_label",
    "validate_address",
    "validate_token",
]

NATIVE_TOKEN = "native"
NATIVE_DECIMALS = 9
USDC_DECIMALS = 6

NETWORKS = ("devnet", "testnet", "mainnet-beta")

DEFAULT_RPC_URLS: Dict[str, str] = {
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
}

USDC_MINTS: Dict[str, str] = {
    "devnet": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    "testnet": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    "mainnet-beta": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
}

_PUBLIC_KEY_LENGTH = 32


def is_valid_address(address: str) -> bool:
    """Return ``True`` when ``address`` decodes to a 32-byte ed25519 public key."""
    if not isinstance(address, str) or not address:
        return False
    try:
        decoded = base58.b58decode(address)
    except ValueError:
        return False
    return len(decoded) == _PUBLIC_KEY_LENGTH


def validate_address(address: str, network: str) -> str:
    if network not in NETWORKS:
        raise InvalidAddressError(address, network)
    value = address.strip() if isinstance(address, str) else address
    if not is_valid_address(value):
        raise InvalidAddressError(address, network)
    return value


def validate_token(token: str, network: str) -> str:
    if token == NATIVE_TOKEN:
        return token
    return validate_address(token, network)


def token_label(token: str) -> str:
    if token == NATIVE_TOKEN:
        return "sol"
    if token in USDC_MINTS.values():
        return "usdc"
    return "spl"
