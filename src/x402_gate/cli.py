"""
Command-line interface for issuing payment requirements and verifying payments.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Iterable, Sequence, Tuple

from .api import create_payment_server
from .core.config import load_server_config
from .core.errors import (
    ConfigError,
    InvalidAddressError,
    InvalidAmountError,
    LedgerUnavailableError,
    UnsupportedLedgerError,
)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _env_override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _collect_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x402-gate",
        description="Issue x402 payment requirements and verify Solana payments",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing X402_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_env_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    require = commands.add_parser("require", help="Print the payment requirement for a price")
    require.add_argument("amount", help="Price in token units (e.g. 0.01)")
    require.add_argument("--resource-id", help="Identifier echoed back in the payment option")
    require.add_argument(
        "--http",
        action="store_true",
        help="Print the full 402 response (status, headers and body)",
    )

    verify = commands.add_parser("verify", help="Verify a payment signature")
    verify.add_argument("signature", help="Transaction signature presented by the client")
    verify.add_argument("amount", help="Expected amount in token units")
    verify.add_argument(
        "--max-age",
        type=int,
        default=None,
        help="Maximum transaction age in seconds (default: X402_MAX_AGE_SECONDS)",
    )

    status = commands.add_parser("status", help="Show confirmation status of a signature")
    status.add_argument("signature")

    commands.add_parser("balance", help="Show the recipient's balance of the configured token")
    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_overrides(args.set or ())

    try:
        config = load_server_config(env_file=args.env_file, overrides=overrides)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    server = create_payment_server(config=config)

    if args.command == "require":
        try:
            if args.http:
                _print_json(server.create_402_response(args.amount, args.resource_id))
            else:
                _print_json(server.build_requirement(args.amount, args.resource_id).to_dict())
        except (InvalidAddressError, InvalidAmountError) as exc:
            logging.error("Cannot build payment requirement: %s", exc)
            return 1
        return 0

    if args.command == "verify":
        result = server.verify(args.signature, args.amount, args.max_age)
        _print_json(result.to_dict())
        return 0 if result.valid else 1

    try:
        if args.command == "status":
            _print_json(server.status(args.signature).to_dict())
        else:
            balance = server.recipient_balance()
            _print_json(
                {
                    "recipient": config.recipient_address,
                    "token": config.token,
                    "balance": str(balance),
                }
            )
    except UnsupportedLedgerError as exc:
        logging.error("%s", exc)
        return 1
    except LedgerUnavailableError as exc:
        logging.error("Ledger request failed: %s", exc)
        return 1
    return 0


def main() -> None:
    sys.exit(run_cli())
