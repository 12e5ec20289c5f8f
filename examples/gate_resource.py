"""
Minimal script that uses the public API to gate a resource behind a payment.

Without ``--signature`` it prints the 402 response a client would receive; with
one it verifies the payment and reports whether access would be granted.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Iterable, Tuple

from x402_gate import ConfigError, create_payment_server, load_server_config


def _override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _build_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gate a resource behind an x402 payment")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing X402_* settings",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument(
        "--amount",
        default="0.01",
        help="Price of the resource in token units (default: 0.01)",
    )
    parser.add_argument(
        "--resource",
        default="/api/resource",
        help="Identifier of the protected resource",
    )
    parser.add_argument(
        "--signature",
        help="Transaction signature presented by the client",
    )
    parser.add_argument(
        "--recipient-address",
        help="Override the wallet receiving payments",
    )
    parser.add_argument(
        "--network",
        help="Override the Solana cluster (devnet, testnet, mainnet-beta)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = load_server_config(
            env_file=args.env_file,
            overrides=_build_overrides(args.set or ()),
            recipient_address=args.recipient_address,
            network=args.network,
        )
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    server = create_payment_server(config=config)

    if not args.signature:
        logging.info("No payment presented for %s; replying 402", args.resource)
        print(json.dumps(server.create_402_response(args.amount, args.resource), indent=2))
        return 0

    result = server.verify(args.signature, args.amount)
    if not result.valid:
        logging.error("Payment rejected (%s): %s", result.error.value, result.message)
        if result.error.retryable:
            logging.info("The ledger was unavailable; the client may retry later")
        return 1

    logging.info(
        "Payment of %s from %s accepted; serving %s",
        result.amount,
        result.sender,
        args.resource,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
