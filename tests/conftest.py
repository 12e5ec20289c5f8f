"""
Pytest configuration for x402-gate tests.
"""

from __future__ import annotations

import pytest

from x402_gate.core.replay import InMemoryReplayGuard
from x402_gate.core.verifier import PaymentVerifier

from tests.fakes import NOW, RECIPIENT, USDC_DEVNET, FakeLedger


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def replay_guard(clock):
    return InMemoryReplayGuard(300, clock=clock)


@pytest.fixture
def verifier(ledger, replay_guard, clock):
    return PaymentVerifier(ledger, replay_guard=replay_guard, clock=clock)


@pytest.fixture
def server_env():
    """Minimal ``X402_*`` mapping for a devnet USDC server."""
    return {
        "X402_NETWORK": "devnet",
        "X402_RECIPIENT_ADDRESS": RECIPIENT,
        "X402_TOKEN": USDC_DEVNET,
    }


@pytest.fixture
def missing_env_file(tmp_path):
    return str(tmp_path / "absent.env")
