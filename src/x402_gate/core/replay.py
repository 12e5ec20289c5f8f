"""
At-most-once acceptance of payment signatures.

A transaction signature is public once it lands on the ledger, so without a
replay table anyone who observed a valid signature could reuse it until it
ages out of the freshness window.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from .models import ReplayRecord

__all__ = [
    "DEFAULT_NAMESPACE",
    "InMemoryReplayGuard",
    "RedisReplayGuard",
    "ReplayGuard",
]

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "x402:sig:"


class ReplayGuard(ABC):
    """
    Table of accepted signatures with a time-to-live per entry.
    """

    def __init__(self, window_seconds: int) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds

    def _ttl(self, ttl_seconds: Optional[int]) -> int:
        if ttl_seconds is None:
            return self.window_seconds
        return max(int(ttl_seconds), 1)

    @abstractmethod
    def check_and_record(self, signature: str, ttl_seconds: Optional[int] = None) -> bool:
        """
        Atomically accept ``signature`` if it is not already recorded.

        Returns ``True`` when the signature was recorded by this call and
        ``False`` when a live entry already exists.
        """

    @abstractmethod
    def is_used(self, signature: str) -> bool:
        ...

    @abstractmethod
    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""


class InMemoryReplayGuard(ReplayGuard):
    """
    Process-local replay table.

    Expired entries are evicted when looked up and in bulk once the table
    grows past ``sweep_threshold``; :meth:`sweep` can also be scheduled.
    """

    def __init__(
        self,
        window_seconds: int = 300,
        *,
        clock: Callable[[], float] = time.time,
        sweep_threshold: int = 10_000,
    ) -> None:
        super().__init__(window_seconds)
        self._clock = clock
        self._sweep_threshold = sweep_threshold
        self._records: Dict[str, ReplayRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def check_and_record(self, signature: str, ttl_seconds: Optional[int] = None) -> bool:
        ttl = self._ttl(ttl_seconds)
        with self._lock:
            now = self._clock()
            existing = self._records.get(signature)
            if existing is not None and not existing.expired(now):
                return False

            self._records[signature] = ReplayRecord(
                signature=signature,
                accepted_at=now,
                expires_at=now + ttl,
            )
            if len(self._records) >= self._sweep_threshold:
                self._sweep_locked(now)
            return True

    def is_used(self, signature: str) -> bool:
        with self._lock:
            existing = self._records.get(signature)
            if existing is None:
                return False
            if existing.expired(self._clock()):
                del self._records[signature]
                return False
            return True

    def get(self, signature: str) -> Optional[ReplayRecord]:
        with self._lock:
            return self._records.get(signature)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [sig for sig, record in self._records.items() if record.expired(now)]
        for sig in expired:
            del self._records[sig]
        if expired:
            logger.debug("Evicted %d expired replay entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class RedisReplayGuard(ReplayGuard):
    """
    Replay table shared between processes through Redis.

    ``SET key value NX EX ttl`` is the atomic check-then-insert; Redis expires
    the keys so :meth:`sweep` has nothing to do.
    """

    def __init__(
        self,
        redis_client: Any,
        window_seconds: int = 300,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(window_seconds)
        self._redis = redis_client
        self._namespace = namespace
        self._clock = clock

    @classmethod
    def from_url(
        cls,
        redis_url: str,
        window_seconds: int = 300,
        *,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> "RedisReplayGuard":
        import redis

        client = redis.Redis.from_url(redis_url, decode_responses=True)
        return cls(client, window_seconds, namespace=namespace)

    def _make_key(self, signature: str) -> str:
        return f"{self._namespace}{signature}"

    def check_and_record(self, signature: str, ttl_seconds: Optional[int] = None) -> bool:
        was_set = self._redis.set(
            self._make_key(signature),
            str(int(self._clock())),
            nx=True,
            ex=self._ttl(ttl_seconds),
        )
        return bool(was_set)

    def is_used(self, signature: str) -> bool:
        return bool(self._redis.exists(self._make_key(signature)))

    def sweep(self) -> int:
        return 0
