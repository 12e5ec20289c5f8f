"""
Ledger access: the client protocol the verifier consumes and a Solana JSON-RPC
implementation of it.
"""

from __future__ import annotations

import itertools
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Union

import requests

from .addresses import NATIVE_DECIMALS, NATIVE_TOKEN
from .errors import LedgerUnavailableError
from .models import Commitment, TokenBalance, TransactionRecord

__all__ = [
    "LedgerClient",
    "SolanaRpcClient",
    "parse_transaction",
]

logger = logging.getLogger(__name__)

CommitmentLike = Union[Commitment, str]

# raised while walking a result that does not have the documented shape
_MALFORMED = (KeyError, IndexError, TypeError, ValueError, AttributeError, InvalidOperation)


class LedgerClient(Protocol):
    def get_transaction(
        self,
        signature: str,
        commitment: CommitmentLike = Commitment.CONFIRMED,
    ) -> Optional[TransactionRecord]:
        """
        Return the settled transaction or ``None`` when the ledger does not
        know it at ``commitment``. Transport and protocol failures raise
        :class:`LedgerUnavailableError`.
        """
        ...


def _commitment_value(commitment: CommitmentLike) -> str:
    return Commitment(commitment).value


def _ui_amount(token_amount: Mapping[str, Any]) -> Decimal:
    ui_string = token_amount.get("uiAmountString")
    if ui_string not in (None, ""):
        return Decimal(ui_string)
    raw = token_amount.get("amount")
    if raw in (None, ""):
        return Decimal(0)
    return Decimal(raw).scaleb(-int(token_amount.get("decimals", 0)))


def _token_balances(entries: Optional[Iterable[Mapping[str, Any]]]) -> List[TokenBalance]:
    balances: List[TokenBalance] = []
    for entry in entries or ():
        balances.append(
            TokenBalance(
                account_index=int(entry["accountIndex"]),
                owner=entry.get("owner") or "",
                token=entry["mint"],
                amount=_ui_amount(entry.get("uiTokenAmount") or {}),
            )
        )
    return balances


def _native_balances(
    lamports: Optional[Iterable[int]],
    account_keys: Tuple[str, ...],
) -> List[TokenBalance]:
    balances: List[TokenBalance] = []
    for index, value in enumerate(lamports or ()):
        if index >= len(account_keys):
            break
        balances.append(
            TokenBalance(
                account_index=index,
                owner=account_keys[index],
                token=NATIVE_TOKEN,
                amount=Decimal(int(value)).scaleb(-NATIVE_DECIMALS),
            )
        )
    return balances


def _account_keys(result: Mapping[str, Any]) -> Tuple[str, ...]:
    message = (result.get("transaction") or {}).get("message") or {}
    keys: List[str] = []
    for key in message.get("accountKeys") or ():
        # jsonParsed encoding returns objects instead of plain strings
        keys.append(key["pubkey"] if isinstance(key, Mapping) else key)

    loaded = ((result.get("meta") or {}).get("loadedAddresses")) or {}
    keys.extend(loaded.get("writable") or ())
    keys.extend(loaded.get("readonly") or ())
    return tuple(keys)


def parse_transaction(signature: str, result: Mapping[str, Any]) -> TransactionRecord:
    """
    Convert a ``getTransaction`` result into a :class:`TransactionRecord`.

    Native SOL balances are folded into the balance lists under the
    ``"native"`` token so the analyzer treats them like any other token.
    """
    meta = result.get("meta") or {}
    account_keys = _account_keys(result)

    pre = _token_balances(meta.get("preTokenBalances"))
    pre.extend(_native_balances(meta.get("preBalances"), account_keys))
    post = _token_balances(meta.get("postTokenBalances"))
    post.extend(_native_balances(meta.get("postBalances"), account_keys))

    block_time = result.get("blockTime")
    return TransactionRecord(
        signature=signature,
        block_time=None if block_time is None else int(block_time),
        succeeded=meta.get("err") is None,
        pre_token_balances=tuple(pre),
        post_token_balances=tuple(post),
        account_keys=account_keys,
    )


class SolanaRpcClient:
    """
    Minimal Solana JSON-RPC client covering the calls the gate needs.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self.rpc_url = rpc_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self._ids = itertools.count(1)

    def _rpc(self, method: str, params: List[Any]) -> Any:
        body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = self.session.post(self.rpc_url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise LedgerUnavailableError(
                f"{method} request to {self.rpc_url} failed: {exc}"
            ) from exc

        if response.status_code >= 400:
            raise LedgerUnavailableError(
                f"RPC node responded with {response.status_code}: {response.text}"
            )
        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise LedgerUnavailableError(
                f"Failed to parse JSON from RPC node at {self.rpc_url}: {response.text}"
            ) from exc

        if not isinstance(payload, Mapping):
            raise LedgerUnavailableError(
                f"{method} returned a malformed response: {response.text}"
            )
        error = payload.get("error")
        if error:
            message = error.get("message", "Unknown RPC error") if isinstance(error, Mapping) else error
            raise LedgerUnavailableError(f"{method} failed: {message}")
        return payload.get("result")

    def get_transaction(
        self,
        signature: str,
        commitment: CommitmentLike = Commitment.CONFIRMED,
    ) -> Optional[TransactionRecord]:
        level = _commitment_value(commitment)
        logger.debug("Fetching transaction %s at %s from %s", signature, level, self.rpc_url)
        result = self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "commitment": level,
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        try:
            return parse_transaction(signature, result)
        except _MALFORMED as exc:
            raise LedgerUnavailableError(
                f"getTransaction returned a malformed result for {signature}: {exc!r}"
            ) from exc

    def get_token_balance(
        self,
        owner: str,
        token: str,
        commitment: CommitmentLike = Commitment.CONFIRMED,
    ) -> Decimal:
        """
        Return ``owner``'s balance of ``token`` in display units, summed over
        all of its token accounts.
        """
        level = _commitment_value(commitment)
        if token == NATIVE_TOKEN:
            result = self._rpc("getBalance", [owner, {"commitment": level}])
            try:
                return Decimal(int(result["value"])).scaleb(-NATIVE_DECIMALS)
            except _MALFORMED as exc:
                raise LedgerUnavailableError(f"getBalance returned a malformed result: {exc!r}") from exc

        result = self._rpc(
            "getTokenAccountsByOwner",
            [owner, {"mint": token}, {"encoding": "jsonParsed", "commitment": level}],
        )
        total = Decimal(0)
        try:
            for account in result.get("value") or ():
                info = account["account"]["data"]["parsed"]["info"]
                total += _ui_amount(info.get("tokenAmount") or {})
        except _MALFORMED as exc:
            raise LedgerUnavailableError(
                f"getTokenAccountsByOwner returned a malformed result: {exc!r}"
            ) from exc
        return total

    def close(self) -> None:
        self.session.close()
