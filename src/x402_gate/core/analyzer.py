"""
Balance-delta analysis of a settled transaction.

The ledger does not say "A paid B"; it reports token balances for every
touched account before and after execution. The receipt is read from the
recipient's delta and the payer is inferred from a matching decrease.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from .errors import NoTransferFoundError
from .models import AttributionBasis, SenderAttribution, TransactionRecord

__all__ = ["TransferAnalysis", "analyze_transfer", "attribute_sender"]

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)


@dataclass(frozen=True)
class TransferAnalysis:
    amount: Decimal
    recipient_account_index: int
    attribution: SenderAttribution

    @property
    def sender(self) -> str:
        return self.attribution.address


def _received_amount(
    record: TransactionRecord,
    token: str,
    recipient: str,
) -> Optional[Tuple[int, Decimal]]:
    for post in record.post_token_balances:
        if post.token != token or post.owner != recipient:
            continue
        pre = record.pre_balance_for(post.account_index, token)
        delta = post.amount - (pre.amount if pre is not None else _ZERO)
        if delta > 0:
            return post.account_index, delta
    return None


def attribute_sender(
    record: TransactionRecord,
    token: str,
    recipient_index: int,
    amount: Decimal,
) -> SenderAttribution:
    """
    Guess the payer of a receipt of ``amount``.

    The first account of ``token`` whose balance fell by exactly ``amount`` is
    taken as the payer. Failing that the first account key (the fee payer) is
    reported with ``FIRST_ACCOUNT`` basis, which is an approximation and
    should not be used for anything that needs proof of origin.
    """
    for pre in record.pre_token_balances:
        if pre.token != token or pre.account_index == recipient_index:
            continue
        post = record.post_balance_for(pre.account_index, token)
        decrease = pre.amount - (post.amount if post is not None else _ZERO)
        if decrease > 0 and decrease == amount:
            return SenderAttribution(address=pre.owner, basis=AttributionBasis.BALANCE_DELTA)

    if record.account_keys:
        return SenderAttribution(
            address=record.account_keys[0],
            basis=AttributionBasis.FIRST_ACCOUNT,
        )
    return SenderAttribution.unattributed()


def analyze_transfer(
    record: TransactionRecord,
    token: str,
    recipient: str,
) -> TransferAnalysis:
    """
    Compute how much ``token`` ``recipient`` gained in ``record`` and from whom.

    Recipient entries are visited in post-balance order and the first positive
    delta is used. Raises :class:`NoTransferFoundError` when there is none.
    """
    found = _received_amount(record, token, recipient)
    if found is None:
        raise NoTransferFoundError(
            f"No {token} transfer to {recipient} in transaction {record.signature}"
        )

    account_index, amount = found
    attribution = attribute_sender(record, token, account_index, amount)
    if not attribution.exact:
        logger.debug(
            "Sender of %s not matched by balance delta; using %s (%s)",
            record.signature,
            attribution.address or "<none>",
            attribution.basis.value,
        )
    return TransferAnalysis(
        amount=amount,
        recipient_account_index=account_index,
        attribution=attribution,
    )
