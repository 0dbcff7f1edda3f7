"""
Exact-match deduplication against previously stored transactions.
"""

import logging
from decimal import Decimal
from typing import Any

from .models import Transaction
from .store import Filter, TransactionStore

logger = logging.getLogger(__name__)

MISSING_REF = "-"
CENT = Decimal("0.01")


def dedup_key(item: Transaction | dict[str, Any]) -> str:
    """
    Composite key ``date|amount|description|account|card``.

    Works for both fresh transactions and stored records so both sides of
    the comparison go through the same normalization.
    """
    if isinstance(item, Transaction):
        item_date = item.date.isoformat()
        amount = item.amount
        description = item.description
        account = item.source_account_id
        card = item.source_card_id
    else:
        item_date = str(item["date"])[:10]
        amount = Decimal(str(item["amount"]))
        description = item["description"]
        account = item.get("bank_account_id")
        card = item.get("credit_card_id")

    return "|".join(
        [
            item_date,
            _amount_key(amount),
            description,
            account or MISSING_REF,
            card or MISSING_REF,
        ],
    )


def _amount_key(amount: Decimal) -> str:
    # Sub-cent digits stay in the key so distinct amounts never collide
    if amount == amount.quantize(CENT):
        return f"{amount:.2f}"
    return format(amount.normalize(), "f")


class Deduplicator:
    """Splits incoming transactions into fresh ones and repeats."""

    def __init__(self, store: TransactionStore):
        self.store = store

    def existing_keys(self, incoming: list[Transaction]) -> set[str]:
        """Keys of stored transactions inside the incoming batch's date range."""
        start = min(t.date for t in incoming).isoformat()
        end = max(t.date for t in incoming).isoformat()
        records = self.store.query(
            [Filter("date", "gte", start), Filter("date", "lte", end)],
        )
        logger.debug(f"Found {len(records)} stored transactions between {start} and {end}")
        return {dedup_key(record) for record in records}

    def split(
        self,
        incoming: list[Transaction],
    ) -> tuple[list[Transaction], list[Transaction]]:
        """
        Separate repeats of stored transactions from new ones.

        Returns:
            Tuple of (fresh, duplicates), each in input order
        """
        if not incoming:
            return [], []

        known = self.existing_keys(incoming)
        fresh: list[Transaction] = []
        duplicates: list[Transaction] = []
        for transaction in incoming:
            if dedup_key(transaction) in known:
                duplicates.append(transaction)
            else:
                fresh.append(transaction)

        logger.info(f"{len(fresh)} new transactions, {len(duplicates)} duplicates")
        return fresh, duplicates
