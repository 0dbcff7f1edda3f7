"""
Record store interface and a JSON file implementation.

The import pipeline only needs a windowed read and a bulk insert; the
store owns its own consistency guarantees.
"""

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

OPERATORS = ("eq", "gte", "lte")


class StoreError(Exception):
    """Exception raised when the store cannot be read or written."""


@dataclass(frozen=True)
class Filter:
    """A single field predicate: ``record[field] <op> value``."""

    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unknown filter operator '{self.op}'. Available: {OPERATORS}")

    def matches(self, record: dict[str, Any]) -> bool:
        actual = record.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if actual is None:
            return False
        if self.op == "gte":
            return actual >= self.value
        return actual <= self.value


class TransactionStore(Protocol):
    """Generic record store used by the import pipeline."""

    def query(self, filters: list[Filter]) -> list[dict[str, Any]]: ...

    def insert_many(self, records: list[dict[str, Any]]) -> list[str]: ...

    def update(self, record_id: str, partial: dict[str, Any]) -> None: ...

    def delete(self, record_id: str) -> None: ...


class JsonTransactionStore:
    """
    Transaction records kept in a JSON file.

    Writes go to a temporary file that replaces the original, so a failed
    bulk insert leaves the previous content intact.
    """

    def __init__(self, file_path: Path):
        self.file_path = file_path
        self.records: list[dict[str, Any]] = []

        if file_path.exists():
            logger.info(f"Loading transactions from {file_path}")
            self.load()
            logger.info(f"Loaded {len(self.records)} transactions")
        else:
            logger.debug(
                f"Store file {file_path} does not exist, will be created on first insert",
            )

    def query(self, filters: list[Filter]) -> list[dict[str, Any]]:
        return [
            dict(record)
            for record in self.records
            if all(f.matches(record) for f in filters)
        ]

    def insert_many(self, records: list[dict[str, Any]]) -> list[str]:
        """Insert all records or none of them."""
        new_records = []
        for record in records:
            stored = dict(record)
            stored["id"] = stored.get("id") or uuid.uuid4().hex
            new_records.append(stored)

        self._write(self.records + new_records)
        self.records.extend(new_records)
        logger.info(f"Inserted {len(new_records)} transactions into {self.file_path}")
        return [record["id"] for record in new_records]

    def update(self, record_id: str, partial: dict[str, Any]) -> None:
        records = [dict(record) for record in self.records]
        target = self._find(records, record_id)
        target.update({k: v for k, v in partial.items() if k != "id"})
        self._write(records)
        self.records = records

    def delete(self, record_id: str) -> None:
        self._find(self.records, record_id)
        records = [record for record in self.records if record.get("id") != record_id]
        self._write(records)
        self.records = records

    def load(self) -> None:
        try:
            with open(self.file_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load transactions from {self.file_path}: {e}")
            raise StoreError(
                f"Failed to load transactions from {self.file_path}: {e}",
            ) from e
        self.records = list(data.get("transactions", []))

    def _write(self, records: list[dict[str, Any]]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.file_path.parent,
                prefix=f".{self.file_path.name}.",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"transactions": records}, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.file_path)
        except OSError as e:
            logger.error(f"Failed to write transactions to {self.file_path}: {e}")
            raise StoreError(
                f"Failed to write transactions to {self.file_path}: {e}",
            ) from e

    @staticmethod
    def _find(records: list[dict[str, Any]], record_id: str) -> dict[str, Any]:
        for record in records:
            if record.get("id") == record_id:
                return record
        raise StoreError(f"Transaction {record_id} not found")
