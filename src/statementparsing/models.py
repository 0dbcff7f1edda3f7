"""
Data models for statement imports.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

REVIEW_THRESHOLD = 0.7


class IncompleteMappingError(ValueError):
    """Exception raised when a column mapping lacks a required column."""


class TransactionType(Enum):
    """Transaction type enumeration."""

    INCOME = "income"
    EXPENSE = "expense"


class Delimiter(Enum):
    """Field delimiters accepted for delimited text files."""

    COMMA = ","
    SEMICOLON = ";"
    PIPE = "|"
    TAB = "\t"


class Encoding(Enum):
    """Text encodings accepted for delimited text files."""

    UTF8 = "UTF-8"
    LATIN1 = "Latin1"

    @property
    def codec(self) -> str:
        """Python codec name for this encoding."""
        return "latin-1" if self is Encoding.LATIN1 else "utf-8-sig"


class FileFormat(Enum):
    """Statement file formats."""

    CSV = "csv"
    XLSX = "xlsx"
    OFX = "ofx"
    PDF = "pdf"

    @property
    def needs_mapping(self) -> bool:
        """Whether the format needs a column mapping before parsing."""
        return self in (FileFormat.CSV, FileFormat.XLSX)


class ImportState(Enum):
    """States an import job moves through."""

    UPLOADED = "uploaded"
    DETECTING = "detecting"
    CONFIGURING = "configuring"
    PARSING = "parsing"
    CLASSIFYING = "classifying"
    DEDUPLICATING = "deduplicating"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class Transaction:
    """Represents a single normalized statement transaction."""

    date: date
    description: str
    amount: Decimal
    type: TransactionType
    category: str = ""
    subcategory: str = ""
    confidence: float = 0.0
    needs_review: bool = True
    imported_from: str = ""
    imported_at: datetime = field(default_factory=datetime.now)
    id: str | None = None
    source_account_id: str | None = None
    source_card_id: str | None = None

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(
                f"Transaction amount must be non-negative, got {self.amount}",
            )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    def apply_classification(
        self,
        category: str,
        subcategory: str,
        confidence: float,
    ) -> None:
        """Set category fields and derive the review flag."""
        self.category = category
        self.subcategory = subcategory
        self.confidence = confidence
        self.needs_review = confidence < REVIEW_THRESHOLD

    def to_record(self) -> dict[str, Any]:
        """Convert to a store record."""
        record: dict[str, Any] = {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": str(self.amount),
            "type": self.type.value,
            "category": self.category,
            "subcategory": self.subcategory,
            "confidence": self.confidence,
            "needs_review": self.needs_review,
            "imported_from": self.imported_from,
            "imported_at": self.imported_at.isoformat(),
            "bank_account_id": self.source_account_id,
            "credit_card_id": self.source_card_id,
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Transaction":
        """Create Transaction from a store record."""
        record_date = record["date"]
        if isinstance(record_date, str):
            record_date = date.fromisoformat(record_date[:10])
        imported_at = record.get("imported_at")
        if isinstance(imported_at, str):
            imported_at = datetime.fromisoformat(imported_at)

        return cls(
            date=record_date,
            description=record["description"],
            amount=Decimal(str(record["amount"])),
            type=TransactionType(record["type"]),
            category=record.get("category") or "",
            subcategory=record.get("subcategory") or "",
            confidence=float(record.get("confidence") or 0.0),
            needs_review=bool(record.get("needs_review", True)),
            imported_from=record.get("imported_from") or "",
            imported_at=imported_at or datetime.now(),
            id=record.get("id"),
            source_account_id=record.get("bank_account_id"),
            source_card_id=record.get("credit_card_id"),
        )


@dataclass(frozen=True)
class RowError:
    """A malformed input row. Never aborts the batch."""

    line: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ColumnMappingConfig:
    """
    Column mapping for formats without a self-describing structure.

    Column indices are zero-based. A mapping returned by the detector may
    leave columns unset; it must be completed before parsing.
    """

    delimiter: Delimiter = Delimiter.COMMA
    encoding: Encoding = Encoding.UTF8
    has_headers: bool = True
    date_column: int | None = None
    description_column: int | None = None
    amount_column: int | None = None
    type_column: int | None = None

    def missing_columns(self) -> list[str]:
        """Names of required columns that are not set."""
        required = {
            "date_column": self.date_column,
            "description_column": self.description_column,
            "amount_column": self.amount_column,
        }
        return [name for name, value in required.items() if value is None]

    def is_complete(self) -> bool:
        return not self.missing_columns()

    def validate(self) -> None:
        """Raise IncompleteMappingError unless all required columns are set."""
        missing = self.missing_columns()
        if missing:
            raise IncompleteMappingError(
                f"Column mapping is incomplete, missing: {', '.join(missing)}",
            )

    def replace(self, **changes: Any) -> "ColumnMappingConfig":
        """Return an edited copy of this mapping."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "delimiter": self.delimiter.value,
            "encoding": self.encoding.value,
            "has_headers": self.has_headers,
            "date_column": self.date_column,
            "description_column": self.description_column,
            "amount_column": self.amount_column,
            "type_column": self.type_column,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ColumnMappingConfig":
        return cls(
            delimiter=Delimiter(data.get("delimiter", Delimiter.COMMA.value)),
            encoding=Encoding(data.get("encoding", Encoding.UTF8.value)),
            has_headers=bool(data.get("has_headers", True)),
            date_column=data.get("date_column"),
            description_column=data.get("description_column"),
            amount_column=data.get("amount_column"),
            type_column=data.get("type_column"),
        )


@dataclass(frozen=True)
class SourceFile:
    """An uploaded statement file."""

    name: str
    content: bytes

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, file_path: str | Path) -> "SourceFile":
        path = Path(file_path)
        return cls(name=path.name, content=path.read_bytes())


@dataclass
class ParseResult:
    """Output of a format parser."""

    transactions: list[Transaction] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)


@dataclass
class ImportResult:
    """Result of a full import job."""

    transactions: list[Transaction] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    duplicates: list[Transaction] = field(default_factory=list)
    low_confidence: list[Transaction] = field(default_factory=list)
    state: ImportState = ImportState.UPLOADED
    file_format: FileFormat | None = None
    failure_reason: str | None = None

    @property
    def success(self) -> bool:
        return self.state == ImportState.PERSISTED

    @property
    def imported_count(self) -> int:
        return len(self.transactions)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def low_confidence_count(self) -> int:
        return len(self.low_confidence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "file_format": self.file_format.value if self.file_format else None,
            "imported": self.imported_count,
            "duplicates": self.duplicate_count,
            "errors": [error.to_dict() for error in self.errors],
            "low_confidence": self.low_confidence_count,
            "failure_reason": self.failure_reason,
        }


@dataclass
class BulkImportResult:
    """Result of the bulk-import operation."""

    success: bool
    count: int
    duplicates: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "count": self.count,
            "duplicates": self.duplicates,
        }
