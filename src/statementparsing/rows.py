"""
Raw row shapes produced by the format readers and the adapter that turns
them into canonical transactions.

Each reader yields one kind of raw row. ``build_transaction`` is the single
row pipeline shared by every format: it validates the extracted cells,
decides the transaction type and stores the amount as a magnitude.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .models import ColumnMappingConfig, RowError, Transaction, TransactionType
from .normalizers import (
    coerce_cell_amount,
    coerce_cell_date,
    contains_any,
    parse_amount,
    parse_date,
    parse_interchange_amount,
)

logger = logging.getLogger(__name__)

INCOME_TYPE_TOKENS = ["receita", "credito", "entrada", "income", "credit"]
EXPENSE_TYPE_TOKENS = ["despesa", "debito", "saida", "expense", "debit"]


@dataclass(frozen=True)
class DelimitedRow:
    """A row of text cells from a delimited text file."""

    line: int
    cells: list[str]


@dataclass(frozen=True)
class SpreadsheetRow:
    """A raw row array from a spreadsheet. Cells keep their native types."""

    line: int
    cells: list[Any]


@dataclass(frozen=True)
class InterchangeBlock:
    """The tag values of one ``<STMTTRN>`` block."""

    line: int
    posted: str | None
    description: str | None
    amount: str | None


@dataclass(frozen=True)
class DocumentMatch:
    """One regex match in extracted document text."""

    line: int
    layout: str
    date: date | None
    date_text: str
    description: str
    amount: Decimal | None
    amount_text: str
    is_income: bool


@dataclass(frozen=True)
class RowFields:
    """Normalized values pulled out of a raw row, before validation."""

    line: int
    date: date | None
    date_text: str
    description: str
    amount: Decimal | None
    amount_text: str
    type_hint: TransactionType | None = None


def resolve_type(type_cell: Any, amount: Decimal) -> TransactionType:
    """
    Decide income or expense.

    A type cell with income or expense tokens wins. Otherwise the sign of
    the amount decides, with zero counted as income.
    """
    if type_cell is not None and not _is_blank(type_cell):
        type_text = str(type_cell)
        if contains_any(type_text, INCOME_TYPE_TOKENS):
            return TransactionType.INCOME
        if contains_any(type_text, EXPENSE_TYPE_TOKENS):
            return TransactionType.EXPENSE
    return TransactionType.INCOME if amount >= 0 else TransactionType.EXPENSE


def fields_from_delimited(
    row: DelimitedRow,
    config: ColumnMappingConfig,
) -> RowFields:
    date_text = _cell_text(row.cells, config.date_column)
    amount_text = _cell_text(row.cells, config.amount_column)
    amount = parse_amount(amount_text) if amount_text else None
    return RowFields(
        line=row.line,
        date=parse_date(date_text) if date_text else None,
        date_text=date_text,
        description=_cell_text(row.cells, config.description_column),
        amount=amount,
        amount_text=amount_text,
        type_hint=_type_hint(row.cells, config.type_column, amount),
    )


def fields_from_spreadsheet(
    row: SpreadsheetRow,
    config: ColumnMappingConfig,
) -> RowFields:
    date_value = _cell(row.cells, config.date_column)
    amount_value = _cell(row.cells, config.amount_column)
    amount = None if _is_blank(amount_value) else coerce_cell_amount(amount_value)
    return RowFields(
        line=row.line,
        date=None if _is_blank(date_value) else coerce_cell_date(date_value),
        date_text="" if _is_blank(date_value) else str(date_value).strip(),
        description=_cell_text(row.cells, config.description_column),
        amount=amount,
        amount_text="" if _is_blank(amount_value) else str(amount_value).strip(),
        type_hint=_type_hint(row.cells, config.type_column, amount),
    )


def fields_from_interchange(block: InterchangeBlock) -> RowFields:
    posted = (block.posted or "").strip()
    posted_date = None
    if len(posted) == 8 and posted.isdigit():
        try:
            posted_date = datetime.strptime(posted, "%Y%m%d").date()
        except ValueError:
            posted_date = None

    amount_text = (block.amount or "").strip()
    return RowFields(
        line=block.line,
        date=posted_date,
        date_text=posted,
        description=(block.description or "").strip(),
        amount=parse_interchange_amount(amount_text) if amount_text else None,
        amount_text=amount_text,
    )


def fields_from_document(match: DocumentMatch) -> RowFields:
    return RowFields(
        line=match.line,
        date=match.date,
        date_text=match.date_text,
        description=match.description.strip(),
        amount=match.amount,
        amount_text=match.amount_text,
        type_hint=TransactionType.INCOME if match.is_income else TransactionType.EXPENSE,
    )


def build_transaction(
    fields: RowFields,
    source_name: str,
    imported_at: datetime,
) -> Transaction | RowError:
    """
    Run the common row pipeline.

    Returns:
        A Transaction ready for classification, or the RowError that
        rejected the row.
    """
    if not fields.date_text:
        return RowError(fields.line, "date", "Date not found")
    if fields.date is None:
        return RowError(fields.line, "date", f"Invalid date: {fields.date_text}")
    if not fields.description:
        return RowError(fields.line, "description", "Description not found")
    if not fields.amount_text:
        return RowError(fields.line, "amount", "Amount not found")
    if fields.amount is None:
        return RowError(fields.line, "amount", f"Invalid amount: {fields.amount_text}")

    transaction_type = fields.type_hint or resolve_type(None, fields.amount)
    return Transaction(
        date=fields.date,
        description=fields.description,
        amount=abs(fields.amount),
        type=transaction_type,
        category="",
        subcategory="",
        confidence=0.0,
        needs_review=True,
        imported_from=source_name,
        imported_at=imported_at,
    )


def collect(
    rows_fields,
    source_name: str,
    imported_at: datetime | None = None,
):
    """Run ``build_transaction`` over many rows, splitting the outcomes."""
    imported_at = imported_at or datetime.now()
    transactions: list[Transaction] = []
    errors: list[RowError] = []

    for fields in rows_fields:
        outcome = build_transaction(fields, source_name, imported_at)
        if isinstance(outcome, RowError):
            logger.debug(
                f"Skipping line {outcome.line} of {source_name}: {outcome.message}",
            )
            errors.append(outcome)
        else:
            transactions.append(outcome)

    return transactions, errors


def _type_hint(
    cells: list[Any],
    type_column: int | None,
    amount: Decimal | None,
) -> TransactionType | None:
    if type_column is None or amount is None:
        return None
    type_cell = _cell(cells, type_column)
    if _is_blank(type_cell):
        return None
    return resolve_type(type_cell, amount)


def _cell(cells: list[Any], index: int | None) -> Any:
    if index is None or index < 0 or index >= len(cells):
        return None
    return cells[index]


def _cell_text(cells: list[Any], index: int | None) -> str:
    value = _cell(cells, index)
    if _is_blank(value):
        return ""
    return str(value).strip()


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    return isinstance(value, str) and not value.strip()
