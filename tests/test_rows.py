"""Unit tests for rows.py."""

from datetime import date, datetime
from decimal import Decimal

from statementparsing.models import ColumnMappingConfig, RowError, TransactionType
from statementparsing.rows import (
    DelimitedRow,
    DocumentMatch,
    InterchangeBlock,
    RowFields,
    SpreadsheetRow,
    build_transaction,
    collect,
    fields_from_delimited,
    fields_from_document,
    fields_from_interchange,
    fields_from_spreadsheet,
    resolve_type,
)

IMPORTED_AT = datetime(2024, 2, 1, 12, 0)
MAPPING = ColumnMappingConfig(date_column=0, description_column=1, amount_column=2)


def make_fields(**overrides) -> RowFields:
    values = {
        "line": 2,
        "date": date(2024, 1, 15),
        "date_text": "15/01/2024",
        "description": "Uber Trip",
        "amount": Decimal("-23.50"),
        "amount_text": "-23,50",
    }
    values.update(overrides)
    return RowFields(**values)


class TestResolveType:
    """Tests for resolve_type function."""

    def test_type_cell_tokens_win(self):
        """Test that type tokens override the amount sign."""
        assert resolve_type("Receita", Decimal("-10")) == TransactionType.INCOME
        assert resolve_type("Crédito", Decimal("-10")) == TransactionType.INCOME
        assert resolve_type("Débito", Decimal("10")) == TransactionType.EXPENSE
        assert resolve_type("Saída", Decimal("10")) == TransactionType.EXPENSE

    def test_sign_decides_without_tokens(self):
        """Test sign fallback with zero counted as income."""
        assert resolve_type(None, Decimal("-0.01")) == TransactionType.EXPENSE
        assert resolve_type("", Decimal("5")) == TransactionType.INCOME
        assert resolve_type("PIX", Decimal("0")) == TransactionType.INCOME


class TestBuildTransaction:
    """Tests for the shared row pipeline."""

    def test_valid_row(self):
        """Test that a valid row becomes an unclassified expense."""
        transaction = build_transaction(make_fields(), "extrato.csv", IMPORTED_AT)

        assert transaction.date == date(2024, 1, 15)
        assert transaction.description == "Uber Trip"
        assert transaction.amount == Decimal("23.50")
        assert transaction.type == TransactionType.EXPENSE
        assert transaction.category == ""
        assert transaction.confidence == 0.0
        assert transaction.needs_review is True
        assert transaction.imported_from == "extrato.csv"
        assert transaction.imported_at == IMPORTED_AT

    def test_missing_date(self):
        """Test a row without date text."""
        error = build_transaction(
            make_fields(date=None, date_text=""),
            "extrato.csv",
            IMPORTED_AT,
        )

        assert error == RowError(2, "date", "Date not found")

    def test_invalid_date(self):
        """Test a row whose date does not exist."""
        error = build_transaction(
            make_fields(date=None, date_text="32/13/2024"),
            "extrato.csv",
            IMPORTED_AT,
        )

        assert error == RowError(2, "date", "Invalid date: 32/13/2024")

    def test_missing_description(self):
        """Test a row with an empty description."""
        error = build_transaction(make_fields(description=""), "extrato.csv", IMPORTED_AT)

        assert error.field == "description"

    def test_missing_and_invalid_amount(self):
        """Test rows with empty and unparseable amounts."""
        missing = build_transaction(
            make_fields(amount=None, amount_text=""),
            "extrato.csv",
            IMPORTED_AT,
        )
        invalid = build_transaction(
            make_fields(amount=None, amount_text="abc"),
            "extrato.csv",
            IMPORTED_AT,
        )

        assert missing == RowError(2, "amount", "Amount not found")
        assert invalid == RowError(2, "amount", "Invalid amount: abc")

    def test_type_hint_is_used(self):
        """Test that an explicit type hint beats the sign."""
        transaction = build_transaction(
            make_fields(type_hint=TransactionType.INCOME),
            "extrato.csv",
            IMPORTED_AT,
        )

        assert transaction.type == TransactionType.INCOME
        assert transaction.amount == Decimal("23.50")

    def test_collect_splits_outcomes(self):
        """Test that collect keeps going after a bad row."""
        transactions, errors = collect(
            [make_fields(line=2), make_fields(line=3, description=""), make_fields(line=4)],
            "extrato.csv",
            IMPORTED_AT,
        )

        assert [t.description for t in transactions] == ["Uber Trip", "Uber Trip"]
        assert [e.line for e in errors] == [3]


class TestFieldExtractors:
    """Tests for per-format field extraction."""

    def test_fields_from_delimited(self):
        """Test text cells from a delimited row."""
        fields = fields_from_delimited(
            DelimitedRow(2, ["15/01/2024", " Uber Trip ", "-23,50"]),
            MAPPING,
        )

        assert fields.date == date(2024, 1, 15)
        assert fields.description == "Uber Trip"
        assert fields.amount == Decimal("-23.50")
        assert fields.type_hint is None

    def test_fields_from_delimited_short_row(self):
        """Test that missing cells read as empty."""
        fields = fields_from_delimited(DelimitedRow(5, ["15/01/2024"]), MAPPING)

        assert fields.description == ""
        assert fields.amount_text == ""

    def test_fields_from_delimited_type_column(self):
        """Test that the type column produces a type hint."""
        mapping = MAPPING.replace(type_column=3)

        fields = fields_from_delimited(
            DelimitedRow(2, ["15/01/2024", "Salario", "3.000,00", "Receita"]),
            mapping,
        )

        assert fields.type_hint == TransactionType.INCOME

    def test_fields_from_spreadsheet(self):
        """Test native cell types from a spreadsheet row."""
        fields = fields_from_spreadsheet(
            SpreadsheetRow(3, [datetime(2024, 1, 15), "Mercado", -45.9]),
            MAPPING,
        )

        assert fields.date == date(2024, 1, 15)
        assert fields.amount == Decimal("-45.9")
        assert fields.line == 3

    def test_fields_from_spreadsheet_blank_cells(self):
        """Test that NaN cells count as missing."""
        fields = fields_from_spreadsheet(
            SpreadsheetRow(3, [float("nan"), "Mercado", None]),
            MAPPING,
        )

        assert fields.date is None
        assert fields.date_text == ""
        assert fields.amount_text == ""

    def test_fields_from_interchange(self):
        """Test OFX tag values."""
        fields = fields_from_interchange(
            InterchangeBlock(1, "20240115", "PIX RECEBIDO", "+1500.00"),
        )

        assert fields.date == date(2024, 1, 15)
        assert fields.amount == Decimal("1500.00")
        assert fields.description == "PIX RECEBIDO"

    def test_fields_from_interchange_bad_date(self):
        """Test that a malformed posted date is kept as text only."""
        fields = fields_from_interchange(InterchangeBlock(1, "20241399", "X", "1.00"))

        assert fields.date is None
        assert fields.date_text == "20241399"

    def test_fields_from_document(self):
        """Test document matches carry their income flag as a type hint."""
        fields = fields_from_document(
            DocumentMatch(
                line=4,
                layout="generic",
                date=date(2024, 1, 15),
                date_text="15/01/2024",
                description=" Salario ",
                amount=Decimal("3000.00"),
                amount_text="3.000,00",
                is_income=True,
            ),
        )

        assert fields.description == "Salario"
        assert fields.type_hint == TransactionType.INCOME
