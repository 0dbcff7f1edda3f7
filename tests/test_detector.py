"""Unit tests for detector.py."""

import io

import pandas as pd
import pytest

from statementparsing.detector import (
    UnsupportedFormatError,
    detect_column_mapping,
    detect_delimiter,
    detect_encoding,
    detect_format,
    detect_spreadsheet_mapping,
    infer_column_roles,
)
from statementparsing.models import Delimiter, Encoding, FileFormat, SourceFile


class TestDetectFormat:
    """Tests for detect_format function."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("extrato.csv", FileFormat.CSV),
            ("extrato.TXT", FileFormat.CSV),
            ("extrato.xlsx", FileFormat.XLSX),
            ("extrato.ofx", FileFormat.OFX),
            ("fatura.pdf", FileFormat.PDF),
        ],
    )
    def test_extension(self, name, expected):
        """Test detection by file extension."""
        assert detect_format(SourceFile(name, b"anything")) == expected

    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            (b"%PDF-1.7\n...", FileFormat.PDF),
            (b"PK\x03\x04rest-of-zip", FileFormat.XLSX),
            (b"OFXHEADER:100\nDATA:OFXSGML", FileFormat.OFX),
            (b"<ofx><stmttrn>", FileFormat.OFX),
            (b"Data;Descricao;Valor\n", FileFormat.CSV),
        ],
    )
    def test_content_sniffing(self, content, expected):
        """Test detection by content when the extension is unknown."""
        assert detect_format(SourceFile("upload.bin", content)) == expected

    def test_unsupported(self):
        """Test that binary content without a known signature is rejected."""
        with pytest.raises(UnsupportedFormatError):
            detect_format(SourceFile("image.bin", b"\x89PNG\x00\x00"))

    def test_legacy_xls_unsupported(self):
        """Test that a legacy binary workbook is not routed to the xlsx reader."""
        with pytest.raises(UnsupportedFormatError):
            detect_format(SourceFile("extrato.xls", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1\x00"))

    def test_empty_without_extension(self):
        """Test that an empty file without extension is rejected."""
        with pytest.raises(UnsupportedFormatError):
            detect_format(SourceFile("upload", b""))


class TestDetectHelpers:
    """Tests for encoding, delimiter and role detection."""

    def test_detect_encoding(self):
        """Test UTF-8 and Latin-1 detection."""
        assert detect_encoding("Descrição".encode()) == Encoding.UTF8
        assert detect_encoding("Descrição".encode("latin-1")) == Encoding.LATIN1

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("Data;Descricao;Valor", Delimiter.SEMICOLON),
            ("Data,Descricao,Valor", Delimiter.COMMA),
            ("Data|Descricao|Valor", Delimiter.PIPE),
            ("Data\tDescricao\tValor", Delimiter.TAB),
            ("Data", Delimiter.COMMA),
        ],
    )
    def test_detect_delimiter(self, line, expected):
        """Test that the delimiter giving most columns wins."""
        assert detect_delimiter(line) == expected

    def test_delimiter_tie_keeps_first(self):
        """Test that ties keep the earlier delimiter."""
        assert detect_delimiter("a,b;c") == Delimiter.COMMA

    def test_infer_column_roles(self):
        """Test keyword matching of header cells."""
        roles = infer_column_roles(["Data Lançamento", "Histórico", "Valor (R$)", "Tipo"])

        assert roles == {
            "date_column": 0,
            "description_column": 1,
            "amount_column": 2,
            "type_column": 3,
        }

    def test_infer_column_roles_first_match_wins(self):
        """Test that a second matching header does not steal a role."""
        roles = infer_column_roles(["Date", "Value date", "Memo", "Amount", None])

        assert roles["date_column"] == 0
        assert roles["description_column"] == 2
        assert roles["amount_column"] == 3

    def test_infer_column_roles_unknown_headers(self):
        """Test that unknown headers leave roles unset."""
        assert infer_column_roles(["foo", "bar", ""]) == {}


class TestDetectMappings:
    """Tests for mapping detection."""

    def test_detect_column_mapping(self):
        """Test a complete guess from a semicolon CSV."""
        content = "Data;Descrição;Valor\n15/01/2024;Uber;-23,50\n".encode("latin-1")

        mapping = detect_column_mapping(SourceFile("extrato.csv", content))

        assert mapping.delimiter == Delimiter.SEMICOLON
        assert mapping.encoding == Encoding.LATIN1
        assert mapping.has_headers is True
        assert (mapping.date_column, mapping.description_column, mapping.amount_column) == (
            0,
            1,
            2,
        )
        assert mapping.type_column is None
        assert mapping.is_complete()

    def test_detect_column_mapping_headerless(self):
        """Test that data in the first row leaves the mapping incomplete."""
        mapping = detect_column_mapping(
            SourceFile("extrato.csv", b"15/01/2024,Uber,-23.50\n"),
        )

        assert not mapping.is_complete()

    def test_detect_column_mapping_empty(self):
        """Test an empty file."""
        mapping = detect_column_mapping(SourceFile("extrato.csv", b""))

        assert mapping.missing_columns() == ["date_column", "description_column", "amount_column"]

    def test_detect_spreadsheet_mapping(self):
        """Test roles from the first row of the first sheet."""
        buffer = io.BytesIO()
        pd.DataFrame(
            [["Tipo", "Data", "Descricao", "Valor"], ["Debito", "15/01/2024", "Uber", -23.5]],
        ).to_excel(buffer, engine="openpyxl", header=False, index=False)

        mapping = detect_spreadsheet_mapping(SourceFile("extrato.xlsx", buffer.getvalue()))

        assert mapping.type_column == 0
        assert mapping.date_column == 1
        assert mapping.description_column == 2
        assert mapping.amount_column == 3

    def test_detect_spreadsheet_mapping_unreadable(self):
        """Test that an unreadable workbook gives an empty draft."""
        mapping = detect_spreadsheet_mapping(SourceFile("extrato.xlsx", b"garbage"))

        assert not mapping.is_complete()
