"""
Spreadsheet parsing for statement exports.
"""

import io
import logging
from datetime import datetime
from typing import Any

import pandas as pd

from .models import ColumnMappingConfig, ParseResult, RowError, SourceFile
from .rows import SpreadsheetRow, collect, fields_from_spreadsheet

logger = logging.getLogger(__name__)


def read_first_sheet(content: bytes, nrows: int | None = None) -> list[list[Any]]:
    """
    Read the first sheet as raw row arrays.

    No header coercion is done: every row, including a header row, comes
    back as a list of native cell values (str, int, float, datetime or NaN).
    """
    df = pd.read_excel(
        io.BytesIO(content),
        sheet_name=0,
        header=None,
        dtype=object,
        nrows=nrows,
    )
    return [list(values) for values in df.itertuples(index=False, name=None)]


class SpreadsheetParser:
    """Parser for spreadsheet statement files. Only the first sheet is read."""

    def parse(
        self,
        source_file: SourceFile,
        config: ColumnMappingConfig | None = None,
    ) -> ParseResult:
        """
        Parse the first sheet of a workbook.

        Numeric date cells are spreadsheet serials and numeric amount cells
        are used as they are; text cells go through the text normalizers.
        """
        if config is None or not config.is_complete():
            return ParseResult(
                errors=[RowError(0, "general", "Column mapping is incomplete")],
            )

        try:
            raw_rows = read_first_sheet(source_file.content)
        except Exception as e:
            # pandas and openpyxl raise a wide range of errors on corrupt files
            logger.error(f"Could not read spreadsheet {source_file.name}: {e}")
            return ParseResult(
                errors=[
                    RowError(0, "general", f"Error processing spreadsheet: {e}"),
                ],
            )

        if not raw_rows:
            return ParseResult(
                errors=[RowError(0, "general", "Spreadsheet has no rows")],
            )

        start_row = 1 if config.has_headers else 0
        rows = [
            SpreadsheetRow(line=index + 1, cells=cells)
            for index, cells in enumerate(raw_rows)
            if index >= start_row and not _is_empty_row(cells)
        ]

        transactions, errors = collect(
            (fields_from_spreadsheet(row, config) for row in rows),
            source_file.name,
            datetime.now(),
        )
        logger.info(
            f"Parsed {len(transactions)} transactions from {source_file.name} "
            f"({len(errors)} rows skipped)",
        )
        return ParseResult(transactions=transactions, errors=errors)


def _is_empty_row(cells: list[Any]) -> bool:
    return all(
        cell is None or (isinstance(cell, float) and pd.isna(cell))
        or (isinstance(cell, str) and not cell.strip())
        for cell in cells
    )
