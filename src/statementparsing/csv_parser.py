"""
CSV parsing functionality for delimited statement exports.
"""

import io
import logging
from datetime import datetime

import pandas as pd

from .models import ColumnMappingConfig, ParseResult, RowError, SourceFile
from .rows import DelimitedRow, collect, fields_from_delimited

logger = logging.getLogger(__name__)


class DelimitedTextParser:
    """Parser for delimited text statement files (CSV, TSV, pipe)."""

    def parse(
        self,
        source_file: SourceFile,
        config: ColumnMappingConfig | None = None,
    ) -> ParseResult:
        """
        Parse a delimited text file into transactions.

        Args:
            source_file: The uploaded file
            config: Column mapping; must have date, description and amount
                columns set

        Returns:
            ParseResult with transactions and per-row errors
        """
        if config is None or not config.is_complete():
            return ParseResult(
                errors=[RowError(0, "general", "Column mapping is incomplete")],
            )

        try:
            rows, read_errors = self.read_rows(source_file, config)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Could not read {source_file.name}: {e}")
            return ParseResult(
                errors=[RowError(0, "general", f"Error reading CSV file: {e}")],
            )

        if config.has_headers:
            rows = [row for row in rows if row.line > 1]
            read_errors = [error for error in read_errors if error.line > 1]

        transactions, errors = collect(
            (fields_from_delimited(row, config) for row in rows),
            source_file.name,
            datetime.now(),
        )
        errors = sorted(read_errors + errors, key=lambda error: error.line)
        logger.info(
            f"Parsed {len(transactions)} transactions from {source_file.name} "
            f"({len(errors)} rows skipped)",
        )
        return ParseResult(transactions=transactions, errors=errors)

    def read_rows(
        self,
        source_file: SourceFile,
        config: ColumnMappingConfig,
    ) -> tuple[list[DelimitedRow], list[RowError]]:
        """
        Split the file into text rows, blank lines dropped.

        When the file as a whole cannot be tokenised, every line is read on
        its own and the lines that still fail become row errors.
        """
        text = source_file.content.decode(config.encoding.codec)
        delimiter = config.delimiter.value

        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            return [], []

        # Ragged rows would otherwise make pandas reject the file.
        width = max(line.count(delimiter) + 1 for line in lines)

        try:
            df = self._read_frame(text, delimiter, width)
        except pd.errors.ParserError as e:
            logger.warning(
                f"Could not read {source_file.name} in one pass ({e}), "
                f"reading line by line",
            )
            return self._read_lines(lines, delimiter, width)

        rows = []
        for index, values in enumerate(df.itertuples(index=False, name=None)):
            rows.append(DelimitedRow(line=index + 1, cells=_cells(values)))
        return rows, []

    def _read_lines(
        self,
        lines: list[str],
        delimiter: str,
        width: int,
    ) -> tuple[list[DelimitedRow], list[RowError]]:
        rows: list[DelimitedRow] = []
        errors: list[RowError] = []

        for index, line in enumerate(lines):
            line_number = index + 1
            try:
                df = self._read_frame(line, delimiter, width)
            except pd.errors.ParserError as e:
                logger.debug(f"Skipping line {line_number}: {e}")
                errors.append(
                    RowError(line_number, "general", f"Malformed row: {e}"),
                )
                continue

            for values in df.itertuples(index=False, name=None):
                rows.append(DelimitedRow(line=line_number, cells=_cells(values)))

        return rows, errors

    @staticmethod
    def _read_frame(text: str, delimiter: str, width: int) -> pd.DataFrame:
        return pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
        )


def _cells(values) -> list[str]:
    return ["" if pd.isna(value) else str(value) for value in values]
