"""
Best-effort parsing of statement text extracted from documents.

Layouts are regular expressions tuned to a few statement styles. They are
heuristics: a statement in an unknown style produces nothing rather than
wrong data as often as possible, but no layout is guaranteed to be right.
"""

import io
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime

import pdfplumber

from .models import ColumnMappingConfig, ParseResult, RowError, SourceFile
from .normalizers import contains_any, parse_amount, parse_date, parse_day_month
from .ofx_parser import decode_text
from .rows import DocumentMatch, collect, fields_from_document

logger = logging.getLogger(__name__)

INCOME_KEYWORDS = ["credito", "deposito", "recebimento", "salario", "pix recebido"]

NO_LAYOUT_MESSAGE = (
    "Could not find transactions in the document. "
    "Supported layouts: generic, Nubank, Inter."
)


class DocumentExtractionError(Exception):
    """Exception raised when text cannot be extracted from a document."""


@dataclass(frozen=True)
class DocumentLayout:
    """A statement style: its name, row regex and how its dates read."""

    name: str
    pattern: re.Pattern
    day_month_dates: bool = False


DEFAULT_LAYOUTS = [
    DocumentLayout(
        name="generic",
        pattern=re.compile(r"(\d{2}/\d{2}/\d{4})\s+([^\d\r\n]+?)\s+([\d.,]+)"),
    ),
    DocumentLayout(
        name="nubank",
        pattern=re.compile(r"(\d{2}\s+\w{3})\s+([^\r\n]+?)\s+R\$\s*([\d.,]+)"),
        day_month_dates=True,
    ),
    DocumentLayout(
        name="inter",
        pattern=re.compile(r"(\d{2}/\d{2}/\d{4})\s+([^\r\n]+?)\s+R\$\s*([\d.,]+)"),
    ),
]


def extract_pdf_text(content: bytes) -> str:
    """Extract the text of every page of a PDF."""
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise DocumentExtractionError(f"Failed to extract PDF text: {e}") from e
    return "\n".join(pages)


class DocumentTextParser:
    """Parser for statement text extracted from PDFs."""

    def __init__(
        self,
        layouts: list[DocumentLayout] | None = None,
        reference_year: int | None = None,
    ):
        self.layouts = layouts or DEFAULT_LAYOUTS
        self.reference_year = reference_year

    def parse(
        self,
        source_file: SourceFile,
        config: ColumnMappingConfig | None = None,
    ) -> ParseResult:
        """
        Parse extracted statement text.

        PDF content is run through text extraction first; anything else is
        taken as already-extracted text. Layouts are tried in order and the
        first one yielding a transaction wins.
        """
        try:
            text = self._load_text(source_file)
        except DocumentExtractionError as e:
            logger.error(f"{source_file.name}: {e}")
            return ParseResult(errors=[RowError(0, "general", str(e))])

        return self.parse_text(text, source_file.name)

    def parse_text(self, text: str, source_name: str) -> ParseResult:
        imported_at = datetime.now()

        for layout in self.layouts:
            matches = self.match_layout(layout, text)
            if not matches:
                continue

            transactions, errors = collect(
                (fields_from_document(match) for match in matches),
                source_name,
                imported_at,
            )
            if transactions:
                logger.info(
                    f"Parsed {len(transactions)} transactions from {source_name} "
                    f"using the {layout.name} layout",
                )
                return ParseResult(transactions=transactions, errors=errors)
            logger.debug(
                f"Layout {layout.name} matched {len(matches)} rows in {source_name} "
                f"but none were usable",
            )

        logger.warning(f"No document layout matched {source_name}")
        return ParseResult(errors=[RowError(0, "general", NO_LAYOUT_MESSAGE)])

    def match_layout(self, layout: DocumentLayout, text: str) -> list[DocumentMatch]:
        matches = []
        for ordinal, match in enumerate(layout.pattern.finditer(text), start=1):
            date_text, description, amount_text = match.groups()
            matches.append(
                DocumentMatch(
                    line=ordinal,
                    layout=layout.name,
                    date=self._parse_date(layout, date_text),
                    date_text=date_text,
                    description=description.strip(),
                    amount=parse_amount(amount_text),
                    amount_text=amount_text,
                    is_income=contains_any(description, INCOME_KEYWORDS),
                ),
            )
        return matches

    def _parse_date(self, layout: DocumentLayout, text: str) -> date | None:
        if layout.day_month_dates:
            return parse_day_month(text, self.reference_year)
        return parse_date(text)

    @staticmethod
    def _load_text(source_file: SourceFile) -> str:
        if source_file.content.startswith(b"%PDF"):
            return extract_pdf_text(source_file.content)
        return decode_text(source_file.content)
