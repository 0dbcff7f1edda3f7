"""
Parsing for OFX banking interchange files.

OFX is self-describing, so no column mapping is used. Only the
``<STMTTRN>`` transaction blocks are read; SGML and XML flavours both work
because tag values are taken up to the next ``<``.
"""

import logging
import re
from datetime import datetime

from .models import ColumnMappingConfig, ParseResult, SourceFile
from .rows import InterchangeBlock, collect, fields_from_interchange

logger = logging.getLogger(__name__)

_BLOCK_PATTERN = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.DOTALL | re.IGNORECASE)
_POSTED_PATTERN = re.compile(r"<DTPOSTED>\s*(\d{8})", re.IGNORECASE)


def decode_text(content: bytes) -> str:
    """Decode file content as UTF-8, falling back to Latin-1."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _tag_value(block: str, tag: str) -> str | None:
    match = re.search(rf"<{tag}>([^<]+)", block, re.IGNORECASE)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


class InterchangeParser:
    """Parser for OFX statement files."""

    def parse(
        self,
        source_file: SourceFile,
        config: ColumnMappingConfig | None = None,
    ) -> ParseResult:
        """
        Parse every ``<STMTTRN>`` block in the file.

        The column mapping is ignored. Type comes from the sign of
        ``<TRNAMT>`` only.
        """
        text = decode_text(source_file.content)
        blocks = self.read_blocks(text)

        if not blocks:
            logger.warning(f"No <STMTTRN> blocks found in {source_file.name}")

        transactions, errors = collect(
            (fields_from_interchange(block) for block in blocks),
            source_file.name,
            datetime.now(),
        )
        logger.info(
            f"Parsed {len(transactions)} transactions from {source_file.name} "
            f"({len(errors)} blocks skipped)",
        )
        return ParseResult(transactions=transactions, errors=errors)

    def read_blocks(self, text: str) -> list[InterchangeBlock]:
        blocks = []
        for ordinal, match in enumerate(_BLOCK_PATTERN.finditer(text), start=1):
            body = match.group(1)
            posted = _POSTED_PATTERN.search(body)
            fitid = _tag_value(body, "FITID")
            if fitid:
                logger.debug(f"Reading OFX block {ordinal} (FITID {fitid})")

            blocks.append(
                InterchangeBlock(
                    line=ordinal,
                    posted=posted.group(1) if posted else None,
                    description=_tag_value(body, "MEMO") or _tag_value(body, "NAME"),
                    amount=_tag_value(body, "TRNAMT"),
                ),
            )
        return blocks

