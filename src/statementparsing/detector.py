"""
Format and column auto-detection.

Everything here is a best guess meant to seed an editable configuration,
never an authoritative mapping.
"""

import logging
from typing import Any

from .models import ColumnMappingConfig, Delimiter, Encoding, FileFormat, SourceFile
from .normalizers import strip_accents
from .xlsx_parser import read_first_sheet

logger = logging.getLogger(__name__)

SAMPLE_LINES = 5

EXTENSION_FORMATS = {
    ".csv": FileFormat.CSV,
    ".txt": FileFormat.CSV,
    ".tsv": FileFormat.CSV,
    ".xlsx": FileFormat.XLSX,
    ".ofx": FileFormat.OFX,
    ".qfx": FileFormat.OFX,
    ".pdf": FileFormat.PDF,
}

ROLE_KEYWORDS = {
    "date_column": ["data", "date"],
    "description_column": ["descri", "historic", "memo"],
    "amount_column": ["valor", "amount", "quantia"],
    "type_column": ["tipo", "type", "natureza"],
}


class UnsupportedFormatError(ValueError):
    """Exception raised when a file's format cannot be recognised."""


def detect_format(source_file: SourceFile) -> FileFormat:
    """
    Infer the file format from its extension, then from its content.

    Raises:
        UnsupportedFormatError: If neither identifies a known format
    """
    file_format = EXTENSION_FORMATS.get(source_file.extension)
    if file_format is not None:
        logger.debug(f"Detected {file_format.value} from extension of {source_file.name}")
        return file_format

    head = source_file.content[:1024]
    if head.startswith(b"%PDF"):
        file_format = FileFormat.PDF
    elif head.startswith(b"PK\x03\x04"):
        file_format = FileFormat.XLSX
    elif any(tag in head.upper() for tag in (b"OFXHEADER", b"<OFX>", b"<STMTTRN>")):
        file_format = FileFormat.OFX
    elif head and b"\x00" not in head:
        file_format = FileFormat.CSV

    if file_format is None:
        raise UnsupportedFormatError(f"Unsupported file format: {source_file.name}")

    logger.debug(f"Detected {file_format.value} from content of {source_file.name}")
    return file_format


def detect_encoding(content: bytes) -> Encoding:
    """UTF-8 when the content decodes as UTF-8, otherwise Latin-1."""
    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return Encoding.LATIN1
    return Encoding.UTF8


def detect_delimiter(line: str) -> Delimiter:
    """Pick the delimiter splitting ``line`` into the most columns."""
    best = Delimiter.COMMA
    max_columns = 0
    for delimiter in Delimiter:
        columns = len(line.split(delimiter.value))
        if columns > max_columns:
            max_columns = columns
            best = delimiter
    return best


def infer_column_roles(headers: list[Any]) -> dict[str, int]:
    """
    Match header cells against role keywords.

    The first header matching a role takes it; a header takes at most one
    role.
    """
    roles: dict[str, int] = {}
    for index, header in enumerate(headers):
        if header is None:
            continue
        text = strip_accents(str(header)).strip().lower()
        if not text:
            continue
        for role, keywords in ROLE_KEYWORDS.items():
            if role in roles:
                continue
            if any(keyword in text for keyword in keywords):
                roles[role] = index
                break
    return roles


def detect_column_mapping(source_file: SourceFile) -> ColumnMappingConfig:
    """Guess a mapping for a delimited text file from its first lines."""
    encoding = detect_encoding(source_file.content)
    text = source_file.content.decode(encoding.codec)
    lines = [line for line in text.splitlines() if line.strip()][:SAMPLE_LINES]

    if not lines:
        logger.warning(f"{source_file.name} is empty, using default mapping")
        return ColumnMappingConfig(encoding=encoding)

    delimiter = detect_delimiter(lines[0])
    headers = [cell.strip().strip('"') for cell in lines[0].split(delimiter.value)]
    mapping = ColumnMappingConfig(
        delimiter=delimiter,
        encoding=encoding,
        has_headers=True,
        **infer_column_roles(headers),
    )
    logger.info(
        f"Detected mapping for {source_file.name}: delimiter={delimiter.value!r}, "
        f"encoding={encoding.value}, columns={_describe(mapping)}",
    )
    return mapping


def detect_spreadsheet_mapping(source_file: SourceFile) -> ColumnMappingConfig:
    """Guess a mapping for a spreadsheet from the first row of its first sheet."""
    try:
        rows = read_first_sheet(source_file.content, nrows=SAMPLE_LINES)
    except Exception as e:
        logger.warning(f"Could not sample {source_file.name}: {e}")
        return ColumnMappingConfig()

    if not rows:
        return ColumnMappingConfig()

    mapping = ColumnMappingConfig(has_headers=True, **infer_column_roles(rows[0]))
    logger.info(f"Detected mapping for {source_file.name}: columns={_describe(mapping)}")
    return mapping


def _describe(mapping: ColumnMappingConfig) -> str:
    return (
        f"date={mapping.date_column}, description={mapping.description_column}, "
        f"amount={mapping.amount_column}, type={mapping.type_column}"
    )
