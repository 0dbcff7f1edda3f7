"""
Main importer class that orchestrates the import process.
"""

import logging
import threading
from dataclasses import dataclass, replace

from .classifier import CategoryClassifier, ImportCancelledError
from .csv_parser import DelimitedTextParser
from .dedup import Deduplicator
from .detector import (
    UnsupportedFormatError,
    detect_column_mapping,
    detect_format,
    detect_spreadsheet_mapping,
)
from .document_parser import DocumentTextParser
from .models import (
    BulkImportResult,
    ColumnMappingConfig,
    FileFormat,
    ImportResult,
    ImportState,
    ParseResult,
    RowError,
    SourceFile,
    Transaction,
)
from .ofx_parser import InterchangeParser
from .store import StoreError, TransactionStore
from .xlsx_parser import SpreadsheetParser

logger = logging.getLogger(__name__)


def default_parsers() -> dict:
    return {
        FileFormat.CSV: DelimitedTextParser(),
        FileFormat.XLSX: SpreadsheetParser(),
        FileFormat.OFX: InterchangeParser(),
        FileFormat.PDF: DocumentTextParser(),
    }


@dataclass(frozen=True)
class DetectionResult:
    """Detected format and, for formats that need one, a draft mapping."""

    file_format: FileFormat
    mapping: ColumnMappingConfig | None = None


class StatementImporter:
    """Runs statement files through detection, parsing, classification and dedup."""

    def __init__(
        self,
        store: TransactionStore,
        classifier: CategoryClassifier,
        parsers: dict | None = None,
    ):
        self.store = store
        self.classifier = classifier
        self.parsers = parsers or default_parsers()
        self.deduplicator = Deduplicator(store)

    def detect(self, source_file: SourceFile) -> DetectionResult:
        """
        Detect the file format and suggest a column mapping.

        Self-describing formats get no mapping. The suggested mapping is a
        draft for the caller to edit and confirm.

        Raises:
            UnsupportedFormatError: If the format is not recognised
        """
        file_format = detect_format(source_file)
        if not file_format.needs_mapping:
            return DetectionResult(file_format)
        if file_format == FileFormat.XLSX:
            return DetectionResult(file_format, detect_spreadsheet_mapping(source_file))
        return DetectionResult(file_format, detect_column_mapping(source_file))

    def run(
        self,
        source_file: SourceFile | None,
        mapping: ColumnMappingConfig | None = None,
        account_id: str | None = None,
        card_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ImportResult:
        """
        Import one statement file.

        Args:
            source_file: The uploaded file
            mapping: Confirmed column mapping; when omitted the detected
                mapping is used for formats that need one
            account_id: Optional bank account the statement belongs to
            card_id: Optional credit card the statement belongs to
            cancel_event: Set to stop the job between classification calls

        Returns:
            ImportResult; row errors never fail the job, structural and
            store errors end it in the FAILED state

        Raises:
            IncompleteMappingError: If the mapping lacks a required column
        """
        result = ImportResult(state=ImportState.UPLOADED)
        if source_file is None or not source_file.content:
            return self._fail(result, "No file provided")

        self._transition(result, ImportState.DETECTING, source_file)
        try:
            file_format = detect_format(source_file)
        except UnsupportedFormatError as e:
            return self._fail(result, str(e))
        result.file_format = file_format

        if file_format.needs_mapping:
            self._transition(result, ImportState.CONFIGURING, source_file)
            if mapping is None:
                mapping = self.detect(source_file).mapping
            mapping.validate()
        else:
            mapping = None

        self._transition(result, ImportState.PARSING, source_file)
        parsed = self.parse(source_file, file_format, mapping)
        result.errors.extend(parsed.errors)
        structural = [e for e in parsed.errors if e.line == 0]
        if not parsed.transactions and structural:
            return self._fail(result, structural[0].message)

        transactions = [
            replace(t, source_account_id=account_id, source_card_id=card_id)
            for t in parsed.transactions
        ]

        self._transition(result, ImportState.CLASSIFYING, source_file)
        try:
            classified = self.classifier.classify_batch(
                transactions,
                cancel_event=cancel_event,
            )
        except ImportCancelledError as e:
            return self._fail(result, str(e))

        if cancel_event is not None and cancel_event.is_set():
            return self._fail(result, "Import cancelled before deduplication")

        self._transition(result, ImportState.DEDUPLICATING, source_file)
        try:
            fresh, duplicates = self.deduplicator.split(classified)
            self._persist(fresh)
        except StoreError as e:
            return self._fail(result, f"Could not save transactions: {e}")

        result.transactions = fresh
        result.duplicates = duplicates
        result.low_confidence = [t for t in fresh if t.needs_review]
        self._transition(result, ImportState.PERSISTED, source_file)
        logger.info(
            f"Imported {result.imported_count} transactions from {source_file.name} "
            f"({result.duplicate_count} duplicates, {result.error_count} errors, "
            f"{result.low_confidence_count} need review)",
        )
        return result

    def parse(
        self,
        source_file: SourceFile,
        file_format: FileFormat,
        mapping: ColumnMappingConfig | None = None,
    ) -> ParseResult:
        parser = self.parsers.get(file_format)
        if parser is None:
            return ParseResult(
                errors=[RowError(0, "general", f"No parser for {file_format.value} files")],
            )
        return parser.parse(source_file, mapping)

    def categorize_batch(self, transactions: list[Transaction]) -> list[Transaction]:
        """Classify raw transactions, keeping order and count."""
        return self.classifier.classify_batch(transactions)

    def bulk_import(self, transactions: list[Transaction]) -> BulkImportResult:
        """Insert the transactions that are not already stored."""
        try:
            fresh, duplicates = self.deduplicator.split(transactions)
            self._persist(fresh)
        except StoreError as e:
            logger.error(f"Bulk import failed: {e}")
            return BulkImportResult(success=False, count=0, duplicates=0)

        return BulkImportResult(success=True, count=len(fresh), duplicates=len(duplicates))

    def _persist(self, transactions: list[Transaction]) -> None:
        if not transactions:
            return
        ids = self.store.insert_many([t.to_record() for t in transactions])
        for transaction, record_id in zip(transactions, ids):
            transaction.id = record_id

    @staticmethod
    def _transition(
        result: ImportResult,
        state: ImportState,
        source_file: SourceFile,
    ) -> None:
        logger.debug(f"{source_file.name}: {result.state.value} -> {state.value}")
        result.state = state

    @staticmethod
    def _fail(result: ImportResult, reason: str) -> ImportResult:
        logger.error(f"Import failed in state {result.state.value}: {reason}")
        result.state = ImportState.FAILED
        result.failure_reason = reason
        return result
