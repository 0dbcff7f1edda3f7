"""
Statement Parsing - imports bank statements and categorizes transactions.

This package provides tools to parse CSV, XLSX, OFX and PDF statements,
classify transactions against a category taxonomy, and store them without
duplicates.
"""

from .category_manager import CategoryManager
from .classifier import CategoryClassifier
from .classifier_client import OpenAIClassifierClient
from .importer import StatementImporter
from .models import (
    ColumnMappingConfig,
    ImportResult,
    RowError,
    SourceFile,
    Transaction,
    TransactionType,
)
from .output_formatter import SummaryFormatter, TransactionFormatter
from .store import JsonTransactionStore
from .taxonomy import DEFAULT_TAXONOMY, Taxonomy

__version__ = "0.1.0"
__all__ = [
    "DEFAULT_TAXONOMY",
    "CategoryClassifier",
    "CategoryManager",
    "ColumnMappingConfig",
    "ImportResult",
    "JsonTransactionStore",
    "OpenAIClassifierClient",
    "RowError",
    "SourceFile",
    "StatementImporter",
    "SummaryFormatter",
    "Taxonomy",
    "Transaction",
    "TransactionFormatter",
    "TransactionType",
]
