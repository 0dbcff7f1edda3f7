"""
Two-stage transaction categorization.

Stage one asks the external classifier and validates the answer against the
taxonomy. Stage two applies the deterministic keyword overrides on top.
Classification never fails a batch: every error degrades to the fallback
category with zero confidence.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Protocol

from .category_manager import CategoryManager
from .classifier_client import ClassificationResult
from .models import Transaction, TransactionType
from .taxonomy import DEFAULT_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY_CONFIDENCE = 0.3
UNKNOWN_SUBCATEGORY_MAX_CONFIDENCE = 0.6
DEFAULT_PAUSE_SECONDS = 0.1


class ImportCancelledError(Exception):
    """Exception raised when an import job is cancelled mid-batch."""


class ClassifierClient(Protocol):
    """Anything answering category, subcategory and confidence for a transaction."""

    def classify(
        self,
        description: str,
        amount: Decimal,
        transaction_date: date,
        transaction_type: TransactionType,
    ) -> ClassificationResult: ...


class CategoryClassifier:
    """Assigns category, subcategory and confidence to transactions."""

    def __init__(
        self,
        client: ClassifierClient | None,
        taxonomy: Taxonomy = DEFAULT_TAXONOMY,
        category_manager: CategoryManager | None = None,
        pause_seconds: float = DEFAULT_PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.taxonomy = taxonomy
        self.category_manager = category_manager or CategoryManager(taxonomy=taxonomy)
        self.pause_seconds = pause_seconds
        self._sleep = sleep

    def validate(self, result: ClassificationResult) -> ClassificationResult:
        """
        Force a classifier answer into the taxonomy.

        An unknown category becomes the fallback pair with confidence 0.3.
        An unknown subcategory becomes the category's first subcategory with
        confidence capped at 0.6.
        """
        category = result.category
        subcategory = result.subcategory
        confidence = result.confidence

        if not self.taxonomy.is_valid_category(category):
            logger.debug(f"Unknown category '{category}', using fallback")
            category = self.taxonomy.fallback_category
            subcategory = self.taxonomy.fallback_subcategory
            confidence = UNKNOWN_CATEGORY_CONFIDENCE

        if not self.taxonomy.is_valid_subcategory(category, subcategory):
            logger.debug(
                f"Subcategory '{subcategory}' is not valid for '{category}', using default",
            )
            subcategory = self.taxonomy.default_subcategory(category)
            confidence = min(confidence, UNKNOWN_SUBCATEGORY_MAX_CONFIDENCE)

        return ClassificationResult(category, subcategory, confidence)

    def classify_transaction(self, transaction: Transaction) -> Transaction:
        """
        Classify one transaction.

        Returns:
            A classified copy; the input is left untouched
        """
        classified = replace(transaction)
        result = self._ask_client(classified)

        if result is None:
            classified.apply_classification(
                self.taxonomy.fallback_category,
                self.taxonomy.fallback_subcategory,
                0.0,
            )
        else:
            validated = self.validate(result)
            classified.apply_classification(
                validated.category,
                validated.subcategory,
                validated.confidence,
            )

        self.category_manager.apply_override(classified)
        return classified

    def classify_batch(
        self,
        transactions: list[Transaction],
        on_progress: Callable[[int, int], None] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[Transaction]:
        """
        Classify transactions one at a time, pausing between external calls.

        Output keeps the input order and count.

        Raises:
            ImportCancelledError: If ``cancel_event`` is set between calls
        """
        classified: list[Transaction] = []
        total = len(transactions)
        logger.info(f"Classifying {total} transactions")

        for index, transaction in enumerate(transactions):
            if cancel_event is not None and cancel_event.is_set():
                raise ImportCancelledError(
                    f"Classification cancelled after {index} of {total} transactions",
                )

            classified.append(self.classify_transaction(transaction))

            if on_progress is not None:
                on_progress(index + 1, total)

            if self.client is not None and index < total - 1 and self.pause_seconds > 0:
                self._sleep(self.pause_seconds)

        low_confidence = sum(1 for t in classified if t.needs_review)
        logger.info(
            f"Classified {total} transactions, {low_confidence} need review",
        )
        return classified

    def _ask_client(self, transaction: Transaction) -> ClassificationResult | None:
        if self.client is None:
            return None
        try:
            return self.client.classify(
                transaction.description,
                transaction.amount,
                transaction.date,
                transaction.type,
            )
        except Exception as e:
            # ClassificationError, or whatever a third-party client raises
            logger.warning(
                f"Could not classify '{transaction.description[:40]}': {e}",
            )
            return None
