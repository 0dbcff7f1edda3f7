"""Unit tests for classifier.py."""

import threading
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import pytest

from statementparsing.classifier import CategoryClassifier, ImportCancelledError
from statementparsing.classifier_client import ClassificationError, ClassificationResult
from statementparsing.models import Transaction, TransactionType
from statementparsing.taxonomy import DEFAULT_TAXONOMY


def make_transaction(description: str = "UBER *TRIP") -> Transaction:
    return Transaction(
        date=date(2024, 1, 15),
        description=description,
        amount=Decimal("23.50"),
        type=TransactionType.EXPENSE,
    )


def make_client(*results) -> Mock:
    client = Mock()
    client.classify.side_effect = list(results)
    return client


class TestValidate:
    """Tests for taxonomy validation of classifier answers."""

    def test_valid_pair_unchanged(self):
        """Test that a valid answer passes through."""
        classifier = CategoryClassifier(None)
        answer = ClassificationResult("Transport", "Ride Hailing", 0.95)

        assert classifier.validate(answer) == answer

    def test_unknown_category(self):
        """Test that an unknown category becomes the fallback with 0.3."""
        classifier = CategoryClassifier(None)

        result = classifier.validate(ClassificationResult("Groceries", "Market", 0.99))

        assert result == ClassificationResult("Other", "Uncategorized", 0.3)

    def test_unknown_subcategory(self):
        """Test that an unknown subcategory becomes the first valid one, capped at 0.6."""
        classifier = CategoryClassifier(None)

        capped = classifier.validate(ClassificationResult("Food", "Groceries", 0.95))
        kept = classifier.validate(ClassificationResult("Food", "Groceries", 0.4))

        assert capped == ClassificationResult("Food", "Supermarket", 0.6)
        assert kept.confidence == 0.4


class TestClassifyTransaction:
    """Tests for classify_transaction method."""

    def test_confident_answer(self):
        """Test that a confident answer needs no review."""
        client = make_client(ClassificationResult("Transport", "Ride Hailing", 0.9))
        classifier = CategoryClassifier(client, sleep=Mock())
        transaction = make_transaction()

        classified = classifier.classify_transaction(transaction)

        assert classified.category == "Transport"
        assert classified.subcategory == "Ride Hailing"
        assert classified.needs_review is False
        assert transaction.category == ""
        client.classify.assert_called_once_with(
            "UBER *TRIP",
            Decimal("23.50"),
            date(2024, 1, 15),
            TransactionType.EXPENSE,
        )

    @pytest.mark.parametrize(
        ("confidence", "needs_review"),
        [(0.7, False), (0.6999, True), (0.0, True), (1.0, False)],
    )
    def test_review_threshold(self, confidence, needs_review):
        """Test the review threshold boundary."""
        client = make_client(ClassificationResult("Food", "Bakery", confidence))

        classified = CategoryClassifier(client).classify_transaction(make_transaction("Padaria"))

        assert classified.needs_review is needs_review

    def test_client_failure_falls_back(self):
        """Test that a failed call gives the fallback with zero confidence."""
        client = make_client(ClassificationError("timeout"))

        classified = CategoryClassifier(client).classify_transaction(make_transaction())

        assert (classified.category, classified.subcategory) == ("Other", "Uncategorized")
        assert classified.confidence == 0.0
        assert classified.needs_review is True

    def test_unexpected_client_error_falls_back(self):
        """Test that any client exception degrades to the fallback."""
        client = make_client(RuntimeError("boom"))

        classified = CategoryClassifier(client).classify_transaction(make_transaction())

        assert classified.category == "Other"

    def test_no_client(self):
        """Test that a classifier without client only applies overrides."""
        classifier = CategoryClassifier(None)

        plain = classifier.classify_transaction(make_transaction("Padaria"))
        overridden = classifier.classify_transaction(make_transaction("RENDIMENTO POUPANCA"))

        assert plain.category == "Other"
        assert plain.confidence == 0.0
        assert overridden.category == "Yield"
        assert overridden.subcategory == "Interest"
        assert overridden.confidence == 0.0
        assert overridden.needs_review is True

    def test_override_beats_classifier(self):
        """Test that keyword overrides win over the classifier answer."""
        client = make_client(ClassificationResult("Income", "Investments", 0.5))

        classified = CategoryClassifier(client).classify_transaction(
            make_transaction("RESGATE CDB BANCO"),
        )

        assert classified.category == "Investment Principal"
        assert classified.subcategory == "Redemption"
        assert classified.confidence == 0.5

    def test_override_after_failed_call_still_needs_review(self):
        """Test that a keyword override does not hide a failed classification."""
        client = make_client(ClassificationError("quota"))

        classified = CategoryClassifier(client).classify_transaction(
            make_transaction("JUROS POUPANCA"),
        )

        assert classified.category == "Yield"
        assert classified.confidence == 0.0
        assert classified.needs_review is True


class TestClassifyBatch:
    """Tests for classify_batch method."""

    def test_order_count_and_pauses(self):
        """Test that output matches input order with a pause between calls."""
        client = make_client(
            ClassificationResult("Transport", "Ride Hailing", 0.9),
            ClassificationError("rate limited"),
            ClassificationResult("Food", "Bakery", 0.8),
        )
        sleep = Mock()
        classifier = CategoryClassifier(client, pause_seconds=0.1, sleep=sleep)
        transactions = [make_transaction("Uber"), make_transaction("X"), make_transaction("Padaria")]

        classified = classifier.classify_batch(transactions)

        assert [t.description for t in classified] == ["Uber", "X", "Padaria"]
        assert [t.category for t in classified] == ["Transport", "Other", "Food"]
        assert sleep.call_count == 2
        sleep.assert_called_with(0.1)

    def test_no_pause_without_client(self):
        """Test that no pause happens when nothing external is called."""
        sleep = Mock()
        classifier = CategoryClassifier(None, sleep=sleep)

        classifier.classify_batch([make_transaction(), make_transaction()])

        sleep.assert_not_called()

    def test_progress_callback(self):
        """Test progress reporting."""
        progress = []
        classifier = CategoryClassifier(None)

        classifier.classify_batch(
            [make_transaction(), make_transaction()],
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert progress == [(1, 2), (2, 2)]

    def test_cancellation(self):
        """Test that cancelling stops the batch between calls."""
        cancel_event = threading.Event()
        client = Mock()

        def classify(*args):
            cancel_event.set()
            return ClassificationResult("Food", "Bakery", 0.8)

        client.classify.side_effect = classify
        classifier = CategoryClassifier(client, sleep=Mock())

        with pytest.raises(ImportCancelledError, match="after 1 of 3"):
            classifier.classify_batch(
                [make_transaction(), make_transaction(), make_transaction()],
                cancel_event=cancel_event,
            )

        assert client.classify.call_count == 1

    def test_empty_batch(self):
        """Test that an empty batch returns an empty list."""
        assert CategoryClassifier(None, taxonomy=DEFAULT_TAXONOMY).classify_batch([]) == []
