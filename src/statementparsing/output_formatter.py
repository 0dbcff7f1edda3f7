"""
Text formatting of import results.
"""

from decimal import Decimal

from .models import ImportResult, Transaction, TransactionType
from .normalizers import format_amount
from .taxonomy import DEFAULT_TAXONOMY, Taxonomy


class TransactionFormatter:
    """Formats transactions as one pipe-separated line each."""

    def format_transactions(self, transactions: list[Transaction]) -> str:
        return "\n".join(self.format_transaction(t) for t in transactions)

    def format_transaction(self, transaction: Transaction) -> str:
        category = transaction.category or "-"
        if transaction.subcategory:
            category = f"{category}/{transaction.subcategory}"
        flag = " [review]" if transaction.needs_review and transaction.category else ""
        return (
            f"{transaction.date.strftime('%d/%m/%Y')} | {transaction.description} | "
            f"{self._format_amount(transaction.signed_amount)} | {category} | "
            f"{transaction.confidence:.2f}{flag}"
        )

    def _format_amount(self, amount: Decimal) -> str:
        return format_amount(amount.quantize(Decimal("0.01")))


class SummaryFormatter:
    """Formats summary information about an import."""

    def __init__(
        self,
        transaction_formatter: TransactionFormatter | None = None,
        taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    ):
        self.transaction_formatter = transaction_formatter or TransactionFormatter()
        self.taxonomy = taxonomy

    def format_summary(self, result: ImportResult) -> str:
        """
        Format an import result for the terminal.

        Args:
            result: ImportResult object

        Returns:
            Multi-line summary with counts, errors and transactions to review
        """
        lines = []
        lines.append("Import Summary")
        lines.append("=" * 30)
        lines.append(f"Status: {result.state.value}")
        if result.file_format is not None:
            lines.append(f"Format: {result.file_format.value}")
        if result.failure_reason:
            lines.append(f"Failure: {result.failure_reason}")
        lines.append(f"Imported: {result.imported_count}")
        lines.append(f"Duplicates: {result.duplicate_count}")
        lines.append(f"Errors: {result.error_count}")
        lines.append(f"Need review: {result.low_confidence_count}")

        counted = [
            t for t in result.transactions if self.taxonomy.counts_toward_totals(t.category)
        ]
        income = sum(
            (t.amount for t in counted if t.type == TransactionType.INCOME),
            Decimal("0"),
        )
        expenses = sum(
            (t.amount for t in counted if t.type == TransactionType.EXPENSE),
            Decimal("0"),
        )
        if result.transactions:
            lines.append(f"Total income: {format_amount(income.quantize(Decimal('0.01')))}")
            lines.append(
                f"Total expenses: {format_amount(expenses.quantize(Decimal('0.01')))}",
            )

        if result.errors:
            lines.append("")
            lines.append("Errors:")
            for error in result.errors:
                lines.append(f"  line {error.line} ({error.field}): {error.message}")

        if result.low_confidence:
            lines.append("")
            lines.append("Transactions to review:")
            for transaction in result.low_confidence:
                lines.append(
                    f"  {self.transaction_formatter.format_transaction(transaction)}",
                )

        return "\n".join(lines)
