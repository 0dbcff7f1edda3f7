"""
Keyword-based category overrides.

Some descriptions are recognised with more certainty by keyword than by the
external classifier: investment yield and the movement of invested
principal. The keyword lists are data, loaded from and saved to a JSON
rules file.
"""

import json
import logging
from pathlib import Path

from .models import Transaction
from .normalizers import contains_word
from .taxonomy import DEFAULT_TAXONOMY, PRINCIPAL_CATEGORY, YIELD_CATEGORY, Taxonomy

logger = logging.getLogger(__name__)

DEFAULT_YIELD_KEYWORDS = [
    "rendimento",
    "rendimentos",
    "juros",
    "dividendo",
    "dividendos",
    "proventos",
    "lucro",
    "jcp",
]

DEFAULT_PRINCIPAL_KEYWORDS = [
    "resgate",
    "aplicacao",
    "aplicacoes",
    "aplic",
    "cdb",
    "lci",
    "lca",
    "tesouro direto",
    "renda fixa",
    "debenture",
]

KEYWORD_FAMILIES = ("yield_keywords", "principal_keywords")


class FileLoadingError(Exception):
    """Exception raised when a file cannot be loaded."""


class FileSavingError(Exception):
    """Exception raised when a file cannot be saved."""


class CategoryManager:
    """Manages the keyword families that override external classification."""

    def __init__(
        self,
        rules_file: Path | None = None,
        taxonomy: Taxonomy = DEFAULT_TAXONOMY,
        yield_category: str = YIELD_CATEGORY,
        principal_category: str = PRINCIPAL_CATEGORY,
    ):
        self.rules_file = rules_file
        self.taxonomy = taxonomy
        self.yield_category = yield_category
        self.principal_category = principal_category
        self.yield_keywords: list[str] = list(DEFAULT_YIELD_KEYWORDS)
        self.principal_keywords: list[str] = list(DEFAULT_PRINCIPAL_KEYWORDS)

        for category in (yield_category, principal_category):
            if not taxonomy.is_valid_category(category):
                raise ValueError(f"Override category '{category}' is not in the taxonomy")

        if rules_file is not None and rules_file.exists():
            logger.info(f"Loading override rules from {rules_file}")
            self.load_rules()
        elif rules_file is not None:
            logger.debug(
                f"Rules file {rules_file} does not exist, using default keywords",
            )

    def match_override(self, description: str) -> str | None:
        """
        Return the category forced by the description's keywords.

        Yield keywords take precedence over principal keywords.
        """
        if contains_word(description, self.yield_keywords):
            return self.yield_category
        if contains_word(description, self.principal_keywords):
            return self.principal_category
        return None

    def apply_override(self, transaction: Transaction) -> bool:
        """
        Force the override category onto a classified transaction.

        The subcategory is kept when valid for the new category and replaced
        by the category's default otherwise. Confidence is kept, so a row
        whose classification failed still needs review.

        Returns:
            True if an override applied
        """
        category = self.match_override(transaction.description)
        if category is None:
            return False

        subcategory = transaction.subcategory
        if not self.taxonomy.is_valid_subcategory(category, subcategory):
            subcategory = self.taxonomy.default_subcategory(category)

        logger.debug(
            f"Override '{transaction.description[:40]}': "
            f"{transaction.category or '-'} -> {category}",
        )
        transaction.apply_classification(
            category,
            subcategory,
            transaction.confidence,
        )
        return True

    def add_keyword(self, family: str, keyword: str) -> None:
        """Add a keyword to a family and save the rules file."""
        keywords = self._family(family)
        if keyword.lower() in (k.lower() for k in keywords):
            logger.debug(f"Keyword '{keyword}' already exists in {family}")
            return

        keywords.append(keyword)
        logger.info(f"Added keyword '{keyword}' to {family}")
        self._auto_save()

    def remove_keyword(self, family: str, keyword: str) -> None:
        """Remove a keyword from a family and save the rules file."""
        keywords = self._family(family)
        if keyword not in keywords:
            logger.warning(
                f"Keyword '{keyword}' does not exist in {family}. "
                f"Available keywords: {keywords}",
            )
            return

        keywords.remove(keyword)
        logger.info(f"Removed keyword '{keyword}' from {family}")
        self._auto_save()

    def save_rules(self) -> None:
        """Save keyword families to the JSON rules file."""
        if self.rules_file is None:
            raise FileSavingError("No rules file configured")

        data = {
            "yield_keywords": self.yield_keywords,
            "principal_keywords": self.principal_keywords,
        }
        try:
            self.rules_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.rules_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            logger.info(f"Successfully saved override rules to {self.rules_file}")
        except OSError as e:
            logger.error(f"Failed to save override rules to {self.rules_file}: {e}")
            raise FileSavingError(
                f"Failed to save override rules to {self.rules_file}: {e}",
            ) from e

    def load_rules(self) -> None:
        """Load keyword families from the JSON rules file."""
        try:
            with open(self.rules_file, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in rules file {self.rules_file}: {e}")
            raise
        except OSError as e:
            logger.error(f"Failed to load override rules from {self.rules_file}: {e}")
            raise FileLoadingError(
                f"Failed to load override rules from {self.rules_file}: {e}",
            ) from e

        self.yield_keywords = list(data.get("yield_keywords", DEFAULT_YIELD_KEYWORDS))
        self.principal_keywords = list(
            data.get("principal_keywords", DEFAULT_PRINCIPAL_KEYWORDS),
        )
        logger.debug(
            f"Loaded {len(self.yield_keywords)} yield and "
            f"{len(self.principal_keywords)} principal keywords",
        )

    def _family(self, family: str) -> list[str]:
        if family not in KEYWORD_FAMILIES:
            raise ValueError(
                f"Unknown keyword family '{family}'. Available: {list(KEYWORD_FAMILIES)}",
            )
        return getattr(self, family)

    def _auto_save(self) -> None:
        if self.rules_file is None:
            return
        try:
            self.save_rules()
        except FileSavingError as e:
            logger.warning(
                f"Failed to auto-save override rules: {e}. "
                f"Please save manually using save_rules().",
            )
