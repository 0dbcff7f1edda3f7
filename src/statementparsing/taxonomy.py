"""
Category taxonomy: the principal categories and their valid subcategories.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Other"
FALLBACK_SUBCATEGORY = "Uncategorized"
YIELD_CATEGORY = "Yield"
PRINCIPAL_CATEGORY = "Investment Principal"


@dataclass(frozen=True)
class Taxonomy:
    """
    Fixed set of categories, each with its ordered valid subcategories.

    The first subcategory of a category is its safe default.
    """

    categories: dict[str, list[str]]
    fallback_category: str = FALLBACK_CATEGORY
    fallback_subcategory: str = FALLBACK_SUBCATEGORY
    excluded_from_totals: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if self.fallback_category not in self.categories:
            raise ValueError(
                f"Fallback category '{self.fallback_category}' is not in the taxonomy",
            )
        if self.fallback_subcategory not in self.categories[self.fallback_category]:
            raise ValueError(
                f"Fallback subcategory '{self.fallback_subcategory}' is not valid "
                f"for '{self.fallback_category}'",
            )
        for name, subcategories in self.categories.items():
            if not subcategories:
                raise ValueError(f"Category '{name}' has no subcategories")

    @property
    def category_names(self) -> list[str]:
        return list(self.categories)

    def is_valid_category(self, category: str) -> bool:
        return category in self.categories

    def valid_subcategories(self, category: str) -> list[str]:
        return list(self.categories.get(category, []))

    def is_valid_subcategory(self, category: str, subcategory: str) -> bool:
        return subcategory in self.categories.get(category, [])

    def default_subcategory(self, category: str) -> str:
        subcategories = self.categories.get(category)
        if not subcategories:
            return self.fallback_subcategory
        return subcategories[0]

    def counts_toward_totals(self, category: str) -> bool:
        return category not in self.excluded_from_totals

    def to_dict(self) -> dict[str, Any]:
        return {
            "categories": self.categories,
            "fallback_category": self.fallback_category,
            "fallback_subcategory": self.fallback_subcategory,
            "excluded_from_totals": sorted(self.excluded_from_totals),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Taxonomy":
        return cls(
            categories={
                name: list(subcategories)
                for name, subcategories in data["categories"].items()
            },
            fallback_category=data.get("fallback_category", FALLBACK_CATEGORY),
            fallback_subcategory=data.get("fallback_subcategory", FALLBACK_SUBCATEGORY),
            excluded_from_totals=frozenset(data.get("excluded_from_totals", [])),
        )

    @classmethod
    def load(cls, file_path: Path) -> "Taxonomy":
        """Load a taxonomy from a JSON file."""
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
        taxonomy = cls.from_dict(data)
        logger.info(
            f"Loaded taxonomy with {len(taxonomy.categories)} categories from {file_path}",
        )
        return taxonomy


DEFAULT_TAXONOMY = Taxonomy(
    categories={
        "Food": ["Supermarket", "Restaurant", "Fast Food", "Delivery", "Bakery"],
        "Transport": ["Fuel", "Ride Hailing", "Public Transit", "Parking", "Maintenance"],
        "Housing": ["Rent", "Condo Fees", "Electricity", "Water", "Internet", "Gas"],
        "Health": ["Pharmacy", "Appointment", "Health Insurance", "Exams", "Gym"],
        "Education": ["Tuition", "Books", "Courses", "Supplies"],
        "Leisure": ["Cinema", "Streaming", "Travel", "Events", "Hobbies"],
        "Clothing": ["Clothes", "Shoes", "Accessories"],
        "Investments": ["Stocks", "Funds", "Treasury", "Crypto"],
        "Income": ["Salary", "Freelance", "Investments", "Other"],
        YIELD_CATEGORY: ["Interest", "Dividends", "Profit"],
        PRINCIPAL_CATEGORY: ["Redemption", "Application"],
        FALLBACK_CATEGORY: [FALLBACK_SUBCATEGORY],
    },
    excluded_from_totals=frozenset({PRINCIPAL_CATEGORY}),
)
