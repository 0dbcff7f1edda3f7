"""
OpenAI-compatible client for the external transaction classification call.
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from openai import OpenAI

from .models import TransactionType
from .taxonomy import Taxonomy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT = 10.0

SYSTEM_PROMPT = (
    "You are a financial transaction categorization assistant for Brazilian "
    "bank statements. Return ONLY valid JSON."
)

RESPONSE_SCHEMA = {
    "name": "categorization_result",
    "schema": {
        "type": "object",
        "properties": {
            "category": {"type": "string"},
            "subcategory": {"type": "string"},
            "confidence": {"type": "number"},
        },
        "required": ["category", "subcategory", "confidence"],
        "additionalProperties": False,
    },
    "strict": True,
}


class ClassificationError(Exception):
    """Exception raised when the classification call fails."""


@dataclass(frozen=True)
class ClassificationResult:
    """Raw answer of the external classifier, not yet validated."""

    category: str
    subcategory: str
    confidence: float


def build_prompt(
    taxonomy: Taxonomy,
    description: str,
    amount: Decimal,
    transaction_date: date,
    transaction_type: TransactionType,
) -> str:
    """Build the user message for one transaction."""
    categories = "\n".join(
        f"{index}. {name}" for index, name in enumerate(taxonomy.category_names, start=1)
    )
    subcategories = "\n".join(
        f"{name}: [{', '.join(subs)}]" for name, subs in taxonomy.categories.items()
    )
    return (
        "TRANSACTION:\n"
        f"- Description: {description}\n"
        f"- Amount: R$ {amount:.2f}\n"
        f"- Date: {transaction_date.strftime('%d/%m/%Y')}\n"
        f"- Type: {transaction_type.value}\n\n"
        f"AVAILABLE CATEGORIES:\n{categories}\n\n"
        f"SUBCATEGORIES PER CATEGORY:\n{subcategories}\n\n"
        "RULES:\n"
        "- Read the description carefully, in a Brazilian context\n"
        "- The category must be one of the categories listed above\n"
        "- The subcategory must be valid for the chosen category\n"
        "- Confidence is a number between 0 and 1, where 1 is certain"
    )


class OpenAIClassifierClient:
    """Classifies single transactions with a chat completion."""

    def __init__(
        self,
        api_key: str,
        taxonomy: Taxonomy,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.taxonomy = taxonomy
        self.model = model
        self.timeout = timeout
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    def classify(
        self,
        description: str,
        amount: Decimal,
        transaction_date: date,
        transaction_type: TransactionType,
    ) -> ClassificationResult:
        """
        Ask the model for a category, subcategory and confidence.

        Returns:
            ClassificationResult exactly as answered; validation against the
            taxonomy is the caller's job

        Raises:
            ClassificationError: On network, auth or quota failures and on
                unusable responses
        """
        user_message = build_prompt(
            self.taxonomy,
            description,
            amount,
            transaction_date,
            transaction_type,
        )

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_message},
                ],
                response_format={"type": "json_schema", "json_schema": RESPONSE_SCHEMA},
                timeout=self.timeout,
            )
        except Exception as e:
            raise ClassificationError(f"Classification request failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise ClassificationError("Invalid classification response: empty content")

        return parse_response(response.choices[0].message.content)


def parse_response(content: str) -> ClassificationResult:
    """Parse the JSON answer into a ClassificationResult."""
    try:
        data = json.loads(content)
        confidence = float(data["confidence"])
        if math.isnan(confidence):
            raise ValueError("confidence is NaN")
        result = ClassificationResult(
            category=str(data["category"]).strip(),
            subcategory=str(data["subcategory"]).strip(),
            confidence=min(max(confidence, 0.0), 1.0),
        )
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ClassificationError(f"Invalid classification response: {e}") from e

    logger.debug(
        f"Classifier answered {result.category}/{result.subcategory} "
        f"({result.confidence:.2f})",
    )
    return result
