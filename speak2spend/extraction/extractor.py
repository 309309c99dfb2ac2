"""Free-text transaction extraction.

Turns a transcript such as "I spent $12.50 on coffee at Starbucks" into an
``ExtractedTransaction``. Extraction is pure and deterministic: no network,
no state, and it never raises; unparseable input simply produces a
low-confidence result.

The confidence is a heuristic completeness score (how many of amount,
vendor and category were resolved), not a calibrated probability.
"""

import logging
import re
from decimal import Decimal
from functools import lru_cache
from typing import List, Optional

from ..models.transaction import (
    Category,
    ExtractedTransaction,
    UNKNOWN_VENDOR,
    truncate_vendor,
)
from .amounts import SPOKEN_NUMBER, extract_amount
from .categories import CategoryTable

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
AMOUNT_WEIGHT = 0.3
VENDOR_WEIGHT = 0.2
CATEGORY_WEIGHT = 0.2
MIN_VENDOR_LENGTH = 3

_NAME = r"([A-Za-z][A-Za-z\s&']*?)"
# A vendor name ends before a temporal/conjunction word, punctuation, an amount, or end of text.
# A number word only ends it when it starts a spoken amount ("five dollars"), so
# "Seven Eleven" stays whole.
_NAME_END = (
    r"(?=\s+(?:for|on|in|today|yesterday|this|last|and|with)\b"
    rf"|\s+{SPOKEN_NUMBER}\s+(?:dollars?|bucks?|point|dot|fifty|twenty[\s-]+five)\b"
    r"|\s*[.,!?;]|\s*\$|\s+\d|\s*$)"
)

VENDOR_PATTERNS: List[re.Pattern] = [
    re.compile(rf"\b(?:at|from|to)\s+{_NAME}{_NAME_END}", re.IGNORECASE),
    re.compile(rf"\b(?:paid|spent|spending)\s+(?:at|to)\s+{_NAME}{_NAME_END}", re.IGNORECASE),
    re.compile(
        r"\b([A-Za-z][A-Za-z&']*(?:\s+[A-Za-z][A-Za-z&']*){0,3}?)"
        r"\s+(?:store|restaurant|cafe|shop|market|gas station)\b",
        re.IGNORECASE,
    ),
]

_LEADING_ARTICLES = re.compile(r"^(?:(?:the|a|an)\b\s*)+", re.IGNORECASE)


def clean_vendor(raw: str) -> str:
    """Collapse whitespace and strip leading articles."""
    vendor = " ".join(raw.split())
    return _LEADING_ARTICLES.sub("", vendor).strip()


def extract_vendor(text: str) -> str:
    """First non-trivial vendor name in the text, or "Unknown"."""
    for pattern in VENDOR_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        vendor = clean_vendor(match.group(1))
        if len(vendor) >= MIN_VENDOR_LENGTH:
            return truncate_vendor(vendor)
    return UNKNOWN_VENDOR


def score_confidence(amount: Decimal, vendor: str, category: Category) -> float:
    confidence = BASE_CONFIDENCE
    if amount > 0:
        confidence += AMOUNT_WEIGHT
    if vendor != UNKNOWN_VENDOR:
        confidence += VENDOR_WEIGHT
    if category is not Category.OTHER:
        confidence += CATEGORY_WEIGHT
    return round(min(confidence, 1.0), 2)


class TransactionExtractor:
    """Extracts amount, vendor and category from a transcript."""

    def __init__(self, category_table: Optional[CategoryTable] = None):
        self.category_table = category_table or default_category_table()

    def __call__(self, text: str) -> ExtractedTransaction:
        return self.extract(text)

    def extract(self, text: str) -> ExtractedTransaction:
        if not isinstance(text, str):
            text = ""

        amount = extract_amount(text)
        vendor = extract_vendor(text)
        category = self.category_table.classify(text)
        confidence = score_confidence(amount, vendor, category)

        logger.debug(f"Extracted amount={amount} vendor='{vendor}' category={category.value} "
                     f"confidence={confidence:.2f} from '{text[:60]}'")

        return ExtractedTransaction(
            amount=amount,
            vendor=vendor,
            category=category,
            raw_text=text,
            confidence=confidence,
        )


@lru_cache(maxsize=1)
def default_category_table() -> CategoryTable:
    return CategoryTable.from_yaml()


def extract_transaction(text: str) -> ExtractedTransaction:
    """Extract a transaction using the bundled category table."""
    return TransactionExtractor().extract(text)
