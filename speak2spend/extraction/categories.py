"""Keyword-based category classification.

The keyword table lives in ``categories.yaml`` next to this module so it can
be extended without touching the matching code.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import yaml

from ..models.transaction import Category

logger = logging.getLogger(__name__)

DEFAULT_TABLE_PATH = Path(__file__).with_name("categories.yaml")


class CategoryTable:
    """Ordered mapping of category to lower-case keyword phrases.

    Declaration order is the tie-break: when several categories match the
    same number of keywords, the earliest declared one wins.
    """

    def __init__(self, entries: Iterable[Tuple[Union[Category, str], Iterable[str]]]):
        self._entries: List[Tuple[Category, Tuple[str, ...]]] = []
        seen = set()
        for name, keywords in entries:
            category = name if isinstance(name, Category) else Category.parse(name)
            if category is Category.OTHER:
                raise ValueError("'Other' is the fallback category and takes no keywords")
            if category in seen:
                raise ValueError(f"Category declared twice: {category.value}")
            seen.add(category)

            phrases = tuple(
                str(keyword).strip().lower() for keyword in keywords if str(keyword).strip()
            )
            self._entries.append((category, phrases))

    @classmethod
    def from_yaml(cls, path: Optional[Union[str, Path]] = None) -> "CategoryTable":
        """Load a table from YAML (``categories: [{name, keywords}, ...]``)."""
        table_path = Path(path) if path else DEFAULT_TABLE_PATH
        try:
            with open(table_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in category table {table_path}: {e}")

        if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
            raise ValueError(f"Category table {table_path} must define a 'categories' list")

        entries = []
        for item in data["categories"]:
            if not isinstance(item, dict) or "name" not in item:
                raise ValueError(f"Malformed category entry in {table_path}: {item!r}")
            entries.append((item["name"], item.get("keywords") or []))

        table = cls(entries)
        logger.debug(f"Loaded {len(table)} categories from {table_path}")
        return table

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def categories(self) -> List[Category]:
        return [category for category, _ in self._entries]

    def keywords(self, category: Category) -> Sequence[str]:
        for declared, phrases in self._entries:
            if declared is category:
                return phrases
        return ()

    def match_counts(self, text: str) -> List[Tuple[Category, int]]:
        """Number of keywords of each category found as substrings of ``text``."""
        lowered = text.lower()
        return [
            (category, sum(1 for phrase in phrases if phrase in lowered))
            for category, phrases in self._entries
        ]

    def classify(self, text: str) -> Category:
        """Category with the strictly highest keyword count, or Other."""
        best_category = Category.OTHER
        best_count = 0
        for category, count in self.match_counts(text):
            if count > best_count:
                best_category = category
                best_count = count
        return best_category
