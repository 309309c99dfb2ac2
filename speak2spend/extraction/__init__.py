"""Transaction extraction from free-text transcripts."""

from .amounts import extract_amount, spoken_to_int
from .categories import CategoryTable
from .extractor import TransactionExtractor, extract_transaction, extract_vendor

__all__ = [
    "CategoryTable",
    "TransactionExtractor",
    "extract_amount",
    "extract_transaction",
    "extract_vendor",
    "spoken_to_int",
]
