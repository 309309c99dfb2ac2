"""Transaction data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional


UNKNOWN_VENDOR = "Unknown"
MAX_VENDOR_LENGTH = 30
ELLIPSIS = "..."
CENTS = Decimal("0.01")


class Category(str, Enum):
    """Closed set of spending categories."""
    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    HEALTH = "Health"
    GROCERIES = "Groceries"
    HOME = "Home"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Case-insensitive lookup by display name."""
        for category in cls:
            if category.value.lower() == str(value).strip().lower():
                return category
        raise ValueError(f"Unknown category: {value!r}")


def quantize_amount(value: Any) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def truncate_vendor(vendor: str) -> str:
    """Cap vendor labels at 30 characters plus an ellipsis marker."""
    if len(vendor) > MAX_VENDOR_LENGTH:
        return vendor[:MAX_VENDOR_LENGTH] + ELLIPSIS
    return vendor


@dataclass(frozen=True)
class ExtractedTransaction:
    """Structured guess produced from a single transcript."""
    amount: Decimal = Decimal("0.00")
    vendor: str = UNKNOWN_VENDOR
    category: Category = Category.OTHER
    raw_text: str = ""
    confidence: float = 0.5

    def to_record(self) -> Dict[str, Any]:
        """Fields accepted by the transaction store's create input."""
        return {
            "amount": self.amount,
            "vendor": self.vendor,
            "category": self.category,
            "raw_text": self.raw_text,
            "confidence": self.confidence,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredTransaction:
    """A persisted transaction with identity and timestamp."""
    transaction_id: str
    amount: Decimal
    vendor: str
    category: Category
    raw_text: str
    timestamp: datetime = field(default_factory=_utc_now)
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.transaction_id,
            "amount": str(self.amount),
            "vendor": self.vendor,
            "category": self.category.value,
            "raw_text": self.raw_text,
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredTransaction":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            transaction_id=data["id"],
            amount=quantize_amount(data["amount"]),
            vendor=data["vendor"],
            category=Category.parse(data["category"]),
            raw_text=data.get("raw_text", ""),
            timestamp=timestamp,
            confidence=data.get("confidence"),
        )
