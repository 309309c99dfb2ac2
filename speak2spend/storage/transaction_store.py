"""JSON file storage for confirmed transactions."""

import json
import logging
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.transaction import (
    Category,
    ExtractedTransaction,
    StoredTransaction,
    quantize_amount,
)

logger = logging.getLogger(__name__)

STORE_FILENAME = "transactions.json"
EDITABLE_FIELDS = ("amount", "vendor", "category")
ZERO = Decimal("0.00")


def new_transaction_id() -> str:
    return uuid.uuid4().hex


def _aware(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


class TransactionStore:
    """Newest-first list of transactions persisted as a single JSON file.

    The whole file is rewritten on every change through a temp file and
    ``os.replace`` so a crash mid-write never leaves a truncated store.
    """

    def __init__(self, data_dir: str = "./data", filename: str = STORE_FILENAME):
        """Initialize transaction store.

        Args:
            data_dir: Directory holding the store file
            filename: Name of the JSON file inside ``data_dir``
        """
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename
        self._transactions: List[StoredTransaction] = self._load()
        logger.info(f"TransactionStore loaded {len(self._transactions)} transactions from {self.path}")

    def _load(self) -> List[StoredTransaction]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt transaction store {self.path}: {e}")

        if not isinstance(raw, dict) or not isinstance(raw.get("transactions"), list):
            raise ValueError(f"Corrupt transaction store {self.path}: missing 'transactions' list")
        try:
            return [StoredTransaction.from_dict(item) for item in raw["transactions"]]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ValueError(f"Corrupt transaction record in {self.path}: {e}")

    def _save(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": 1,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "transactions": [t.to_dict() for t in self._transactions],
        }
        fd, tmp_path = tempfile.mkstemp(prefix=".transactions_", suffix=".json", dir=str(self.data_dir))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise
        logger.debug(f"Saved {len(self._transactions)} transactions to {self.path}")

    def append(self, extracted: ExtractedTransaction, now: Optional[datetime] = None) -> StoredTransaction:
        """Store an extracted transaction under a fresh id; newest first."""
        record = StoredTransaction(
            transaction_id=new_transaction_id(),
            amount=quantize_amount(extracted.amount),
            vendor=extracted.vendor,
            category=extracted.category,
            raw_text=extracted.raw_text,
            timestamp=_aware(now),
            confidence=extracted.confidence,
        )
        self._transactions.insert(0, record)
        self._save()
        logger.info(f"Stored transaction {record.transaction_id}: {record.amount} at {record.vendor} ({record.category.value})")
        return record

    def get(self, transaction_id: str) -> StoredTransaction:
        for transaction in self._transactions:
            if transaction.transaction_id == transaction_id:
                return transaction
        raise KeyError(transaction_id)

    def remove(self, transaction_id: str) -> bool:
        for index, transaction in enumerate(self._transactions):
            if transaction.transaction_id == transaction_id:
                del self._transactions[index]
                self._save()
                logger.info(f"Removed transaction {transaction_id}")
                return True
        logger.warning(f"Transaction {transaction_id} not found for removal")
        return False

    def update(self, transaction_id: str, **fields: Any) -> StoredTransaction:
        """Apply a user edit to ``amount``, ``vendor`` and/or ``category``.

        Raises:
            KeyError: No transaction with that id
            ValueError: Unknown field, non-positive amount, blank vendor or
                unknown category
        """
        transaction = self.get(transaction_id)
        changes = self._validate_edit(fields)
        for name, value in changes.items():
            setattr(transaction, name, value)
        self._save()
        logger.info(f"Updated transaction {transaction_id}: {sorted(changes)}")
        return transaction

    @staticmethod
    def _validate_edit(fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        if fields.get("amount") is not None:
            try:
                amount = quantize_amount(fields["amount"])
            except (InvalidOperation, ValueError):
                raise ValueError(f"Invalid amount: {fields['amount']!r}")
            if not amount.is_finite() or amount <= 0:
                raise ValueError("Amount must be greater than zero")
            changes["amount"] = amount
        if fields.get("vendor") is not None:
            vendor = str(fields["vendor"]).strip()
            if not vendor:
                raise ValueError("Vendor is required")
            changes["vendor"] = vendor
        if fields.get("category") is not None:
            category = fields["category"]
            changes["category"] = category if isinstance(category, Category) else Category.parse(category)
        return changes

    def list(self) -> List[StoredTransaction]:
        return list(self._transactions)

    def clear(self) -> int:
        count = len(self._transactions)
        self._transactions = []
        self._save()
        logger.info(f"Cleared {count} transactions")
        return count

    def __len__(self) -> int:
        return len(self._transactions)

    # ------------------------------------------------------------------
    # Aggregates

    def total_spent(self) -> Decimal:
        return sum((t.amount for t in self._transactions), ZERO)

    def spent_by_category(self) -> Dict[Category, Decimal]:
        totals: Dict[Category, Decimal] = {}
        for transaction in self._transactions:
            totals[transaction.category] = totals.get(transaction.category, ZERO) + transaction.amount
        return totals

    def spent_last_7_days(self, now: Optional[datetime] = None) -> Decimal:
        now = _aware(now)
        cutoff = now - timedelta(days=7)
        return sum((t.amount for t in self._transactions if cutoff <= t.timestamp <= now), ZERO)

    def spent_this_month(self, now: Optional[datetime] = None) -> Decimal:
        now = _aware(now)
        total = ZERO
        for transaction in self._transactions:
            local = transaction.timestamp.astimezone(now.tzinfo)
            if (local.year, local.month) == (now.year, now.month):
                total += transaction.amount
        return total
