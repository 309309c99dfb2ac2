"""Transaction persistence for Speak2Spend."""

from .recorder import TransactionRecorder
from .transaction_store import TransactionStore

__all__ = ["TransactionRecorder", "TransactionStore"]
