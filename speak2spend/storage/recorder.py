"""Persists completed sessions' transactions from the session event topic."""

import logging
from typing import List, Optional

from pubsub import pub

from ..models.events import STATE_EVENT, SessionEvent
from ..models.session import RecordingState
from ..models.transaction import StoredTransaction
from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)


class TransactionRecorder:
    """Subscribes to session events and appends each completed transaction to a store."""

    def __init__(self, store: TransactionStore, topic: str):
        """Initialize transaction recorder.

        Args:
            store: Store receiving completed transactions
            topic: Pub/sub topic carrying SessionEvents
        """
        self.store = store
        self.topic = topic
        self.recorded: List[StoredTransaction] = []
        self._seen_sessions = set()

        pub.subscribe(self._on_event, topic)
        logger.info(f"TransactionRecorder initialized - subscribed to {topic}")

    def _on_event(self, event: SessionEvent) -> None:
        if event.event_type != STATE_EVENT or event.state is not RecordingState.COMPLETED:
            return
        if event.transaction is None:
            logger.warning(f"Completed session {event.session_id} carried no transaction")
            return
        if event.session_id in self._seen_sessions:
            logger.debug(f"Session {event.session_id} already recorded")
            return
        self._seen_sessions.add(event.session_id)
        self.recorded.append(self.store.append(event.transaction))

    @property
    def last_recorded(self) -> Optional[StoredTransaction]:
        return self.recorded[-1] if self.recorded else None

    def stop(self) -> None:
        try:
            pub.unsubscribe(self._on_event, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
        logger.info(f"TransactionRecorder stopped after recording {len(self.recorded)} transactions")
