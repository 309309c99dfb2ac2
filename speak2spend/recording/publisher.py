"""Session event publisher module for pub/sub event publishing."""

import logging
from typing import Callable

from pubsub import pub

from ..models.events import LEVEL_EVENT, SessionEvent

logger = logging.getLogger(__name__)

SESSION_TOPIC = "session_events"


class SessionEventPublisher:
    """Publishes recording session events using pubsub.pub."""

    def __init__(self, topic: str = SESSION_TOPIC):
        """Initialize session event publisher.

        Args:
            topic: Pub/sub topic name for session events
        """
        self.topic = topic
        logger.info(f"SessionEventPublisher initialized with topic: {topic}")

    def publish_session_event(self, event: SessionEvent) -> None:
        """Publish a session event to the pub/sub topic.

        Args:
            event: SessionEvent to publish
        """
        pub.sendMessage(self.topic, event=event)
        if event.event_type != LEVEL_EVENT:
            logger.debug(f"Published {event.event_type} event for session {event.session_id}: {event.state.value}")

    def get_callback(self) -> Callable[[SessionEvent], None]:
        """Get callback function for RecordingController to use.

        Returns:
            Callback function that publishes session events
        """
        return self.publish_session_event
