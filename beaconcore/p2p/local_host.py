"""In-process pubsub host for single-node devnets and tests."""

import logging
from collections import defaultdict
from typing import Optional

from .gossip import MessageHandler

logger = logging.getLogger(__name__)

LOCAL_PEER_ID = "local"


class InProcessGossipHost:
    """GossipHost that delivers published messages to local subscribers only."""

    def __init__(self):
        self._handlers: dict[str, Optional[MessageHandler]] = {}
        self.published: dict[str, list[bytes]] = defaultdict(list)

    @property
    def topics(self) -> set[str]:
        return set(self._handlers)

    async def subscribe(self, topic: str, handler: Optional[MessageHandler] = None) -> None:
        self._handlers[topic] = handler
        logger.debug(f"Subscribed to {topic}")

    async def unsubscribe(self, topic: str) -> None:
        self._handlers.pop(topic, None)
        logger.debug(f"Unsubscribed from {topic}")

    async def publish(self, topic: str, data: bytes) -> None:
        self.published[topic].append(data)
        handler = self._handlers.get(topic)
        if handler is not None:
            await handler(data, LOCAL_PEER_ID)
