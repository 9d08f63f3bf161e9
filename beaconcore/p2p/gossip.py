"""Gossip adapters between the validator side and a pubsub host."""

import logging
from typing import Awaitable, Callable, Optional, Protocol

from ..spec.types import Attestation, SignedAggregateAndProof, SignedBeaconBlock
from .encoding import (
    get_topic_name,
    get_attestation_subnet_topic,
    encode_message,
    BEACON_BLOCK_TOPIC,
    BEACON_AGGREGATE_AND_PROOF_TOPIC,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes, str], Awaitable[None]]


class GossipHost(Protocol):
    """Pubsub transport (peer discovery and wire protocol live elsewhere)."""

    async def subscribe(self, topic: str, handler: Optional[MessageHandler] = None) -> None: ...

    async def unsubscribe(self, topic: str) -> None: ...

    async def publish(self, topic: str, data: bytes) -> None: ...


class GossipTopicSubnets:
    """Turn subnet ids into attestation topic subscriptions on a host."""

    def __init__(self, host: GossipHost, fork_digest: bytes, handler: Optional[MessageHandler] = None):
        self._host = host
        self.fork_digest = fork_digest
        self._handler = handler

    async def subscribe_subnet(self, subnet_id: int) -> None:
        topic = get_attestation_subnet_topic(subnet_id, self.fork_digest)
        await self._host.subscribe(topic, self._handler)
        logger.debug(f"Joined topic {topic}")

    async def unsubscribe_subnet(self, subnet_id: int) -> None:
        topic = get_attestation_subnet_topic(subnet_id, self.fork_digest)
        await self._host.unsubscribe(topic)
        logger.debug(f"Left topic {topic}")


class GossipPublisher:
    """Publish blocks, attestations and aggregates on their topics."""

    def __init__(self, host: GossipHost, fork_digest: bytes):
        self._host = host
        self.fork_digest = fork_digest

    async def publish_block(self, signed_block: SignedBeaconBlock) -> None:
        block_ssz = signed_block.encode_bytes()
        topic = get_topic_name(BEACON_BLOCK_TOPIC, self.fork_digest)
        await self._host.publish(topic, encode_message(block_ssz))
        logger.info(f"Published block: slot={int(signed_block.message.slot)}, {len(block_ssz)} bytes")

    async def publish_attestation(self, attestation: Attestation, subnet_id: int) -> None:
        topic = get_attestation_subnet_topic(subnet_id, self.fork_digest)
        await self._host.publish(topic, encode_message(attestation.encode_bytes()))

    async def publish_aggregate(self, signed_aggregate: SignedAggregateAndProof) -> None:
        topic = get_topic_name(BEACON_AGGREGATE_AND_PROOF_TOPIC, self.fork_digest)
        await self._host.publish(topic, encode_message(signed_aggregate.encode_bytes()))
