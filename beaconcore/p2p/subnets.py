"""Attestation subnet subscription tracking."""

import asyncio
import logging
from typing import Protocol

from ..spec.constants import ATTESTATION_SUBNET_COUNT, SLOTS_PER_EPOCH
from .. import metrics

logger = logging.getLogger(__name__)


class SubnetNetwork(Protocol):
    """Gossip capability for joining and leaving attestation subnets."""

    async def subscribe_subnet(self, subnet_id: int) -> None: ...

    async def unsubscribe_subnet(self, subnet_id: int) -> None: ...


def compute_subnet_for_committee(committee_index: int) -> int:
    """Subnet an aggregator listens on for a committee."""
    return committee_index % ATTESTATION_SUBNET_COUNT


def compute_subnet_for_attestation(committees_per_slot: int, slot: int, committee_index: int) -> int:
    """Subnet an attestation is published on.

    Committees of consecutive slots in an epoch are laid out back to back
    before wrapping around ATTESTATION_SUBNET_COUNT.
    """
    slots_since_epoch_start = slot % SLOTS_PER_EPOCH()
    committees_since_epoch_start = committees_per_slot * slots_since_epoch_start
    return (committees_since_epoch_start + committee_index) % ATTESTATION_SUBNET_COUNT


class SubnetSubscriptionTracker:
    """Track attestation subnet memberships and their expiry slots.

    At most one subscription exists per subnet. A subnet is subscribed on the
    network when its first committee is registered, kept alive until the
    latest aggregation slot registered for it, and unsubscribed on the first
    slot tick after that.
    """

    def __init__(self, network: SubnetNetwork):
        self._network = network
        self._subscriptions: dict[int, int] = {}
        self._lock = asyncio.Lock()

    @property
    def subscriptions(self) -> dict[int, int]:
        """Snapshot of subnet id to expiry slot."""
        return dict(self._subscriptions)

    async def subscribe_to_committee(self, committee_index: int, aggregation_slot: int) -> None:
        """Make sure the committee's subnet is joined until aggregation_slot.

        Args:
            committee_index: Committee the local aggregator belongs to
            aggregation_slot: Last slot the subscription is needed for
        """
        subnet_id = compute_subnet_for_committee(committee_index)
        async with self._lock:
            expiry = self._subscriptions.get(subnet_id)
            if expiry is None:
                await self._network.subscribe_subnet(subnet_id)
                self._subscriptions[subnet_id] = aggregation_slot
                logger.info(f"Subscribed to attestation subnet {subnet_id} until slot {aggregation_slot}")
            elif aggregation_slot > expiry:
                self._subscriptions[subnet_id] = aggregation_slot
                logger.debug(f"Extended subnet {subnet_id} subscription to slot {aggregation_slot}")
            metrics.update_subnet_count(len(self._subscriptions))

    async def on_slot(self, current_slot: int) -> None:
        """Unsubscribe every subnet whose expiry slot has passed."""
        async with self._lock:
            expired = [
                subnet_id for subnet_id, expiry in self._subscriptions.items()
                if expiry < current_slot
            ]
            for subnet_id in expired:
                await self._network.unsubscribe_subnet(subnet_id)
                del self._subscriptions[subnet_id]
                logger.info(f"Unsubscribed from attestation subnet {subnet_id} at slot {current_slot}")
            if expired:
                metrics.update_subnet_count(len(self._subscriptions))
