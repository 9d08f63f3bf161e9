"""Gossip topics, attestation subnets and publishing."""

from .subnets import (
    SubnetNetwork,
    SubnetSubscriptionTracker,
    compute_subnet_for_committee,
    compute_subnet_for_attestation,
)
from .gossip import GossipHost, GossipTopicSubnets, GossipPublisher
from .local_host import InProcessGossipHost

__all__ = [
    "SubnetNetwork",
    "SubnetSubscriptionTracker",
    "compute_subnet_for_committee",
    "compute_subnet_for_attestation",
    "GossipHost",
    "GossipTopicSubnets",
    "GossipPublisher",
    "InProcessGossipHost",
]
