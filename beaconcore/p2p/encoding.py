"""Gossip topic naming and message encoding.

Gossip messages are SSZ encoded and snappy compressed.
Topic strings follow the format: /eth2/{fork_digest}/{topic_name}/{encoding}
"""

import snappy

from ..crypto import sha256

BEACON_BLOCK_TOPIC = "beacon_block"
BEACON_AGGREGATE_AND_PROOF_TOPIC = "beacon_aggregate_and_proof"
BEACON_ATTESTATION_TOPIC_PREFIX = "beacon_attestation_"


def get_topic_name(base_topic: str, fork_digest: bytes, encoding: str = "ssz_snappy") -> str:
    """Get the full topic name for a gossip topic."""
    return f"/eth2/{fork_digest.hex()}/{base_topic}/{encoding}"


def get_attestation_subnet_topic(subnet_id: int, fork_digest: bytes, encoding: str = "ssz_snappy") -> str:
    """Get the full topic name for an attestation subnet.

    Format: /eth2/{fork_digest}/beacon_attestation_{subnet_id}/{encoding}
    """
    return get_topic_name(f"{BEACON_ATTESTATION_TOPIC_PREFIX}{subnet_id}", fork_digest, encoding)


def encode_message(data: bytes) -> bytes:
    """Snappy-compress an SSZ payload for gossip."""
    return snappy.compress(data)


def decode_message(data: bytes) -> bytes:
    """Decompress a gossip payload back to SSZ bytes."""
    return snappy.uncompress(data)


def compute_message_id(message_data: bytes) -> bytes:
    """message_id = sha256(message)[:20]"""
    return sha256(message_data)[:20]
