"""Hashing and BLS signature primitives.

BLS operations use the py_ecc proof-of-possession ciphersuite required by the
beacon chain.
"""

import hashlib
import logging
from typing import Sequence

from py_ecc.bls import G2ProofOfPossession as _bls

from ..spec.constants import G2_POINT_AT_INFINITY

logger = logging.getLogger(__name__)


def sha256(data: bytes) -> bytes:
    """Compute SHA256 hash."""
    return hashlib.sha256(data).digest()


def hash_tree_root(obj) -> bytes:
    """Compute the hash tree root of an SSZ object or pass a 32-byte root through.

    Args:
        obj: SSZ object with hash_tree_root() method, or 32-byte root

    Returns:
        32-byte hash tree root
    """
    if isinstance(obj, bytes):
        if len(obj) == 32:
            return obj
        raise ValueError(f"Expected 32-byte root, got {len(obj)} bytes")

    if hasattr(obj, "hash_tree_root"):
        return bytes(obj.hash_tree_root())

    raise TypeError(f"Cannot compute hash_tree_root of {type(obj)}")


def sign(privkey: int, message: bytes) -> bytes:
    """Sign a message with a BLS private key."""
    return _bls.Sign(privkey, message)


def verify(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    """Verify a BLS signature. Malformed keys or signatures verify as False."""
    try:
        return _bls.Verify(bytes(pubkey), message, bytes(signature))
    except Exception:
        return False


def aggregate_signatures(signatures: Sequence[bytes]) -> bytes:
    """Aggregate multiple BLS signatures."""
    if not signatures:
        return G2_POINT_AT_INFINITY
    return _bls.Aggregate([bytes(s) for s in signatures])


def fast_aggregate_verify(pubkeys: Sequence[bytes], message: bytes, signature: bytes) -> bool:
    """Verify an aggregate signature where all signers signed the same message.

    When pubkeys is empty, checks if signature is the point at infinity.
    """
    if len(pubkeys) == 0:
        return bytes(signature) == G2_POINT_AT_INFINITY
    try:
        return _bls.FastAggregateVerify([bytes(pk) for pk in pubkeys], message, bytes(signature))
    except Exception:
        return False


def pubkey_from_privkey(privkey: int) -> bytes:
    """Derive public key from private key."""
    return _bls.SkToPk(privkey)


__all__ = [
    "sha256",
    "hash_tree_root",
    "sign",
    "verify",
    "aggregate_signatures",
    "fast_aggregate_verify",
    "pubkey_from_privkey",
]
