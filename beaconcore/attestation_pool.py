"""Attestation pool for collecting and aggregating attestations."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from .spec.constants import (
    SLOTS_PER_EPOCH,
    MAX_ATTESTATIONS,
    MAX_VALIDATORS_PER_COMMITTEE,
    MIN_ATTESTATION_INCLUSION_DELAY,
)
from .spec.types import Attestation, BLSSignature, Bitlist
from .crypto import hash_tree_root, aggregate_signatures

AggregationBits = Bitlist[MAX_VALIDATORS_PER_COMMITTEE]

logger = logging.getLogger(__name__)


def _set_bits(attestation: Attestation) -> frozenset[int]:
    return frozenset(i for i, bit in enumerate(attestation.aggregation_bits) if bit)


@dataclass
class PooledAttestation:
    """An attestation in the pool with metadata."""

    attestation: Attestation
    data_root: bytes
    bits: frozenset[int]

    @property
    def slot(self) -> int:
        return int(self.attestation.data.slot)


class AttestationPool:
    """Pool for collecting attestations to include in blocks.

    Attestations are indexed by (slot, committee_index). Attestations that share
    the same AttestationData and have disjoint aggregation bits are aggregated
    when they are read back out.
    """

    def __init__(self, retention_epochs: int = 2):
        self.retention_epochs = retention_epochs
        self._attestations: dict[tuple[int, int], list[PooledAttestation]] = defaultdict(list)

    def add(self, attestation: Attestation) -> bool:
        """Add an attestation to the pool.

        Args:
            attestation: The attestation to add

        Returns:
            True if the attestation was added, False if an attestation with the
            same data already covers all of its bits
        """
        data = attestation.data
        key = (int(data.slot), int(data.index))
        data_root = hash_tree_root(data)
        bits = _set_bits(attestation)

        for pooled in self._attestations.get(key, ()):
            if pooled.data_root == data_root and bits <= pooled.bits:
                return False

        self._attestations[key].append(
            PooledAttestation(attestation=attestation, data_root=data_root, bits=bits)
        )
        logger.debug(
            f"Added attestation to pool: slot={key[0]}, committee={key[1]}, bits={len(bits)}"
        )
        return True

    def get_attestations_for_block(
        self, slot: int, max_attestations: int = MAX_ATTESTATIONS
    ) -> list[Attestation]:
        """Get aggregated attestations that may be included in a block at slot.

        An attestation is eligible when
        `att_slot + MIN_ATTESTATION_INCLUSION_DELAY <= slot <= att_slot + SLOTS_PER_EPOCH`.
        Results are ranked by the number of attesters covered (most first),
        ties going to the earliest attestation slot.

        Args:
            slot: Slot of the block being built
            max_attestations: Maximum number of attestations to return

        Returns:
            List of aggregated attestations
        """
        by_data_root: dict[bytes, list[PooledAttestation]] = defaultdict(list)
        for (att_slot, _), pooled_list in self._attestations.items():
            if not att_slot + MIN_ATTESTATION_INCLUSION_DELAY <= slot <= att_slot + SLOTS_PER_EPOCH():
                continue
            for pooled in pooled_list:
                by_data_root[pooled.data_root].append(pooled)

        aggregates = [self._aggregate(pooled_list) for pooled_list in by_data_root.values()]
        aggregates.sort(key=lambda p: (-len(p.bits), p.slot))

        result = [p.attestation for p in aggregates[:max_attestations]]
        logger.debug(
            f"Returning {len(result)} aggregated attestations for block at slot {slot} "
            f"(groups={len(by_data_root)}, max={max_attestations})"
        )
        return result

    def get_aggregate(self, slot: int, committee_index: int) -> Optional[Attestation]:
        """Return the best aggregate for a committee at slot, if any.

        Used by aggregation duties. When several AttestationData values were
        seen for the committee, the aggregate covering most attesters wins.
        """
        pooled_list = self._attestations.get((slot, committee_index))
        if not pooled_list:
            return None

        by_data_root: dict[bytes, list[PooledAttestation]] = defaultdict(list)
        for pooled in pooled_list:
            by_data_root[pooled.data_root].append(pooled)

        best = max(
            (self._aggregate(group) for group in by_data_root.values()),
            key=lambda p: len(p.bits),
        )
        return best.attestation

    def _aggregate(self, pooled_list: list[PooledAttestation]) -> PooledAttestation:
        """Aggregate attestations with identical data.

        Only attestations with DISJOINT bit sets are combined, largest first, so
        that no validator's signature is counted twice.
        """
        if len(pooled_list) == 1:
            return pooled_list[0]

        included_bits: set[int] = set()
        aggregatable: list[PooledAttestation] = []
        for pooled in sorted(pooled_list, key=lambda p: len(p.bits), reverse=True):
            if pooled.bits & included_bits:
                continue
            aggregatable.append(pooled)
            included_bits |= pooled.bits

        if len(aggregatable) == 1:
            return aggregatable[0]

        first = aggregatable[0].attestation
        merged_bits = AggregationBits()
        for i in range(len(first.aggregation_bits)):
            merged_bits.append(i in included_bits)

        signature = aggregate_signatures([bytes(p.attestation.signature) for p in aggregatable])
        aggregated = Attestation(
            aggregation_bits=merged_bits,
            data=first.data,
            signature=BLSSignature(signature),
        )
        logger.debug(
            f"Aggregated {len(aggregatable)} attestations with {len(included_bits)} total bits"
        )
        return PooledAttestation(
            attestation=aggregated,
            data_root=aggregatable[0].data_root,
            bits=frozenset(included_bits),
        )

    def remove_included(self, attestations: list[Attestation]) -> int:
        """Remove pooled attestations whose bits are covered by included ones.

        Args:
            attestations: Attestations that were included in a block

        Returns:
            Number of attestations removed
        """
        removed = 0
        for att in attestations:
            key = (int(att.data.slot), int(att.data.index))
            if key not in self._attestations:
                continue

            data_root = hash_tree_root(att.data)
            included = _set_bits(att)
            before = len(self._attestations[key])
            self._attestations[key] = [
                p for p in self._attestations[key]
                if not (p.data_root == data_root and p.bits <= included)
            ]
            removed += before - len(self._attestations[key])

            if not self._attestations[key]:
                del self._attestations[key]

        if removed > 0:
            logger.debug(f"Removed {removed} included attestations from pool")
        return removed

    def prune(self, current_slot: int) -> int:
        """Remove attestations older than the retention window.

        Args:
            current_slot: Current slot

        Returns:
            Number of attestations pruned
        """
        min_slot = max(0, current_slot - SLOTS_PER_EPOCH() * self.retention_epochs)

        pruned = 0
        for key in [k for k in self._attestations if k[0] < min_slot]:
            pruned += len(self._attestations[key])
            del self._attestations[key]

        if pruned > 0:
            logger.debug(f"Pruned {pruned} old attestations from pool")
        return pruned

    @property
    def size(self) -> int:
        """Return the total number of attestations in the pool."""
        return sum(len(v) for v in self._attestations.values())
