"""Attestation helpers: attesting indices and pending-attestation matching."""

from typing import TYPE_CHECKING, Sequence, Set

from .accessors import (
    get_current_epoch,
    get_previous_epoch,
    get_block_root,
    get_block_root_at_slot,
    get_total_balance,
)
from .beacon_committee import get_beacon_committee

if TYPE_CHECKING:
    from ...types import BeaconState, Attestation, IndexedAttestation, PendingAttestation


def get_attesting_indices(state: "BeaconState", attestation) -> Set[int]:
    """Return the attesting validator indices of an Attestation or PendingAttestation.

    Raises:
        ValueError: If the aggregation bits do not match the committee size
    """
    data = attestation.data
    committee = get_beacon_committee(state, int(data.slot), int(data.index))
    aggregation_bits = attestation.aggregation_bits
    if len(aggregation_bits) != len(committee):
        raise ValueError(
            f"Aggregation bits length {len(aggregation_bits)} does not match "
            f"committee size {len(committee)}"
        )
    return set(index for i, index in enumerate(committee) if aggregation_bits[i])


def get_indexed_attestation(state: "BeaconState", attestation: "Attestation") -> "IndexedAttestation":
    """Convert an attestation to an indexed attestation with sorted indices."""
    from ...types import IndexedAttestation

    attesting_indices = get_attesting_indices(state, attestation)
    return IndexedAttestation(
        attesting_indices=sorted(attesting_indices),
        data=attestation.data,
        signature=attestation.signature,
    )


def get_matching_source_attestations(state: "BeaconState", epoch: int) -> Sequence["PendingAttestation"]:
    """Return the pending attestations recorded for epoch.

    Source correctness is checked on inclusion, so every recorded attestation
    matches the source.

    Raises:
        ValueError: If epoch is neither the current nor previous epoch
    """
    current_epoch = get_current_epoch(state)
    if epoch == current_epoch:
        return list(state.current_epoch_attestations)
    if epoch == get_previous_epoch(state):
        return list(state.previous_epoch_attestations)
    raise ValueError(f"Epoch {epoch} is neither current nor previous epoch")


def get_matching_target_attestations(state: "BeaconState", epoch: int) -> Sequence["PendingAttestation"]:
    target_root = get_block_root(state, epoch)
    return [
        a for a in get_matching_source_attestations(state, epoch)
        if bytes(a.data.target.root) == target_root
    ]


def get_matching_head_attestations(state: "BeaconState", epoch: int) -> Sequence["PendingAttestation"]:
    return [
        a for a in get_matching_target_attestations(state, epoch)
        if bytes(a.data.beacon_block_root) == get_block_root_at_slot(state, int(a.data.slot))
    ]


def get_unslashed_attesting_indices(state: "BeaconState", attestations) -> Set[int]:
    """Return the unslashed validators attesting in any of attestations."""
    output: Set[int] = set()
    for a in attestations:
        output |= get_attesting_indices(state, a)
    return set(index for index in output if not state.validators[index].slashed)


def get_attesting_balance(state: "BeaconState", attestations) -> int:
    """Return the combined effective balance of unslashed attesting validators."""
    return get_total_balance(state, get_unslashed_attesting_indices(state, attestations))
