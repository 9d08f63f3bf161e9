"""Attester slashing processing."""

from typing import TYPE_CHECKING

from ...helpers.predicates import (
    is_slashable_validator,
    is_slashable_attestation_data,
    is_valid_indexed_attestation,
)
from ...helpers.accessors import get_current_epoch
from ...helpers.mutators import slash_validator
from .....exceptions import BlockProcessingError

if TYPE_CHECKING:
    from ....types import BeaconState, AttesterSlashing


def process_attester_slashing(
    state: "BeaconState",
    attester_slashing: "AttesterSlashing",
    verify_signatures: bool = True,
) -> None:
    """Slash every slashable validator that signed both conflicting attestations.

    Args:
        state: Beacon state (modified in place)
        attester_slashing: Attester slashing to process
        verify_signatures: Whether to check both aggregate signatures

    Raises:
        BlockProcessingError: If the evidence is invalid or nobody is slashed
    """
    attestation_1 = attester_slashing.attestation_1
    attestation_2 = attester_slashing.attestation_2

    if not is_slashable_attestation_data(attestation_1.data, attestation_2.data):
        raise BlockProcessingError("Attestation data is not slashable")
    if not is_valid_indexed_attestation(state, attestation_1, verify_signatures):
        raise BlockProcessingError("Invalid indexed attestation 1")
    if not is_valid_indexed_attestation(state, attestation_2, verify_signatures):
        raise BlockProcessingError("Invalid indexed attestation 2")

    slashed_any = False
    indices = set(int(i) for i in attestation_1.attesting_indices) & set(
        int(i) for i in attestation_2.attesting_indices
    )
    for index in sorted(indices):
        if is_slashable_validator(state.validators[index], get_current_epoch(state)):
            slash_validator(state, index)
            slashed_any = True

    if not slashed_any:
        raise BlockProcessingError("No validators slashed")
