"""Proposer slashing processing."""

from typing import TYPE_CHECKING

from ....constants import DOMAIN_BEACON_PROPOSER
from ...helpers.predicates import is_slashable_validator
from ...helpers.accessors import get_current_epoch
from ...helpers.domain import get_domain, compute_signing_root
from ...helpers.mutators import slash_validator
from ...helpers.misc import compute_epoch_at_slot
from .....crypto import verify
from .....exceptions import BlockProcessingError

if TYPE_CHECKING:
    from ....types import BeaconState, ProposerSlashing


def process_proposer_slashing(
    state: "BeaconState",
    proposer_slashing: "ProposerSlashing",
    verify_signatures: bool = True,
) -> None:
    """Validate two conflicting signed headers and slash their proposer.

    Raises:
        BlockProcessingError: If validation fails
    """
    header_1 = proposer_slashing.signed_header_1.message
    header_2 = proposer_slashing.signed_header_2.message

    if int(header_1.slot) != int(header_2.slot):
        raise BlockProcessingError("Slashing headers not for same slot")
    if int(header_1.proposer_index) != int(header_2.proposer_index):
        raise BlockProcessingError("Slashing headers not from same proposer")
    if header_1.hash_tree_root() == header_2.hash_tree_root():
        raise BlockProcessingError("Slashing headers are identical")

    proposer_index = int(header_1.proposer_index)
    if proposer_index >= len(state.validators):
        raise BlockProcessingError(f"Unknown proposer index {proposer_index}")
    proposer = state.validators[proposer_index]
    if not is_slashable_validator(proposer, get_current_epoch(state)):
        raise BlockProcessingError(f"Proposer {proposer_index} is not slashable")

    if verify_signatures:
        for signed_header in (proposer_slashing.signed_header_1, proposer_slashing.signed_header_2):
            domain = get_domain(
                state,
                DOMAIN_BEACON_PROPOSER,
                compute_epoch_at_slot(int(signed_header.message.slot)),
            )
            signing_root = compute_signing_root(signed_header.message, domain)
            if not verify(bytes(proposer.pubkey), signing_root, bytes(signed_header.signature)):
                raise BlockProcessingError("Invalid proposer slashing signature")

    slash_validator(state, proposer_index)
