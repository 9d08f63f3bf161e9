"""Justification and finalization processing (Casper FFG)."""

from typing import TYPE_CHECKING

from ...constants import GENESIS_EPOCH, JUSTIFICATION_BITS_LENGTH
from ...types import Checkpoint, Root
from ..helpers.accessors import (
    get_current_epoch,
    get_previous_epoch,
    get_total_active_balance,
    get_block_root,
)
from ..helpers.attestation import get_matching_target_attestations, get_attesting_balance

if TYPE_CHECKING:
    from ...types import BeaconState


def process_justification_and_finalization(state: "BeaconState") -> None:
    """Update justification bits and checkpoints from target attestation balances.

    Args:
        state: Beacon state (modified in place)
    """
    # Initial FFG checkpoint values have a `0x00` stub for `root`.
    # Skip FFG updates in the first two epochs to avoid corner cases.
    current_epoch = get_current_epoch(state)
    if current_epoch <= GENESIS_EPOCH + 1:
        return

    previous_epoch = get_previous_epoch(state)
    previous_target_balance = get_attesting_balance(
        state, get_matching_target_attestations(state, previous_epoch)
    )
    current_target_balance = get_attesting_balance(
        state, get_matching_target_attestations(state, current_epoch)
    )

    weigh_justification_and_finalization(
        state,
        get_total_active_balance(state),
        previous_target_balance,
        current_target_balance,
    )


def weigh_justification_and_finalization(
    state: "BeaconState",
    total_active_balance: int,
    previous_epoch_target_balance: int,
    current_epoch_target_balance: int,
) -> None:
    """Justify epochs with a two-thirds target vote and apply the four finalization rules.

    Args:
        state: Beacon state (modified in place)
        total_active_balance: Total effective balance of active validators
        previous_epoch_target_balance: Balance attesting to the previous epoch target
        current_epoch_target_balance: Balance attesting to the current epoch target
    """
    previous_epoch = get_previous_epoch(state)
    current_epoch = get_current_epoch(state)

    old_previous_justified_checkpoint = state.previous_justified_checkpoint.copy()
    old_current_justified_checkpoint = state.current_justified_checkpoint.copy()

    state.previous_justified_checkpoint = state.current_justified_checkpoint.copy()

    # Shift justification bits (new bit at position 0)
    bits = [bool(state.justification_bits[i]) for i in range(JUSTIFICATION_BITS_LENGTH)]
    bits = [False] + bits[:-1]

    if previous_epoch_target_balance * 3 >= total_active_balance * 2:
        state.current_justified_checkpoint = Checkpoint(
            epoch=previous_epoch,
            root=Root(get_block_root(state, previous_epoch)),
        )
        bits[1] = True

    if current_epoch_target_balance * 3 >= total_active_balance * 2:
        state.current_justified_checkpoint = Checkpoint(
            epoch=current_epoch,
            root=Root(get_block_root(state, current_epoch)),
        )
        bits[0] = True

    for i in range(JUSTIFICATION_BITS_LENGTH):
        state.justification_bits[i] = bits[i]

    # The 2nd/3rd/4th most recent epochs are justified, the 2nd using the 4th as source
    if all(bits[1:4]) and int(old_previous_justified_checkpoint.epoch) + 3 == current_epoch:
        state.finalized_checkpoint = old_previous_justified_checkpoint
    # The 2nd/3rd most recent epochs are justified, the 2nd using the 3rd as source
    if all(bits[1:3]) and int(old_previous_justified_checkpoint.epoch) + 2 == current_epoch:
        state.finalized_checkpoint = old_previous_justified_checkpoint
    # The 1st/2nd/3rd most recent epochs are justified, the 1st using the 3rd as source
    if all(bits[0:3]) and int(old_current_justified_checkpoint.epoch) + 2 == current_epoch:
        state.finalized_checkpoint = old_current_justified_checkpoint
    # The 1st/2nd most recent epochs are justified, the 1st using the 2nd as source
    if all(bits[0:2]) and int(old_current_justified_checkpoint.epoch) + 1 == current_epoch:
        state.finalized_checkpoint = old_current_justified_checkpoint
