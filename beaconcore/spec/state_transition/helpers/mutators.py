"""State mutator helper functions.

These operate in place on a state owned by the caller; the public transition
functions hand them a private copy.
"""

from typing import TYPE_CHECKING, Optional

from ...constants import (
    FAR_FUTURE_EPOCH,
    MIN_SLASHING_PENALTY_QUOTIENT,
    WHISTLEBLOWER_REWARD_QUOTIENT,
    PROPOSER_REWARD_QUOTIENT,
    EPOCHS_PER_SLASHINGS_VECTOR,
)
from ...network_config import get_config
from .misc import compute_activation_exit_epoch
from .accessors import get_current_epoch, get_validator_churn_limit

if TYPE_CHECKING:
    from ...types import BeaconState


def increase_balance(state: "BeaconState", index: int, delta: int) -> None:
    """Increase the balance of a validator."""
    state.balances[index] = int(state.balances[index]) + delta


def decrease_balance(state: "BeaconState", index: int, delta: int) -> None:
    """Decrease the balance of a validator (saturates at 0)."""
    balance = int(state.balances[index])
    state.balances[index] = 0 if delta > balance else balance - delta


def initiate_validator_exit(state: "BeaconState", index: int) -> None:
    """Initiate the exit of a validator.

    Sets exit_epoch and withdrawable_epoch, queueing behind earlier exits so
    that no more than the churn limit exit in any one epoch.

    Args:
        state: Beacon state (modified in place)
        index: Validator index
    """
    validator = state.validators[index]

    # Already exiting
    if int(validator.exit_epoch) != FAR_FUTURE_EPOCH:
        return

    current_epoch = get_current_epoch(state)
    exit_epochs = [
        int(v.exit_epoch)
        for v in state.validators
        if int(v.exit_epoch) != FAR_FUTURE_EPOCH
    ]
    exit_queue_epoch = max(exit_epochs + [compute_activation_exit_epoch(current_epoch)])
    exit_queue_churn = len([v for v in state.validators if int(v.exit_epoch) == exit_queue_epoch])
    if exit_queue_churn >= get_validator_churn_limit(state):
        exit_queue_epoch += 1

    validator.exit_epoch = exit_queue_epoch
    validator.withdrawable_epoch = (
        exit_queue_epoch + get_config().min_validator_withdrawability_delay
    )


def slash_validator(
    state: "BeaconState",
    slashed_index: int,
    whistleblower_index: Optional[int] = None,
) -> None:
    """Slash a validator.

    Marks the validator as slashed, initiates exit, applies the minimum
    penalty, and rewards the proposer and whistleblower.

    Args:
        state: Beacon state (modified in place)
        slashed_index: Index of validator being slashed
        whistleblower_index: Index of whistleblower (defaults to proposer)
    """
    from .beacon_committee import get_beacon_proposer_index

    epoch = get_current_epoch(state)
    initiate_validator_exit(state, slashed_index)

    validator = state.validators[slashed_index]
    validator.slashed = True
    validator.withdrawable_epoch = max(
        int(validator.withdrawable_epoch),
        epoch + EPOCHS_PER_SLASHINGS_VECTOR(),
    )
    effective_balance = int(validator.effective_balance)

    slashings_index = epoch % EPOCHS_PER_SLASHINGS_VECTOR()
    state.slashings[slashings_index] = int(state.slashings[slashings_index]) + effective_balance
    decrease_balance(state, slashed_index, effective_balance // MIN_SLASHING_PENALTY_QUOTIENT)

    proposer_index = get_beacon_proposer_index(state)
    if whistleblower_index is None:
        whistleblower_index = proposer_index

    whistleblower_reward = effective_balance // WHISTLEBLOWER_REWARD_QUOTIENT
    proposer_reward = whistleblower_reward // PROPOSER_REWARD_QUOTIENT
    increase_balance(state, proposer_index, proposer_reward)
    increase_balance(state, whistleblower_index, whistleblower_reward - proposer_reward)
