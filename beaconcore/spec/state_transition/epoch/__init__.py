"""Epoch processing steps, applied in order by process_epoch."""

from .justification import process_justification_and_finalization
from .rewards import process_rewards_and_penalties
from .registry import process_registry_updates
from .slashings import process_slashings
from .effective_balance import process_effective_balance_updates
from .resets import (
    process_eth1_data_reset,
    process_slashings_reset,
    process_randao_mixes_reset,
    process_historical_roots_update,
    process_participation_record_updates,
)

__all__ = [
    "process_justification_and_finalization",
    "process_rewards_and_penalties",
    "process_registry_updates",
    "process_slashings",
    "process_effective_balance_updates",
    "process_eth1_data_reset",
    "process_slashings_reset",
    "process_randao_mixes_reset",
    "process_historical_roots_update",
    "process_participation_record_updates",
]
