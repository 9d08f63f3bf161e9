"""Phase 0 beacon chain state transition.

Public entry points copy their input state and return the new state.
"""

from .transition import (
    state_transition,
    process_slots,
    process_slot,
    process_epoch,
    apply_block,
    process_block,
    process_operations,
)
from .block_creation import create_new_unsigned_block, compute_new_state_root

__all__ = [
    "state_transition",
    "process_slots",
    "process_slot",
    "process_epoch",
    "apply_block",
    "process_block",
    "process_operations",
    "create_new_unsigned_block",
    "compute_new_state_root",
]
