"""Block operations processing functions."""

from .proposer_slashing import process_proposer_slashing
from .attester_slashing import process_attester_slashing
from .attestation import process_attestation
from .deposit import process_deposit, apply_deposit, add_validator_to_registry
from .voluntary_exit import process_voluntary_exit

__all__ = [
    "process_proposer_slashing",
    "process_attester_slashing",
    "process_attestation",
    "process_deposit",
    "apply_deposit",
    "add_validator_to_registry",
    "process_voluntary_exit",
]
