"""Block processing functions.

Each function mutates the state it is given and raises BlockProcessingError
when the block breaks a rule.
"""

from .header import process_block_header
from .randao import process_randao
from .eth1_data import process_eth1_data
from .operations import (
    process_proposer_slashing,
    process_attester_slashing,
    process_attestation,
    process_deposit,
    process_voluntary_exit,
)

__all__ = [
    "process_block_header",
    "process_randao",
    "process_eth1_data",
    "process_proposer_slashing",
    "process_attester_slashing",
    "process_attestation",
    "process_deposit",
    "process_voluntary_exit",
]
