"""Validator data types."""

from dataclasses import dataclass
from typing import Optional

from ..spec.types import Fork


@dataclass
class ValidatorKey:
    """A validator's key pair."""

    pubkey: bytes
    privkey: int
    validator_index: Optional[int] = None


@dataclass(frozen=True)
class ProposerDuty:
    """Proposer assignment for a slot."""

    validator_index: int
    slot: int
    pubkey: bytes


@dataclass(frozen=True)
class AttesterDuty:
    """Attester assignment for a slot."""

    validator_index: int
    slot: int
    committee_index: int
    committee_length: int
    committees_at_slot: int
    validator_committee_index: int
    pubkey: bytes


@dataclass(frozen=True)
class ForkInfo:
    """Fork schedule and chain identity needed to compute signing domains."""

    fork: Fork
    genesis_validators_root: bytes

    def fork_version(self, epoch: int) -> bytes:
        if epoch < int(self.fork.epoch):
            return bytes(self.fork.previous_version)
        return bytes(self.fork.current_version)
