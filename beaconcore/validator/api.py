"""Validator API: the boundary between duties and the chain."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from ..spec.constants import SLOTS_PER_EPOCH
from ..spec.state_transition import process_slots, state_transition
from ..spec.state_transition.helpers.accessors import get_current_epoch, get_block_root
from ..spec.state_transition.helpers.beacon_committee import (
    compute_proposer_index_at_slot,
    get_beacon_committee,
    get_committee_count_per_slot,
)
from ..spec.state_transition.helpers.misc import compute_epoch_at_slot, compute_start_slot_at_epoch
from ..spec.types import (
    Attestation,
    AttestationData,
    BeaconBlock,
    BeaconState,
    Checkpoint,
    SignedAggregateAndProof,
    SignedBeaconBlock,
)
from ..crypto import hash_tree_root
from ..exceptions import DutyLoadError
from ..p2p.subnets import compute_subnet_for_attestation
from .. import metrics
from .types import ProposerDuty, AttesterDuty, ForkInfo

if TYPE_CHECKING:
    from ..attestation_pool import AttestationPool
    from ..builder import BlockAssembler
    from ..p2p import SubnetSubscriptionTracker

logger = logging.getLogger(__name__)


class ValidatorApi(Protocol):
    """Everything validator duties need from a beacon node."""

    async def get_validator_indices(self, pubkeys: Sequence[bytes]) -> dict[bytes, int]: ...

    async def get_proposer_duties(self, epoch: int) -> list[ProposerDuty]: ...

    async def get_attester_duties(self, epoch: int, validator_indices: Sequence[int]) -> list[AttesterDuty]: ...

    async def get_fork_info(self, epoch: int) -> ForkInfo: ...

    async def create_unsigned_block(self, slot: int, randao_reveal: bytes) -> BeaconBlock: ...

    async def send_signed_block(self, signed_block: SignedBeaconBlock) -> None: ...

    async def create_attestation_data(self, slot: int, committee_index: int) -> AttestationData: ...

    async def send_attestation(self, attestation: Attestation) -> None: ...

    async def get_aggregate(self, slot: int, committee_index: int) -> Optional[Attestation]: ...

    async def send_aggregate(self, signed_aggregate: SignedAggregateAndProof) -> None: ...

    async def subscribe_to_committee(self, committee_index: int, aggregation_slot: int) -> None: ...


class Publisher(Protocol):
    async def publish_block(self, signed_block: SignedBeaconBlock) -> None: ...

    async def publish_attestation(self, attestation: Attestation, subnet_id: int) -> None: ...

    async def publish_aggregate(self, signed_aggregate: SignedAggregateAndProof) -> None: ...


class LocalValidatorApi:
    """ValidatorApi over an in-process chain head.

    The head (state and block) is guarded by an asyncio.Lock; transition work
    runs synchronously while the lock is held.
    """

    def __init__(
        self,
        head_state: BeaconState,
        head_block: BeaconBlock,
        assembler: "BlockAssembler",
        attestation_pool: "AttestationPool",
        subnet_tracker: "SubnetSubscriptionTracker",
        publisher: Optional[Publisher] = None,
        verify_signatures: bool = True,
    ):
        self._head_state = head_state
        self._head_block = head_block
        self._head_lock = asyncio.Lock()
        self.assembler = assembler
        self.attestation_pool = attestation_pool
        self.subnet_tracker = subnet_tracker
        self.publisher = publisher
        self.verify_signatures = verify_signatures

    @property
    def head_state(self) -> BeaconState:
        return self._head_state

    @property
    def head_block(self) -> BeaconBlock:
        return self._head_block

    def _state_at_epoch(self, epoch: int) -> BeaconState:
        """Head state, advanced to the start of epoch if the head is behind it."""
        head_epoch = get_current_epoch(self._head_state)
        if epoch < head_epoch:
            raise DutyLoadError(epoch, f"epoch is before head epoch {head_epoch}")
        if epoch == head_epoch:
            return self._head_state
        return process_slots(self._head_state, compute_start_slot_at_epoch(epoch))

    async def get_validator_indices(self, pubkeys: Sequence[bytes]) -> dict[bytes, int]:
        wanted = set(pubkeys)
        async with self._head_lock:
            return {
                bytes(v.pubkey): i
                for i, v in enumerate(self._head_state.validators)
                if bytes(v.pubkey) in wanted
            }

    async def get_proposer_duties(self, epoch: int) -> list[ProposerDuty]:
        async with self._head_lock:
            state = self._state_at_epoch(epoch)
            duties = []
            start_slot = compute_start_slot_at_epoch(epoch)
            for slot in range(start_slot, start_slot + SLOTS_PER_EPOCH()):
                index = compute_proposer_index_at_slot(state, slot)
                duties.append(ProposerDuty(
                    validator_index=index,
                    slot=slot,
                    pubkey=bytes(state.validators[index].pubkey),
                ))
            return duties

    async def get_attester_duties(self, epoch: int, validator_indices: Sequence[int]) -> list[AttesterDuty]:
        wanted = set(validator_indices)
        async with self._head_lock:
            state = self._state_at_epoch(epoch)
            committees_per_slot = get_committee_count_per_slot(state, epoch)
            duties = []
            start_slot = compute_start_slot_at_epoch(epoch)
            for slot in range(start_slot, start_slot + SLOTS_PER_EPOCH()):
                for committee_index in range(committees_per_slot):
                    committee = get_beacon_committee(state, slot, committee_index)
                    for position, validator_index in enumerate(committee):
                        if validator_index not in wanted:
                            continue
                        duties.append(AttesterDuty(
                            validator_index=validator_index,
                            slot=slot,
                            committee_index=committee_index,
                            committee_length=len(committee),
                            committees_at_slot=committees_per_slot,
                            validator_committee_index=position,
                            pubkey=bytes(state.validators[validator_index].pubkey),
                        ))
            return duties

    async def get_fork_info(self, epoch: int) -> ForkInfo:
        """Fork info for signing at epoch.

        Only phase 0 is scheduled, so the head state's fork covers every epoch,
        past or future; ForkInfo.fork_version picks the version for a given epoch.
        """
        async with self._head_lock:
            return ForkInfo(
                fork=self._head_state.fork.copy(),
                genesis_validators_root=bytes(self._head_state.genesis_validators_root),
            )

    async def create_unsigned_block(self, slot: int, randao_reveal: bytes) -> BeaconBlock:
        async with self._head_lock:
            return self.assembler.create_unsigned_block(
                self._head_state, self._head_block, slot, randao_reveal
            )

    async def send_signed_block(self, signed_block: SignedBeaconBlock) -> None:
        """Import a block onto the head, then publish it.

        Raises:
            StateTransitionError: If the block does not apply to the head
        """
        async with self._head_lock:
            new_state = state_transition(
                self._head_state, signed_block, validate_result=self.verify_signatures
            )
            self._head_state = new_state
            self._head_block = signed_block.message
            self.attestation_pool.remove_included(list(signed_block.message.body.attestations))
            metrics.update_head(
                int(new_state.slot),
                int(new_state.finalized_checkpoint.epoch),
                int(new_state.current_justified_checkpoint.epoch),
            )
        logger.info(f"Imported block at slot {int(signed_block.message.slot)}")

        if self.publisher is not None:
            await self.publisher.publish_block(signed_block)

    async def create_attestation_data(self, slot: int, committee_index: int) -> AttestationData:
        """Attest to the current head at slot.

        The target is the epoch boundary block; the source is the justified
        checkpoint as of the start of slot's epoch.
        """
        epoch = compute_epoch_at_slot(slot)
        async with self._head_lock:
            head_root = hash_tree_root(self._head_block)
            state = self._state_at_epoch(epoch)
            start_slot = compute_start_slot_at_epoch(epoch)
            if start_slot >= int(self._head_state.slot):
                epoch_boundary_root = head_root
            else:
                epoch_boundary_root = get_block_root(self._head_state, epoch)

            return AttestationData(
                slot=slot,
                index=committee_index,
                beacon_block_root=head_root,
                source=state.current_justified_checkpoint.copy(),
                target=Checkpoint(epoch=epoch, root=epoch_boundary_root),
            )

    async def send_attestation(self, attestation: Attestation) -> None:
        self.attestation_pool.add(attestation)
        if self.publisher is None:
            return
        slot = int(attestation.data.slot)
        async with self._head_lock:
            committees_per_slot = get_committee_count_per_slot(
                self._head_state, compute_epoch_at_slot(slot)
            )
        subnet_id = compute_subnet_for_attestation(committees_per_slot, slot, int(attestation.data.index))
        await self.publisher.publish_attestation(attestation, subnet_id)

    async def get_aggregate(self, slot: int, committee_index: int) -> Optional[Attestation]:
        return self.attestation_pool.get_aggregate(slot, committee_index)

    async def send_aggregate(self, signed_aggregate: SignedAggregateAndProof) -> None:
        self.attestation_pool.add(signed_aggregate.message.aggregate)
        if self.publisher is not None:
            await self.publisher.publish_aggregate(signed_aggregate)

    async def subscribe_to_committee(self, committee_index: int, aggregation_slot: int) -> None:
        await self.subnet_tracker.subscribe_to_committee(committee_index, aggregation_slot)
