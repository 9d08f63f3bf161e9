"""Block assembler for creating unsigned beacon blocks."""

import logging
import time
from typing import TYPE_CHECKING, Protocol

from ..spec.constants import (
    SLOTS_PER_EPOCH,
    EPOCHS_PER_ETH1_VOTING_PERIOD,
    MAX_ATTESTATIONS,
    MAX_DEPOSITS,
)
from ..spec.state_transition import process_slots, create_new_unsigned_block
from ..spec.state_transition.block.operations.attestation import validate_attestation_inclusion
from ..spec.state_transition.helpers.beacon_committee import get_beacon_proposer_index
from ..spec.types import Attestation, BeaconBlock, BeaconState, Deposit, Eth1Data
from ..eth1.types import eth1_data_key
from ..crypto import hash_tree_root
from ..exceptions import StateTransitionError
from .. import metrics

logger = logging.getLogger(__name__)


class AttestationSource(Protocol):
    def get_attestations_for_block(self, slot: int) -> list[Attestation]: ...


class DepositSource(Protocol):
    def get_deposits(self, state: BeaconState, eth1_data: Eth1Data) -> list[Deposit]: ...


class Eth1VoteSource(Protocol):
    def get_eth1_vote(self, state: BeaconState) -> Eth1Data: ...


def get_post_vote_eth1_data(state: BeaconState, eth1_vote: Eth1Data) -> Eth1Data:
    """Eth1 data the state will hold once a block carrying eth1_vote is applied.

    Deposits in the same block are checked against this value.
    """
    vote_key = eth1_data_key(eth1_vote)
    count = 1 + sum(1 for vote in state.eth1_data_votes if eth1_data_key(vote) == vote_key)
    if count * 2 > EPOCHS_PER_ETH1_VOTING_PERIOD() * SLOTS_PER_EPOCH():
        return eth1_vote
    return state.eth1_data


class BlockAssembler:
    """Builds unsigned blocks on top of a previous block and state.

    Collaborators are only read from. Any transition error propagates to the
    caller; nothing is published from here.
    """

    def __init__(
        self,
        attestation_pool: AttestationSource,
        deposit_provider: DepositSource,
        eth1_data_cache: Eth1VoteSource,
        graffiti: bytes = b"",
    ):
        self.attestation_pool = attestation_pool
        self.deposit_provider = deposit_provider
        self.eth1_data_cache = eth1_data_cache
        self.graffiti = graffiti

    def create_unsigned_block(
        self,
        previous_state: BeaconState,
        previous_block: BeaconBlock,
        new_slot: int,
        randao_reveal: bytes,
    ) -> BeaconBlock:
        """Create an unsigned block for new_slot.

        Args:
            previous_state: Post-state of previous_block (not modified)
            previous_block: Parent block
            new_slot: Slot of the new block, after previous_state.slot
            randao_reveal: Proposer's randao reveal for new_slot's epoch

        Returns:
            Unsigned block with parent_root, proposer_index and state_root filled

        Raises:
            StateTransitionError: If the state cannot be advanced or the block
                does not apply
        """
        build_start = time.time()

        state = process_slots(previous_state, new_slot)

        attestations = self._select_attestations(state, new_slot)
        eth1_vote = self.eth1_data_cache.get_eth1_vote(state)
        deposits = self.deposit_provider.get_deposits(
            state, get_post_vote_eth1_data(state, eth1_vote)
        )[:MAX_DEPOSITS]

        parent_root = hash_tree_root(previous_block)
        proposer_index = get_beacon_proposer_index(state)

        block = create_new_unsigned_block(
            state,
            slot=new_slot,
            proposer_index=proposer_index,
            parent_root=parent_root,
            randao_reveal=randao_reveal,
            eth1_data=eth1_vote,
            graffiti=self.graffiti,
            attestations=attestations,
            deposits=deposits,
        )

        duration = time.time() - build_start
        metrics.record_block_assembled(duration)
        logger.info(
            f"Assembled block: slot={new_slot}, proposer={proposer_index}, "
            f"parent={parent_root.hex()[:16]}, attestations={len(attestations)}, "
            f"deposits={len(deposits)}, took {duration*1000:.1f}ms"
        )
        return block

    def _select_attestations(self, state: BeaconState, slot: int) -> list[Attestation]:
        """Pool attestations that the advanced state will accept, capped."""
        pool_attestations = self.attestation_pool.get_attestations_for_block(slot)

        selected = []
        for attestation in pool_attestations:
            try:
                validate_attestation_inclusion(state, attestation)
            except (StateTransitionError, ValueError, IndexError) as e:
                logger.debug(f"Skipping attestation for slot {int(attestation.data.slot)}: {e}")
                continue
            selected.append(attestation)
            if len(selected) >= MAX_ATTESTATIONS:
                break

        logger.debug(f"Selected {len(selected)} of {len(pool_attestations)} pool attestations")
        return selected
