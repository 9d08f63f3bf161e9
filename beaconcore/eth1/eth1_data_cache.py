"""Cache of eth1 blocks and the honest eth1 vote."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ..spec.constants import SLOTS_PER_EPOCH, EPOCHS_PER_ETH1_VOTING_PERIOD
from ..spec.network_config import NetworkConfig, get_config
from ..spec.state_transition.helpers.misc import compute_time_at_slot
from ..spec.types import Eth1Data
from .deposit_provider import DepositProvider
from .provider import Eth1Provider, GET_DEPOSIT_ROOT_SELECTOR, GET_DEPOSIT_COUNT_SELECTOR
from .types import Eth1BlockData, eth1_data_key, decode_deposit_count, decode_deposit_root

if TYPE_CHECKING:
    from ..spec.types import BeaconState

logger = logging.getLogger(__name__)


def voting_period_start_time(state: "BeaconState", config: Optional[NetworkConfig] = None) -> int:
    """Timestamp of the first slot of the state's eth1 voting period."""
    config = config or get_config()
    slots_per_period = EPOCHS_PER_ETH1_VOTING_PERIOD() * SLOTS_PER_EPOCH()
    period_start_slot = int(state.slot) - int(state.slot) % slots_per_period
    return compute_time_at_slot(int(state.genesis_time), period_start_slot, config.seconds_per_slot)


def is_candidate_block(block: Eth1BlockData, period_start: int, config: Optional[NetworkConfig] = None) -> bool:
    """A block is a candidate when it is between one and two follow distances old."""
    config = config or get_config()
    follow_time = config.seconds_per_eth1_block * config.eth1_follow_distance
    return (
        block.timestamp + follow_time <= period_start
        and block.timestamp + follow_time * 2 >= period_start
    )


class Eth1DataCache:
    """Eth1 blocks seen so far, keyed by block number.

    refresh() pulls recent blocks (and the deposit contract state at each)
    through a provider; get_eth1_vote() computes the honest vote from the
    cached blocks.

    With a DepositProvider attached, refresh() also syncs its deposit logs up
    to the newest cached block, and only blocks whose deposit count the tree
    already holds are voted for, so a winning vote never asks the next
    proposer for deposits it cannot prove.
    """

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        max_blocks_per_refresh: int = 256,
        deposits: Optional[DepositProvider] = None,
    ):
        self.config = config or get_config()
        self.deposits = deposits
        self.max_blocks_per_refresh = max_blocks_per_refresh
        self._blocks: dict[int, Eth1BlockData] = {}

    def __len__(self) -> int:
        return len(self._blocks)

    def add_block(self, block: Eth1BlockData) -> None:
        self._blocks[block.number] = block

    def blocks(self) -> list[Eth1BlockData]:
        """Cached blocks in ascending block number order."""
        return [self._blocks[n] for n in sorted(self._blocks)]

    def get_eth1_vote(self, state: "BeaconState") -> Eth1Data:
        """Return the eth1 data a proposer should vote for at state.slot.

        Candidate blocks lie between one and two follow distances before the
        voting period start and must not roll back the deposit count. The vote
        already cast most often in this period wins, ties going to the earliest
        cast; with no valid votes the latest candidate is used, and with no
        candidates the state's current eth1 data.
        """
        period_start = voting_period_start_time(state, self.config)
        state_deposit_count = int(state.eth1_data.deposit_count)

        votes_to_consider = [
            block for block in self.blocks()
            if is_candidate_block(block, period_start, self.config)
            and block.deposit_count >= state_deposit_count
            and (self.deposits is None or block.deposit_count <= self.deposits.deposit_count)
        ]
        candidate_keys = {block.vote_key for block in votes_to_consider}

        valid_votes = [
            vote for vote in state.eth1_data_votes
            if eth1_data_key(vote) in candidate_keys
        ]
        if valid_votes:
            keys = [eth1_data_key(vote) for vote in valid_votes]
            best = max(
                range(len(valid_votes)),
                key=lambda i: (keys.count(keys[i]), -keys.index(keys[i])),
            )
            return valid_votes[best].copy()

        if votes_to_consider:
            return votes_to_consider[-1].to_eth1_data()
        return state.eth1_data.copy()

    async def refresh(self, provider: Eth1Provider) -> int:
        """Fetch blocks up to the follow distance behind the eth1 head.

        Blocks are requested concurrently; pass a ThrottlingEth1Provider to
        bound the fan-out. Deposit logs are synced afterwards when a
        DepositProvider is attached.

        Returns:
            Number of new blocks cached
        """
        latest = await provider.get_latest_block()
        follow_distance = self.config.eth1_follow_distance
        head = latest.number - follow_distance
        if head < 0:
            return 0

        oldest_needed = max(0, head - 2 * follow_distance)
        start = max(oldest_needed, max(self._blocks, default=-1) + 1)
        end = min(head, start + self.max_blocks_per_refresh - 1)
        added = 0
        if start <= end:
            results = await asyncio.gather(
                *(self._fetch_block(provider, number) for number in range(start, end + 1))
            )
            for block in results:
                if block is not None:
                    self._blocks[block.number] = block
                    added += 1

        for number in [n for n in self._blocks if n < oldest_needed]:
            del self._blocks[number]

        logger.debug(f"Eth1 cache refreshed: +{added} blocks ({start}..{end}), size={len(self._blocks)}")

        if self.deposits is not None and self._blocks:
            await self.deposits.sync_logs(provider, max(self._blocks))
        return added

    async def _fetch_block(self, provider: Eth1Provider, number: int) -> Optional[Eth1BlockData]:
        header = await provider.get_block_by_number(number)
        if header is None:
            logger.warning(f"Eth1 block {number} not found")
            return None

        contract = self.config.deposit_contract_address
        root_result, count_result = await asyncio.gather(
            provider.call(contract, GET_DEPOSIT_ROOT_SELECTOR, number),
            provider.call(contract, GET_DEPOSIT_COUNT_SELECTOR, number),
        )
        return Eth1BlockData(
            number=header.number,
            block_hash=header.block_hash,
            timestamp=header.timestamp,
            deposit_root=decode_deposit_root(root_result),
            deposit_count=decode_deposit_count(count_result),
        )
