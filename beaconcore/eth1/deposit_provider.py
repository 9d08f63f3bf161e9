"""In-memory deposit Merkle tree and deposit proofs."""

import logging
from typing import TYPE_CHECKING, Optional

from ..crypto import sha256, hash_tree_root
from ..spec.network_config import NetworkConfig, get_config
from ..spec.constants import DEPOSIT_CONTRACT_TREE_DEPTH, MAX_DEPOSITS
from ..spec.types import Deposit, DepositData, Bytes32
from .types import DEPOSIT_EVENT_TOPIC, decode_deposit_log

if TYPE_CHECKING:
    from ..spec.types import BeaconState, Eth1Data
    from .provider import Eth1Provider

logger = logging.getLogger(__name__)

ZERO_HASHES = [b"\x00" * 32]
for _ in range(DEPOSIT_CONTRACT_TREE_DEPTH):
    ZERO_HASHES.append(sha256(ZERO_HASHES[-1] + ZERO_HASHES[-1]))


def _build_layers(leaves: list[bytes]) -> list[list[bytes]]:
    """Return the non-zero part of every tree layer, leaves first."""
    layers = [list(leaves)]
    for depth in range(DEPOSIT_CONTRACT_TREE_DEPTH):
        layer = layers[-1]
        parents = []
        for i in range(0, len(layer), 2):
            right = layer[i + 1] if i + 1 < len(layer) else ZERO_HASHES[depth]
            parents.append(sha256(layer[i] + right))
        layers.append(parents)
    return layers


def _mix_in_length(root: bytes, length: int) -> bytes:
    return sha256(root + length.to_bytes(32, "little"))


class DepositProvider:
    """Deposits seen on the deposit contract, in log order.

    Proofs are produced against the tree truncated to a given deposit count,
    so they verify against any eth1_data.deposit_root the chain has voted in.
    """

    def __init__(self, config: Optional[NetworkConfig] = None, max_log_range: int = 1000):
        self.config = config or get_config()
        self.max_log_range = max_log_range
        self._deposits: list[DepositData] = []
        self._leaves: list[bytes] = []
        self._layers_cache: Optional[tuple[int, list[list[bytes]]]] = None
        self._next_log_block = self.config.deposit_contract_block

    @property
    def deposit_count(self) -> int:
        return len(self._deposits)

    def add_deposit(self, deposit_data: DepositData) -> None:
        self._deposits.append(deposit_data)
        self._leaves.append(hash_tree_root(deposit_data))

    async def sync_logs(self, provider: "Eth1Provider", to_block: int) -> int:
        """Add the deposits the deposit contract logged up to to_block.

        Logs are requested in ranges of at most max_log_range blocks. Indices
        already in the tree are skipped; a missing index raises before the
        range is marked scanned, so the next sync asks for it again.

        Returns:
            Number of deposits added

        Raises:
            ValueError: If a log is malformed or deposit indices have a gap
        """
        added = 0
        contract = self.config.deposit_contract_address
        while self._next_log_block <= to_block:
            end = min(to_block, self._next_log_block + self.max_log_range - 1)
            logs = await provider.get_logs(contract, DEPOSIT_EVENT_TOPIC, self._next_log_block, end)
            for log in sorted((decode_deposit_log(entry) for entry in logs), key=lambda l: l.index):
                if log.index < self.deposit_count:
                    continue
                if log.index > self.deposit_count:
                    raise ValueError(
                        f"Deposit log gap: expected index {self.deposit_count}, "
                        f"got {log.index} in block {log.block_number}"
                    )
                self.add_deposit(log.data)
                added += 1
            self._next_log_block = end + 1

        if added:
            logger.info(f"Synced {added} deposits up to eth1 block {to_block} (total {self.deposit_count})")
        return added

    def _layers(self, count: int) -> list[list[bytes]]:
        if self._layers_cache is None or self._layers_cache[0] != count:
            self._layers_cache = (count, _build_layers(self._leaves[:count]))
        return self._layers_cache[1]

    def get_deposit_root(self, count: Optional[int] = None) -> bytes:
        """Deposit contract root (with length mix-in) after count deposits."""
        count = self.deposit_count if count is None else count
        if count > self.deposit_count:
            raise ValueError(f"Only {self.deposit_count} deposits known, asked for {count}")
        if count == 0:
            return _mix_in_length(ZERO_HASHES[DEPOSIT_CONTRACT_TREE_DEPTH], 0)
        return _mix_in_length(self._layers(count)[DEPOSIT_CONTRACT_TREE_DEPTH][0], count)

    def get_proof(self, index: int, count: int) -> list[bytes]:
        """Merkle branch of depth DEPOSIT_CONTRACT_TREE_DEPTH + 1 for a deposit."""
        if not 0 <= index < count <= self.deposit_count:
            raise ValueError(f"Cannot prove deposit {index} in a tree of {count}")
        layers = self._layers(count)
        proof = []
        position = index
        for depth in range(DEPOSIT_CONTRACT_TREE_DEPTH):
            sibling = position ^ 1
            layer = layers[depth]
            proof.append(layer[sibling] if sibling < len(layer) else ZERO_HASHES[depth])
            position //= 2
        proof.append(count.to_bytes(32, "little"))
        return proof

    def get_deposits(self, state: "BeaconState", eth1_data: "Eth1Data") -> list[Deposit]:
        """Deposits the next block must include, with proofs against eth1_data.

        Args:
            state: Pre-block state (its eth1_deposit_index is the first deposit)
            eth1_data: Eth1 data the block's deposits are checked against

        Returns:
            Up to MAX_DEPOSITS deposits, or none if the tree is behind eth1_data
        """
        start = int(state.eth1_deposit_index)
        count = int(eth1_data.deposit_count)
        end = min(count, start + MAX_DEPOSITS)
        if start >= end:
            return []

        if count > self.deposit_count:
            logger.error(
                f"Deposit tree has {self.deposit_count} deposits, eth1 data expects {count}"
            )
            return []
        if self.get_deposit_root(count) != bytes(eth1_data.deposit_root):
            logger.error(f"Deposit root mismatch at count {count}")
            return []

        return [
            Deposit(
                proof=[Bytes32(node) for node in self.get_proof(index, count)],
                data=self._deposits[index],
            )
            for index in range(start, end)
        ]
