"""Eth1Provider wrapper that bounds concurrent requests."""

from typing import Optional

from ..concurrency import ThrottlingRequestGate
from .provider import Eth1Provider
from .types import Eth1BlockHeader


class ThrottlingEth1Provider:
    """Route every call of a delegate provider through a ThrottlingRequestGate."""

    def __init__(self, delegate: Eth1Provider, gate: ThrottlingRequestGate):
        self._delegate = delegate
        self._gate = gate

    @classmethod
    def with_limit(cls, delegate: Eth1Provider, max_in_flight: int) -> "ThrottlingEth1Provider":
        return cls(delegate, ThrottlingRequestGate(max_in_flight, name="eth1"))

    async def get_latest_block(self) -> Eth1BlockHeader:
        return await self._gate.run(self._delegate.get_latest_block)

    async def get_block_by_number(self, number: int) -> Optional[Eth1BlockHeader]:
        return await self._gate.run(lambda: self._delegate.get_block_by_number(number))

    async def get_block_by_hash(self, block_hash: bytes) -> Optional[Eth1BlockHeader]:
        return await self._gate.run(lambda: self._delegate.get_block_by_hash(block_hash))

    async def call(self, to: bytes, data: bytes, block_number: int) -> bytes:
        return await self._gate.run(lambda: self._delegate.call(to, data, block_number))

    async def get_logs(self, address: bytes, topic: bytes, from_block: int, to_block: int) -> list[dict]:
        return await self._gate.run(lambda: self._delegate.get_logs(address, topic, from_block, to_block))
