"""Eth1 (deposit chain) data types."""

from dataclasses import dataclass
from typing import Optional

from ..spec.types import DepositData, Eth1Data, Root, Hash32

# keccak256("DepositEvent(bytes,bytes,bytes,bytes,bytes)")
DEPOSIT_EVENT_TOPIC = bytes.fromhex("649bbc62d0e31342afea4e5cd82d4049e7e1ee912fc0889aa790803be39038c5")


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _hex_to_int(value) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


@dataclass(frozen=True)
class Eth1BlockHeader:
    """The parts of an eth1 block header the beacon chain cares about."""

    number: int
    block_hash: bytes
    parent_hash: bytes
    timestamp: int

    @classmethod
    def from_dict(cls, data: dict) -> "Eth1BlockHeader":
        return cls(
            number=_hex_to_int(data["number"]),
            block_hash=_hex_to_bytes(data["hash"]),
            parent_hash=_hex_to_bytes(data["parentHash"]),
            timestamp=_hex_to_int(data["timestamp"]),
        )


@dataclass(frozen=True)
class Eth1BlockData:
    """An eth1 block together with the deposit contract state at that block."""

    number: int
    block_hash: bytes
    timestamp: int
    deposit_root: bytes
    deposit_count: int

    def to_eth1_data(self) -> Eth1Data:
        return Eth1Data(
            deposit_root=Root(self.deposit_root),
            deposit_count=self.deposit_count,
            block_hash=Hash32(self.block_hash),
        )

    @property
    def vote_key(self) -> tuple[bytes, int, bytes]:
        return (self.deposit_root, self.deposit_count, self.block_hash)


def eth1_data_key(eth1_data: Eth1Data) -> tuple[bytes, int, bytes]:
    """Hashable identity of an Eth1Data value."""
    return (bytes(eth1_data.deposit_root), int(eth1_data.deposit_count), bytes(eth1_data.block_hash))


def decode_deposit_count(result: bytes) -> int:
    """Decode the ABI-encoded `bytes` returned by get_deposit_count().

    The payload is an 8-byte little-endian integer after the offset and
    length words.
    """
    if len(result) < 72:
        raise ValueError(f"Deposit count response too short: {len(result)} bytes")
    return int.from_bytes(result[64:72], "little")


def decode_deposit_root(result: bytes) -> bytes:
    if len(result) < 32:
        raise ValueError(f"Deposit root response too short: {len(result)} bytes")
    return result[:32]


def parse_block(data: Optional[dict]) -> Optional[Eth1BlockHeader]:
    return None if data is None else Eth1BlockHeader.from_dict(data)


@dataclass(frozen=True)
class DepositLog:
    """A DepositEvent emitted by the deposit contract."""

    index: int
    block_number: int
    data: DepositData


def _abi_bytes_field(data: bytes, position: int) -> bytes:
    offset = int.from_bytes(data[position * 32:(position + 1) * 32], "big")
    length = int.from_bytes(data[offset:offset + 32], "big")
    value = data[offset + 32:offset + 32 + length]
    if len(value) != length:
        raise ValueError(f"Truncated ABI bytes field {position}")
    return value


def decode_deposit_log(log: dict) -> DepositLog:
    """Decode an eth_getLogs entry for DepositEvent.

    The event carries five ABI `bytes` values in order: pubkey, withdrawal
    credentials, amount, signature and index. Amount and index are 8-byte
    little-endian integers.

    Raises:
        ValueError: If the log is not a well-formed DepositEvent
    """
    topics = log.get("topics") or []
    if not topics or _hex_to_bytes(topics[0]) != DEPOSIT_EVENT_TOPIC:
        raise ValueError("Not a DepositEvent log")

    data = _hex_to_bytes(log["data"])
    if len(data) < 5 * 32:
        raise ValueError(f"DepositEvent data too short: {len(data)} bytes")
    pubkey, withdrawal_credentials, amount, signature, index = (
        _abi_bytes_field(data, position) for position in range(5)
    )
    if (len(pubkey), len(withdrawal_credentials), len(amount), len(signature), len(index)) != (48, 32, 8, 96, 8):
        raise ValueError("DepositEvent field has an unexpected length")

    return DepositLog(
        index=int.from_bytes(index, "little"),
        block_number=_hex_to_int(log["blockNumber"]),
        data=DepositData(
            pubkey=pubkey,
            withdrawal_credentials=withdrawal_credentials,
            amount=int.from_bytes(amount, "little"),
            signature=signature,
        ),
    )
