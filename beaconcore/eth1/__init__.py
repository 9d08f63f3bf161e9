"""Deposit chain access: provider, throttling, eth1 vote and deposits."""

from .types import Eth1BlockHeader, Eth1BlockData
from .provider import Eth1Provider, JsonRpcEth1Provider
from .throttling import ThrottlingEth1Provider
from .eth1_data_cache import Eth1DataCache, voting_period_start_time, is_candidate_block
from .deposit_provider import DepositProvider

__all__ = [
    "Eth1BlockHeader",
    "Eth1BlockData",
    "Eth1Provider",
    "JsonRpcEth1Provider",
    "ThrottlingEth1Provider",
    "Eth1DataCache",
    "voting_period_start_time",
    "is_candidate_block",
    "DepositProvider",
]
