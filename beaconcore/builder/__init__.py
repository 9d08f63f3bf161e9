"""Block assembly."""

from .block_assembler import BlockAssembler, get_post_vote_eth1_data

__all__ = ["BlockAssembler", "get_post_vote_eth1_data"]
