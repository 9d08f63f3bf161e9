"""Per-epoch fork info lookup shared by concurrent duties."""

import asyncio
import logging

from ..spec.state_transition.helpers.misc import compute_epoch_at_slot
from .api import ValidatorApi
from .types import ForkInfo

logger = logging.getLogger(__name__)


class ForkProvider:
    """Fetch fork info once per epoch.

    Concurrent callers for the same epoch await one shared task. A failed
    lookup is not cached, so the next caller retries.
    """

    def __init__(self, api: ValidatorApi):
        self._api = api
        self._lookups: dict[int, asyncio.Task] = {}

    async def get_fork_info(self, slot: int) -> ForkInfo:
        epoch = compute_epoch_at_slot(slot)
        task = self._lookups.get(epoch)
        if task is None or (task.done() and (task.cancelled() or task.exception() is not None)):
            task = asyncio.ensure_future(self._api.get_fork_info(epoch))
            self._lookups[epoch] = task
        # Shielded so one cancelled duty does not cancel the lookup for the others
        return await asyncio.shield(task)

    def prune(self, before_epoch: int) -> None:
        for epoch in [e for e in self._lookups if e < before_epoch]:
            del self._lookups[epoch]
