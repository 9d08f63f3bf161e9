"""Slot-driven dispatch of loaded validator duties."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Sequence

from ..exceptions import DutyExecutionError, DutyLoadError
from ..spec.state_transition.helpers.misc import compute_epoch_at_slot
from .. import metrics
from .duties import Duty
from .duty_loader import DutyLoader, ScheduledDuties

logger = logging.getLogger(__name__)

DutySelector = Callable[[ScheduledDuties], Sequence[Duty]]


class EpochLoadState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


class DutyScheduler:
    """Keep duties loaded for the current and next epoch and run them on time.

    The on_*_due handlers are synchronous: they start tasks and return, and
    never wait for a duty load. Actions for an epoch that is still loading are
    queued and run as soon as its load finishes; other loaded epochs keep
    dispatching in the meantime.
    """

    def __init__(self, loader: DutyLoader):
        self.loader = loader
        self._states: dict[int, EpochLoadState] = {}
        self._duties: dict[int, ScheduledDuties] = {}
        self._pending: dict[int, list[Callable[[ScheduledDuties], None]]] = {}
        self._loads: dict[int, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()

    def load_state(self, epoch: int) -> EpochLoadState:
        return self._states.get(epoch, EpochLoadState.UNLOADED)

    def duties_for(self, epoch: int) -> ScheduledDuties | None:
        return self._duties.get(epoch)

    def on_epoch(self, epoch: int) -> None:
        """Make sure epoch and epoch + 1 are loading or loaded; drop older epochs.

        A load still running for a dropped epoch is cancelled.
        """
        for target in (epoch, epoch + 1):
            self._ensure_loading(target)

        for old_epoch in [e for e in self._states if e < epoch - 1]:
            self._states.pop(old_epoch, None)
            self._duties.pop(old_epoch, None)
            self._pending.pop(old_epoch, None)
            load = self._loads.pop(old_epoch, None)
            if load is not None:
                logger.info(f"Cancelling duty load for pruned epoch {old_epoch}")
                load.cancel()

    def on_block_production_due(self, slot: int) -> None:
        self._dispatch(slot, lambda duties: duties.block_production_duties(slot))

    def on_attestation_creation_due(self, slot: int) -> None:
        self._dispatch(slot, lambda duties: duties.attestation_production_duties(slot))

    def on_attestation_aggregation_due(self, slot: int) -> None:
        self._dispatch(slot, lambda duties: duties.aggregation_duties_at(slot))

    def cancel_loads(self) -> None:
        """Cancel every duty load still in progress (used on shutdown)."""
        for epoch, load in list(self._loads.items()):
            del self._loads[epoch]
            self._states.pop(epoch, None)
            dropped = len(self._pending.pop(epoch, []))
            logger.info(f"Cancelling duty load for epoch {epoch}; dropping {dropped} queued dispatches")
            load.cancel()

    async def wait_for_pending(self) -> None:
        """Wait until every started load and duty task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _ensure_loading(self, epoch: int) -> None:
        if self.load_state(epoch) is not EpochLoadState.UNLOADED:
            return
        self._states[epoch] = EpochLoadState.LOADING
        self._loads[epoch] = self._spawn(self._load(epoch))

    def _abandon(self, epoch: int) -> int:
        """Forget an epoch whose load ended without duties; return dropped dispatches.

        A load that was pruned or cancelled no longer owns the epoch's entries.
        """
        if self._loads.get(epoch) is not asyncio.current_task():
            return 0
        del self._loads[epoch]
        self._states.pop(epoch, None)
        return len(self._pending.pop(epoch, []))

    async def _load(self, epoch: int) -> None:
        try:
            duties = await self.loader.load_duties(epoch)
        except DutyLoadError as e:
            dropped = self._abandon(epoch)
            logger.error(f"{e}; dropping {dropped} queued dispatches")
            return
        except asyncio.CancelledError:
            self._abandon(epoch)
            logger.debug(f"Duty load for epoch {epoch} cancelled")
            raise
        except Exception:
            dropped = self._abandon(epoch)
            logger.error(
                f"Unexpected error loading duties for epoch {epoch}; dropping {dropped} queued dispatches",
                exc_info=True,
            )
            raise

        if self._loads.get(epoch) is not asyncio.current_task():
            # Pruned while loading
            return
        del self._loads[epoch]
        self._duties[epoch] = duties
        self._states[epoch] = EpochLoadState.LOADED
        logger.debug(f"Duties for epoch {epoch} loaded ({duties.duty_count} duties)")

        for action in self._pending.pop(epoch, []):
            action(duties)

    def _dispatch(self, slot: int, select: DutySelector) -> None:
        epoch = compute_epoch_at_slot(slot)

        def action(duties: ScheduledDuties) -> None:
            selected = list(select(duties))
            if selected:
                self._spawn(self._perform_all(selected))

        state = self.load_state(epoch)
        if state is EpochLoadState.LOADED:
            action(self._duties[epoch])
            return

        if state is EpochLoadState.UNLOADED:
            logger.warning(f"Duties for epoch {epoch} not loaded at slot {slot}; loading now")
            self._ensure_loading(epoch)
        self._pending.setdefault(epoch, []).append(action)

    async def _perform_all(self, duties: list[Duty]) -> None:
        results = await asyncio.gather(*(duty.perform() for duty in duties), return_exceptions=True)
        for duty, result in zip(duties, results):
            if isinstance(result, BaseException):
                if isinstance(result, DutyExecutionError):
                    error = result
                else:
                    error = DutyExecutionError(duty.name, f"{type(result).__name__}: {result}")
                logger.error(str(error))
                metrics.record_duty(duty.kind, success=False)
            else:
                metrics.record_duty(duty.kind, success=True)
