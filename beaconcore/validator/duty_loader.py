"""Loading of per-epoch validator duties."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Protocol, Sequence

from ..config import RetryPolicy
from ..concurrency import ThrottlingRequestGate
from ..exceptions import DutyLoadError, ExternalRequestError, StateTransitionError
from ..spec.constants import SLOTS_PER_EPOCH
from .. import metrics
from .api import ValidatorApi
from .duties import (
    Aggregator,
    AggregationDuty,
    AttestationProductionDuty,
    BlockProductionDuty,
    DutyContext,
)
from .signer import is_aggregator
from .types import ValidatorKey

logger = logging.getLogger(__name__)


def _empty() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class ScheduledDuties:
    """All duties of local validators for one epoch, by slot."""

    epoch: int
    block_duties: Mapping[int, tuple[BlockProductionDuty, ...]] = field(default_factory=_empty)
    attestation_duties: Mapping[int, tuple[AttestationProductionDuty, ...]] = field(default_factory=_empty)
    aggregation_duties: Mapping[int, tuple[AggregationDuty, ...]] = field(default_factory=_empty)

    def block_production_duties(self, slot: int) -> tuple[BlockProductionDuty, ...]:
        return self.block_duties.get(slot, ())

    def attestation_production_duties(self, slot: int) -> tuple[AttestationProductionDuty, ...]:
        return self.attestation_duties.get(slot, ())

    def aggregation_duties_at(self, slot: int) -> tuple[AggregationDuty, ...]:
        return self.aggregation_duties.get(slot, ())

    @property
    def duty_count(self) -> int:
        return sum(
            len(duties)
            for mapping in (self.block_duties, self.attestation_duties, self.aggregation_duties)
            for duties in mapping.values()
        )


def _freeze(mapping: dict) -> Mapping:
    return MappingProxyType({slot: tuple(duties) for slot, duties in mapping.items()})


class DutyLoader(Protocol):
    async def load_duties(self, epoch: int) -> ScheduledDuties: ...


class ValidatorApiDutyLoader:
    """Build ScheduledDuties for local keys from validator API queries.

    Aggregator committees are subscribed while loading so subnets are joined
    ahead of the aggregation slot.
    """

    def __init__(self, context: DutyContext, keys: Sequence[ValidatorKey]):
        self.context = context
        self.keys = list(keys)

    async def load_duties(self, epoch: int) -> ScheduledDuties:
        """Load duties for epoch.

        Raises:
            DutyLoadError: If any query fails
        """
        api = self.context.api
        start_slot = epoch * SLOTS_PER_EPOCH()
        try:
            indices = await api.get_validator_indices([key.pubkey for key in self.keys])
            for key in self.keys:
                key.validator_index = indices.get(key.pubkey)
            keys_by_index = {
                key.validator_index: key for key in self.keys if key.validator_index is not None
            }

            proposer_duties = await api.get_proposer_duties(epoch)
            attester_duties = await api.get_attester_duties(epoch, list(keys_by_index))
            fork_info = await self.context.fork_provider.get_fork_info(start_slot)
        except (ExternalRequestError, StateTransitionError) as e:
            raise DutyLoadError(epoch, str(e)) from e

        blocks: dict[int, list] = defaultdict(list)
        for duty in proposer_duties:
            key = keys_by_index.get(duty.validator_index)
            if key is not None:
                blocks[duty.slot].append(BlockProductionDuty(self.context, key, duty.slot))

        attesting: dict[int, list] = defaultdict(list)
        aggregating: dict[int, list[Aggregator]] = defaultdict(list)
        for duty in attester_duties:
            key = keys_by_index[duty.validator_index]
            attesting[duty.slot].append((key, duty))

            selection_proof = self.context.signer.sign_selection_proof(key, duty.slot, fork_info)
            if is_aggregator(duty.committee_length, selection_proof):
                aggregating[duty.slot].append(Aggregator(key, duty.committee_index, selection_proof))
                try:
                    await api.subscribe_to_committee(duty.committee_index, duty.slot)
                except ExternalRequestError as e:
                    raise DutyLoadError(epoch, f"subnet subscription failed: {e}") from e

        duties = ScheduledDuties(
            epoch=epoch,
            block_duties=_freeze(blocks),
            attestation_duties=_freeze({
                slot: [AttestationProductionDuty(self.context, slot, tuple(assignments))]
                for slot, assignments in attesting.items()
            }),
            aggregation_duties=_freeze({
                slot: [AggregationDuty(self.context, slot, tuple(aggregators))]
                for slot, aggregators in aggregating.items()
            }),
        )
        logger.info(
            f"Loaded duties for epoch {epoch}: {sum(len(d) for d in blocks.values())} proposals, "
            f"{len(attester_duties)} attestations, "
            f"{sum(len(a) for a in aggregating.values())} aggregations"
        )
        return duties


class RetryingDutyLoader:
    """Retry a DutyLoader with exponential backoff.

    Attempts are admitted through a ThrottlingRequestGate so concurrent epoch
    loads do not pile up on the API.
    """

    def __init__(
        self,
        delegate: DutyLoader,
        policy: Optional[RetryPolicy] = None,
        gate: Optional[ThrottlingRequestGate] = None,
    ):
        self.delegate = delegate
        self.policy = policy or RetryPolicy()
        self.gate = gate or ThrottlingRequestGate(1, name="duty_load")

    async def load_duties(self, epoch: int) -> ScheduledDuties:
        """Load duties, retrying DutyLoadError until success or the policy gives up.

        Raises:
            DutyLoadError: The last failure once max_attempts is exhausted
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                duties = await self.gate.run(lambda: self.delegate.load_duties(epoch))
            except DutyLoadError as e:
                metrics.record_duty_load(False)
                if not self.policy.should_retry(attempt):
                    logger.error(f"Giving up loading duties for epoch {epoch} after {attempt} attempts: {e}")
                    raise
                delay = self.policy.delay_for(attempt)
                logger.warning(f"{e}; retrying in {delay:.2f}s (attempt {attempt})")
                await asyncio.sleep(delay)
                continue

            metrics.record_duty_load(True)
            return duties
