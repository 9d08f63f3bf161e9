"""Executable validator duties."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from ..spec.state_transition.helpers.misc import compute_epoch_at_slot
from ..spec.types import AggregateAndProof, Attestation, BLSSignature, Bitlist
from ..spec.constants import MAX_VALIDATORS_PER_COMMITTEE
from ..exceptions import DutyExecutionError, StateTransitionError
from .api import ValidatorApi
from .fork_provider import ForkProvider
from .signer import LocalSigner
from .types import ValidatorKey, AttesterDuty

logger = logging.getLogger(__name__)

AggregationBits = Bitlist[MAX_VALIDATORS_PER_COMMITTEE]


class Duty(Protocol):
    kind: str

    @property
    def name(self) -> str: ...

    async def perform(self) -> None: ...


@dataclass(frozen=True)
class DutyContext:
    """Collaborators shared by every duty of a loader."""

    api: ValidatorApi
    signer: LocalSigner
    fork_provider: ForkProvider


@dataclass(frozen=True)
class BlockProductionDuty:
    """Propose a block at slot with a local key."""

    context: DutyContext
    key: ValidatorKey
    slot: int
    kind: str = "block_production"

    @property
    def name(self) -> str:
        return f"{self.kind}(slot={self.slot}, validator={self.key.validator_index})"

    async def perform(self) -> None:
        fork_info = await self.context.fork_provider.get_fork_info(self.slot)
        randao_reveal = self.context.signer.sign_randao_reveal(
            self.key, compute_epoch_at_slot(self.slot), fork_info
        )
        try:
            block = await self.context.api.create_unsigned_block(self.slot, randao_reveal)
        except StateTransitionError as e:
            raise DutyExecutionError(self.name, f"block creation failed: {e}") from e

        signed_block = self.context.signer.sign_block(self.key, block, fork_info)
        try:
            await self.context.api.send_signed_block(signed_block)
        except StateTransitionError as e:
            raise DutyExecutionError(self.name, f"block import failed: {e}") from e
        logger.info(f"Proposed block at slot {self.slot} (validator {self.key.validator_index})")


@dataclass(frozen=True)
class AttestationProductionDuty:
    """Produce and publish single-validator attestations for one slot."""

    context: DutyContext
    slot: int
    assignments: tuple[tuple[ValidatorKey, AttesterDuty], ...]
    kind: str = "attestation_production"

    @property
    def name(self) -> str:
        return f"{self.kind}(slot={self.slot}, validators={len(self.assignments)})"

    async def perform(self) -> None:
        fork_info = await self.context.fork_provider.get_fork_info(self.slot)

        data_by_committee = {}
        for committee_index in sorted({duty.committee_index for _, duty in self.assignments}):
            data_by_committee[committee_index] = await self.context.api.create_attestation_data(
                self.slot, committee_index
            )

        async def attest(key: ValidatorKey, duty: AttesterDuty) -> None:
            data = data_by_committee[duty.committee_index]
            aggregation_bits = AggregationBits()
            for i in range(duty.committee_length):
                aggregation_bits.append(i == duty.validator_committee_index)
            signature = self.context.signer.sign_attestation_data(key, data, fork_info)
            await self.context.api.send_attestation(Attestation(
                aggregation_bits=aggregation_bits,
                data=data,
                signature=BLSSignature(signature),
            ))

        results = await asyncio.gather(
            *(attest(key, duty) for key, duty in self.assignments),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            raise DutyExecutionError(
                self.name, f"{len(failures)} of {len(results)} attestations failed: {failures[0]}"
            )
        logger.debug(f"Published {len(results)} attestations for slot {self.slot}")


@dataclass(frozen=True)
class Aggregator:
    key: ValidatorKey
    committee_index: int
    selection_proof: bytes


@dataclass(frozen=True)
class AggregationDuty:
    """Publish aggregates for committees a local validator was selected for."""

    context: DutyContext
    slot: int
    aggregators: tuple[Aggregator, ...]
    kind: str = "attestation_aggregation"

    @property
    def name(self) -> str:
        return f"{self.kind}(slot={self.slot}, aggregators={len(self.aggregators)})"

    async def perform(self) -> None:
        fork_info = await self.context.fork_provider.get_fork_info(self.slot)
        published = 0
        for aggregator in self.aggregators:
            aggregate = await self.context.api.get_aggregate(self.slot, aggregator.committee_index)
            if aggregate is None:
                logger.debug(
                    f"No attestations to aggregate for slot {self.slot}, "
                    f"committee {aggregator.committee_index}"
                )
                continue
            aggregate_and_proof = AggregateAndProof(
                aggregator_index=aggregator.key.validator_index,
                aggregate=aggregate,
                selection_proof=BLSSignature(aggregator.selection_proof),
            )
            signed = self.context.signer.sign_aggregate_and_proof(
                aggregator.key, aggregate_and_proof, fork_info
            )
            await self.context.api.send_aggregate(signed)
            published += 1
        logger.debug(f"Published {published} aggregates for slot {self.slot}")
