"""Validator duties: loading, scheduling and execution."""

from .types import ValidatorKey, ProposerDuty, AttesterDuty, ForkInfo
from .signer import LocalSigner, is_aggregator
from .api import ValidatorApi, LocalValidatorApi, Publisher
from .fork_provider import ForkProvider
from .duties import (
    DutyContext,
    BlockProductionDuty,
    AttestationProductionDuty,
    AggregationDuty,
    Aggregator,
)
from .duty_loader import (
    ScheduledDuties,
    DutyLoader,
    ValidatorApiDutyLoader,
    RetryingDutyLoader,
)
from .scheduler import DutyScheduler, EpochLoadState

__all__ = [
    "ValidatorKey",
    "ProposerDuty",
    "AttesterDuty",
    "ForkInfo",
    "LocalSigner",
    "is_aggregator",
    "ValidatorApi",
    "LocalValidatorApi",
    "Publisher",
    "ForkProvider",
    "DutyContext",
    "BlockProductionDuty",
    "AttestationProductionDuty",
    "AggregationDuty",
    "Aggregator",
    "ScheduledDuties",
    "DutyLoader",
    "ValidatorApiDutyLoader",
    "RetryingDutyLoader",
    "DutyScheduler",
    "EpochLoadState",
]
