"""Exception taxonomy for beaconcore.

Transition errors are fatal to the attempt that raised them and are never
retried. Duty-load errors are retried by the scheduler; duty-execution errors
are reported per duty.
"""

from typing import Optional


class BeaconCoreError(Exception):
    """Base class for all beaconcore errors."""


class ConfigError(BeaconCoreError):
    """Invalid configuration detected at construction time."""


class StateTransitionError(BeaconCoreError):
    """A state transition could not be completed."""


class SlotProcessingError(StateTransitionError):
    """Per-slot processing failed or the target slot is not reachable."""


class EpochProcessingError(StateTransitionError):
    """Epoch boundary processing failed."""


class BlockProcessingError(StateTransitionError):
    """A block violates a block processing rule."""


class DutyLoadError(BeaconCoreError):
    """Duties for an epoch could not be loaded."""

    def __init__(self, epoch: int, message: str):
        self.epoch = epoch
        self.message = message
        super().__init__(f"Failed to load duties for epoch {epoch}: {message}")


class DutyExecutionError(BeaconCoreError):
    """A single duty failed to execute."""

    def __init__(self, duty: str, message: str):
        self.duty = duty
        self.message = message
        super().__init__(f"Duty {duty} failed: {message}")


class ExternalRequestError(BeaconCoreError):
    """An external data provider request failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        self.message = message
        if status is None:
            super().__init__(f"External request error: {message}")
        else:
            super().__init__(f"External request error {status}: {message}")
