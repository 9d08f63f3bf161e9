"""Beacon node orchestration: wiring and the slot ticker."""

import asyncio
import logging
import time
from typing import Optional, Sequence

from . import __version__, metrics
from .attestation_pool import AttestationPool
from .builder import BlockAssembler
from .concurrency import ThrottlingRequestGate
from .config import Config
from .eth1 import DepositProvider, Eth1DataCache, Eth1Provider, JsonRpcEth1Provider, ThrottlingEth1Provider
from .exceptions import ExternalRequestError
from .p2p import (
    GossipHost,
    GossipPublisher,
    GossipTopicSubnets,
    InProcessGossipHost,
    SubnetSubscriptionTracker,
)
from .spec.constants import SLOTS_PER_EPOCH
from .spec.genesis import get_genesis_block
from .spec.network_config import NetworkConfig, get_config
from .spec.state_transition.helpers.misc import compute_fork_digest
from .spec.types import BeaconState
from .validator import (
    DutyContext,
    DutyScheduler,
    ForkProvider,
    LocalSigner,
    LocalValidatorApi,
    RetryingDutyLoader,
    ValidatorApiDutyLoader,
    ValidatorKey,
)

logger = logging.getLogger(__name__)


class BeaconNode:
    """Single-process beacon node driving local validators off a slot clock.

    At the start of each slot block production is dispatched, at 1/3 of the
    slot attestations, and at 2/3 aggregates. Epoch starts trigger duty
    loading for the epoch and the next one.
    """

    def __init__(
        self,
        config: Config,
        genesis_state: BeaconState,
        keys: Sequence[ValidatorKey],
        host: Optional[GossipHost] = None,
        eth1_provider: Optional[Eth1Provider] = None,
        network_config: Optional[NetworkConfig] = None,
    ):
        self.config = config
        self.network_config = network_config or get_config()
        self.genesis_time = int(genesis_state.genesis_time)
        self.host = host or InProcessGossipHost()

        fork_digest = compute_fork_digest(
            bytes(genesis_state.fork.current_version),
            bytes(genesis_state.genesis_validators_root),
        )

        if eth1_provider is None and config.eth1_endpoint:
            eth1_provider = JsonRpcEth1Provider(
                config.eth1_endpoint,
                timeout=config.eth1_request_timeout,
                jwt_secret=config.eth1_jwt_secret,
            )
        self._raw_eth1_provider = eth1_provider
        self.eth1_provider: Optional[Eth1Provider] = None
        if eth1_provider is not None:
            self.eth1_provider = ThrottlingEth1Provider.with_limit(eth1_provider, config.eth1_max_in_flight)

        self.attestation_pool = AttestationPool()
        self.deposit_provider = DepositProvider(self.network_config)
        self.eth1_data_cache = Eth1DataCache(self.network_config, deposits=self.deposit_provider)
        self.assembler = BlockAssembler(
            self.attestation_pool,
            self.deposit_provider,
            self.eth1_data_cache,
            graffiti=config.graffiti_bytes,
        )
        self.subnet_tracker = SubnetSubscriptionTracker(GossipTopicSubnets(self.host, fork_digest))
        self.api = LocalValidatorApi(
            genesis_state,
            get_genesis_block(genesis_state),
            self.assembler,
            self.attestation_pool,
            self.subnet_tracker,
            publisher=GossipPublisher(self.host, fork_digest),
            verify_signatures=config.verify_signatures,
        )
        self.fork_provider = ForkProvider(self.api)
        context = DutyContext(api=self.api, signer=LocalSigner(), fork_provider=self.fork_provider)
        self.scheduler = DutyScheduler(
            RetryingDutyLoader(
                ValidatorApiDutyLoader(context, keys),
                policy=config.retry,
                gate=ThrottlingRequestGate(config.duty_load_concurrency, name="duty_load"),
            )
        )

        self._running = False
        self._ticker_task: Optional[asyncio.Task] = None
        self._eth1_refresh_task: Optional[asyncio.Task] = None
        self._last_epoch_signalled: Optional[int] = None

    @property
    def seconds_per_slot(self) -> int:
        return self.network_config.seconds_per_slot

    def slot_at(self, timestamp: float) -> int:
        if timestamp < self.genesis_time:
            return 0
        return int((timestamp - self.genesis_time) // self.seconds_per_slot)

    def slot_start_time(self, slot: int) -> float:
        return self.genesis_time + slot * self.seconds_per_slot

    async def start(self) -> None:
        """Start the metrics server and the slot ticker."""
        logger.info(f"Starting beaconcore {__version__} (preset {self.config.preset})")
        if self.config.metrics_port:
            metrics.start_metrics_server(self.config.metrics_port)
        metrics.set_node_info(
            version=__version__,
            network=self.network_config.config_name,
            preset=self.config.preset,
        )

        self._running = True
        self._ticker_task = asyncio.create_task(self._slot_ticker())

    async def stop(self) -> None:
        """Stop the ticker and wait for in-flight duties."""
        logger.info("Stopping beacon node")
        self._running = False

        for task in (self._ticker_task, self._eth1_refresh_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self.scheduler.cancel_loads()
        await self.scheduler.wait_for_pending()
        if isinstance(self._raw_eth1_provider, JsonRpcEth1Provider):
            await self._raw_eth1_provider.close()

    async def on_slot_start(self, slot: int) -> None:
        """Handle the start of a slot (0/3 mark)."""
        epoch = slot // SLOTS_PER_EPOCH()
        logger.info(f"Slot {slot} (epoch {epoch})")

        if self._last_epoch_signalled is None or epoch > self._last_epoch_signalled:
            self._last_epoch_signalled = epoch
            self.scheduler.on_epoch(epoch)
            self.fork_provider.prune(epoch - 1)
            self._start_eth1_refresh()

        self.scheduler.on_block_production_due(slot)
        await self.subnet_tracker.on_slot(slot)
        self.attestation_pool.prune(slot)

    def on_attestation_due(self, slot: int) -> None:
        """Handle the 1/3 mark of a slot."""
        self.scheduler.on_attestation_creation_due(slot)

    def on_aggregation_due(self, slot: int) -> None:
        """Handle the 2/3 mark of a slot."""
        self.scheduler.on_attestation_aggregation_due(slot)

    def _start_eth1_refresh(self) -> None:
        if self.eth1_provider is None:
            return
        if self._eth1_refresh_task is not None and not self._eth1_refresh_task.done():
            return
        self._eth1_refresh_task = asyncio.create_task(self._refresh_eth1())

    async def _refresh_eth1(self) -> None:
        try:
            added = await self.eth1_data_cache.refresh(self.eth1_provider)
        except (ExternalRequestError, ValueError) as e:
            logger.warning(f"Eth1 cache refresh failed: {e}")
            return
        logger.debug(f"Eth1 cache refresh added {added} blocks")

    async def _sleep_until(self, timestamp: float) -> None:
        delay = timestamp - time.time()
        if delay > 0:
            await asyncio.sleep(delay)

    async def _slot_ticker(self) -> None:
        """Tick every slot and fire duties at their intra-slot offsets.

        - 0: block proposal
        - 1/3: attestation production
        - 2/3: aggregation
        """
        slot = self.slot_at(time.time())
        if time.time() > self.slot_start_time(slot):
            # Joined mid-slot; start with the next full slot
            slot += 1

        while self._running:
            try:
                slot_start = self.slot_start_time(slot)
                await self._sleep_until(slot_start)
                await self.on_slot_start(slot)

                await self._sleep_until(slot_start + self.seconds_per_slot / 3)
                self.on_attestation_due(slot)

                await self._sleep_until(slot_start + 2 * self.seconds_per_slot / 3)
                self.on_aggregation_due(slot)
            except asyncio.CancelledError:
                logger.info("Slot ticker cancelled")
                raise
            except Exception as e:
                logger.error(f"Slot ticker error at slot {slot}: {e}", exc_info=True)

            slot = max(slot + 1, self.slot_at(time.time()))


async def run_node(
    config: Config,
    genesis_state: BeaconState,
    keys: Sequence[ValidatorKey],
) -> None:
    """Run a beacon node until cancelled."""
    node = BeaconNode(config, genesis_state, keys)
    try:
        await node.start()
        while True:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        pass
    finally:
        await node.stop()
