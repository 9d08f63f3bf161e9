"""Prometheus metrics for beaconcore."""

import logging
import threading
from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 8008

node_info = Info(
    "beaconcore_node",
    "Node information",
)

# State transition
head_slot = Gauge(
    "beaconcore_head_slot",
    "Slot of the current chain head",
)

finalized_epoch = Gauge(
    "beaconcore_finalized_epoch",
    "Finalized epoch of the current chain head",
)

justified_epoch = Gauge(
    "beaconcore_justified_epoch",
    "Current justified epoch of the current chain head",
)

epoch_processing_seconds = Histogram(
    "beaconcore_epoch_processing_seconds",
    "Time spent in epoch processing",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

transition_errors = Counter(
    "beaconcore_transition_errors_total",
    "State transition failures by phase",
    ["phase"],
)

# Block production
blocks_produced = Counter(
    "beaconcore_blocks_produced_total",
    "Total unsigned blocks assembled",
)

block_assembly_seconds = Histogram(
    "beaconcore_block_assembly_seconds",
    "Time spent assembling a block",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Duties
duties_executed = Counter(
    "beaconcore_duties_executed_total",
    "Duty executions by type and outcome",
    ["duty", "outcome"],
)

duty_load_attempts = Counter(
    "beaconcore_duty_load_attempts_total",
    "Duty load attempts by outcome",
    ["outcome"],
)

# Subnets
subscribed_subnets = Gauge(
    "beaconcore_subscribed_attestation_subnets",
    "Number of attestation subnets currently subscribed",
)

# Throttled external requests
gate_in_flight = Gauge(
    "beaconcore_gate_in_flight_requests",
    "Requests currently in flight through a throttling gate",
    ["gate"],
)

gate_queued = Gauge(
    "beaconcore_gate_queued_requests",
    "Requests waiting for admission through a throttling gate",
    ["gate"],
)

eth1_request_latency = Histogram(
    "beaconcore_eth1_request_latency_seconds",
    "Eth1 JSON-RPC request latency",
    ["method"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

eth1_request_errors = Counter(
    "beaconcore_eth1_request_errors_total",
    "Eth1 JSON-RPC request errors",
    ["method", "error"],
)

_server_started = False
_server_lock = threading.Lock()


def start_metrics_server(port: int = DEFAULT_METRICS_PORT) -> bool:
    """Start the Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default 8008)

    Returns:
        True if server started successfully, False if already running
    """
    global _server_started

    with _server_lock:
        if _server_started:
            logger.warning("Metrics server already running")
            return False

        try:
            start_http_server(port)
            _server_started = True
            logger.info(f"Prometheus metrics server started on port {port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False


def set_node_info(version: str, network: str, preset: str) -> None:
    node_info.info({"version": version, "network": network, "preset": preset})


def update_head(slot: int, finalized: int, justified: int) -> None:
    head_slot.set(slot)
    finalized_epoch.set(finalized)
    justified_epoch.set(justified)


def record_epoch_processing(duration: float) -> None:
    epoch_processing_seconds.observe(duration)


def record_transition_error(phase: str) -> None:
    transition_errors.labels(phase=phase).inc()


def record_block_assembled(duration: float) -> None:
    blocks_produced.inc()
    block_assembly_seconds.observe(duration)


def record_duty(duty: str, success: bool) -> None:
    duties_executed.labels(duty=duty, outcome="success" if success else "failure").inc()


def record_duty_load(success: bool) -> None:
    duty_load_attempts.labels(outcome="success" if success else "failure").inc()


def update_subnet_count(count: int) -> None:
    subscribed_subnets.set(count)


def update_gate(gate: str, in_flight: int, queued: int) -> None:
    gate_in_flight.labels(gate=gate).set(in_flight)
    gate_queued.labels(gate=gate).set(queued)


def record_eth1_request(method: str, latency: float, error: Optional[str] = None) -> None:
    eth1_request_latency.labels(method=method).observe(latency)
    if error:
        eth1_request_errors.labels(method=method, error=error).inc()
