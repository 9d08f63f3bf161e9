"""Pytest configuration for beaconcore tests."""

import sys

import pytest

NUM_VALIDATORS = 64


def pytest_addoption(parser):
    parser.addoption(
        "--spec-tests-dir",
        action="store",
        default=None,
        help="Path to extracted consensus-spec-tests (defaults to tests/spec-tests/tests/minimal)",
    )


def pytest_configure(config):
    """Set the minimal preset BEFORE any type module is imported.

    SSZ types use Vector[T, N()] where N() is evaluated at class definition
    time, so the preset must be in place before collection imports them.
    """
    for mod in ("beaconcore.spec.types", "beaconcore.spec.types.phase0", "beaconcore.spec.types.base"):
        if mod in sys.modules:
            del sys.modules[mod]

    from beaconcore.spec.constants import set_preset
    set_preset("minimal")

    from beaconcore.spec.network_config import NetworkConfig, set_config
    set_config(NetworkConfig.minimal())


@pytest.fixture(scope="session")
def validator_keys():
    """Deterministic validator keys with private keys 1..NUM_VALIDATORS."""
    from beaconcore.crypto import pubkey_from_privkey
    from beaconcore.validator import ValidatorKey

    return [
        ValidatorKey(pubkey=pubkey_from_privkey(privkey), privkey=privkey)
        for privkey in range(1, NUM_VALIDATORS + 1)
    ]


@pytest.fixture(scope="session")
def genesis_state(validator_keys):
    from beaconcore.spec.genesis import create_genesis_state
    from beaconcore.spec.network_config import get_config

    return create_genesis_state(
        [key.pubkey for key in validator_keys],
        genesis_time=get_config().min_genesis_time,
    )


@pytest.fixture(scope="session")
def genesis_block(genesis_state):
    from beaconcore.spec.genesis import get_genesis_block

    return get_genesis_block(genesis_state)


@pytest.fixture(scope="session")
def state_at_100(genesis_state):
    """Genesis state advanced through empty slots to slot 100."""
    from beaconcore.spec.state_transition import process_slots

    return process_slots(genesis_state, 100)


@pytest.fixture
def make_attestation():
    """Factory for unsigned attestations that a state at a later slot accepts."""
    from beaconcore.spec.constants import G2_POINT_AT_INFINITY, MAX_VALIDATORS_PER_COMMITTEE
    from beaconcore.spec.state_transition.helpers.accessors import get_block_root
    from beaconcore.spec.state_transition.helpers.beacon_committee import get_beacon_committee
    from beaconcore.spec.state_transition.helpers.misc import (
        compute_epoch_at_slot,
        compute_start_slot_at_epoch,
    )
    from beaconcore.spec.types import Attestation, AttestationData, Bitlist, Checkpoint

    def make(state, slot, committee_index=0, positions=(0,), beacon_block_root=b"\x11" * 32):
        """Build an attestation for (slot, committee_index).

        state must be in the attestation's epoch or the next one, at or past
        the attestation slot.
        """
        epoch = compute_epoch_at_slot(slot)
        committee = get_beacon_committee(state, slot, committee_index)
        bits = Bitlist[MAX_VALIDATORS_PER_COMMITTEE]()
        for i in range(len(committee)):
            bits.append(i in positions)

        if compute_start_slot_at_epoch(epoch) < int(state.slot):
            target_root = get_block_root(state, epoch)
        else:
            target_root = beacon_block_root
        if epoch == compute_epoch_at_slot(int(state.slot)):
            source = state.current_justified_checkpoint
        else:
            source = state.previous_justified_checkpoint

        return Attestation(
            aggregation_bits=bits,
            data=AttestationData(
                slot=slot,
                index=committee_index,
                beacon_block_root=beacon_block_root,
                source=source.copy(),
                target=Checkpoint(epoch=epoch, root=target_root),
            ),
            signature=G2_POINT_AT_INFINITY,
        )

    return make
