"""SSZ types for the phase 0 beacon chain.

- base.py: Basic types and primitives
- phase0.py: Phase 0 containers
"""

from .base import (
    uint8, uint64, boolean,
    Bytes4, Bytes32, Bytes48, Bytes96, ByteVector,
    Container, Vector, List,
    Bitvector, Bitlist,
    Slot, Epoch, CommitteeIndex, ValidatorIndex, Gwei,
    Root, Hash32, Version, DomainType, ForkDigest, Domain,
    BLSPubkey, BLSSignature,
    Fork, ForkData, Checkpoint, SigningData,
)

from .phase0 import (
    Validator,
    AttestationData,
    Eth1Data,
    BeaconBlockHeader,
    SignedBeaconBlockHeader,
    ProposerSlashing,
    DepositMessage,
    DepositData,
    Deposit,
    VoluntaryExit,
    SignedVoluntaryExit,
    Attestation,
    IndexedAttestation,
    AttesterSlashing,
    AggregateAndProof,
    SignedAggregateAndProof,
    Eth1Block,
    HistoricalBatch,
    PendingAttestation,
    BeaconBlockBody,
    BeaconBlock,
    SignedBeaconBlock,
    BeaconState,
)
