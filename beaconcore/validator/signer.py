"""Local BLS signing of validator messages."""

from ..spec.constants import (
    DOMAIN_BEACON_PROPOSER,
    DOMAIN_BEACON_ATTESTER,
    DOMAIN_RANDAO,
    DOMAIN_SELECTION_PROOF,
    DOMAIN_AGGREGATE_AND_PROOF,
    TARGET_AGGREGATORS_PER_COMMITTEE,
)
from ..spec.state_transition.helpers.domain import compute_domain, compute_signing_root
from ..spec.state_transition.helpers.math import bytes_to_uint64
from ..spec.state_transition.helpers.misc import compute_epoch_at_slot
from ..spec.types import (
    AggregateAndProof,
    AttestationData,
    BeaconBlock,
    BLSSignature,
    Epoch,
    Slot,
    SignedBeaconBlock,
    SignedAggregateAndProof,
)
from ..crypto import sign, sha256
from .types import ValidatorKey, ForkInfo


def is_aggregator(committee_length: int, selection_proof: bytes) -> bool:
    """Whether a selection proof makes its validator an aggregator.

    About TARGET_AGGREGATORS_PER_COMMITTEE validators per committee are selected.
    """
    modulo = max(1, committee_length // TARGET_AGGREGATORS_PER_COMMITTEE)
    return bytes_to_uint64(sha256(bytes(selection_proof))[0:8]) % modulo == 0


class LocalSigner:
    """Signs with private keys held in memory."""

    @staticmethod
    def _domain(domain_type: bytes, epoch: int, fork_info: ForkInfo) -> bytes:
        return compute_domain(domain_type, fork_info.fork_version(epoch), fork_info.genesis_validators_root)

    def sign_randao_reveal(self, key: ValidatorKey, epoch: int, fork_info: ForkInfo) -> bytes:
        domain = self._domain(DOMAIN_RANDAO, epoch, fork_info)
        return sign(key.privkey, compute_signing_root(Epoch(epoch), domain))

    def sign_block(self, key: ValidatorKey, block: BeaconBlock, fork_info: ForkInfo) -> SignedBeaconBlock:
        epoch = compute_epoch_at_slot(int(block.slot))
        domain = self._domain(DOMAIN_BEACON_PROPOSER, epoch, fork_info)
        signature = sign(key.privkey, compute_signing_root(block, domain))
        return SignedBeaconBlock(message=block, signature=BLSSignature(signature))

    def sign_attestation_data(self, key: ValidatorKey, data: AttestationData, fork_info: ForkInfo) -> bytes:
        domain = self._domain(DOMAIN_BEACON_ATTESTER, int(data.target.epoch), fork_info)
        return sign(key.privkey, compute_signing_root(data, domain))

    def sign_selection_proof(self, key: ValidatorKey, slot: int, fork_info: ForkInfo) -> bytes:
        domain = self._domain(DOMAIN_SELECTION_PROOF, compute_epoch_at_slot(slot), fork_info)
        return sign(key.privkey, compute_signing_root(Slot(slot), domain))

    def sign_aggregate_and_proof(
        self,
        key: ValidatorKey,
        aggregate_and_proof: AggregateAndProof,
        fork_info: ForkInfo,
    ) -> SignedAggregateAndProof:
        epoch = compute_epoch_at_slot(int(aggregate_and_proof.aggregate.data.slot))
        domain = self._domain(DOMAIN_AGGREGATE_AND_PROOF, epoch, fork_info)
        signature = sign(key.privkey, compute_signing_root(aggregate_and_proof, domain))
        return SignedAggregateAndProof(message=aggregate_and_proof, signature=BLSSignature(signature))
