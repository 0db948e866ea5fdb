"""
Client-side claim construction.
"""

from typing import Optional, Tuple

from ..config import ProtocolConfig
from ..crypto.derivation import commitment, derive_address, derive_nullifier
from ..crypto.hashing import FieldHasher
from ..crypto.zkp.claim import ClaimWitness, PublicSignals
from ..errors.exceptions import ValidationError
from ..logging import get_logger
from .replica import AccumulatorReplica

logger = get_logger(__name__)


class ClaimBuilder:
    """Turns a secret and a replayed accumulator into claim inputs."""

    def __init__(self, config: Optional[ProtocolConfig] = None, hasher: Optional[FieldHasher] = None):
        self.config = config or ProtocolConfig()
        self.hasher = hasher or FieldHasher(self.config.hasher_params())

    def build(
        self,
        secret: int,
        committed_amount: int,
        recipient: int,
        claim_amount: int,
        replica: AccumulatorReplica,
        token_id: int = 0,
        withdraw_underlying: bool = False,
        relayer_fee: int = 0,
        expected_root: Optional[int] = None,
    ) -> Tuple[PublicSignals, ClaimWitness]:
        """
        Assemble public signals and the witness for one claim.

        Args:
            secret: Owner's secret
            committed_amount: Amount the privacy address first received
            recipient: Address that receives the claimed funds
            claim_amount: Amount to claim, at most ``committed_amount``
            replica: Replayed accumulator holding the commitment
            token_id: Asset identifier
            withdraw_underlying: Pay out the underlying asset instead
            relayer_fee: Relayer fee in basis points
            expected_root: Ledger root the replica must match, if known

        Raises:
            RootMismatch: if ``expected_root`` differs from the replica root
            ValidationError: if the commitment is not in the replica
        """
        if replica.hasher.params != self.hasher.params:
            raise ValidationError(
                "Replica uses different hash parameters",
                field="hasher",
                value=replica.hasher.params.fingerprint(),
                expected=self.hasher.params.fingerprint(),
            )
        if expected_root is not None:
            replica.verify_root(expected_root)

        derived = derive_address(
            secret,
            self.config.namespace_tag,
            token_id,
            self.hasher,
            self.config.address_bits,
        )
        leaf = commitment(derived.address, committed_amount, self.hasher)
        index = replica.find_commitment(leaf)
        if index is None:
            raise ValidationError(
                "Commitment for this secret and amount is not in the accumulator",
                field="committed_amount",
                value=committed_amount,
            )

        merkle_proof = replica.prove(index)
        nullifier = derive_nullifier(derived.address, secret, self.hasher)

        signals = PublicSignals(
            root=merkle_proof.root,
            nullifier=nullifier,
            recipient=recipient,
            claim_amount=claim_amount,
            token_id=token_id,
            withdraw_underlying=int(withdraw_underlying),
            relayer_fee=relayer_fee,
        )
        witness = ClaimWitness(
            secret=secret,
            address=derived.address,
            quotient=derived.quotient,
            committed_amount=committed_amount,
            claim_amount=claim_amount,
            merkle_proof=merkle_proof,
        )
        logger.debug("Built claim inputs", extra={"leaf_index": index})
        return signals, witness
