"""
The claim relation.

A claim proves, for public ``(root, nullifier, recipient, claim_amount,
token_id, withdraw_underlying, relayer_fee)``, knowledge of a secret whose
privacy address received ``committed_amount >= claim_amount`` in a leaf of
the accumulator with that root, and that the nullifier derives from the same
address and secret. Every public signal that moves funds is folded into a
binding hash so none can be swapped after proving.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ...config import ProtocolConfig
from ...errors.exceptions import RangeViolation, ValidationError, create_range_violation
from ...logging import get_logger
from ..field import FIELD_BITS, SNARK_SCALAR_FIELD, field_from_bytes, field_to_bytes, fits_in_bits, require_field_element
from ..hashing import FieldHasher
from ..merkle import MerkleProof
from .circuits import ConstraintSystem, ConstraintType
from .gadgets import boolean, field_hash, is_equal, less_eq_than, merkle_fold, num2bits

logger = get_logger(__name__)

# Fixed positional layout of the public signal vector.
PUBLIC_SIGNAL_ORDER = (
    "root",
    "nullifier",
    "recipient",
    "claim_amount",
    "token_id",
    "withdraw_underlying",
    "relayer_fee",
)

CIRCUIT_VERSION = "claim-v1"


@dataclass(frozen=True)
class PublicSignals:
    """Public inputs of a claim, in the order of ``PUBLIC_SIGNAL_ORDER``."""

    root: int
    nullifier: int
    recipient: int
    claim_amount: int
    token_id: int = 0
    withdraw_underlying: int = 0
    relayer_fee: int = 0

    def __post_init__(self):
        if isinstance(self.withdraw_underlying, bool):
            object.__setattr__(self, "withdraw_underlying", int(self.withdraw_underlying))

    def to_vector(self) -> List[int]:
        return [getattr(self, name) for name in PUBLIC_SIGNAL_ORDER]

    @classmethod
    def from_vector(cls, vector: Sequence[int]) -> "PublicSignals":
        if len(vector) != len(PUBLIC_SIGNAL_ORDER):
            raise ValidationError(
                f"Expected {len(PUBLIC_SIGNAL_ORDER)} public signals, got {len(vector)}",
                field="public_signals",
                value=len(vector),
                expected=len(PUBLIC_SIGNAL_ORDER),
            )
        return cls(*vector)

    def to_bytes(self) -> List[bytes]:
        """Encode each signal as 32 big-endian bytes.

        Raises:
            RangeViolation: if a signal is not a canonical field element
        """
        return [
            field_to_bytes(require_field_element(value, name))
            for name, value in zip(PUBLIC_SIGNAL_ORDER, self.to_vector())
        ]

    @classmethod
    def from_bytes(cls, encoded: Sequence[bytes]) -> "PublicSignals":
        return cls.from_vector([field_from_bytes(item) for item in encoded])

    def to_dict(self) -> Dict[str, int]:
        return dict(zip(PUBLIC_SIGNAL_ORDER, self.to_vector()))

    @property
    def withdraws_underlying(self) -> bool:
        return bool(self.withdraw_underlying)


@dataclass(frozen=True)
class ClaimWitness:
    """Private inputs of a claim."""

    secret: int
    address: int
    quotient: int
    committed_amount: int
    claim_amount: int
    merkle_proof: MerkleProof

    def __repr__(self) -> str:
        # The secret must never end up in logs or tracebacks.
        return (
            f"ClaimWitness(address={self.address:#x}, "
            f"committed_amount={self.committed_amount}, "
            f"claim_amount={self.claim_amount}, "
            f"leaf_index={self.merkle_proof.leaf_index})"
        )


class ClaimCircuit:
    """Constraint encoding of the claim relation for one parameterization."""

    def __init__(self, config: Optional[ProtocolConfig] = None, hasher: Optional[FieldHasher] = None):
        self.config = config or ProtocolConfig()
        self.config.validate()
        self.hasher = hasher or FieldHasher(self.config.hasher_params())
        self.config.require_hasher(self.hasher.params)

        self.depth = self.config.tree_depth
        self.address_bits = self.config.address_bits
        self.amount_bits = self.config.amount_bits
        self.quotient_bits = FIELD_BITS - self.address_bits
        self.fee_bits = self.config.fee_denominator.bit_length()

        # scalar = address + quotient * 2^width is below P iff
        # quotient < q_max, or quotient == q_max and address <= address_max.
        self.quotient_max = (SNARK_SCALAR_FIELD - 1) >> self.address_bits
        self.address_max = (SNARK_SCALAR_FIELD - 1) & ((1 << self.address_bits) - 1)

        self.circuit_id = (
            f"{CIRCUIT_VERSION}/d{self.depth}/a{self.amount_bits}"
            f"/h{self.hasher.params.fingerprint()}"
        )
        self._structure_digest: Optional[str] = None
        logger.debug("Initialized claim circuit", extra={"circuit_id": self.circuit_id})

    def validate_inputs(self, signals: PublicSignals, witness: ClaimWitness) -> None:
        """
        Check declared widths before synthesis.

        Raises:
            RangeViolation: if a value exceeds its declared bit-width
            ValidationError: if the witness shape does not match the circuit
        """
        for name, value in signals.to_dict().items():
            require_field_element(value, name)
        if not fits_in_bits(signals.recipient, self.address_bits):
            raise create_range_violation("recipient", signals.recipient, self.address_bits)
        if not fits_in_bits(signals.claim_amount, self.amount_bits):
            raise create_range_violation("claim_amount", signals.claim_amount, self.amount_bits)
        if signals.withdraw_underlying not in (0, 1):
            raise create_range_violation("withdraw_underlying", signals.withdraw_underlying, 1)
        if signals.relayer_fee > self.config.fee_denominator:
            raise RangeViolation(
                f"relayer_fee exceeds {self.config.fee_denominator}",
                field="relayer_fee",
                value=signals.relayer_fee,
                bit_width=self.fee_bits,
            )

        require_field_element(witness.secret, "secret")
        if not fits_in_bits(witness.address, self.address_bits):
            raise create_range_violation("address", witness.address, self.address_bits)
        if not fits_in_bits(witness.quotient, self.quotient_bits):
            raise create_range_violation("quotient", witness.quotient, self.quotient_bits)
        if not fits_in_bits(witness.committed_amount, self.amount_bits):
            raise create_range_violation(
                "committed_amount", witness.committed_amount, self.amount_bits
            )
        if witness.claim_amount != signals.claim_amount:
            raise ValidationError(
                "Witness claim amount differs from the public claim amount",
                field="claim_amount",
                value=witness.claim_amount,
                expected=signals.claim_amount,
            )
        if witness.merkle_proof.depth != self.depth:
            raise ValidationError(
                f"Merkle path has {witness.merkle_proof.depth} levels, circuit expects {self.depth}",
                field="merkle_proof",
                value=witness.merkle_proof.depth,
                expected=self.depth,
            )
        for sibling, direction in witness.merkle_proof.path:
            require_field_element(sibling, "path_element")
            require_field_element(direction, "path_index")

    def synthesize(self, signals: PublicSignals, witness: ClaimWitness) -> ConstraintSystem:
        """
        Build the constraint system and its assignment.

        The result is returned even when unsatisfied; call ``check()`` on it
        before using it for anything.
        """
        constants = self.hasher.round_constants
        cs = ConstraintSystem(self.circuit_id)

        public = {
            name: cs.alloc_public(name, value)
            for name, value in zip(PUBLIC_SIGNAL_ORDER, signals.to_vector())
        }

        secret = cs.alloc_private("secret", witness.secret)
        address = cs.alloc_private("address", witness.address)
        quotient = cs.alloc_private("quotient", witness.quotient)
        committed = cs.alloc_private("committed_amount", witness.committed_amount)
        siblings = [
            cs.alloc_private(f"path_element[{i}]", sibling)
            for i, sibling in enumerate(witness.merkle_proof.path_elements)
        ]
        directions = [
            cs.alloc_private(f"path_index[{i}]", direction)
            for i, direction in enumerate(witness.merkle_proof.path_indices)
        ]

        # 1. Direction bits
        for i, direction in enumerate(directions):
            boolean(cs, direction, f"path_index[{i}].boolean")

        # 2. Address derivation with an exact decomposition
        scalar = field_hash(
            cs,
            [self.config.namespace_tag, public["token_id"], secret],
            constants,
            "address.hash",
        )
        cs.enforce_equal(
            address + quotient * (1 << self.address_bits),
            scalar,
            "address.decomposition",
        )
        num2bits(cs, address, self.address_bits, "address.bits")
        num2bits(cs, quotient, self.quotient_bits, "quotient.bits")
        quotient_ok = less_eq_than(
            cs, quotient, self.quotient_max, self.quotient_bits, "quotient.max"
        )
        cs.enforce_equal(quotient_ok, 1, "quotient.max", ConstraintType.COMPARISON)
        at_max = is_equal(cs, quotient, self.quotient_max, "quotient.at_max")
        address_ok = less_eq_than(
            cs, address, self.address_max, self.address_bits, "address.max"
        )
        cs.enforce(at_max, 1 - address_ok, 0, "address.canonical", ConstraintType.COMPARISON)

        # 3. Commitment
        leaf = field_hash(cs, [address, committed], constants, "commitment.hash")

        # 4. Membership
        computed_root = merkle_fold(cs, leaf, siblings, directions, constants, "merkle")
        cs.enforce_equal(computed_root, public["root"], "merkle.root")

        # 5. Amount bound
        num2bits(cs, committed, self.amount_bits, "committed_amount.bits")
        num2bits(cs, public["claim_amount"], self.amount_bits, "claim_amount.bits")
        amount_ok = less_eq_than(
            cs, public["claim_amount"], committed, self.amount_bits, "amount.bound"
        )
        cs.enforce_equal(amount_ok, 1, "amount.bound", ConstraintType.COMPARISON)

        # 6. Nullifier
        nullifier = field_hash(cs, [address, secret], constants, "nullifier.hash")
        cs.enforce_equal(nullifier, public["nullifier"], "nullifier")

        # 7. Public-input binding
        binding = field_hash(
            cs,
            [
                public["recipient"],
                public["claim_amount"],
                public["token_id"],
                public["withdraw_underlying"],
                public["relayer_fee"],
            ],
            constants,
            "binding.hash",
        )
        binding_value = cs.value_of(binding)
        binding_wire = cs.alloc_private("binding", binding_value)
        cs.enforce_equal(binding, binding_wire, "binding", ConstraintType.BINDING)
        square = cs.alloc_private(
            "binding_square", binding_value * binding_value % SNARK_SCALAR_FIELD
        )
        cs.enforce(binding_wire, binding_wire, square, "binding.square", ConstraintType.BINDING)
        boolean(cs, public["withdraw_underlying"], "withdraw_underlying.boolean")
        num2bits(cs, public["recipient"], self.address_bits, "recipient.bits")
        num2bits(cs, public["relayer_fee"], self.fee_bits, "relayer_fee.bits")
        fee_ok = less_eq_than(
            cs, public["relayer_fee"], self.config.fee_denominator, self.fee_bits, "relayer_fee.max"
        )
        cs.enforce_equal(fee_ok, 1, "relayer_fee.max", ConstraintType.COMPARISON)

        return cs

    def blank_inputs(self) -> tuple:
        """All-zero signals and witness with the right shape."""
        proof = MerkleProof(leaf=0, leaf_index=0, path=tuple((0, 0) for _ in range(self.depth)), root=0)
        signals = PublicSignals(0, 0, 0, 0)
        witness = ClaimWitness(0, 0, 0, 0, 0, proof)
        return signals, witness

    def structure_digest(self) -> str:
        """Digest of the constraint layout; identical for every assignment."""
        if self._structure_digest is None:
            self._structure_digest = self.synthesize(*self.blank_inputs()).digest()
        return self._structure_digest

    def get_circuit_info(self) -> Dict[str, Any]:
        info = self.synthesize(*self.blank_inputs()).get_circuit_info()
        info.update(
            {
                "depth": self.depth,
                "amount_bits": self.amount_bits,
                "address_bits": self.address_bits,
                "hasher": self.hasher.params.fingerprint(),
            }
        )
        return info
