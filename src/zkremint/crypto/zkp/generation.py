"""
ZKP proof generation components.

This module provides the trusted setup, key material and the claim prover.
The proof system is a designated-verifier stand-in: a proof is an HMAC over
the circuit digest and the exact public signal vector, produced only after
the witness satisfies every constraint of the claim relation. It keeps the
obligations around the real system testable: fail-closed generation, signal
binding and opaque proof bytes.
"""

import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ...errors.exceptions import ConstraintViolation, CryptographicError, ZKRemintError
from ...logging import get_logger
from .claim import ClaimCircuit, ClaimWitness, PublicSignals
from .core import PROOF_MAGIC, Proof, ProofResult, ZKPConfig, ZKPStatus, ZKPType, proof_mac

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProvingKey:
    """Proving key for generating proofs."""

    circuit_id: str
    circuit_digest: str
    key_data: bytes = field(repr=False)
    key_type: ZKPType = ZKPType.DESIGNATED_VERIFIER

    def validate(self) -> bool:
        """Validate proving key."""
        return bool(self.key_data and self.circuit_id and self.circuit_digest)


@dataclass(frozen=True)
class VerificationKey:
    """Verification key for verifying proofs."""

    circuit_id: str
    circuit_digest: str
    key_data: bytes = field(repr=False)
    key_type: ZKPType = ZKPType.DESIGNATED_VERIFIER

    def validate(self) -> bool:
        """Validate verification key."""
        return bool(self.key_data and self.circuit_id and self.circuit_digest)


@dataclass
class TrustedSetup:
    """Key pair bound to one circuit layout."""

    setup_id: str
    circuit_id: str
    circuit_digest: str
    proving_key: ProvingKey
    verification_key: VerificationKey
    created_at: float = field(default_factory=time.time)

    @classmethod
    def create(cls, circuit: ClaimCircuit, key_size: int = 32) -> "TrustedSetup":
        """Run the setup for ``circuit`` with fresh random key material."""
        if key_size < 16:
            raise CryptographicError("Setup key must be at least 16 bytes", algorithm="hmac-sha256")

        digest = circuit.structure_digest()
        key = secrets.token_bytes(key_size)
        setup = cls(
            setup_id=secrets.token_hex(8),
            circuit_id=circuit.circuit_id,
            circuit_digest=digest,
            proving_key=ProvingKey(circuit.circuit_id, digest, key),
            verification_key=VerificationKey(circuit.circuit_id, digest, key),
        )
        logger.info(
            "Created trusted setup",
            extra={"setup_id": setup.setup_id, "circuit_id": circuit.circuit_id},
        )
        return setup

    def validate(self) -> bool:
        """Validate setup data."""
        if not self.setup_id or not self.circuit_id:
            return False
        if not self.proving_key.validate() or not self.verification_key.validate():
            return False
        return (
            self.proving_key.circuit_digest == self.circuit_digest
            and self.verification_key.circuit_digest == self.circuit_digest
        )


class ClaimProver:
    """Produces claim proofs; refuses to emit anything for a bad witness."""

    def __init__(self, circuit: ClaimCircuit, proving_key: ProvingKey, config: Optional[ZKPConfig] = None):
        self.circuit = circuit
        self.proving_key = proving_key
        self.config = config or ZKPConfig()
        self.config.validate()
        if proving_key.circuit_id != circuit.circuit_id:
            raise CryptographicError(
                f"Proving key is for circuit {proving_key.circuit_id}, not {circuit.circuit_id}",
                algorithm="hmac-sha256",
            )

    def generate_proof(self, public_signals: PublicSignals, witness: ClaimWitness) -> Proof:
        """
        Prove the claim relation for the given signals and witness.

        Raises:
            RangeViolation: if a signal or witness value exceeds its width
            ConstraintViolation: if the witness does not satisfy the relation
            CryptographicError: if the synthesized layout does not match the key
        """
        self.circuit.validate_inputs(public_signals, witness)
        cs = self.circuit.synthesize(public_signals, witness)

        try:
            cs.check()
        except ConstraintViolation as e:
            logger.warning(
                "Refusing to prove unsatisfied claim",
                extra={"constraint": e.constraint_label, "index": e.constraint_index},
            )
            raise

        digest = cs.digest()
        if digest != self.proving_key.circuit_digest:
            raise CryptographicError(
                "Synthesized circuit does not match the proving key",
                algorithm="hmac-sha256",
            )

        encoded = public_signals.to_bytes()
        tag = proof_mac(self.proving_key.key_data, digest, encoded).finalize()

        logger.debug(
            "Generated claim proof",
            extra={"constraints": cs.get_constraint_count(), "circuit_id": self.circuit.circuit_id},
        )
        return Proof(
            proof_data=PROOF_MAGIC + tag,
            public_inputs=encoded,
            circuit_id=self.circuit.circuit_id,
            proof_type=self.config.proof_type,
            metadata={"constraint_count": cs.get_constraint_count()},
        )

    def try_generate_proof(self, public_signals: PublicSignals, witness: ClaimWitness) -> ProofResult:
        """Like ``generate_proof`` but reports failures as a ``ProofResult``."""
        start_time = time.time()
        try:
            proof = self.generate_proof(public_signals, witness)
        except ConstraintViolation as e:
            return ProofResult(
                status=ZKPStatus.CONSTRAINT_VIOLATION,
                error_message=str(e),
                generation_time=time.time() - start_time,
                metadata={"constraint": e.constraint_label},
            )
        except CryptographicError as e:
            return ProofResult(
                status=ZKPStatus.CIRCUIT_MISMATCH,
                error_message=str(e),
                generation_time=time.time() - start_time,
            )
        except ZKRemintError as e:
            return ProofResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=str(e),
                generation_time=time.time() - start_time,
            )
        return ProofResult(
            status=ZKPStatus.SUCCESS,
            proof=proof,
            generation_time=time.time() - start_time,
        )

    def get_info(self) -> Dict[str, Any]:
        return {
            "circuit_id": self.circuit.circuit_id,
            "circuit_digest": self.proving_key.circuit_digest,
            "proof_type": self.config.proof_type.value,
        }
