"""
Claim relation and proof plumbing for zkremint.

This package encodes the claim relation as a rank-1 constraint system and
wraps it with proof generation and verification. The proof system itself is
opaque to the rest of the protocol: callers only rely on signals being
produced in the documented order and width.

Security Considerations:
- Proof generation fails closed: no artifact exists for an unsatisfied witness
- Every fund-moving public signal is bound inside the relation
- Verification checks the submitted signals, never the copy inside the proof
"""

from .circuits import Constraint, ConstraintSystem, ConstraintType, LinearCombination
from .claim import (
    PUBLIC_SIGNAL_ORDER,
    ClaimCircuit,
    ClaimWitness,
    PublicSignals,
)
from .core import (
    Proof,
    ProofResult,
    VerificationResult,
    ZKPConfig,
    ZKPStatus,
    ZKPType,
)
from .generation import ClaimProver, ProvingKey, TrustedSetup, VerificationKey
from .verification import BatchVerifier, ProofVerifierGateway, SetupVerifier

__all__ = [
    # Core types
    "ZKPConfig",
    "Proof",
    "ProofResult",
    "VerificationResult",
    "ZKPType",
    "ZKPStatus",
    # Circuits
    "Constraint",
    "ConstraintSystem",
    "ConstraintType",
    "LinearCombination",
    # Claim relation
    "PUBLIC_SIGNAL_ORDER",
    "ClaimCircuit",
    "ClaimWitness",
    "PublicSignals",
    # Generation
    "TrustedSetup",
    "ProvingKey",
    "VerificationKey",
    "ClaimProver",
    # Verification
    "ProofVerifierGateway",
    "SetupVerifier",
    "BatchVerifier",
]
