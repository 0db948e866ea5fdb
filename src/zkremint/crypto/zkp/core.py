"""
Core ZKP types.

This module defines the proof artifact, status codes, result types and the
configuration shared by proof generation and verification.
"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from cryptography.hazmat.primitives import hashes, hmac

from ...errors.exceptions import ConfigurationError, ValidationError

# Framing prefix of every proof artifact; the rest is an opaque tag.
PROOF_MAGIC = b"zkr1"
PROOF_TAG_SIZE = 32


class ZKPType(Enum):
    """Types of proof systems."""

    ZK_SNARK = "zk_snark"
    DESIGNATED_VERIFIER = "designated_verifier"


class ZKPStatus(IntEnum):
    """Status codes for ZKP operations."""

    SUCCESS = 0
    INVALID_PROOF = 1
    INVALID_INPUT = 2
    VERIFICATION_FAILED = 3
    GENERATION_FAILED = 4
    CONSTRAINT_VIOLATION = 5
    CIRCUIT_MISMATCH = 6
    MALFORMED_DATA = 7


@dataclass
class ZKPConfig:
    """Configuration for ZKP operations."""

    proof_type: ZKPType = ZKPType.DESIGNATED_VERIFIER

    # Size limits
    max_proof_size: int = 1024
    max_public_inputs: int = 16

    # Batch processing
    max_batch_size: int = 100
    max_workers: int = 4

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.max_proof_size <= len(PROOF_MAGIC):
            raise ConfigurationError(
                "max_proof_size is too small",
                config_key="max_proof_size",
                config_value=self.max_proof_size,
            )
        if self.max_public_inputs <= 0:
            raise ConfigurationError(
                "max_public_inputs must be positive",
                config_key="max_public_inputs",
                config_value=self.max_public_inputs,
            )
        if self.max_batch_size <= 0:
            raise ConfigurationError(
                "max_batch_size must be positive",
                config_key="max_batch_size",
                config_value=self.max_batch_size,
            )
        if self.max_workers <= 0:
            raise ConfigurationError(
                "max_workers must be positive",
                config_key="max_workers",
                config_value=self.max_workers,
            )


@dataclass
class Proof:
    """A proof artifact together with the signals it was produced for."""

    proof_data: bytes
    public_inputs: List[bytes]
    circuit_id: str
    proof_type: ZKPType = ZKPType.DESIGNATED_VERIFIER
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate proof data after initialization."""
        if not self.proof_data:
            raise ValidationError("proof_data cannot be empty", field="proof_data")
        if not self.circuit_id:
            raise ValidationError("circuit_id cannot be empty", field="circuit_id")

    def to_bytes(self) -> bytes:
        """Serialize proof to bytes."""
        data = {
            "proof_data": self.proof_data.hex(),
            "public_inputs": [inp.hex() for inp in self.public_inputs],
            "circuit_id": self.circuit_id,
            "proof_type": self.proof_type.value,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }
        return json.dumps(data, sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        """Deserialize proof from bytes."""
        try:
            parsed = json.loads(data.decode("utf-8"))
            return cls(
                proof_data=bytes.fromhex(parsed["proof_data"]),
                public_inputs=[bytes.fromhex(inp) for inp in parsed["public_inputs"]],
                circuit_id=parsed["circuit_id"],
                proof_type=ZKPType(parsed["proof_type"]),
                timestamp=parsed["timestamp"],
                metadata=parsed["metadata"],
            )
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, ValueError) as e:
            raise ValidationError(f"Invalid proof data: {e}", field="proof", cause=e)

    def get_hash(self) -> str:
        """Get a unique hash for this proof."""
        digest = hashes.Hash(hashes.SHA256())
        digest.update(self.to_bytes())
        return digest.finalize().hex()


@dataclass
class ProofResult:
    """Result of proof generation."""

    status: ZKPStatus
    proof: Optional[Proof] = None
    error_message: Optional[str] = None
    generation_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check if proof generation was successful."""
        return self.status == ZKPStatus.SUCCESS and self.proof is not None


@dataclass
class VerificationResult:
    """Result of proof verification."""

    status: ZKPStatus
    is_valid: bool = False
    error_message: Optional[str] = None
    verification_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check if verification was successful."""
        return self.status == ZKPStatus.SUCCESS and self.is_valid


def proof_mac(key: bytes, circuit_digest: str, encoded_signals: List[bytes]) -> hmac.HMAC:
    """HMAC-SHA256 context over the circuit digest and the encoded signals."""
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(bytes.fromhex(circuit_digest))
    mac.update(len(encoded_signals).to_bytes(4, byteorder="big"))
    for signal in encoded_signals:
        mac.update(len(signal).to_bytes(4, byteorder="big"))
        mac.update(signal)
    return mac
