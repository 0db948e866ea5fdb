"""
ZKP verification components.

This module provides the verifier gateway interface, the verifier for proofs
from a ``TrustedSetup`` and batch verification.
"""

import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence

from cryptography.exceptions import InvalidSignature

from ...errors.exceptions import RangeViolation, ValidationError
from ...logging import get_logger
from .claim import PublicSignals
from .core import PROOF_MAGIC, PROOF_TAG_SIZE, Proof, VerificationResult, ZKPConfig, ZKPStatus, proof_mac
from .generation import VerificationKey

logger = get_logger(__name__)


class ProofVerifierGateway(ABC):
    """Checks a proof against a positionally ordered public signal vector.

    The signals checked are the ones submitted alongside the proof, never the
    copy embedded in the proof artifact.
    """

    @abstractmethod
    def verify(self, proof: Proof, public_signals: PublicSignals) -> VerificationResult:
        """Verify ``proof`` for ``public_signals``."""
        pass


class SetupVerifier(ProofVerifierGateway):
    """Verifier for proofs produced under one ``TrustedSetup``."""

    def __init__(self, verification_key: VerificationKey, config: Optional[ZKPConfig] = None):
        if not verification_key.validate():
            raise ValidationError("Invalid verification key", field="verification_key")
        self.verification_key = verification_key
        self.config = config or ZKPConfig()
        self.config.validate()
        self._verified = 0
        self._rejected = 0
        self._stats_lock = threading.Lock()

    def verify(self, proof: Proof, public_signals: PublicSignals) -> VerificationResult:
        start_time = time.time()
        result = self._verify(proof, public_signals)
        result.verification_time = time.time() - start_time

        with self._stats_lock:
            if result.is_valid:
                self._verified += 1
            else:
                self._rejected += 1
        if not result.is_valid:
            logger.info(
                "Rejected proof",
                extra={"status": result.status.name, "reason": result.error_message},
            )
        return result

    def _verify(self, proof: Proof, public_signals: PublicSignals) -> VerificationResult:
        if proof.circuit_id != self.verification_key.circuit_id:
            return VerificationResult(
                status=ZKPStatus.CIRCUIT_MISMATCH,
                error_message=f"Proof is for circuit {proof.circuit_id}",
            )

        data = proof.proof_data
        if (
            len(data) > self.config.max_proof_size
            or len(data) != len(PROOF_MAGIC) + PROOF_TAG_SIZE
            or not data.startswith(PROOF_MAGIC)
        ):
            return VerificationResult(
                status=ZKPStatus.MALFORMED_DATA,
                error_message="Proof framing is invalid",
            )

        try:
            encoded = public_signals.to_bytes()
        except RangeViolation as e:
            return VerificationResult(status=ZKPStatus.INVALID_INPUT, error_message=str(e))
        if len(encoded) > self.config.max_public_inputs:
            return VerificationResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message="Too many public inputs",
            )

        mac = proof_mac(
            self.verification_key.key_data, self.verification_key.circuit_digest, encoded
        )
        try:
            mac.verify(data[len(PROOF_MAGIC):])
        except InvalidSignature:
            return VerificationResult(
                status=ZKPStatus.VERIFICATION_FAILED,
                error_message="Proof does not match the public signals",
            )

        return VerificationResult(status=ZKPStatus.SUCCESS, is_valid=True)

    def get_verification_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                "circuit_id": self.verification_key.circuit_id,
                "verified": self._verified,
                "rejected": self._rejected,
            }


class BatchVerifier:
    """Batch verifier for multiple proofs."""

    def __init__(self, gateway: ProofVerifierGateway, max_batch_size: int = 100, max_workers: int = 4):
        self.gateway = gateway
        self.max_batch_size = max_batch_size
        self.max_workers = max_workers

    def verify_batch(
        self, proofs: Sequence[Proof], signals_list: Sequence[PublicSignals]
    ) -> List[VerificationResult]:
        """Verify multiple proofs; results keep the input order."""
        if len(proofs) != len(signals_list):
            raise ValidationError(
                "Number of proofs must match number of public signal vectors",
                field="signals_list",
                value=len(signals_list),
                expected=len(proofs),
            )

        results: List[VerificationResult] = []
        for i in range(0, len(proofs), self.max_batch_size):
            results.extend(
                self._verify_batch_parallel(
                    proofs[i:i + self.max_batch_size],
                    signals_list[i:i + self.max_batch_size],
                )
            )
        return results

    def _verify_batch_parallel(
        self, proofs: Sequence[Proof], signals_list: Sequence[PublicSignals]
    ) -> List[VerificationResult]:
        """Verify a batch of proofs in parallel."""
        results: List[Optional[VerificationResult]] = [None] * len(proofs)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(self.gateway.verify, proof, signals): i
                for i, (proof, signals) in enumerate(zip(proofs, signals_list))
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    logger.error("Batch verification failed", exception=e)
                    results[index] = VerificationResult(
                        status=ZKPStatus.VERIFICATION_FAILED,
                        error_message=f"Batch verification failed: {e}",
                    )

        return results  # type: ignore[return-value]
