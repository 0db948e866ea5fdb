"""
Adversarial tests for the claim flow.

These tests play the part of a front-runner, a double-spender and a prover
with a bad witness against a ledger backed by the real verifier.
"""

import secrets
import threading
from dataclasses import replace

import pytest

from zkremint.client import AccumulatorReplica, ClaimBuilder
from zkremint.crypto.derivation import derive_address, derive_nullifier
from zkremint.crypto.field import SNARK_SCALAR_FIELD
from zkremint.crypto.zkp import Proof
from zkremint.crypto.zkp.core import PROOF_MAGIC
from zkremint.errors import (
    ConstraintViolation,
    NullifierAlreadySpent,
    ProofRejected,
    UnknownRoot,
)

ATTACKER = 0xBAD
RELAYER = 0x4E1A7E2


def rebuild_claim(ledger, secret, amount, config, hasher):
    replica = AccumulatorReplica.from_events(ledger.commitment_events(), config.tree_depth, hasher)
    return ClaimBuilder(config, hasher).build(secret, amount, 0xB0B, amount, replica)


class TestFrontRunning:
    """A proof observed in flight cannot be redirected."""

    @pytest.fixture
    def observed(self, private_deposit, prove_claim):
        """Fixture for a valid claim seen by an attacker before inclusion."""
        ledger, secret = private_deposit(amount=1000)
        proof, signals = prove_claim(ledger, secret, 1000, 800, relayer_fee=100)
        return ledger, proof, signals

    @pytest.mark.parametrize(
        "changes",
        [
            {"recipient": ATTACKER},
            {"claim_amount": 1000},
            {"relayer_fee": 10000},
            {"withdraw_underlying": 1},
            {"token_id": 1},
        ],
    )
    def test_signal_substitution_rejected(self, observed, changes):
        """Test that each fund-moving signal is bound to the proof."""
        ledger, proof, signals = observed
        with pytest.raises(ProofRejected):
            ledger.remint(proof, replace(signals, **changes), relayer=RELAYER)
        assert not ledger.is_spent(signals.nullifier)

    def test_embedded_signal_swap_rejected(self, observed):
        """Test that rewriting the signals inside the artifact does not help."""
        ledger, proof, signals = observed
        forged = replace(signals, recipient=ATTACKER)
        artifact = Proof(
            proof_data=proof.proof_data,
            public_inputs=forged.to_bytes(),
            circuit_id=proof.circuit_id,
        )
        with pytest.raises(ProofRejected):
            ledger.remint(artifact, forged, relayer=RELAYER)

    def test_honest_submission_still_succeeds(self, observed):
        """Test that failed tampering does not burn the claim."""
        ledger, proof, signals = observed
        with pytest.raises(ProofRejected):
            ledger.remint(proof, replace(signals, recipient=ATTACKER), relayer=RELAYER)
        receipt = ledger.remint(proof, signals, relayer=RELAYER)
        assert receipt.received == 792
        assert receipt.relayer_fee == 8


class TestDoubleSpend:
    """A commitment can be claimed at most once."""

    def test_resubmission_rejected(self, private_deposit, prove_claim):
        """Test replaying an accepted claim."""
        ledger, secret = private_deposit(amount=500)
        proof, signals = prove_claim(ledger, secret, 500, 500)
        ledger.remint(proof, signals)
        with pytest.raises(NullifierAlreadySpent):
            ledger.remint(proof, signals)
        assert ledger.balance_of(signals.recipient) == 500

    def test_second_claim_with_fresh_proof_rejected(self, private_deposit, prove_claim):
        """Test that partial claims cannot be repeated for the remainder."""
        ledger, secret = private_deposit(amount=500)
        proof, signals = prove_claim(ledger, secret, 500, 200)
        ledger.remint(proof, signals)

        # A new proof against the newer root still reveals the same nullifier.
        second, second_signals = prove_claim(ledger, secret, 500, 300, recipient=0xC0C)
        assert second_signals.root != signals.root
        assert second_signals.nullifier == signals.nullifier
        with pytest.raises(NullifierAlreadySpent):
            ledger.remint(second, second_signals)

    def test_concurrent_submissions_single_winner(self, private_deposit, prove_claim):
        """Test racing submissions of the same claim."""
        ledger, secret = private_deposit(amount=500)
        proof, signals = prove_claim(ledger, secret, 500, 500)
        outcomes = []
        barrier = threading.Barrier(6)

        def submit():
            barrier.wait()
            try:
                ledger.remint(proof, signals)
                outcomes.append("accepted")
            except NullifierAlreadySpent:
                outcomes.append("spent")

        threads = [threading.Thread(target=submit) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("accepted") == 1
        assert outcomes.count("spent") == 5
        assert ledger.balance_of(signals.recipient) == 500

    def test_aliased_address_cannot_mint_second_nullifier(
        self, private_deposit, prove_claim, prover, config, hasher
    ):
        """Test that the non-canonical decomposition gives no second spend."""
        secret = None
        for candidate in range(1, 200):
            derived = derive_address(candidate, config.namespace_tag, 0, hasher)
            if derived.scalar + SNARK_SCALAR_FIELD < 2 ** 254:
                secret = candidate
                break
        assert secret is not None

        ledger, _ = private_deposit(amount=500, secret=secret)
        proof, signals = prove_claim(ledger, secret, 500, 500)
        ledger.remint(proof, signals)

        aliased = derived.scalar + SNARK_SCALAR_FIELD
        alias_address = aliased % 2 ** 160
        alias_signals = replace(
            signals, nullifier=derive_nullifier(alias_address, secret, hasher)
        )
        assert alias_signals.nullifier != signals.nullifier

        _, witness = rebuild_claim(ledger, secret, 500, config, hasher)
        forged_witness = replace(witness, address=alias_address, quotient=aliased >> 160)
        with pytest.raises(ConstraintViolation) as exc_info:
            prover.generate_proof(alias_signals, forged_witness)
        assert exc_info.value.constraint_label in ("quotient.max", "address.canonical")


class TestBadWitness:
    """The prover never emits a proof for a false statement."""

    def test_over_claim(self, private_deposit, prove_claim):
        """Test claiming more than was received."""
        ledger, secret = private_deposit(amount=100)
        with pytest.raises(ConstraintViolation) as exc_info:
            prove_claim(ledger, secret, 100, 101)
        assert exc_info.value.constraint_label == "amount.bound"

    def test_claiming_another_users_commitment(self, private_deposit, prover, config, hasher):
        """Test that knowing a leaf is not enough without its secret."""
        ledger, victim_secret = private_deposit(amount=100)
        signals, witness = rebuild_claim(ledger, victim_secret, 100, config, hasher)
        attacker = replace(witness, secret=secrets.randbelow(SNARK_SCALAR_FIELD - 1) + 1)
        with pytest.raises(ConstraintViolation) as exc_info:
            prover.generate_proof(signals, attacker)
        assert exc_info.value.constraint_label == "address.decomposition"

    def test_fabricated_root(self, private_deposit, prove_claim):
        """Test that claims against an invented root are refused by the ledger."""
        ledger, secret = private_deposit(amount=100)
        proof, signals = prove_claim(ledger, secret, 100, 50)
        with pytest.raises(UnknownRoot):
            ledger.remint(proof, replace(signals, root=(signals.root + 1) % SNARK_SCALAR_FIELD))

    @pytest.mark.parametrize(
        "data",
        [
            PROOF_MAGIC + b"\x00" * 32,
            PROOF_MAGIC + secrets.token_bytes(32),
            b"\x00" * 36,
            secrets.token_bytes(200),
        ],
    )
    def test_random_proof_bytes(self, private_deposit, prove_claim, data):
        """Test that guessed proof bytes are rejected."""
        ledger, secret = private_deposit(amount=100)
        proof, signals = prove_claim(ledger, secret, 100, 50)
        with pytest.raises(ProofRejected):
            ledger.remint(replace(proof, proof_data=data), signals)
        assert not ledger.is_spent(signals.nullifier)
