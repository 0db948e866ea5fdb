"""
Shared fixtures for the zkremint test suite.

Everything runs against a depth-4 accumulator (capacity 16) so that claim
circuits stay small.
"""

import pytest

from zkremint.client import AccumulatorReplica, ClaimBuilder
from zkremint.config import ProtocolConfig
from zkremint.crypto.derivation import commitment, derive_address, generate_secret
from zkremint.crypto.hashing import FieldHasher
from zkremint.crypto.merkle import CommitmentAccumulator
from zkremint.crypto.zkp import ClaimCircuit, ClaimProver, SetupVerifier, TrustedSetup
from zkremint.ledger import Ledger
from zkremint.logging import shutdown_logging

TEST_DEPTH = 4
DEPOSITOR = 0xD390517


@pytest.fixture(scope="session")
def config():
    return ProtocolConfig(tree_depth=TEST_DEPTH)


@pytest.fixture(scope="session")
def hasher(config):
    return FieldHasher(config.hasher_params())


@pytest.fixture(scope="session")
def circuit(config, hasher):
    return ClaimCircuit(config, hasher)


@pytest.fixture(scope="session")
def setup(circuit):
    return TrustedSetup.create(circuit)


@pytest.fixture(scope="session")
def prover(circuit, setup):
    return ClaimProver(circuit, setup.proving_key)


@pytest.fixture(scope="session")
def verifier(setup):
    return SetupVerifier(setup.verification_key)


@pytest.fixture
def accumulator(hasher):
    return CommitmentAccumulator(TEST_DEPTH, hasher)


@pytest.fixture
def claim_factory(config, hasher):
    """Build valid claim inputs for a commitment placed among filler leaves."""

    def build(
        committed_amount=100,
        claim_amount=60,
        recipient=0xB0B,
        token_id=0,
        withdraw_underlying=False,
        relayer_fee=0,
        secret=None,
        filler_before=(5, 6),
        filler_after=(77,),
    ):
        secret = secret if secret is not None else generate_secret()
        acc = CommitmentAccumulator(config.tree_depth, hasher)
        acc.insert_many(filler_before)
        derived = derive_address(
            secret, config.namespace_tag, token_id, hasher, config.address_bits
        )
        acc.insert(commitment(derived.address, committed_amount, hasher))
        acc.insert_many(filler_after)

        replica = AccumulatorReplica.from_events(
            [(leaf, i) for i, leaf in enumerate(acc.leaves)], config.tree_depth, hasher
        )
        signals, witness = ClaimBuilder(config, hasher).build(
            secret,
            committed_amount,
            recipient,
            claim_amount,
            replica,
            token_id=token_id,
            withdraw_underlying=withdraw_underlying,
            relayer_fee=relayer_fee,
            expected_root=acc.root,
        )
        return signals, witness, acc

    return build


@pytest.fixture
def private_deposit(config, hasher, verifier):
    """Ledger in which a fresh privacy address received ``amount`` wrapped tokens."""

    def build(amount=1000, secret=None, reserve=10_000):
        secret = secret if secret is not None else generate_secret()
        ledger = Ledger(config, verifier, hasher)
        ledger.deposit(DEPOSITOR, reserve)
        ledger.transfer(DEPOSITOR, 0x1111, 1)
        derived = derive_address(secret, config.namespace_tag, 0, hasher, config.address_bits)
        ledger.transfer(DEPOSITOR, derived.address, amount)
        return ledger, secret

    return build


@pytest.fixture
def prove_claim(config, hasher, prover):
    """Replay a ledger, build claim inputs and prove them."""

    def build(ledger, secret, committed_amount, claim_amount, recipient=0xB0B, **kwargs):
        replica = AccumulatorReplica.from_events(
            ledger.commitment_events(), config.tree_depth, hasher
        )
        signals, witness = ClaimBuilder(config, hasher).build(
            secret,
            committed_amount,
            recipient,
            claim_amount,
            replica,
            expected_root=ledger.root(),
            **kwargs,
        )
        return prover.generate_proof(signals, witness), signals

    return build


@pytest.fixture
def reset_logging():
    yield
    shutdown_logging()
