"""
Unit tests for the reference ledger and the spent-nullifier registry.

Proof checking is replaced by a stub gateway so these tests focus on ledger
state transitions.
"""

import threading

import pytest

from zkremint.config import ProtocolConfig
from zkremint.crypto.derivation import commitment
from zkremint.crypto.hashing import FieldHasher, HasherParams
from zkremint.crypto.zkp import Proof, ProofVerifierGateway, PublicSignals, VerificationResult, ZKPStatus
from zkremint.errors import (
    ConfigurationError,
    InsufficientBalance,
    NullifierAlreadySpent,
    ProofRejected,
    RangeViolation,
    TreeFull,
    UnknownRoot,
    ValidationError,
)
from zkremint.ledger import CommitmentAdded, Ledger, NullifierRegistry

ALICE = 0xA11CE
BOB = 0xB0B
CAROL = 0xCA201
RELAYER = 0x4E1A7E2


class StubGateway(ProofVerifierGateway):
    """Gateway that accepts or rejects every proof."""

    def __init__(self, accept=True):
        self.accept = accept
        self.calls = []

    def verify(self, proof, public_signals):
        self.calls.append(public_signals)
        if self.accept:
            return VerificationResult(status=ZKPStatus.SUCCESS, is_valid=True)
        return VerificationResult(
            status=ZKPStatus.VERIFICATION_FAILED, error_message="stub rejection"
        )


STUB_PROOF = Proof(proof_data=b"stub", public_inputs=[], circuit_id="stub")


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def ledger(config, hasher, gateway):
    ledger = Ledger(config, gateway, hasher)
    ledger.deposit(ALICE, 10_000)
    return ledger


def claim(ledger, nullifier=99, recipient=CAROL, amount=500, **kwargs):
    return PublicSignals(
        root=kwargs.pop("root", ledger.root()),
        nullifier=nullifier,
        recipient=recipient,
        claim_amount=amount,
        **kwargs,
    )


class TestNullifierRegistry:
    """Test NullifierRegistry functionality."""

    def test_check_and_set(self):
        """Test that a nullifier can be spent once."""
        registry = NullifierRegistry()
        assert not registry.is_spent(5)
        registry.check_and_set(5)
        assert registry.is_spent(5)
        assert 5 in registry
        assert len(registry) == 1
        with pytest.raises(NullifierAlreadySpent) as exc_info:
            registry.check_and_set(5)
        assert exc_info.value.error_code == "NULLIFIER_USED"
        assert registry.spent_count == 1

    def test_rejects_non_field(self):
        """Test that nullifiers must be field elements."""
        with pytest.raises(RangeViolation):
            NullifierRegistry().check_and_set(-1)

    def test_concurrent_spend_single_winner(self):
        """Test that concurrent spends of one nullifier admit exactly one."""
        registry = NullifierRegistry()
        outcomes = []
        barrier = threading.Barrier(8)

        def spend():
            barrier.wait()
            try:
                registry.check_and_set(42)
                outcomes.append("ok")
            except NullifierAlreadySpent:
                outcomes.append("spent")

        threads = [threading.Thread(target=spend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("spent") == 7


class TestLedgerTransfers:
    """Test deposits, withdrawals and first-receipt recording."""

    def test_deposit_records_no_commitment(self, ledger):
        """Test that deposits credit balance without touching the tree."""
        assert ledger.balance_of(ALICE) == 10_000
        assert ledger.reserve == 10_000
        assert ledger.commitment_events() == []
        assert not ledger.has_received(ALICE)

    def test_first_receipt_recorded(self, ledger, hasher):
        """Test that the first transfer to an address appends its commitment."""
        event = ledger.transfer(ALICE, BOB, 300)
        assert isinstance(event, CommitmentAdded)
        assert event.index == 0
        assert event.commitment == commitment(BOB, 300, hasher)
        assert event.root == ledger.root()
        assert event.as_replay_pair() == (event.commitment, 0)
        assert ledger.first_receipt(BOB) == event
        assert ledger.has_received(BOB)

    def test_later_receipts_not_recorded(self, ledger):
        """Test that only the first receipt becomes a commitment."""
        ledger.transfer(ALICE, BOB, 300)
        root = ledger.root()
        assert ledger.transfer(ALICE, BOB, 200) is None
        assert ledger.root() == root
        assert ledger.balance_of(BOB) == 500
        assert ledger.first_receipt(BOB).amount == 300
        assert len(ledger.commitment_events()) == 1

    def test_commitment_events_from_index(self, ledger):
        """Test slicing of the append log."""
        ledger.transfer(ALICE, BOB, 1)
        ledger.transfer(ALICE, CAROL, 2)
        events = ledger.commitment_events(1)
        assert [e.recipient for e in events] == [CAROL]

    def test_insufficient_balance(self, ledger):
        """Test that an overdraft changes nothing."""
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger.transfer(BOB, ALICE, 1)
        assert exc_info.value.available == 0
        assert ledger.commitment_events() == []

    def test_invalid_amounts(self, ledger):
        """Test amount validation."""
        with pytest.raises(ValidationError):
            ledger.transfer(ALICE, BOB, 0)
        with pytest.raises(ValidationError):
            ledger.deposit(ALICE, -5)

    def test_invalid_account(self, ledger):
        """Test that accounts must fit the address width."""
        with pytest.raises(RangeViolation):
            ledger.transfer(ALICE, 2 ** 160, 1)

    def test_withdraw(self, ledger):
        """Test burning wrapped funds for the underlying asset."""
        ledger.withdraw(ALICE, 4_000)
        assert ledger.balance_of(ALICE) == 6_000
        assert ledger.reserve == 6_000
        assert ledger.underlying_balance_of(ALICE) == 4_000
        with pytest.raises(InsufficientBalance):
            ledger.withdraw(ALICE, 6_001)

    def test_full_accumulator_blocks_new_recipients(self, hasher, gateway):
        """Test that a transfer fails atomically when no leaf is left."""
        ledger = Ledger(ProtocolConfig(tree_depth=1), gateway, hasher)
        ledger.deposit(ALICE, 100)
        ledger.transfer(ALICE, BOB, 10)
        ledger.transfer(ALICE, CAROL, 10)

        with pytest.raises(TreeFull):
            ledger.transfer(ALICE, RELAYER, 10)
        assert ledger.balance_of(ALICE) == 80
        assert ledger.balance_of(RELAYER) == 0

        # Known recipients still work.
        assert ledger.transfer(ALICE, BOB, 10) is None


class TestLedgerRemint:
    """Test claim execution."""

    def test_accepted_claim(self, ledger, gateway, hasher):
        """Test that an accepted claim credits the recipient once."""
        signals = claim(ledger)
        receipt = ledger.remint(STUB_PROOF, signals)

        assert receipt.received == 500
        assert receipt.relayer_fee == 0
        assert not receipt.withdraw_underlying
        assert ledger.balance_of(CAROL) == 500
        assert ledger.is_spent(signals.nullifier)
        assert gateway.calls == [signals]

        # The recipient's first receipt is itself a new commitment.
        assert len(receipt.events) == 1
        assert receipt.events[0].commitment == commitment(CAROL, 500, hasher)

    def test_double_spend_rejected(self, ledger):
        """Test that a nullifier cannot be used twice."""
        ledger.remint(STUB_PROOF, claim(ledger))
        with pytest.raises(NullifierAlreadySpent):
            ledger.remint(STUB_PROOF, claim(ledger, recipient=BOB))
        assert ledger.balance_of(BOB) == 0
        assert ledger.balance_of(CAROL) == 500

    def test_unknown_root(self, ledger, gateway):
        """Test that unknown roots are rejected before verification."""
        with pytest.raises(UnknownRoot):
            ledger.remint(STUB_PROOF, claim(ledger, root=12345))
        assert gateway.calls == []
        assert not ledger.is_spent(99)

    def test_historical_root_accepted(self, ledger):
        """Test claims against a root from before later inserts."""
        old_root = ledger.root()
        ledger.transfer(ALICE, BOB, 1)
        ledger.remint(STUB_PROOF, claim(ledger, root=old_root))
        assert ledger.balance_of(CAROL) == 500

    def test_rejected_proof(self, config, hasher):
        """Test that a gateway rejection leaves state untouched."""
        ledger = Ledger(config, StubGateway(accept=False), hasher)
        with pytest.raises(ProofRejected) as exc_info:
            ledger.remint(STUB_PROOF, claim(ledger))
        assert exc_info.value.status == "VERIFICATION_FAILED"
        assert not ledger.is_spent(99)
        assert ledger.balance_of(CAROL) == 0

    def test_foreign_hasher_rejected(self, config, gateway):
        """Test that the ledger refuses hash parameters its config does not name."""
        with pytest.raises(ConfigurationError):
            Ledger(config, gateway, FieldHasher(HasherParams(rounds=10)))

    def test_missing_verifier(self, config, hasher):
        """Test that a ledger without a gateway refuses claims."""
        ledger = Ledger(config, None, hasher)
        with pytest.raises(ValidationError):
            ledger.remint(STUB_PROOF, claim(ledger))

    def test_wrong_token(self, ledger):
        """Test that claims for another token are rejected."""
        with pytest.raises(ValidationError):
            ledger.remint(STUB_PROOF, claim(ledger, token_id=7))
        assert not ledger.is_spent(99)

    def test_zero_claim_rejected(self, ledger):
        """Test that empty claims are rejected."""
        with pytest.raises(ValidationError):
            ledger.remint(STUB_PROOF, claim(ledger, amount=0))

    def test_relayer_fee(self, ledger):
        """Test fee split in basis points."""
        receipt = ledger.remint(
            STUB_PROOF, claim(ledger, amount=1000, relayer_fee=250), relayer=RELAYER
        )
        assert receipt.relayer_fee == 25
        assert receipt.received == 975
        assert ledger.balance_of(CAROL) == 975
        assert ledger.balance_of(RELAYER) == 25
        assert {e.recipient for e in receipt.events} == {CAROL, RELAYER}

    def test_fee_requires_relayer(self, ledger):
        """Test that a fee without a relayer account is rejected."""
        with pytest.raises(ValidationError):
            ledger.remint(STUB_PROOF, claim(ledger, amount=1000, relayer_fee=250))
        assert not ledger.is_spent(99)

    def test_fee_rounds_down_to_zero(self, ledger):
        """Test that a fee below one unit needs no relayer."""
        receipt = ledger.remint(STUB_PROOF, claim(ledger, amount=10, relayer_fee=5))
        assert receipt.relayer_fee == 0
        assert receipt.received == 10

    def test_withdraw_underlying(self, ledger):
        """Test paying the claim out of the reserve."""
        receipt = ledger.remint(STUB_PROOF, claim(ledger, withdraw_underlying=1))
        assert receipt.withdraw_underlying
        assert receipt.events == ()
        assert ledger.reserve == 9_500
        assert ledger.underlying_balance_of(CAROL) == 500
        assert ledger.balance_of(CAROL) == 0
        assert not ledger.has_received(CAROL)

    def test_withdraw_underlying_reserve_exhausted(self, config, hasher, gateway):
        """Test that an uncovered withdrawal does not burn the nullifier."""
        ledger = Ledger(config, gateway, hasher)
        ledger.deposit(ALICE, 100)
        with pytest.raises(InsufficientBalance):
            ledger.remint(STUB_PROOF, claim(ledger, amount=500, withdraw_underlying=1))
        assert not ledger.is_spent(99)
        assert ledger.reserve == 100

    def test_claim_blocked_by_full_accumulator(self, hasher, gateway):
        """Test that a claim needing a new leaf fails without spending."""
        ledger = Ledger(ProtocolConfig(tree_depth=1), gateway, hasher)
        ledger.deposit(ALICE, 100)
        ledger.transfer(ALICE, BOB, 10)
        ledger.transfer(ALICE, RELAYER, 10)

        with pytest.raises(TreeFull):
            ledger.remint(STUB_PROOF, claim(ledger))
        assert not ledger.is_spent(99)

        # A recipient that already has a leaf can still claim.
        ledger.remint(STUB_PROOF, claim(ledger, recipient=BOB))
        assert ledger.balance_of(BOB) == 510
