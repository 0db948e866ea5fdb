"""
Reference in-memory ledger.

The ledger owns the authoritative commitment accumulator, records a
commitment ``H(recipient, amount)`` the first time an address receives
wrapped funds, and executes claims once the verifier gateway accepts them.
State transitions are serialized by one lock and are all-or-nothing.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from ..config import ProtocolConfig
from ..crypto.derivation import commitment
from ..crypto.field import field_to_hex, fits_in_bits
from ..crypto.hashing import FieldHasher
from ..crypto.merkle import CommitmentAccumulator
from ..crypto.zkp.claim import PublicSignals
from ..crypto.zkp.core import Proof
from ..crypto.zkp.verification import ProofVerifierGateway
from ..errors.exceptions import (
    InsufficientBalance,
    ProofRejected,
    TreeFull,
    UnknownRoot,
    ValidationError,
    create_range_violation,
)
from ..logging import get_logger
from .registry import NullifierRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommitmentAdded:
    """Append event emitted when a first receipt is recorded."""

    index: int
    commitment: int
    recipient: int
    amount: int
    root: int

    def as_replay_pair(self) -> Tuple[int, int]:
        """``(leaf_value, insertion_index)`` as consumed by replicas."""
        return self.commitment, self.index


@dataclass(frozen=True)
class RemintReceipt:
    """Outcome of an accepted claim."""

    nullifier: int
    recipient: int
    claim_amount: int
    received: int
    relayer_fee: int
    withdraw_underlying: bool
    events: Tuple[CommitmentAdded, ...] = ()


class Ledger:
    """Wrapped-token ledger with private re-minting."""

    def __init__(
        self,
        config: Optional[ProtocolConfig] = None,
        verifier: Optional[ProofVerifierGateway] = None,
        hasher: Optional[FieldHasher] = None,
        token_id: int = 0,
    ):
        self.config = config or ProtocolConfig()
        self.config.validate()
        self.hasher = hasher or FieldHasher(self.config.hasher_params())
        self.config.require_hasher(self.hasher.params)
        self.verifier = verifier
        self.token_id = token_id

        self.accumulator = CommitmentAccumulator(self.config.tree_depth, self.hasher)
        self.registry = NullifierRegistry()

        self._balances: Dict[int, int] = {}
        self._underlying_paid: Dict[int, int] = {}
        self._reserve = 0
        self._received: Set[int] = set()
        self._first_receipts: Dict[int, CommitmentAdded] = {}
        self._events: List[CommitmentAdded] = []
        self._lock = threading.RLock()

    # Validation helpers

    def _require_account(self, account: int, name: str = "account") -> None:
        if not isinstance(account, int) or not fits_in_bits(account, self.config.address_bits):
            raise create_range_violation(name, account, self.config.address_bits)

    def _require_amount(self, amount: int, name: str = "amount") -> None:
        if not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                f"{name} must be a positive integer",
                field=name,
                value=amount,
                expected="> 0",
            )
        if not fits_in_bits(amount, self.config.amount_bits):
            raise create_range_violation(name, amount, self.config.amount_bits)

    # Balances

    def balance_of(self, account: int) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def underlying_balance_of(self, account: int) -> int:
        """Underlying asset paid out to ``account``."""
        with self._lock:
            return self._underlying_paid.get(account, 0)

    @property
    def reserve(self) -> int:
        with self._lock:
            return self._reserve

    def deposit(self, account: int, amount: int) -> None:
        """Lock underlying and credit wrapped funds; never records a commitment."""
        self._require_account(account)
        self._require_amount(amount)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
            self._reserve += amount
        logger.debug("Deposit", extra={"account": hex(account), "amount": amount})

    def withdraw(self, account: int, amount: int) -> None:
        """Burn wrapped funds and pay out the underlying asset."""
        self._require_account(account)
        self._require_amount(amount)
        with self._lock:
            self._debit(account, amount)
            self._reserve -= amount
            self._underlying_paid[account] = self._underlying_paid.get(account, 0) + amount

    def transfer(self, sender: int, recipient: int, amount: int) -> Optional[CommitmentAdded]:
        """
        Move wrapped funds; returns the commitment event on a first receipt.

        Raises:
            InsufficientBalance: if the sender cannot cover ``amount``
            TreeFull: if the first receipt cannot be recorded
        """
        self._require_account(sender, "sender")
        self._require_account(recipient, "recipient")
        self._require_amount(amount)

        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                raise InsufficientBalance(
                    "Insufficient balance for transfer",
                    account=hex(sender),
                    required=amount,
                    available=available,
                )
            self._ensure_capacity([recipient])
            self._debit(sender, amount)
            return self._credit(recipient, amount)

    def _debit(self, account: int, amount: int) -> None:
        available = self._balances.get(account, 0)
        if available < amount:
            raise InsufficientBalance(
                "Insufficient balance",
                account=hex(account),
                required=amount,
                available=available,
            )
        self._balances[account] = available - amount

    def _credit(self, account: int, amount: int) -> Optional[CommitmentAdded]:
        self._balances[account] = self._balances.get(account, 0) + amount
        if account in self._received:
            return None
        return self._record_first_receipt(account, amount)

    def _record_first_receipt(self, account: int, amount: int) -> CommitmentAdded:
        leaf = commitment(account, amount, self.hasher)
        index = self.accumulator.next_index
        root = self.accumulator.insert(leaf)
        event = CommitmentAdded(
            index=index, commitment=leaf, recipient=account, amount=amount, root=root
        )
        self._received.add(account)
        self._first_receipts[account] = event
        self._events.append(event)
        logger.info(
            "Recorded first receipt",
            extra={"index": index, "commitment": field_to_hex(leaf)},
        )
        return event

    def _ensure_capacity(self, accounts: List[int]) -> None:
        new_accounts = {a for a in accounts if a not in self._received}
        if self.accumulator.next_index + len(new_accounts) > self.accumulator.capacity:
            raise TreeFull(
                "Accumulator cannot record another first receipt",
                capacity=self.accumulator.capacity,
            )

    # Accumulator views

    def root(self) -> int:
        return self.accumulator.root

    def is_known_root(self, root: int) -> bool:
        return self.accumulator.is_known_root(root)

    def commitment_events(self, start: int = 0) -> List[CommitmentAdded]:
        """Ordered append log from insertion index ``start`` onward."""
        with self._lock:
            return list(self._events[start:])

    def first_receipt(self, address: int) -> Optional[CommitmentAdded]:
        with self._lock:
            return self._first_receipts.get(address)

    def has_received(self, address: int) -> bool:
        with self._lock:
            return address in self._received

    def is_spent(self, nullifier: int) -> bool:
        return self.registry.is_spent(nullifier)

    # Claims

    def remint(
        self,
        proof: Proof,
        public_signals: PublicSignals,
        relayer: Optional[int] = None,
    ) -> RemintReceipt:
        """
        Execute a claim.

        The root must be known, the gateway must accept the proof for these
        exact signals, and the nullifier must be unspent. The nullifier is
        marked together with the fund movement; nothing is applied on failure.

        Raises:
            UnknownRoot: if the root was never produced by the accumulator
            ProofRejected: if the gateway rejects the proof
            NullifierAlreadySpent: if the nullifier was already used
        """
        if self.verifier is None:
            raise ValidationError("Ledger has no verifier gateway", field="verifier")

        signals = public_signals
        if not self.is_known_root(signals.root):
            logger.warning("Rejected claim for unknown root", extra={"root": hex(signals.root)})
            raise UnknownRoot("Claim references an unknown root", root=signals.root)

        result = self.verifier.verify(proof, signals)
        if not result.is_success:
            logger.warning(
                "Rejected claim with invalid proof",
                extra={"status": result.status.name},
            )
            raise ProofRejected(
                result.error_message or "Proof rejected",
                status=result.status.name,
            )

        if signals.token_id != self.token_id:
            raise ValidationError(
                "Claim is for a different token",
                field="token_id",
                value=signals.token_id,
                expected=self.token_id,
            )
        self._require_account(signals.recipient, "recipient")
        self._require_amount(signals.claim_amount, "claim_amount")

        fee = signals.claim_amount * signals.relayer_fee // self.config.fee_denominator
        received = signals.claim_amount - fee
        if fee and relayer is None:
            raise ValidationError(
                "A relayer fee requires a relayer account", field="relayer"
            )
        if relayer is not None:
            self._require_account(relayer, "relayer")

        withdraw = signals.withdraws_underlying
        with self._lock:
            credited = [] if withdraw else [signals.recipient]
            if fee:
                credited.append(relayer)
            self._ensure_capacity(credited)
            if withdraw and self._reserve < received:
                raise InsufficientBalance(
                    "Underlying reserve cannot cover the claim",
                    account="reserve",
                    required=received,
                    available=self._reserve,
                )

            self.registry.check_and_set(signals.nullifier)

            events = []
            if withdraw:
                self._reserve -= received
                self._underlying_paid[signals.recipient] = (
                    self._underlying_paid.get(signals.recipient, 0) + received
                )
            elif received:
                event = self._credit(signals.recipient, received)
                if event is not None:
                    events.append(event)
            if fee:
                event = self._credit(relayer, fee)
                if event is not None:
                    events.append(event)

        logger.info(
            "Accepted claim",
            extra={
                "nullifier": field_to_hex(signals.nullifier),
                "amount": signals.claim_amount,
                "withdraw_underlying": withdraw,
            },
        )
        return RemintReceipt(
            nullifier=signals.nullifier,
            recipient=signals.recipient,
            claim_amount=signals.claim_amount,
            received=received,
            relayer_fee=fee,
            withdraw_underlying=withdraw,
            events=tuple(events),
        )
