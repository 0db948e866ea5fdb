"""
Off-chain accumulator replica.

A replica rebuilds its own copy of the accumulator from the ledger's append
log, strictly in insertion order, and must match a ledger-exposed root before
any proof built against it is trusted.
"""

from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..crypto.field import field_to_hex
from ..crypto.hashing import FieldHasher
from ..crypto.merkle import CommitmentAccumulator, MerkleProof
from ..errors.exceptions import RootMismatch, TreeFull
from ..ledger.ledger import CommitmentAdded
from ..logging import get_logger

logger = get_logger(__name__)

ReplayEvent = Union[CommitmentAdded, Tuple[int, int]]


def _as_pair(event: ReplayEvent) -> Tuple[int, int]:
    if isinstance(event, CommitmentAdded):
        return event.as_replay_pair()
    leaf, index = event
    return leaf, index


class AccumulatorReplica:
    """Independently owned copy of the commitment accumulator."""

    def __init__(self, depth: int, hasher: FieldHasher):
        self.accumulator = CommitmentAccumulator(depth, hasher)
        self._positions: Dict[int, List[int]] = {}

    @classmethod
    def from_events(
        cls, events: Iterable[ReplayEvent], depth: int, hasher: FieldHasher
    ) -> "AccumulatorReplica":
        """
        Replay ``(leaf_value, insertion_index)`` events in index order.

        Raises:
            RootMismatch: if the indices have a gap or a duplicate
        """
        replica = cls(depth, hasher)
        replica.sync(events)
        return replica

    def sync(self, events: Iterable[ReplayEvent]) -> int:
        """
        Apply events not yet replayed and return the new root.

        Events already applied must agree with the local leaves. The whole
        batch is checked before anything is applied, so a rejected batch
        leaves the replica unchanged.

        Raises:
            RootMismatch: on a conflicting event, a gap or a duplicate index
            TreeFull: if the new events do not fit in the tree
        """
        pairs = sorted((_as_pair(e) for e in events), key=lambda pair: pair[1])
        leaves = self.accumulator.leaves
        expected = len(leaves)
        pending = []
        for leaf, index in pairs:
            if index < len(leaves):
                if leaves[index] != leaf:
                    raise RootMismatch(
                        f"Event {index} disagrees with the replayed leaf",
                        expected_root=leaf,
                        actual_root=leaves[index],
                    )
                continue
            if index != expected:
                logger.error(
                    "Replay event out of sequence",
                    extra={"expected_index": expected, "index": index},
                )
                raise RootMismatch(
                    f"Replay expected index {expected}, got {index}",
                )
            pending.append(leaf)
            expected += 1

        start = len(leaves)
        if start + len(pending) > self.accumulator.capacity:
            raise TreeFull(
                f"Replay of {len(pending)} events exceeds capacity {self.accumulator.capacity}",
                capacity=self.accumulator.capacity,
            )
        for offset, leaf in enumerate(pending):
            self.apply(leaf, start + offset)
        return self.accumulator.root

    def apply(self, leaf: int, index: int) -> int:
        """Append one event; it must carry the next insertion index."""
        if index != self.accumulator.next_index:
            raise RootMismatch(
                f"Replay expected index {self.accumulator.next_index}, got {index}"
            )
        root = self.accumulator.insert(leaf)
        self._positions.setdefault(leaf, []).append(index)
        return root

    @property
    def root(self) -> int:
        return self.accumulator.root

    @property
    def next_index(self) -> int:
        return self.accumulator.next_index

    @property
    def depth(self) -> int:
        return self.accumulator.depth

    @property
    def hasher(self) -> FieldHasher:
        return self.accumulator.hasher

    def verify_root(self, ledger_root: int) -> None:
        """
        Check the replayed root against the authoritative one.

        Raises:
            RootMismatch: on divergence (missed events or a hash mismatch)
        """
        local_root = self.accumulator.root
        if local_root != ledger_root:
            logger.error(
                "Replica root diverged from ledger",
                extra={
                    "ledger_root": field_to_hex(ledger_root),
                    "local_root": field_to_hex(local_root),
                    "next_index": self.accumulator.next_index,
                },
            )
            raise RootMismatch(
                "Replayed root does not match the ledger root",
                expected_root=ledger_root,
                actual_root=local_root,
            )

    def find_commitment(self, commitment: int) -> Optional[int]:
        """Index of the first leaf equal to ``commitment``, if any."""
        positions = self._positions.get(commitment)
        return positions[0] if positions else None

    def prove(self, index: int) -> MerkleProof:
        return self.accumulator.prove_membership(index)
