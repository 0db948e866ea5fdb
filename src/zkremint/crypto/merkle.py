"""
Append-only commitment accumulator.

This module provides the fixed-depth incremental Merkle tree that records
commitments, the membership proofs built from it, and the pure folding
functions shared by the ledger, off-chain replicas and proof verification.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..errors.exceptions import (
    ConfigurationError,
    IndexOutOfRange,
    TreeFull,
    ValidationError,
)
from ..logging import get_logger
from .field import field_to_hex, require_field_element, to_field
from .hashing import FieldHasher

logger = get_logger(__name__)

DEFAULT_TREE_DEPTH = 20
MAX_TREE_DEPTH = 32

# (sibling, direction); direction 0 means the current node is the left child.
PathElement = Tuple[int, int]


def zero_ladder(depth: int, hasher: FieldHasher) -> Tuple[int, ...]:
    """Empty-subtree hashes: ``zero[0] = 0``, ``zero[i] = H(zero[i-1], zero[i-1])``."""
    zeros = [0]
    for _ in range(1, depth):
        zeros.append(hasher.hash2(zeros[-1], zeros[-1]))
    return tuple(zeros)


def fold(leaf: int, path: Iterable[PathElement], hasher: FieldHasher) -> int:
    """
    Fold a leaf upward through a membership path.

    Args:
        leaf: Leaf value
        path: ``(sibling, direction)`` pairs from the leaf level upward
        hasher: Field hasher shared with the accumulator

    Returns:
        The root implied by the path
    """
    current = leaf
    for level, (sibling, direction) in enumerate(path):
        if direction == 0:
            current = hasher.hash2(current, sibling)
        elif direction == 1:
            current = hasher.hash2(sibling, current)
        else:
            raise ValidationError(
                f"Direction bit at level {level} must be 0 or 1",
                field="direction",
                value=direction,
                expected="0 or 1",
            )
    return current


def compute_root(leaves: Sequence[int], depth: int, hasher: FieldHasher) -> int:
    """
    Root of a tree holding ``leaves`` left to right, padded with zero hashes.

    An empty sequence yields ``zero[depth-1]``, the root the accumulator starts
    from.
    """
    if len(leaves) > (1 << depth):
        raise TreeFull(
            f"{len(leaves)} leaves exceed capacity {1 << depth}",
            capacity=1 << depth,
        )

    zeros = zero_ladder(depth, hasher)
    if not leaves:
        return zeros[depth - 1]

    level = list(leaves)
    for i in range(depth):
        if len(level) % 2:
            level.append(zeros[i])
        level = [hasher.hash2(level[j], level[j + 1]) for j in range(0, len(level), 2)]
    return level[0]


@dataclass(frozen=True)
class MerkleProof:
    """Proof of inclusion of one leaf in the accumulator."""

    leaf: int
    leaf_index: int
    path: Tuple[PathElement, ...]
    root: int

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def path_elements(self) -> List[int]:
        return [sibling for sibling, _ in self.path]

    @property
    def path_indices(self) -> List[int]:
        return [direction for _, direction in self.path]

    def compute_root(self, hasher: FieldHasher) -> int:
        return fold(self.leaf, self.path, hasher)

    def verify(self, hasher: FieldHasher) -> bool:
        """Verify that this proof folds to its recorded root."""
        return self.compute_root(hasher) == self.root

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leaf": field_to_hex(self.leaf),
            "leaf_index": self.leaf_index,
            "path_elements": [field_to_hex(s) for s in self.path_elements],
            "path_indices": self.path_indices,
            "root": field_to_hex(self.root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MerkleProof":
        elements = [to_field(s) for s in data["path_elements"]]
        indices = [int(d) for d in data["path_indices"]]
        if len(elements) != len(indices):
            raise ValidationError(
                "path_elements and path_indices differ in length",
                field="path",
                value=(len(elements), len(indices)),
            )
        return cls(
            leaf=to_field(data["leaf"]),
            leaf_index=int(data["leaf_index"]),
            path=tuple(zip(elements, indices)),
            root=to_field(data["root"]),
        )


@dataclass(frozen=True)
class TreeSnapshot:
    """Consistent read-only view of the accumulator at one point in time."""

    depth: int
    leaves: Tuple[int, ...]
    root: int

    @property
    def next_index(self) -> int:
        return len(self.leaves)


class CommitmentAccumulator:
    """Fixed-depth append-only Merkle tree of commitments."""

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH, hasher: Optional[FieldHasher] = None):
        """
        Initialize an empty accumulator.

        Args:
            depth: Number of levels; capacity is ``2^depth`` leaves
            hasher: Field hasher; every replica must use equal parameters
        """
        if not isinstance(depth, int) or not 1 <= depth <= MAX_TREE_DEPTH:
            raise ConfigurationError(
                f"Tree depth must be between 1 and {MAX_TREE_DEPTH}",
                config_key="depth",
                config_value=depth,
            )

        self.depth = depth
        self.hasher = hasher or FieldHasher()
        self.zeros = zero_ladder(depth, self.hasher)
        self.filled_subtrees: List[int] = list(self.zeros)
        self._leaves: List[int] = []
        self._root = self.zeros[depth - 1]
        self._known_roots: Set[int] = {self._root}
        self._root_history: List[int] = [self._root]
        self._subtree_cache: Dict[Tuple[int, int], int] = {}
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def root(self) -> int:
        with self._lock:
            return self._root

    @property
    def next_index(self) -> int:
        with self._lock:
            return len(self._leaves)

    @property
    def leaves(self) -> List[int]:
        with self._lock:
            return list(self._leaves)

    @property
    def root_history(self) -> List[int]:
        with self._lock:
            return list(self._root_history)

    def insert(self, leaf: int) -> int:
        """
        Append a leaf and return the new root.

        Raises:
            TreeFull: if the tree already holds ``2^depth`` leaves
            RangeViolation: if the leaf is not a field element
        """
        require_field_element(leaf, "leaf")

        with self._lock:
            index = len(self._leaves)
            if index >= self.capacity:
                logger.warning(
                    "Rejected insert into full accumulator",
                    extra={"capacity": self.capacity},
                )
                raise TreeFull(
                    f"Accumulator is full ({self.capacity} leaves)",
                    capacity=self.capacity,
                )

            current = leaf
            position = index
            for level in range(self.depth):
                if position % 2 == 0:
                    self.filled_subtrees[level] = current
                    left, right = current, self.zeros[level]
                else:
                    left, right = self.filled_subtrees[level], current
                current = self.hasher.hash2(left, right)
                position //= 2

            self._leaves.append(leaf)
            self._root = current
            self._known_roots.add(current)
            self._root_history.append(current)

        logger.debug(
            "Inserted commitment",
            extra={"index": index, "root": field_to_hex(current)},
        )
        return current

    def insert_many(self, leaves: Iterable[int]) -> int:
        root = self.root
        for leaf in leaves:
            root = self.insert(leaf)
        return root

    def is_known_root(self, root: int) -> bool:
        with self._lock:
            return root in self._known_roots

    def snapshot(self) -> TreeSnapshot:
        with self._lock:
            return TreeSnapshot(self.depth, tuple(self._leaves), self._root)

    def prove_membership(self, index: int, snapshot: Optional[TreeSnapshot] = None) -> MerkleProof:
        """
        Build a membership proof for the leaf at ``index``.

        Siblings are recomputed from the persisted leaves, never read from
        ``filled_subtrees``, which only reflects the latest insert path.

        Args:
            index: Leaf position
            snapshot: View to prove against; defaults to the current state

        Raises:
            IndexOutOfRange: if no leaf exists at ``index``
        """
        if snapshot is None:
            snapshot = self.snapshot()

        if not isinstance(index, int) or index < 0 or index >= snapshot.next_index:
            raise IndexOutOfRange(
                f"No leaf at index {index} (next index is {snapshot.next_index})",
                index=index,
                next_index=snapshot.next_index,
            )

        leaves = snapshot.leaves
        path = []
        position = index
        for level in range(self.depth):
            sibling = self._subtree_root(level, position ^ 1, leaves)
            path.append((sibling, position & 1))
            position >>= 1

        return MerkleProof(
            leaf=leaves[index],
            leaf_index=index,
            path=tuple(path),
            root=snapshot.root,
        )

    def _subtree_root(self, level: int, position: int, leaves: Sequence[int]) -> int:
        """Root of the subtree at ``level`` covering leaf slot ``position``."""
        start = position << level
        if start >= len(leaves):
            return self.zeros[level]

        complete = start + (1 << level) <= len(leaves)
        key = (level, position)
        if complete:
            cached = self._subtree_cache.get(key)
            if cached is not None:
                return cached

        if level == 0:
            value = leaves[start]
        else:
            value = self.hasher.hash2(
                self._subtree_root(level - 1, 2 * position, leaves),
                self._subtree_root(level - 1, 2 * position + 1, leaves),
            )

        # A complete subtree never changes once its last leaf is appended.
        if complete:
            self._subtree_cache[key] = value
        return value

    def get_tree_info(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "depth": self.depth,
                "capacity": self.capacity,
                "next_index": len(self._leaves),
                "root": field_to_hex(self._root),
                "known_roots": len(self._known_roots),
                "hasher": self.hasher.params.fingerprint(),
            }

    def __len__(self) -> int:
        return self.next_index
