"""
Rank-1 constraint systems over the BN254 scalar field.

A constraint ``a * b = c`` relates three linear combinations of wires. Wire 0
is the constant one; every other wire is either a public input or a private
witness value. The system records the assignment as it is built so that
satisfaction can be checked before any proof is produced.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes

from ...errors.exceptions import ConstraintViolation, ValidationError
from ..field import SNARK_SCALAR_FIELD

ONE = 0


class ConstraintType(Enum):
    """Types of constraints in a circuit."""

    BOOLEAN = "boolean"
    RANGE = "range"
    EQUALITY = "equality"
    COMPARISON = "comparison"
    HASH = "hash"
    SELECTION = "selection"
    BINDING = "binding"
    CUSTOM = "custom"


class LinearCombination:
    """Sparse linear combination ``sum(coeff * wire)`` mod P."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None):
        self.terms: Dict[int, int] = {}
        for wire, coeff in (terms or {}).items():
            coeff %= SNARK_SCALAR_FIELD
            if coeff:
                self.terms[wire] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE: value})

    @classmethod
    def wire(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    def __add__(self, other: "LCLike") -> "LinearCombination":
        other = as_lc(other)
        terms = dict(self.terms)
        for wire, coeff in other.terms.items():
            terms[wire] = terms.get(wire, 0) + coeff
        return LinearCombination(terms)

    __radd__ = __add__

    def __neg__(self) -> "LinearCombination":
        return LinearCombination({wire: -coeff for wire, coeff in self.terms.items()})

    def __sub__(self, other: "LCLike") -> "LinearCombination":
        return self + (-as_lc(other))

    def __rsub__(self, other: "LCLike") -> "LinearCombination":
        return as_lc(other) - self

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int):
            return NotImplemented
        return LinearCombination(
            {wire: coeff * scalar for wire, coeff in self.terms.items()}
        )

    __rmul__ = __mul__

    def evaluate(self, values: List[int]) -> int:
        return sum(coeff * values[wire] for wire, coeff in self.terms.items()) % SNARK_SCALAR_FIELD

    def wires(self) -> List[int]:
        return [wire for wire in self.terms if wire != ONE]

    def encode(self) -> bytes:
        """Canonical byte encoding, independent of the assignment."""
        return b"".join(
            wire.to_bytes(4, byteorder="big") + coeff.to_bytes(32, byteorder="big")
            for wire, coeff in sorted(self.terms.items())
        )

    def __repr__(self) -> str:
        return f"LinearCombination({self.terms})"


LCLike = Union[LinearCombination, int]


def as_lc(value: LCLike) -> LinearCombination:
    if isinstance(value, LinearCombination):
        return value
    if isinstance(value, int):
        return LinearCombination.constant(value)
    raise TypeError(f"Cannot use {type(value).__name__} as a linear combination")


@dataclass
class Constraint:
    """Represents a constraint ``a * b = c`` in a circuit."""

    a: LinearCombination
    b: LinearCombination
    c: LinearCombination
    label: str
    constraint_type: ConstraintType = ConstraintType.CUSTOM

    def is_satisfied(self, values: List[int]) -> bool:
        return (self.a.evaluate(values) * self.b.evaluate(values) - self.c.evaluate(values)) % SNARK_SCALAR_FIELD == 0

    def wires(self) -> List[int]:
        return self.a.wires() + self.b.wires() + self.c.wires()


class ConstraintSystem:
    """Constraint system with its witness assignment."""

    def __init__(self, circuit_id: str = "circuit"):
        self.circuit_id = circuit_id
        self.values: List[int] = [1]
        self.names: List[str] = ["one"]
        self.public_wires: List[int] = []
        self.private_wires: List[int] = []
        self.constraints: List[Constraint] = []

    def _alloc(self, name: str, value: int) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(
                f"Wire {name} must be assigned an integer",
                field=name,
                value=value,
            )
        self.values.append(value % SNARK_SCALAR_FIELD)
        self.names.append(name)
        return len(self.values) - 1

    def alloc_public(self, name: str, value: int) -> LinearCombination:
        """Allocate a public input wire; public wires keep allocation order."""
        index = self._alloc(name, value)
        self.public_wires.append(index)
        return LinearCombination.wire(index)

    def alloc_private(self, name: str, value: int) -> LinearCombination:
        index = self._alloc(name, value)
        self.private_wires.append(index)
        return LinearCombination.wire(index)

    def value_of(self, lc: LCLike) -> int:
        return as_lc(lc).evaluate(self.values)

    def enforce(
        self,
        a: LCLike,
        b: LCLike,
        c: LCLike,
        label: str,
        constraint_type: ConstraintType = ConstraintType.CUSTOM,
    ) -> None:
        """Add the constraint ``a * b = c``."""
        self.constraints.append(
            Constraint(as_lc(a), as_lc(b), as_lc(c), label, constraint_type)
        )

    def enforce_equal(
        self,
        left: LCLike,
        right: LCLike,
        label: str,
        constraint_type: ConstraintType = ConstraintType.EQUALITY,
    ) -> None:
        self.enforce(left, 1, right, label, constraint_type)

    def first_violation(self) -> Optional[Tuple[int, Constraint]]:
        for index, constraint in enumerate(self.constraints):
            if not constraint.is_satisfied(self.values):
                return index, constraint
        return None

    def is_satisfied(self) -> bool:
        return self.first_violation() is None

    def check(self) -> None:
        """
        Check the assignment against every constraint.

        Raises:
            ConstraintViolation: naming the first unsatisfied constraint
        """
        violation = self.first_violation()
        if violation is not None:
            index, constraint = violation
            raise ConstraintViolation(
                f"Constraint '{constraint.label}' is not satisfied",
                constraint_label=constraint.label,
                constraint_index=index,
            )

    def unbound_public_inputs(self) -> List[str]:
        """Names of public inputs that no constraint references."""
        referenced = set()
        for constraint in self.constraints:
            referenced.update(constraint.wires())
        return [self.names[w] for w in self.public_wires if w not in referenced]

    def public_values(self) -> List[int]:
        return [self.values[w] for w in self.public_wires]

    def digest(self) -> str:
        """SHA-256 over the structure: wire layout and constraints, not values."""
        digest = hashes.Hash(hashes.SHA256())
        digest.update(self.circuit_id.encode("utf-8"))
        digest.update(len(self.values).to_bytes(4, byteorder="big"))
        for wire in self.public_wires:
            digest.update(wire.to_bytes(4, byteorder="big"))
        for constraint in self.constraints:
            for lc in (constraint.a, constraint.b, constraint.c):
                encoded = lc.encode()
                digest.update(len(encoded).to_bytes(4, byteorder="big"))
                digest.update(encoded)
        return digest.finalize().hex()

    def get_constraint_count(self) -> int:
        return len(self.constraints)

    def get_variable_count(self) -> int:
        return len(self.values)

    def get_circuit_info(self) -> Dict[str, Any]:
        """Get information about the circuit."""
        by_type: Dict[str, int] = {}
        for constraint in self.constraints:
            key = constraint.constraint_type.value
            by_type[key] = by_type.get(key, 0) + 1

        return {
            "circuit_id": self.circuit_id,
            "constraint_count": len(self.constraints),
            "variable_count": len(self.values),
            "public_inputs": [self.names[w] for w in self.public_wires],
            "private_variable_count": len(self.private_wires),
            "constraints_by_type": by_type,
        }

    def labels(self) -> Iterable[str]:
        return (constraint.label for constraint in self.constraints)
