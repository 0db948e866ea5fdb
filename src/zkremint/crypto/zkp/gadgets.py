"""
Reusable constraint gadgets.

Each gadget allocates its intermediate wires from values computed natively
and enforces the constraints that tie them together. The field hash gadget
is a transliteration of ``FieldHasher.permute`` and must stay in lockstep
with it.
"""

from typing import List, Sequence, Tuple

from ..field import SNARK_SCALAR_FIELD
from .circuits import ConstraintSystem, ConstraintType, LCLike, LinearCombination, as_lc


def boolean(cs: ConstraintSystem, x: LCLike, label: str) -> None:
    """Enforce ``x * (1 - x) = 0``."""
    x = as_lc(x)
    cs.enforce(x, 1 - x, 0, label, ConstraintType.BOOLEAN)


def num2bits(cs: ConstraintSystem, x: LCLike, n: int, label: str) -> List[LinearCombination]:
    """
    Decompose ``x`` into ``n`` little-endian bits.

    Also serves as the range check ``x < 2^n``; ``n`` must stay below the
    field size so the recomposition cannot wrap.
    """
    if not 0 < n < SNARK_SCALAR_FIELD.bit_length():
        raise ValueError(f"Cannot decompose into {n} bits")

    x = as_lc(x)
    value = cs.value_of(x)
    bits = []
    total = LinearCombination()
    for i in range(n):
        bit = cs.alloc_private(f"{label}[{i}]", (value >> i) & 1)
        boolean(cs, bit, f"{label}[{i}].boolean")
        bits.append(bit)
        total = total + bit * (1 << i)
    cs.enforce_equal(total, x, f"{label}.recompose", ConstraintType.RANGE)
    return bits


def less_than(cs: ConstraintSystem, a: LCLike, b: LCLike, n: int, label: str) -> LinearCombination:
    """
    Return a wire equal to ``1`` iff ``a < b``.

    Both operands must already be range-checked to ``n`` bits.
    """
    bits = num2bits(cs, as_lc(a) + (1 << n) - as_lc(b), n + 1, f"{label}.bits")
    return 1 - bits[n]


def less_eq_than(cs: ConstraintSystem, a: LCLike, b: LCLike, n: int, label: str) -> LinearCombination:
    """Return a wire equal to ``1`` iff ``a <= b``."""
    return less_than(cs, a, as_lc(b) + 1, n, label)


def is_zero(cs: ConstraintSystem, x: LCLike, label: str) -> LinearCombination:
    x = as_lc(x)
    value = cs.value_of(x)
    inverse = pow(value, -1, SNARK_SCALAR_FIELD) if value else 0
    inv = cs.alloc_private(f"{label}.inv", inverse)
    out = cs.alloc_private(f"{label}.out", 0 if value else 1)
    cs.enforce(x, inv, 1 - out, f"{label}.inverse", ConstraintType.COMPARISON)
    cs.enforce(x, out, 0, f"{label}.zero", ConstraintType.COMPARISON)
    return out


def is_equal(cs: ConstraintSystem, a: LCLike, b: LCLike, label: str) -> LinearCombination:
    """Return a wire equal to ``1`` iff ``a == b``."""
    return is_zero(cs, as_lc(a) - as_lc(b), label)


def mimc_permute(
    cs: ConstraintSystem,
    left: LinearCombination,
    right: LinearCombination,
    constants: Sequence[int],
    label: str,
) -> Tuple[LinearCombination, LinearCombination]:
    """Feistel permutation, three constraints per round."""
    p = SNARK_SCALAR_FIELD
    last = len(constants) - 1
    for i, constant in enumerate(constants):
        t = left + constant
        t_value = cs.value_of(t)
        t2 = cs.alloc_private(f"{label}.r{i}.t2", t_value * t_value % p)
        cs.enforce(t, t, t2, f"{label}.r{i}.square", ConstraintType.HASH)
        t4_value = pow(t_value, 4, p)
        t4 = cs.alloc_private(f"{label}.r{i}.t4", t4_value)
        cs.enforce(t2, t2, t4, f"{label}.r{i}.fourth", ConstraintType.HASH)

        mixed_value = (cs.value_of(right) + t4_value * t_value) % p
        mixed = cs.alloc_private(f"{label}.r{i}.out", mixed_value)
        cs.enforce(t4, t, mixed - right, f"{label}.r{i}.fifth", ConstraintType.HASH)

        if i < last:
            left, right = mixed, left
        else:
            right = mixed
    return left, right


def field_hash(
    cs: ConstraintSystem,
    inputs: Sequence[LCLike],
    constants: Sequence[int],
    label: str,
) -> LinearCombination:
    """In-circuit ``FieldHasher.hash`` over the given wires."""
    left = LinearCombination()
    right = LinearCombination.constant(len(inputs))
    for position, value in enumerate(inputs):
        left, right = mimc_permute(
            cs, left + as_lc(value), right, constants, f"{label}.absorb{position}"
        )
    return left


def merkle_fold(
    cs: ConstraintSystem,
    leaf: LinearCombination,
    siblings: Sequence[LinearCombination],
    directions: Sequence[LinearCombination],
    constants: Sequence[int],
    label: str,
) -> LinearCombination:
    """
    Fold ``leaf`` through the path with a conditional swap per level.

    ``direction = 0`` keeps the running node on the left. Direction wires
    must be constrained boolean by the caller.
    """
    current = leaf
    for level, (sibling, direction) in enumerate(zip(siblings, directions)):
        delta = sibling - current
        swap = cs.alloc_private(
            f"{label}.l{level}.swap",
            cs.value_of(direction) * cs.value_of(delta) % SNARK_SCALAR_FIELD,
        )
        cs.enforce(direction, delta, swap, f"{label}.l{level}.select", ConstraintType.SELECTION)
        left = current + swap
        right = sibling - swap
        current = field_hash(cs, [left, right], constants, f"{label}.l{level}.hash")
    return current
