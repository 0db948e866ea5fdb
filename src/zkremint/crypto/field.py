"""
Scalar field arithmetic helpers for zkremint.

Every value that flows through the accumulator, the derivation scheme and the
claim relation is an element of the BN254 scalar field. This module keeps the
modulus and the canonical encodings in one place.
"""

from typing import Union

from ..errors.exceptions import RangeViolation

# BN254 (alt_bn128) scalar field order.
SNARK_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

FIELD_BYTES = 32
FIELD_BITS = SNARK_SCALAR_FIELD.bit_length()  # 254


def is_field_element(value: object) -> bool:
    """Check that a value is a canonical field element."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < SNARK_SCALAR_FIELD
    )


def require_field_element(value: object, name: str = "value") -> int:
    """
    Return the value unchanged if it is a canonical field element.

    Raises:
        RangeViolation: if the value is not an int in ``[0, P)``
    """
    if not is_field_element(value):
        raise RangeViolation(
            f"{name} is not a canonical field element",
            field=name,
            value=value,
            bit_width=FIELD_BITS,
        )
    return value  # type: ignore[return-value]


def to_field(value: Union[int, str, bytes]) -> int:
    """
    Coerce an integer, hex string or big-endian byte string to a field element.

    Values are not reduced: anything outside ``[0, P)`` is rejected so that two
    different encodings can never silently map to the same element.
    """
    if isinstance(value, bytes):
        value = int.from_bytes(value, byteorder="big")
    elif isinstance(value, str):
        text = value.strip().lower()
        value = int(text, 16) if text.startswith("0x") else int(text, 10)
    return require_field_element(value)


def field_to_bytes(value: int) -> bytes:
    """Encode a field element as 32 big-endian bytes."""
    return require_field_element(value).to_bytes(FIELD_BYTES, byteorder="big")


def field_from_bytes(data: bytes) -> int:
    """Decode 32 big-endian bytes into a field element."""
    if len(data) != FIELD_BYTES:
        raise RangeViolation(
            f"Field encoding must be exactly {FIELD_BYTES} bytes, got {len(data)}",
            field="data",
            bit_width=FIELD_BITS,
        )
    return to_field(data)


def field_to_hex(value: int) -> str:
    """Render a field element as 0x-prefixed, zero-padded hex."""
    return "0x" + field_to_bytes(value).hex()


def fits_in_bits(value: int, bits: int) -> bool:
    """Check that a non-negative integer fits into ``bits`` bits."""
    return 0 <= value < (1 << bits)
