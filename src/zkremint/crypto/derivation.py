"""
Pseudonymous address, commitment and nullifier derivation.

An owner's secret is mapped to a 160-bit privacy address bound to a
deployment namespace and a token id. Commitments bind that address to a
received amount; nullifiers bind it to the secret for one-time spending.
"""

import secrets
from dataclasses import dataclass

from ..errors.exceptions import RangeViolation, create_range_violation
from .field import SNARK_SCALAR_FIELD, fits_in_bits, require_field_element
from .hashing import FieldHasher

ADDRESS_BITS = 160
NAMESPACE_TAG = 8065
FUNGIBLE_TOKEN_ID = 0


@dataclass(frozen=True)
class PrivacyAddress:
    """A derived address together with its range decomposition witness.

    ``scalar == address + quotient * 2^width`` holds over the integers.
    """

    address: int
    quotient: int
    scalar: int

    def check(self, width: int = ADDRESS_BITS) -> None:
        """
        Re-verify the decomposition.

        Raises:
            RangeViolation: if the address exceeds ``width`` bits or the
                decomposition does not reproduce the scalar exactly
        """
        if not fits_in_bits(self.address, width):
            raise create_range_violation("address", self.address, width)
        require_field_element(self.scalar, "scalar")
        if self.quotient < 0 or self.address + (self.quotient << width) != self.scalar:
            raise RangeViolation(
                "Address decomposition does not reproduce the derived scalar",
                field="quotient",
                value=self.quotient,
                bit_width=width,
            )

    def to_hex(self, width: int = ADDRESS_BITS) -> str:
        return "0x" + self.address.to_bytes(width // 8, byteorder="big").hex()


def derive_address(
    secret: int,
    namespace_tag: int,
    token_id: int,
    hasher: FieldHasher,
    width: int = ADDRESS_BITS,
) -> PrivacyAddress:
    """
    Derive the privacy address for ``secret`` within a namespace and token.

    Args:
        secret: Owner's secret field element
        namespace_tag: Deployment-wide namespace constant
        token_id: Asset identifier, ``0`` for fungible tokens
        hasher: Field hasher shared with the accumulator and circuit
        width: Address width in bits

    Returns:
        PrivacyAddress with the truncated address and its quotient
    """
    require_field_element(secret, "secret")
    scalar = hasher.hash(namespace_tag, token_id, secret)
    address = scalar & ((1 << width) - 1)
    quotient = (scalar - address) >> width
    result = PrivacyAddress(address=address, quotient=quotient, scalar=scalar)
    result.check(width)
    return result


def commitment(address: int, amount: int, hasher: FieldHasher) -> int:
    """Commitment leaf ``H(address, amount)``."""
    return hasher.hash(address, amount)


def derive_nullifier(address: int, secret: int, hasher: FieldHasher) -> int:
    """One-time spend token ``H(address, secret)``.

    Always two inputs so it never coincides with an address-derivation
    intermediate.
    """
    return hasher.hash(address, secret)


def generate_secret() -> int:
    """Draw a uniformly random non-zero field element."""
    return secrets.randbelow(SNARK_SCALAR_FIELD - 1) + 1
