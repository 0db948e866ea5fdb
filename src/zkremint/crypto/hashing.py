"""
Field hash for zkremint.

Implements a MiMC-Feistel sponge over the BN254 scalar field. The accumulator,
every off-chain replica and the claim circuit all evaluate this one
permutation, so its parameters are pinned in a single value object.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional, Tuple

from cryptography.hazmat.primitives import hashes

from ..errors.exceptions import ConfigurationError
from ..logging import get_logger
from .field import SNARK_SCALAR_FIELD, require_field_element

logger = get_logger(__name__)

DEFAULT_SEED = "zkremint.mimc-feistel.bn254"
DEFAULT_ROUNDS = 220

# x -> x^5 is a permutation of the field because gcd(5, P - 1) == 1.
SBOX_EXPONENT = 5


def _sha256(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize()


@lru_cache(maxsize=8)
def _derive_round_constants(seed: str, rounds: int) -> Tuple[int, ...]:
    """SHA-256 in counter mode over the seed, reduced mod P.

    The first and last constants are fixed to zero.
    """
    seed_bytes = seed.encode("utf-8")
    constants = [0]
    for i in range(1, rounds - 1):
        block = _sha256(seed_bytes + i.to_bytes(4, byteorder="big"))
        constants.append(int.from_bytes(block, byteorder="big") % SNARK_SCALAR_FIELD)
    constants.append(0)
    return tuple(constants)


@dataclass(frozen=True)
class HasherParams:
    """Parameterization of the field hash.

    Two realizations agree on every hash exactly when their params are equal.
    """

    seed: str = DEFAULT_SEED
    rounds: int = DEFAULT_ROUNDS

    def __post_init__(self) -> None:
        if not isinstance(self.seed, str) or not self.seed:
            raise ConfigurationError(
                "Hasher seed must be a non-empty string",
                config_key="seed",
                config_value=self.seed,
            )
        if not isinstance(self.rounds, int) or self.rounds < 3:
            raise ConfigurationError(
                "Hasher needs at least 3 rounds",
                config_key="rounds",
                config_value=self.rounds,
            )

    def round_constants(self) -> Tuple[int, ...]:
        return _derive_round_constants(self.seed, self.rounds)

    def fingerprint(self) -> str:
        """Short digest of the parameters and the derived constants."""
        data = f"{self.seed}|{self.rounds}|".encode("utf-8")
        data += b"".join(c.to_bytes(32, byteorder="big") for c in self.round_constants())
        return _sha256(data).hex()[:16]


class FieldHasher:
    """MiMC-Feistel sponge hash over the BN254 scalar field."""

    def __init__(self, params: Optional[HasherParams] = None):
        self.params = params or HasherParams()
        self.round_constants = self.params.round_constants()
        logger.debug(
            "Initialized field hasher",
            extra={
                "rounds": self.params.rounds,
                "fingerprint": self.params.fingerprint(),
            },
        )

    @property
    def rounds(self) -> int:
        return self.params.rounds

    def permute(self, left: int, right: int) -> Tuple[int, int]:
        """
        Apply the Feistel permutation to the state ``(left, right)``.

        Every round computes ``t = left + c_i`` and adds ``t^5`` to ``right``;
        the halves swap after every round except the last.
        """
        p = SNARK_SCALAR_FIELD
        last = len(self.round_constants) - 1
        for i, constant in enumerate(self.round_constants):
            t = (left + constant) % p
            t5 = pow(t, SBOX_EXPONENT, p)
            if i < last:
                left, right = (right + t5) % p, left
            else:
                right = (right + t5) % p
        return left, right

    def hash(self, *inputs: int) -> int:
        """
        Hash one or more field elements.

        The capacity word starts at the arity, so inputs of different lengths
        never collide by padding.

        Raises:
            RangeViolation: if an input is not a canonical field element
        """
        if not inputs:
            raise ValueError("hash requires at least one input")

        left, right = 0, len(inputs)
        for position, value in enumerate(inputs):
            require_field_element(value, f"input[{position}]")
            left, right = self.permute((left + value) % SNARK_SCALAR_FIELD, right)
        return left

    def hash2(self, left: int, right: int) -> int:
        """Two-to-one compression used for Merkle nodes."""
        return self.hash(left, right)

    def hash_many(self, values: Iterable[int]) -> int:
        return self.hash(*values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldHasher):
            return NotImplemented
        return self.params == other.params

    def __hash__(self) -> int:
        return hash(self.params)

    def __repr__(self) -> str:
        return f"FieldHasher(rounds={self.rounds}, fingerprint={self.params.fingerprint()})"
