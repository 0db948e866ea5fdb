"""
Cryptographic primitives for zkremint.

This module provides the building blocks of the commitment/nullifier
protocol:
- Scalar field encodings
- The field hash shared by every realization
- The append-only commitment accumulator
- Privacy address, commitment and nullifier derivation

The claim relation and proof plumbing live in ``zkremint.crypto.zkp``.
"""

from .derivation import (
    ADDRESS_BITS,
    NAMESPACE_TAG,
    PrivacyAddress,
    commitment,
    derive_address,
    derive_nullifier,
    generate_secret,
)
from .field import (
    SNARK_SCALAR_FIELD,
    field_from_bytes,
    field_to_bytes,
    field_to_hex,
    is_field_element,
    to_field,
)
from .hashing import FieldHasher, HasherParams
from .merkle import (
    CommitmentAccumulator,
    MerkleProof,
    TreeSnapshot,
    compute_root,
    fold,
    zero_ladder,
)

__all__ = [
    # Field
    "SNARK_SCALAR_FIELD",
    "is_field_element",
    "to_field",
    "field_to_bytes",
    "field_from_bytes",
    "field_to_hex",
    # Hashing
    "FieldHasher",
    "HasherParams",
    # Merkle
    "CommitmentAccumulator",
    "MerkleProof",
    "TreeSnapshot",
    "fold",
    "compute_root",
    "zero_ladder",
    # Derivation
    "ADDRESS_BITS",
    "NAMESPACE_TAG",
    "PrivacyAddress",
    "derive_address",
    "derive_nullifier",
    "commitment",
    "generate_secret",
]
