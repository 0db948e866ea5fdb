"""
Reference ledger for zkremint.

Balances, first-receipt commitment recording, the spent-nullifier registry
and claim execution.
"""

from .ledger import CommitmentAdded, Ledger, RemintReceipt
from .registry import NullifierRegistry

__all__ = [
    "Ledger",
    "CommitmentAdded",
    "RemintReceipt",
    "NullifierRegistry",
]
