"""
Client-side components: accumulator replay and claim construction.
"""

from .claim import ClaimBuilder
from .replica import AccumulatorReplica

__all__ = [
    "AccumulatorReplica",
    "ClaimBuilder",
]
