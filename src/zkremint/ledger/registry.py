"""
Spent-nullifier registry.

A flat spent-set with an atomic check-and-set. The claim relation only proves
that a nullifier was derived correctly; single-spend is enforced here.
"""

import threading
from typing import Set

from ..crypto.field import field_to_hex, require_field_element
from ..errors.exceptions import NullifierAlreadySpent
from ..logging import get_logger

logger = get_logger(__name__)


class NullifierRegistry:
    """Set of nullifiers that have been revealed and recorded."""

    def __init__(self):
        self._spent: Set[int] = set()
        self._lock = threading.Lock()

    def is_spent(self, nullifier: int) -> bool:
        with self._lock:
            return nullifier in self._spent

    def check_and_set(self, nullifier: int) -> None:
        """
        Mark ``nullifier`` spent.

        Raises:
            NullifierAlreadySpent: if it was recorded before
        """
        require_field_element(nullifier, "nullifier")
        with self._lock:
            if nullifier in self._spent:
                logger.warning(
                    "Rejected reused nullifier",
                    extra={"nullifier": field_to_hex(nullifier)},
                )
                raise NullifierAlreadySpent(
                    "Nullifier has already been used",
                    nullifier=nullifier,
                )
            self._spent.add(nullifier)

    @property
    def spent_count(self) -> int:
        with self._lock:
            return len(self._spent)

    def __contains__(self, nullifier: int) -> bool:
        return self.is_spent(nullifier)

    def __len__(self) -> int:
        return self.spent_count
