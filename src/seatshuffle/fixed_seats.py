from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)


class FixedSeatRegistry:
    """Seat ids pinned to a specific student.

    Membership is the only state; callers mirror it onto ``Seat.is_fixed``.
    Adding a present id or removing an absent one is a no-op.
    """

    def __init__(self, seat_ids: Optional[Iterable[int]] = None) -> None:
        self._seat_ids: Set[int] = set(seat_ids or ())

    def add(self, seat_id: int) -> None:
        if seat_id not in self._seat_ids:
            self._seat_ids.add(seat_id)
            logger.debug("Pinned seat %s", seat_id)

    def remove(self, seat_id: int) -> None:
        if seat_id in self._seat_ids:
            self._seat_ids.discard(seat_id)
            logger.debug("Unpinned seat %s", seat_id)

    def toggle(self, seat_id: int) -> bool:
        if seat_id in self._seat_ids:
            self.remove(seat_id)
            return False
        self.add(seat_id)
        return True

    def contains(self, seat_id: int) -> bool:
        return seat_id in self._seat_ids

    def all(self) -> Set[int]:
        return set(self._seat_ids)

    def clear(self) -> None:
        self._seat_ids.clear()

    def __contains__(self, seat_id: object) -> bool:
        return seat_id in self._seat_ids

    def __len__(self) -> int:
        return len(self._seat_ids)
