"""Identifier types and a monotonic id counter."""

from __future__ import annotations

import itertools
import threading
from typing import NewType

NodeId = NewType("NodeId", int)
PrimitiveId = NewType("PrimitiveId", int)
ResourceId = NewType("ResourceId", int)


class IdCounter:
    """Hands out increasing integers, starting at zero.

    Values are never handed out twice, which is what keeps removed ids from
    being reused.
    """

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def next(self) -> int:
        """Generate and return a new id."""
        with self._lock:
            return next(self._counter)
