"""Cyclic RPC endpoint failover."""

from __future__ import annotations

import threading
from typing import Iterable, Tuple

from ..errors import ConfigurationError


class EndpointRotator:
    """Ordered, non-empty set of RPC URLs with a cursor.

    ``rotate()`` advances the cursor modulo the number of endpoints, so N
    rotations always return to the starting URL.
    """

    def __init__(self, urls: Iterable[str], start_index: int = 0) -> None:
        cleaned = tuple(u.strip() for u in (urls or ()) if u and u.strip())
        if not cleaned:
            raise ConfigurationError("At least one RPC endpoint is required")
        self._urls: Tuple[str, ...] = cleaned
        self._index = start_index % len(cleaned)
        self._lock = threading.Lock()

    @property
    def urls(self) -> Tuple[str, ...]:
        return self._urls

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._urls)

    def current(self) -> str:
        return self._urls[self._index]

    def rotate(self) -> str:
        with self._lock:
            self._index = (self._index + 1) % len(self._urls)
            return self._urls[self._index]
