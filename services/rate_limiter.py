import math
from typing import Dict, Tuple

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter


class RateLimiter:
    """
    Moving-window limiter with an ``allow(key, window_ms, max_hits)`` contract.

    One instance is created per application and injected where needed, so
    tests can swap it for a fresh instance. Counters live in the given
    ``limits`` storage (in-memory unless another backend is passed), which
    also expires them; only the limit shapes are kept here.
    """

    def __init__(self, storage: Storage = None):
        self._storage = storage if storage is not None else MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self._storage)
        # (max_hits, window seconds) -> limit item
        self._items: Dict[Tuple[int, int], RateLimitItem] = {}

    def _item(self, window_ms: int, max_hits: int) -> RateLimitItem:
        seconds = max(1, math.ceil(window_ms / 1000))
        shape = (max_hits, seconds)
        if shape not in self._items:
            self._items[shape] = RateLimitItemPerSecond(max_hits, seconds)
        return self._items[shape]

    def allow(self, key: str, window_ms: int, max_hits: int) -> bool:
        return self._strategy.hit(self._item(window_ms, max_hits), key)

    def reset(self, key: str) -> None:
        for item in self._items.values():
            self._strategy.clear(item, key)
