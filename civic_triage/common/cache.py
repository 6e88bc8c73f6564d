"""
Bounded time-expiring cache for civic-triage.

Caches here are performance aids only; every caller must produce the
same result with the cache disabled (``cache=None``).
"""

import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar('V')

class TTLCache(Generic[V]):
    """크기 제한 + TTL 만료 LRU 캐시"""

    def __init__(self, max_size: int, ttl_sec: float, clock: Callable[[], float] = time.monotonic):
        """
        초기화합니다.

        Args:
            max_size: 최대 항목 수 (초과 시 가장 오래 사용되지 않은 항목 제거)
            ttl_sec: 항목 만료 시간 (초)
            clock: 단조 시계 함수 (테스트에서 주입)
        """
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self.max_size = max_size
        self.ttl = ttl_sec
        self._clock = clock
        self._items: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[V]:
        """키로 값을 조회합니다. 만료되었거나 없으면 None."""
        entry = self._items.get(key)
        if entry is None:
            self.misses += 1
            return None

        expires_at, value = entry
        if expires_at <= self._clock():
            del self._items[key]
            self.misses += 1
            return None

        self._items.move_to_end(key)
        self.hits += 1
        return value

    def set(self, key: Hashable, value: V) -> None:
        """키-값을 저장합니다."""
        self._items[key] = (self._clock() + self.ttl, value)
        self._items.move_to_end(key)
        while len(self._items) > self.max_size:
            self._items.popitem(last=False)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
