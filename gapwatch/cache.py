# gapwatch/cache.py
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

class TTLCache:
    """
    Small time-to-live map. An entry is live while `expiry > now`.
    The clock is injectable so expiry can be unit tested without waiting.
    """
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl = ttl_seconds
        self.clock = clock
        # { key: (value, expiry) }
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if expiry > self.clock():
            return value
        del self._entries[key]
        return None

    def set(self, key: Hashable, value: Any):
        self._entries[key] = (value, self.clock() + self.ttl)

    async def get_or_compute(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """
        Returns (value, hit). On a miss the factory is awaited and its result stored.
        """
        value = self.get(key)
        if value is not None:
            return value, True
        value = await factory()
        self.set(key, value)
        return value, False

    def purge_expired(self) -> int:
        now = self.clock()
        stale = [k for k, (_, expiry) in self._entries.items() if expiry <= now]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
