"""In-memory TTL cache for fetched price data.

The clock is injected so expiry is deterministic in tests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class _Entry:
    value: Any
    stored_at: float


class PriceCache:
    def __init__(self, clock: Callable[[], float] = time.time, ttl_seconds: float = DEFAULT_TTL_SECONDS):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.clock = clock
        self.ttl_seconds = float(ttl_seconds)
        self._entries: Dict[Hashable, _Entry] = {}

    def _expired(self, entry: _Entry) -> bool:
        return self.clock() - entry.stored_at > self.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self.clock())

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        expired = [k for k, e in self._entries.items() if self._expired(e)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._entries)
