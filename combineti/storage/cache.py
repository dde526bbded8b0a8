"""Timestamped cache envelopes over the key/value store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from combineti.utils.clock import now_ms

from .db import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """
    What a cache read found.

    ``data`` and ``timestamp`` are both set or both None. ``unavailable``
    separates "the store failed or held garbage" from a plain miss; either
    way callers treat the entry as a miss.
    """

    data: Any = None
    timestamp: Optional[int] = None
    unavailable: bool = False

    @property
    def found(self) -> bool:
        return self.timestamp is not None


MISS = CacheEntry()


class CacheLayer:
    """
    Per-key freshness envelopes ``{"timestamp": <epoch ms>, "data": ...}``.

    Cache errors never propagate: reads degrade to a miss and writes
    report ``False``. Freshness windows belong to the caller.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get(self, key: str) -> CacheEntry:
        try:
            raw = await self.store.get_item(key)
        except Exception as e:
            logger.error(f"[cache] Failed to read key {key!r}: {e}")
            return CacheEntry(unavailable=True)

        if raw is None:
            return MISS

        try:
            envelope = json.loads(raw)
            if not isinstance(envelope, dict):
                raise TypeError(f"envelope is {type(envelope).__name__}, not an object")
            timestamp = envelope["timestamp"]
            data = envelope["data"]
            if timestamp is None or data is None:
                return MISS
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                raise TypeError(f"timestamp is {type(timestamp).__name__}, not a number")
            return CacheEntry(data=data, timestamp=int(timestamp))
        except (ValueError, TypeError, KeyError, OverflowError) as e:
            logger.warning(f"[cache] Corrupt entry for key {key!r}, treating as miss: {e}")
            return CacheEntry(unavailable=True)

    async def set(self, key: str, data: Any) -> bool:
        """Write ``data`` stamped with the current time; True on success."""
        try:
            value = json.dumps({"timestamp": now_ms(), "data": data})
            await self.store.set_item(key, value)
            return True
        except Exception as e:
            logger.error(f"[cache] Failed to save key {key!r}: {e}")
            return False

    @staticmethod
    def is_fresh(timestamp: Optional[int], ttl_ms: int, now: Optional[int] = None) -> bool:
        """True when ``timestamp`` is set and younger than ``ttl_ms``."""
        if timestamp is None:
            return False
        current = now_ms() if now is None else now
        return (current - timestamp) < ttl_ms

    async def remove(self, key: str) -> None:
        try:
            await self.store.remove_item(key)
        except Exception as e:
            logger.error(f"[cache] Failed to clear key {key!r}: {e}")

    async def clear_all(self) -> None:
        try:
            await self.store.clear()
        except Exception as e:
            logger.error(f"[cache] Failed to clear the store: {e}")
