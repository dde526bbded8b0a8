from .db import KeyValueStore
from .cache import CacheEntry, CacheLayer
from .history import BetHistory, HISTORY_KEY

__all__ = [
    'KeyValueStore',
    'CacheEntry',
    'CacheLayer',
    'BetHistory',
    'HISTORY_KEY',
]
