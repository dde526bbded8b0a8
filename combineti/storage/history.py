"""User-saved bets, kept newest first under a single store key."""

import json
import logging
from typing import List

from combineti.models import SavedBet

from .db import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "combineti_history"


class BetHistory:
    """Plain list CRUD; no timestamp envelope, never stale."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> List[SavedBet]:
        raw = await self.store.get_item(HISTORY_KEY)
        if raw is None:
            return []
        try:
            rows = json.loads(raw)
            if not isinstance(rows, list):
                raise ValueError("history is not a JSON array")
            return [SavedBet.from_dict(row) for row in rows]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Saved bet history is unreadable, starting empty: {e}")
            return []

    async def _save(self, bets: List[SavedBet]) -> None:
        await self.store.set_item(HISTORY_KEY, json.dumps([b.to_dict() for b in bets]))

    async def save_bet(self, bet: SavedBet) -> List[SavedBet]:
        bets = [bet] + await self.load()
        await self._save(bets)
        logger.info(f"Saved bet {bet.id} ({bet.title}, {bet.level})")
        return bets

    async def delete_bet(self, bet_id: str) -> List[SavedBet]:
        current = await self.load()
        bets = [b for b in current if b.id != bet_id]
        if len(bets) == len(current):
            logger.warning(f"No saved bet with id {bet_id}")
        await self._save(bets)
        return bets

    async def clear(self) -> None:
        await self._save([])
        logger.info("Saved bet history cleared")
