"""A combined bet the user chose to keep in their local history"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from .match import Match
from .prediction import PredictionItem


@dataclass
class SavedBet:
    id: str
    match: Dict[str, Any]  # Snapshot of the fixture at save time
    level: str
    description: str
    confidence_score: float
    justification: str
    bets: List[str] = field(default_factory=list)
    suggested_multiplier: float = 1.0
    date: str = ""

    @classmethod
    def from_prediction(cls, match: Match, item: PredictionItem) -> "SavedBet":
        """Snapshot a match and one of its suggestions"""
        return cls(
            id=uuid.uuid4().hex,
            match=match.to_dict(include_enrichment=False),
            date=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            **item.to_dict(),
        )

    @property
    def title(self) -> str:
        home = (self.match.get("home_team") or {}).get("name", "?")
        away = (self.match.get("away_team") or {}).get("name", "?")
        return f"{home} vs {away}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "match": self.match,
            "level": self.level,
            "description": self.description,
            "confidence_score": self.confidence_score,
            "justification": self.justification,
            "bets": list(self.bets),
            "suggested_multiplier": self.suggested_multiplier,
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedBet":
        return cls(
            id=str(data["id"]),
            match=dict(data.get("match") or {}),
            level=data.get("level") or "",
            description=data.get("description") or "",
            confidence_score=float(data.get("confidence_score") or 0.0),
            justification=data.get("justification") or "",
            bets=list(data.get("bets") or []),
            suggested_multiplier=float(data.get("suggested_multiplier") or 1.0),
            date=data.get("date") or "",
        )
