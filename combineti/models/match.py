"""Match model for a scheduled fixture and its enrichment"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .player import Player
from .prediction import PredictionBundle


@dataclass
class TeamRef:
    """Reference to a team as it appears on a fixture"""

    id: int
    key: str = ""
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "key": self.key, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamRef":
        return cls(id=data.get("id"), key=data.get("key") or "", name=data.get("name") or "")


@dataclass
class Scores:
    home: Optional[int] = None
    away: Optional[int] = None


@dataclass
class Match:
    """
    A fixture for the configured competition

    Fixture fields come from the sports-data service and do not change
    within a session. ``home_players``, ``away_players`` and ``predictions``
    are attached by the orchestrator; enrichment always builds a new Match
    with ``dataclasses.replace`` rather than mutating a fetched one.
    """

    game_id: str  # Stable identity of the match
    date_time: str  # Kick-off time (ISO-8601)
    status: str  # Provider status (Scheduled, InProgress, Final, ...)
    home_team: TeamRef
    away_team: TeamRef
    scores: Scores = field(default_factory=Scores)
    home_players: List[Player] = field(default_factory=list)
    away_players: List[Player] = field(default_factory=list)
    predictions: Optional[PredictionBundle] = None

    def __post_init__(self):
        self.game_id = str(self.game_id)

    def __str__(self) -> str:
        score = ""
        if self.scores.home is not None and self.scores.away is not None:
            score = f" {self.scores.home}-{self.scores.away}"
        return f"{self.home_team.name} vs {self.away_team.name}{score} [{self.status}]"

    @property
    def has_predictions(self) -> bool:
        return self.predictions is not None

    def to_dict(self, include_enrichment: bool = True) -> Dict[str, Any]:
        """Serialize; fixtures are cached without rosters or predictions"""
        data = {
            "game_id": self.game_id,
            "date_time": self.date_time,
            "status": self.status,
            "home_team": self.home_team.to_dict(),
            "away_team": self.away_team.to_dict(),
            "scores": {"home": self.scores.home, "away": self.scores.away},
        }
        if include_enrichment:
            data["home_players"] = [p.to_dict() for p in self.home_players]
            data["away_players"] = [p.to_dict() for p in self.away_players]
            data["predictions"] = self.predictions.to_dict() if self.predictions else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Match":
        scores = data.get("scores") or {}
        predictions = data.get("predictions")
        return cls(
            game_id=data["game_id"],
            date_time=data.get("date_time") or "",
            status=data.get("status") or "",
            home_team=TeamRef.from_dict(data.get("home_team") or {}),
            away_team=TeamRef.from_dict(data.get("away_team") or {}),
            scores=Scores(home=scores.get("home"), away=scores.get("away")),
            home_players=[Player.from_dict(p) for p in data.get("home_players") or []],
            away_players=[Player.from_dict(p) for p in data.get("away_players") or []],
            predictions=PredictionBundle.from_dict(predictions) if predictions else None,
        )
