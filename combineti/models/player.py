"""Roster and injury models for a single competition snapshot"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass
class Player:
    """A player on one team's roster"""

    player_id: int
    first_name: str = ""
    last_name: str = ""
    common_name: str = ""
    position: str = ""
    jersey: Optional[int] = None
    photo_url: str = ""

    @property
    def display_name(self) -> str:
        """Common name when the provider has one, otherwise first + last"""
        if self.common_name:
            return self.common_name
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            player_id=data.get("player_id"),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            common_name=data.get("common_name") or "",
            position=data.get("position") or "",
            jersey=data.get("jersey"),
            photo_url=data.get("photo_url") or "",
        )


@dataclass
class InjuredPlayer:
    """An injured player, linked to a team through ``team_id``"""

    player_id: int
    team_id: int
    name: str
    injury_status: str = ""
    injury_body_part: str = ""

    def __str__(self) -> str:
        return f"{self.name} ({self.injury_body_part})"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InjuredPlayer":
        return cls(
            player_id=data.get("player_id"),
            team_id=data.get("team_id"),
            name=data.get("name") or "",
            injury_status=data.get("injury_status") or "",
            injury_body_part=data.get("injury_body_part") or "",
        )
