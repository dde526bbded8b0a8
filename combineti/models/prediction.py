"""Betting suggestion models produced by the generative-AI service"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RiskLevel(str, Enum):
    """Risk tier of a suggested combined bet"""

    CONSERVATIVE = "Conservative"
    BALANCED = "Balanced"
    HIGH_RISK = "High-Risk"


MIN_BETS = 2
MAX_BETS = 3


@dataclass
class PredictionItem:
    """
    One suggested combined bet for a match

    The service is asked for three of these, one per risk level.
    """

    level: RiskLevel
    description: str  # One-sentence summary of the bet type
    confidence_score: float  # Model confidence (0.0-1.0)
    justification: str  # Why, referencing injuries/rosters
    bets: List[str] = field(default_factory=list)  # 2-3 betting markets
    suggested_multiplier: float = 1.0  # Combined odds of the bets

    def __post_init__(self):
        """Validate prediction data after initialization"""
        self.level = RiskLevel(self.level)
        if not 0 <= self.confidence_score <= 1:
            raise ValueError(
                f"confidence_score must be between 0 and 1, got {self.confidence_score}"
            )
        if not MIN_BETS <= len(self.bets) <= MAX_BETS:
            raise ValueError(
                f"bets must hold between {MIN_BETS} and {MAX_BETS} entries, got {len(self.bets)}"
            )
        if self.suggested_multiplier <= 0:
            raise ValueError(
                f"suggested_multiplier must be > 0, got {self.suggested_multiplier}"
            )

    def __str__(self) -> str:
        return (
            f"{self.level.value}: {self.description} "
            f"(confidence {self.confidence_score:.0%}, x{self.suggested_multiplier:.2f})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "description": self.description,
            "confidence_score": self.confidence_score,
            "justification": self.justification,
            "bets": list(self.bets),
            "suggested_multiplier": self.suggested_multiplier,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PredictionItem":
        return cls(
            level=data["level"],
            description=str(data["description"]),
            confidence_score=float(data["confidence_score"]),
            justification=str(data["justification"]),
            bets=[str(b) for b in data["bets"]],
            suggested_multiplier=float(data["suggested_multiplier"]),
        )


@dataclass
class PredictionBundle:
    """All suggestions generated for one match"""

    predictions: List[PredictionItem]

    def __post_init__(self):
        if not self.predictions:
            raise ValueError("a prediction bundle needs at least one prediction")

    def get(self, level: str) -> Optional[PredictionItem]:
        """Return the item for a risk level, if the service produced one"""
        wanted = RiskLevel(level)
        for item in self.predictions:
            if item.level == wanted:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"predictions": [p.to_dict() for p in self.predictions]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PredictionBundle":
        return cls(predictions=[PredictionItem.from_dict(p) for p in data["predictions"]])
