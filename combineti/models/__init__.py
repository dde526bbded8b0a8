from .match import Match, TeamRef, Scores
from .player import Player, InjuredPlayer
from .prediction import PredictionItem, PredictionBundle, RiskLevel
from .saved_bet import SavedBet

__all__ = [
    'Match',
    'TeamRef',
    'Scores',
    'Player',
    'InjuredPlayer',
    'PredictionItem',
    'PredictionBundle',
    'RiskLevel',
    'SavedBet',
]
