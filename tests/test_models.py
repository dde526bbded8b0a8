import pytest

from combineti.models import InjuredPlayer, Match, Player, PredictionBundle, PredictionItem, RiskLevel
from conftest import make_bundle, make_match


def test_game_id_is_normalized_to_string():
    assert make_match(game_id=42).game_id == "42"


def test_match_serialization_keeps_enrichment():
    match = make_match()
    match.home_players = [Player(player_id=1, first_name="Bukayo", last_name="Saka", jersey=7)]
    match.predictions = make_bundle()

    restored = Match.from_dict(match.to_dict())

    assert restored == match
    assert restored.has_predictions


def test_fixture_snapshot_omits_enrichment():
    data = make_match().to_dict(include_enrichment=False)
    assert set(data) == {"game_id", "date_time", "status", "home_team", "away_team", "scores"}


def test_match_str_includes_score_when_known():
    match = make_match()
    assert str(match) == "Home FC vs Away FC [Scheduled]"
    match.scores.home, match.scores.away = 2, 1
    assert str(match) == "Home FC vs Away FC 2-1 [Scheduled]"


def test_injured_player_str():
    injured = InjuredPlayer(player_id=1, team_id=2, name="J. Doe", injury_body_part="Knee")
    assert str(injured) == "J. Doe (Knee)"


class TestPredictionItem:

    def kwargs(self, **overrides):
        values = dict(
            level="Balanced",
            description="d",
            confidence_score=0.5,
            justification="j",
            bets=["a", "b"],
            suggested_multiplier=2.0,
        )
        values.update(overrides)
        return values

    def test_level_is_coerced(self):
        assert PredictionItem(**self.kwargs()).level is RiskLevel.BALANCED

    @pytest.mark.parametrize("overrides", [
        {"level": "Safe"},
        {"confidence_score": 1.5},
        {"confidence_score": -0.1},
        {"bets": ["a"]},
        {"bets": ["a", "b", "c", "d"]},
        {"suggested_multiplier": 0},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            PredictionItem(**self.kwargs(**overrides))


def test_bundle_requires_predictions():
    with pytest.raises(ValueError):
        PredictionBundle(predictions=[])


def test_bundle_lookup_by_level():
    bundle = make_bundle("Conservative", "High-Risk")
    assert bundle.get("High-Risk").level is RiskLevel.HIGH_RISK
    assert bundle.get(RiskLevel.BALANCED) is None
