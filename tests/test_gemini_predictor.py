import json

import pytest

from combineti.analysis import GeminiPredictor, MatchContext, build_prompt
from combineti.config import GeminiConfig
from combineti.models import InjuredPlayer, Player, RiskLevel
from conftest import FakeResponse, FakeSession, json_response, make_match


PREDICTIONS_JSON = {
    "predictions": [
        {
            "level": "Conservative",
            "description": "Low-scoring home win",
            "confidence_score": 0.72,
            "justification": "Away side misses its top scorer",
            "bets": ["Home FC to win", "Under 3.5 total goals"],
            "suggested_multiplier": 1.8,
        },
        {
            "level": "Balanced",
            "description": "Goals at both ends",
            "confidence_score": 0.55,
            "justification": "Both defences are depleted",
            "bets": ["Both teams to score: YES", "Over 2.5 total goals"],
            "suggested_multiplier": 3.1,
        },
        {
            "level": "High-Risk",
            "description": "Away upset",
            "confidence_score": 0.2,
            "justification": "Long shot",
            "bets": ["Away FC to win", "Away FC clean sheet", "Under 1.5 total goals"],
            "suggested_multiplier": 9.5,
        },
    ]
}


def gemini_envelope(text, usage=None):
    envelope = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    if usage:
        envelope["usageMetadata"] = usage
    return envelope


def make_context():
    return MatchContext(
        match=make_match(),
        home_players=[Player(player_id=1, common_name="Keeper"), Player(player_id=2, common_name="Striker")],
        away_players=[Player(player_id=3, common_name="Winger")],
        injured_players=[
            InjuredPlayer(player_id=9, team_id=2, name="J. Doe", injury_body_part="Ankle"),
            InjuredPlayer(player_id=10, team_id=99, name="Other Team", injury_body_part="Knee"),
        ],
    )


def make_predictor(responses, api_key="gemini-key"):
    predictor = GeminiPredictor(GeminiConfig(api_key=api_key, max_retries=2))
    predictor.client.session = FakeSession(responses)
    return predictor


class TestBuildPrompt:

    def test_prompt_is_deterministic(self):
        ctx = make_context()
        first = build_prompt(ctx.match, ctx.home_players, ctx.away_players, ctx.injured_players)
        second = build_prompt(ctx.match, ctx.home_players, ctx.away_players, ctx.injured_players)
        assert first == second

    def test_prompt_carries_teams_counts_and_injuries(self):
        ctx = make_context()
        prompt = build_prompt(ctx.match, ctx.home_players, ctx.away_players, ctx.injured_players)

        assert "- Home Team: Home FC" in prompt
        assert "- Away Team: Away FC" in prompt
        assert "- Competition: UEFA Champions League" in prompt
        assert "- Home FC Players: 2 players available." in prompt
        assert "- Away FC Players: 1 players available." in prompt
        assert "- Away FC Injuries: J. Doe (Ankle)" in prompt
        assert "Other Team" not in prompt

    def test_no_injuries_renders_none_token(self):
        ctx = make_context()
        prompt = build_prompt(ctx.match, [], [], [])

        assert "- Home FC Injuries: None" in prompt
        assert "- Away FC Injuries: None" in prompt
        assert "- Home FC Players: 0 players available." in prompt

    def test_competition_name_is_configurable(self):
        ctx = make_context()
        prompt = build_prompt(ctx.match, [], [], [], competition_name="Premier League")
        assert "- Competition: Premier League" in prompt


class TestGeminiPredictor:

    @pytest.mark.asyncio
    async def test_generates_bundle(self, sleeps):
        predictor = make_predictor([json_response(gemini_envelope(
            json.dumps(PREDICTIONS_JSON),
            usage={"promptTokenCount": 320, "candidatesTokenCount": 210},
        ))])

        bundle = await predictor.generate_predictions(make_context())

        assert bundle is not None
        assert [p.level for p in bundle.predictions] == [
            RiskLevel.CONSERVATIVE, RiskLevel.BALANCED, RiskLevel.HIGH_RISK
        ]
        assert bundle.get("Balanced").suggested_multiplier == 3.1

        call = predictor.client.session.calls[0]
        assert call["method"] == "POST"
        assert call["url"].endswith("/models/gemini-1.5-flash:generateContent")
        assert call["params"] == {"key": "gemini-key"}
        assert call["json"]["generationConfig"] == {"response_mime_type": "application/json"}
        assert "Home FC" in call["json"]["contents"][0]["parts"][0]["text"]

        stats = predictor.get_api_stats()
        assert stats["total_input_tokens"] == 320
        assert stats["total_output_tokens"] == 210

    @pytest.mark.asyncio
    async def test_markdown_wrapped_text_is_accepted(self, sleeps):
        text = "```json\n" + json.dumps(PREDICTIONS_JSON) + "\n```"
        predictor = make_predictor([json_response(gemini_envelope(text))])

        bundle = await predictor.generate_predictions(make_context())

        assert bundle is not None
        assert len(bundle.predictions) == 3

    @pytest.mark.asyncio
    async def test_missing_api_key_returns_none_without_request(self):
        predictor = make_predictor([json_response({})], api_key=None)

        assert await predictor.generate_predictions(make_context()) is None
        assert predictor.client.session.calls == []

    @pytest.mark.asyncio
    async def test_non_json_candidate_text_returns_none(self, sleeps):
        predictor = make_predictor([json_response(gemini_envelope("I think the home team wins."))])
        assert await predictor.generate_predictions(make_context()) is None

    @pytest.mark.asyncio
    async def test_envelope_without_candidates_returns_none(self, sleeps):
        predictor = make_predictor([json_response({"promptFeedback": {"blockReason": "SAFETY"}})])
        assert await predictor.generate_predictions(make_context()) is None

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self, sleeps):
        predictor = make_predictor([FakeResponse(status=500, body="backend down")])

        assert await predictor.generate_predictions(make_context()) is None
        assert len(predictor.client.session.calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_returns_none_after_retries(self, sleeps):
        predictor = make_predictor([FakeResponse(status=429)])

        assert await predictor.generate_predictions(make_context()) is None
        assert len(predictor.client.session.calls) == 2
        assert sleeps == [1.0]
