"""Gemini predictor generating betting suggestions for a match."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from combineti.api_clients.base_client import APIError, BaseAPIClient
from combineti.config import GeminiConfig
from combineti.models import InjuredPlayer, Match, Player, PredictionBundle
from combineti.utils import PredictionParseError, PredictionResponseParser

logger = logging.getLogger(__name__)

NO_INJURIES = "None"


@dataclass
class MatchContext:
    """Everything the prompt needs for one match"""

    match: Match
    home_players: List[Player] = field(default_factory=list)
    away_players: List[Player] = field(default_factory=list)
    injured_players: List[InjuredPlayer] = field(default_factory=list)


def team_injuries(injured_players: List[InjuredPlayer], team_id: Any) -> str:
    """Comma-joined ``name (body part)`` for one team, or ``None``."""
    names = [str(p) for p in injured_players if p.team_id == team_id]
    return ", ".join(names) or NO_INJURIES


def build_prompt(
    match: Match,
    home_players: List[Player],
    away_players: List[Player],
    injured_players: List[InjuredPlayer],
    competition_name: str = "UEFA Champions League",
) -> str:
    home = match.home_team.name
    away = match.away_team.name
    home_injuries = team_injuries(injured_players, match.home_team.id)
    away_injuries = team_injuries(injured_players, match.away_team.id)

    return f"""
You are an expert sports betting analyst. Your task is to provide three betting predictions for an upcoming football match.
Analyze the provided data and generate a raw JSON object as a response, with no additional text, explanations, or markdown.

Match Data:
- Home Team: {home}
- Away Team: {away}
- Competition: {competition_name}

Team Information:
- {home} Players: {len(home_players)} players available.
- {away} Players: {len(away_players)} players available.
- {home} Injuries: {home_injuries}
- {away} Injuries: {away_injuries}

Based on this data, provide a JSON object with a single key "predictions".
This key should contain an array of three prediction objects, each with the following structure:
- level: "Conservative", "Balanced", or "High-Risk".
- description: A brief, one-sentence description of the bet type.
- confidence_score: A number between 0.0 and 1.0 representing your confidence.
- justification: A concise explanation for your prediction, referencing the provided data (like key injuries).
- bets: An array of 2-3 specific, realistic betting markets (e.g., "Under 2.5 total goals", "Both teams to score: YES", "{home} to win").
- suggested_multiplier: A realistic number for the combined odds of the bets.

The entire response must be a single, raw JSON object and nothing else.
"""


class GeminiPredictor:
    """
    Uses the Gemini API to generate prediction bundles.

    ``generate_predictions`` never raises for service or parsing problems:
    it logs and returns None, which callers treat as "not available yet".
    Use as an async context manager to hold the HTTP session open; nested
    or overlapping blocks share one session, closed when the last exits.
    """

    def __init__(self, config: GeminiConfig, competition_name: str = "UEFA Champions League"):
        self.client = BaseAPIClient(
            platform_name="gemini",
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )
        self.config = config
        self.competition_name = competition_name
        self._users = 0  # Open ``async with`` blocks sharing the session

    async def __aenter__(self):
        self._users += 1
        if self._users == 1:
            try:
                await self.client.__aenter__()
            except BaseException:
                self._users -= 1
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._users -= 1
        if self._users == 0:
            await self.client.__aexit__(exc_type, exc_val, exc_tb)

    async def generate_predictions(self, context: MatchContext) -> Optional[PredictionBundle]:
        game_id = context.match.game_id
        if not self.config.api_key:
            logger.error(f"Gemini API key not configured; no prediction for match {game_id}")
            return None

        prompt = build_prompt(
            context.match,
            context.home_players,
            context.away_players,
            context.injured_players,
            competition_name=self.competition_name,
        )

        try:
            logger.info(f"[gemini] Generating predictions for match {game_id}")
            text = await self._call_gemini_api(prompt)
            bundle = PredictionResponseParser.parse_prediction_bundle(text, game_id=game_id)
            logger.info(f"[gemini] {len(bundle.predictions)} predictions for match {game_id}")
            return bundle
        except asyncio.CancelledError:
            raise
        except (APIError, PredictionParseError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[gemini] Prediction generation failed for match {game_id}: {e}")
            return None
        except Exception as e:
            logger.error(f"[gemini] Unexpected error for match {game_id}: {e!r}", exc_info=True)
            return None

    async def _call_gemini_api(self, prompt: str) -> str:
        """Call generateContent and return the first candidate's text."""
        logger.debug("Calling Gemini API with prompt:\n" + prompt)

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"response_mime_type": "application/json"},
        }
        url = f"{self.client.base_url}/models/{self.config.model}:generateContent"

        response = await self.client.post_with_retry(
            url,
            payload,
            params=self.client._auth_params(),
            operation_name="Gemini generateContent",
        )
        if not isinstance(response, dict):
            raise APIError(platform="gemini", operation="Parse response", message="Envelope is not an object")

        usage = response.get("usageMetadata") or {}
        prompt_tokens = usage.get("promptTokenCount", 0)
        output_tokens = usage.get("candidatesTokenCount", 0)
        if prompt_tokens or output_tokens:
            self.client.record_usage(
                operation="Match predictions",
                input_tokens=prompt_tokens,
                output_tokens=output_tokens,
            )

        return _extract_candidate_text(response)

    def get_api_stats(self) -> Dict[str, Any]:
        return self.client.get_usage_stats()


def _extract_candidate_text(response: Dict[str, Any]) -> str:
    try:
        text = response["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise APIError(platform="gemini", operation="Parse response", message=f"No candidate text ({e!r})")
    if not isinstance(text, str) or not text.strip():
        raise APIError(platform="gemini", operation="Parse response", message="Empty candidate text")
    return text
