import json
from typing import Any, Dict, List, Optional

import pytest

from combineti.api_clients import base_client
from combineti.models import Match, PredictionBundle, PredictionItem, TeamRef


class FakeResponse:
    """Stand-in for aiohttp.ClientResponse used as ``async with``."""

    def __init__(self, status: int = 200, body: str = "", headers: Optional[Dict[str, str]] = None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def json_response(data: Any, status: int = 200) -> FakeResponse:
    return FakeResponse(status=status, body=json.dumps(data))


class FakeSession:
    """
    Replays queued responses in order; the last one repeats.

    Queue items may also be exceptions, raised when ``request`` is called.
    """

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays: List[float] = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(base_client.asyncio, "sleep", fake_sleep)
    return delays


def make_match(game_id="42", home=(1, "Home FC"), away=(2, "Away FC")) -> Match:
    return Match(
        game_id=game_id,
        date_time="2024-03-12T20:00:00",
        status="Scheduled",
        home_team=TeamRef(id=home[0], key=home[1][:3].upper(), name=home[1]),
        away_team=TeamRef(id=away[0], key=away[1][:3].upper(), name=away[1]),
    )


def make_bundle(*levels: str) -> PredictionBundle:
    levels = levels or ("Conservative", "Balanced", "High-Risk")
    return PredictionBundle(predictions=[
        PredictionItem(
            level=level,
            description=f"{level} combo",
            confidence_score=0.6,
            justification="Key striker is out",
            bets=["Home FC to win", "Over 1.5 goals"],
            suggested_multiplier=2.1,
        )
        for level in levels
    ])
