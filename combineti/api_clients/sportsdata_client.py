"""SportsData.io soccer client for fixtures, injuries and rosters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from combineti.models import InjuredPlayer, Match, Player, Scores, TeamRef

from .base_client import APIDataError, BaseAPIClient

logger = logging.getLogger(__name__)


@dataclass
class SportsDataConfig:
    """Configuration for the SportsData.io soccer API."""

    api_key: Optional[str] = None
    scores_base_url: str = "https://api.sportsdata.io/v4/soccer/scores/json"
    projections_base_url: str = "https://api.sportsdata.io/v4/soccer/projections/json"
    # The free trial only exposes competition 3 (UEFA Champions League)
    competition_id: int = 3
    competition_name: str = "UEFA Champions League"
    timeout: int = 30
    max_retries: int = 3
    backoff_base: float = 2.0

    def validate(self) -> None:
        if self.competition_id < 1:
            raise ValueError(f"competition_id must be >= 1, got {self.competition_id}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.backoff_base < 1:
            raise ValueError(f"backoff_base must be >= 1, got {self.backoff_base}")
        if self.timeout < 1:
            raise ValueError(f"timeout must be >= 1, got {self.timeout}")
        if not self.scores_base_url or not self.projections_base_url:
            raise ValueError("base URLs cannot be empty")


def map_match(raw: Dict[str, Any]) -> Match:
    """Rename provider fields into the internal Match schema."""
    return Match(
        game_id=raw.get("GameId"),
        date_time=raw.get("DateTime") or "",
        status=raw.get("Status") or "",
        home_team=TeamRef(
            id=raw.get("HomeTeamId"),
            key=raw.get("HomeTeamKey") or "",
            name=raw.get("HomeTeamName") or "",
        ),
        away_team=TeamRef(
            id=raw.get("AwayTeamId"),
            key=raw.get("AwayTeamKey") or "",
            name=raw.get("AwayTeamName") or "",
        ),
        scores=Scores(home=raw.get("HomeTeamScore"), away=raw.get("AwayTeamScore")),
    )


def map_injured_player(raw: Dict[str, Any]) -> InjuredPlayer:
    return InjuredPlayer(
        player_id=raw.get("PlayerId"),
        team_id=raw.get("TeamId"),
        name=raw.get("ShortName") or "",
        injury_status=raw.get("InjuryStatus") or "",
        injury_body_part=raw.get("InjuryBodyPart") or "",
    )


def map_player(raw: Dict[str, Any]) -> Player:
    return Player(
        player_id=raw.get("PlayerId"),
        first_name=raw.get("FirstName") or "",
        last_name=raw.get("LastName") or "",
        common_name=raw.get("CommonName") or "",
        position=raw.get("Position") or "",
        jersey=raw.get("Jersey"),
        photo_url=raw.get("PhotoUrl") or "",
    )


class SportsDataClient(BaseAPIClient):
    """Client for the SportsData.io endpoints the match screen needs."""

    def __init__(self, config: SportsDataConfig):
        super().__init__(
            platform_name="sportsdata",
            api_key=config.api_key,
            base_url=config.scores_base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base,
        )
        self.config = config

    async def _fetch_list(self, url: str, operation: str) -> List[Dict[str, Any]]:
        payload = await self.fetch_with_retry(url, params=self._auth_params())
        if not isinstance(payload, list):
            raise APIDataError(self.platform_name, operation, "Expected a JSON array", payload)
        return [row for row in payload if isinstance(row, dict)]

    async def get_today_matches(self, day: Optional[date] = None) -> List[Match]:
        """
        Fetch every fixture of the competition for a calendar day.

        Endpoint:
            GET /ScoresBasic/{competition}/{yyyy-mm-dd}?key=<key>
        """
        day = day or date.today()
        url = f"{self.base_url}/ScoresBasic/{self.config.competition_id}/{day.isoformat()}"
        rows = await self._fetch_list(url, f"Matches for {day.isoformat()}")
        matches = [map_match(row) for row in rows]
        logger.info(f"[sportsdata] {len(matches)} matches on {day.isoformat()}")
        return matches

    async def get_competition_injured(self) -> List[InjuredPlayer]:
        """
        Fetch all injured players for the competition.

        Endpoint:
            GET /InjuredPlayers/{competition}?key=<key>
        """
        url = (
            f"{self.config.projections_base_url.rstrip('/')}"
            f"/InjuredPlayers/{self.config.competition_id}"
        )
        rows = await self._fetch_list(url, "Competition injuries")
        injured = [map_injured_player(row) for row in rows]
        logger.info(f"[sportsdata] {len(injured)} injured players in competition {self.config.competition_id}")
        return injured

    async def get_players_by_team(self, team_id: Any) -> List[Player]:
        """
        Fetch the roster of one team.

        Endpoint:
            GET /PlayersByTeam/{competition}/{team_id}?key=<key>
        """
        if not team_id:
            raise ValueError("A valid team_id must be provided.")

        url = f"{self.base_url}/PlayersByTeam/{self.config.competition_id}/{team_id}"
        rows = await self._fetch_list(url, f"Roster ({team_id})")
        players = [map_player(row) for row in rows]
        logger.debug(f"[sportsdata] {len(players)} players for team {team_id}")
        return players
