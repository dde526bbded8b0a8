"""Match orchestrator: cache-then-fetch load cycles for the match screen."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from combineti.analysis.gemini_predictor import GeminiPredictor, MatchContext
from combineti.api_clients.sportsdata_client import SportsDataClient
from combineti.config import CacheConfig, ConfigManager, OrchestratorConfig
from combineti.models import InjuredPlayer, Match, Player, PredictionBundle
from combineti.storage import CacheLayer, KeyValueStore
from combineti.utils.clock import now_ms

logger = logging.getLogger(__name__)

MATCHES_KEY = "matches_cache"
INJURIES_KEY = "injuries_cache"
PLAYERS_HOME_PREFIX = "players_home_cache"
PLAYERS_AWAY_PREFIX = "players_away_cache"
PREDICTIONS_PREFIX = "predictions_cache"

STALE_DATA_MESSAGE = "Could not reach the sports API. Showing data that may be out of date."


def predictions_key(game_id: Any) -> str:
    return f"{PREDICTIONS_PREFIX}_{game_id}"


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    STALE = "success-with-stale-fallback"
    FAILURE = "failure"


@dataclass(frozen=True)
class MatchState:
    """Snapshot published to subscribers after every state change"""

    matches: List[Match] = field(default_factory=list)
    injured_players: List[InjuredPlayer] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
    last_fetch: Optional[int] = None  # Epoch ms of the fixture data shown
    status: LoadStatus = LoadStatus.IDLE


Listener = Callable[[MatchState], None]


class MatchOrchestrator:
    """
    Single entry point for loading today's matches.

    One load cycle:
    1. fixtures from cache under the dynamic TTL, else the sports API
    2. injuries from cache under the static TTL, else the sports API
    3. per match (bounded concurrency): home roster, away roster, then
       the prediction bundle (cached without expiry once generated)
    4. publish the merged list

    Any failure in 1-3 publishes the cached fixture list, whatever its
    age, with a warning; with nothing cached it publishes an empty list
    and an error. A missing prediction never fails the cycle.

    Overlapping calls cancel and restart: a new cycle cancels those still
    in flight and waits for them to unwind before touching the network.
    """

    def __init__(
        self,
        cache: CacheLayer,
        sports_client: SportsDataClient,
        predictor: GeminiPredictor,
        cache_config: Optional[CacheConfig] = None,
        orchestrator_config: Optional[OrchestratorConfig] = None,
    ):
        self.cache = cache
        self.sports_client = sports_client
        self.predictor = predictor
        self.cache_config = cache_config or CacheConfig()
        self.orchestrator_config = orchestrator_config or OrchestratorConfig()

        self._state = MatchState()
        self._listeners: List[Listener] = []
        self._cycles: List[asyncio.Task] = []
        self._current_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: ConfigManager, store: Optional[KeyValueStore] = None) -> "MatchOrchestrator":
        store = store or KeyValueStore(config.cache.db_path)
        return cls(
            cache=CacheLayer(store),
            sports_client=SportsDataClient(config.sportsdata),
            predictor=GeminiPredictor(config.gemini, competition_name=config.sportsdata.competition_name),
            cache_config=config.cache,
            orchestrator_config=config.orchestrator,
        )

    # ========================================================================
    # STATE PUBLISHING
    # ========================================================================

    @property
    def state(self) -> MatchState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: MatchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener {listener!r} failed: {e}", exc_info=True)

    # ========================================================================
    # LOAD CYCLE
    # ========================================================================

    async def load_match_data(self) -> MatchState:
        """Run a load cycle, superseding any cycle still in flight."""
        pending = [t for t in self._cycles if not t.done()]
        if pending:
            logger.info(f"Superseding {len(pending)} in-flight load cycle(s)")
            for t in pending:
                t.cancel()

        task = asyncio.create_task(self._run_cycle(wait_for=pending))
        self._cycles = pending + [task]
        self._current_task = task

        try:
            await task
        except asyncio.CancelledError:
            if self._current_task is task:
                raise
            logger.info("Load cycle superseded by a newer refresh")
        return self._state

    async def refresh_matches(self) -> MatchState:
        return await self.load_match_data()

    async def _run_cycle(self, wait_for: List[asyncio.Task]) -> None:
        if wait_for:
            await asyncio.wait(wait_for)

        self._publish(replace(self._state, is_loading=True, error=None, status=LoadStatus.LOADING))

        try:
            async with self.sports_client, self.predictor:
                matches, last_fetch = await self._load_fixtures()
                injured = await self._load_injuries()
                enriched = await self.enrich_matches(matches, injured)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to load match data: {e}", exc_info=True)
            await self._publish_fallback(e)
            return

        with_predictions = sum(1 for m in enriched if m.has_predictions)
        logger.info(f"✅ Loaded {len(enriched)} matches ({with_predictions} with predictions)")
        self._publish(MatchState(
            matches=enriched,
            injured_players=injured,
            is_loading=False,
            error=None,
            last_fetch=last_fetch,
            status=LoadStatus.SUCCESS,
        ))

    async def _publish_fallback(self, error: Exception) -> None:
        cached = await self.cache.get(MATCHES_KEY)
        matches = self._decode_matches(cached.data) if cached.found else None

        if matches is not None:
            logger.warning(f"Serving {len(matches)} cached matches after failure")
            matches = [await self._attach_cached_prediction(m) for m in matches]
            injuries = await self.cache.get(INJURIES_KEY)
            injured = self._decode_injuries(injuries.data) if injuries.found else None
            self._publish(MatchState(
                matches=matches,
                injured_players=injured or [],
                is_loading=False,
                error=STALE_DATA_MESSAGE,
                last_fetch=cached.timestamp,
                status=LoadStatus.STALE,
            ))
            return

        self._publish(MatchState(
            matches=[],
            injured_players=[],
            is_loading=False,
            error=f"Could not load matches: {error}",
            last_fetch=None,
            status=LoadStatus.FAILURE,
        ))

    # ========================================================================
    # PER-CATEGORY CACHE DECISIONS
    # ========================================================================

    async def _cached_or_fetch(
        self,
        key: str,
        ttl_ms: int,
        label: str,
        fetch: Callable[[], Awaitable[List[Any]]],
        decode: Callable[[Any], Optional[List[Any]]],
        encode: Callable[[Any], Any] = lambda item: item.to_dict(),
    ) -> Tuple[List[Any], int]:
        """Return (items, timestamp) from a fresh cache entry or a write-through fetch."""
        cached = await self.cache.get(key)
        if self.cache.is_fresh(cached.timestamp, ttl_ms):
            items = decode(cached.data)
            if items is not None:
                logger.debug(f"Using cached {label}")
                return items, cached.timestamp

        logger.info(f"Fetching {label} from the API")
        items = await fetch()
        await self.cache.set(key, [encode(item) for item in items])
        return items, now_ms()

    async def _load_fixtures(self) -> Tuple[List[Match], int]:
        return await self._cached_or_fetch(
            MATCHES_KEY,
            self.cache_config.dynamic_ttl_ms,
            "matches",
            self.sports_client.get_today_matches,
            self._decode_matches,
            encode=lambda match: match.to_dict(include_enrichment=False),
        )

    async def _load_injuries(self) -> List[InjuredPlayer]:
        injured, _ = await self._cached_or_fetch(
            INJURIES_KEY,
            self.cache_config.static_ttl_ms,
            "injuries",
            self.sports_client.get_competition_injured,
            self._decode_injuries,
        )
        return injured

    async def _load_roster(self, prefix: str, team_id: Any) -> List[Player]:
        async def fetch() -> List[Player]:
            return await self.sports_client.get_players_by_team(team_id)

        players, _ = await self._cached_or_fetch(
            f"{prefix}_{team_id}",
            self.cache_config.static_ttl_ms,
            f"roster for team {team_id}",
            fetch,
            self._decode_players,
        )
        return players

    async def _load_prediction(
        self,
        match: Match,
        home_players: List[Player],
        away_players: List[Player],
        injured: List[InjuredPlayer],
    ) -> Optional[PredictionBundle]:
        key = predictions_key(match.game_id)
        cached = await self.cache.get(key)
        if cached.found:
            bundle = _decode_bundle(cached.data)
            if bundle is not None:
                logger.debug(f"Using cached prediction for match {match.game_id}")
                return bundle

        bundle = await self.predictor.generate_predictions(MatchContext(
            match=match,
            home_players=home_players,
            away_players=away_players,
            injured_players=injured,
        ))
        if bundle is None:
            logger.warning(f"Prediction pending for match {match.game_id}")
            return None

        await self.cache.set(key, bundle.to_dict())
        return bundle

    async def cached_match(self, game_id: Any) -> Optional[Match]:
        """Look a fixture up in the cache (any age) with its cached prediction."""
        cached = await self.cache.get(MATCHES_KEY)
        matches = self._decode_matches(cached.data) if cached.found else None
        match = next((m for m in matches or [] if m.game_id == str(game_id)), None)
        if match is None:
            return None
        return await self._attach_cached_prediction(match)

    async def _attach_cached_prediction(self, match: Match) -> Match:
        cached = await self.cache.get(predictions_key(match.game_id))
        bundle = _decode_bundle(cached.data) if cached.found else None
        return replace(match, predictions=bundle) if bundle else match

    # ========================================================================
    # PER-MATCH ENRICHMENT
    # ========================================================================

    async def enrich_matches(self, matches: List[Match], injured: List[InjuredPlayer]) -> List[Match]:
        """
        Attach rosters and predictions to every match.

        Matches run concurrently up to ``max_concurrency``; each match's own
        steps run in order. If one match fails the rest are cancelled and
        the error propagates.
        """
        semaphore = asyncio.Semaphore(self.orchestrator_config.max_concurrency)

        async def enrich(match: Match) -> Match:
            async with semaphore:
                home = await self._load_roster(PLAYERS_HOME_PREFIX, match.home_team.id)
                away = await self._load_roster(PLAYERS_AWAY_PREFIX, match.away_team.id)
                predictions = await self._load_prediction(match, home, away, injured)
            return replace(match, home_players=home, away_players=away, predictions=predictions)

        tasks = [asyncio.ensure_future(enrich(m)) for m in matches]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def refresh_prediction(self, game_id: Any) -> Optional[PredictionBundle]:
        """
        Retry the prediction of one match in the current state.

        Waits for an in-flight load cycle first. Returns the bundle (cached
        or newly generated) or None if it is still unavailable.
        """
        if self._current_task is not None and not self._current_task.done():
            await asyncio.wait([self._current_task])

        match = next((m for m in self._state.matches if m.game_id == str(game_id)), None)
        if match is None:
            logger.warning(f"No match {game_id} in the current state")
            return None
        if match.predictions is not None:
            return match.predictions

        async with self.predictor:
            bundle = await self._load_prediction(
                match, match.home_players, match.away_players, self._state.injured_players
            )
        if bundle is not None:
            matches = [
                replace(m, predictions=bundle) if m.game_id == match.game_id else m
                for m in self._state.matches
            ]
            self._publish(replace(self._state, matches=matches))
        return bundle

    # ========================================================================
    # DECODING CACHED PAYLOADS
    # ========================================================================

    @staticmethod
    def _decode_matches(data: Any) -> Optional[List[Match]]:
        return _decode_list(data, Match.from_dict, "matches")

    @staticmethod
    def _decode_injuries(data: Any) -> Optional[List[InjuredPlayer]]:
        return _decode_list(data, InjuredPlayer.from_dict, "injuries")

    @staticmethod
    def _decode_players(data: Any) -> Optional[List[Player]]:
        return _decode_list(data, Player.from_dict, "players")


def _decode_list(data: Any, from_dict: Callable[[Any], Any], label: str) -> Optional[List[Any]]:
    if not isinstance(data, list):
        logger.warning(f"Cached {label} is not a list; ignoring it")
        return None
    try:
        return [from_dict(row) for row in data]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Cached {label} could not be decoded; ignoring it: {e}")
        return None


def _decode_bundle(data: Any) -> Optional[PredictionBundle]:
    try:
        return PredictionBundle.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Cached prediction could not be decoded; ignoring it: {e}")
        return None
