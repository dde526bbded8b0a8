import argparse
import asyncio
import json
import logging
import sys
from typing import List

from combineti.config import ConfigManager
from combineti.models import Match, RiskLevel, SavedBet
from combineti.orchestrator import LoadStatus, MatchOrchestrator, MatchState
from combineti.storage import BetHistory, CacheLayer, HISTORY_KEY, KeyValueStore
from combineti.utils import ConfigError


def setup_logging(log_level):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )


def _format_match(match: Match) -> List[str]:
    lines = [f"  [{match.game_id}] {match} @ {match.date_time}"]
    lines.append(
        f"      rosters: {len(match.home_players)} / {len(match.away_players)} players"
    )
    if match.predictions is None:
        lines.append("      predictions: pending")
        return lines
    for item in match.predictions.predictions:
        lines.append(f"      {item}")
        lines.append(f"        bets: {'; '.join(item.bets)}")
    return lines


def print_state(state: MatchState) -> None:
    if state.error:
        print(f"⚠️  {state.error}")
    if not state.matches:
        print("No matches today.")
        return
    print(f"{len(state.matches)} match(es):")
    for match in state.matches:
        for line in _format_match(match):
            print(line)


def print_history(bets: List[SavedBet]) -> None:
    if not bets:
        print("No saved bets yet.")
        return
    for bet in bets:
        print(f"  {bet.id}  {bet.date}  {bet.title}  {bet.level} x{bet.suggested_multiplier:.2f}")
        print(f"      {'; '.join(bet.bets)}")


async def run_matches(config: ConfigManager, store: KeyValueStore) -> int:
    orchestrator = MatchOrchestrator.from_config(config, store=store)
    state = await orchestrator.load_match_data()
    print_state(state)
    return 1 if state.status == LoadStatus.FAILURE else 0


async def clear_cache(store: KeyValueStore) -> int:
    cache = CacheLayer(store)
    keys = [k for k in await store.keys() if k != HISTORY_KEY]
    for key in keys:
        await cache.remove(key)
    return len(keys)


async def run_history(config: ConfigManager, store: KeyValueStore, args) -> int:
    history = BetHistory(store)
    action = args.history_action

    if action == 'list':
        print_history(await history.load())
    elif action == 'clear':
        await history.clear()
        print("History cleared.")
    elif action == 'delete':
        remaining = await history.delete_bet(args.bet_id)
        print(f"{len(remaining)} saved bet(s) left.")
    elif action == 'save':
        # Saves from what is cached; no network involved
        orchestrator = MatchOrchestrator.from_config(config, store=store)
        match = await orchestrator.cached_match(args.game_id)
        if match is None:
            print(f"Match {args.game_id} is not in the cached fixtures. Run 'matches' first.")
            return 1
        item = match.predictions.get(args.level) if match.predictions else None
        if item is None:
            print(f"No {args.level} prediction cached for match {args.game_id}.")
            return 1
        bet = SavedBet.from_prediction(match, item)
        await history.save_bet(bet)
        print(f"Saved {bet.id}: {bet.title} ({bet.level})")
    return 0


async def main():
    parser = argparse.ArgumentParser(description="Combineti match predictions CLI")
    parser.add_argument('--config', type=str, default='combineti_config.json', help='Path to config file')
    parser.add_argument('--log-level', type=str, default='WARNING', help='Logging level')
    parser.add_argument('--show-config', action='store_true', help='Print effective non-secret config and exit')

    subparsers = parser.add_subparsers(dest='command')

    subparsers.add_parser('matches', help="Show today's matches with predictions")

    history_parser = subparsers.add_parser('history', help='Manage saved bets')
    history_sub = history_parser.add_subparsers(dest='history_action', required=True)
    history_sub.add_parser('list', help='List saved bets')
    history_sub.add_parser('clear', help='Delete every saved bet')
    delete_parser = history_sub.add_parser('delete', help='Delete one saved bet')
    delete_parser.add_argument('bet_id')
    save_parser = history_sub.add_parser('save', help='Save a cached prediction')
    save_parser.add_argument('game_id')
    save_parser.add_argument('level', choices=[level.value for level in RiskLevel])

    cache_parser = subparsers.add_parser('cache', help='Manage the local cache')
    cache_parser.add_argument('cache_action', choices=['clear'])

    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger("combineti")

    try:
        config = ConfigManager(args.config)
    except (ConfigError, json.JSONDecodeError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.show_config:
        print(json.dumps(config.to_dict(), indent=2))
        return

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    config.log_config_summary()
    store = KeyValueStore(config.cache.db_path)

    try:
        if args.command == 'matches':
            config.validate_for_mode('matches')
            exit_code = await run_matches(config, store)
        elif args.command == 'history':
            exit_code = await run_history(config, store, args)
        else:
            removed = await clear_cache(store)
            print(f"Cache cleared ({removed} entries, saved bets kept).")
            exit_code = 0
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
