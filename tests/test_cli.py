from argparse import Namespace
from unittest.mock import patch

import pytest

from combineti.__main__ import clear_cache, print_state, run_history
from combineti.config import ConfigManager
from combineti.orchestrator import MATCHES_KEY, LoadStatus, MatchState, predictions_key
from combineti.storage import HISTORY_KEY, BetHistory, CacheLayer, KeyValueStore
from conftest import make_bundle, make_match


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("SPORTS_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with patch("combineti.config.load_dotenv"):
        return ConfigManager(str(tmp_path / "absent.json"))


async def seed_cached_match(store, with_prediction=True):
    cache = CacheLayer(store)
    await cache.set(MATCHES_KEY, [make_match().to_dict(include_enrichment=False)])
    if with_prediction:
        await cache.set(predictions_key("42"), make_bundle().to_dict())


@pytest.mark.asyncio
async def test_clear_cache_keeps_saved_bets(tmp_path):
    store = KeyValueStore(str(tmp_path / "cli.sqlite"))
    await seed_cached_match(store)
    await store.set_item(HISTORY_KEY, "[]")

    removed = await clear_cache(store)

    assert removed == 2
    assert await store.keys() == [HISTORY_KEY]


@pytest.mark.asyncio
async def test_history_save_from_cached_prediction(tmp_path, config, capsys):
    store = KeyValueStore(str(tmp_path / "cli.sqlite"))
    await seed_cached_match(store)

    code = await run_history(config, store, Namespace(history_action="save", game_id="42", level="Balanced"))

    assert code == 0
    bets = await BetHistory(store).load()
    assert len(bets) == 1
    assert bets[0].level == "Balanced"
    assert bets[0].title == "Home FC vs Away FC"
    assert "Saved" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_history_save_without_prediction_fails(tmp_path, config, capsys):
    store = KeyValueStore(str(tmp_path / "cli.sqlite"))
    await seed_cached_match(store, with_prediction=False)

    code = await run_history(config, store, Namespace(history_action="save", game_id="42", level="Balanced"))

    assert code == 1
    assert await BetHistory(store).load() == []
    assert "No Balanced prediction" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_history_list_and_delete(tmp_path, config, capsys):
    store = KeyValueStore(str(tmp_path / "cli.sqlite"))
    await seed_cached_match(store)
    await run_history(config, store, Namespace(history_action="save", game_id="42", level="Conservative"))
    bet_id = (await BetHistory(store).load())[0].id

    await run_history(config, store, Namespace(history_action="list"))
    assert bet_id in capsys.readouterr().out

    await run_history(config, store, Namespace(history_action="delete", bet_id=bet_id))
    assert "0 saved bet(s) left." in capsys.readouterr().out


def test_print_state_shows_stale_warning(capsys):
    match = make_match()
    state = MatchState(matches=[match], error="Showing old data", status=LoadStatus.STALE)

    print_state(state)

    out = capsys.readouterr().out
    assert "Showing old data" in out
    assert "Home FC vs Away FC" in out
    assert "predictions: pending" in out
