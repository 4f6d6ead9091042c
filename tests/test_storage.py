"""Durable store adapters and the search history persisted on top of them."""

import json
from unittest.mock import MagicMock, patch

import pytest
import redis

from cura.config import Settings
from cura.history import SearchHistory
from cura.models import SearchFilters, SortBy
from cura.storage import InMemoryStore, RedisStore, StoreUnavailableError, create_store


def test_corrupt_history_is_treated_as_empty(store):
    store.set("cura-search-history", "{not json")

    history = SearchHistory(store)

    assert history.recent() == []
    history.add("insulin", 3)
    assert [entry.query for entry in history.recent()] == ["insulin"]


def test_non_list_history_is_treated_as_empty(store):
    store.set("cura-search-history", json.dumps({"query": "insulin"}))

    assert SearchHistory(store).recent() == []


def test_history_survives_a_restart(store):
    SearchHistory(store).add("calcium", 4, SearchFilters(sort_by=SortBy.PRICE_LOW))

    reloaded = SearchHistory(store).recent()

    assert reloaded[0].query == "calcium"
    assert reloaded[0].result_count == 4
    assert reloaded[0].filters.sort_by is SortBy.PRICE_LOW


def test_history_respects_custom_key_and_limit(store):
    history = SearchHistory(store, key="custom-history", limit=3)
    for term in ("a", "b", "c", "d"):
        history.add(term, 0)

    assert [entry.query for entry in history.recent()] == ["d", "c", "b"]
    assert store.get("cura-search-history") is None
    assert len(json.loads(store.get("custom-history"))) == 3


def test_redis_store_round_trip_decodes_bytes():
    client = MagicMock()
    client.get.return_value = b'["x"]'
    store = RedisStore(client)

    store.set("key", '["x"]')

    assert store.get("key") == '["x"]'
    client.set.assert_called_once_with("key", '["x"]')


def test_redis_write_errors_are_swallowed_and_read_errors_raised():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.set.side_effect = redis.ConnectionError("down")
    client.delete.side_effect = redis.ConnectionError("down")
    store = RedisStore(client)

    store.set("key", "value")
    store.delete("key")
    with pytest.raises(StoreUnavailableError):
        store.get("key")


def test_history_is_served_from_memory_while_redis_is_down():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.set.side_effect = redis.ConnectionError("down")
    history = SearchHistory(RedisStore(client))

    history.add("vitamin", 1)

    assert [entry.query for entry in history.recent()] == ["vitamin"]


def _redis_backed_by(data):
    client = MagicMock()
    client.get.side_effect = data.get
    client.set.side_effect = lambda key, value: data.__setitem__(key, value.encode("utf-8"))
    return client


def test_failed_read_does_not_erase_durable_history():
    data = {}
    client = _redis_backed_by(data)
    history = SearchHistory(RedisStore(client))
    for term in ("a", "b", "c"):
        history.add(term, 1)

    client.get.side_effect = redis.ConnectionError("blip")
    assert [entry.query for entry in history.recent()] == ["c", "b", "a"]

    client.get.side_effect = data.get
    history.add("d", 1)

    assert [entry.query for entry in history.recent()] == ["d", "c", "b", "a"]
    assert [item["query"] for item in json.loads(data["cura-search-history"])] == ["d", "c", "b", "a"]


def test_add_merges_entries_written_by_another_process(store):
    first = SearchHistory(store)
    second = SearchHistory(store)

    first.add("a", 1)
    second.add("b", 1)
    first.add("c", 1)

    assert [entry.query for entry in second.recent()] == ["c", "b", "a"]


def test_create_store_falls_back_to_memory_when_redis_is_down():
    client = MagicMock()
    client.ping.side_effect = redis.ConnectionError("refused")

    with patch("cura.storage.redis.Redis", return_value=client):
        store = create_store(Settings(use_redis=True))

    assert isinstance(store, InMemoryStore)


def test_create_store_uses_redis_when_reachable():
    client = MagicMock()

    with patch("cura.storage.redis.Redis", return_value=client) as factory:
        store = create_store(Settings(use_redis=True, redis_host="cache", redis_port=6380))

    assert isinstance(store, RedisStore)
    assert factory.call_args.kwargs["host"] == "cache"
    assert factory.call_args.kwargs["port"] == 6380


def test_create_store_skips_redis_when_disabled():
    with patch("cura.storage.redis.Redis") as factory:
        store = create_store(Settings(use_redis=False))

    assert isinstance(store, InMemoryStore)
    factory.assert_not_called()
