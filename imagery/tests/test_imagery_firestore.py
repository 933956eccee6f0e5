from __future__ import annotations

# ruff: noqa: S101
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from google.cloud import firestore

from imagery.cache.firestore import FirestoreDocumentStore

OLDEST = datetime(2025, 1, 1, tzinfo=timezone.utc)  # noqa: UP017
NEWEST = datetime(2025, 2, 1, tzinfo=timezone.utc)  # noqa: UP017


def _snapshot(key: str, data: dict[str, object] | None) -> MagicMock:
    snapshot = MagicMock()
    snapshot.id = key
    snapshot.exists = data is not None
    snapshot.to_dict.return_value = data
    return snapshot


def test_get_returns_none_for_missing_document() -> None:
    client = MagicMock()
    document = client.collection.return_value.document.return_value
    document.get.return_value = _snapshot("abc", None)

    store = FirestoreDocumentStore(client=client)

    assert store.get("satellite_cache", "abc") is None
    client.collection.assert_called_with("satellite_cache")
    client.collection.return_value.document.assert_called_with("abc")


def test_set_passes_merge_flag() -> None:
    client = MagicMock()
    store = FirestoreDocumentStore(client=client)

    store.set("satellite_cache", "abc", {"meanValue": 0.5})

    document = client.collection.return_value.document.return_value
    document.set.assert_called_once_with({"meanValue": 0.5}, merge=False)


def test_count_uses_aggregation_query() -> None:
    client = MagicMock()
    collection = client.collection.return_value
    collection.count.return_value.get.return_value = [
        [SimpleNamespace(alias="total", value=42)]
    ]

    store = FirestoreDocumentStore(client=client)

    assert store.count("satellite_cache") == 42
    collection.count.assert_called_once_with(alias="total")
    collection.stream.assert_not_called()


def test_bounds_reads_one_document_per_direction() -> None:
    client = MagicMock()
    collection = client.collection.return_value

    def _order_by(field: str, direction: str) -> MagicMock:
        value = (
            OLDEST if direction == firestore.Query.ASCENDING else NEWEST
        )
        query = MagicMock()
        query.limit.return_value.stream.return_value = iter(
            [_snapshot("doc", {field: value})]
        )
        return query

    collection.order_by.side_effect = _order_by
    store = FirestoreDocumentStore(client=client)

    assert store.bounds("satellite_cache", "cachedAt") == (OLDEST, NEWEST)
    assert collection.order_by.call_count == 2
    collection.stream.assert_not_called()


def test_bounds_of_empty_collection() -> None:
    client = MagicMock()
    query = client.collection.return_value.order_by.return_value
    query.limit.return_value.stream.side_effect = lambda: iter([])

    store = FirestoreDocumentStore(client=client)

    assert store.bounds("satellite_cache", "cachedAt") == (None, None)
