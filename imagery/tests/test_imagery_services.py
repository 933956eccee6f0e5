from __future__ import annotations

# ruff: noqa: S101
from datetime import date, datetime, timedelta, timezone

import pytest
from rest_framework.exceptions import ValidationError

from imagery.cache.store import ResultCache
from imagery.engines.earthengine import (
    EarthEngineError,
    EarthEngineIndexEngine,
)
from imagery.geometry import format_area
from imagery.indices import IndexType
from imagery.services import (
    DEFAULT_LOOKBACK_DAYS,
    MAX_DATERANGE_DAYS,
    enforce_quota,
    get_engine,
    normalize_polygon,
    normalize_request_params,
    process_index_request,
)

from .fakes import FailingDocumentStore, FakeIndexEngine, InMemoryDocumentStore

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)  # noqa: UP017
TODAY = NOW.date()
POLYGON = [
    (-34.6037, -58.3816),
    (-34.6012, -58.3790),
    (-34.6050, -58.3741),
    (-34.6081, -58.3778),
]


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def cache(clock: Clock) -> ResultCache:
    return ResultCache(InMemoryDocumentStore(), clock=clock)


def test_get_engine_invalid_name_raises() -> None:
    with pytest.raises(ValueError, match="Unsupported imagery engine"):
        get_engine("bogus")


def test_get_engine_returns_earth_engine() -> None:
    assert isinstance(get_engine("earthengine"), EarthEngineIndexEngine)


def test_normalize_polygon_requires_three_points() -> None:
    with pytest.raises(ValidationError):
        normalize_polygon(POLYGON[:2])


def test_normalize_polygon_drops_closing_vertex() -> None:
    closed = [*POLYGON, POLYGON[0]]
    assert normalize_polygon(closed) == tuple(POLYGON)


def test_normalize_polygon_rejects_out_of_range() -> None:
    with pytest.raises(ValidationError):
        normalize_polygon([(0.0, 0.0), (91.0, 0.0), (0.0, 1.0)])


def test_normalize_request_params_defaults() -> None:
    params = normalize_request_params(coordinates=POLYGON, today=TODAY)
    assert params.index_type is IndexType.NDVI
    assert params.cloud_coverage == 20.0
    assert params.image_date is None
    assert params.date_range.end == TODAY
    assert params.date_range.start == TODAY - timedelta(
        days=DEFAULT_LOOKBACK_DAYS
    )
    assert params.explicit_window is False


def test_normalize_request_params_image_date_narrows_window() -> None:
    day = date(2025, 2, 10)
    params = normalize_request_params(
        coordinates=POLYGON,
        index_type="evi",
        cloud_coverage=150,
        image_date=day,
    )
    assert params.index_type is IndexType.EVI
    assert params.cloud_coverage == 100.0
    assert params.date_range.start == day
    assert params.date_range.end == day
    assert params.explicit_window is False


def test_normalize_request_params_validates_window() -> None:
    with pytest.raises(ValidationError):
        normalize_request_params(
            coordinates=POLYGON,
            start=date(2025, 2, 2),
            end=date(2025, 2, 1),
        )
    with pytest.raises(ValidationError):
        normalize_request_params(
            coordinates=POLYGON,
            start=date(2020, 1, 1),
            end=date(2020, 1, 1) + timedelta(days=MAX_DATERANGE_DAYS + 1),
        )


def test_enforce_quota_rejects_huge_polygon() -> None:
    with pytest.raises(ValidationError):
        enforce_quota([(-40.0, -60.0), (-40.0, -50.0), (-30.0, -55.0)])


def test_miss_computes_and_stores_then_hits(cache: ResultCache) -> None:
    engine = FakeIndexEngine()
    params = normalize_request_params(coordinates=POLYGON, today=TODAY)

    first = process_index_request(params, engine=engine, cache=cache)
    second = process_index_request(params, engine=engine, cache=cache)

    assert len(engine.calls) == 1
    assert first.cached is False
    assert second.cached is True
    assert first.cache_hash == second.cache_hash
    assert second.image_date == "2025-01-10"
    assert second.result.mean_value == first.result.mean_value
    assert second.to_payload()["cacheKey"] == first.cache_hash


def test_reordered_polygon_reuses_entry(cache: ResultCache) -> None:
    engine = FakeIndexEngine()
    process_index_request(
        normalize_request_params(coordinates=POLYGON, today=TODAY),
        engine=engine,
        cache=cache,
    )
    reordered = list(reversed(POLYGON))
    processed = process_index_request(
        normalize_request_params(coordinates=reordered, today=TODAY),
        engine=engine,
        cache=cache,
    )
    assert processed.cached is True
    assert len(engine.calls) == 1
    # Area follows the caller's vertices, not the hash normalization.
    assert processed.area == format_area(reordered)


def test_explicit_windows_do_not_share_entries(cache: ResultCache) -> None:
    recent = FakeIndexEngine(image_date=date(2025, 2, 20))
    latest = process_index_request(
        normalize_request_params(coordinates=POLYGON, today=TODAY),
        engine=recent,
        cache=cache,
    )

    archive = FakeIndexEngine(image_date=date(2023, 1, 5))
    january = normalize_request_params(
        coordinates=POLYGON,
        start=date(2023, 1, 1),
        end=date(2023, 1, 31),
    )
    assert january.explicit_window is True
    first = process_index_request(january, engine=archive, cache=cache)
    assert first.cached is False
    assert first.cache_hash != latest.cache_hash
    assert first.image_date == "2023-01-05"
    assert len(archive.calls) == 1

    february = normalize_request_params(
        coordinates=POLYGON,
        start=date(2023, 2, 1),
        end=date(2023, 2, 28),
    )
    other = process_index_request(february, engine=archive, cache=cache)
    assert other.cached is False
    assert other.cache_hash != first.cache_hash
    assert len(archive.calls) == 2

    again = process_index_request(january, engine=archive, cache=cache)
    assert again.cached is True
    assert again.image_date == "2023-01-05"
    assert len(archive.calls) == 2


def test_different_index_type_misses(cache: ResultCache) -> None:
    engine = FakeIndexEngine()
    for index in (IndexType.NDVI, IndexType.NDRE):
        process_index_request(
            normalize_request_params(
                coordinates=POLYGON, index_type=index, today=TODAY
            ),
            engine=engine,
            cache=cache,
        )
    assert [call["index_type"] for call in engine.calls] == [
        IndexType.NDVI,
        IndexType.NDRE,
    ]


def test_expired_entry_is_recomputed(
    cache: ResultCache, clock: Clock
) -> None:
    engine = FakeIndexEngine()
    params = normalize_request_params(coordinates=POLYGON, today=TODAY)
    process_index_request(params, engine=engine, cache=cache)
    clock.now = NOW + timedelta(days=31)
    processed = process_index_request(params, engine=engine, cache=cache)
    assert processed.cached is False
    assert len(engine.calls) == 2


def test_broken_cache_never_blocks_processing(clock: Clock) -> None:
    engine = FakeIndexEngine()
    cache = ResultCache(FailingDocumentStore(), clock=clock)
    params = normalize_request_params(coordinates=POLYGON, today=TODAY)
    for _ in range(2):
        processed = process_index_request(params, engine=engine, cache=cache)
        assert processed.cached is False
        assert processed.result.mean_value == 0.55
    assert len(engine.calls) == 2


def test_engine_errors_propagate_and_nothing_is_cached(
    cache: ResultCache,
) -> None:
    class BrokenEngine(FakeIndexEngine):
        def compute(self, **kwargs: object):  # type: ignore[override]
            raise EarthEngineError("upstream down")

    params = normalize_request_params(coordinates=POLYGON, today=TODAY)
    with pytest.raises(EarthEngineError):
        process_index_request(params, engine=BrokenEngine(), cache=cache)
    assert cache.stats().total_entries == 0
