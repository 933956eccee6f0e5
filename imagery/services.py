from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from typing import Any

from django.conf import settings
from rest_framework.exceptions import ValidationError

from .cache.base import CachedResult, CacheKey
from .cache.keys import generate_cache_hash
from .cache.store import ResultCache
from .engines.base import DateRange, IndexEngine, SatelliteImageResult
from .engines.earthengine import EarthEngineIndexEngine
from .geometry import (
    FormattedArea,
    LatLng,
    format_area,
    polygon_area_m2,
    square_meters_to_km2,
)
from .indices import IndexType

logger = logging.getLogger(__name__)

DEFAULT_ENGINE = getattr(settings, "IMAGERY_ENGINE", "earthengine")
DEFAULT_INDEX = IndexType.parse(
    getattr(settings, "IMAGERY_DEFAULT_INDEX", IndexType.NDVI)
)
DEFAULT_MAX_CLOUD = int(getattr(settings, "IMAGERY_DEFAULT_MAX_CLOUD", 20))
DEFAULT_LOOKBACK_DAYS = int(
    getattr(settings, "IMAGERY_DEFAULT_LOOKBACK_DAYS", 60)
)
MAX_DATERANGE_DAYS = int(getattr(settings, "IMAGERY_MAX_DATERANGE_DAYS", 370))
MAX_AREA_KM2 = float(getattr(settings, "IMAGERY_MAX_AREA_KM2", 5000.0))


@dataclass(frozen=True)
class IndexRequestParams:
    coordinates: tuple[LatLng, ...]
    index_type: IndexType
    cloud_coverage: float
    date_range: DateRange
    image_date: date | None = None
    explicit_window: bool = False


@dataclass(frozen=True)
class ProcessedIndex:
    cache_hash: str
    result: SatelliteImageResult | CachedResult
    image_date: str
    cached: bool
    area: FormattedArea

    def to_payload(self) -> dict[str, Any]:
        return {
            "tileUrl": self.result.tile_url,
            "minValue": self.result.min_value,
            "maxValue": self.result.max_value,
            "meanValue": self.result.mean_value,
            "date": self.result.date,
            "indexType": self.result.index_type.value,
            "imageDate": self.image_date,
            "cached": self.cached,
            "cacheKey": self.cache_hash,
            "area": dict(self.area),
        }


@lru_cache(maxsize=None)
def get_engine(engine_name: str | None = None) -> IndexEngine:
    engine = (engine_name or DEFAULT_ENGINE).lower()
    if engine == "earthengine":
        return EarthEngineIndexEngine()
    raise ValueError(f"Unsupported imagery engine: {engine}")


def normalize_polygon(coordinates: Sequence[LatLng]) -> tuple[LatLng, ...]:
    points = [(float(lat), float(lng)) for lat, lng in coordinates]
    if len(points) > 3 and points[0] == points[-1]:
        points = points[:-1]
    if len(points) < 3:
        raise ValidationError(
            "Invalid coordinates. At least 3 points required for a polygon."
        )
    for lat, lng in points:
        if not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise ValidationError(
                f"Coordinate out of range: lat={lat}, lng={lng}"
            )
    return tuple(points)


def normalize_request_params(
    *,
    coordinates: Sequence[LatLng],
    index_type: IndexType | str | None = None,
    cloud_coverage: float | None = None,
    start: date | None = None,
    end: date | None = None,
    image_date: date | None = None,
    today: date | None = None,
) -> IndexRequestParams:
    polygon = normalize_polygon(coordinates)
    index = IndexType.parse(index_type) if index_type else DEFAULT_INDEX

    cloud = float(
        cloud_coverage if cloud_coverage is not None else DEFAULT_MAX_CLOUD
    )
    cloud = max(0.0, min(cloud, 100.0))

    if image_date is not None:
        date_range = DateRange(start=image_date, end=image_date)
    else:
        window_end = end or today or date.today()
        window_start = start or window_end - timedelta(
            days=DEFAULT_LOOKBACK_DAYS
        )
        if window_start > window_end:
            raise ValidationError("startDate must be on or before endDate.")
        if (window_end - window_start).days > MAX_DATERANGE_DAYS:
            raise ValidationError(
                "Requested date range exceeds IMAGERY_MAX_DATERANGE_DAYS."
            )
        date_range = DateRange(start=window_start, end=window_end)

    return IndexRequestParams(
        coordinates=polygon,
        index_type=index,
        cloud_coverage=cloud,
        date_range=date_range,
        image_date=image_date,
        explicit_window=image_date is None
        and (start is not None or end is not None),
    )


def enforce_quota(coordinates: Sequence[LatLng]) -> None:
    area_km2 = square_meters_to_km2(polygon_area_m2(coordinates))
    if area_km2 > MAX_AREA_KM2:
        raise ValidationError("Requested area exceeds IMAGERY_MAX_AREA_KM2.")


def build_cache_key(params: IndexRequestParams) -> CacheKey:
    return CacheKey(
        coordinates=params.coordinates,
        index_type=params.index_type,
        cloud_coverage=params.cloud_coverage,
        image_date=params.image_date,
        window=params.date_range if params.explicit_window else None,
    )


def process_index_request(
    params: IndexRequestParams,
    *,
    engine: IndexEngine,
    cache: ResultCache,
) -> ProcessedIndex:
    """Serve an index request from the cache, computing it on a miss.

    Engine errors propagate; cache errors are absorbed by ``ResultCache``.
    """

    enforce_quota(params.coordinates)
    # Area uses the caller's vertex order, not the hash-normalized one.
    area = format_area(params.coordinates)
    key = build_cache_key(params)
    cache_hash = generate_cache_hash(key)

    cached = cache.get(cache_hash)
    if cached is not None:
        logger.info(
            "imagery.process.cache_hit hash=%s index=%s",
            cache_hash[:8],
            params.index_type.value,
        )
        return ProcessedIndex(
            cache_hash=cache_hash,
            result=cached,
            image_date=cached.image_date,
            cached=True,
            area=area,
        )

    logger.info(
        "imagery.process.compute hash=%s index=%s cloud=%s window=%s..%s",
        cache_hash[:8],
        params.index_type.value,
        params.cloud_coverage,
        params.date_range.start,
        params.date_range.end,
    )
    result, resolved_date = engine.compute(
        coordinates=params.coordinates,
        index_type=params.index_type,
        cloud_coverage=params.cloud_coverage,
        date_range=params.date_range,
    )
    cache.set(cache_hash, key, result, resolved_date)
    return ProcessedIndex(
        cache_hash=cache_hash,
        result=result,
        image_date=resolved_date,
        cached=False,
        area=area,
    )
