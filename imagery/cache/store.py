"""Satellite result cache backed by a document store.

The cache is an optimization only. Read errors behave like misses and write
errors are logged and dropped, so a broken store costs a recomputation and
never fails the request that produced the value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import Any, Final

from django.conf import settings
from django.utils import timezone

from imagery.engines.base import SatelliteImageResult
from imagery.indices import IndexType
from imagery.metrics import (
    imagery_cache_lookups_total,
    imagery_cache_writes_total,
)

from .base import (
    CachedResult,
    CacheKey,
    CacheReadFailure,
    CacheStats,
    CacheWriteFailure,
    DocumentStore,
)

logger = logging.getLogger(__name__)

CACHE_COLLECTION: Final[str] = str(
    getattr(settings, "IMAGERY_CACHE_COLLECTION", "satellite_cache")
)
CACHE_TTL_DAYS: Final[int] = int(
    getattr(settings, "IMAGERY_CACHE_TTL_DAYS", 30)
)


class ResultCache:
    """Content-addressed store of index results with a time-to-live."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str = CACHE_COLLECTION,
        ttl: timedelta = timedelta(days=CACHE_TTL_DAYS),
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.store = store
        self.collection = collection
        self.ttl = ttl
        self.clock = clock

    def get(self, cache_hash: str) -> CachedResult | None:
        try:
            document = self._read(cache_hash)
        except CacheReadFailure as exc:
            imagery_cache_lookups_total.labels(outcome="error").inc()
            logger.warning(
                "imagery.cache.read_failed hash=%s err=%s",
                cache_hash[:8],
                exc.__cause__ or exc,
                exc_info=True,
            )
            return None

        if document is None:
            imagery_cache_lookups_total.labels(outcome="miss").inc()
            return None

        if self.is_expired(document.cached_at):
            imagery_cache_lookups_total.labels(outcome="expired").inc()
            age = self.clock() - document.cached_at
            logger.info(
                "imagery.cache.expired hash=%s age_days=%.1f",
                cache_hash[:8],
                age / timedelta(days=1),
            )
            return None

        imagery_cache_lookups_total.labels(outcome="hit").inc()
        return document

    def set(
        self,
        cache_hash: str,
        key: CacheKey,
        result: SatelliteImageResult,
        image_date: str,
    ) -> None:
        try:
            self._write(cache_hash, key, result, image_date)
        except CacheWriteFailure as exc:
            imagery_cache_writes_total.labels(outcome="error").inc()
            logger.warning(
                "imagery.cache.write_failed hash=%s err=%s",
                cache_hash[:8],
                exc.__cause__ or exc,
                exc_info=True,
            )
            return
        imagery_cache_writes_total.labels(outcome="success").inc()
        logger.info("imagery.cache.stored hash=%s", cache_hash[:8])

    def stats(self) -> CacheStats:
        """Count entries and report the oldest/newest insertion times."""

        try:
            total = self.store.count(self.collection)
            oldest, newest = self.store.bounds(self.collection, "cachedAt")
        except Exception:  # noqa: BLE001
            logger.warning("imagery.cache.stats_failed", exc_info=True)
            return CacheStats(total_entries=0)
        return CacheStats(
            total_entries=total,
            oldest_entry=oldest if isinstance(oldest, datetime) else None,
            newest_entry=newest if isinstance(newest, datetime) else None,
        )

    def is_expired(self, cached_at: datetime | None) -> bool:
        if cached_at is None:
            return False
        return self.clock() - cached_at > self.ttl

    def _read(self, cache_hash: str) -> CachedResult | None:
        try:
            data = self.store.get(self.collection, cache_hash)
            if data is None:
                return None
            return self._decode(cache_hash, data)
        except Exception as exc:
            raise CacheReadFailure(cache_hash) from exc

    def _write(
        self,
        cache_hash: str,
        key: CacheKey,
        result: SatelliteImageResult,
        image_date: str,
    ) -> None:
        document: dict[str, Any] = {
            **result.to_document(),
            "imageDate": image_date,
            "cachedAt": self.clock(),
            "hash": cache_hash,
            # Audit copy, not part of the identity.
            "coordinates": [
                {"lat": lat, "lng": lng} for lat, lng in key.coordinates
            ],
            "indexType": key.index_type.value,
            "cloudCoverage": key.cloud_coverage,
        }
        try:
            self.store.set(self.collection, cache_hash, document, merge=False)
        except Exception as exc:
            raise CacheWriteFailure(cache_hash) from exc

    def _decode(self, cache_hash: str, data: dict[str, Any]) -> CachedResult:
        cached_at = data.get("cachedAt")
        if cached_at is not None and not isinstance(cached_at, datetime):
            raise TypeError(f"cachedAt is not a timestamp: {cached_at!r}")
        if cached_at is not None and timezone.is_naive(cached_at):
            cached_at = timezone.make_aware(cached_at, dt_timezone.utc)
        return CachedResult(
            hash=cache_hash,
            tile_url=data.get("tileUrl"),
            image_url=data.get("imageUrl"),
            min_value=float(data["minValue"]),
            max_value=float(data["maxValue"]),
            mean_value=float(data["meanValue"]),
            date=str(data["date"]),
            index_type=IndexType.parse(data["indexType"]),
            image_date=str(data.get("imageDate") or data["date"]),
            cached_at=cached_at or self.clock(),
            coordinates=tuple(
                (float(point["lat"]), float(point["lng"]))
                for point in data.get("coordinates") or ()
            ),
            cloud_coverage=(
                float(data["cloudCoverage"])
                if data.get("cloudCoverage") is not None
                else None
            ),
        )
