from __future__ import annotations

import logging
from datetime import datetime

from celery import shared_task

from .cache.registry import get_result_cache

logger = logging.getLogger(__name__)


@shared_task
def purge_stale_cache_entries() -> int:
    """Delete cache documents whose age exceeds the cache TTL."""

    cache = get_result_cache()
    stale: list[str] = []
    for key, data in cache.store.stream(cache.collection):
        cached_at = data.get("cachedAt")
        if isinstance(cached_at, datetime) and cache.is_expired(cached_at):
            stale.append(key)

    deleted = 0
    for key in stale:
        try:
            cache.store.delete(cache.collection, key)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "imagery.cache.purge_failed hash=%s err=%s", key[:8], exc
            )
            continue
        deleted += 1

    logger.info(
        "imagery.cache.purged deleted=%s scanned_stale=%s", deleted, len(stale)
    )
    return deleted
