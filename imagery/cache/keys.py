"""Canonical cache keys for satellite index requests.

Coordinates are rounded (5 decimals is roughly 1 m) and then sorted by
latitude, then longitude. Sorting makes the digest independent of the start
vertex and winding direction, but it does not preserve the polygon's shape:
the normalized list is only ever hashed, never used as geometry.

Requests without an image date share the "latest" entry only when they use
the default look-back window. An explicit search window is part of the key.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from typing import Any, Final

from django.conf import settings

from imagery.geometry import LatLng

from .base import CacheKey

COORD_PRECISION: Final[int] = int(
    getattr(settings, "IMAGERY_CACHE_COORD_PRECISION", 5)
)
LATEST_IMAGE_TOKEN: Final[str] = "latest"


def normalize_coordinates(
    coordinates: Sequence[LatLng], precision: int | None = None
) -> list[LatLng]:
    digits = COORD_PRECISION if precision is None else precision
    # "+ 0.0" folds -0.0 into 0.0 so both encode identically.
    rounded = [
        (round(float(lat), digits) + 0.0, round(float(lng), digits) + 0.0)
        for lat, lng in coordinates
    ]
    return sorted(rounded)


def canonical_payload(
    key: CacheKey, precision: int | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "coords": [
            {"lat": lat, "lng": lng}
            for lat, lng in normalize_coordinates(key.coordinates, precision)
        ],
        "indexType": key.index_type.value,
        "cloudCoverage": float(key.cloud_coverage),
        "imageDate": (
            key.image_date.isoformat()
            if key.image_date is not None
            else LATEST_IMAGE_TOKEN
        ),
    }
    if key.window is not None:
        payload["window"] = (
            f"{key.window.start.isoformat()}..{key.window.end.isoformat()}"
        )
    return payload


def canonical_bytes(key: CacheKey, precision: int | None = None) -> bytes:
    encoded = json.dumps(
        canonical_payload(key, precision),
        sort_keys=True,
        separators=(",", ":"),
    )
    return encoded.encode("utf-8")


def generate_cache_hash(key: CacheKey, precision: int | None = None) -> str:
    """Return the SHA-256 hex digest identifying ``key``."""

    return hashlib.sha256(canonical_bytes(key, precision)).hexdigest()
