"""Types shared by the satellite result cache."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol

from imagery.engines.base import DateRange
from imagery.geometry import LatLng
from imagery.indices import IndexType


class CacheReadFailure(Exception):
    """A cache document could not be read or decoded."""


class CacheWriteFailure(Exception):
    """A cache document could not be written."""


@dataclass(frozen=True)
class CacheKey:
    """Request parameters that identify a cached index result.

    ``image_date`` of ``None`` means "most recent image". ``window`` is set
    only when the caller chose the search window explicitly; the default
    look-back window is covered by the "most recent image" entry.
    """

    coordinates: Sequence[LatLng]
    index_type: IndexType
    cloud_coverage: float
    image_date: date | None = None
    window: DateRange | None = None


@dataclass(frozen=True)
class CachedResult:
    hash: str
    min_value: float
    max_value: float
    mean_value: float
    date: str
    index_type: IndexType
    image_date: str
    cached_at: datetime
    tile_url: str | None = None
    image_url: str | None = None
    coordinates: tuple[LatLng, ...] = ()
    cloud_coverage: float | None = None


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None


class DocumentStore(Protocol):
    """Key/value document store addressed by collection and document id."""

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Return a copy of the document, or ``None`` when absent."""

    def set(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        """Write the document; ``merge=False`` replaces it entirely."""

    def stream(self, collection: str) -> Iterable[tuple[str, dict[str, Any]]]:
        """Yield ``(key, document)`` pairs for every document."""

    def count(self, collection: str) -> int:
        """Return the number of documents in the collection."""

    def bounds(self, collection: str, field: str) -> tuple[Any, Any]:
        """Return the lowest and highest value of ``field``.

        Documents without the field are ignored; an empty result is
        ``(None, None)``.
        """

    def delete(self, collection: str, key: str) -> None:
        """Remove the document if present."""
