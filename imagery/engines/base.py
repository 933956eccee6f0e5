"""Engine abstractions for satellite index producers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from imagery.geometry import LatLng
from imagery.indices import IndexType


@dataclass(frozen=True)
class DateRange:
    """Inclusive acquisition window for candidate images."""

    start: date
    end: date


@dataclass(frozen=True)
class SatelliteImageResult:
    """Index statistics and map tiles for one polygon."""

    min_value: float
    max_value: float
    mean_value: float
    date: str
    index_type: IndexType
    tile_url: str | None = None
    image_url: str | None = None

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "tileUrl": self.tile_url,
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "meanValue": self.mean_value,
            "date": self.date,
            "indexType": self.index_type.value,
        }
        if self.image_url is not None:
            payload["imageUrl"] = self.image_url
        return payload


class IndexEngine(Protocol):
    """Interface for engines that extract an index over a polygon."""

    engine_name: str

    def compute(
        self,
        *,
        coordinates: Sequence[LatLng],
        index_type: IndexType,
        cloud_coverage: float,
        date_range: DateRange,
    ) -> tuple[SatelliteImageResult, str]:
        """Return the result and the resolved acquisition date."""
