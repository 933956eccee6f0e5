"""Google Earth Engine index engine over Sentinel-2 surface reflectance."""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable, Sequence
from datetime import timedelta
from pathlib import Path
from types import ModuleType
from typing import Any, Final

import ee
from django.conf import settings
from django.utils import timezone

from imagery.geometry import LatLng
from imagery.indices import IndexType, calculate_index, mask_clouds
from imagery.metrics import (
    imagery_upstream_latency_seconds,
    imagery_upstream_requests_total,
)

from .base import DateRange, IndexEngine, SatelliteImageResult

logger = logging.getLogger(__name__)

SENTINEL2_COLLECTION: Final[str] = "COPERNICUS/S2_SR_HARMONIZED"
CLOUD_PROPERTY: Final[str] = "CLOUDY_PIXEL_PERCENTAGE"
TIME_PROPERTY: Final[str] = "system:time_start"
MAX_PIXELS: Final[float] = 1e9

DEFAULT_SCALE_METERS: Final[int] = int(
    getattr(settings, "IMAGERY_STATS_SCALE_METERS", 100)
)
DEFAULT_TIMEOUT: Final[float] = float(
    getattr(settings, "IMAGERY_REQUEST_TIMEOUT_SECONDS", 60)
)

PALETTES: Final[dict[IndexType, list[str]]] = {
    IndexType.NDVI: ["red", "yellow", "green"],
    IndexType.NDRE: ["red", "yellow", "green"],
    IndexType.EVI: ["blue", "cyan", "yellow", "orange", "red"],
}


class EarthEngineError(RuntimeError):
    """Signals a failed Earth Engine computation."""


class EarthEngineConfigError(EarthEngineError):
    """Raised when Earth Engine credentials are missing or unreadable."""


class NoImageryAvailable(EarthEngineError):
    """No image matched the date window and cloud threshold."""


class EarthEngineIndexEngine(IndexEngine):
    """Compute index statistics and map tiles with Earth Engine."""

    engine_name: Final[str] = "earthengine"

    def __init__(
        self,
        *,
        client_email: str | None = None,
        private_key: str | None = None,
        credentials_path: str | None = None,
        project: str | None = None,
        scale_meters: int | None = None,
        timeout_seconds: float | None = None,
        ee_module: ModuleType | Any = None,
    ) -> None:
        self.client_email = client_email or getattr(
            settings, "EARTH_ENGINE_CLIENT_EMAIL", None
        )
        self.private_key = private_key or getattr(
            settings, "EARTH_ENGINE_PRIVATE_KEY", None
        )
        self.credentials_path = credentials_path or os.getenv(
            "GOOGLE_APPLICATION_CREDENTIALS"
        )
        self.project = project or getattr(
            settings, "EARTH_ENGINE_PROJECT", None
        )
        self.scale_meters = scale_meters or DEFAULT_SCALE_METERS
        self.timeout_seconds = timeout_seconds or DEFAULT_TIMEOUT
        self._ee = ee_module or ee
        self._initialized = False

    def compute(
        self,
        *,
        coordinates: Sequence[LatLng],
        index_type: IndexType,
        cloud_coverage: float,
        date_range: DateRange,
    ) -> tuple[SatelliteImageResult, str]:
        self._ensure_initialized()
        ee_api = self._ee

        polygon = ee_api.Geometry.Polygon(
            [[[lng, lat] for lat, lng in coordinates]], "EPSG:4326"
        )
        collection = self.build_collection(date_range, cloud_coverage)
        if not self._get_info(collection.size(), stage="size"):
            raise NoImageryAvailable(
                f"No {SENTINEL2_COLLECTION} image between {date_range.start} "
                f"and {date_range.end} under {cloud_coverage}% cloud"
            )

        image = ee_api.Image(collection.sort(TIME_PROPERTY, False).first())
        image_date = str(
            self._get_info(
                ee_api.Date(image.get(TIME_PROPERTY)).format("YYYY-MM-dd"),
                stage="image_date",
            )
        )

        clipped = calculate_index(image, index_type).clip(polygon)
        reducer = ee_api.Reducer.minMax().combine(
            reducer2=ee_api.Reducer.mean(), sharedInputs=True
        )
        stats = self._get_info(
            clipped.reduceRegion(
                reducer=reducer,
                geometry=polygon,
                scale=self.scale_meters,
                maxPixels=MAX_PIXELS,
            ),
            stage="statistics",
        )
        min_value, max_value, mean_value = self._parse_statistics(
            stats, index_type
        )

        vis_params = {
            "min": min_value,
            "max": max_value,
            "palette": PALETTES[index_type],
        }
        map_id = self._request(
            lambda: clipped.getMapId(vis_params), stage="map_id"
        )
        tile_fetcher = (map_id or {}).get("tile_fetcher")
        tile_url = getattr(tile_fetcher, "url_format", None)
        if not tile_url:
            raise EarthEngineError("Earth Engine did not return a tile URL")

        result = SatelliteImageResult(
            tile_url=tile_url,
            min_value=min_value,
            max_value=max_value,
            mean_value=mean_value,
            date=timezone.now().isoformat(),
            index_type=index_type,
        )
        logger.info(
            "earthengine.compute index=%s image_date=%s mean=%.4f",
            index_type.value,
            image_date,
            mean_value,
        )
        return result, image_date

    def build_collection(
        self, date_range: DateRange, cloud_coverage: float
    ) -> Any:
        """Sentinel-2 images in the window, under the cloud threshold."""

        ee_api = self._ee
        end_exclusive = date_range.end + timedelta(days=1)
        collection = (
            ee_api.ImageCollection(SENTINEL2_COLLECTION)
            .filterDate(
                date_range.start.isoformat(), end_exclusive.isoformat()
            )
            .filter(ee_api.Filter.lt(CLOUD_PROPERTY, cloud_coverage))
        )
        return collection.map(mask_clouds)

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        ee_api = self._ee
        credentials = self._build_credentials()
        try:
            ee_api.Initialize(credentials, project=self._resolve_project())
        except Exception as exc:
            logger.exception("earthengine.init.failed err=%s", exc)
            raise EarthEngineConfigError(
                f"Earth Engine initialization failed: {exc}"
            ) from exc
        ee_api.data.setDeadline(int(self.timeout_seconds * 1000))
        self._initialized = True
        logger.info("earthengine.init.ok project=%s", self._resolve_project())

    def _build_credentials(self) -> Any:
        if self.client_email and self.private_key:
            key_data = self.private_key.replace("\\n", "\n")
            return self._ee.ServiceAccountCredentials(
                self.client_email, key_data=key_data
            )

        if self.credentials_path:
            path = Path(self.credentials_path).expanduser().resolve()
            if not path.exists():
                raise EarthEngineConfigError(
                    f"Credentials file not found: {path}"
                )
            try:
                info = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise EarthEngineConfigError(
                    f"Credentials file is not valid JSON: {path}"
                ) from exc
            self.client_email = self.client_email or info.get("client_email")
            self.project = self.project or info.get("project_id")
            return self._ee.ServiceAccountCredentials(
                self.client_email, key_file=str(path)
            )

        raise EarthEngineConfigError(
            "Earth Engine credentials not found. Set "
            "EARTH_ENGINE_CLIENT_EMAIL and EARTH_ENGINE_PRIVATE_KEY, or "
            "GOOGLE_APPLICATION_CREDENTIALS."
        )

    def _resolve_project(self) -> str | None:
        if self.project:
            return self.project
        if self.client_email and "@" in self.client_email:
            return self.client_email.split("@", 1)[1].split(".", 1)[0]
        return None

    def _get_info(self, computed: Any, *, stage: str) -> Any:
        return self._request(computed.getInfo, stage=stage)

    def _request(self, call: Callable[[], Any], *, stage: str) -> Any:
        started = time.monotonic()
        try:
            value = call()
        except self._ee.EEException as exc:
            imagery_upstream_requests_total.labels(
                engine=self.engine_name, outcome="error"
            ).inc()
            logger.warning(
                "earthengine.request.failed stage=%s err=%s", stage, exc
            )
            raise EarthEngineError(f"{stage}: {exc}") from exc
        finally:
            imagery_upstream_latency_seconds.labels(
                engine=self.engine_name
            ).observe(time.monotonic() - started)
        imagery_upstream_requests_total.labels(
            engine=self.engine_name, outcome="success"
        ).inc()
        return value

    @staticmethod
    def _parse_statistics(
        stats: dict[str, Any] | None, index_type: IndexType
    ) -> tuple[float, float, float]:
        data = stats or {}
        name = index_type.value
        min_raw = data.get(f"{name}_min")
        max_raw = data.get(f"{name}_max")
        if min_raw is None or max_raw is None:
            raise EarthEngineError(
                "Statistics missing expected keys. Received: "
                f"{', '.join(sorted(data)) or 'nothing'}"
            )
        min_value = float(min_raw)
        max_value = float(max_raw)
        mean_raw = data.get(f"{name}_mean")
        mean_value = (
            float(mean_raw)
            if mean_raw is not None
            else (min_value + max_value) / 2
        )
        return min_value, max_value, mean_value

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return (
            "EarthEngineIndexEngine("
            f"client_email={self.client_email}, project={self.project}, "
            f"scale={self.scale_meters}"
            ")"
        )
