"""Vegetation index formulas over Sentinel-2 bands.

The formulas are written against the small method surface shared by
``ee.Image`` and :class:`RasterImage` (``select``/``add``/``subtract``/
``multiply``/``divide``/``rename``), so the same code runs server-side on
Earth Engine and locally on numpy arrays.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Final, Protocol, TypeVar

import numpy as np
from django.db import models
from numpy.typing import ArrayLike, NDArray

NIR_BAND: Final[str] = "B8"
RED_BAND: Final[str] = "B4"
RED_EDGE_BAND: Final[str] = "B5"
BLUE_BAND: Final[str] = "B2"

QA_BAND: Final[str] = "QA60"
OPAQUE_CLOUD_BIT: Final[int] = 1 << 10
CIRRUS_BIT: Final[int] = 1 << 11


class UnsupportedIndexType(ValueError):
    """Raised when an index name is not one of the known formulas."""

    def __init__(self, index_type: object) -> None:
        self.index_type = index_type
        super().__init__(f"Unsupported index type: {index_type}")


class IndexType(models.TextChoices):
    NDVI = "NDVI", "NDVI"
    NDRE = "NDRE", "NDRE"
    EVI = "EVI", "EVI"

    @classmethod
    def parse(cls, value: object) -> IndexType:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError as exc:
            raise UnsupportedIndexType(value) from exc


ImageT = TypeVar("ImageT", bound="SpectralImage")


class SpectralImage(Protocol):
    """Image operations used by the index formulas and cloud masking."""

    def select(self: ImageT, band: str) -> ImageT: ...

    def add(self: ImageT, other: Any) -> ImageT: ...

    def subtract(self: ImageT, other: Any) -> ImageT: ...

    def multiply(self: ImageT, other: Any) -> ImageT: ...

    def divide(self: ImageT, other: Any) -> ImageT: ...

    def rename(self: ImageT, name: str) -> ImageT: ...


def calculate_ndvi(image: ImageT) -> ImageT:
    """NDVI = (NIR - Red) / (NIR + Red)."""

    nir = image.select(NIR_BAND)
    red = image.select(RED_BAND)
    return nir.subtract(red).divide(nir.add(red)).rename(IndexType.NDVI.value)


def calculate_ndre(image: ImageT) -> ImageT:
    """NDRE = (NIR - RedEdge) / (NIR + RedEdge)."""

    nir = image.select(NIR_BAND)
    red_edge = image.select(RED_EDGE_BAND)
    return (
        nir.subtract(red_edge)
        .divide(nir.add(red_edge))
        .rename(IndexType.NDRE.value)
    )


def calculate_evi(image: ImageT) -> ImageT:
    """EVI = 2.5 * (NIR - Red) / (NIR + 6*Red - 7.5*Blue + 1)."""

    nir = image.select(NIR_BAND)
    red = image.select(RED_BAND)
    blue = image.select(BLUE_BAND)
    denominator = (
        nir.add(red.multiply(6)).subtract(blue.multiply(7.5)).add(1)
    )
    return (
        nir.subtract(red)
        .divide(denominator)
        .multiply(2.5)
        .rename(IndexType.EVI.value)
    )


_FORMULAS: Final[dict[IndexType, Callable[[Any], Any]]] = {
    IndexType.NDVI: calculate_ndvi,
    IndexType.NDRE: calculate_ndre,
    IndexType.EVI: calculate_evi,
}


def calculate_index(image: ImageT, index_type: IndexType | str) -> ImageT:
    formula = _FORMULAS[IndexType.parse(index_type)]
    return formula(image)


def mask_clouds(image: Any) -> Any:
    """Mask pixels flagged as opaque cloud or cirrus in the QA60 band."""

    qa = image.select(QA_BAND)
    clouds = qa.bitwiseAnd(OPAQUE_CLOUD_BIT).Or(qa.bitwiseAnd(CIRRUS_BIT))
    return image.updateMask(clouds.Not())


class RasterImage:
    """Multi-band raster held in memory as float64 numpy arrays.

    Mirrors the subset of the Earth Engine image API the formulas use.
    Arithmetic is only defined on single-band images; pixels that end up
    non-finite (e.g. 0/0) are masked, as Earth Engine does.
    """

    def __init__(
        self,
        bands: Mapping[str, ArrayLike],
        mask: ArrayLike | None = None,
    ) -> None:
        if not bands:
            raise ValueError("RasterImage requires at least one band")
        self._bands: dict[str, NDArray[np.float64]] = {
            name: np.asarray(values, dtype=np.float64)
            for name, values in bands.items()
        }
        shape = next(iter(self._bands.values())).shape
        if any(values.shape != shape for values in self._bands.values()):
            raise ValueError("All bands must share the same shape")
        if mask is None:
            self._mask = np.ones(shape, dtype=bool)
        else:
            self._mask = np.broadcast_to(
                np.asarray(mask, dtype=bool), shape
            ).copy()

    @property
    def band_names(self) -> list[str]:
        return list(self._bands)

    @property
    def mask(self) -> NDArray[np.bool_]:
        return self._mask.copy()

    @property
    def values(self) -> NDArray[np.float64]:
        return self._single()[1].copy()

    def masked(self) -> np.ma.MaskedArray:
        return np.ma.masked_array(self._single()[1], mask=~self._mask)

    def select(self, band: str) -> RasterImage:
        if band not in self._bands:
            raise KeyError(f"Band not found: {band}")
        return RasterImage({band: self._bands[band]}, mask=self._mask)

    def rename(self, name: str) -> RasterImage:
        _, values = self._single()
        return RasterImage({name: values}, mask=self._mask)

    def add(self, other: RasterImage | float) -> RasterImage:
        return self._combine(other, np.add)

    def subtract(self, other: RasterImage | float) -> RasterImage:
        return self._combine(other, np.subtract)

    def multiply(self, other: RasterImage | float) -> RasterImage:
        return self._combine(other, np.multiply)

    def divide(self, other: RasterImage | float) -> RasterImage:
        return self._combine(other, np.divide)

    def bitwiseAnd(self, value: int) -> RasterImage:  # noqa: N802
        name, values = self._single()
        flags = values.astype(np.int64) & int(value)
        return RasterImage({name: flags}, mask=self._mask)

    def Or(self, other: RasterImage) -> RasterImage:  # noqa: N802
        return self._combine(
            other, lambda a, b: np.logical_or(a != 0, b != 0)
        )

    def Not(self) -> RasterImage:  # noqa: N802
        name, values = self._single()
        return RasterImage({name: values == 0}, mask=self._mask)

    def updateMask(self, mask: RasterImage) -> RasterImage:  # noqa: N802
        _, mask_values = mask._single()
        combined = self._mask & mask._mask & (mask_values != 0)
        return RasterImage(self._bands, mask=combined)

    def _single(self) -> tuple[str, NDArray[np.float64]]:
        if len(self._bands) != 1:
            raise ValueError(
                "Operation requires a single-band image, got "
                f"{self.band_names}"
            )
        return next(iter(self._bands.items()))

    def _combine(
        self,
        other: RasterImage | float,
        op: Callable[[Any, Any], Any],
    ) -> RasterImage:
        name, left = self._single()
        mask = self._mask
        if isinstance(other, RasterImage):
            _, right = other._single()
            mask = mask & other._mask
        else:
            right = np.float64(other)
        with np.errstate(divide="ignore", invalid="ignore"):
            result = np.asarray(op(left, right), dtype=np.float64)
        return RasterImage({name: result}, mask=mask & np.isfinite(result))

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"RasterImage(bands={self.band_names})"
