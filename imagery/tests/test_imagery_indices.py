from __future__ import annotations

# ruff: noqa: S101
from unittest.mock import MagicMock

import numpy as np
import pytest

from imagery.indices import (
    CIRRUS_BIT,
    OPAQUE_CLOUD_BIT,
    IndexType,
    RasterImage,
    UnsupportedIndexType,
    calculate_evi,
    calculate_index,
    calculate_ndre,
    calculate_ndvi,
    mask_clouds,
)


def _image(**bands: list[float]) -> RasterImage:
    return RasterImage(bands)


def test_ndvi_known_value() -> None:
    image = _image(B8=[0.8], B4=[0.2])
    ndvi = calculate_ndvi(image)
    assert ndvi.band_names == ["NDVI"]
    assert ndvi.values[0] == pytest.approx(0.6)


def test_ndre_known_value() -> None:
    image = _image(B8=[0.8], B5=[0.4])
    assert calculate_ndre(image).values[0] == pytest.approx(1 / 3)


def test_evi_known_value() -> None:
    image = _image(B8=[0.8], B4=[0.2], B2=[0.1])
    # 2.5 * 0.6 / (0.8 + 1.2 - 0.75 + 1)
    assert calculate_evi(image).values[0] == pytest.approx(1.5 / 2.25)


def test_calculate_index_dispatches_by_type() -> None:
    image = _image(B8=[0.8, 0.5], B4=[0.2, 0.5], B5=[0.4, 0.1], B2=[0.1, 0.1])
    ndvi = calculate_index(image, IndexType.NDVI)
    ndre = calculate_index(image, "NDRE")
    evi = calculate_index(image, "evi")
    np.testing.assert_allclose(ndvi.values, [0.6, 0.0])
    assert ndre.band_names == ["NDRE"]
    assert evi.band_names == ["EVI"]


def test_unknown_index_type_raises() -> None:
    image = _image(B8=[0.8], B4=[0.2])
    with pytest.raises(UnsupportedIndexType, match="SAVI"):
        calculate_index(image, "SAVI")


def test_index_type_parse() -> None:
    assert IndexType.parse("ndvi") is IndexType.NDVI
    assert IndexType.parse(IndexType.EVI) is IndexType.EVI
    with pytest.raises(UnsupportedIndexType):
        IndexType.parse(None)


def test_zero_denominator_is_masked() -> None:
    image = _image(B8=[0.0, 0.8], B4=[0.0, 0.2])
    ndvi = calculate_ndvi(image)
    assert ndvi.mask.tolist() == [False, True]
    assert ndvi.masked().mean() == pytest.approx(0.6)


def test_formulas_use_earth_engine_method_chain() -> None:
    image = MagicMock()
    calculate_ndvi(image)
    selected = [call.args[0] for call in image.select.call_args_list]
    assert selected == ["B8", "B4"]


def test_mask_clouds_drops_opaque_and_cirrus_pixels() -> None:
    qa = [0, OPAQUE_CLOUD_BIT, CIRRUS_BIT, OPAQUE_CLOUD_BIT | CIRRUS_BIT, 4]
    image = RasterImage(
        {"B8": [0.8] * 5, "B4": [0.2] * 5, "QA60": qa},
    )
    masked = mask_clouds(image)
    assert masked.mask.tolist() == [True, False, False, False, True]
    ndvi = calculate_ndvi(masked)
    assert ndvi.masked().count() == 2


def test_arithmetic_requires_single_band() -> None:
    image = _image(B8=[0.8], B4=[0.2])
    with pytest.raises(ValueError, match="single-band"):
        image.add(1)


def test_missing_band_raises() -> None:
    with pytest.raises(KeyError):
        _image(B8=[0.8]).select("B4")
