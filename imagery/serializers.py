from __future__ import annotations

from datetime import date
from typing import Any, cast

from rest_framework import serializers

from .indices import IndexType
from .services import DEFAULT_INDEX, normalize_request_params


class CoordinateSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)


class SatelliteProcessRequestSerializer(serializers.Serializer):
    coordinates = serializers.ListField(
        child=CoordinateSerializer(), min_length=3
    )
    indexType = serializers.ChoiceField(  # noqa: N815
        choices=IndexType.choices, required=False, default=DEFAULT_INDEX
    )
    cloudCoverage = serializers.FloatField(  # noqa: N815
        required=False, min_value=0, max_value=100
    )
    startDate = serializers.DateField(required=False)  # noqa: N815
    endDate = serializers.DateField(required=False)  # noqa: N815
    imageDate = serializers.DateField(required=False)  # noqa: N815

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        params = normalize_request_params(
            coordinates=[
                (point["lat"], point["lng"]) for point in attrs["coordinates"]
            ],
            index_type=cast(str, attrs.get("indexType")),
            cloud_coverage=cast(float | None, attrs.get("cloudCoverage")),
            start=cast(date | None, attrs.get("startDate")),
            end=cast(date | None, attrs.get("endDate")),
            image_date=cast(date | None, attrs.get("imageDate")),
        )
        return {
            "coordinates": params.coordinates,
            "index_type": params.index_type,
            "cloud_coverage": params.cloud_coverage,
            "date_range": params.date_range,
            "image_date": params.image_date,
            "explicit_window": params.explicit_window,
        }


class AreaSerializer(serializers.Serializer):
    km2 = serializers.CharField()
    hectares = serializers.CharField()


class SatelliteProcessResultSerializer(serializers.Serializer):
    tileUrl = serializers.CharField(allow_null=True)  # noqa: N815
    minValue = serializers.FloatField()  # noqa: N815
    maxValue = serializers.FloatField()  # noqa: N815
    meanValue = serializers.FloatField()  # noqa: N815
    date = serializers.CharField()
    indexType = serializers.ChoiceField(  # noqa: N815
        choices=IndexType.choices
    )
    imageDate = serializers.CharField()  # noqa: N815
    cached = serializers.BooleanField()
    cacheKey = serializers.CharField()  # noqa: N815
    area = AreaSerializer()


class CacheStatsSerializer(serializers.Serializer):
    total_entries = serializers.IntegerField()
    oldest_entry = serializers.DateTimeField(allow_null=True)
    newest_entry = serializers.DateTimeField(allow_null=True)
