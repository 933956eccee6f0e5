"""Satellite imagery API endpoints.

Authentication: project defaults (session or basic), IsAuthenticated.
All successful responses use `config.api.responses.success_response`
with the standard envelope:

    {"status": 0, "message": "<str>", "data": <object|null>, "errors": null}
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from config.api.openapi import (
    error_envelope_serializer,
    success_envelope_serializer,
)
from config.api.responses import success_response

from .cache.registry import get_result_cache
from .engines.earthengine import EarthEngineError, NoImageryAvailable
from .serializers import (
    CacheStatsSerializer,
    SatelliteProcessRequestSerializer,
    SatelliteProcessResultSerializer,
)
from .services import IndexRequestParams, get_engine, process_index_request

logger = logging.getLogger(__name__)

imagery_error_response = error_envelope_serializer("ImageryErrorResponse")

process_success_response = success_envelope_serializer(
    "SatelliteProcessSuccess", data=SatelliteProcessResultSerializer()
)
stats_success_response = success_envelope_serializer(
    "SatelliteCacheStatsSuccess", data=CacheStatsSerializer()
)


class ImageryUpstreamError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Failed to process satellite image."
    default_code = "upstream_error"


class SatelliteProcessView(APIView):
    """Compute (or reuse) index statistics for a drawn polygon."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=SatelliteProcessRequestSerializer,
        responses={
            200: process_success_response,
            400: imagery_error_response,
            404: imagery_error_response,
            502: imagery_error_response,
        },
    )
    def post(self, request: Request) -> Response:
        """Return index statistics and a map tile URL for the polygon.

        Body: coordinates, optional indexType, cloudCoverage, startDate,
        endDate, imageDate.
        Success: envelope with the result plus `cached` and `cacheKey`.
        Side effects: stores freshly computed results in the result cache.
        """

        serializer = SatelliteProcessRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = IndexRequestParams(**serializer.validated_data)

        try:
            processed = process_index_request(
                params, engine=get_engine(), cache=get_result_cache()
            )
        except NoImageryAvailable as exc:
            raise NotFound(str(exc)) from exc
        except EarthEngineError as exc:
            logger.exception("imagery.process.failed err=%s", exc)
            raise ImageryUpstreamError(str(exc)) from exc

        message = (
            "Satellite index (cached)"
            if processed.cached
            else "Satellite index"
        )
        return success_response(processed.to_payload(), message=message)


class CacheStatsView(APIView):
    """Report best-effort aggregate figures for the result cache."""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: stats_success_response})
    def get(self, request: Request) -> Response:
        stats = get_result_cache().stats()
        data = CacheStatsSerializer(asdict(stats)).data
        return success_response(data, message="Cache statistics")
