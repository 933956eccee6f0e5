from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from rest_framework.response import Response

logger = logging.getLogger(__name__)

JSONValue: TypeAlias = (
    None
    | bool
    | int
    | float
    | str
    | list["JSONValue"]
    | dict[str, "JSONValue"]
)


def _to_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, str | int | float | bool):
        return value
    if isinstance(value, Mapping):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_to_json_value(v) for v in value]
    return str(value)


def custom_exception_handler(
    exc: Exception,
    context: dict[str, Any],
) -> Response:
    # Lazy imports: safe even if settings aren't configured at import time.
    from rest_framework import status
    from rest_framework.views import exception_handler as drf_exception_handler

    from imagery.indices import UnsupportedIndexType

    from .responses import envelope, error_response

    if isinstance(exc, UnsupportedIndexType):
        return error_response(
            str(exc),
            errors={"indexType": [str(exc)]},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "api.unhandled view=%s err=%s",
            type(view).__name__ if view is not None else None,
            exc,
            exc_info=exc,
        )
        return error_response(
            "Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    detail = _to_json_value(response.data)
    message = "Request failed"
    if isinstance(detail, dict):
        maybe = detail.get("detail")
        if isinstance(maybe, str):
            message = maybe

    response.data = envelope(ok=False, message=message, errors=detail)
    return response
