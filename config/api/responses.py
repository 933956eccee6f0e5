"""Response envelope shared by every JSON API endpoint.

Success: {"status": 0, "message": str, "data": object, "errors": null}
Failure: {"status": 1, "message": str, "data": null, "errors": object}
"""

from __future__ import annotations

from typing import TypeAlias

from rest_framework import status
from rest_framework.response import Response

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

STATUS_OK = 0
STATUS_ERROR = 1


def envelope(
    *,
    ok: bool,
    message: str,
    data: JSONValue | None = None,
    errors: JSONValue | None = None,
) -> dict[str, JSONValue]:
    return {
        "status": STATUS_OK if ok else STATUS_ERROR,
        "message": message,
        "data": data if ok else None,
        "errors": None if ok else errors,
    }


def success_response(
    data: JSONValue | None,
    message: str = "OK",
    *,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    return Response(
        envelope(ok=True, message=message, data=data), status=status_code
    )


def error_response(
    message: str,
    *,
    errors: JSONValue | None = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    return Response(
        envelope(ok=False, message=message, errors=errors),
        status=status_code,
    )
