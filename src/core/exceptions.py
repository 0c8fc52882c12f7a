"""Custom exception handling to enforce the API error envelope."""

import logging
from typing import Any

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from access_control.authorization import PolicyStoreUnavailable
from access_control.policy import PolicyDefinitionError
from access_control.stores import PolicyNotFound

logger = logging.getLogger(__name__)


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        return [payload["detail"]]
    return [payload]


def _envelope(message: str, status_code: int) -> Response:
    return Response({"data": None, "errors": [message]}, status=status_code)


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Wrap errors in the `{ "data": null, "errors": [...] }` shape.

    - Maps the engine's configuration errors (unknown policy, missing policy
      store, malformed policy document) to 404/503/400.
    - Normalizes authentication and permission failures; deny reasons are
      never echoed to the caller.
    """

    if isinstance(exc, PolicyNotFound):
        return _envelope(str(exc), status.HTTP_404_NOT_FOUND)

    if isinstance(exc, PolicyStoreUnavailable):
        return _envelope("Policy store not available.", status.HTTP_503_SERVICE_UNAVAILABLE)

    if isinstance(exc, PolicyDefinitionError):
        return _envelope(str(exc), status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, DatabaseError):
        logger.exception("Database error while handling request")
        return _envelope("Service temporarily unavailable.", status.HTTP_503_SERVICE_UNAVAILABLE)

    response = drf_exception_handler(exc, context)

    if response is None:
        return response

    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    if response.status_code >= 400:
        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            errors = ["Subject could not be determined from the request."]
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            errors = ["You do not have permission to perform this action on this resource."]
        else:
            errors = _normalize_errors(response.data)

        response.data = {"data": None, "errors": errors}

    return response
