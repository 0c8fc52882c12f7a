"""Response helpers and base views producing the `{data, errors}` envelope."""

from typing import Any

from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ViewSet


def api_response(data: Any, status: int = 200) -> Response:
    """Return ``data`` wrapped as ``{"data": data, "errors": []}``."""

    return Response({"data": data, "errors": []}, status=status)


def _is_enveloped(payload: Any) -> bool:
    return isinstance(payload, dict) and "data" in payload and "errors" in payload


class EnvelopeMixin:
    """Wrap successful payloads that a view returned without the envelope."""

    def finalize_response(self, request, response, *args, **kwargs):  # type: ignore[override]
        if hasattr(response, "data") and response.status_code and response.status_code < 400:
            if response.status_code != 204 and not _is_enveloped(response.data):
                response.data = {"data": response.data, "errors": []}
        return super().finalize_response(request, response, *args, **kwargs)  # type: ignore[attr-defined]


class BaseAPIView(EnvelopeMixin, APIView):
    """APIView whose successful responses use the envelope."""


class BaseReadOnlyViewSet(EnvelopeMixin, ViewSet):
    """List/retrieve ViewSet over a non-ORM source, enveloped."""


__all__ = ["BaseAPIView", "BaseReadOnlyViewSet", "EnvelopeMixin", "api_response"]
