"""Middleware attaching the authenticated subject id to each request.

Token validation happens upstream: the gateway in front of this service
authenticates the caller and forwards the subject id in a trusted header
(``settings.ACCESS_CONTROL_SUBJECT_HEADER``).
"""

from typing import Optional

from django.conf import settings
from django.utils.deprecation import MiddlewareMixin


class SubjectMiddleware(MiddlewareMixin):
    """Read the subject header and expose it as ``request.subject_id``."""

    def process_request(self, request):  # type: ignore[override]
        request.subject_id = self._get_subject_id(request)
        return None

    @staticmethod
    def _get_subject_id(request) -> Optional[str]:
        raw = request.headers.get(settings.ACCESS_CONTROL_SUBJECT_HEADER, "")
        subject_id = raw.strip()
        return subject_id or None


__all__ = ["SubjectMiddleware"]
