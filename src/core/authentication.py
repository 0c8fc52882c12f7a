"""Bridge from ``SubjectMiddleware`` into DRF authentication.

DRF resolves ``request.user`` through its own authentication classes. This
authenticator surfaces the subject id the middleware already attached to the
Django request, wrapped in a minimal :class:`Subject` object.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
from rest_framework.authentication import BaseAuthentication


@dataclass(frozen=True)
class Subject:
    """Authenticated caller identity as seen by the authorization engine."""

    id: str

    is_authenticated = True

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.id


class SubjectAuthentication(BaseAuthentication):
    """Expose ``request._request.subject_id`` (set by middleware) to DRF."""

    def authenticate(self, request) -> Optional[Tuple[Subject, None]]:
        django_request = getattr(request, "_request", None)
        subject_id = getattr(django_request, "subject_id", None)
        if not subject_id:
            return None
        return Subject(subject_id), None

    def authenticate_header(self, request) -> str:
        # Makes DRF answer 401 instead of 403 when the subject is missing.
        return settings.ACCESS_CONTROL_SUBJECT_HEADER


__all__ = ["Subject", "SubjectAuthentication"]
