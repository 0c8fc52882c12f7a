"""Django settings for the hybrid access control service.

Environment-driven configuration for the database, Redis audit stream,
policy backend, and logging.
"""
import os
from pathlib import Path
from urllib.parse import urlparse

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def _get_env(name: str, default: str | None = None) -> str | None:
    """Read an environment variable with an optional fallback."""
    return os.environ.get(name, default)


def _get_bool(name: str, default: str = "False") -> bool:
    return _get_env(name, default) == "True"


def _parse_database_url(url: str) -> dict:
    """Parse a ``postgres://`` or ``sqlite:///`` DATABASE_URL into a DATABASES entry."""
    parsed = urlparse(url)
    if parsed.scheme == "sqlite":
        return {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": parsed.path.lstrip("/") or ":memory:",
        }
    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": parsed.path.lstrip("/"),
        "USER": parsed.username,
        "PASSWORD": parsed.password,
        "HOST": parsed.hostname,
        "PORT": parsed.port or "5432",
    }


SECRET_KEY = _get_env("SECRET_KEY", "dev-secret-key-change-me")
DEBUG = _get_bool("DEBUG", "True")
if not DEBUG and SECRET_KEY in ("change-me", "dev-secret-key-change-me"):
    raise ImproperlyConfigured("SECRET_KEY must be set in production")
ALLOWED_HOSTS = [
    h.strip()
    for h in _get_env("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "drf_spectacular",
    "core",
    "access_control",
    "scripts",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "core.middleware.SubjectMiddleware",
]

ROOT_URLCONF = "core.urls"

DATABASE_URL = _get_env("DATABASE_URL")
if DATABASE_URL:
    DATABASES = {"default": _parse_database_url(DATABASE_URL)}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": _get_env("POSTGRES_DB", "access_control"),
            "USER": _get_env("POSTGRES_USER", "access_control"),
            "PASSWORD": _get_env("POSTGRES_PASSWORD", "access_control"),
            "HOST": _get_env("POSTGRES_HOST", "localhost"),
            "PORT": _get_env("POSTGRES_PORT", "5433"),
        }
    }

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REDIS_URL = _get_env("REDIS_URL", "redis://localhost:6380/0")
REDIS_SOCKET_TIMEOUT = float(_get_env("REDIS_SOCKET_TIMEOUT", "0.5"))

# Policy decision engine
ACCESS_CONTROL_POLICY_BACKEND = _get_env("ACCESS_CONTROL_POLICY_BACKEND", "memory")
ACCESS_CONTROL_AUDIT_SINK = _get_env("ACCESS_CONTROL_AUDIT_SINK", "logging")
ACCESS_CONTROL_AUDIT_STREAM = _get_env("ACCESS_CONTROL_AUDIT_STREAM", "audit:authz")
ACCESS_CONTROL_AUDIT_ASYNC = _get_bool("ACCESS_CONTROL_AUDIT_ASYNC", "True")
ACCESS_CONTROL_AUDIT_WORKERS = int(_get_env("ACCESS_CONTROL_AUDIT_WORKERS", "1"))
ACCESS_CONTROL_AUDIT_QUEUE_SIZE = int(_get_env("ACCESS_CONTROL_AUDIT_QUEUE_SIZE", "1000"))
ACCESS_CONTROL_SEED_EXAMPLES = _get_bool("ACCESS_CONTROL_SEED_EXAMPLES")
# Set by the upstream gateway once it has authenticated the caller.
ACCESS_CONTROL_SUBJECT_HEADER = _get_env("ACCESS_CONTROL_SUBJECT_HEADER", "X-Subject-Id")

LOG_LEVEL = _get_env("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
        "audit": {"format": "%(asctime)s AUDIT %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
        "audit": {"class": "logging.StreamHandler", "formatter": "audit"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "access_control.audit.records": {"handlers": ["audit"], "level": "INFO", "propagate": False},
    },
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["core.authentication.SubjectAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "core.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Hybrid Access Control API",
    "DESCRIPTION": (
        "Decision endpoint and policy inspection for the RBAC + ABAC "
        "authorization engine."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SERVE_PUBLIC": True,
}
