"""System checks for the access control settings."""

from django.conf import settings
from django.core.checks import Error, register

POLICY_BACKENDS = ("memory", "database")
AUDIT_SINKS = ("logging", "redis", "none")


@register()
def access_control_settings_are_valid(app_configs, **kwargs):
    """Reject unknown policy backends, audit sinks and audit pool sizes at startup."""
    errors: list[Error] = []

    backend = getattr(settings, "ACCESS_CONTROL_POLICY_BACKEND", "memory")
    if backend not in POLICY_BACKENDS:
        errors.append(
            Error(
                f"ACCESS_CONTROL_POLICY_BACKEND must be one of {', '.join(POLICY_BACKENDS)}, "
                f"got {backend!r}.",
                id="access_control.E001",
            )
        )

    sink = getattr(settings, "ACCESS_CONTROL_AUDIT_SINK", "logging")
    if sink not in AUDIT_SINKS:
        errors.append(
            Error(
                f"ACCESS_CONTROL_AUDIT_SINK must be one of {', '.join(AUDIT_SINKS)}, got {sink!r}.",
                id="access_control.E002",
            )
        )

    for name in ("ACCESS_CONTROL_AUDIT_WORKERS", "ACCESS_CONTROL_AUDIT_QUEUE_SIZE"):
        value = getattr(settings, name, 1)
        if not isinstance(value, int) or value < 1:
            errors.append(Error(f"{name} must be a positive integer, got {value!r}.", id="access_control.E003"))

    return errors
