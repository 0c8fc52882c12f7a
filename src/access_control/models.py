"""Database storage for ABAC policy definitions."""

import uuid

from django.db import models


class PolicyRecord(models.Model):
    """Persisted policy; rules are stored as their JSON condition trees."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    version = models.CharField(max_length=50, default="1.0.0")
    enabled = models.BooleanField(default=True)
    tags = models.JSONField(default=list, blank=True)
    rules = models.JSONField(default=list, blank=True)
    created_by = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.name} ({self.version})"


__all__ = ["PolicyRecord"]
