"""Routing for the decision endpoint and policy inspection."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AuthorizeView, PolicyViewSet

router = DefaultRouter()
router.register(r"policies", PolicyViewSet, basename="policy")

urlpatterns = [
    path("authorize/", AuthorizeView.as_view(), name="authorize"),
    path("", include(router.urls)),
]
