"""
URL configuration for foodhub project.

The service is API-only: everything lives under `/api/` apart from the admin
and the health probes.
"""

from django.contrib import admin
from django.urls import include, path

from apps.observability.views.health import healthz, readyz

handler404 = "foodhub.error_views.handle_404"
handler500 = "foodhub.error_views.handle_500"

urlpatterns = [
    path("healthz", healthz, name="healthz"),
    path("readyz", readyz, name="readyz"),
    path("admin/", admin.site.urls),
    path("api/", include("foodhub.api_urls")),
]
