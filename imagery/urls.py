from __future__ import annotations

from django.urls import path

from .views import CacheStatsView, SatelliteProcessView

urlpatterns = [
    path(
        "satellite/process/",
        SatelliteProcessView.as_view(),
        name="satellite-process",
    ),
    path(
        "satellite/cache/stats/",
        CacheStatsView.as_view(),
        name="satellite-cache-stats",
    ),
]
