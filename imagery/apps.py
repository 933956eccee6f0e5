from __future__ import annotations

from django.apps import AppConfig


class ImageryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "imagery"
    verbose_name = "Satellite imagery"
