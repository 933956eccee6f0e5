"""Django settings for the fieldwatch project.

Values come from environment variables; defaults are suitable for local
development and the test suite only.
"""

from __future__ import annotations

import os
from pathlib import Path

import dj_database_url
from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv(
    "DJANGO_SECRET_KEY", "django-insecure-local-development-only"
)
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv(
        "DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver"
    ).split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "django_prometheus",
    "imagery",
]

MIDDLEWARE = [
    "django_prometheus.middleware.PrometheusBeforeMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django_prometheus.middleware.PrometheusAfterMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "config.api.exceptions.custom_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "fieldwatch API",
    "DESCRIPTION": "Cached satellite vegetation-index extraction.",
    "VERSION": "1.0.0",
}

LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO")
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "imagery": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv(
    "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
)
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_BEAT_SCHEDULE = {
    "imagery-purge-stale-cache": {
        "task": "imagery.tasks.purge_stale_cache_entries",
        "schedule": crontab(hour=3, minute=30),
    },
}

# Satellite imagery
IMAGERY_ENGINE = os.getenv("IMAGERY_ENGINE", "earthengine")
IMAGERY_DEFAULT_INDEX = os.getenv("IMAGERY_DEFAULT_INDEX", "NDVI")
IMAGERY_DEFAULT_MAX_CLOUD = int(os.getenv("IMAGERY_DEFAULT_MAX_CLOUD", "20"))
IMAGERY_DEFAULT_LOOKBACK_DAYS = int(
    os.getenv("IMAGERY_DEFAULT_LOOKBACK_DAYS", "60")
)
IMAGERY_MAX_DATERANGE_DAYS = int(
    os.getenv("IMAGERY_MAX_DATERANGE_DAYS", "370")
)
IMAGERY_MAX_AREA_KM2 = float(os.getenv("IMAGERY_MAX_AREA_KM2", "5000"))
IMAGERY_STATS_SCALE_METERS = int(
    os.getenv("IMAGERY_STATS_SCALE_METERS", "100")
)
IMAGERY_REQUEST_TIMEOUT_SECONDS = float(
    os.getenv("IMAGERY_REQUEST_TIMEOUT_SECONDS", "60")
)
IMAGERY_CACHE_COLLECTION = os.getenv(
    "IMAGERY_CACHE_COLLECTION", "satellite_cache"
)
IMAGERY_CACHE_TTL_DAYS = int(os.getenv("IMAGERY_CACHE_TTL_DAYS", "30"))
IMAGERY_CACHE_COORD_PRECISION = int(
    os.getenv("IMAGERY_CACHE_COORD_PRECISION", "5")
)
IMAGERY_DOCUMENT_STORE_PATH = os.getenv(
    "IMAGERY_DOCUMENT_STORE_PATH",
    "imagery.cache.firestore.FirestoreDocumentStore",
)

EARTH_ENGINE_CLIENT_EMAIL = os.getenv("EARTH_ENGINE_CLIENT_EMAIL")
EARTH_ENGINE_PRIVATE_KEY = os.getenv("EARTH_ENGINE_PRIVATE_KEY")
EARTH_ENGINE_PROJECT = os.getenv("EARTH_ENGINE_PROJECT")

FIRESTORE_PROJECT_ID = os.getenv("FIRESTORE_PROJECT_ID")
FIRESTORE_DATABASE = os.getenv("FIRESTORE_DATABASE", "(default)")
