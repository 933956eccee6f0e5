from __future__ import annotations

from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

from .base import DocumentStore
from .store import ResultCache


@lru_cache(maxsize=1)
def get_document_store() -> DocumentStore:
    """Return the configured document store, built once per process."""

    store_path = getattr(
        settings,
        "IMAGERY_DOCUMENT_STORE_PATH",
        "imagery.cache.firestore.FirestoreDocumentStore",
    )
    store_cls: type[DocumentStore] = import_string(store_path)
    return store_cls()


def get_result_cache() -> ResultCache:
    return ResultCache(get_document_store())
