from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from django.conf import settings
from google.cloud import firestore

from .base import DocumentStore


class FirestoreDocumentStore(DocumentStore):
    """Document store on a Cloud Firestore database."""

    def __init__(
        self,
        *,
        client: firestore.Client | None = None,
        project: str | None = None,
        database: str | None = None,
    ) -> None:
        self.client = client or firestore.Client(
            project=project or getattr(settings, "FIRESTORE_PROJECT_ID", None),
            database=database
            or getattr(settings, "FIRESTORE_DATABASE", "(default)"),
        )

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        snapshot = self.client.collection(collection).document(key).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def set(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        self.client.collection(collection).document(key).set(data, merge=merge)

    def stream(self, collection: str) -> Iterator[tuple[str, dict[str, Any]]]:
        for snapshot in self.client.collection(collection).stream():
            yield snapshot.id, snapshot.to_dict() or {}

    def count(self, collection: str) -> int:
        # Server-side aggregation; documents are not transferred.
        results = self.client.collection(collection).count(alias="total").get()
        return int(results[0][0].value) if results else 0

    def bounds(self, collection: str, field: str) -> tuple[Any, Any]:
        return (
            self._edge(collection, field, firestore.Query.ASCENDING),
            self._edge(collection, field, firestore.Query.DESCENDING),
        )

    def delete(self, collection: str, key: str) -> None:
        self.client.collection(collection).document(key).delete()

    def _edge(self, collection: str, field: str, direction: str) -> Any:
        query = (
            self.client.collection(collection)
            .order_by(field, direction=direction)
            .limit(1)
        )
        for snapshot in query.stream():
            return (snapshot.to_dict() or {}).get(field)
        return None

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"FirestoreDocumentStore(project={self.client.project})"
