"""Firestore-backed reads of meal comments."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from google.cloud import firestore

from family_meal.adapters.firestore_collections import (
    COMMENTS_COLLECTION,
    MEALS_COLLECTION,
    stored_document,
)
from family_meal.domain.meals import StoredDocument
from family_meal.services.comments import CommentRepository

logger = logging.getLogger(__name__)


@dataclass
class FirestoreCommentRepository(CommentRepository):
    """Firestore implementation for comment listing."""

    client: firestore.Client

    def get_meal(self, meal_id: str) -> StoredDocument | None:
        snapshot = self.client.collection(MEALS_COLLECTION).document(meal_id).get()
        if not snapshot.exists:
            return None
        return stored_document(snapshot)

    def list_comments(self, meal_id: str) -> list[StoredDocument]:
        """Return every comment document of a meal."""
        return [
            stored_document(snapshot)
            for snapshot in self._comments(meal_id).stream()
        ]

    def watch_comments(
        self,
        meal_id: str,
        on_snapshot: Callable[[list[StoredDocument]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        """Listen to the comments sub-collection until cancelled."""

        def handle(snapshots, _changes, _read_time):  # type: ignore[no-untyped-def]
            try:
                on_snapshot([stored_document(snapshot) for snapshot in snapshots])
            except Exception as exc:
                logger.exception(
                    "Comment snapshot handling failed", extra={"meal_id": meal_id}
                )
                on_error(exc)

        watch = self._comments(meal_id).on_snapshot(handle)
        return watch.unsubscribe

    def _comments(self, meal_id: str) -> firestore.CollectionReference:
        return (
            self.client.collection(MEALS_COLLECTION)
            .document(meal_id)
            .collection(COMMENTS_COLLECTION)
        )
