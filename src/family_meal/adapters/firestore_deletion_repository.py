"""Firestore writes used by meal deletion."""

from dataclasses import dataclass

from google.cloud import firestore

from family_meal.adapters.firestore_collections import (
    COMMENTS_COLLECTION,
    DELETE_JOBS_COLLECTION,
    MEALS_COLLECTION,
)
from family_meal.services.deletion import DeletionRepository


@dataclass
class FirestoreDeletionRepository(DeletionRepository):
    """Firestore implementation for purging meals and tracking delete jobs."""

    client: firestore.Client

    def delete_comment_batch(
        self, meal_id: str, limit: int, start_after: str | None
    ) -> list[str]:
        """Delete up to ``limit`` comments after the cursor in id order."""
        comments = (
            self.client.collection(MEALS_COLLECTION)
            .document(meal_id)
            .collection(COMMENTS_COLLECTION)
        )
        query = comments.order_by("__name__").limit(limit)
        if start_after is not None:
            query = query.start_after({"__name__": start_after})
        snapshots = list(query.stream())
        if not snapshots:
            return []
        batch = self.client.batch()
        for snapshot in snapshots:
            batch.delete(snapshot.reference)
        batch.commit()
        return [snapshot.id for snapshot in snapshots]

    def delete_meal(self, meal_id: str) -> None:
        self.client.collection(MEALS_COLLECTION).document(meal_id).delete()

    def merge_delete_job(self, meal_id: str, fields: dict[str, object]) -> None:
        self.client.collection(DELETE_JOBS_COLLECTION).document(meal_id).set(
            fields, merge=True
        )
