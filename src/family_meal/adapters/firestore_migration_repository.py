"""Firestore bulk access for legacy data repairs."""

from dataclasses import dataclass

from google.cloud import firestore

from family_meal.adapters.firestore_collections import (
    COMMENTS_COLLECTION,
    MEALS_COLLECTION,
    stored_document,
)
from family_meal.domain.meals import StoredDocument
from family_meal.services.migration import MigrationRepository

MAX_BATCH_WRITES = 450


@dataclass
class FirestoreMigrationRepository(MigrationRepository):
    """Firestore implementation for the migration service."""

    client: firestore.Client

    def list_all_meals(self) -> list[StoredDocument]:
        meals = self.client.collection(MEALS_COLLECTION)
        return [stored_document(snapshot) for snapshot in meals.stream()]

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        self.client.collection(MEALS_COLLECTION).document(meal_id).update(changes)

    def list_comment_ids(self, meal_id: str) -> set[str]:
        comments = (
            self.client.collection(MEALS_COLLECTION)
            .document(meal_id)
            .collection(COMMENTS_COLLECTION)
        )
        return {ref.id for ref in comments.list_documents()}

    def move_embedded_comments(
        self,
        meal_id: str,
        comments: dict[str, dict[str, object]],
        comment_count: int,
    ) -> None:
        """Write comments in batches; the last batch also rewrites the meal."""
        meal_ref = self.client.collection(MEALS_COLLECTION).document(meal_id)
        comments_ref = meal_ref.collection(COMMENTS_COLLECTION)
        batch = self.client.batch()
        pending = 0
        for comment_id, data in comments.items():
            batch.set(comments_ref.document(comment_id), data)
            pending += 1
            if pending >= MAX_BATCH_WRITES:
                batch.commit()
                batch = self.client.batch()
                pending = 0
        batch.update(
            meal_ref,
            {"commentCount": comment_count, "comments": firestore.DELETE_FIELD},
        )
        batch.commit()
