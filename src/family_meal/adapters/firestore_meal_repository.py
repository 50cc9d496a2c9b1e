"""Firestore-backed meal repository."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from family_meal.adapters.firestore_collections import (
    MEALS_COLLECTION,
    stored_document,
)
from family_meal.domain.meals import StoredDocument
from family_meal.services.meals import MealRepository

logger = logging.getLogger(__name__)


@dataclass
class FirestoreMealRepository(MealRepository):
    """Firestore implementation for meal persistence and queries."""

    client: firestore.Client

    def new_meal_id(self) -> str:
        return self._meals().document().id

    def create_meal(self, meal_id: str, data: dict[str, object]) -> None:
        """Create the meal document; fails if the id is already taken."""
        self._meals().document(meal_id).create(data)

    def get_meal(self, meal_id: str) -> StoredDocument | None:
        snapshot = self._meals().document(meal_id).get()
        if not snapshot.exists:
            return None
        return stored_document(snapshot)

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        self._meals().document(meal_id).update(changes)

    def list_meals_between(
        self, start: datetime, end: datetime
    ) -> list[StoredDocument]:
        """Return meals in the timestamp range, newest first."""
        query = self._range_query(start, end)
        return [stored_document(snapshot) for snapshot in query.stream()]

    def watch_meals_between(
        self,
        start: datetime,
        end: datetime,
        on_snapshot: Callable[[list[StoredDocument]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        """Listen to the range query until the returned callback is invoked."""

        def handle(snapshots, _changes, _read_time):  # type: ignore[no-untyped-def]
            try:
                on_snapshot([stored_document(snapshot) for snapshot in snapshots])
            except Exception as exc:
                logger.exception("Meal snapshot handling failed")
                on_error(exc)

        watch = self._range_query(start, end).on_snapshot(handle)
        return watch.unsubscribe

    def search_by_keywords(
        self, tokens: list[str], limit: int
    ) -> list[StoredDocument]:
        """Return meals whose keywords intersect the tokens."""
        if not tokens:
            return []
        query = (
            self._meals()
            .where(filter=FieldFilter("keywords", "array_contains_any", tokens))
            .limit(limit)
        )
        return [stored_document(snapshot) for snapshot in query.stream()]

    def list_recent_meals(self, limit: int) -> list[StoredDocument]:
        query = (
            self._meals()
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return [stored_document(snapshot) for snapshot in query.stream()]

    def _meals(self) -> firestore.CollectionReference:
        return self.client.collection(MEALS_COLLECTION)

    def _range_query(self, start: datetime, end: datetime) -> firestore.Query:
        return (
            self._meals()
            .where(filter=FieldFilter("timestamp", ">=", start))
            .where(filter=FieldFilter("timestamp", "<=", end))
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
        )
