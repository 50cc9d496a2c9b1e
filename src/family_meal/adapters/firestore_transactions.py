"""Firestore transactions behind the service-level transaction interface."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from google.cloud import firestore

from family_meal.adapters.firestore_collections import (
    COMMENTS_COLLECTION,
    DELETE_JOBS_COLLECTION,
    MEALS_COLLECTION,
    USERS_COLLECTION,
)
from family_meal.services.transactions import Transaction, TransactionRunner

T = TypeVar("T")


@dataclass
class FirestoreTransaction(Transaction):
    """Document reads and buffered writes bound to one Firestore transaction."""

    client: firestore.Client
    transaction: firestore.Transaction

    def get_meal(self, meal_id: str) -> dict[str, object] | None:
        return self._read(self._meal_ref(meal_id))

    def get_comment(self, meal_id: str, comment_id: str) -> dict[str, object] | None:
        return self._read(self._comment_ref(meal_id, comment_id))

    def get_delete_job(self, meal_id: str) -> dict[str, object] | None:
        ref = self.client.collection(DELETE_JOBS_COLLECTION).document(meal_id)
        return self._read(ref)

    def get_profile(self, uid: str) -> dict[str, object] | None:
        return self._read(self.client.collection(USERS_COLLECTION).document(uid))

    def new_comment_id(self, meal_id: str) -> str:
        return self._meal_ref(meal_id).collection(COMMENTS_COLLECTION).document().id

    def set_comment(
        self, meal_id: str, comment_id: str, data: dict[str, object]
    ) -> None:
        self.transaction.set(self._comment_ref(meal_id, comment_id), data)

    def update_comment(
        self, meal_id: str, comment_id: str, changes: dict[str, object]
    ) -> None:
        self.transaction.update(self._comment_ref(meal_id, comment_id), changes)

    def delete_comment(self, meal_id: str, comment_id: str) -> None:
        self.transaction.delete(self._comment_ref(meal_id, comment_id))

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        self.transaction.update(self._meal_ref(meal_id), changes)

    def merge_delete_job(self, meal_id: str, fields: dict[str, object]) -> None:
        ref = self.client.collection(DELETE_JOBS_COLLECTION).document(meal_id)
        self.transaction.set(ref, fields, merge=True)

    def merge_profile(self, uid: str, data: dict[str, object]) -> None:
        ref = self.client.collection(USERS_COLLECTION).document(uid)
        self.transaction.set(ref, data, merge=True)

    def _meal_ref(self, meal_id: str) -> firestore.DocumentReference:
        return self.client.collection(MEALS_COLLECTION).document(meal_id)

    def _comment_ref(
        self, meal_id: str, comment_id: str
    ) -> firestore.DocumentReference:
        comments = self._meal_ref(meal_id).collection(COMMENTS_COLLECTION)
        return comments.document(comment_id)

    def _read(self, ref: firestore.DocumentReference) -> dict[str, object] | None:
        snapshot = ref.get(transaction=self.transaction)
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}


@dataclass
class FirestoreTransactionRunner(TransactionRunner):
    """Runs work with Firestore's optimistic transaction and retry loop."""

    client: firestore.Client

    def run(self, work: Callable[[Transaction], T]) -> T:
        @firestore.transactional
        def execute(transaction: firestore.Transaction) -> T:
            return work(FirestoreTransaction(self.client, transaction))

        return execute(self.client.transaction())
