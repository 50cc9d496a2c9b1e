"""Firestore-backed user profile repository."""

from dataclasses import dataclass

from google.cloud import firestore

from family_meal.adapters.firestore_collections import USERS_COLLECTION
from family_meal.services.profiles import ProfileRepository


@dataclass
class FirestoreProfileRepository(ProfileRepository):
    """Firestore implementation for ``users/{uid}`` documents."""

    client: firestore.Client

    def get_profile(self, uid: str) -> dict[str, object] | None:
        snapshot = self.client.collection(USERS_COLLECTION).document(uid).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def create_profile(self, uid: str, data: dict[str, object]) -> None:
        """Create the profile; fails if one already exists."""
        self.client.collection(USERS_COLLECTION).document(uid).create(data)

    def update_profile(self, uid: str, changes: dict[str, object]) -> None:
        self.client.collection(USERS_COLLECTION).document(uid).update(changes)
