"""Firestore collection names and snapshot helpers."""

from google.cloud.firestore_v1.base_document import DocumentSnapshot

from family_meal.domain.meals import StoredDocument

MEALS_COLLECTION = "meals"
COMMENTS_COLLECTION = "comments"
USERS_COLLECTION = "users"
DELETE_JOBS_COLLECTION = "_maintenanceDeleteJobs"


def stored_document(snapshot: DocumentSnapshot) -> StoredDocument:
    """Wrap a snapshot's id and data."""
    return StoredDocument(id=snapshot.id, data=snapshot.to_dict() or {})
