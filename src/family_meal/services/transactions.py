"""Transaction interface used by the consistency-sensitive services."""

from collections.abc import Callable
from typing import Protocol, TypeVar

T = TypeVar("T")


class Transaction(Protocol):
    """Reads and buffered writes executed atomically.

    All reads must happen before the first write, and the work function may be
    retried by the store when a concurrent commit invalidates what it read.
    """

    def get_meal(self, meal_id: str) -> dict[str, object] | None:
        """Return the meal document, if present."""

    def get_comment(self, meal_id: str, comment_id: str) -> dict[str, object] | None:
        """Return the comment document, if present."""

    def get_delete_job(self, meal_id: str) -> dict[str, object] | None:
        """Return the delete lease record, if present."""

    def get_profile(self, uid: str) -> dict[str, object] | None:
        """Return the user profile document, if present."""

    def new_comment_id(self, meal_id: str) -> str:
        """Reserve a fresh comment document id."""

    def set_comment(
        self, meal_id: str, comment_id: str, data: dict[str, object]
    ) -> None:
        """Create or overwrite a comment document."""

    def update_comment(
        self, meal_id: str, comment_id: str, changes: dict[str, object]
    ) -> None:
        """Update fields of an existing comment document."""

    def delete_comment(self, meal_id: str, comment_id: str) -> None:
        """Delete a comment document."""

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        """Update fields of an existing meal document."""

    def merge_delete_job(self, meal_id: str, fields: dict[str, object]) -> None:
        """Merge fields into the delete lease record."""

    def merge_profile(self, uid: str, data: dict[str, object]) -> None:
        """Merge fields into the user profile document."""


class TransactionRunner(Protocol):
    """Runs work inside a store transaction."""

    def run(self, work: Callable[[Transaction], T]) -> T:
        """Execute work atomically and return its result."""
