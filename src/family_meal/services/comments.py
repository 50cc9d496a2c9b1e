"""Meal comments kept consistent with the parent's comment counter."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from family_meal.domain.errors import Forbidden, InvalidArgument, NotFound
from family_meal.domain.meals import (
    MAX_COMMENT_LENGTH,
    MealComment,
    StoredDocument,
    coerce_count,
    comment_from_document,
    has_owner,
    is_legacy_participant,
    to_datetime,
)
from family_meal.domain.models import Actor, is_role
from family_meal.services.policy import AccessRequest, PolicyEngine
from family_meal.services.subscriptions import Subscription
from family_meal.services.transactions import Transaction, TransactionRunner

logger = logging.getLogger(__name__)


class CommentRepository(Protocol):
    """Read access to the comments sub-collection."""

    def get_meal(self, meal_id: str) -> StoredDocument | None:
        """Return the parent meal document, if present."""

    def list_comments(self, meal_id: str) -> list[StoredDocument]:
        """Return the comment documents of a meal."""

    def watch_comments(
        self,
        meal_id: str,
        on_snapshot: Callable[[list[StoredDocument]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        """Stream snapshots of a meal's comments; returns a cancel callback."""


@dataclass
class CommentService:
    """Transactional comment mutations.

    Every add and remove writes the comment and the parent's ``commentCount``
    in the same transaction, so concurrent mutations on one meal serialize in
    the store and the counter always equals the number of comment documents.
    """

    repository: CommentRepository
    transactions: TransactionRunner
    policy: PolicyEngine

    def list(self, actor: Actor, meal_id: str) -> list[MealComment]:
        """Return the comments of a meal the actor may read, oldest first."""
        self._ensure_readable(actor, meal_id)
        return _ordered(self.repository.list_comments(meal_id))

    def subscribe(
        self,
        actor: Actor,
        meal_id: str,
        on_data: Callable[[list[MealComment]], None],
        on_error: Callable[[Exception], None],
    ) -> Subscription:
        """Deliver the meal's comments, oldest first, until unsubscribed.

        Read access is checked once, up front. Store and callback failures
        after that go to ``on_error``.
        """
        self._ensure_readable(actor, meal_id)
        subscription = Subscription()

        def handle_snapshot(documents: list[StoredDocument]) -> None:
            if not subscription.active:
                return
            try:
                on_data(_ordered(documents))
            except Exception as exc:
                logger.exception(
                    "Comment subscription delivery failed", extra={"meal_id": meal_id}
                )
                on_error(exc)

        def handle_error(exc: Exception) -> None:
            logger.error("Comment subscription failed: %s", exc)
            if subscription.active:
                on_error(exc)

        try:
            cancel = self.repository.watch_comments(
                meal_id, handle_snapshot, handle_error
            )
        except Exception as exc:
            handle_error(exc)
            subscription.unsubscribe()
            return subscription
        subscription.attach(cancel)
        return subscription

    def add(self, actor: Actor, meal_id: str, text: str) -> MealComment:
        """Post a comment and increment the meal's comment counter."""
        trimmed = _normalize_text(text)
        role = actor.role
        if not is_role(role):
            raise Forbidden("Valid user role is required")

        def work(tx: Transaction) -> MealComment:
            meal = tx.get_meal(meal_id)
            if meal is None:
                raise NotFound("Meal not found")
            if not self.policy.can_read_meal(actor, meal):
                raise Forbidden()
            base_count = coerce_count(meal.get("commentCount"))
            now = datetime.now(tz=UTC)
            comment_id = tx.new_comment_id(meal_id)
            tx.set_comment(
                meal_id,
                comment_id,
                {
                    "author": role,
                    "authorUid": actor.uid,
                    "text": trimmed,
                    "createdAt": now,
                    "updatedAt": now,
                },
            )
            tx.update_meal(meal_id, {"commentCount": base_count + 1})
            return MealComment(
                id=comment_id,
                author=str(role),
                author_uid=actor.uid,
                text=trimmed,
                created_at=now,
                updated_at=now,
            )

        comment = self.transactions.run(work)
        logger.info(
            "Added comment", extra={"meal_id": meal_id, "comment_id": comment.id}
        )
        return comment

    def update(
        self, actor: Actor, meal_id: str, comment_id: str, text: str
    ) -> MealComment:
        """Edit the text of the actor's own comment."""
        trimmed = _normalize_text(text)

        def work(tx: Transaction) -> MealComment:
            raw = tx.get_comment(meal_id, comment_id)
            if raw is None:
                raise NotFound("Comment not found")
            _ensure_author(raw, actor)
            now = datetime.now(tz=UTC)
            tx.update_comment(
                meal_id, comment_id, {"text": trimmed, "updatedAt": now}
            )
            return MealComment(
                id=comment_id,
                author=str(raw.get("author") or ""),
                author_uid=actor.uid,
                text=trimmed,
                created_at=to_datetime(raw.get("createdAt"), now),
                updated_at=now,
            )

        return self.transactions.run(work)

    def remove(self, actor: Actor, meal_id: str, comment_id: str) -> None:
        """Delete a comment and decrement the counter, floored at zero."""

        def work(tx: Transaction) -> None:
            meal = tx.get_meal(meal_id)
            comment = tx.get_comment(meal_id, comment_id)
            if meal is None:
                raise NotFound("Meal not found")
            if comment is None:
                raise NotFound("Comment not found")
            is_owner = has_owner(meal) and meal.get("ownerUid") == actor.uid
            is_author = (
                isinstance(comment.get("authorUid"), str)
                and comment.get("authorUid") == actor.uid
            )
            if not (is_author or is_owner or is_legacy_participant(meal, actor.role)):
                raise Forbidden()
            base_count = coerce_count(meal.get("commentCount"))
            tx.delete_comment(meal_id, comment_id)
            tx.update_meal(meal_id, {"commentCount": max(0, base_count - 1)})

        self.transactions.run(work)
        logger.info(
            "Removed comment", extra={"meal_id": meal_id, "comment_id": comment_id}
        )

    def _ensure_readable(self, actor: Actor, meal_id: str) -> None:
        meal = self.repository.get_meal(meal_id)
        if meal is None:
            raise NotFound("Meal not found")
        self.policy.enforce(
            AccessRequest(
                operation="read",
                path=f"meals/{meal_id}/comments/*",
                actor=actor,
                parent=meal.data,
            )
        )


def _ordered(documents: list[StoredDocument]) -> list[MealComment]:
    comments = [
        comment
        for comment in map(comment_from_document, documents)
        if comment is not None
    ]
    return sorted(comments, key=lambda comment: comment.created_at)


def _normalize_text(text: object) -> str:
    if not isinstance(text, str):
        raise InvalidArgument("Invalid payload")
    trimmed = text.strip()
    if not trimmed or len(trimmed) > MAX_COMMENT_LENGTH:
        raise InvalidArgument("Invalid payload")
    return trimmed


def _ensure_author(comment: dict[str, object], actor: Actor) -> None:
    author_uid = comment.get("authorUid")
    if not isinstance(author_uid, str) or author_uid != actor.uid:
        raise Forbidden()
    author = comment.get("author")
    if author and actor.role is not None and author != actor.role:
        raise Forbidden()
