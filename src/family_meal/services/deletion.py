"""Meal deletion guarded by a per-meal lease record."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from family_meal.domain.deletion import DeleteOutcome, DeletePlan
from family_meal.domain.errors import Forbidden
from family_meal.domain.meals import (
    coerce_count,
    has_owner,
    is_legacy_participant,
    to_datetime,
)
from family_meal.domain.models import Actor
from family_meal.services.transactions import Transaction, TransactionRunner

DELETE_JOB_TTL = timedelta(minutes=5)
DELETE_BATCH_LIMIT = 450

_EPOCH = datetime.fromtimestamp(0, tz=UTC)

logger = logging.getLogger(__name__)


class DeletionRepository(Protocol):
    """Non-transactional writes used while purging a meal."""

    def delete_comment_batch(
        self, meal_id: str, limit: int, start_after: str | None
    ) -> list[str]:
        """Delete one page of comments ordered by id; return the deleted ids."""

    def delete_meal(self, meal_id: str) -> None:
        """Delete the meal document."""

    def merge_delete_job(self, meal_id: str, fields: dict[str, object]) -> None:
        """Merge fields into the delete lease record."""


@dataclass
class MealDeletionService:
    """Deletes a meal and its comments at most once at a time.

    The lease moves from absent to ``processing`` inside a transaction that also
    re-checks ownership. A second request while the lease is fresh is answered
    with ``already_processing`` instead of running the purge again; a lease
    older than the TTL is treated as abandoned and taken over.
    """

    repository: DeletionRepository
    transactions: TransactionRunner
    lease_ttl: timedelta = DELETE_JOB_TTL
    batch_limit: int = DELETE_BATCH_LIMIT

    def delete(self, actor: Actor, meal_id: str) -> DeleteOutcome:
        plan = self.transactions.run(lambda tx: self._plan(tx, actor, meal_id))
        if plan.action == "already_deleted":
            return DeleteOutcome(deleted=False, status="already_deleted")
        if plan.action == "wait_for_inflight":
            logger.info("Meal deletion already in flight", extra={"meal_id": meal_id})
            return DeleteOutcome(deleted=False, status="already_processing")

        try:
            purged = self._purge_comments(meal_id)
            self.repository.delete_meal(meal_id)
            now = datetime.now(tz=UTC)
            self.repository.merge_delete_job(
                meal_id,
                {
                    "status": "completed",
                    "deletedAt": now,
                    "completedBy": actor.uid,
                    "updatedAt": now,
                },
            )
        except Exception as exc:
            logger.exception("Meal deletion failed", extra={"meal_id": meal_id})
            self._mark_failed(meal_id, exc)
            raise
        logger.info(
            "Deleted meal", extra={"meal_id": meal_id, "comments_deleted": purged}
        )
        return DeleteOutcome(deleted=True, status="completed")

    def _plan(self, tx: Transaction, actor: Actor, meal_id: str) -> DeletePlan:
        meal = tx.get_meal(meal_id)
        if meal is None:
            return DeletePlan(action="already_deleted")
        is_owner = has_owner(meal) and meal.get("ownerUid") == actor.uid
        if not (is_owner or is_legacy_participant(meal, actor.role)):
            raise Forbidden()
        job = tx.get_delete_job(meal_id) or {}
        now = datetime.now(tz=UTC)
        if job.get("status") == "processing":
            started_at = to_datetime(job.get("startedAt"), _EPOCH)
            if now - started_at < self.lease_ttl:
                return DeletePlan(action="wait_for_inflight")
        tx.merge_delete_job(
            meal_id,
            {
                "status": "processing",
                "startedAt": now,
                "updatedAt": now,
                "requestedBy": actor.uid,
                "attempts": coerce_count(job.get("attempts")) + 1,
            },
        )
        return DeletePlan(action="delete_now")

    def _purge_comments(self, meal_id: str) -> int:
        deleted = 0
        cursor: str | None = None
        while True:
            page = self.repository.delete_comment_batch(
                meal_id, self.batch_limit, cursor
            )
            deleted += len(page)
            if len(page) < self.batch_limit:
                return deleted
            cursor = page[-1]

    def _mark_failed(self, meal_id: str, exc: Exception) -> None:
        try:
            self.repository.merge_delete_job(
                meal_id,
                {
                    "status": "failed",
                    "lastError": f"{type(exc).__name__}: {exc}",
                    "updatedAt": datetime.now(tz=UTC),
                },
            )
        except Exception:
            logger.exception(
                "Failed to record meal deletion error", extra={"meal_id": meal_id}
            )
