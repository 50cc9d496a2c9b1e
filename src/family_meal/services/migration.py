"""One-off data repairs for documents written by older clients."""

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from family_meal.domain.meals import StoredDocument, to_datetime
from family_meal.domain.models import ROLES, Role, is_role
from family_meal.services.keywords import derive_keywords

logger = logging.getLogger(__name__)


class MigrationRepository(Protocol):
    """Bulk access to meals and their comment sub-collections."""

    def list_all_meals(self) -> list[StoredDocument]:
        """Return every meal document."""

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        """Update fields of a meal document."""

    def list_comment_ids(self, meal_id: str) -> set[str]:
        """Return the ids of a meal's comment documents."""

    def move_embedded_comments(
        self,
        meal_id: str,
        comments: dict[str, dict[str, object]],
        comment_count: int,
    ) -> None:
        """Write comment documents, set the counter and drop the embedded array."""


@dataclass
class MealMigrationReport:
    """Counts produced by a meal schema migration."""

    dry_run: bool
    total_meals: int = 0
    touched_meals: int = 0
    field_updates: dict[str, int] = field(
        default_factory=lambda: dict.fromkeys(
            ("userIds", "userId", "keywords", "commentCount", "timestamp"), 0
        )
    )
    missing_owner: int = 0
    invalid_timestamp: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "dryRun": self.dry_run,
            "totalMeals": self.total_meals,
            "touchedMeals": self.touched_meals,
            "fieldUpdates": dict(self.field_updates),
            "unresolved": {
                "ownerUid": self.missing_owner,
                "invalidTimestamp": self.invalid_timestamp,
            },
        }


@dataclass
class CommentMigrationReport:
    """Counts produced by moving embedded comments into the sub-collection."""

    dry_run: bool
    touched_meals: int = 0
    scanned: int = 0
    migrated: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "dryRun": self.dry_run,
            "touchedMeals": self.touched_meals,
            "legacyCommentsScanned": self.scanned,
            "commentsMigrated": self.migrated,
        }


@dataclass
class MigrationService:
    """Repairs legacy meal documents in place."""

    repository: MigrationRepository

    def migrate_meals(self, dry_run: bool = False) -> MealMigrationReport:
        """Normalize participants, keywords, counters and timestamps."""
        meals = self.repository.list_all_meals()
        report = MealMigrationReport(dry_run=dry_run, total_meals=len(meals))
        for document in meals:
            patch = self._meal_patch(document, report)
            if not patch:
                continue
            report.touched_meals += 1
            if not dry_run:
                self.repository.update_meal(document.id, patch)
        logger.info(
            "Meal migration finished",
            extra={"dry_run": dry_run, "touched": report.touched_meals},
        )
        return report

    def migrate_comments(self, dry_run: bool = False) -> CommentMigrationReport:
        """Move embedded ``comments`` arrays into the comments sub-collection."""
        report = CommentMigrationReport(dry_run=dry_run)
        for document in self.repository.list_all_meals():
            data = document.data
            legacy = data.get("comments")
            if not isinstance(legacy, list) or not legacy:
                if not _is_count(data.get("commentCount")):
                    report.touched_meals += 1
                    if not dry_run:
                        self.repository.update_meal(document.id, {"commentCount": 0})
                continue

            existing_ids = self.repository.list_comment_ids(document.id)
            pending: dict[str, dict[str, object]] = {}
            for index, raw in enumerate(legacy):
                report.scanned += 1
                normalized = _legacy_comment(raw, index)
                if normalized is None:
                    continue
                comment_id, comment = normalized
                if comment_id in existing_ids or comment_id in pending:
                    continue
                pending[comment_id] = comment
            report.migrated += len(pending)
            report.touched_meals += 1
            if not dry_run:
                self.repository.move_embedded_comments(
                    document.id, pending, len(existing_ids) + len(pending)
                )
        logger.info(
            "Comment migration finished",
            extra={"dry_run": dry_run, "migrated": report.migrated},
        )
        return report

    def _meal_patch(
        self, document: StoredDocument, report: MealMigrationReport
    ) -> dict[str, object]:
        data = document.data
        patch: dict[str, object] = {}

        resolved = _resolve_participants(data)
        if data.get("userIds") != resolved:
            patch["userIds"] = resolved
            report.field_updates["userIds"] += 1
        if data.get("userId") != resolved[0]:
            patch["userId"] = resolved[0]
            report.field_updates["userId"] += 1

        description = data.get("description")
        meal_type = data.get("type")
        keywords = derive_keywords(
            description if isinstance(description, str) else "",
            meal_type if isinstance(meal_type, str) else "",
            resolved,
        )
        stored_keywords = data.get("keywords")
        current_keywords = (
            [value for value in stored_keywords if isinstance(value, str)]
            if isinstance(stored_keywords, list)
            else []
        )
        if current_keywords != keywords:
            patch["keywords"] = keywords
            report.field_updates["keywords"] += 1

        if not _is_count(data.get("commentCount")):
            embedded = data.get("comments")
            if isinstance(embedded, list):
                patch["commentCount"] = len(embedded)
            else:
                comment_ids = self.repository.list_comment_ids(document.id)
                patch["commentCount"] = len(comment_ids)
            report.field_updates["commentCount"] += 1

        timestamp = data.get("timestamp")
        if _is_finite_number(timestamp):
            patch["timestamp"] = to_datetime(timestamp, datetime.now(tz=UTC))
            report.field_updates["timestamp"] += 1
        elif not isinstance(timestamp, datetime):
            report.invalid_timestamp += 1

        owner = data.get("ownerUid")
        if not isinstance(owner, str) or not owner.strip():
            report.missing_owner += 1
        return patch


def _sanitize_roles(raw: object) -> list[Role]:
    if not isinstance(raw, list):
        return []
    roles: list[Role] = []
    for value in raw:
        if is_role(value) and value not in roles:
            roles.append(value)
    return roles


def _resolve_participants(data: dict[str, object]) -> list[Role]:
    roles = _sanitize_roles(data.get("userIds"))
    if roles:
        return roles
    legacy = data.get("userId")
    if is_role(legacy):
        return [legacy]  # type: ignore[list-item]
    return list(ROLES)


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_finite_number(value: object) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _legacy_comment(
    raw: object, index: int
) -> tuple[str, dict[str, object]] | None:
    if not isinstance(raw, dict):
        return None
    author = raw.get("author")
    text = raw.get("text")
    if not isinstance(author, str) or not isinstance(text, str) or not text.strip():
        return None
    now = datetime.now(tz=UTC)
    created_at = to_datetime(raw.get("createdAt", raw.get("timestamp")), now)
    updated_at = to_datetime(
        raw.get("updatedAt", raw.get("timestamp", raw.get("createdAt"))), created_at
    )
    raw_id = raw.get("id")
    comment_id = raw_id if isinstance(raw_id, str) and raw_id else f"legacy-{index}"
    author_uid = raw.get("authorUid")
    return comment_id, {
        "author": author,
        "authorUid": author_uid if isinstance(author_uid, str) else "",
        "text": text.strip(),
        "createdAt": created_at,
        "updatedAt": updated_at,
    }
