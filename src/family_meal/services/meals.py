"""Meal queries, creation and owner edits."""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from family_meal.domain.errors import InvalidArgument, NotFound
from family_meal.domain.meals import (
    MAX_DESCRIPTION_LENGTH,
    DailyMealCount,
    Meal,
    StoredDocument,
    is_meal_type,
    meal_from_document,
    meal_participants,
    to_datetime,
)
from family_meal.domain.models import Actor, Role, is_role
from family_meal.services.keywords import (
    derive_keywords,
    matches_keyword,
    normalize_query,
    tokenize_query,
)
from family_meal.services.policy import AccessRequest, PolicyEngine
from family_meal.services.subscriptions import Subscription

SEARCH_INDEX_LIMIT = 200
SEARCH_SCAN_LIMIT = 500
WEEK_DAYS = 7

_WEEKDAY_LABELS = ("월", "화", "수", "목", "금", "토", "일")
_IMAGE_URL_PATTERN = re.compile(r"^https?://")
_SERVER_DERIVED_FIELDS = ("comments", "commentCount", "keywords")
_UPDATABLE_FIELDS = {
    "description",
    "type",
    "userIds",
    "imageUrl",
    "timestamp",
    "ownerUid",
}
_KEYWORD_SOURCE_FIELDS = {"description", "type", "userIds"}

logger = logging.getLogger(__name__)


class MealRepository(Protocol):
    """Persistence interface for meal documents."""

    def new_meal_id(self) -> str:
        """Allocate an id for a meal that is about to be created."""

    def create_meal(self, meal_id: str, data: dict[str, object]) -> None:
        """Persist a new meal document."""

    def get_meal(self, meal_id: str) -> StoredDocument | None:
        """Return a meal document by id, if present."""

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        """Update fields of a meal document."""

    def list_meals_between(
        self, start: datetime, end: datetime
    ) -> list[StoredDocument]:
        """Return meals whose timestamp is within [start, end], newest first."""

    def watch_meals_between(
        self,
        start: datetime,
        end: datetime,
        on_snapshot: Callable[[list[StoredDocument]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        """Stream snapshots of the range query; returns a cancel callback."""

    def search_by_keywords(
        self, tokens: list[str], limit: int
    ) -> list[StoredDocument]:
        """Return meals whose keywords contain any of the tokens."""

    def list_recent_meals(self, limit: int) -> list[StoredDocument]:
        """Return the most recent meals, newest first."""


@dataclass(frozen=True)
class MealDraft:
    """Client-supplied fields for a new meal."""

    user_ids: list[str]
    description: str
    type: str
    image_url: str | None = None
    timestamp: datetime | None = None


@dataclass
class MealService:
    """Application service over the meals collection."""

    repository: MealRepository
    policy: PolicyEngine
    timezone: str = "Asia/Seoul"

    def today(self) -> date:
        """Return the current calendar day in the household timezone."""
        return datetime.now(tz=self._tz).date()

    def list_for_day(self, actor: Actor, day: date) -> list[Meal]:
        """Return the meals of a local calendar day, newest first."""
        start, end = _day_bounds(day, self._tz)
        documents = self.repository.list_meals_between(start, end)
        return _dedupe_and_sort(self._readable(actor, documents))

    def subscribe(
        self,
        actor: Actor,
        day: date,
        on_data: Callable[[list[Meal]], None],
        on_error: Callable[[Exception], None],
    ) -> Subscription:
        """Deliver the day's meals on every change until unsubscribed."""
        start, end = _day_bounds(day, self._tz)
        subscription = Subscription()

        def handle_snapshot(documents: list[StoredDocument]) -> None:
            if not subscription.active:
                return
            try:
                on_data(_dedupe_and_sort(self._readable(actor, documents)))
            except Exception as exc:
                logger.exception("Meal subscription delivery failed")
                on_error(exc)

        def handle_error(exc: Exception) -> None:
            logger.error("Meal subscription failed: %s", exc)
            if subscription.active:
                on_error(exc)

        try:
            cancel = self.repository.watch_meals_between(
                start, end, handle_snapshot, handle_error
            )
        except Exception as exc:
            handle_error(exc)
            subscription.unsubscribe()
            return subscription
        subscription.attach(cancel)
        return subscription

    def get(self, actor: Actor, meal_id: str) -> Meal:
        """Return a single meal the actor may read."""
        document = self.repository.get_meal(meal_id)
        if document is None:
            raise NotFound("Meal not found")
        self.policy.enforce(
            AccessRequest(
                operation="read",
                path=f"meals/{meal_id}",
                actor=actor,
                existing=document.data,
            )
        )
        return meal_from_document(document)

    def create(self, actor: Actor, draft: MealDraft) -> Meal:
        """Validate, index and persist a new meal owned by the actor."""
        if not actor.uid:
            raise InvalidArgument("ownerUid is required")
        participants = _normalize_participants(draft.user_ids)
        description = _normalize_description(draft.description)
        meal_type = _normalize_type(draft.type)
        data: dict[str, object] = {
            "ownerUid": actor.uid,
            "userIds": participants,
            "description": description,
            "type": meal_type,
            "keywords": derive_keywords(description, meal_type, participants),
            "commentCount": 0,
            "timestamp": draft.timestamp or datetime.now(tz=UTC),
        }
        image_url = _normalize_image_url(draft.image_url)
        if image_url is not None:
            data["imageUrl"] = image_url

        meal_id = self.repository.new_meal_id()
        self.policy.enforce(
            AccessRequest(
                operation="create",
                path=f"meals/{meal_id}",
                actor=actor,
                incoming=data,
            )
        )
        self.repository.create_meal(meal_id, data)
        logger.info("Created meal", extra={"meal_id": meal_id, "uid": actor.uid})
        return meal_from_document(StoredDocument(id=meal_id, data=data))

    def update(self, actor: Actor, meal_id: str, changes: dict[str, object]) -> Meal:
        """Apply an owner edit, re-deriving keywords when content changes."""
        updates = _normalize_changes(changes)
        prior = self.repository.get_meal(meal_id)
        if prior is None:
            raise NotFound("Meal not found")
        if _KEYWORD_SOURCE_FIELDS & updates.keys():
            merged_content = {**prior.data, **updates}
            updates["keywords"] = derive_keywords(
                str(merged_content.get("description") or ""),
                str(merged_content.get("type") or ""),
                meal_participants(merged_content),
            )
        merged = {**prior.data, **updates}
        self.policy.enforce(
            AccessRequest(
                operation="update",
                path=f"meals/{meal_id}",
                actor=actor,
                existing=prior.data,
                incoming=merged,
            )
        )
        if updates:
            self.repository.update_meal(meal_id, updates)
        return meal_from_document(StoredDocument(id=meal_id, data=merged))

    def search(self, actor: Actor, keyword: str) -> list[Meal]:
        """Search meals; the substring filter is authoritative over the index."""
        normalized = normalize_query(keyword)
        if not normalized:
            return []
        tokens = tokenize_query(normalized)
        documents = self.repository.search_by_keywords(tokens, SEARCH_INDEX_LIMIT)
        if not documents:
            documents = self.repository.list_recent_meals(SEARCH_SCAN_LIMIT)
        matches = [
            meal
            for meal in self._readable(actor, documents)
            if matches_keyword(meal, normalized)
        ]
        return _dedupe_and_sort(matches)

    def weekly_stats(self, actor: Actor) -> list[DailyMealCount]:
        """Return meal counts for the trailing seven local days, oldest first."""
        tz = self._tz
        first_day = self.today() - timedelta(days=WEEK_DAYS - 1)
        days = [first_day + timedelta(days=offset) for offset in range(WEEK_DAYS)]
        start, _ = _day_bounds(days[0], tz)
        _, end = _day_bounds(days[-1], tz)
        counts = dict.fromkeys(days, 0)
        documents = self.repository.list_meals_between(start, end)
        for meal in _dedupe_and_sort(self._readable(actor, documents)):
            key = meal.timestamp.astimezone(tz).date()
            if key in counts:
                counts[key] += 1
        return [
            DailyMealCount(
                day=day, label=_WEEKDAY_LABELS[day.weekday()], count=counts[day]
            )
            for day in days
        ]

    @property
    def _tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def _readable(
        self, actor: Actor, documents: Iterable[StoredDocument]
    ) -> list[Meal]:
        return [
            meal_from_document(document)
            for document in documents
            if self.policy.can_read_meal(actor, document.data)
        ]


def _day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def _dedupe_and_sort(meals: Iterable[Meal]) -> list[Meal]:
    by_id: dict[str, Meal] = {}
    for meal in meals:
        by_id[meal.id] = meal
    return sorted(by_id.values(), key=lambda meal: meal.timestamp, reverse=True)


def _normalize_description(value: object) -> str:
    if not isinstance(value, str):
        raise InvalidArgument("Description is required")
    trimmed = value.strip()
    if not trimmed:
        raise InvalidArgument("Description is required")
    if len(trimmed) > MAX_DESCRIPTION_LENGTH:
        raise InvalidArgument("Description is too long")
    return trimmed


def _normalize_type(value: object) -> str:
    if not is_meal_type(value):
        raise InvalidArgument("Invalid meal type")
    return str(value)


def _normalize_participants(values: object) -> list[Role]:
    if not isinstance(values, list) or not values:
        raise InvalidArgument("At least one participant is required")
    participants: list[Role] = []
    for value in values:
        if not is_role(value):
            raise InvalidArgument("Invalid participant role")
        if value not in participants:
            participants.append(value)
    return participants


def _normalize_image_url(value: object) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not _IMAGE_URL_PATTERN.match(value.strip()):
        raise InvalidArgument("Image URL must be http(s)")
    return value.strip()


def _normalize_changes(changes: dict[str, object]) -> dict[str, object]:
    updates: dict[str, object] = {}
    for key, value in changes.items():
        if key in _SERVER_DERIVED_FIELDS:
            continue
        if key not in _UPDATABLE_FIELDS:
            raise InvalidArgument(f"Unknown field: {key}")
        if key == "description":
            updates[key] = _normalize_description(value)
        elif key == "type":
            updates[key] = _normalize_type(value)
        elif key == "userIds":
            updates[key] = _normalize_participants(value)
        elif key == "imageUrl":
            updates[key] = _normalize_image_url(value)
        elif key == "timestamp":
            timestamp = to_datetime(value, datetime.min)
            if timestamp is datetime.min:
                raise InvalidArgument("Invalid timestamp")
            updates[key] = timestamp
        else:
            updates[key] = value
    return updates
