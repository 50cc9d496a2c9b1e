"""Domain models for meals and their comments."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Literal

from family_meal.domain.models import Role, is_role

MealType = Literal["아침", "점심", "저녁", "간식"]

MEAL_TYPES: tuple[MealType, ...] = ("아침", "점심", "저녁", "간식")
DEFAULT_MEAL_TYPE: MealType = "점심"

MAX_DESCRIPTION_LENGTH = 300
# 9999-12-31T23:59:59.999Z
MAX_TIMESTAMP_MILLIS = 253_402_300_799_999
MAX_COMMENT_LENGTH = 500
MAX_KEYWORDS = 80


@dataclass(frozen=True)
class StoredDocument:
    """A raw document read from the store."""

    id: str
    data: dict[str, object]


@dataclass(frozen=True)
class Meal:
    """A logged meal."""

    id: str
    owner_uid: str | None
    user_ids: list[Role]
    description: str
    type: str
    timestamp: datetime
    image_url: str | None = None
    keywords: list[str] = field(default_factory=list)
    comment_count: int = 0


@dataclass(frozen=True)
class MealComment:
    """A comment posted on a meal."""

    id: str
    author: str
    author_uid: str
    text: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DailyMealCount:
    """Number of meals logged on a local calendar day."""

    day: date
    label: str
    count: int


def is_meal_type(value: object) -> bool:
    return isinstance(value, str) and value in MEAL_TYPES


def to_datetime(value: object, fallback: datetime) -> datetime:
    """Coerce stored timestamps (datetime or epoch millis) to aware datetimes."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return fallback
    return fallback


def to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def coerce_count(value: object) -> int:
    """Return a stored counter as a non-negative integer, or 0 if malformed."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    if value != value or value in (float("inf"), float("-inf")):
        return 0
    return max(0, int(value))


def meal_participants(data: dict[str, object]) -> list[Role]:
    """Return the valid participant roles, honouring the legacy userId field."""
    raw = data.get("userIds")
    if isinstance(raw, list):
        participants: list[Role] = []
        for value in raw:
            if is_role(value) and value not in participants:
                participants.append(value)
        return participants
    legacy = data.get("userId")
    if is_role(legacy):
        return [legacy]  # type: ignore[list-item]
    return []


def has_owner(data: dict[str, object]) -> bool:
    owner = data.get("ownerUid")
    return isinstance(owner, str) and bool(owner)


def is_legacy_participant(data: dict[str, object], role: str | None) -> bool:
    """Return True when an owner-less meal lists the role as a participant."""
    if not role or has_owner(data):
        return False
    return role in meal_participants(data)


def meal_from_document(document: StoredDocument) -> Meal:
    """Normalize a stored meal document."""
    data = document.data
    embedded_comments = data.get("comments")
    if isinstance(data.get("commentCount"), int | float):
        comment_count = coerce_count(data.get("commentCount"))
    elif isinstance(embedded_comments, list):
        comment_count = len(embedded_comments)
    else:
        comment_count = 0
    keywords = data.get("keywords")
    image_url = data.get("imageUrl")
    owner_uid = data.get("ownerUid")
    return Meal(
        id=document.id,
        owner_uid=owner_uid if isinstance(owner_uid, str) and owner_uid else None,
        user_ids=meal_participants(data),
        description=str(data.get("description") or ""),
        type=str(data.get("type") or DEFAULT_MEAL_TYPE),
        timestamp=to_datetime(data.get("timestamp"), datetime.now(tz=UTC)),
        image_url=image_url if isinstance(image_url, str) and image_url else None,
        keywords=[k for k in keywords if isinstance(k, str)]
        if isinstance(keywords, list)
        else [],
        comment_count=comment_count,
    )


def comment_from_document(document: StoredDocument) -> MealComment | None:
    """Normalize a stored comment, skipping documents without author or text."""
    data = document.data
    author = data.get("author")
    text = data.get("text")
    if not author or not text:
        return None
    now = datetime.now(tz=UTC)
    created_at = to_datetime(data.get("createdAt", data.get("timestamp")), now)
    updated_at = to_datetime(
        data.get("updatedAt", data.get("timestamp", data.get("createdAt"))),
        created_at,
    )
    author_uid = data.get("authorUid")
    return MealComment(
        id=document.id,
        author=str(author),
        author_uid=author_uid if isinstance(author_uid, str) else "",
        text=str(text),
        created_at=created_at,
        updated_at=updated_at,
    )

