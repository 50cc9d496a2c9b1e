"""Request models and JSON payload builders for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field

from family_meal.domain.meals import (
    MAX_TIMESTAMP_MILLIS,
    Meal,
    MealComment,
    to_millis,
)
from family_meal.domain.models import UserProfile


class MealCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_ids: list[str] = Field(alias="userIds")
    description: str
    type: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    timestamp: int | None = Field(default=None, ge=0, le=MAX_TIMESTAMP_MILLIS)


class CommentRequest(BaseModel):
    text: str


class ProfileCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str | None = Field(default=None, alias="displayName")


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(alias="displayName")


class RoleRequest(BaseModel):
    role: str


class ClientErrorRequest(BaseModel):
    """Browser error report; blank strings are rejected."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    type: str = Field(min_length=1)
    message: str = Field(min_length=1)
    stack: str | None = None
    source: str | None = None
    lineno: int | None = None
    colno: int | None = None
    url: str | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")
    timestamp: str | None = None


def meal_payload(meal: Meal) -> dict[str, object]:
    return {
        "id": meal.id,
        "ownerUid": meal.owner_uid,
        "userIds": list(meal.user_ids),
        "description": meal.description,
        "type": meal.type,
        "imageUrl": meal.image_url,
        "timestamp": to_millis(meal.timestamp),
        "keywords": list(meal.keywords),
        "commentCount": meal.comment_count,
    }


def comment_payload(comment: MealComment) -> dict[str, object]:
    return {
        "id": comment.id,
        "author": comment.author,
        "authorUid": comment.author_uid,
        "text": comment.text,
        "createdAt": to_millis(comment.created_at),
        "updatedAt": to_millis(comment.updated_at),
    }


def profile_payload(profile: UserProfile) -> dict[str, object]:
    return profile.to_document()
