"""Authorization policy for direct document reads and writes.

Every predicate is pure: it looks only at the caller, the caller's stored
profile, the document path and the existing/incoming document state. Writes
that must stay consistent with derived data (meal deletion, comments and the
meal comment counter) are denied here and only happen through the
transactional services.
"""

import logging
import re
from dataclasses import dataclass
from typing import Literal

from family_meal.domain.errors import Forbidden
from family_meal.domain.meals import (
    MAX_DESCRIPTION_LENGTH,
    MAX_KEYWORDS,
    has_owner,
    is_meal_type,
    meal_participants,
)
from family_meal.domain.models import Actor, is_role

Operation = Literal["create", "read", "update", "delete"]

_IMAGE_URL_PATTERN = re.compile(r"^https?://")
_MISSING = object()
_DOCUMENT_DEPTH = 2
_SUBDOCUMENT_DEPTH = 4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessRequest:
    """An attempted operation on a single document."""

    operation: Operation
    path: str
    actor: Actor
    existing: dict[str, object] | None = None
    incoming: dict[str, object] | None = None
    parent: dict[str, object] | None = None


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy evaluation."""

    allowed: bool
    reason: str = ""


ALLOW = Decision(allowed=True)


def _deny(reason: str) -> Decision:
    return Decision(allowed=False, reason=reason)


@dataclass
class PolicyEngine:
    """Evaluates access requests against the household rules."""

    def evaluate(self, request: AccessRequest) -> Decision:
        """Return the decision for an access request."""
        segments = [part for part in request.path.split("/") if part]
        if len(segments) == _DOCUMENT_DEPTH and segments[0] == "users":
            return _profile_decision(request, segments[1])
        if len(segments) == _DOCUMENT_DEPTH and segments[0] == "meals":
            return _meal_decision(request)
        if (
            len(segments) == _SUBDOCUMENT_DEPTH
            and segments[0] == "meals"
            and segments[2] == "comments"
        ):
            return _comment_decision(request)
        return _deny("unknown document path")

    def enforce(self, request: AccessRequest) -> None:
        """Raise Forbidden unless the request is allowed."""
        decision = self.evaluate(request)
        if not decision.allowed:
            logger.info(
                "Policy denied %s on %s: %s",
                request.operation,
                request.path,
                decision.reason,
                extra={"uid": request.actor.uid},
            )
            raise Forbidden()

    def can_read_meal(self, actor: Actor, meal: dict[str, object]) -> bool:
        """Return True when the actor may read the meal document."""
        return _can_read_meal(actor, meal)


def _profile_decision(request: AccessRequest, uid: str) -> Decision:
    actor = request.actor
    if request.operation == "read":
        if actor.uid == uid or actor.profile is not None:
            return ALLOW
        return _deny("profile required to read other profiles")
    if request.operation == "delete":
        return _deny("profiles are never deleted")
    if actor.uid != uid:
        return _deny("profile belongs to another identity")
    incoming = request.incoming or {}
    if request.operation == "create":
        if request.existing is not None:
            return _deny("profile already exists")
        if actor.email is None or incoming.get("email") != actor.email:
            return _deny("email must match the verified identity")
        if incoming.get("role") is not None:
            return _deny("role is assigned by the server")
        if incoming.get("uid", uid) != uid:
            return _deny("uid must match the document id")
        return ALLOW
    existing = request.existing
    if existing is None:
        return _deny("profile does not exist")
    if incoming.get("email") != existing.get("email"):
        return _deny("email is immutable")
    if incoming.get("role") != existing.get("role"):
        return _deny("role is immutable on this path")
    return ALLOW


def _meal_decision(request: AccessRequest) -> Decision:
    actor = request.actor
    if request.operation == "read":
        if request.existing is not None and _can_read_meal(actor, request.existing):
            return ALLOW
        return _deny("caller is neither owner nor participant")
    if request.operation == "delete":
        return _deny("meals are deleted through the deletion service")
    incoming = request.incoming or {}
    if request.operation == "create":
        if actor.role is None:
            return _deny("a resolved role is required")
        if incoming.get("ownerUid") != actor.uid:
            return _deny("ownerUid must match the caller")
        if incoming.get("commentCount", 0) != 0:
            return _deny("a new meal starts with no comments")
        return _validate_meal_content(incoming)
    existing = request.existing
    if existing is None:
        return _deny("meal does not exist")
    if not has_owner(existing) or existing.get("ownerUid") != actor.uid:
        return _deny("only the owner may update a meal")
    if incoming.get("ownerUid") != existing.get("ownerUid"):
        return _deny("ownerUid is immutable")
    if incoming.get("commentCount", _MISSING) != existing.get(
        "commentCount", _MISSING
    ):
        return _deny("commentCount is server-derived")
    return _validate_meal_content(incoming)


def _comment_decision(request: AccessRequest) -> Decision:
    if request.operation == "read":
        if request.parent is not None and _can_read_meal(
            request.actor, request.parent
        ):
            return ALLOW
        return _deny("parent meal is not readable")
    return _deny("comments are written through the comment service")


def _can_read_meal(actor: Actor, meal: dict[str, object]) -> bool:
    role = actor.role
    if role is None:
        return False
    if has_owner(meal) and meal.get("ownerUid") == actor.uid:
        return True
    return role in meal_participants(meal)


def _validate_meal_content(data: dict[str, object]) -> Decision:  # noqa: PLR0911
    description = data.get("description")
    if not isinstance(description, str) or not (
        1 <= len(description) <= MAX_DESCRIPTION_LENGTH
    ):
        return _deny("description must be 1-300 characters")
    if not is_meal_type(data.get("type")):
        return _deny("unknown meal type")
    user_ids = data.get("userIds")
    if (
        not isinstance(user_ids, list)
        or not user_ids
        or not all(is_role(value) for value in user_ids)
    ):
        return _deny("userIds must list household roles")
    image_url = data.get("imageUrl")
    if image_url is not None and (
        not isinstance(image_url, str) or not _IMAGE_URL_PATTERN.match(image_url)
    ):
        return _deny("imageUrl must be http(s)")
    keywords = data.get("keywords")
    if keywords is not None and (
        not isinstance(keywords, list) or len(keywords) > MAX_KEYWORDS
    ):
        return _deny("too many keywords")
    return ALLOW
