"""User profile lifecycle and role assignment."""

import logging
from dataclasses import dataclass
from typing import Protocol

from family_meal.domain.errors import Forbidden, InvalidArgument, NotFound
from family_meal.domain.models import (
    Actor,
    AuthUser,
    Role,
    UserProfile,
    VerifiedUser,
    is_role,
    profile_from_document,
)
from family_meal.services.policy import AccessRequest, PolicyEngine
from family_meal.services.transactions import Transaction, TransactionRunner

MAX_DISPLAY_NAME_LENGTH = 100

logger = logging.getLogger(__name__)


class ProfileRepository(Protocol):
    """Persistence interface for user profiles."""

    def get_profile(self, uid: str) -> dict[str, object] | None:
        """Return the profile document for a uid, if present."""

    def create_profile(self, uid: str, data: dict[str, object]) -> None:
        """Create the profile document."""

    def update_profile(self, uid: str, changes: dict[str, object]) -> None:
        """Update fields of the profile document."""


class IdentityDirectory(Protocol):
    """Lookup of account records held by the identity provider."""

    def get_user(self, uid: str) -> AuthUser:
        """Return the provider's account record for a uid."""


@dataclass
class ProfileService:
    """Application service for user profiles."""

    repository: ProfileRepository
    transactions: TransactionRunner
    directory: IdentityDirectory
    policy: PolicyEngine
    allow_role_reassign: bool = False

    def get(self, actor: Actor, uid: str) -> UserProfile:
        """Return a profile the actor may read."""
        data = self.repository.get_profile(uid)
        if data is None:
            raise NotFound("Profile not found")
        self.policy.enforce(
            AccessRequest(
                operation="read", path=f"users/{uid}", actor=actor, existing=data
            )
        )
        return profile_from_document(uid, data)

    def create(self, actor: Actor, display_name: str | None) -> UserProfile:
        """Create the caller's profile with no role selected yet."""
        existing = self.repository.get_profile(actor.uid)
        profile = UserProfile(
            uid=actor.uid,
            email=actor.email,
            display_name=_normalize_display_name(display_name),
            role=None,
        )
        document = profile.to_document()
        self.policy.enforce(
            AccessRequest(
                operation="create",
                path=f"users/{actor.uid}",
                actor=actor,
                existing=existing,
                incoming=document,
            )
        )
        self.repository.create_profile(actor.uid, document)
        return profile

    def update_display_name(self, actor: Actor, display_name: str) -> UserProfile:
        """Change the caller's display name."""
        existing = self.repository.get_profile(actor.uid)
        if existing is None:
            raise NotFound("Profile not found")
        changes = {"displayName": _normalize_display_name(display_name)}
        self.policy.enforce(
            AccessRequest(
                operation="update",
                path=f"users/{actor.uid}",
                actor=actor,
                existing=existing,
                incoming={**existing, **changes},
            )
        )
        self.repository.update_profile(actor.uid, changes)
        return profile_from_document(actor.uid, {**existing, **changes})

    def assign_role(self, user: VerifiedUser, role: str) -> UserProfile:
        """Set the caller's role; a chosen role is locked unless reassignment is on."""
        if not is_role(role):
            raise InvalidArgument("Invalid payload")
        requested: Role = role  # type: ignore[assignment]
        account = self.directory.get_user(user.uid)
        auth_email = account.email or user.email

        def work(tx: Transaction) -> UserProfile:
            existing = profile_from_document(user.uid, tx.get_profile(user.uid) or {})
            if (
                existing.role is not None
                and existing.role != requested
                and not self.allow_role_reassign
            ):
                raise Forbidden("Role is locked. Contact admin to change it.")
            profile = UserProfile(
                uid=user.uid,
                email=existing.email or auth_email,
                display_name=existing.display_name or account.display_name,
                role=requested,
            )
            if not profile.email:
                raise Forbidden("Authenticated email is required")
            tx.merge_profile(user.uid, profile.to_document())
            return profile

        profile = self.transactions.run(work)
        logger.info("Assigned role", extra={"uid": user.uid, "role": requested})
        return profile


def _normalize_display_name(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    if len(trimmed) > MAX_DISPLAY_NAME_LENGTH:
        raise InvalidArgument("Display name is too long")
    return trimmed or None
