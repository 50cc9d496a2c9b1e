"""Domain models for household members and their profiles."""

from dataclasses import dataclass
from typing import Literal

Role = Literal["아빠", "엄마", "딸", "아들"]

ROLES: tuple[Role, ...] = ("아빠", "엄마", "딸", "아들")


def is_role(value: object) -> bool:
    """Return True when the value is one of the household roles."""
    return isinstance(value, str) and value in ROLES


@dataclass(frozen=True)
class VerifiedUser:
    """Identity proven by a bearer credential."""

    uid: str
    email: str | None


@dataclass(frozen=True)
class AuthUser:
    """Account record held by the identity provider."""

    uid: str
    email: str | None
    display_name: str | None


@dataclass(frozen=True)
class UserProfile:
    """Stored profile for an authenticated identity."""

    uid: str
    email: str | None
    display_name: str | None
    role: Role | None

    def to_document(self) -> dict[str, object]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role,
        }


@dataclass(frozen=True)
class Actor:
    """A verified caller together with its stored profile, if any."""

    uid: str
    email: str | None
    profile: UserProfile | None = None

    @property
    def role(self) -> Role | None:
        if self.profile is None:
            return None
        return self.profile.role


def profile_from_document(uid: str, data: dict[str, object]) -> UserProfile:
    """Build a profile from a stored document, dropping malformed fields."""
    role = data.get("role")
    return UserProfile(
        uid=uid,
        email=_string_or_none(data.get("email")),
        display_name=_string_or_none(data.get("displayName")),
        role=role if is_role(role) else None,  # type: ignore[arg-type]
    )


def _string_or_none(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None
