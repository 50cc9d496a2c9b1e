"""Bearer credential verification and caller role resolution."""

import logging
from dataclasses import dataclass
from typing import Protocol

from family_meal.domain.errors import Forbidden, Unauthenticated
from family_meal.domain.models import (
    Actor,
    Role,
    VerifiedUser,
    profile_from_document,
)
from family_meal.services.profiles import ProfileRepository

_BEARER_PREFIX = "Bearer "

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    """Identity provider seam for bearer credentials."""

    def verify_id_token(self, token: str) -> VerifiedUser:
        """Return the identity behind a token or raise Unauthenticated."""


@dataclass
class IdentityService:
    """Verifies callers and resolves their household role."""

    token_verifier: TokenVerifier
    profile_repository: ProfileRepository
    allowed_emails: frozenset[str] = frozenset()
    require_allowlist: bool = False

    def verify(self, authorization: str | None) -> VerifiedUser:
        """Validate an Authorization header value and apply the email allowlist."""
        raw = authorization or ""
        if not raw.startswith(_BEARER_PREFIX):
            raise Unauthenticated("Missing bearer token")
        token = raw[len(_BEARER_PREFIX) :].strip()
        if not token:
            raise Unauthenticated("Empty bearer token")
        try:
            user = self.token_verifier.verify_id_token(token)
        except Unauthenticated:
            raise
        except Exception as exc:
            logger.warning("Token verification failed: %s", type(exc).__name__)
            raise Unauthenticated("Invalid auth token") from exc
        if not self.is_allowed_email(user.email):
            raise Forbidden("Email is not allowed")
        return user

    def is_allowed_email(self, email: str | None) -> bool:
        """Return True when the email passes the server-side allowlist."""
        if not self.allowed_emails:
            if self.require_allowlist:
                logger.error("Server allowlist is not configured")
                return False
            return True
        if not email:
            return False
        return email.strip().lower() in self.allowed_emails

    def resolve_role(self, uid: str) -> Role | None:
        """Return the caller's role; a stored profile is mandatory."""
        return self.resolve_actor(VerifiedUser(uid=uid, email=None)).role

    def resolve_actor(self, user: VerifiedUser) -> Actor:
        """Attach the stored profile to a verified user."""
        data = self.profile_repository.get_profile(user.uid)
        if data is None:
            raise Forbidden("User profile is required")
        return Actor(
            uid=user.uid,
            email=user.email,
            profile=profile_from_document(user.uid, data),
        )

    def lookup_actor(self, user: VerifiedUser) -> Actor:
        """Attach the stored profile when there is one."""
        data = self.profile_repository.get_profile(user.uid)
        profile = profile_from_document(user.uid, data) if data is not None else None
        return Actor(uid=user.uid, email=user.email, profile=profile)
