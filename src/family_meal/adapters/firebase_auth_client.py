"""Firebase Authentication adapter."""

import logging
from dataclasses import dataclass

import firebase_admin
from firebase_admin import auth, exceptions

from family_meal.domain.errors import Unauthenticated
from family_meal.domain.models import AuthUser, VerifiedUser
from family_meal.services.auth import TokenVerifier
from family_meal.services.profiles import IdentityDirectory

logger = logging.getLogger(__name__)


@dataclass
class FirebaseAuthClient(TokenVerifier, IdentityDirectory):
    """Verifies ID tokens and looks up accounts through the Admin SDK."""

    app: firebase_admin.App

    def verify_id_token(self, token: str) -> VerifiedUser:
        """Verify a Firebase ID token, rejecting revoked sessions."""
        try:
            claims = auth.verify_id_token(token, app=self.app, check_revoked=True)
        except (ValueError, exceptions.FirebaseError) as exc:
            logger.info("Rejected ID token: %s", type(exc).__name__)
            raise Unauthenticated("Invalid auth token") from exc
        email = claims.get("email")
        return VerifiedUser(
            uid=str(claims["uid"]),
            email=email if isinstance(email, str) and email else None,
        )

    def get_user(self, uid: str) -> AuthUser:
        record = auth.get_user(uid, app=self.app)
        return AuthUser(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
        )
