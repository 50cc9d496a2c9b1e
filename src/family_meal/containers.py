"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore import Client as FirestoreClient

from family_meal.adapters.firebase_auth_client import FirebaseAuthClient
from family_meal.adapters.firestore_comment_repository import (
    FirestoreCommentRepository,
)
from family_meal.adapters.firestore_deletion_repository import (
    FirestoreDeletionRepository,
)
from family_meal.adapters.firestore_meal_repository import FirestoreMealRepository
from family_meal.adapters.firestore_migration_repository import (
    FirestoreMigrationRepository,
)
from family_meal.adapters.firestore_profile_repository import (
    FirestoreProfileRepository,
)
from family_meal.adapters.firestore_transactions import FirestoreTransactionRunner
from family_meal.config import Settings, parse_allowed_emails
from family_meal.services.auth import IdentityService
from family_meal.services.client_errors import (
    ClientErrorService,
    FixedWindowRateLimiter,
)
from family_meal.services.comments import CommentService
from family_meal.services.deletion import MealDeletionService
from family_meal.services.meals import MealService
from family_meal.services.migration import MigrationService
from family_meal.services.policy import PolicyEngine
from family_meal.services.profiles import ProfileService

FIREBASE_APP_NAME = "family-meal"
_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    policy: PolicyEngine
    identity_service: IdentityService
    profile_service: ProfileService
    meal_service: MealService
    comment_service: CommentService
    deletion_service: MealDeletionService
    client_error_service: ClientErrorService
    migration_service: MigrationService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    firebase_app = initialize_firebase(resolved_settings)
    client = _create_firestore_client(firebase_app)
    auth_client = FirebaseAuthClient(firebase_app)
    policy = PolicyEngine()
    transactions = FirestoreTransactionRunner(client)
    profile_repository = FirestoreProfileRepository(client)
    identity_service = IdentityService(
        token_verifier=auth_client,
        profile_repository=profile_repository,
        allowed_emails=parse_allowed_emails(resolved_settings.allowed_emails),
        require_allowlist=resolved_settings.require_email_allowlist,
    )
    profile_service = ProfileService(
        repository=profile_repository,
        transactions=transactions,
        directory=auth_client,
        policy=policy,
        allow_role_reassign=resolved_settings.allow_role_reassign,
    )
    meal_service = MealService(
        repository=FirestoreMealRepository(client),
        policy=policy,
        timezone=resolved_settings.timezone,
    )
    comment_service = CommentService(
        repository=FirestoreCommentRepository(client),
        transactions=transactions,
        policy=policy,
    )
    deletion_service = MealDeletionService(
        repository=FirestoreDeletionRepository(client),
        transactions=transactions,
    )
    client_error_service = ClientErrorService(
        limiter=FixedWindowRateLimiter(
            max_requests=resolved_settings.client_error_rate_limit_max,
            window_seconds=resolved_settings.client_error_rate_limit_window_seconds,
        )
    )
    migration_service = MigrationService(FirestoreMigrationRepository(client))

    async def close_resources() -> None:
        client.close()

    return AppContainer(
        settings=resolved_settings,
        policy=policy,
        identity_service=identity_service,
        profile_service=profile_service,
        meal_service=meal_service,
        comment_service=comment_service,
        deletion_service=deletion_service,
        client_error_service=client_error_service,
        migration_service=migration_service,
        close_resources=close_resources,
    )


def initialize_firebase(settings: Settings) -> firebase_admin.App:
    """Return the application's Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        options = (
            {"projectId": settings.firebase_project_id}
            if settings.firebase_project_id
            else None
        )
        return firebase_admin.initialize_app(
            _credentials(settings), options, name=FIREBASE_APP_NAME
        )


def _credentials(settings: Settings) -> credentials.Base:
    if settings.firebase_client_email and settings.firebase_private_key:
        return credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key.replace("\\n", "\n"),
                "token_uri": _TOKEN_URI,
            }
        )
    return credentials.ApplicationDefault()


def _create_firestore_client(app: firebase_admin.App) -> FirestoreClient:
    return firestore.client(app)
