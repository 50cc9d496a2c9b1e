"""Shared test fixtures."""

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeVar

import pytest

from family_meal.config import Settings
from family_meal.containers import AppContainer
from family_meal.domain.meals import StoredDocument, to_datetime
from family_meal.domain.models import (
    Actor,
    AuthUser,
    VerifiedUser,
    profile_from_document,
)
from family_meal.services.auth import IdentityService, TokenVerifier
from family_meal.services.client_errors import (
    ClientErrorService,
    FixedWindowRateLimiter,
)
from family_meal.services.comments import CommentRepository, CommentService
from family_meal.services.deletion import DeletionRepository, MealDeletionService
from family_meal.services.meals import MealRepository, MealService
from family_meal.services.migration import MigrationRepository, MigrationService
from family_meal.services.policy import PolicyEngine
from family_meal.services.profiles import (
    IdentityDirectory,
    ProfileRepository,
    ProfileService,
)
from family_meal.services.transactions import Transaction, TransactionRunner

T = TypeVar("T")

_EPOCH = datetime.fromtimestamp(0, tz=UTC)


@dataclass
class InMemoryStore:
    """Document state shared by the in-memory repositories."""

    meals: dict[str, dict[str, object]] = field(default_factory=dict)
    comments: dict[str, dict[str, dict[str, object]]] = field(default_factory=dict)
    delete_jobs: dict[str, dict[str, object]] = field(default_factory=dict)
    profiles: dict[str, dict[str, object]] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def comments_of(self, meal_id: str) -> dict[str, dict[str, object]]:
        return self.comments.setdefault(meal_id, {})


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository for tests."""

    store: InMemoryStore
    watchers: list[Callable[[], None]] = field(default_factory=list)
    indexed_searches: list[list[str]] = field(default_factory=list)
    recent_scans: int = 0

    def new_meal_id(self) -> str:
        return self.store.next_id("meal")

    def create_meal(self, meal_id: str, data: dict[str, object]) -> None:
        self.store.meals[meal_id] = dict(data)
        self.notify()

    def get_meal(self, meal_id: str) -> StoredDocument | None:
        data = self.store.meals.get(meal_id)
        if data is None:
            return None
        return StoredDocument(id=meal_id, data=dict(data))

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        self.store.meals[meal_id].update(changes)
        self.notify()

    def list_meals_between(
        self, start: datetime, end: datetime
    ) -> list[StoredDocument]:
        documents = [
            StoredDocument(id=meal_id, data=dict(data))
            for meal_id, data in self.store.meals.items()
            if start <= to_datetime(data.get("timestamp"), _EPOCH) <= end
        ]
        return sorted(documents, key=_timestamp, reverse=True)

    def watch_meals_between(
        self,
        start: datetime,
        end: datetime,
        on_snapshot: Callable[[list[StoredDocument]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        def deliver() -> None:
            on_snapshot(self.list_meals_between(start, end))

        self.watchers.append(deliver)
        deliver()

        def cancel() -> None:
            self.watchers.remove(deliver)

        return cancel

    def notify(self) -> None:
        for watcher in list(self.watchers):
            watcher()

    def search_by_keywords(
        self, tokens: list[str], limit: int
    ) -> list[StoredDocument]:
        self.indexed_searches.append(list(tokens))
        matches = [
            StoredDocument(id=meal_id, data=dict(data))
            for meal_id, data in self.store.meals.items()
            if set(tokens) & set(data.get("keywords") or [])
        ]
        return matches[:limit]

    def list_recent_meals(self, limit: int) -> list[StoredDocument]:
        self.recent_scans += 1
        documents = [
            StoredDocument(id=meal_id, data=dict(data))
            for meal_id, data in self.store.meals.items()
        ]
        return sorted(documents, key=_timestamp, reverse=True)[:limit]


@dataclass
class InMemoryCommentRepository(CommentRepository):
    """In-memory comment reads for tests."""

    store: InMemoryStore
    watchers: dict[str, list[Callable[[], None]]] = field(default_factory=dict)

    def get_meal(self, meal_id: str) -> StoredDocument | None:
        data = self.store.meals.get(meal_id)
        if data is None:
            return None
        return StoredDocument(id=meal_id, data=dict(data))

    def list_comments(self, meal_id: str) -> list[StoredDocument]:
        return [
            StoredDocument(id=comment_id, data=dict(data))
            for comment_id, data in self.store.comments_of(meal_id).items()
        ]

    def watch_comments(
        self,
        meal_id: str,
        on_snapshot: Callable[[list[StoredDocument]], None],
        on_error: Callable[[Exception], None],
    ) -> Callable[[], None]:
        def deliver() -> None:
            on_snapshot(self.list_comments(meal_id))

        self.watchers.setdefault(meal_id, []).append(deliver)
        deliver()

        def cancel() -> None:
            self.watchers[meal_id].remove(deliver)

        return cancel

    def notify(self, meal_id: str) -> None:
        for watcher in list(self.watchers.get(meal_id, [])):
            watcher()


@dataclass
class InMemoryProfileRepository(ProfileRepository):
    """In-memory profile repository for tests."""

    store: InMemoryStore

    def get_profile(self, uid: str) -> dict[str, object] | None:
        data = self.store.profiles.get(uid)
        return dict(data) if data is not None else None

    def create_profile(self, uid: str, data: dict[str, object]) -> None:
        if uid in self.store.profiles:
            raise RuntimeError("profile already exists")
        self.store.profiles[uid] = dict(data)

    def update_profile(self, uid: str, changes: dict[str, object]) -> None:
        self.store.profiles[uid].update(changes)


@dataclass
class InMemoryDeletionRepository(DeletionRepository):
    """In-memory purge operations with optional hooks for failure tests."""

    store: InMemoryStore
    batches: list[list[str]] = field(default_factory=list)
    before_batch: Callable[[str], None] | None = None
    fail_meal_delete: bool = False
    fail_job_writes: bool = False

    def delete_comment_batch(
        self, meal_id: str, limit: int, start_after: str | None
    ) -> list[str]:
        if self.before_batch is not None:
            self.before_batch(meal_id)
        comments = self.store.comments_of(meal_id)
        ordered = sorted(comments)
        if start_after is not None:
            ordered = [comment_id for comment_id in ordered if comment_id > start_after]
        page = ordered[:limit]
        for comment_id in page:
            comments.pop(comment_id)
        self.batches.append(page)
        return page

    def delete_meal(self, meal_id: str) -> None:
        if self.fail_meal_delete:
            raise RuntimeError("store unavailable")
        self.store.meals.pop(meal_id, None)
        self.store.comments.pop(meal_id, None)

    def merge_delete_job(self, meal_id: str, fields: dict[str, object]) -> None:
        if self.fail_job_writes:
            raise RuntimeError("job write failed")
        self.store.delete_jobs.setdefault(meal_id, {}).update(fields)


@dataclass
class InMemoryMigrationRepository(MigrationRepository):
    """In-memory bulk access for migration tests."""

    store: InMemoryStore

    def list_all_meals(self) -> list[StoredDocument]:
        return [
            StoredDocument(id=meal_id, data=dict(data))
            for meal_id, data in self.store.meals.items()
        ]

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        self.store.meals[meal_id].update(changes)

    def list_comment_ids(self, meal_id: str) -> set[str]:
        return set(self.store.comments_of(meal_id))

    def move_embedded_comments(
        self,
        meal_id: str,
        comments: dict[str, dict[str, object]],
        comment_count: int,
    ) -> None:
        self.store.comments_of(meal_id).update(
            {comment_id: dict(data) for comment_id, data in comments.items()}
        )
        meal = self.store.meals[meal_id]
        meal["commentCount"] = comment_count
        meal.pop("comments", None)


@dataclass
class InMemoryTransaction(Transaction):
    """Reads go straight to the store; writes apply only on commit."""

    store: InMemoryStore
    writes: list[Callable[[], None]] = field(default_factory=list)

    def get_meal(self, meal_id: str) -> dict[str, object] | None:
        return _copy(self.store.meals.get(meal_id))

    def get_comment(self, meal_id: str, comment_id: str) -> dict[str, object] | None:
        return _copy(self.store.comments_of(meal_id).get(comment_id))

    def get_delete_job(self, meal_id: str) -> dict[str, object] | None:
        return _copy(self.store.delete_jobs.get(meal_id))

    def get_profile(self, uid: str) -> dict[str, object] | None:
        return _copy(self.store.profiles.get(uid))

    def new_comment_id(self, meal_id: str) -> str:
        return self.store.next_id("comment")

    def set_comment(
        self, meal_id: str, comment_id: str, data: dict[str, object]
    ) -> None:
        comments = self.store.comments_of(meal_id)
        self.writes.append(lambda: comments.__setitem__(comment_id, dict(data)))

    def update_comment(
        self, meal_id: str, comment_id: str, changes: dict[str, object]
    ) -> None:
        comments = self.store.comments_of(meal_id)
        self.writes.append(lambda: comments[comment_id].update(changes))

    def delete_comment(self, meal_id: str, comment_id: str) -> None:
        comments = self.store.comments_of(meal_id)
        self.writes.append(lambda: comments.pop(comment_id, None))

    def update_meal(self, meal_id: str, changes: dict[str, object]) -> None:
        self.writes.append(lambda: self.store.meals[meal_id].update(changes))

    def merge_delete_job(self, meal_id: str, fields: dict[str, object]) -> None:
        jobs = self.store.delete_jobs
        self.writes.append(lambda: jobs.setdefault(meal_id, {}).update(fields))

    def merge_profile(self, uid: str, data: dict[str, object]) -> None:
        profiles = self.store.profiles
        self.writes.append(lambda: profiles.setdefault(uid, {}).update(data))


@dataclass
class InMemoryTransactionRunner(TransactionRunner):
    """Serializes transactions and discards buffered writes on failure."""

    store: InMemoryStore
    runs: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def run(self, work: Callable[[Transaction], T]) -> T:
        with self._lock:
            self.runs += 1
            transaction = InMemoryTransaction(self.store)
            result = work(transaction)
            for write in transaction.writes:
                write()
            return result


@dataclass
class FakeTokenVerifier(TokenVerifier):
    """Maps opaque test tokens to identities."""

    tokens: dict[str, VerifiedUser] = field(default_factory=dict)

    def verify_id_token(self, token: str) -> VerifiedUser:
        user = self.tokens.get(token)
        if user is None:
            raise ValueError("token signature mismatch")
        return user


@dataclass
class FakeIdentityDirectory(IdentityDirectory):
    """Account records keyed by uid."""

    users: dict[str, AuthUser] = field(default_factory=dict)

    def get_user(self, uid: str) -> AuthUser:
        return self.users.get(uid, AuthUser(uid=uid, email=None, display_name=None))


def seed_profile(
    store: InMemoryStore,
    uid: str,
    role: str | None,
    email: str | None = None,
    display_name: str | None = None,
) -> Actor:
    """Store a profile and return the matching actor."""
    resolved_email = email or f"{uid}@example.com"
    store.profiles[uid] = {
        "uid": uid,
        "email": resolved_email,
        "displayName": display_name,
        "role": role,
    }
    return Actor(
        uid=uid,
        email=resolved_email,
        profile=profile_from_document(uid, store.profiles[uid]),
    )


def seed_meal(  # noqa: PLR0913
    store: InMemoryStore,
    meal_id: str,
    owner_uid: str | None = "dad-uid",
    user_ids: list[str] | None = None,
    description: str = "김치찌개",
    meal_type: str = "저녁",
    timestamp: datetime | None = None,
    comment_count: int | None = 0,
    **extra: object,
) -> dict[str, object]:
    """Store a meal document directly."""
    data: dict[str, object] = {
        "userIds": user_ids if user_ids is not None else ["아빠"],
        "description": description,
        "type": meal_type,
        "timestamp": timestamp or datetime.now(tz=UTC),
        "keywords": [],
        **extra,
    }
    if owner_uid is not None:
        data["ownerUid"] = owner_uid
    if comment_count is not None:
        data["commentCount"] = comment_count
    store.meals[meal_id] = data
    return data


def _copy(data: dict[str, object] | None) -> dict[str, object] | None:
    return dict(data) if data is not None else None


def _timestamp(document: StoredDocument) -> datetime:
    return to_datetime(document.data.get("timestamp"), _EPOCH)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        allowed_emails=None,
        require_email_allowlist=False,
        allow_role_reassign=False,
        timezone="Asia/Seoul",
        app_version="test-build",
        client_error_rate_limit_window_seconds=60,
        client_error_rate_limit_max=3,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def policy() -> PolicyEngine:
    return PolicyEngine()


@pytest.fixture
def transactions(store: InMemoryStore) -> InMemoryTransactionRunner:
    return InMemoryTransactionRunner(store)


@pytest.fixture
def meal_repository(store: InMemoryStore) -> InMemoryMealRepository:
    return InMemoryMealRepository(store)


@pytest.fixture
def deletion_repository(store: InMemoryStore) -> InMemoryDeletionRepository:
    return InMemoryDeletionRepository(store)


@pytest.fixture
def token_verifier() -> FakeTokenVerifier:
    return FakeTokenVerifier()


@pytest.fixture
def identity_directory() -> FakeIdentityDirectory:
    return FakeIdentityDirectory()


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    store: InMemoryStore,
    policy: PolicyEngine,
    transactions: InMemoryTransactionRunner,
    meal_repository: InMemoryMealRepository,
    deletion_repository: InMemoryDeletionRepository,
    token_verifier: FakeTokenVerifier,
    identity_directory: FakeIdentityDirectory,
) -> AppContainer:
    profile_repository = InMemoryProfileRepository(store)
    identity_service = IdentityService(
        token_verifier=token_verifier,
        profile_repository=profile_repository,
    )
    profile_service = ProfileService(
        repository=profile_repository,
        transactions=transactions,
        directory=identity_directory,
        policy=policy,
        allow_role_reassign=settings.allow_role_reassign,
    )
    meal_service = MealService(
        repository=meal_repository, policy=policy, timezone=settings.timezone
    )
    comment_service = CommentService(
        repository=InMemoryCommentRepository(store),
        transactions=transactions,
        policy=policy,
    )
    deletion_service = MealDeletionService(
        repository=deletion_repository, transactions=transactions
    )
    client_error_service = ClientErrorService(
        limiter=FixedWindowRateLimiter(
            max_requests=settings.client_error_rate_limit_max,
            window_seconds=settings.client_error_rate_limit_window_seconds,
        )
    )
    migration_service = MigrationService(InMemoryMigrationRepository(store))

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
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
