"""Tests for legacy data migrations."""

from datetime import UTC, datetime

from family_meal.services.migration import MigrationService
from tests.conftest import InMemoryMigrationRepository, InMemoryStore, seed_meal


def _service(store: InMemoryStore) -> MigrationService:
    return MigrationService(InMemoryMigrationRepository(store))


def test_migrate_meals_normalizes_legacy_documents(store: InMemoryStore) -> None:
    seed_meal(
        store,
        "legacy",
        owner_uid=None,
        user_ids=["삼촌", "딸", "딸"],
        description="카레",
        meal_type="저녁",
        comment_count=None,
        timestamp=None,
    )
    store.meals["legacy"]["timestamp"] = 1714600000000
    store.meals["legacy"]["comments"] = [{"author": "딸", "text": "맛있다"}]

    report = _service(store).migrate_meals()

    meal = store.meals["legacy"]
    assert meal["userIds"] == ["딸"]
    assert meal["userId"] == "딸"
    assert set(meal["keywords"]) == {"카레", "저녁"}
    assert meal["commentCount"] == 1
    assert meal["timestamp"] == datetime.fromtimestamp(1714600000, tz=UTC)
    assert report.touched_meals == 1
    assert report.missing_owner == 1
    assert report.field_updates["timestamp"] == 1


def test_migrate_meals_falls_back_to_all_roles(store: InMemoryStore) -> None:
    seed_meal(store, "orphan", user_ids=[])

    _service(store).migrate_meals()

    assert store.meals["orphan"]["userIds"] == ["아빠", "엄마", "딸", "아들"]


def test_migrate_meals_dry_run_writes_nothing(store: InMemoryStore) -> None:
    seed_meal(store, "meal-1", user_ids=["아빠"])
    before = dict(store.meals["meal-1"])

    report = _service(store).migrate_meals(dry_run=True)

    assert store.meals["meal-1"] == before
    assert report.touched_meals == 1
    assert report.to_dict()["dryRun"] is True


def test_migrate_meals_counts_invalid_timestamps(store: InMemoryStore) -> None:
    seed_meal(store, "meal-1")
    store.meals["meal-1"]["timestamp"] = "yesterday"

    report = _service(store).migrate_meals(dry_run=True)

    assert report.invalid_timestamp == 1


def test_migrate_comments_moves_embedded_arrays(store: InMemoryStore) -> None:
    seed_meal(store, "meal-1", comment_count=None)
    store.meals["meal-1"]["comments"] = [
        {"id": "keep", "author": "아빠", "authorUid": "dad-uid", "text": " 좋아요 "},
        {"author": "딸", "text": "맛있어요", "timestamp": 1714600000000},
        {"author": "엄마", "text": "   "},
        "garbage",
    ]
    store.comments_of("meal-1")["keep"] = {"author": "아빠", "text": "이미 있음"}

    report = _service(store).migrate_comments()

    comments = store.comments["meal-1"]
    assert set(comments) == {"keep", "legacy-1"}
    assert comments["keep"]["text"] == "이미 있음"
    assert comments["legacy-1"]["createdAt"] == datetime.fromtimestamp(
        1714600000, tz=UTC
    )
    assert store.meals["meal-1"]["commentCount"] == 2
    assert "comments" not in store.meals["meal-1"]
    assert report.scanned == 4
    assert report.migrated == 1


def test_migrate_comments_repairs_missing_counter(store: InMemoryStore) -> None:
    seed_meal(store, "meal-1", comment_count=None)

    report = _service(store).migrate_comments()

    assert store.meals["meal-1"]["commentCount"] == 0
    assert report.touched_meals == 1
