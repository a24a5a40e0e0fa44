"""Tests for the progression store and achievement catalog backends."""

from datetime import datetime, timezone

import pytest
from google.api_core import exceptions as gcp_exceptions

from app.db.achievement_catalog import FirestoreAchievementCatalog, InMemoryAchievementCatalog
from app.db.progression_store import InMemoryProgressionStore
from app.errors import ConflictError, StorageFailure
from app.services.achievement_service import default_achievements

NOW = datetime(2023, 1, 1, tzinfo=timezone.utc)


class TestInMemoryProgressionStore:

    def test_get_or_create_returns_unsaved_record(self):
        store = InMemoryProgressionStore()
        progression = store.get_or_create("user-1", now=NOW)
        assert progression.version == 0
        assert progression.is_new
        assert progression.stats.total_points == 0
        assert progression.stats.login_streak == 0
        assert progression.stats.last_active == NOW
        assert store.get("user-1") is None

    def test_login_path_seeds_streak(self):
        store = InMemoryProgressionStore()
        assert store.get_or_create("user-1", now=NOW, login_streak=1).stats.login_streak == 1

    def test_save_increments_version(self):
        store = InMemoryProgressionStore()
        saved = store.save(store.get_or_create("user-1", now=NOW))
        assert saved.version == 1
        assert saved.updated_at is not None
        again = store.save(saved)
        assert again.version == 2

    def test_stale_write_rejected(self):
        store = InMemoryProgressionStore()
        store.save(store.get_or_create("user-1", now=NOW))

        first = store.get("user-1")
        second = store.get("user-1")
        first.stats.total_points = 10
        store.save(first)

        second.stats.total_points = 20
        with pytest.raises(ConflictError):
            store.save(second)
        assert store.get("user-1").stats.total_points == 10

    def test_concurrent_creation_rejected(self):
        store = InMemoryProgressionStore()
        a = store.get_or_create("user-1", now=NOW)
        b = store.get_or_create("user-1", now=NOW)
        store.save(a)
        with pytest.raises(ConflictError):
            store.save(b)

    def test_unsaved_edits_are_not_visible(self):
        store = InMemoryProgressionStore()
        store.save(store.get_or_create("user-1", now=NOW))
        loaded = store.get("user-1")
        loaded.stats.total_points = 99
        assert store.get("user-1").stats.total_points == 0

    def test_delete_all(self):
        store = InMemoryProgressionStore()
        store.save(store.get_or_create("user-1", now=NOW))
        store.save(store.get_or_create("user-2", now=NOW))
        assert store.delete_all() == 2
        assert store.get("user-1") is None


class TestInMemoryAchievementCatalog:

    def test_get_by_id(self):
        catalog = InMemoryAchievementCatalog(default_achievements())
        assert catalog.get("rune_novice").points == 10
        assert catalog.get("missing") is None

    def test_duplicate_rejected(self):
        catalog = InMemoryAchievementCatalog(default_achievements())
        novice = catalog.get("rune_novice")
        with pytest.raises(ValueError, match="achievement_exists"):
            catalog.create(novice)
        renamed = novice.model_copy(update={"id": "other_id"})
        with pytest.raises(ValueError):
            catalog.create(renamed)


class _UnavailableCollection:
    """Firestore collection stand-in whose every read fails."""

    def document(self, doc_id):
        return self

    def where(self, *args):
        return self

    def limit(self, n):
        return self

    def get(self):
        raise gcp_exceptions.ServiceUnavailable("firestore down")

    def stream(self):
        raise gcp_exceptions.ServiceUnavailable("firestore down")


class TestFirestoreAchievementCatalogErrors:

    @pytest.fixture
    def catalog(self, monkeypatch):
        catalog = FirestoreAchievementCatalog("achievements")
        monkeypatch.setattr(catalog, "_collection", lambda: _UnavailableCollection())
        return catalog

    def test_all_maps_to_storage_failure(self, catalog):
        with pytest.raises(StorageFailure):
            catalog.all()

    def test_get_maps_to_storage_failure(self, catalog):
        with pytest.raises(StorageFailure):
            catalog.get("rune_novice")

    def test_create_maps_to_storage_failure(self, catalog):
        with pytest.raises(StorageFailure):
            catalog.create(default_achievements()[0])
