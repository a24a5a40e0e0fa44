"""Shared fixtures: in-memory backends and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from app.db.achievement_catalog import InMemoryAchievementCatalog
from app.db.progression_store import InMemoryProgressionStore
from app.services.achievement_service import default_achievements
from app.services.progression_service import ProgressionService


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2023, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemoryProgressionStore:
    return InMemoryProgressionStore()


@pytest.fixture
def catalog() -> InMemoryAchievementCatalog:
    return InMemoryAchievementCatalog(default_achievements())


@pytest.fixture
def service(store, catalog, clock) -> ProgressionService:
    return ProgressionService(store, catalog, clock=clock)
