"""Achievement catalog repository: in-memory for dev/test, Firestore for production.

The catalog is reference data. It is injected into the evaluator rather than
read from a global so tests can swap it out.
"""

import abc
import logging
import threading

from google.api_core import exceptions as gcp_exceptions

from app.config import settings
from app.db.firestore import get_firestore_client, is_mock_mode
from app.errors import StorageFailure
from app.models.achievement import Achievement

logger = logging.getLogger(__name__)


class AchievementCatalog(abc.ABC):
    """Read-mostly collection of achievement definitions."""

    @abc.abstractmethod
    def all(self) -> list[Achievement]:
        """Return every achievement definition."""

    def get(self, achievement_id: str) -> Achievement | None:
        """Return one definition by ID."""
        for achievement in self.all():
            if achievement.id == achievement_id:
                return achievement
        return None

    @abc.abstractmethod
    def create(self, achievement: Achievement) -> Achievement:
        """Add a definition. Raises ``ValueError("achievement_exists")`` on a duplicate ID or name."""


class InMemoryAchievementCatalog(AchievementCatalog):
    """List-backed catalog, optionally pre-seeded."""

    def __init__(self, achievements: list[Achievement] | None = None) -> None:
        self._achievements: list[Achievement] = list(achievements or [])
        self._lock = threading.Lock()

    def all(self) -> list[Achievement]:
        with self._lock:
            return list(self._achievements)

    def create(self, achievement: Achievement) -> Achievement:
        with self._lock:
            if any(a.id == achievement.id or a.name == achievement.name for a in self._achievements):
                raise ValueError("achievement_exists")
            self._achievements.append(achievement)
        logger.info("Added achievement %s to catalog", achievement.id)
        return achievement


class FirestoreAchievementCatalog(AchievementCatalog):
    """Firestore-backed catalog using ``achievements/{id}`` documents."""

    def __init__(self, collection: str | None = None) -> None:
        self.collection = collection or settings.ACHIEVEMENTS_COLLECTION

    def _collection(self):
        return get_firestore_client().collection(self.collection)

    def all(self) -> list[Achievement]:
        try:
            docs = list(self._collection().stream())
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Failed to load achievement catalog: %s", e)
            raise StorageFailure("Failed to load achievement catalog") from e
        return [Achievement.model_validate({**doc.to_dict(), "id": doc.id}) for doc in docs]

    def get(self, achievement_id: str) -> Achievement | None:
        try:
            snap = self._collection().document(achievement_id).get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Failed to load achievement %s: %s", achievement_id, e)
            raise StorageFailure(f"Failed to load achievement {achievement_id}") from e
        if not snap.exists:
            return None
        return Achievement.model_validate({**snap.to_dict(), "id": achievement_id})

    def create(self, achievement: Achievement) -> Achievement:
        ref = self._collection().document(achievement.id)
        try:
            if ref.get().exists:
                raise ValueError("achievement_exists")
            duplicates = self._collection().where("name", "==", achievement.name).limit(1).get()
            if duplicates:
                raise ValueError("achievement_exists")
            ref.set(achievement.model_dump(by_alias=True, exclude={"id"}))
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Failed to create achievement %s: %s", achievement.id, e)
            raise StorageFailure(f"Failed to create achievement {achievement.id}") from e
        logger.info("Created Firestore achievement %s", achievement.id)
        return achievement


# ---------------------------------------------------------------------------
# Singleton factory
# ---------------------------------------------------------------------------
_catalog: AchievementCatalog | None = None


def get_achievement_catalog() -> AchievementCatalog:
    """Return the singleton ``AchievementCatalog`` instance."""
    from app.services.achievement_service import default_achievements  # local import to avoid circular deps

    global _catalog
    if _catalog is None:
        if is_mock_mode():
            logger.info("Using InMemoryAchievementCatalog seeded with defaults (mock mode)")
            _catalog = InMemoryAchievementCatalog(default_achievements())
        else:
            logger.info("Using FirestoreAchievementCatalog")
            _catalog = FirestoreAchievementCatalog()
    return _catalog
