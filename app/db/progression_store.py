"""Pluggable progression storage: in-memory for dev/test, Firestore for production.

Records are read whole, mutated in memory and written back whole. ``save``
is a compare-and-swap on ``Progression.version`` so that two requests racing
on the same user cannot silently overwrite each other; the loser gets a
``ConflictError`` and is expected to reload and retry.

``get_progression_store()`` returns a singleton whose concrete type depends
on whether the app is running in mock mode.
"""

import abc
import logging
import threading
from datetime import datetime, timezone

from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore_v1 import DocumentReference, Transaction

from app.config import settings
from app.db.firestore import get_firestore_client, is_mock_mode
from app.errors import ConflictError, StorageFailure
from app.models.progression import Progression

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class ProgressionStore(abc.ABC):
    """Common interface for progression persistence."""

    @abc.abstractmethod
    def get(self, user_id: str) -> Progression | None:
        """Return the stored progression for *user_id*, or *None*."""

    def get_or_create(
        self, user_id: str, now: datetime | None = None, login_streak: int = 0,
    ) -> Progression:
        """Return the stored progression, or a fresh unsaved one.

        A fresh record has ``version == 0`` and is only persisted by the
        first successful ``save``, so concurrent creators race on the same
        compare-and-swap as any other write.
        """
        existing = self.get(user_id)
        if existing is not None:
            return existing
        return Progression.new(user_id, now or _utcnow(), login_streak=login_streak)

    @abc.abstractmethod
    def save(self, progression: Progression) -> Progression:
        """Persist the whole record if its version is current.

        Returns the stored copy with ``version`` incremented.
        Raises ``ConflictError`` when the stored version differs.
        """

    @abc.abstractmethod
    def delete_all(self) -> int:
        """Administrative bulk reset. Returns the number of records removed."""


# ---------------------------------------------------------------------------
# In-memory implementation (mock / test mode)
# ---------------------------------------------------------------------------

class InMemoryProgressionStore(ProgressionStore):
    """Dict-backed store. Hands out deep copies so unsaved edits never leak."""

    def __init__(self) -> None:
        self._records: dict[str, Progression] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Progression | None:
        with self._lock:
            record = self._records.get(user_id)
            return record.model_copy(deep=True) if record is not None else None

    def save(self, progression: Progression) -> Progression:
        with self._lock:
            current = self._records.get(progression.user)
            stored_version = current.version if current is not None else 0
            if stored_version != progression.version:
                raise ConflictError(
                    f"Progression for {progression.user} is at version {stored_version}, "
                    f"write was based on {progression.version}"
                )
            saved = progression.model_copy(
                deep=True,
                update={"version": progression.version + 1, "updated_at": _utcnow()},
            )
            self._records[progression.user] = saved
            return saved.model_copy(deep=True)

    def delete_all(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records.clear()
        logger.info("Reset %d in-memory progression records", count)
        return count


# ---------------------------------------------------------------------------
# Firestore implementation
# ---------------------------------------------------------------------------

class FirestoreProgressionStore(ProgressionStore):
    """Firestore-backed store using ``progressions/{uid}`` documents."""

    def __init__(self, collection: str | None = None) -> None:
        self.collection = collection or settings.PROGRESSION_COLLECTION

    def _ref(self, user_id: str) -> DocumentReference:
        return get_firestore_client().collection(self.collection).document(user_id)

    def get(self, user_id: str) -> Progression | None:
        try:
            snap = self._ref(user_id).get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Failed to load progression for %s: %s", user_id, e)
            raise StorageFailure("Failed to load progression") from e
        if not snap.exists:
            return None
        return Progression.model_validate(snap.to_dict())

    def save(self, progression: Progression) -> Progression:
        ref = self._ref(progression.user)
        db = get_firestore_client()

        @firestore_transaction
        def _save(transaction: Transaction) -> Progression:
            snap = ref.get(transaction=transaction)
            stored_version = int(snap.to_dict().get("version", 0) or 0) if snap.exists else 0
            if stored_version != progression.version:
                raise ConflictError(
                    f"Progression for {progression.user} is at version {stored_version}, "
                    f"write was based on {progression.version}"
                )
            saved = progression.model_copy(
                deep=True,
                update={"version": progression.version + 1, "updated_at": _utcnow()},
            )
            transaction.set(ref, saved.model_dump(by_alias=True))
            return saved

        try:
            return _save(db.transaction())
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Failed to save progression for %s: %s", progression.user, e)
            raise StorageFailure("Failed to save progression") from e

    def delete_all(self) -> int:
        db = get_firestore_client()
        count = 0
        batch = db.batch()
        for doc in db.collection(self.collection).stream():
            batch.delete(doc.reference)
            count += 1
            # Firestore caps a batch at 500 writes
            if count % 500 == 0:
                batch.commit()
                batch = db.batch()
        batch.commit()
        logger.info("Reset %d Firestore progression documents", count)
        return count


def firestore_transaction(func):
    """Decorator to run *func* inside a Firestore transaction."""
    from google.cloud.firestore_v1 import transactional
    return transactional(func)


# ---------------------------------------------------------------------------
# Singleton factory
# ---------------------------------------------------------------------------
_store: ProgressionStore | None = None


def get_progression_store() -> ProgressionStore:
    """Return the singleton ``ProgressionStore`` instance."""
    global _store
    if _store is None:
        if is_mock_mode():
            logger.info("Using InMemoryProgressionStore (mock mode)")
            _store = InMemoryProgressionStore()
        else:
            logger.info("Using FirestoreProgressionStore")
            _store = FirestoreProgressionStore()
    return _store
