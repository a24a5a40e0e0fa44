"""Firebase Admin SDK bootstrap shared by auth and storage.

Nothing touches Firebase until the first call to one of the public helpers.
An empty ``FIREBASE_CREDENTIALS`` (or credentials that fail to load) puts the
process in **mock mode**: stores are in-memory and any non-empty Bearer token
is accepted as its own UID.

``FIREBASE_CREDENTIALS`` may be a path to a service-account JSON file or the
JSON document itself.
"""

import json
import logging
from dataclasses import dataclass

import firebase_admin
from firebase_admin import credentials, firestore

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class _FirebaseState:
    app: firebase_admin.App | None = None
    client: object | None = None  # google.cloud.firestore_v1.client.Client
    mock_mode: bool = False
    ready: bool = False


_state = _FirebaseState()


def _certificate_from(value: str) -> credentials.Certificate:
    raw = value.strip()
    if raw.startswith("{"):
        return credentials.Certificate(json.loads(raw))
    return credentials.Certificate(raw)


def _bootstrap() -> _FirebaseState:
    if _state.ready:
        return _state
    _state.ready = True

    if not settings.FIREBASE_CREDENTIALS:
        _state.mock_mode = True
        logger.warning(
            "FIREBASE_CREDENTIALS not set; progression data is kept in memory "
            "and Bearer tokens are trusted as UIDs."
        )
        return _state

    try:
        _state.app = firebase_admin.initialize_app(_certificate_from(settings.FIREBASE_CREDENTIALS))
        _state.client = firestore.client(app=_state.app)
        logger.info("Connected to Firestore")
    except Exception as e:
        _state.mock_mode = True
        logger.warning("Could not initialise Firebase (%s); using mock mode", e)
    return _state


def is_mock_mode() -> bool:
    """Return *True* when running without usable Firebase credentials."""
    return _bootstrap().mock_mode


def get_firebase_app() -> firebase_admin.App | None:
    """Return the Firebase app, or *None* in mock mode."""
    return _bootstrap().app


def get_firestore_client():
    """Return the Firestore client, or *None* in mock mode."""
    return _bootstrap().client
