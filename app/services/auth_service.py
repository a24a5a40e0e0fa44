"""Authentication service backed by Firebase Admin SDK.

When ``FIREBASE_CREDENTIALS`` is set, tokens are verified against Firebase.
Otherwise the service runs in **mock auth mode** for local development and
testing: any non-empty Bearer token is accepted, and the token value itself
is used as the user ID.

Admin rights come from the ``admin`` custom claim on the Firebase token or
from the ``ADMIN_UIDS`` setting.
"""

import logging

from firebase_admin import auth as firebase_auth

from app.config import settings
from app.db.firestore import get_firebase_app, is_mock_mode
from app.models.auth import Actor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------

def verify_token(token: str) -> dict | None:
    """Verify a Bearer token and return decoded claims.

    Returns a dict with ``uid``, ``email`` and ``admin`` keys, or *None*
    when the token is invalid / expired.
    """
    if is_mock_mode():
        return _verify_mock_token(token)

    try:
        decoded = firebase_auth.verify_id_token(token, app=get_firebase_app())
        return {
            "uid": decoded["uid"],
            "email": decoded.get("email", ""),
            "admin": bool(decoded.get("admin", False)),
        }
    except Exception as e:
        logger.warning("Firebase token verification failed: %s", e)
        return None


def _verify_mock_token(token: str) -> dict | None:
    """Accept any non-empty token in mock mode. The value *is* the uid."""
    if not token:
        return None
    return {"uid": token, "email": f"{token}@mock.local", "admin": False}


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

def is_admin(claims: dict) -> bool:
    """Return whether verified *claims* carry administrative rights."""
    return bool(claims.get("admin")) or claims.get("uid") in settings.admin_uids_set


def actor_from_claims(claims: dict) -> Actor:
    """Build the request ``Actor`` from verified token claims."""
    return Actor(uid=claims["uid"], email=claims.get("email", ""), is_admin=is_admin(claims))
