"""Tests for the progression and achievement endpoints.

In mock auth mode (no FIREBASE_CREDENTIALS set), any non-empty Bearer token is
accepted and the token value is used as the user ID. Admin rights come from
``ADMIN_UIDS``.
"""

import pytest
from fastapi.testclient import TestClient

from app.api.v1.endpoints.achievements import limiter as achievements_limiter
from app.api.v1.endpoints.progression import limiter as progression_limiter
from app.config import settings
from app.db.achievement_catalog import InMemoryAchievementCatalog, get_achievement_catalog
from app.db.progression_store import InMemoryProgressionStore
from app.main import app
from app.services.achievement_service import default_achievements
from app.services.progression_service import ProgressionService, get_progression_service

client = TestClient(app)

ADMIN = "admin-uid"

# Counter for unique mock user tokens across tests
_uid_counter = 0


@pytest.fixture(autouse=True)
def _reset_rate_limiters() -> None:
    """Reset SlowAPI in-memory counters to avoid cross-test leakage."""
    for limiter in (progression_limiter, achievements_limiter):
        storage = getattr(limiter, "_storage", None)
        if storage is not None and hasattr(storage, "reset"):
            storage.reset()


@pytest.fixture(autouse=True)
def _backends(monkeypatch):
    """Give every test fresh in-memory backends and one admin UID."""
    monkeypatch.setattr(settings, "ADMIN_UIDS", ADMIN)
    catalog = InMemoryAchievementCatalog(default_achievements())
    service = ProgressionService(InMemoryProgressionStore(), catalog)
    app.dependency_overrides[get_progression_service] = lambda: service
    app.dependency_overrides[get_achievement_catalog] = lambda: catalog
    yield service
    app.dependency_overrides.clear()


def _next_token() -> str:
    """Return a unique mock Bearer token / uid for each test."""
    global _uid_counter
    _uid_counter += 1
    return f"mock-uid-{_uid_counter}"


def _auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _quiz_body(user_id: str, **overrides) -> dict:
    body = {
        "userId": user_id,
        "quizId": "quiz-1",
        "score": 80,
        "correctAnswers": 8,
        "totalQuestions": 10,
        "difficulty": "medium",
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Activity recording
# ---------------------------------------------------------------------------

class TestRecordQuiz:
    """POST /api/v1/progression/quiz tests."""

    def test_record_quiz_unlocks_first_achievement(self):
        uid = _next_token()
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=_quiz_body(uid))
        assert resp.status_code == 200
        data = resp.json()
        assert data["progression"]["user"] == uid
        assert data["progression"]["stats"]["totalPoints"] == 90
        assert data["progression"]["stats"]["quizStreak"] == 1
        assert len(data["progression"]["quizzes"]) == 1
        assert data["progression"]["quizzes"][0]["quizRef"] == "quiz-1"
        assert [a["id"] for a in data["newAchievements"]] == ["rune_novice"]

    def test_second_quiz_does_not_repeat_unlock(self):
        uid = _next_token()
        client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=_quiz_body(uid))
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=_quiz_body(uid, score=5))
        data = resp.json()
        assert data["newAchievements"] == []
        assert data["progression"]["stats"]["totalPoints"] == 95
        assert len(data["progression"]["achievements"]) == 1

    def test_missing_field_rejected(self):
        uid = _next_token()
        body = _quiz_body(uid)
        del body["difficulty"]
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=body)
        assert resp.status_code == 422

    def test_quiz_without_questions_rejected(self):
        uid = _next_token()
        body = _quiz_body(uid, correctAnswers=0, totalQuestions=0)
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=body)
        assert resp.status_code == 422

    def test_recording_for_another_user_forbidden(self, _backends):
        uid = _next_token()
        other = _next_token()
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=_quiz_body(other))
        assert resp.status_code == 403
        assert resp.json()["detail"]["error"]["code"] == "forbidden"
        assert _backends.store.get(other) is None

    def test_admin_records_for_any_user(self):
        other = _next_token()
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(ADMIN), json=_quiz_body(other))
        assert resp.status_code == 200
        assert resp.json()["progression"]["user"] == other

    def test_no_auth(self):
        resp = client.post("/api/v1/progression/quiz", json=_quiz_body("x"))
        assert resp.status_code in (401, 403)


class TestRecordPuzzleAndReading:
    """POST /api/v1/progression/puzzle and /reading tests."""

    def test_record_puzzle(self):
        uid = _next_token()
        resp = client.post("/api/v1/progression/puzzle", headers=_auth_header(uid), json={
            "userId": uid, "puzzleId": "puzzle-1",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["progression"]["puzzles"][0]["timeSpentSeconds"] == 0
        # 15 for the puzzle + 15 for Puzzle Solver
        assert data["progression"]["stats"]["totalPoints"] == 30

    def test_reading_upsert(self):
        uid = _next_token()
        h = _auth_header(uid)
        client.post("/api/v1/progression/reading", headers=h, json={
            "userId": uid, "readingId": "reading-1", "isCompleted": False,
        })
        resp = client.post("/api/v1/progression/reading", headers=h, json={
            "userId": uid, "readingId": "reading-1", "isCompleted": True,
        })
        assert resp.status_code == 200
        readings = resp.json()["progression"]["readings"]
        assert len(readings) == 1
        assert readings[0]["isCompleted"] is True
        assert readings[0]["readAt"] is not None
        assert [a["id"] for a in resp.json()["newAchievements"]] == ["curious_mind"]


class TestRecordLogin:
    """POST /api/v1/progression/login tests."""

    def test_login_defaults_to_caller(self):
        uid = _next_token()
        resp = client.post("/api/v1/progression/login", headers=_auth_header(uid))
        assert resp.status_code == 200
        data = resp.json()
        assert data["progression"]["user"] == uid
        assert data["progression"]["stats"]["loginStreak"] == 1

    def test_same_day_login_keeps_streak(self):
        uid = _next_token()
        h = _auth_header(uid)
        client.post("/api/v1/progression/login", headers=h, json={"userId": uid})
        resp = client.post("/api/v1/progression/login", headers=h, json={"userId": uid})
        assert resp.json()["progression"]["stats"]["loginStreak"] == 1

    def test_login_for_another_user_forbidden(self):
        uid = _next_token()
        resp = client.post("/api/v1/progression/login", headers=_auth_header(uid), json={"userId": "someone-else"})
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Progression reads
# ---------------------------------------------------------------------------

class TestGetProgression:
    """GET /api/v1/progression/{userId} tests."""

    def test_owner_reads_progression_with_resolved_achievements(self):
        uid = _next_token()
        client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=_quiz_body(uid))
        resp = client.get(f"/api/v1/progression/{uid}", headers=_auth_header(uid))
        assert resp.status_code == 200
        data = resp.json()
        assert data["user"] == uid
        assert data["achievements"][0]["achievementRef"] == "rune_novice"
        assert data["achievements"][0]["achievement"]["name"] == "Rune Novice"

    def test_non_admin_forbidden(self):
        owner = _next_token()
        client.post("/api/v1/progression/login", headers=_auth_header(owner))
        resp = client.get(f"/api/v1/progression/{owner}", headers=_auth_header(_next_token()))
        assert resp.status_code == 403

    def test_admin_allowed(self):
        owner = _next_token()
        client.post("/api/v1/progression/login", headers=_auth_header(owner))
        resp = client.get(f"/api/v1/progression/{owner}", headers=_auth_header(ADMIN))
        assert resp.status_code == 200
        assert resp.json()["user"] == owner

    def test_not_found(self):
        uid = _next_token()
        resp = client.get(f"/api/v1/progression/{uid}", headers=_auth_header(uid))
        assert resp.status_code == 404
        assert resp.json()["detail"]["error"]["code"] == "progression_not_found"

    def test_reset_requires_admin(self):
        uid = _next_token()
        client.post("/api/v1/progression/login", headers=_auth_header(uid))
        assert client.delete("/api/v1/progression", headers=_auth_header(uid)).status_code == 403
        resp = client.delete("/api/v1/progression", headers=_auth_header(ADMIN))
        assert resp.status_code == 200
        assert resp.json()["deleted"] == 1


class TestEvaluationIsolation:
    """A failing catalog must not lose the recorded activity."""

    def test_broken_catalog_still_records_quiz(self, _backends):
        class BrokenCatalog(InMemoryAchievementCatalog):
            def all(self):
                raise RuntimeError("catalog unavailable")

        service = ProgressionService(_backends.store, BrokenCatalog())
        app.dependency_overrides[get_progression_service] = lambda: service

        uid = _next_token()
        resp = client.post("/api/v1/progression/quiz", headers=_auth_header(uid), json=_quiz_body(uid))
        assert resp.status_code == 200
        data = resp.json()
        assert data["newAchievements"] == []
        assert data["progression"]["stats"]["totalPoints"] == 80


# ---------------------------------------------------------------------------
# Achievement catalog
# ---------------------------------------------------------------------------

class TestAchievements:
    """/api/v1/achievements tests."""

    def test_list_achievements(self):
        resp = client.get("/api/v1/achievements", headers=_auth_header(_next_token()))
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 12
        names = {a["name"] for a in data["achievements"]}
        assert "Rune Scholar" in names

    def test_get_achievement(self):
        resp = client.get("/api/v1/achievements/rune_scholar", headers=_auth_header(_next_token()))
        assert resp.status_code == 200
        requirement = resp.json()["requirement"]
        assert requirement == {"type": "quiz_completed", "count": 5, "difficulty": "hard", "perfectScore": True}

    def test_get_missing_achievement(self):
        resp = client.get("/api/v1/achievements/nope", headers=_auth_header(_next_token()))
        assert resp.status_code == 404

    def test_create_requires_admin(self):
        body = {
            "name": "Puzzle Fiend",
            "description": "Complete 50 puzzles",
            "category": "puzzle",
            "requirement": {"type": "puzzle_completed", "count": 50},
            "points": 60,
        }
        resp = client.post("/api/v1/achievements", headers=_auth_header(_next_token()), json=body)
        assert resp.status_code == 403

        resp = client.post("/api/v1/achievements", headers=_auth_header(ADMIN), json=body)
        assert resp.status_code == 201
        assert resp.json()["id"] == "puzzle_fiend"

        resp = client.post("/api/v1/achievements", headers=_auth_header(ADMIN), json=body)
        assert resp.status_code == 409

    def test_create_rejects_unknown_requirement_type(self):
        resp = client.post("/api/v1/achievements", headers=_auth_header(ADMIN), json={
            "name": "Mystery",
            "description": "???",
            "category": "general",
            "requirement": {"type": "runes_forgotten", "count": 1},
        })
        assert resp.status_code == 422


class TestHealth:

    def test_health(self):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
