# tests/test_api.py
import uuid

import pytest
from fastapi.testclient import TestClient

from lms.api.deps import get_quiz_sessions
from lms.database import get_db
from lms.main import app
from lms.models import PointLog, Profile, Quiz, QuizAttempt
from lms.services.quiz_engine import QuizSessionRegistry
from lms.services.quiz_service import quiz_service


@pytest.fixture
def registry(session_factory):
    registry = QuizSessionRegistry(session_factory=session_factory, tick_seconds=0.01)
    yield registry
    registry.close_all()


@pytest.fixture
def client(session_factory, registry):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_quiz_sessions] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _auth(user_id):
    return {"X-User-Id": str(user_id)}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == "disabled"


def test_missing_identity_is_rejected(client):
    response = client.get("/api/me")
    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"

    response = client.get("/api/me", headers={"X-User-Id": "not-a-uuid"})
    assert response.status_code == 401


def test_me_shows_derived_level(client, make_profile):
    user_id = make_profile(points=249, streak=3)

    response = client.get("/api/me", headers=_auth(user_id))
    assert response.status_code == 200
    data = response.json()
    assert data["points"] == 249
    assert data["level"] == 3
    assert data["progress_into_level"] == 49
    assert data["points_per_level"] == 100
    assert data["streak"] == 3


def test_me_creates_profile_on_first_access(client, user_id, session_factory):
    response = client.get("/api/me", headers=_auth(user_id))
    assert response.status_code == 200
    assert response.json()["level"] == 1
    with session_factory() as db:
        assert db.get(Profile, user_id) is not None


def test_admin_routes_require_staff(client, make_profile):
    student = make_profile(role="siswa")
    response = client.patch("/api/admin/settings", json={"is_attendance_open": True}, headers=_auth(student))
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_check_in_flow(client, make_profile, user_id):
    admin = make_profile(role="admin")

    closed = client.post("/api/attendance/check-in", headers=_auth(user_id))
    assert closed.status_code == 409
    assert closed.json()["error"] == "attendance_closed"

    opened = client.patch("/api/admin/settings", json={"is_attendance_open": True}, headers=_auth(admin))
    assert opened.status_code == 200
    assert opened.json()["is_attendance_open"] is True

    first = client.post("/api/attendance/check-in", headers=_auth(user_id))
    assert first.status_code == 200
    data = first.json()
    assert data["checked_in"] is True
    assert data["points_awarded"] == 10
    assert data["points"] == 10
    assert data["streak"] == 1

    second = client.post("/api/attendance/check-in", headers=_auth(user_id))
    assert second.status_code == 200
    data = second.json()
    assert data["already_checked_in"] is True
    assert data["points_awarded"] == 0
    assert data["points"] == 10
    assert data["message"] == "You have already checked in today"

    overview = client.get("/api/attendance", headers=_auth(user_id)).json()
    assert overview["is_attendance_open"] is True
    assert overview["has_checked_in_today"] is True
    assert len(overview["history"]) == 1


def test_material_completion_pays_once(client, make_material, user_id):
    material_id = make_material(xp_reward=30)

    first = client.post(f"/api/materials/{material_id}/complete", headers=_auth(user_id))
    second = client.post(f"/api/materials/{material_id}/complete", headers=_auth(user_id))

    assert first.json()["awarded"] is True
    assert first.json()["points"] == 30
    assert second.json()["awarded"] is False
    assert second.json()["points"] == 30

    completed = client.get("/api/materials/completed", headers=_auth(user_id)).json()
    assert completed["material_ids"] == [str(material_id)]


def test_unknown_material_is_404(client, user_id):
    response = client.post(f"/api/materials/{uuid.uuid4()}/complete", headers=_auth(user_id))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_leaderboard_ranks_students_only(client, make_profile):
    low = make_profile(points=40, username="budi")
    high = make_profile(points=320, username="sari")
    make_profile(role="guru", points=1000, username="pak_guru")

    response = client.get("/api/leaderboard", headers=_auth(low))
    assert response.status_code == 200
    entries = response.json()["entries"]

    assert [e["user_id"] for e in entries] == [str(high), str(low)]
    assert entries[0]["rank"] == 1
    assert entries[0]["level"] == 4


def test_quiz_flow(client, registry, make_quiz, user_id, session_factory):
    quiz_id = make_quiz(questions=(1, 2), time_limit_seconds=600, xp_reward=80)

    opened = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=_auth(user_id))
    assert opened.status_code == 201
    snapshot = opened.json()
    assert snapshot["phase"] == "intro"
    assert snapshot["can_start"] is True
    session_id = snapshot["session_id"]
    base = f"/api/quizzes/sessions/{session_id}"

    started = client.post(f"{base}/start", headers=_auth(user_id)).json()
    assert started["phase"] == "playing"
    first_question = started["current_question"]
    assert "is_correct" not in str(first_question)

    early = client.post(f"{base}/submit", headers=_auth(user_id))
    assert early.status_code == 409

    client.put(f"{base}/answers", json={"question_id": first_question["id"], "option_index": 1}, headers=_auth(user_id))
    moved = client.post(f"{base}/next", headers=_auth(user_id)).json()
    assert moved["is_last_question"] is True
    client.put(
        f"{base}/answers",
        json={"question_id": moved["current_question"]["id"], "option_index": 0},
        headers=_auth(user_id),
    )

    submitted = client.post(f"{base}/submit", headers=_auth(user_id))
    assert submitted.status_code == 200
    result = submitted.json()["result"]
    assert result["score"] == 50
    assert result["xp_awarded"] == 40
    assert result["passed"] is False

    with session_factory() as db:
        assert quiz_service.get_attempt(db, user_id, quiz_id).score == 50
        assert db.get(Profile, user_id).points == 40

    # finished sessions leave the registry; the quiz reopens on its stored result
    assert client.get(base, headers=_auth(user_id)).status_code == 404
    assert len(registry) == 0

    reopened = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=_auth(user_id)).json()
    assert reopened["phase"] == "result"
    assert reopened["result"]["score"] == 50
    assert reopened["result"]["from_previous_attempt"] is True


def test_quiz_session_belongs_to_its_user(client, make_quiz, user_id):
    quiz_id = make_quiz(questions=(0,))
    session_id = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=_auth(user_id)).json()["session_id"]

    response = client.get(f"/api/quizzes/sessions/{session_id}", headers=_auth(uuid.uuid4()))
    assert response.status_code == 404


def test_empty_quiz_cannot_start(client, make_quiz, user_id):
    quiz_id = make_quiz(questions=())
    snapshot = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=_auth(user_id)).json()
    assert snapshot["can_start"] is False

    response = client.post(f"/api/quizzes/sessions/{snapshot['session_id']}/start", headers=_auth(user_id))
    assert response.status_code == 422


def test_quiz_authoring(client, make_profile):
    guru = make_profile(role="guru")

    created = client.post(
        "/api/admin/quizzes",
        json={"class_id": str(uuid.uuid4()), "title": "Perulangan", "time_limit_seconds": 300},
        headers=_auth(guru),
    )
    assert created.status_code == 201
    quiz_id = created.json()["quiz_id"]

    question = client.post(
        f"/api/admin/quizzes/{quiz_id}/questions",
        json={
            "question": "Which keyword starts a loop?",
            "options": [
                {"text": "for", "is_correct": True},
                {"text": "def"},
                {"text": "  "},
            ],
        },
        headers=_auth(guru),
    )
    assert question.status_code == 201
    assert question.json()["order_index"] == 0
    assert len(question.json()["options"]) == 2

    two_correct = client.post(
        f"/api/admin/quizzes/{quiz_id}/questions",
        json={
            "question": "Pick one",
            "options": [{"text": "a", "is_correct": True}, {"text": "b", "is_correct": True}],
        },
        headers=_auth(guru),
    )
    assert two_correct.status_code == 422

    zero_time = client.post(
        "/api/admin/quizzes",
        json={"class_id": str(uuid.uuid4()), "title": "Kosong", "time_limit_seconds": 0},
        headers=_auth(guru),
    )
    assert zero_time.status_code == 422

    deleted = client.delete(
        f"/api/admin/quizzes/{quiz_id}/questions/{question.json()['id']}",
        headers=_auth(guru),
    )
    assert deleted.status_code == 204


def test_reconcile_endpoint_pays_missing_awards(client, make_profile, make_quiz, session_factory):
    admin = make_profile(role="admin")
    student = make_profile()
    quiz_id = make_quiz(questions=(0,), xp_reward=50)

    with session_factory() as db:
        db.add(QuizAttempt(quiz_id=quiz_id, user_id=student, score=100, answers={}))
        db.commit()

    response = client.post("/api/admin/quizzes/reconcile", headers=_auth(admin))
    assert response.status_code == 200
    assert response.json()["granted"] == 1

    with session_factory() as db:
        assert db.get(Profile, student).points == 50
        assert db.query(PointLog).filter(PointLog.user_id == student).count() == 1


def test_closing_a_session(client, registry, make_quiz, user_id):
    quiz_id = make_quiz(questions=(0,), time_limit_seconds=600)
    session_id = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=_auth(user_id)).json()["session_id"]
    client.post(f"/api/quizzes/sessions/{session_id}/start", headers=_auth(user_id))

    closed = client.delete(f"/api/quizzes/sessions/{session_id}", headers=_auth(user_id))
    assert closed.status_code == 204
    assert len(registry) == 0


def test_submit_after_quiz_deleted_is_404(client, make_quiz, user_id, session_factory):
    quiz_id = make_quiz(questions=(0,), time_limit_seconds=600)
    session_id = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=_auth(user_id)).json()["session_id"]
    base = f"/api/quizzes/sessions/{session_id}"
    client.post(f"{base}/start", headers=_auth(user_id))

    with session_factory() as db:
        db.delete(db.get(Quiz, quiz_id))
        db.commit()

    response = client.post(f"{base}/submit", headers=_auth(user_id))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
