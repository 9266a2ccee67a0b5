# tests/test_ledger.py
import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from lms.exceptions import AttendanceClosedError, NotFoundError
from lms.models import Attendance, PointLog, Profile
from lms.services.ledger_service import (
    ledger_service, level, material_source, progress_into_level,
)

D = date(2026, 3, 10)


def _count(db, model, **filters):
    conditions = [getattr(model, name) == value for name, value in filters.items()]
    stmt = select(func.count()).select_from(model).where(*conditions)
    return db.execute(stmt).scalar_one()


# --- derived values ---

def test_level_and_progress_at_249_points():
    assert level(249) == 3
    assert progress_into_level(249) == 49


def test_level_and_progress_at_zero():
    assert level(0) == 1
    assert progress_into_level(0) == 0


def test_level_boundary():
    assert level(99) == 1
    assert level(100) == 2
    assert progress_into_level(100) == 0


# --- profiles ---

def test_profile_created_on_first_access(db, user_id):
    profile = ledger_service.get_or_create_profile(db, user_id)
    assert profile.id == user_id
    assert profile.points == 0
    assert profile.streak == 0
    assert profile.role == "siswa"
    assert ledger_service.get_or_create_profile(db, user_id) is profile


# --- award_once ---

def test_award_once_is_idempotent(db, user_id):
    assert ledger_service.award_once(db, user_id, "material_abc", 50) is True
    assert ledger_service.award_once(db, user_id, "material_abc", 50) is False

    assert _count(db, PointLog, user_id=user_id, source="material_abc") == 1
    assert db.get(Profile, user_id).points == 50


def test_award_once_different_sources_accumulate(db, user_id):
    ledger_service.award_once(db, user_id, "material_a", 50)
    ledger_service.award_once(db, user_id, "quiz_b", 30)
    assert db.get(Profile, user_id).points == 80


def test_same_source_for_different_users_pays_both(db):
    a, b = uuid.uuid4(), uuid.uuid4()
    assert ledger_service.award_once(db, a, "quiz_1", 40)
    assert ledger_service.award_once(db, b, "quiz_1", 40)
    assert db.get(Profile, a).points == 40
    assert db.get(Profile, b).points == 40


def test_award_once_without_commit_joins_caller_transaction(db, user_id):
    ledger_service.get_or_create_profile(db, user_id)
    ledger_service.award_once(db, user_id, "quiz_x", 25, commit=False)
    db.rollback()
    assert db.get(Profile, user_id).points == 0
    assert _count(db, PointLog, user_id=user_id) == 0


# --- check-in ---

def test_first_check_in_starts_streak(db, user_id):
    result = ledger_service.check_in(db, user_id, attendance_open=True, today=D)
    assert result.checked_in is True
    assert result.already_checked_in is False
    assert result.points_awarded == 10
    assert result.points == 10
    assert result.streak == 1

    profile = db.get(Profile, user_id)
    assert profile.last_check_in_date == D
    assert _count(db, Attendance, user_id=user_id) == 1


def test_check_in_next_day_extends_streak(db, make_profile):
    uid = make_profile(points=40, streak=4, last_check_in_date=D)
    result = ledger_service.check_in(db, uid, attendance_open=True, today=D + timedelta(days=1))
    assert result.streak == 5
    assert result.points == 50


def test_check_in_after_gap_resets_streak(db, make_profile):
    uid = make_profile(points=40, streak=4, last_check_in_date=D)
    result = ledger_service.check_in(db, uid, attendance_open=True, today=D + timedelta(days=2))
    assert result.streak == 1
    assert result.points == 50


def test_check_in_long_gap_resets_streak(db, make_profile):
    uid = make_profile(streak=9, last_check_in_date=D)
    result = ledger_service.check_in(db, uid, attendance_open=True, today=D + timedelta(days=30))
    assert result.streak == 1


def test_second_check_in_same_day_is_noop(db, user_id):
    ledger_service.check_in(db, user_id, attendance_open=True, today=D)
    again = ledger_service.check_in(db, user_id, attendance_open=True, today=D)

    assert again.checked_in is False
    assert again.already_checked_in is True
    assert again.points_awarded == 0
    assert again.points == 10
    assert again.streak == 1
    assert _count(db, Attendance, user_id=user_id) == 1


def test_consecutive_days_build_streak(db, user_id):
    for offset in range(3):
        result = ledger_service.check_in(db, user_id, attendance_open=True, today=D + timedelta(days=offset))
    assert result.streak == 3
    assert result.points == 30


def test_check_in_closed_attendance_raises(db, user_id):
    with pytest.raises(AttendanceClosedError):
        ledger_service.check_in(db, user_id, attendance_open=False, today=D)
    assert _count(db, Attendance, user_id=user_id) == 0


def test_check_in_and_awards_commute(db, user_id):
    ledger_service.award_once(db, user_id, "material_1", 50)
    ledger_service.check_in(db, user_id, attendance_open=True, today=D)
    assert db.get(Profile, user_id).points == 60


def test_attendance_history_newest_first(db, user_id):
    ledger_service.check_in(db, user_id, attendance_open=True, today=D)
    ledger_service.check_in(db, user_id, attendance_open=True, today=D + timedelta(days=3))
    history = ledger_service.attendance_history(db, user_id)
    assert [r.date_only for r in history] == [D + timedelta(days=3), D]
    assert ledger_service.has_checked_in(db, user_id, D)
    assert not ledger_service.has_checked_in(db, user_id, D + timedelta(days=1))


# --- materials ---

def test_complete_material_pays_reward_once(db, user_id, make_material):
    material_id = make_material(xp_reward=70)

    first = ledger_service.complete_material(db, user_id, material_id)
    second = ledger_service.complete_material(db, user_id, material_id)

    assert first.awarded is True
    assert first.points_awarded == 70
    assert second.awarded is False
    assert second.points_awarded == 0
    assert second.points == 70
    assert _count(db, PointLog, user_id=user_id, source=material_source(material_id)) == 1


def test_complete_material_default_reward(db, user_id, make_material):
    material_id = make_material(xp_reward=None)
    result = ledger_service.complete_material(db, user_id, material_id)
    assert result.points_awarded == 50


def test_complete_missing_material(db, user_id):
    with pytest.raises(NotFoundError):
        ledger_service.complete_material(db, user_id, uuid.uuid4())


def test_completed_material_ids(db, user_id, make_material):
    m1, m2 = make_material(), make_material()
    ledger_service.complete_material(db, user_id, m1)
    ledger_service.award_once(db, user_id, "quiz_other", 10)
    assert ledger_service.completed_material_ids(db, user_id) == {str(m1)}
    assert str(m2) not in ledger_service.completed_material_ids(db, user_id)
