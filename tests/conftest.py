# tests/conftest.py
import os
import tempfile
import uuid

# Settings are read at import time; keep the suite off Redis and real databases
_tmp_dir = tempfile.mkdtemp(prefix="lms-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir}/app.db"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_PER_HOUR"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from sqlalchemy.orm import sessionmaker

from lms.database import create_db_engine, init_db
from lms.models import Material, Profile, Quiz, QuizQuestion


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database per test"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test_lms.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def make_profile(session_factory):
    def _make(role="siswa", points=0, streak=0, last_check_in_date=None, username=None):
        with session_factory() as session:
            profile = Profile(
                id=uuid.uuid4(),
                role=role,
                points=points,
                streak=streak,
                last_check_in_date=last_check_in_date,
                username=username,
            )
            session.add(profile)
            session.commit()
            return profile.id
    return _make


@pytest.fixture
def make_quiz(session_factory):
    """
    Create a quiz and return its id

    questions is a list of correct option indexes, one per question; every
    question gets four options.
    """
    def _make(questions=(0, 1, 2, 3), time_limit_seconds=60, xp_reward=100):
        with session_factory() as session:
            quiz = Quiz(
                class_id=uuid.uuid4(),
                title="Dasar Python",
                time_limit_seconds=time_limit_seconds,
                xp_reward=xp_reward,
            )
            session.add(quiz)
            session.flush()
            for order, correct in enumerate(questions):
                session.add(QuizQuestion(
                    quiz_id=quiz.id,
                    question=f"Question {order + 1}",
                    options=[
                        {"text": f"Option {i}", "is_correct": i == correct}
                        for i in range(4)
                    ],
                    order_index=order,
                ))
            session.commit()
            return quiz.id
    return _make


@pytest.fixture
def make_material(session_factory):
    def _make(xp_reward=None):
        with session_factory() as session:
            material = Material(class_id=uuid.uuid4(), title="Variabel dan Tipe Data", xp_reward=xp_reward)
            session.add(material)
            session.commit()
            return material.id
    return _make
