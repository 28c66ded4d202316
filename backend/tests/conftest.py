import json
import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Point the app at a throwaway database before quizcraft is imported.
_DB_PATH = Path(tempfile.gettempdir()) / f"quizcraft-test-{os.getpid()}.db"
if _DB_PATH.exists():
    _DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ.setdefault("ENV", "dev")

from sqlmodel import Session  # noqa: E402

from quizcraft import services  # noqa: E402
from quizcraft.database import create_db_and_tables, engine  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Create the schema once for the whole run and drop the file afterwards."""
    create_db_and_tables()
    yield
    engine.dispose()
    if _DB_PATH.exists():
        _DB_PATH.unlink()


@pytest.fixture(autouse=True)
def clear_page_cache():
    services.page_cache.clear()
    yield


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


@pytest.fixture
def creator(db):
    return services.AuthService(db).register("Quiz Creator", unique_email("creator"), "secret123")


def mc_question(points=2, text="Which keyword defines a function?"):
    return {
        "type": "multiple_choice",
        "text": text,
        "points": points,
        "choices": [
            {"text": "def", "isCorrect": True},
            {"text": "func", "isCorrect": False},
        ],
    }


def tf_question(correct=True, points=1, text="Python is dynamically typed."):
    return {"type": "true_false", "text": text, "points": points, "correctAnswer": correct}


def quiz_form(questions, **overrides):
    data = {
        "title": "Python basics",
        "description": "A short warm-up quiz.",
        "timer_mode": "none",
        "questions": json.dumps(questions),
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_quiz(db, creator):
    """Create a quiz owned by `creator` and return its id."""
    def _make(questions=None, live=False, **overrides):
        if questions is None:
            questions = [mc_question(), tf_question()]
        result = services.QuizService(db).upsert_quiz(quiz_form(questions, **overrides), user_id=creator.id)
        assert not result.get("error"), result
        if live:
            assert services.QuizService(db).set_quiz_live(result["quiz_id"], True, user_id=creator.id)["is_live"]
        return result["quiz_id"]
    return _make
