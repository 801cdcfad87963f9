"""Shared fixtures: an app on in-memory SQLite and a couple of ready-made quizzes."""

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from toastmaster.services import host_controller, session_store
from toastmaster.services.question_service import make_option


# ============================================================================
# APP
# ============================================================================

@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        UPLOADS_DIR = str(tmp_path / "uploads")
        PUBLIC_BASE_URL = "https://party.example"

    app = create_app(_Config)
    with app.app_context():
        yield app
        host_controller.drop_controllers()
        session_store.clear_listeners()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ============================================================================
# QUIZ DATA
# ============================================================================

def build_question(question_id, option_count=2, correct=0, point_type="standard", time_limit=30):
    options = [make_option(i, text=f"Option {i}") for i in range(option_count)]
    options[correct]["isCorrect"] = True
    return {
        "id": question_id,
        "question": f"Question {question_id}?",
        "options": options,
        "timeLimit": time_limit,
        "pointType": point_type,
    }


@pytest.fixture
def questions():
    """Q1: two options, a correct, standard. Q2: four options, c correct, double."""
    return [
        build_question("q1", option_count=2, correct=0, point_type="standard"),
        build_question("q2", option_count=4, correct=2, point_type="double"),
    ]


@pytest.fixture
def session_code(app, questions):
    """A quiz in the lobby, created straight in the store (no host controller)."""
    assert session_store.create({"sessionCode": "ABC123", "title": "Team Night", "questions": questions})
    return "ABC123"


@pytest.fixture
def live_code(session_code):
    """The same quiz with question 0 live."""
    assert session_store.apply_partial_update(session_code, {"isActive": True})
    return session_code


@pytest.fixture
def controller(app, questions):
    result = host_controller.open_session("Team Night", questions, session_code="HOST42")
    assert result
    return host_controller.get_controller("HOST42")
