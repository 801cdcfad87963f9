"""
Unit tests for answer resolution and scoring.

Tests cover:
- Correct / wrong / double scoring and the totalScore invariant
- Idempotent resubmission and last-answer-wins
- Auto-join of unknown participants
- Fallback resolution and its switch
- Late answer policies
- Interleaved submissions counted exactly once
"""

import pytest

from toastmaster.services import grading_service, participant_service, session_store
from toastmaster.services.results_service import tally


def _participant(code, participant_id):
    return session_store.get(code)["participants"][participant_id]


@pytest.fixture
def alice(live_code):
    assert participant_service.join(live_code, "alice", "Alice")
    return "alice"


# ============================================================================
# SCORING
# ============================================================================

def test_correct_answer_scores_standard_points(live_code, alice):
    result = grading_service.submit_answer(live_code, alice, "q1", "a")
    assert result
    assert result.data == {"questionId": "q1", "optionId": "a", "correct": True, "points": 100, "totalScore": 100}
    participant = _participant(live_code, alice)
    assert participant["responses"] == {"q1": "a"}
    assert participant["scores"] == {"q1": 100}
    assert participant["totalScore"] == 100


def test_wrong_answer_scores_zero(live_code, alice):
    result = grading_service.submit_answer(live_code, alice, "q1", "b")
    assert result
    assert result.data["correct"] is False
    assert _participant(live_code, alice)["scores"] == {"q1": 0}


def test_double_question_and_total_is_sum_of_scores(live_code, alice):
    grading_service.submit_answer(live_code, alice, "q1", "a")
    session_store.apply_partial_update(live_code, {"currentQuestionIndex": 1})
    grading_service.submit_answer(live_code, alice, "q2", "c")
    participant = _participant(live_code, alice)
    assert participant["scores"] == {"q1": 100, "q2": 200}
    assert participant["totalScore"] == sum(participant["scores"].values()) == 300


ANSWER_ORDERS = {
    "in_order": [
        ("alice", "q1", "a"), ("bob", "q1", "b"), 1, ("alice", "q2", "c"), ("bob", "q2", "d"),
    ],
    "overwrites": [
        ("alice", "q1", "b"), ("alice", "q1", "a"), ("bob", "q1", "a"), 1,
        ("alice", "q2", "a"), ("alice", "q2", "c"), ("bob", "q2", "c"), ("bob", "q2", "b"),
    ],
    "late_answers": [
        1, ("alice", "q2", "c"), ("alice", "q1", "a"), ("bob", "q1", "a"),
        ("bob", "q2", "c"), ("alice", "q1", "b"),
    ],
    "late_overwrite": [
        ("bob", "q1", "a"), 1, ("bob", "q1", "b"), ("bob", "q2", "c"), ("alice", "q1", "a"), ("bob", "q1", "a"),
    ],
}


@pytest.mark.parametrize("policy", ["reject", "zero", "accept"])
@pytest.mark.parametrize("order", sorted(ANSWER_ORDERS))
def test_total_score_is_sum_of_scores_in_any_order(app, live_code, policy, order):
    app.config["LATE_ANSWER_POLICY"] = policy
    participant_service.join(live_code, "alice", "Alice")
    participant_service.join(live_code, "bob", "Bob")

    for step in ANSWER_ORDERS[order]:
        if isinstance(step, int):
            assert session_store.apply_partial_update(live_code, {"currentQuestionIndex": step})
        else:
            grading_service.submit_answer(live_code, *step)

        for participant in session_store.get(live_code)["participants"].values():
            assert participant["totalScore"] == sum(participant["scores"].values())


def test_identical_resubmission_is_idempotent(live_code, alice):
    first = grading_service.submit_answer(live_code, alice, "q1", "a")
    second = grading_service.submit_answer(live_code, alice, "q1", "a")
    assert first.data == second.data
    participant = _participant(live_code, alice)
    assert participant["scores"] == {"q1": 100}
    assert participant["totalScore"] == 100


def test_changed_answer_overwrites_score_and_tally(live_code, alice):
    grading_service.submit_answer(live_code, alice, "q1", "a")
    grading_service.submit_answer(live_code, alice, "q1", "b")
    document = session_store.get(live_code)
    assert document["participants"][alice]["scores"] == {"q1": 0}
    assert document["participants"][alice]["totalScore"] == 0
    assert tally(document, "q1") == {"b": [alice]}


# ============================================================================
# AUTO-JOIN
# ============================================================================

def test_unknown_participant_is_auto_joined(live_code):
    result = grading_service.submit_answer(live_code, "ghost1234", "q1", "a")
    assert result
    participant = _participant(live_code, "ghost1234")
    assert participant["username"] == "Participant-ghos"
    assert participant["totalScore"] == 100


def test_auto_join_failure_reports_participant_not_found(live_code):
    # an id the registry refuses cannot be auto-joined
    result = grading_service.submit_answer(live_code, "not valid!", "q1", "a")
    assert not result
    assert result.reason == "participant_not_found"


def test_unknown_session(app):
    result = grading_service.submit_answer("NOPE00", "alice", "q1", "a")
    assert not result
    assert result.reason == "not_found"


# ============================================================================
# RESOLUTION
# ============================================================================

def test_option_resolved_by_text_and_position(live_code, alice):
    by_text = grading_service.submit_answer(live_code, alice, "q1", "option 0")
    assert by_text.data["optionId"] == "a"
    by_position = grading_service.submit_answer(live_code, alice, "q1", "1")
    assert by_position.data["optionId"] == "b"


def test_stale_question_id_falls_back_to_current_question(live_code, alice):
    result = grading_service.submit_answer(live_code, alice, "old-id", "a")
    assert result
    # recorded under the resolved id, never the stale one
    assert _participant(live_code, alice)["responses"] == {"q1": "a"}


def test_fallbacks_can_be_switched_off(app, live_code, alice):
    app.config["RESOLUTION_FALLBACKS"] = False
    result = grading_service.submit_answer(live_code, alice, "old-id", "a")
    assert not result
    assert result.reason == "question_not_found"
    result = grading_service.submit_answer(live_code, alice, "q1", "option 0")
    assert not result
    assert result.reason == "option_not_found"


def test_unknown_option_fails(live_code, alice):
    result = grading_service.submit_answer(live_code, alice, "q1", "zzz")
    assert not result
    assert result.reason == "option_not_found"
    assert _participant(live_code, alice)["responses"] == {}


# ============================================================================
# LATE ANSWERS
# ============================================================================

def test_late_answer_rejected_by_default(live_code, alice):
    session_store.apply_partial_update(live_code, {"currentQuestionIndex": 1})
    result = grading_service.submit_answer(live_code, alice, "q1", "a")
    assert not result
    assert result.reason == "late_answer"


def test_answer_while_results_show_is_late(live_code, alice):
    session_store.apply_partial_update(live_code, {"showResults": True, "isActive": False})
    assert grading_service.submit_answer(live_code, alice, "q1", "a").reason == "late_answer"


def test_late_answer_zero_policy(app, live_code, alice):
    app.config["LATE_ANSWER_POLICY"] = "zero"
    session_store.apply_partial_update(live_code, {"currentQuestionIndex": 1})
    result = grading_service.submit_answer(live_code, alice, "q1", "a")
    assert result
    assert result.data["points"] == 0
    assert _participant(live_code, alice)["responses"] == {"q1": "a"}


def test_late_answer_accept_policy(app, live_code, alice):
    app.config["LATE_ANSWER_POLICY"] = "accept"
    session_store.apply_partial_update(live_code, {"currentQuestionIndex": 1})
    assert grading_service.submit_answer(live_code, alice, "q1", "a").data["points"] == 100


# ============================================================================
# SCENARIOS
# ============================================================================

def test_interleaved_answers_counted_exactly_once(live_code, monkeypatch):
    participant_service.join(live_code, "alice", "Alice")
    participant_service.join(live_code, "bob", "Bob")

    real_get = session_store.get
    calls = {"n": 0}

    def interleaving_get(code):
        document = real_get(code)
        calls["n"] += 1
        if calls["n"] == 1:
            # Alice's write lands between Bob's read and Bob's write
            assert grading_service.submit_answer(code, "alice", "q1", "a")
        return document

    monkeypatch.setattr(session_store, "get", interleaving_get)
    assert grading_service.submit_answer(live_code, "bob", "q1", "b")
    monkeypatch.undo()

    document = session_store.get(live_code)
    assert tally(document, "q1") == {"a": ["alice"], "b": ["bob"]}
    assert document["participants"]["alice"]["totalScore"] == 100
    assert document["participants"]["bob"]["totalScore"] == 0


def test_gives_up_when_store_keeps_changing(app, live_code, alice, monkeypatch):
    app.config["STORE_WRITE_RETRIES"] = 2
    monkeypatch.setattr(session_store, "apply_partial_update", lambda *args, **kwargs: False)
    result = grading_service.submit_answer(live_code, alice, "q1", "a")
    assert not result
    assert result.reason == "store_write_failed"
