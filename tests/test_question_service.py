"""
Unit tests for question construction and validation.

Tests cover:
- Exactly one correct option, 2 or 4 options
- timeLimit / pointType / media checks
- Point values per point type
- Answer key of a question
"""

import pytest

from conftest import build_question
from toastmaster.errors import InvalidQuestion
from toastmaster.services.question_service import (
    get_question_answer_key,
    new_question,
    points_for,
    questions_digest,
    validate_question,
    validate_questions,
    wrong_option,
)


# ============================================================================
# VALIDATION
# ============================================================================

def test_valid_question_is_normalized():
    raw = build_question("q1", option_count=4, correct=3)
    question = validate_question(raw)
    assert question["id"] == "q1"
    assert [o["id"] for o in question["options"]] == ["a", "b", "c", "d"]
    assert [o["isCorrect"] for o in question["options"]] == [False, False, False, True]


@pytest.mark.parametrize("correct_flags", [(False, False), (True, True), (True, True, False, False)])
def test_rejects_anything_but_exactly_one_correct(correct_flags):
    raw = build_question("q1", option_count=len(correct_flags))
    for option, flag in zip(raw["options"], correct_flags):
        option["isCorrect"] = flag
    with pytest.raises(InvalidQuestion):
        validate_question(raw)


@pytest.mark.parametrize("count", [1, 3, 5])
def test_rejects_option_counts_other_than_two_or_four(count):
    raw = build_question("q1", option_count=2)
    raw["options"] = [dict(raw["options"][0], id=str(i), isCorrect=i == 0) for i in range(count)]
    with pytest.raises(InvalidQuestion):
        validate_question(raw)


def test_rejects_duplicate_option_ids():
    raw = build_question("q1")
    raw["options"][1]["id"] = "a"
    with pytest.raises(InvalidQuestion):
        validate_question(raw)


@pytest.mark.parametrize("time_limit", [0, -5, "30", True, 2.5])
def test_rejects_bad_time_limit(time_limit):
    raw = build_question("q1")
    raw["timeLimit"] = time_limit
    with pytest.raises(InvalidQuestion):
        validate_question(raw)


def test_rejects_unknown_point_type():
    raw = build_question("q1", point_type="triple")
    with pytest.raises(InvalidQuestion):
        validate_question(raw)


def test_rejects_dotted_question_id():
    with pytest.raises(InvalidQuestion):
        validate_question(build_question("q.1"))


def test_media_forms():
    raw = build_question("q1")
    raw["media"] = {"url": "/uploads/x.png", "type": "image"}
    assert validate_question(raw)["media"] == {"url": "/uploads/x.png", "type": "image"}

    raw["media"] = {"url": "/uploads/x.pdf", "type": "document"}
    with pytest.raises(InvalidQuestion):
        validate_question(raw)


def test_duplicate_question_ids_rejected():
    with pytest.raises(InvalidQuestion):
        validate_questions([build_question("q1"), build_question("q1")])


def test_new_question_defaults():
    question = new_question()
    assert len(question["options"]) == 2
    assert question["options"][0]["isCorrect"] is True
    assert question["timeLimit"] == 30
    assert question["pointType"] == "standard"
    validate_question(question)


# ============================================================================
# SCORING HELPERS
# ============================================================================

@pytest.mark.parametrize("point_type,correct,expected", [
    ("standard", True, 100),
    ("double", True, 200),
    ("none", True, 0),
    ("standard", False, 0),
    ("double", False, 0),
])
def test_points_for(point_type, correct, expected):
    assert points_for({"pointType": point_type}, correct) == expected


def test_wrong_option_is_never_the_correct_one():
    question = build_question("q1", option_count=4, correct=0)
    assert wrong_option(question)["isCorrect"] is False


def test_answer_key():
    question = build_question("q2", option_count=4, correct=2, point_type="double")
    assert get_question_answer_key(question) == {
        "question_id": "q2",
        "option_id": "c",
        "text": "Option 2",
        "points": 200,
    }


def test_digest_changes_with_content():
    first = [build_question("q1")]
    second = [build_question("q1", correct=1)]
    assert questions_digest(first) == questions_digest([build_question("q1")])
    assert questions_digest(first) != questions_digest(second)
