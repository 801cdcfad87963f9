"""
Quiz authoring on an event segment.

Everything here edits segment.data["quizData"] (the draft), never a live
session. present_segment() turns the draft into a fresh live session.
"""

import copy
import logging

from sqlalchemy.orm.attributes import flag_modified

from extensions import db
from toastmaster.errors import CommandResult, InvalidQuestion, QuizError
from toastmaster.models import Segment
from toastmaster.services import host_controller
from toastmaster.services.question_service import (
    MEDIA_TYPES,
    POINT_VALUES,
    make_option,
    new_question,
    validate_questions,
)
from toastmaster.services.utils import generate_id, generate_session_code

log = logging.getLogger(__name__)


def _blank_quiz_data():
    return {
        "sessionCode": generate_session_code(),
        "questions": [new_question()],
        "currentQuestionIndex": 0,
    }


def serialize_segment(segment):
    return {
        "id": segment.id,
        "title": segment.title,
        "type": segment.type,
        "data": copy.deepcopy(segment.data or {}),
        "updatedAt": segment.updated_at.isoformat() + "Z" if segment.updated_at else None,
    }


def create_segment(title="Live Quiz", quiz_data=None):
    segment = Segment(title=(title or "Live Quiz")[:200], type="quiz", data={})
    if quiz_data:
        segment.data = {"quizData": copy.deepcopy(quiz_data)}
    db.session.add(segment)
    db.session.commit()
    load_quiz_data(segment.id)
    log.info("Created quiz segment %s (%s)", segment.id, segment.title)
    return segment


def get_segment(segment_id):
    segment = db.session.get(Segment, segment_id)
    if segment is None:
        raise QuizError(f"Segment {segment_id} not found", reason="not_found")
    return segment


def _save(segment, quiz_data):
    data = dict(segment.data or {})
    data["quizData"] = quiz_data
    segment.data = data
    flag_modified(segment, "data")
    db.session.commit()


def load_quiz_data(segment_id):
    """Draft quiz of a segment. A segment without questions gets one empty question."""
    segment = get_segment(segment_id)
    quiz_data = copy.deepcopy((segment.data or {}).get("quizData") or {})
    changed = False
    if not quiz_data.get("sessionCode"):
        quiz_data["sessionCode"] = generate_session_code()
        changed = True
    if not quiz_data.get("questions"):
        quiz_data["questions"] = [new_question()]
        quiz_data["currentQuestionIndex"] = 0
        changed = True
    quiz_data.setdefault("currentQuestionIndex", 0)
    if changed:
        _save(segment, quiz_data)
    return quiz_data


def _edit(segment_id, mutate):
    segment = get_segment(segment_id)
    quiz_data = load_quiz_data(segment_id)
    mutate(quiz_data)
    _save(segment, quiz_data)
    return quiz_data


def _question_at(quiz_data, index):
    questions = quiz_data["questions"]
    if not isinstance(index, int) or not 0 <= index < len(questions):
        raise InvalidQuestion(f"No question at index {index}")
    return questions[index]


def _option_at(question, index):
    if not isinstance(index, int) or not 0 <= index < len(question["options"]):
        raise InvalidQuestion(f"No option at index {index}")
    return question["options"][index]


# --- QUESTIONS ---

def add_question(segment_id):
    def mutate(quiz_data):
        quiz_data["questions"].append(new_question())
        quiz_data["currentQuestionIndex"] = len(quiz_data["questions"]) - 1

    return _edit(segment_id, mutate)


def update_question(segment_id, index, text=None, time_limit=None, point_type=None):
    def mutate(quiz_data):
        question = _question_at(quiz_data, index)
        if text is not None:
            question["question"] = str(text)
        if time_limit is not None:
            if isinstance(time_limit, bool) or not isinstance(time_limit, int) or time_limit <= 0:
                raise InvalidQuestion("timeLimit must be a positive integer")
            question["timeLimit"] = time_limit
        if point_type is not None:
            if point_type not in POINT_VALUES:
                raise InvalidQuestion(f"Unknown pointType {point_type!r}")
            question["pointType"] = point_type

    return _edit(segment_id, mutate)


def remove_question(segment_id, index):
    def mutate(quiz_data):
        _question_at(quiz_data, index)
        quiz_data["questions"].pop(index)
        current = quiz_data.get("currentQuestionIndex", 0)
        if index == current:
            current = max(0, index - 1)
        elif index < current:
            current -= 1
        quiz_data["currentQuestionIndex"] = max(0, min(current, len(quiz_data["questions"]) - 1))

    return _edit(segment_id, mutate)


def select_question(segment_id, index):
    def mutate(quiz_data):
        _question_at(quiz_data, index)
        quiz_data["currentQuestionIndex"] = index

    return _edit(segment_id, mutate)


# --- OPTIONS ---

def toggle_option_count(segment_id, index):
    """2 options become 4 (c and d appended); 4 become 2, keeping a correct one."""
    def mutate(quiz_data):
        question = _question_at(quiz_data, index)
        if len(question["options"]) == 2:
            question["options"].extend([make_option(2), make_option(3)])
        else:
            question["options"] = question["options"][:2]
            if not any(opt.get("isCorrect") for opt in question["options"]):
                question["options"][0]["isCorrect"] = True

    return _edit(segment_id, mutate)


def update_option(segment_id, question_index, option_index, text):
    def mutate(quiz_data):
        option = _option_at(_question_at(quiz_data, question_index), option_index)
        option["text"] = str(text or "")

    return _edit(segment_id, mutate)


def set_correct_answer(segment_id, question_index, option_index):
    def mutate(quiz_data):
        question = _question_at(quiz_data, question_index)
        _option_at(question, option_index)
        for i, option in enumerate(question["options"]):
            option["isCorrect"] = i == option_index

    return _edit(segment_id, mutate)


# --- MEDIA ---

def attach_media(segment_id, question_index, media):
    if not isinstance(media, dict) or not media.get("url") or media.get("type") not in MEDIA_TYPES:
        raise InvalidQuestion("Media needs a url and a type of image or video")

    def mutate(quiz_data):
        question = _question_at(quiz_data, question_index)
        question["media"] = {"url": media["url"], "type": media["type"]}

    return _edit(segment_id, mutate)


def remove_media(segment_id, question_index):
    def mutate(quiz_data):
        _question_at(quiz_data, question_index).pop("media", None)

    return _edit(segment_id, mutate)


# --- GENERATED / PRESENT ---

def append_generated(segment_id, questions):
    """Adds already validated generated questions; ids are made unique within the draft."""
    def mutate(quiz_data):
        taken = {q["id"] for q in quiz_data["questions"]}
        # A draft holding only the untouched placeholder is replaced
        if len(quiz_data["questions"]) == 1 and not quiz_data["questions"][0]["question"].strip():
            quiz_data["questions"] = []
            taken = set()
        for question in questions:
            question = copy.deepcopy(question)
            while question["id"] in taken:
                question["id"] = generate_id()
            taken.add(question["id"])
            quiz_data["questions"].append(question)
        quiz_data["currentQuestionIndex"] = max(0, len(quiz_data["questions"]) - 1)

    return _edit(segment_id, mutate)


def present_segment(segment_id):
    """Creates (or resets) the live session for this segment's draft, in a fresh lobby."""
    try:
        segment = get_segment(segment_id)
        quiz_data = load_quiz_data(segment_id)
        questions = validate_questions(quiz_data["questions"])
    except QuizError as e:
        log.warning("present_segment %s refused: %s", segment_id, e)
        return CommandResult.from_error(e)

    result = host_controller.open_session(segment.title, questions, session_code=quiz_data["sessionCode"])
    if result:
        log.info("Segment %s is live as quiz %s", segment_id, result.data["sessionCode"])
    return result
