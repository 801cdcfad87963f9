import hashlib
import json

from toastmaster.errors import InvalidQuestion
from toastmaster.services.utils import generate_id

COLORS = ["#E53E3E", "#3182CE", "#D69E2E", "#38A169"]
ICONS = ["▲", "◆", "●", "■"]
OPTION_IDS = ["a", "b", "c", "d"]

POINT_VALUES = {
    "standard": 100,
    "double": 200,
    "none": 0,
}

DEFAULT_TIME_LIMIT = 30
MEDIA_TYPES = ("image", "video")


def points_for(question, is_correct):
    if not is_correct:
        return 0
    return POINT_VALUES.get(question.get("pointType", "standard"), 0)


def make_option(position, text="", is_correct=False):
    return {
        "id": OPTION_IDS[position],
        "text": text,
        "isCorrect": is_correct,
        "color": COLORS[position],
        "icon": ICONS[position],
    }


def new_question(question_id=None):
    """Blank two-option question as the editor creates it; the first option is correct."""
    return {
        "id": question_id or generate_id(),
        "question": "",
        "options": [make_option(0, is_correct=True), make_option(1)],
        "timeLimit": DEFAULT_TIME_LIMIT,
        "pointType": "standard",
    }


def _validate_media(media):
    if media is None or media == "":
        return None
    if isinstance(media, str):
        return media
    if isinstance(media, dict):
        url = media.get("url")
        media_type = media.get("type")
        if not isinstance(url, str) or not url:
            raise InvalidQuestion("Media needs a url")
        if media_type not in MEDIA_TYPES:
            raise InvalidQuestion(f"Unsupported media type: {media_type!r}")
        return {"url": url, "type": media_type}
    raise InvalidQuestion("Media must be a URL or {url, type}")


def _validate_option(raw, position):
    if not isinstance(raw, dict):
        raise InvalidQuestion(f"Option {position} is not an object")
    option_id = raw.get("id")
    if option_id is None or str(option_id) == "":
        raise InvalidQuestion(f"Option {position} has no id")
    text = raw.get("text", "")
    if not isinstance(text, str):
        raise InvalidQuestion(f"Option {option_id} text must be a string")
    is_correct = raw.get("isCorrect", False)
    if not isinstance(is_correct, bool):
        raise InvalidQuestion(f"Option {option_id} isCorrect must be a boolean")
    return {
        "id": str(option_id),
        "text": text,
        "isCorrect": is_correct,
        "color": raw.get("color") or COLORS[position],
        "icon": raw.get("icon") or ICONS[position],
    }


def validate_question(raw):
    """
    Returns a normalized copy of a question payload or raises InvalidQuestion.

    Rules: 2 or 4 options with unique ids, exactly one correct option,
    a positive integer timeLimit and a known pointType.
    """
    if not isinstance(raw, dict):
        raise InvalidQuestion("Question must be an object")

    question_id = raw.get("id")
    if question_id is None or str(question_id) == "":
        raise InvalidQuestion("Question has no id")
    if "." in str(question_id):
        raise InvalidQuestion(f"Question id {question_id!r} must not contain dots")

    text = raw.get("question", "")
    if not isinstance(text, str):
        raise InvalidQuestion(f"Question {question_id} text must be a string")

    options = raw.get("options")
    if not isinstance(options, list) or len(options) not in (2, 4):
        raise InvalidQuestion(f"Question {question_id} must have exactly 2 or 4 options")
    options = [_validate_option(opt, i) for i, opt in enumerate(options)]

    if len({opt["id"] for opt in options}) != len(options):
        raise InvalidQuestion(f"Question {question_id} has duplicate option ids")

    correct = [opt for opt in options if opt["isCorrect"]]
    if len(correct) != 1:
        raise InvalidQuestion(f"Question {question_id} must have exactly one correct answer")

    time_limit = raw.get("timeLimit", DEFAULT_TIME_LIMIT)
    if isinstance(time_limit, bool) or not isinstance(time_limit, int) or time_limit <= 0:
        raise InvalidQuestion(f"Question {question_id} timeLimit must be a positive integer")

    point_type = raw.get("pointType", "standard")
    if point_type not in POINT_VALUES:
        raise InvalidQuestion(f"Question {question_id} has unknown pointType {point_type!r}")

    question = {
        "id": str(question_id),
        "question": text,
        "options": options,
        "timeLimit": time_limit,
        "pointType": point_type,
    }
    media = _validate_media(raw.get("media"))
    if media is not None:
        question["media"] = media
    return question


def validate_questions(raw_questions):
    if not isinstance(raw_questions, list):
        raise InvalidQuestion("Questions must be a list")
    questions = [validate_question(q) for q in raw_questions]
    seen = set()
    for q in questions:
        if q["id"] in seen:
            raise InvalidQuestion(f"Duplicate question id {q['id']}")
        seen.add(q["id"])
    return questions


def questions_digest(questions):
    canonical = json.dumps(questions, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def correct_option(question):
    return next((opt for opt in question["options"] if opt.get("isCorrect")), None)


def wrong_option(question):
    """Any incorrect option; used to auto-answer participants who ran out of time."""
    return next((opt for opt in question["options"] if not opt.get("isCorrect")), None)


def get_question_answer_key(question):
    option = correct_option(question) or {}
    return {
        "question_id": question["id"],
        "option_id": option.get("id", ""),
        "text": option.get("text", ""),
        "points": POINT_VALUES.get(question.get("pointType", "standard"), 0),
    }
