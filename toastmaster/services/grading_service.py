"""
Answer Resolution Engine.

submit_answer() maps one participant's chosen option to correctness and points
and records it in the session document. It never raises: every outcome is a
CommandResult, and failures are logged with the candidates that were tried.
"""

import logging

from flask import current_app

from toastmaster.errors import (
    CommandResult,
    LateAnswer,
    QuizError,
    ResolutionError,
    SessionNotFound,
    StoreWriteFailed,
)
from toastmaster.services import participant_service, session_store
from toastmaster.services.question_service import points_for

log = logging.getLogger(__name__)

LATE_POLICIES = ("reject", "zero", "accept")


def resolve_question(document, question_id, allow_fallbacks=True):
    """
    Returns (question, strategy). Exact id first; then, as a shim for clients
    holding a stale id, the current question and finally fuzzy text matching.
    """
    questions = document.get("questions") or []
    question = next((q for q in questions if q["id"] == question_id), None)
    if question is not None:
        return question, "id"
    if not allow_fallbacks:
        return None, None

    index = document.get("currentQuestionIndex", 0)
    if 0 <= index < len(questions):
        return questions[index], "current_index"

    requested = (question_id or "").strip().lower()
    if requested:
        for q in questions:
            text = (q.get("question") or "").strip().lower()
            if text and (requested in text or text in requested):
                return q, "text"
    return None, None


def resolve_option(question, option_id, allow_fallbacks=True):
    """Returns (option, strategy): exact id, then case-insensitive text, then zero-based position."""
    options = question["options"]
    option = next((o for o in options if o["id"] == option_id), None)
    if option is not None:
        return option, "id"
    if not allow_fallbacks:
        return None, None

    requested = (option_id or "").strip().lower()
    option = next((o for o in options if (o.get("text") or "").strip().lower() == requested and requested), None)
    if option is not None:
        return option, "text"

    if requested.isdigit():
        position = int(requested)
        if 0 <= position < len(options):
            return options[position], "position"
    return None, None


def _question_index(document, question_id):
    return next((i for i, q in enumerate(document["questions"]) if q["id"] == question_id), -1)


def _ensure_participant(document, session_code, participant_id):
    participant = document["participants"].get(participant_id)
    if participant is not None:
        return document, participant

    log.info(
        "Participant %s not in quiz %s (known: %s), attempting auto-join",
        participant_id, session_code, list(document["participants"]),
    )
    joined = participant_service.join(
        session_code,
        participant_id,
        participant_service.placeholder_name(participant_id),
    )
    if joined:
        document = session_store.get(session_code)
        participant = (document or {}).get("participants", {}).get(participant_id)
    if participant is None:
        raise ResolutionError(
            f"Participant {participant_id} not found even after auto-join",
            reason="participant_not_found",
        )
    return document, participant


def _late_reason(document, question_index):
    current = document.get("currentQuestionIndex", 0)
    if document.get("isComplete"):
        return "quiz is complete"
    if question_index < current:
        return f"question {question_index} is behind the current question {current}"
    if question_index == current and document.get("showResults"):
        return "results for this question are already showing"
    return None


def _submit(session_code, participant_id, question_id, option_id):
    config = current_app.config
    allow_fallbacks = config.get("RESOLUTION_FALLBACKS", True)
    late_policy = config.get("LATE_ANSWER_POLICY", "reject")
    if late_policy not in LATE_POLICIES:
        log.warning("Unknown LATE_ANSWER_POLICY %r, rejecting late answers", late_policy)
        late_policy = "reject"
    retries = int(config.get("STORE_WRITE_RETRIES", 3))

    for attempt in range(retries + 1):
        document = session_store.get(session_code)
        if document is None:
            raise SessionNotFound(session_code)
        code = document["sessionCode"]

        question, question_strategy = resolve_question(document, question_id, allow_fallbacks)
        if question is None:
            log.error(
                "Question %r not found in quiz %s (ids: %s, current index: %s)",
                question_id, code, [q["id"] for q in document["questions"]],
                document.get("currentQuestionIndex"),
            )
            raise ResolutionError(f"Question {question_id} not found", reason="question_not_found")

        option, option_strategy = resolve_option(question, option_id, allow_fallbacks)
        if option is None:
            log.error(
                "Option %r not found in question %s (ids: %s)",
                option_id, question["id"], [o["id"] for o in question["options"]],
            )
            raise ResolutionError(f"Option {option_id} not found", reason="option_not_found")

        if question_strategy != "id" or option_strategy != "id":
            log.warning(
                "Answer from %s resolved by fallback: question %r -> %s (%s), option %r -> %s (%s)",
                participant_id, question_id, question["id"], question_strategy,
                option_id, option["id"], option_strategy,
            )

        document, participant = _ensure_participant(document, code, participant_id)

        points = points_for(question, option["isCorrect"])
        late = _late_reason(document, _question_index(document, question["id"]))
        if late and late_policy != "accept":
            if late_policy == "zero":
                points = 0
            else:
                raise LateAnswer(f"Late answer from {participant_id}: {late}")

        scores = dict(participant.get("scores") or {})
        scores[question["id"]] = points
        total = sum(scores.values())

        prefix = f"participants.{participant_id}"
        fields = {
            f"{prefix}.responses.{question['id']}": option["id"],
            f"{prefix}.scores.{question['id']}": points,
            f"{prefix}.totalScore": total,
        }
        if session_store.apply_partial_update(code, fields, expected_version=document["version"]):
            log.info(
                "Quiz %s: %s answered %s with %s (%s, %d pts, total %d)",
                code, participant_id, question["id"], option["id"],
                "correct" if option["isCorrect"] else "wrong", points, total,
            )
            return CommandResult.success(
                questionId=question["id"],
                optionId=option["id"],
                correct=option["isCorrect"],
                points=points,
                totalScore=total,
            )
        log.info("Quiz %s changed while recording answer from %s, retry %d", code, participant_id, attempt + 1)

    raise StoreWriteFailed(f"Could not record answer from {participant_id}")


def submit_answer(session_code, participant_id, question_id, option_id):
    """
    Records participant_id's answer and returns a CommandResult.

    Resubmitting the same option is idempotent; a different option for an
    already answered question replaces the earlier answer and score.
    """
    question_id = "" if question_id is None else str(question_id)
    option_id = "" if option_id is None else str(option_id)
    try:
        return _submit(session_code, participant_id, question_id, option_id)
    except QuizError as e:
        log.warning("submit_answer failed for quiz %s: %s", session_code, e)
        return CommandResult.from_error(e)
    except Exception:
        log.exception("submit_answer: unexpected error for quiz %s", session_code)
        return CommandResult.failure("internal_error", "Submission failed. Please try again.")
