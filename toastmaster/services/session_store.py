"""
Session Store: the shared, versioned quiz document addressed by session code.

The document is assembled from the quiz_session, quiz_participant and
quiz_answer rows on every read. Writes are dot-addressed partial updates;
every committed write bumps the session version and is pushed to the
subscribers registered for that session code.
"""

import copy
import datetime
import logging
import threading

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from extensions import db
from toastmaster.errors import InvalidQuestion, QuizError
from toastmaster.models import Answer, Participant, QuizSession
from toastmaster.services.question_service import questions_digest, validate_questions
from toastmaster.services.results_service import build_response_index
from toastmaster.services.utils import normalize_session_code

log = logging.getLogger(__name__)

PHASE_FIELDS = {
    "currentQuestionIndex": "current_question_index",
    "isActive": "is_active",
    "showResults": "show_results",
    "isComplete": "is_complete",
}

_UNSET = object()

_listeners = {}
_listeners_lock = threading.Lock()
_write_hooks = []


class InvalidUpdate(QuizError):
    reason = "invalid_update"


def _utcnow():
    return datetime.datetime.utcnow()


def _isoformat(value):
    return value.isoformat() + "Z" if value else None


def _parse_timestamp(value):
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.datetime.fromisoformat(value.rstrip("Z"))
        except ValueError:
            pass
    return _utcnow()


# --- SERIALIZATION ---

def serialize_participant(participant):
    responses = {}
    scores = {}
    for ans in participant.answers:
        if ans.option_id is not None:
            responses[ans.question_id] = ans.option_id
        scores[ans.question_id] = int(ans.points or 0)
    return {
        "username": participant.username,
        "responses": responses,
        "scores": scores,
        "totalScore": int(participant.total_score or 0),
        "joinedAt": _isoformat(participant.joined_at),
    }


def serialize_session(record):
    participants = {p.participant_id: serialize_participant(p) for p in record.participants}
    questions = copy.deepcopy(record.questions or [])
    return {
        "sessionCode": record.session_code,
        "title": record.title,
        "questions": questions,
        "questionsVersion": record.questions_version,
        "currentQuestionIndex": record.current_question_index,
        "isActive": bool(record.is_active),
        "showResults": bool(record.show_results),
        "isComplete": bool(record.is_complete),
        "participants": participants,
        "responses": build_response_index(participants),
        "createdAt": _isoformat(record.created_at),
        "version": record.version,
    }


# --- PUBLIC OPERATIONS ---

def create(session_data):
    """
    Creates (or replaces) the session document at session_data["sessionCode"].
    Returns False only when the payload is invalid or the store is unreachable.
    """
    code = normalize_session_code(session_data.get("sessionCode"))
    if not code:
        log.error("create: missing session code")
        return False

    try:
        questions = validate_questions(session_data.get("questions") or [])
    except InvalidQuestion as e:
        log.error("create: rejected questions for %s: %s", code, e)
        return False

    try:
        db.session.expire_all()
        record = db.session.get(QuizSession, code)
        if record is None:
            record = QuizSession(session_code=code)
            db.session.add(record)
        else:
            # Replaced in place so the version keeps climbing for subscribed clients
            log.info("create: replacing existing quiz %s", code)
            record.participants.clear()
            now = _utcnow()
            record.created_at = now
            record.updated_at = now

        record.title = (session_data.get("title") or "Live Quiz")[:200]
        record.questions = questions
        record.questions_version = questions_digest(questions)
        record.current_question_index = 0
        record.is_active = False
        record.show_results = False
        record.is_complete = False
        record.has_started = False
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("create: failed to write quiz %s", code)
        return False

    log.info("Quiz %s created with %d questions", code, len(questions))
    _notify(code)
    return True


def get(session_code):
    """Current full document, or None when the code does not resolve or the store fails."""
    code = normalize_session_code(session_code)
    try:
        db.session.expire_all()
        record = db.session.get(QuizSession, code)
        if record is None:
            return None
        return serialize_session(record)
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("get: failed to read quiz %s", code)
        return None


def exists(session_code):
    return get(session_code) is not None


def apply_partial_update(session_code, fields, expected_version=None):
    """
    Merges dot-addressed fields into the document. Returns True when committed.

    With expected_version the write only lands if nobody else wrote in between;
    without it, stale writes are retried against fresh state.
    """
    code = normalize_session_code(session_code)
    retries = int(current_app.config.get("STORE_WRITE_RETRIES", 3))

    for attempt in range(retries + 1):
        try:
            db.session.expire_all()
            record = db.session.get(QuizSession, code, with_for_update=True)
            if record is None:
                log.warning("apply_partial_update: quiz %s not found", code)
                return False
            if expected_version is not None and record.version != expected_version:
                db.session.rollback()
                log.info(
                    "apply_partial_update: version moved on for %s (expected %s, found %s)",
                    code, expected_version, record.version,
                )
                return False

            _apply_fields(record, fields)
            record.updated_at = _utcnow()
            db.session.commit()
            break
        except (StaleDataError, IntegrityError) as e:
            db.session.rollback()
            if expected_version is not None:
                log.info("apply_partial_update: concurrent write on %s: %s", code, e.__class__.__name__)
                return False
            log.warning("apply_partial_update: concurrent write on %s, retry %d", code, attempt + 1)
        except QuizError as e:
            db.session.rollback()
            log.warning("apply_partial_update: rejected update for %s: %s", code, e)
            return False
        except SQLAlchemyError:
            db.session.rollback()
            log.exception("apply_partial_update: failed to write quiz %s", code)
            return False
    else:
        log.error("apply_partial_update: giving up on %s after %d attempts", code, retries + 1)
        return False

    _notify(code)
    return True


def subscribe(session_code, on_change):
    """
    Registers a push listener. It is called right away with the current document
    (None when unknown or unreachable) and again after every committed write.
    Returns the unsubscribe callable.
    """
    code = normalize_session_code(session_code)
    with _listeners_lock:
        _listeners.setdefault(code, []).append(on_change)

    on_change(get(code))

    def unsubscribe():
        with _listeners_lock:
            callbacks = _listeners.get(code, [])
            if on_change in callbacks:
                callbacks.remove(on_change)
            if not callbacks:
                _listeners.pop(code, None)

    return unsubscribe


def add_write_hook(hook):
    """hook(session_code, document) runs after every committed write to any session."""
    if hook not in _write_hooks:
        _write_hooks.append(hook)


def clear_listeners():
    with _listeners_lock:
        _listeners.clear()
    _write_hooks.clear()


def _notify(code):
    with _listeners_lock:
        callbacks = list(_listeners.get(code, ()))
    hooks = list(_write_hooks)
    if not callbacks and not hooks:
        return

    document = get(code)
    for callback in callbacks:
        try:
            callback(document)
        except Exception:
            log.exception("Listener for quiz %s failed", code)
    for hook in hooks:
        try:
            hook(code, document)
        except Exception:
            log.exception("Write hook for quiz %s failed", code)


# --- PATH HANDLING ---

def _apply_fields(record, fields):
    participant_changes = {}

    for path, value in fields.items():
        parts = path.split(".")
        head = parts[0]

        if head in PHASE_FIELDS and len(parts) == 1:
            _set_phase_field(record, head, value)
        elif path == "title":
            record.title = str(value)[:200]
        elif path == "questions":
            _replace_questions(record, value)
        elif head == "participants" and len(parts) >= 2 and parts[1]:
            participant_changes.setdefault(parts[1], []).append((parts[2:], value))
        elif head == "responses":
            raise InvalidUpdate("responses is derived from participant answers and cannot be written")
        else:
            raise InvalidUpdate(f"Unsupported path: {path}")

    for participant_id, changes in participant_changes.items():
        _apply_participant_changes(record, participant_id, changes)


def _set_phase_field(record, name, value):
    if name == "currentQuestionIndex":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidUpdate(f"currentQuestionIndex must be a non-negative integer, got {value!r}")
        if record.is_complete and value != record.current_question_index:
            raise InvalidUpdate("quiz is complete")
        if record.has_started and value < record.current_question_index:
            raise InvalidUpdate(
                f"currentQuestionIndex cannot move backwards ({record.current_question_index} -> {value})"
            )
        if record.questions and value >= len(record.questions):
            raise InvalidUpdate(f"currentQuestionIndex {value} is out of range")
        record.current_question_index = value
        return

    if not isinstance(value, bool):
        raise InvalidUpdate(f"{name} must be a boolean, got {value!r}")
    if name == "isComplete" and record.is_complete and not value:
        raise InvalidUpdate("isComplete is terminal")
    if name == "isActive" and value:
        record.has_started = True
    setattr(record, PHASE_FIELDS[name], value)


def _replace_questions(record, value):
    if record.has_started:
        raise InvalidUpdate("questions are immutable once the quiz has gone live")
    try:
        questions = validate_questions(value)
    except InvalidQuestion as e:
        raise InvalidUpdate(str(e))
    record.questions = questions
    record.questions_version = questions_digest(questions)


def _find_participant(record, participant_id):
    return next((p for p in record.participants if p.participant_id == participant_id), None)


def _upsert_answer(participant, question_id, option_id=_UNSET, points=_UNSET):
    answer = next((a for a in participant.answers if a.question_id == question_id), None)
    if answer is None:
        answer = Answer(session_code=participant.session_code, question_id=question_id, points=0)
        participant.answers.append(answer)
    if option_id is not _UNSET:
        answer.option_id = None if option_id is None else str(option_id)
    if points is not _UNSET:
        answer.points = _as_points(points)
    answer.answered_at = _utcnow()
    return answer


def _as_points(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidUpdate(f"points must be a non-negative integer, got {value!r}")
    return value


def _write_whole_participant(record, participant_id, value):
    if not isinstance(value, dict) or not str(value.get("username", "")).strip():
        raise InvalidUpdate(f"participants.{participant_id} needs a username")

    participant = _find_participant(record, participant_id)
    if participant is None:
        participant = Participant(session_code=record.session_code, participant_id=participant_id)
        record.participants.append(participant)

    participant.username = str(value["username"])[:100]
    participant.joined_at = _parse_timestamp(value.get("joinedAt"))

    responses = value.get("responses") or {}
    scores = value.get("scores") or {}
    keep = set(responses) | set(scores)
    # Reuse rows for kept questions; inserting a replacement row in the same flush
    # as deleting the old one would trip the unique constraint.
    for ans in list(participant.answers):
        if ans.question_id not in keep:
            participant.answers.remove(ans)
    for question_id in keep:
        _upsert_answer(
            participant,
            question_id,
            option_id=responses.get(question_id),
            points=scores.get(question_id, 0),
        )

    total = value.get("totalScore")
    participant.total_score = _as_points(total) if total is not None else sum(
        _as_points(v) for v in scores.values()
    )


def _apply_participant_changes(record, participant_id, changes):
    for subpath, value in changes:
        if not subpath:
            _write_whole_participant(record, participant_id, value)

    subfield_changes = [(subpath, value) for subpath, value in changes if subpath]
    if not subfield_changes:
        return

    participant = _find_participant(record, participant_id)
    if participant is None:
        raise InvalidUpdate(f"Unknown participant {participant_id}")

    scores_changed = False
    total_given = _UNSET
    for subpath, value in subfield_changes:
        field = subpath[0]
        if field == "username" and len(subpath) == 1:
            if not str(value or "").strip():
                raise InvalidUpdate("username cannot be blank")
            participant.username = str(value)[:100]
        elif field == "responses" and len(subpath) == 2:
            _upsert_answer(participant, subpath[1], option_id=value)
        elif field == "scores" and len(subpath) == 2:
            _upsert_answer(participant, subpath[1], points=value)
            scores_changed = True
        elif field == "totalScore" and len(subpath) == 1:
            total_given = _as_points(value)
        else:
            raise InvalidUpdate(f"Unsupported path: participants.{participant_id}.{'.'.join(subpath)}")

    if total_given is not _UNSET:
        participant.total_score = total_given
    elif scores_changed:
        participant.total_score = sum(int(a.points or 0) for a in participant.answers)
