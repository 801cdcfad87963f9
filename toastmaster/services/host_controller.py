"""
Host Controller: the only writer of the phase fields of a live session.

Lobby -> QuestionLive -> ShowingResults -> QuestionLive (next index) ... -> Finished.
Every transition returns a CommandResult. A failed transition re-reads the
store so the host's view never keeps optimistic state the store refused.
"""

import logging
import threading
import time
from enum import Enum

from flask import current_app

from extensions import socketio
from toastmaster.errors import CommandResult, QuizError, StoreWriteFailed
from toastmaster.services import grading_service, session_store
from toastmaster.services.question_service import get_question_answer_key, wrong_option
from toastmaster.services.reconciliation import HostReconciler, participant_count
from toastmaster.services.results_service import all_answered, current_question, leaderboard
from toastmaster.services.utils import generate_session_code, normalize_session_code

log = logging.getLogger(__name__)


class Phase(str, Enum):
    AUTHORING = "authoring"
    LOBBY = "lobby"
    QUESTION_LIVE = "question_live"
    SHOWING_RESULTS = "showing_results"
    FINISHED = "finished"


def phase_of(document, final_results_shown=False):
    if document is None:
        return Phase.AUTHORING
    if document.get("isComplete") or final_results_shown:
        return Phase.FINISHED
    if document.get("showResults"):
        return Phase.SHOWING_RESULTS
    if document.get("isActive"):
        return Phase.QUESTION_LIVE
    return Phase.LOBBY


class QuestionCountdown:
    """Per-question timer. tick() advances one second; run() ticks in real time until zero or cancel()."""

    def __init__(self, question_id, time_limit, on_tick=None, on_expire=None, sleep=time.sleep):
        self.question_id = question_id
        self.total = int(time_limit)
        self.remaining = int(time_limit)
        self.cancelled = False
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._sleep = sleep

    def cancel(self):
        self.cancelled = True

    def tick(self):
        if self.cancelled or self.remaining <= 0:
            return self.remaining
        self.remaining -= 1
        if self._on_tick:
            self._on_tick(self)
        if self.remaining == 0 and self._on_expire:
            self._on_expire(self)
        return self.remaining

    def run(self):
        while not self.cancelled and self.remaining > 0:
            self._sleep(1)
            if not self.cancelled:
                self.tick()


class HostController:
    def __init__(self, session_code, app=None, start_timers=None):
        self.session_code = normalize_session_code(session_code)
        self.app = app or current_app._get_current_object()
        if start_timers is None:
            start_timers = self.app.config.get("AUTO_START_TIMER", True)
        self.start_timers = start_timers

        self.reconciler = HostReconciler()
        self.final_results_shown = False
        self.questions_exhausted = False
        self.countdown = None
        self._transition_lock = threading.Lock()
        self._unsubscribe = None

    # --- LIVE VIEW ---

    @property
    def state(self):
        return self.reconciler.state

    @property
    def phase(self):
        return phase_of(self.state, self.final_results_shown)

    def attach(self):
        if self._unsubscribe is None:
            self._unsubscribe = session_store.subscribe(self.session_code, self._on_store_change)

    def detach(self):
        self._stop_countdown()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def resync(self):
        document = session_store.get(self.session_code)
        if document is not None:
            self.reconciler.state = document
        else:
            log.warning("Quiz %s could not be re-read after a failed action", self.session_code)
        return document

    def _on_store_change(self, document):
        self.reconciler.apply(document)
        self._maybe_auto_show_results()

    def _maybe_auto_show_results(self):
        if self._transition_lock.locked() or self.phase != Phase.QUESTION_LIVE:
            return
        question = current_question(self.state)
        if question and all_answered(self.state, question["id"]):
            log.info("Quiz %s: everyone answered %s, showing results", self.session_code, question["id"])
            self.toggle_results()

    def snapshot(self):
        payload = {
            "sessionCode": self.session_code,
            "phase": self.phase.value,
            "finalResultsShown": self.final_results_shown,
            "questionsExhausted": self.questions_exhausted,
            "remaining": self.countdown.remaining if self.countdown and not self.countdown.cancelled else None,
            "quiz": self.state,
        }
        if self.phase in (Phase.SHOWING_RESULTS, Phase.FINISHED) and self.state:
            question = current_question(self.state)
            if question:
                payload["answerKey"] = get_question_answer_key(question)
        if self.final_results_shown and self.state:
            payload["leaderboard"] = leaderboard(self.state)
        return payload

    # --- TRANSITIONS ---

    def _transition(self, name, action):
        if not self._transition_lock.acquire(blocking=False):
            return CommandResult.failure("busy", "Another action is in progress.")
        try:
            result = action()
        except QuizError as e:
            result = CommandResult.from_error(e)
        except Exception:
            log.exception("Quiz %s: %s crashed", self.session_code, name)
            result = CommandResult.failure("internal_error", f"{name} failed")
        finally:
            self._transition_lock.release()

        if result:
            log.info("Quiz %s: %s -> %s", self.session_code, name, self.phase.value)
        else:
            log.warning("Quiz %s: %s refused (%s)", self.session_code, name, result.reason)
            self.resync()
        return result

    def _write(self, fields):
        # Optimistic local view first; a refused write is undone by resync() in _transition
        if self.state is not None:
            self.reconciler.state = {**self.state, **fields}
        if not session_store.apply_partial_update(self.session_code, fields):
            raise StoreWriteFailed(f"Could not update quiz {self.session_code}")

    def _require_state(self):
        state = self.state or self.resync()
        if state is None:
            raise QuizError("Quiz not found", reason="not_found")
        return state

    def start_session(self):
        def action():
            state = self._require_state()
            if self.phase != Phase.LOBBY:
                return CommandResult.failure("invalid_state", f"Cannot start from {self.phase.value}")
            if not state["questions"]:
                return CommandResult.failure("no_questions", "The quiz has no questions.")
            if self.app.config.get("REQUIRE_PARTICIPANTS_TO_START", True) and participant_count(state) == 0:
                return CommandResult.failure("no_participants", "Wait for at least one participant to join.")

            self._write({"currentQuestionIndex": 0, "isActive": True, "showResults": False})
            self._start_countdown()
            return CommandResult.success(currentQuestionIndex=0)

        return self._transition("start_session", action)

    def toggle_results(self):
        def action():
            self._require_state()
            phase = self.phase
            if phase == Phase.QUESTION_LIVE:
                auto_answered = self._auto_answer_missing()
                self._stop_countdown()
                self._write({"showResults": True, "isActive": False})
                return CommandResult.success(showResults=True, autoAnswered=auto_answered)
            if phase == Phase.SHOWING_RESULTS:
                self._write({"showResults": False, "isActive": True})
                self._start_countdown()
                return CommandResult.success(showResults=False)
            return CommandResult.failure("invalid_state", f"Cannot toggle results from {phase.value}")

        return self._transition("toggle_results", action)

    def advance(self):
        def action():
            state = self._require_state()
            if self.phase not in (Phase.QUESTION_LIVE, Phase.SHOWING_RESULTS):
                return CommandResult.failure("invalid_state", f"Cannot advance from {self.phase.value}")

            next_index = state["currentQuestionIndex"] + 1
            if next_index >= len(state["questions"]):
                # isComplete stays false; the host has to ask for the final results
                self.questions_exhausted = True
                return CommandResult.success("end_of_questions", currentQuestionIndex=state["currentQuestionIndex"])

            self._write({"currentQuestionIndex": next_index, "isActive": True, "showResults": False})
            self._start_countdown()
            return CommandResult.success(currentQuestionIndex=next_index)

        return self._transition("advance", action)

    def show_final_results(self):
        def action():
            state = self._require_state()
            if self.final_results_shown:
                return CommandResult.success(leaderboard=leaderboard(state))
            if self.phase not in (Phase.QUESTION_LIVE, Phase.SHOWING_RESULTS):
                return CommandResult.failure("invalid_state", f"Cannot show final results from {self.phase.value}")
            if state["currentQuestionIndex"] != len(state["questions"]) - 1:
                return CommandResult.failure("not_last_question", "Final results are only available on the last question.")

            if self.phase == Phase.QUESTION_LIVE:
                self._auto_answer_missing()
            self._stop_countdown()
            self.final_results_shown = True
            try:
                # Deliberately not isComplete: devices would jump to their completion screen
                self._write({"showResults": True, "isActive": False})
            except StoreWriteFailed:
                self.final_results_shown = False
                raise
            fresh = session_store.get(self.session_code) or self.state
            return CommandResult.success(leaderboard=leaderboard(fresh))

        return self._transition("show_final_results", action)

    def complete_session(self):
        def action():
            self._require_state()
            if not self.final_results_shown:
                return CommandResult.failure("invalid_state", "Show the final results first.")
            if self.state.get("isComplete"):
                return CommandResult.success("already_complete")
            self._write({"isComplete": True, "isActive": False, "showResults": True})
            return CommandResult.success()

        return self._transition("complete_session", action)

    # --- HELPERS ---

    def _auto_answer_missing(self):
        """Everyone without an answer for the live question gets a wrong one (0 points)."""
        document = session_store.get(self.session_code)
        if document is None:
            raise QuizError("Quiz not found", reason="not_found")
        question = current_question(document)
        option = wrong_option(question) if question else None
        if option is None:
            return []

        missing = [
            participant_id
            for participant_id, participant in document["participants"].items()
            if not (participant.get("responses") or {}).get(question["id"])
        ]
        for participant_id in missing:
            result = grading_service.submit_answer(self.session_code, participant_id, question["id"], option["id"])
            if not result:
                log.error(
                    "Quiz %s: auto-answer for %s on %s failed (%s)",
                    self.session_code, participant_id, question["id"], result.reason,
                )
        if missing:
            log.info("Quiz %s: auto-answered %d participants on %s", self.session_code, len(missing), question["id"])
        return missing

    def _start_countdown(self):
        self._stop_countdown()
        question = current_question(self.state)
        if question is None:
            return
        self.countdown = QuestionCountdown(
            question["id"],
            question.get("timeLimit", 30),
            on_tick=self._emit_timer,
            on_expire=self._on_countdown_expired,
        )
        self._emit_timer(self.countdown)
        if self.start_timers:
            socketio.start_background_task(self._run_countdown, self.countdown)

    def _stop_countdown(self):
        if self.countdown is not None:
            self.countdown.cancel()

    def _run_countdown(self, countdown):
        with self.app.app_context():
            countdown.run()

    def _emit_timer(self, countdown):
        socketio.emit(
            "timer_update",
            {
                "sessionCode": self.session_code,
                "questionId": countdown.question_id,
                "remaining": countdown.remaining,
                "total": countdown.total,
            },
            to=self.session_code,
        )

    def _on_countdown_expired(self, countdown):
        if countdown is not self.countdown or countdown.cancelled:
            return
        question = current_question(self.state)
        if question is None or question["id"] != countdown.question_id:
            return
        if self.phase == Phase.QUESTION_LIVE:
            log.info("Quiz %s: time is up on %s", self.session_code, countdown.question_id)
            self.toggle_results()


# --- REGISTRY ---

_controllers = {}
_registry_lock = threading.Lock()


def open_session(title, questions, session_code=None):
    """Creates the live session document and the controller that drives it."""
    code = normalize_session_code(session_code) or generate_session_code(
        current_app.config.get("SESSION_CODE_LENGTH", 6)
    )
    if not session_store.create({"sessionCode": code, "title": title, "questions": questions}):
        return CommandResult.failure("create_failed", "Could not create the live quiz.")

    controller = HostController(code)
    with _registry_lock:
        previous = _controllers.pop(code, None)
        _controllers[code] = controller
    if previous is not None:
        previous.detach()
    controller.attach()
    return CommandResult.success(sessionCode=code)


def get_controller(session_code):
    code = normalize_session_code(session_code)
    with _registry_lock:
        controller = _controllers.get(code)
    if controller is not None:
        return controller
    if session_store.get(code) is None:
        return None

    controller = HostController(code)
    with _registry_lock:
        existing = _controllers.setdefault(code, controller)
    if existing is controller:
        controller.attach()
    return existing


def drop_controllers():
    with _registry_lock:
        controllers = list(_controllers.values())
        _controllers.clear()
    for controller in controllers:
        controller.detach()
