"""
Client Reconciliation Policy.

Every push carries the whole session document. Each client type decides here
whether to take it over, merge only the roster, or ignore it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from toastmaster.services.results_service import current_question, placement

IMPORTANT_FIELDS = ("currentQuestionIndex", "isActive", "showResults", "isComplete")


@dataclass
class Decision:
    """Outcome of one push. applied is True only when the whole document was taken over."""

    applied: bool
    state: dict[str, Any] | None
    reason: str = ""
    reset_selection: bool = False


def participant_count(document: dict[str, Any]) -> int:
    return len(document.get("participants") or {})


def is_important_change(previous: dict[str, Any], incoming: dict[str, Any]) -> bool:
    if any(previous.get(name) != incoming.get(name) for name in IMPORTANT_FIELDS):
        return True
    return participant_count(previous) != participant_count(incoming)


def is_stale(previous: dict[str, Any], incoming: dict[str, Any]) -> bool:
    """A redelivered or reordered push carries an older version than the one applied."""
    old, new = previous.get("version"), incoming.get("version")
    return isinstance(old, int) and isinstance(new, int) and new < old


def is_replacement(previous: dict[str, Any], incoming: dict[str, Any]) -> bool:
    """The code now holds a different session instance (created again under the same code)."""
    old, new = previous.get("createdAt"), incoming.get("createdAt")
    return bool(old and new) and old != new


def _merge_roster(previous: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = dict(previous)
    for name in ("participants", "responses"):
        value = incoming.get(name)
        merged[name] = value if value is not None else previous.get(name) or {}
    if isinstance(incoming.get("version"), int):
        merged["version"] = incoming["version"]
    return merged


class _Reconciler:
    def __init__(self) -> None:
        self.state: dict[str, Any] | None = None

    def _pre_checks(self, incoming: dict[str, Any] | None) -> Decision | None:
        if incoming is None:
            # "session unknown", never "session complete"
            return Decision(False, self.state, reason="unknown")
        if self.state is None:
            self.state = incoming
            return Decision(True, incoming, reason="initial")
        if is_replacement(self.state, incoming):
            self.state = incoming
            return Decision(True, incoming, reason="replaced", reset_selection=True)
        if is_stale(self.state, incoming):
            return Decision(False, self.state, reason="stale")
        return None

    def _merge(self, incoming: dict[str, Any], reason: str) -> Decision:
        self.state = _merge_roster(self.state, incoming)
        return Decision(False, self.state, reason=reason)


class HostReconciler(_Reconciler):
    """Host and presentation display: phase changes re-render, anything else only refreshes the roster."""

    def apply(self, incoming: dict[str, Any] | None) -> Decision:
        decision = self._pre_checks(incoming)
        if decision is not None:
            return decision
        if is_important_change(self.state, incoming):
            self.state = incoming
            return Decision(True, incoming, reason="important")
        return self._merge(incoming, "roster")


class ParticipantReconciler(_Reconciler):
    """Participant device: never lets a results pause look like the end of the quiz."""

    def apply(self, incoming: dict[str, Any] | None) -> Decision:
        decision = self._pre_checks(incoming)
        if decision is not None:
            return decision

        previous = self.state
        if previous.get("isActive") and not incoming.get("isActive") and not incoming.get("isComplete"):
            return self._merge(incoming, "blocked_deactivation")

        if is_important_change(previous, incoming):
            reset = incoming.get("currentQuestionIndex") != previous.get("currentQuestionIndex")
            self.state = incoming
            return Decision(True, incoming, reason="important", reset_selection=reset)
        return self._merge(incoming, "roster")


@dataclass
class ParticipantView:
    """Local UI state of one participant device."""

    participant_id: str
    reconciler: ParticipantReconciler = field(default_factory=ParticipantReconciler)
    selected_option: str | None = None
    answered: set[str] = field(default_factory=set)
    error: str | None = None

    @property
    def state(self) -> dict[str, Any] | None:
        return self.reconciler.state

    @property
    def question(self) -> dict[str, Any] | None:
        return current_question(self.state) if self.state else None

    def on_push(self, document: dict[str, Any] | None) -> Decision:
        decision = self.reconciler.apply(document)
        if decision.reset_selection:
            self.selected_option = None
        if decision.reason == "replaced":
            self.answered.clear()
        return decision

    def can_answer(self) -> bool:
        question = self.question
        return bool(self.state and self.state.get("isActive") and question and question["id"] not in self.answered)

    def select(self, option_id: str) -> bool:
        """Optimistic selection feedback; the score only counts once the store confirms."""
        if not self.can_answer():
            return False
        self.selected_option = option_id
        return True

    def confirm(self, question_id: str, ok: bool, message: str = "") -> None:
        if ok:
            self.answered.add(question_id)
            self.selected_option = None
            self.error = None
        else:
            self.selected_option = None
            self.error = message or "Submission failed. Please rejoin the quiz and try again."

    def resync(self, document: dict[str, Any] | None) -> None:
        """Replace local state with a fresh read after a failed command."""
        if document is not None:
            self.reconciler.state = document

    def own_result(self) -> dict[str, Any] | None:
        if not self.state:
            return None
        return placement(self.state, self.participant_id)
