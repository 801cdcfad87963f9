"""Exceptions raised inside the quiz services and the result type returned at their boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class QuizError(Exception):
    """Base class for expected quiz failures."""

    reason = "error"

    def __init__(self, message: str = "", reason: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if reason:
            self.reason = reason


class SessionNotFound(QuizError):
    reason = "not_found"

    def __init__(self, session_code: str) -> None:
        super().__init__(f"Quiz not found: {session_code}")
        self.session_code = session_code


class InvalidQuestion(QuizError, ValueError):
    reason = "invalid_question"


class ResolutionError(QuizError):
    """A question, option or participant could not be matched."""

    reason = "resolution_failed"


class LateAnswer(QuizError):
    reason = "late_answer"


class StoreWriteFailed(QuizError):
    reason = "store_write_failed"


class GenerationError(QuizError):
    reason = "generation_failed"

    def __init__(self, message: str, status: int = 500, details: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.details = details


class MediaError(QuizError, ValueError):
    reason = "invalid_media"


@dataclass
class CommandResult:
    """Definite outcome of a mutating action; truthy only on success."""

    ok: bool
    reason: str = ""
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, reason: str = "", **data: Any) -> "CommandResult":
        return cls(True, reason=reason, data=data)

    @classmethod
    def failure(cls, reason: str, message: str = "", **data: Any) -> "CommandResult":
        return cls(False, reason=reason, message=message or reason, data=data)

    @classmethod
    def from_error(cls, error: QuizError) -> "CommandResult":
        return cls(False, reason=error.reason, message=str(error))

    def to_dict(self) -> dict[str, Any]:
        payload = {"status": "ok" if self.ok else "error", "reason": self.reason}
        if not self.ok:
            payload["msg"] = self.message
        payload.update(self.data)
        return payload
