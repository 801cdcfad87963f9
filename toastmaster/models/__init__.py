from .quiz_session import QuizSession
from .participant import Participant
from .answer import Answer
from .segment import Segment

__all__ = [
	"QuizSession",
	"Participant",
	"Answer",
	"Segment",
]
