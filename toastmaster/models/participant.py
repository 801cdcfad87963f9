import datetime

from extensions import db


class Participant(db.Model):
    __tablename__ = "quiz_participant"

    id = db.Column(db.Integer, primary_key=True)  # insertion order, used for leaderboard ties
    session_code = db.Column(
        db.String(12),
        db.ForeignKey("quiz_session.session_code", ondelete="CASCADE"),
        nullable=False,
    )
    participant_id = db.Column(db.String(64), nullable=False)
    username = db.Column(db.String(100), nullable=False)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, nullable=False, default=datetime.datetime.utcnow)

    session = db.relationship("QuizSession", back_populates="participants")
    answers = db.relationship(
        "Answer",
        back_populates="participant",
        order_by="Answer.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("session_code", "participant_id", name="uq_participant_session_id"),
        db.Index("ix_participant_session", "session_code"),
    )
