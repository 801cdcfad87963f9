import datetime

from extensions import db


class Answer(db.Model):
    """
    A participant's answer to one question of a live session.
    The unique constraint keeps at most one answer per participant and question;
    resubmissions update the existing row.
    """
    __tablename__ = "quiz_answer"

    id = db.Column(db.Integer, primary_key=True)
    session_code = db.Column(db.String(12), nullable=False)
    participant_pk = db.Column(
        db.Integer,
        db.ForeignKey("quiz_participant.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = db.Column(db.String(64), nullable=False)
    option_id = db.Column(db.String(64), nullable=True)
    points = db.Column(db.Integer, nullable=False, default=0)
    answered_at = db.Column(db.DateTime, nullable=False, default=datetime.datetime.utcnow)

    participant = db.relationship("Participant", back_populates="answers")

    __table_args__ = (
        db.UniqueConstraint("participant_pk", "question_id", name="uq_answer_participant_question"),
        db.Index("ix_answer_session", "session_code"),
        db.Index("ix_answer_question", "question_id"),
    )
