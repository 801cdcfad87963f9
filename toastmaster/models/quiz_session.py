import datetime

from extensions import db


class QuizSession(db.Model):
    """One live quiz instance, addressed by its human-typeable session code."""
    __tablename__ = "quiz_session"

    session_code = db.Column(db.String(12), primary_key=True)
    title = db.Column(db.String(200), nullable=False, default="Live Quiz")

    # Immutable snapshot of the question list once the session has gone live
    questions = db.Column(db.JSON, nullable=False, default=list)
    questions_version = db.Column(db.String(64), nullable=False, default="")

    current_question_index = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    show_results = db.Column(db.Boolean, nullable=False, default=False)
    is_complete = db.Column(db.Boolean, nullable=False, default=False)
    has_started = db.Column(db.Boolean, nullable=False, default=False)  # isActive was true at least once

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.datetime.utcnow)
    version = db.Column(db.Integer, nullable=False)

    participants = db.relationship(
        "Participant",
        back_populates="session",
        order_by="Participant.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}
