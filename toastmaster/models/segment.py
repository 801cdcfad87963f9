import datetime

from extensions import db


class Segment(db.Model):
    """Event program segment. The quiz editor only touches data["quizData"]."""
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, default="Live Quiz")
    type = db.Column(db.String(30), nullable=False, default="quiz")
    data = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow,
    )
