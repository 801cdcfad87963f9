from flask import Blueprint, render_template

from toastmaster.services import session_store
from toastmaster.services.utils import normalize_session_code

join_bp = Blueprint("join", __name__, template_folder="templates")


@join_bp.route("/QuizApp/<code>")
def quiz_app(code):
    """Page behind the join link and QR code; the device talks to /api/quiz and Socket.IO from here."""
    code = normalize_session_code(code)
    document = session_store.get(code)
    if document is None:
        return render_template("quiz_app.html", code=code, title=None), 404
    return render_template("quiz_app.html", code=code, title=document["title"])
