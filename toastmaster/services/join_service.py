import io
from urllib.parse import quote

import qrcode
from flask import current_app

from toastmaster.services.utils import normalize_session_code


def join_url(session_code):
    """Address participants open on their phones, e.g. https://host/QuizApp/K7Q2ZD."""
    base = current_app.config.get("PUBLIC_BASE_URL", "").rstrip("/")
    return f"{base}/QuizApp/{quote(normalize_session_code(session_code))}"


def join_qr_png(session_code):
    img = qrcode.make(join_url(session_code))
    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()
