import secrets
import string

SESSION_CODE_ALPHABET = string.ascii_uppercase + string.digits
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_code(length: int = 6) -> str:
    """
    Returns a short session code that is easy to type, e.g. 'K7Q2ZD'.
    """
    return "".join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(length))


def generate_id(length: int = 13) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def normalize_session_code(code) -> str:
    return (code or "").strip().upper()
