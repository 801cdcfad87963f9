import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "toastmaster-dev")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///toastmaster.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Optional engine options for better PostgreSQL behavior under concurrency
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 5))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 10))
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    if not SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({
            "pool_size": DB_POOL_SIZE,
            "max_overflow": DB_MAX_OVERFLOW,
        })

    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    UPLOADS_DIR = os.getenv("UPLOADS_DIR", os.path.join(BASE_DIR, "uploads"))
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_MB", 25)) * 1024 * 1024
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000").rstrip("/")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Live quiz behaviour
    SESSION_CODE_LENGTH = 6
    STORE_WRITE_RETRIES = int(os.getenv("STORE_WRITE_RETRIES", 3))
    RESOLUTION_FALLBACKS = _env_bool("RESOLUTION_FALLBACKS", True)
    LATE_ANSWER_POLICY = os.getenv("LATE_ANSWER_POLICY", "reject")  # reject | zero | accept
    REJOIN_POLICY = os.getenv("REJOIN_POLICY", "merge")  # merge | reset
    REQUIRE_PARTICIPANTS_TO_START = _env_bool("REQUIRE_PARTICIPANTS_TO_START", True)
    AUTO_START_TIMER = _env_bool("AUTO_START_TIMER", True)

    # Question generation
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None  # None keeps the SDK default
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", 30))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    AUTO_START_TIMER = False
    OPENAI_API_KEY = "test-key"
