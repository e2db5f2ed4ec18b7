import os


def normalize_db_url(db_url: str) -> str:
    """Render/Heroku style URLs use ``postgres://`` which SQLAlchemy rejects."""
    db_url = (db_url or "").strip()
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    return db_url


class Config:
    """Configuration for the Flask app, database and the AI tools.

    - ``SQLALCHEMY_DATABASE_URI``: defaults to a local SQLite file but can be
      pointed at PostgreSQL via the ``DATABASE_URL`` environment variable.
    - ``SQLALCHEMY_TRACK_MODIFICATIONS``: disables the event system which
      otherwise adds overhead.
    - ``SECRET_KEY``: signs the session cookie holding the logged-in user,
      the selected factory and the selected checkpoint.  In production you
      should set this to a strong random value via the environment.
    - ``JSON_SORT_KEYS``: keep insertion order in JSON responses.
    - ``DEFAULT_FACTORY_ID``: factory used when a login does not name one.
    - ``QR_MAX_BATCH`` / ``QR_MAX_COPIES``: bounds for code generation and
      label export.
    - ``GEMINI_API_KEY`` / ``AI_MODEL``: prompt-completion service used by
      the schedule optimiser and the bottleneck predictor.
    """

    SQLALCHEMY_DATABASE_URI = normalize_db_url(
        os.getenv("DATABASE_URL", "sqlite:///garmentflow.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    DEFAULT_FACTORY_ID = os.getenv("DEFAULT_FACTORY_ID", "DMF")
    QR_CODE_PREFIX = os.getenv("QR_CODE_PREFIX", "BNDL")
    QR_MAX_BATCH = 500
    QR_MAX_COPIES = 100

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    AI_MODEL = os.getenv("AI_MODEL", "gemini-2.0-pro")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "testing"
    GEMINI_API_KEY = None
    LOG_LEVEL = "DEBUG"
