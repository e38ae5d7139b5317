import os


def _database_url():
    """DATABASE_URL, normalized for SQLAlchemy.

    Some PaaS providers (Railway, Heroku) still hand out "postgres://",
    which SQLAlchemy 1.4+ refuses.
    """
    url = os.environ.get("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url or None


def _int_env(name, default):
    return int(os.environ.get(name, default))


class Config:
    """Base configuration. Shared across all environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Buyer list ---
    BUYERS_DEFAULT_PAGE_SIZE = _int_env("BUYERS_DEFAULT_PAGE_SIZE", 10)
    BUYERS_MAX_PAGE_SIZE = _int_env("BUYERS_MAX_PAGE_SIZE", 100)

    # --- CSV import ---
    # Rows past the cap are ignored and reported back as skipped.
    CSV_IMPORT_MAX_ROWS = _int_env("CSV_IMPORT_MAX_ROWS", 200)
    IMPORT_RATE_LIMIT = os.environ.get("IMPORT_RATE_LIMIT", "10 per minute")
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # 2 MB upload cap

    # --- Session cookie (the API is session-authenticated) ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"

    WTF_CSRF_ENABLED = True
    RATELIMIT_ENABLED = True

    REQUIRED_ENV = ("SECRET_KEY", "DATABASE_URL")

    @classmethod
    def validate(cls):
        """Fail fast if required env vars are missing."""
        missing = [name for name in cls.REQUIRED_ENV if not os.environ.get(name)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development. Falls back to a SQLite file and a throwaway key."""

    DEBUG = True
    SECRET_KEY = Config.SECRET_KEY or "dev-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or "sqlite:///leadbook-dev.db"
    REQUIRED_ENV = ()


class TestConfig(Config):
    """Testing — in-memory SQLite, CSRF and rate limits off."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SERVER_NAME = "localhost"
    REQUIRED_ENV = ()


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
