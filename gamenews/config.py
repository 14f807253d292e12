import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "gamenews-dev-secret-change-me")
    JWT_SECRET = os.environ.get("JWT_SECRET") or SECRET_KEY
    TOKEN_TTL_DAYS = int(os.environ.get("TOKEN_TTL_DAYS", "7"))
    # None keeps Werkzeug's default (scrypt)
    PASSWORD_HASH_METHOD = None

    # "sql" or "memory"
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sql")

    # SQLite in instance folder
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "instance", "gamenews.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB article images

    # Only allow these
    ALLOWED_IMAGE_EXT = {"png", "jpg", "jpeg", "gif", "webp"}

    SEED_ADMIN = _env_bool("SEED_ADMIN", True)
    ADMIN_NAME = os.environ.get("ADMIN_NAME", "Admin")
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@gamenews.com")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    JWT_SECRET = "test-jwt-secret"
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    STORE_BACKEND = "sql"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    ADMIN_PASSWORD = "admin123"
    LOG_LEVEL = "DEBUG"
