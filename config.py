"""
Configuration for the wallet cash-in admin app.
Production (Railway/Render): uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL, DB_* for a local PostgreSQL, else a SQLite file in instance/.
"""
import os
from pathlib import Path
from datetime import timedelta
from urllib.parse import quote_plus

BASE_DIR = Path(__file__).parent
INSTANCE_DIR = BASE_DIR / "instance"


def _is_production():
    """True when running on Railway, Render, or explicit production."""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _env_flag(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "on", "1", "yes")


def _normalize_database_url(url):
    """Convert postgres:// to postgresql+psycopg2:// for SQLAlchemy/psycopg2."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[11:]
    if url.startswith("postgresql://") and "psycopg2" not in url:
        return "postgresql+psycopg2://" + url[13:]
    return url


def _get_database_uri():
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL, DB_* or SQLite."""
    url = os.environ.get("DATABASE_URL")
    if _is_production():
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production (Railway/Render). "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url)

    if url and url.strip():
        return _normalize_database_url(url)

    host = os.environ.get("DB_HOST")
    if host:
        port = os.environ.get("DB_PORT", "5432")
        name = os.environ.get("DB_NAME", "wallet")
        user = os.environ.get("DB_USER", "wallet")
        password = os.environ.get("DB_PASSWORD", "")
        if password:
            password = quote_plus(password)
        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"

    try:
        INSTANCE_DIR.mkdir(exist_ok=True)
    except OSError:
        pass
    return f"sqlite:///{INSTANCE_DIR / 'wallet.db'}"


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"

    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@wallet.local"

    # Outbound status webhook; unset disables it
    WALLET_WEBHOOK_URL = os.environ.get("WALLET_WEBHOOK_URL")
    WALLET_WEBHOOK_TIMEOUT = float(os.environ.get("WALLET_WEBHOOK_TIMEOUT") or 10)

    WALLET_REJECT_WINDOW_HOURS = int(os.environ.get("WALLET_REJECT_WINDOW_HOURS") or 24)
    WALLET_ENFORCE_TRANSITION_POLICY = _env_flag("WALLET_ENFORCE_TRANSITION_POLICY", True)

    SEED_ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "superadmin@wallet.local")
    SEED_ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD", "Admin@2026")
    SEED_ADMIN_USERNAME = os.environ.get("SEED_ADMIN_USERNAME")


class TestConfig(Config):
    """In-memory SQLite, no webhook, no seeded admin password from env."""
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WALLET_WEBHOOK_URL = None
    MAIL_SERVER = None
    MAIL_SUPPRESS_SEND = True
    SEED_ADMIN_EMAIL = "superadmin@wallet.local"
    SEED_ADMIN_PASSWORD = "Admin@2026"
