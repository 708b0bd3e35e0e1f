# backend/employee_space/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/employee_space.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///employee_space.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Remote store resilience: bounded timeout plus a few retries with backoff
    DB_TIMEOUT_SECONDS = _int_env("DB_TIMEOUT_SECONDS", 10)
    DB_RETRY_ATTEMPTS = _int_env("DB_RETRY_ATTEMPTS", 3)
    DB_RETRY_BACKOFF_SECONDS = _float_env("DB_RETRY_BACKOFF_SECONDS", 0.5)

    # Per-process read cache (projects, pending counts)
    CACHE_TTL_SECONDS = _int_env("CACHE_TTL_SECONDS", 30)
    CACHE_MAX_ENTRIES = _int_env("CACHE_MAX_ENTRIES", 512)

    # TOIL defaults applied when a user's settings row is first created
    TOIL_DEFAULT_MAX_CAPACITY = os.environ.get("TOIL_DEFAULT_MAX_CAPACITY", "40:00")
    TOIL_DEFAULT_MAX_STREAK_HOURS = os.environ.get("TOIL_DEFAULT_MAX_STREAK_HOURS", "16:00")
    TOIL_DEFAULT_MAX_STREAK_DAYS = _int_env("TOIL_DEFAULT_MAX_STREAK_DAYS", 2)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]


def engine_options(database_uri: str, timeout_seconds: int) -> dict:
    """SQLAlchemy engine options carrying the bounded call timeout."""
    options: dict = {"pool_pre_ping": True}
    if database_uri.startswith("sqlite"):
        # sqlite3 busy timeout; pool sizing does not apply
        options["connect_args"] = {"timeout": timeout_seconds}
    else:
        options["pool_timeout"] = timeout_seconds
    return options
