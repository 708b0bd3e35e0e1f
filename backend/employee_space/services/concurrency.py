# Overview: Retry wrapper for calls to the backing store; keeps transient failures out of business logic.

from __future__ import annotations

import time
from functools import wraps

from flask import current_app, has_app_context
from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Failures worth another attempt: locks, dropped connections, rate limiting
# surfacing as operational errors, optimistic-lock conflicts and timeouts.
TRANSIENT_ERRORS = (OperationalError, DisconnectionError, StaleDataError, TimeoutError)

# Upserts keyed on a unique constraint: a concurrent insert of the same key
# loses the race, and the re-run finds the winner's row and updates it.
WRITE_CONFLICT_ERRORS = TRANSIENT_ERRORS + (IntegrityError,)

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 0.5
DEFAULT_TIMEOUT_SECONDS = 10


class ServiceUnavailableError(RuntimeError):
    """Raised once retries against the backing store are exhausted."""

    def __init__(self, message: str = "Service temporarily unavailable, please try again"):
        super().__init__(message)


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    timeout: float | None = None,
    retry_on: tuple = TRANSIENT_ERRORS,
    sleep=time.sleep,
):
    """
    Execute a unit of work, retrying transient store failures with exponential backoff.

    The session is rolled back before each retry so the unit starts clean.
    Retries stop at ``attempts`` or when the next wait would pass the overall
    ``timeout``; either way a ServiceUnavailableError is raised, chained to the
    last underlying failure. Anything not in ``retry_on`` propagates untouched.
    """
    attempts = _config("DB_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS) if attempts is None else attempts
    backoff_base = _config("DB_RETRY_BACKOFF_SECONDS", DEFAULT_BACKOFF_BASE) if backoff_base is None else backoff_base
    timeout = _config("DB_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS) if timeout is None else timeout

    deadline = time.monotonic() + timeout
    name = getattr(func, "__qualname__", repr(func))
    last_exc = None

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            last_exc = exc
            if has_app_context():
                db.session.rollback()

            delay = backoff_base * (2 ** attempt)
            if attempt >= attempts - 1 or time.monotonic() + delay > deadline:
                break
            if has_app_context():
                current_app.logger.warning(
                    "Transient failure in %s (attempt %d/%d), retrying in %.2fs: %s",
                    name, attempt + 1, attempts, delay, exc,
                )
            sleep(delay)

    if has_app_context():
        current_app.logger.error("Giving up on %s after %d attempt(s): %s", name, attempts, last_exc)
    raise ServiceUnavailableError() from last_exc


def retrying(func=None, **retry_kwargs):
    """Decorator form of run_with_retry. Usable bare or with keyword options."""
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            return run_with_retry(lambda: f(*args, **kwargs), **retry_kwargs)
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
