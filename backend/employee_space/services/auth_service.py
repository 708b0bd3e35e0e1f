# Overview: Service-layer operations for employee accounts and password authentication.

"""
Authentication and Employee Account Service

WHY: Every timesheet, TOIL entry and review decision must be attributable
to one account. Uses bcrypt for password hashing and enforces password
strength whenever a password is set.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
- Deactivated accounts cannot authenticate; their sessions are revoked
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User
from . import project_service, session_service
from .cache_service import get_cache
from employee_space.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountError(ValueError):
    """Raised for invalid account operations (duplicate email, unknown user)."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.?'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash is treated as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise AccountError("A valid email address is required")
    return email


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter(User.email == (email or "").strip().lower()).first()


def create_user(
    email: str,
    password: str,
    *,
    first_name: str = "",
    last_name: str = "",
    is_admin: bool = False,
) -> User:
    """
    Create an employee account.

    Raises:
        AccountError: If the email is malformed or already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    email = _normalize_email(email)
    if get_user_by_email(email):
        raise AccountError("An account with this email already exists")

    user = User(
        email=email,
        first_name=(first_name or "").strip(),
        last_name=(last_name or "").strip(),
        password_hash=hash_password(password),
        is_admin=bool(is_admin),
        is_active=True,
        password_changed=False,
        created_at=utcnow(),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user for these credentials, else None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def _forget_project_visibility(cache=None) -> None:
    # Cached project listings are keyed per user and embed admin flags and emails
    get_cache(cache).invalidate(project_service.CACHE_PREFIX)


def update_user(
    user_id: int,
    *,
    email: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    is_admin: bool | None = None,
    cache=None,
) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise AccountError("User not found")

    if email is not None:
        email = _normalize_email(email)
        other = get_user_by_email(email)
        if other and other.id != user.id:
            raise AccountError("An account with this email already exists")
        user.email = email
    if first_name is not None:
        user.first_name = first_name.strip()
    if last_name is not None:
        user.last_name = last_name.strip()
    if is_admin is not None:
        user.is_admin = bool(is_admin)

    db.session.commit()
    _forget_project_visibility(cache)
    return user


def update_profile(user_id: int, *, first_name: str | None, last_name: str | None) -> User:
    """Self-service edit of the caller's own display name. Both names are required."""
    user = db.session.get(User, user_id)
    if not user:
        raise AccountError("User not found")

    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    if not first_name or not last_name:
        raise AccountError("First and last name are required")

    user.first_name = first_name
    user.last_name = last_name
    db.session.commit()
    return user


def deactivate_user(user_id: int, *, cache=None) -> User:
    """Disable the account and revoke its sessions. Repeating is harmless."""
    user = db.session.get(User, user_id)
    if not user:
        raise AccountError("User not found")
    if user.is_active:
        user.is_active = False
        db.session.commit()
        _forget_project_visibility(cache)
    session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def change_password(user_id: int, current_password: str, new_password: str) -> User:
    """
    Change a user's own password.

    SECURITY: Requires the current password and revokes every session,
    forcing re-authentication on all devices.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise AccountError("User not found")
    if not verify_password(current_password or "", user.password_hash):
        raise AccountError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    user.password_changed = True
    db.session.commit()

    session_service.revoke_all_user_sessions(user.id, reason="Password changed")
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.email).all()
