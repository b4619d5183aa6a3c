# Overview: Password hashing, user creation and credential checks.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
- Clients registered at the counter may have no password and cannot log in
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_CLIENT, VALID_ROLES
from ..utils import utcnow
from ..validation import ConflictError, ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """bcrypt.checkpw is timing-safe. Users without a hash never verify."""
    if not password_hash or not password:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    name: str,
    email: str,
    role: str = ROLE_CLIENT,
    password: str | None = None,
    phone: str | None = None,
    *,
    bcrypt_rounds: int = 12,
) -> User:
    """
    Create a user. Email is unique across the shop.

    Raises ValidationError on bad input, ConflictError on duplicate email.
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name:
        raise ValidationError("name is required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email is required")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    if db.session.query(User.id).filter_by(email=email).first():
        raise ConflictError("A user with this email already exists")

    user = User(
        name=name,
        email=email,
        phone=phone,
        role=role,
        password_hash=hash_password(password, rounds=bcrypt_rounds) if password else None,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Check credentials. Returns the active user or None.

    Updates last_login_at on success.
    """
    user = (
        db.session.query(User)
        .filter(User.email == (email or "").strip().lower(), User.is_active.is_(True))
        .first()
    )
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user
    return None
