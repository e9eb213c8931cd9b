# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every purchasing action must be attributable. Uses bcrypt for secure
password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from ..errors import ConflictError, ValidationError
from ..validation import is_valid_email, normalize_str
from bizzflow.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(name: str, email: str, password: str, role: str = "employee") -> User:
    """
    Create a user account.

    Raises:
        ValidationError: missing name, malformed email or unknown role
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    name = normalize_str(name)
    email = (normalize_str(email) or "").lower()
    if not name:
        raise ValidationError.for_field("name", "Name is required")
    if not is_valid_email(email):
        raise ValidationError.for_field("email", "Please include a valid email")
    if role not in USER_ROLES:
        raise ValidationError.for_field("role", f"role must be one of: {', '.join(USER_ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError(f"User with email '{email}' already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user by email and password.

    Returns the User on success, None on unknown email, inactive account
    or wrong password.
    """
    email = (normalize_str(email) or "").lower()
    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
