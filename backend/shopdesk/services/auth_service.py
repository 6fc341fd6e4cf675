# Overview: Credential checks against the users settings document.

"""
Authentication Service

Credentials live in the "users" settings document: one admin record and a
list of operators with an active flag. Passwords are stored as bcrypt
hashes.

SECURITY NOTES:
- Usernames compare case-insensitively, passwords exactly (bcrypt)
- Every failure raises the same InvalidCredentialsError so callers cannot
  tell "unknown user" from "wrong password"
- Inactive operators cannot log in
"""

from dataclasses import dataclass

import bcrypt

from ..models.orders import ROLE_ADMIN, ROLE_OPERATOR, ROLES
from . import settings_service


INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


class InvalidCredentialsError(ValueError):
    """Raised for any failed login, with a deliberately generic message."""
    def __init__(self):
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


class PasswordValidationError(ValueError):
    """Raised when a password cannot be accepted."""


class SetupError(ValueError):
    """Raised when initial setup is attempted after it already ran."""


@dataclass(frozen=True)
class AuthenticatedUser:
    username: str
    role: str

    def to_dict(self) -> dict:
        return {"username": self.username, "role": self.role}


def validate_password(password: str) -> None:
    if not isinstance(password, str) or not password:
        raise PasswordValidationError("Password is required")
    if password != password.strip():
        raise PasswordValidationError("Password cannot start or end with spaces")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordValidationError(f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    validate_password(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for empty or malformed hashes instead of raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _find_operator(cfg: dict, username: str) -> dict | None:
    wanted = username.lower()
    for op in cfg["operators"]:
        if op.get("active") and str(op.get("username", "")).lower() == wanted:
            return op
    return None


def authenticate(role: str, username: str, password: str) -> AuthenticatedUser:
    """
    Check credentials for the claimed role.

    Returns the identity with the stored username casing.
    Raises InvalidCredentialsError on any mismatch.
    """
    if role not in ROLES or not isinstance(username, str) or not isinstance(password, str):
        raise InvalidCredentialsError()

    normalized = username.strip()
    if not normalized:
        raise InvalidCredentialsError()

    cfg = settings_service.get_users_config()

    if role == ROLE_ADMIN:
        admin = cfg["admin"]
        stored = str(admin.get("username", ""))
        if stored and stored.lower() == normalized.lower() and verify_password(password, admin.get("password_hash", "")):
            return AuthenticatedUser(username=stored, role=ROLE_ADMIN)
        raise InvalidCredentialsError()

    op = _find_operator(cfg, normalized)
    if op and verify_password(password, op.get("password_hash", "")):
        return AuthenticatedUser(username=op["username"], role=ROLE_OPERATOR)
    raise InvalidCredentialsError()


def is_identity_current(username: str, role: str) -> bool:
    """True while the user still exists (and, for operators, is active)."""
    cfg = settings_service.get_users_config()
    if role == ROLE_ADMIN:
        return str(cfg["admin"].get("username", "")).lower() == username.lower()
    if role == ROLE_OPERATOR:
        return _find_operator(cfg, username) is not None
    return False


def is_initial_setup_required() -> bool:
    cfg = settings_service.get_users_config()
    admin = cfg["admin"]
    return not admin.get("username") or not admin.get("password_hash")


def complete_initial_setup(username: str, password: str) -> AuthenticatedUser:
    """
    Create the admin account on a fresh install.

    Raises SetupError once an admin exists; from then on credentials are
    changed through the users settings.
    """
    if not is_initial_setup_required():
        raise SetupError("Initial setup has already been completed")

    username = (username or "").strip()
    if not username:
        raise PasswordValidationError("Username is required")

    cfg = settings_service.get_users_config()
    if any(str(op.get("username", "")).lower() == username.lower() for op in cfg["operators"]):
        raise SetupError("Username already used by an operator")

    cfg["admin"] = {"username": username, "password_hash": hash_password(password)}
    settings_service.save_users_config(cfg)
    return AuthenticatedUser(username=username, role=ROLE_ADMIN)
