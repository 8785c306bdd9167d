# Overview: Admin authentication; bcrypt passwords and hashed bearer-token sessions.

"""
Admin Authentication

- Passwords hashed with bcrypt (cost factor 12), minimum 8 characters
- Login issues a random bearer token; only its SHA-256 is stored
- Sessions expire after SESSION_TTL_HOURS and are revoked on logout
- Inactive admins cannot log in and their sessions stop validating
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Admin, AdminSession
from ..validation import ConflictError, NotFoundError, ValidationError
from autocare.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValidationError):
    pass


class AuthenticationError(Exception):
    """Bad credentials or an invalid, expired or revoked token."""
    pass


@dataclass
class SessionContext:
    admin: Admin
    session: AdminSession


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _normalize_email(email) -> str:
    if not isinstance(email, str) or "@" not in email:
        raise ValidationError("A valid email is required")
    return email.strip().lower()


# =============================================================================
# ADMIN ACCOUNTS
# =============================================================================

def create_admin(email: str, password: str) -> Admin:
    email = _normalize_email(email)
    admin = Admin(email=email, password_hash=hash_password(password), is_active=True)
    db.session.add(admin)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Admin {email} already exists") from exc
    return admin


def set_password(email: str, password: str) -> Admin:
    """Replace the password and revoke every open session for the admin."""
    email = _normalize_email(email)
    admin = db.session.query(Admin).filter_by(email=email).first()
    if admin is None:
        raise NotFoundError(f"Admin {email} not found")

    admin.password_hash = hash_password(password)
    _revoke_all(admin.id)
    db.session.commit()
    return admin


# =============================================================================
# SESSIONS
# =============================================================================

def login(email, password, *, ip_address: str | None = None, user_agent: str | None = None) -> tuple[Admin, str]:
    """
    Authenticate and open a session.

    Returns (admin, plaintext_token). The same AuthenticationError is raised
    for an unknown email, a wrong password and an inactive account.
    """
    if not email or not password:
        raise ValidationError("email and password are required")

    admin = db.session.query(Admin).filter_by(email=str(email).strip().lower()).first()
    if admin is None or not admin.is_active or not verify_password(password, admin.password_hash):
        current_app.logger.warning("Failed admin login for %s", email)
        raise AuthenticationError("Invalid email or password")

    token = generate_token()
    now = utcnow()
    session = AdminSession(
        admin_id=admin.id,
        token_hash=hash_token(token),
        created_at=now,
        expires_at=now + timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24)),
        is_revoked=False,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
    )
    admin.last_login_at = now
    db.session.add(session)
    db.session.commit()
    return admin, token


def validate_session(token: str) -> SessionContext:
    if not token:
        raise AuthenticationError("Authentication required")

    session = db.session.query(AdminSession).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if session is None:
        raise AuthenticationError("Invalid or expired token")

    now = utcnow()
    expires_at = session.expires_at.replace(tzinfo=None) if session.expires_at.tzinfo else session.expires_at
    if expires_at <= now:
        raise AuthenticationError("Invalid or expired token")

    admin = session.admin
    if admin is None or not admin.is_active:
        session.is_revoked = True
        session.revoked_at = now
        db.session.commit()
        raise AuthenticationError("Invalid or expired token")

    return SessionContext(admin=admin, session=session)


def logout(token: str) -> bool:
    """Revoke the session for token. Returns False if it was already gone."""
    session = db.session.query(AdminSession).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if session is None:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def _revoke_all(admin_id: int) -> int:
    return (
        db.session.query(AdminSession)
        .filter(AdminSession.admin_id == admin_id, AdminSession.is_revoked.is_(False))
        .update({"is_revoked": True, "revoked_at": utcnow()}, synchronize_session=False)
    )
