# Overview: Bearer token issue/validate/revoke for profiles.

"""
Session Token Service

The identity provider is external; this service only maps an opaque bearer
token to a Profile. Tokens are issued from the CLI (or by an integration).

- 32 random bytes, hex encoded, returned once in plaintext
- only the SHA-256 of the token is stored
- absolute expiry from SESSION_TTL_HOURS
- revocable; deactivated profiles cannot authenticate
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Profile, SessionToken
from ..validation import NotFoundError, ValidationError
from buygroup.time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Tokens are high-entropy, so a fast one-way hash is enough."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token(profile_id: int, *, ttl_hours: int | None = None) -> tuple[SessionToken, str]:
    """Return (session_record, plaintext_token)."""
    profile = db.session.query(Profile).filter_by(id=profile_id).first()
    if not profile:
        raise NotFoundError("Profile not found")
    if not profile.is_active:
        raise ValidationError("Profile is not active")

    if ttl_hours is None:
        ttl_hours = current_app.config.get("SESSION_TTL_HOURS", 24)

    plaintext = generate_token()
    now = utcnow()
    session = SessionToken(
        profile_id=profile.id,
        token_hash=hash_token(plaintext),
        created_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext


def validate_token(token: str) -> Profile | None:
    """The Profile behind a live token, or None."""
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    profile = session.profile
    if not profile or not profile.is_active:
        session.is_revoked = True
        db.session.commit()
        return None
    return profile


def revoke_token(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False
    session.is_revoked = True
    db.session.commit()
    return True


def revoke_all_tokens(profile_id: int) -> int:
    sessions = db.session.query(SessionToken).filter_by(profile_id=profile_id, is_revoked=False).all()
    for session in sessions:
        session.is_revoked = True
    db.session.commit()
    return len(sessions)
