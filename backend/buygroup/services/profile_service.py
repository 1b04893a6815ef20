# Overview: Vendor profiles: creation, self-service business details, and exclusive-membership refresh.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Profile
from ..models.accounts import ROLE_SELLER, VALID_ROLES
from ..models.sequences import SEQUENCE_VENDOR
from ..validation import (
    ConflictError,
    DomainError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_choice,
    validate_payload,
)
from buygroup.time_utils import is_within, to_utc_z, utcnow
from . import sequence_service


# Vendors edit their own contact and payout details; role, membership and
# identity columns are never client-writable.
PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "phone",
        "company_name", "address", "city", "state", "zip_code",
        "bank_name", "bank_routing", "bank_account", "accounting_notes",
    },
    ignored_fields={
        "id", "vendor_id", "vendor_number", "email", "created_at", "role", "is_active",
        "is_exclusive_member", "exclusive_member_checked_at", "discord_id", "discord_username",
    },
)


class MembershipUnavailableError(DomainError):
    status_code = 503
    default_code = "MEMBERSHIP_LOOKUP_UNAVAILABLE"


def get_profile(profile_id: int) -> Profile:
    profile = db.session.query(Profile).filter_by(id=profile_id).first()
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def find_profile(identifier: str) -> Profile:
    """Look up by email or by vendor id (U-00042)."""
    identifier = (identifier or "").strip()
    query = db.session.query(Profile)
    if identifier.upper().startswith("U-") and identifier[2:].isdigit():
        profile = query.filter_by(vendor_number=int(identifier[2:])).first()
    else:
        profile = query.filter(Profile.email == identifier.lower()).first()
    if not profile:
        raise NotFoundError(f"Profile not found: {identifier}")
    return profile


def create_profile(
    *,
    email: str,
    first_name: str = "",
    last_name: str = "",
    role: str = ROLE_SELLER,
    is_exclusive_member: bool = False,
    discord_id: str | None = None,
) -> Profile:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    role = require_choice("role", role, VALID_ROLES)

    profile = Profile(
        vendor_number=sequence_service.next_number(SEQUENCE_VENDOR),
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role,
        is_exclusive_member=is_exclusive_member,
        discord_id=discord_id,
    )
    db.session.add(profile)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"A profile already exists for {email}", code="DUPLICATE_EMAIL")
    return profile


def list_profiles(*, role: str | None = None) -> list[Profile]:
    query = db.session.query(Profile)
    if role:
        query = query.filter(Profile.role == require_choice("role", role, VALID_ROLES))
    return query.order_by(Profile.vendor_number.asc()).all()


def set_role(profile: Profile, role: str) -> Profile:
    profile.role = require_choice("role", role, VALID_ROLES)
    db.session.commit()
    return profile


def update_profile(profile: Profile, payload: dict) -> Profile:
    patch = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=True)
    for key in ("first_name", "last_name"):
        if key in patch and not patch[key]:
            raise ValidationError("First name and last name are required")
    for key, value in patch.items():
        # Blank optional fields are stored as NULL
        setattr(profile, key, value if value != "" else None)
    db.session.commit()
    return profile


def refresh_membership(profile: Profile, *, now: datetime | None = None) -> dict:
    """
    Re-check exclusive (VIP) membership with the configured lookup.

    - a check within EXCLUSIVE_MEMBER_CACHE_SECONDS returns the cached status
    - a failing lookup keeps the current status and is logged
    """
    now = now or utcnow()
    config = current_app.config
    window = timedelta(seconds=config.get("EXCLUSIVE_MEMBER_CACHE_SECONDS", 3600))

    if not profile.discord_id:
        raise ValidationError("Discord not linked")

    if is_within(profile.exclusive_member_checked_at, window, now=now):
        return _membership_result(profile, cached=True, message="Recently checked, using cached status")

    lookup = config.get("MEMBERSHIP_LOOKUP")
    if lookup is None:
        raise MembershipUnavailableError("Membership lookup is not configured")

    try:
        is_member = bool(lookup(profile))
    except Exception:
        current_app.logger.warning(
            "Membership lookup failed for %s; keeping current status", profile.vendor_id, exc_info=True
        )
        return _membership_result(profile, cached=True, message="Lookup failed, using current status")

    profile.is_exclusive_member = is_member
    profile.exclusive_member_checked_at = now
    db.session.commit()
    return _membership_result(profile, cached=False, message="Membership status refreshed")


def _membership_result(profile: Profile, *, cached: bool, message: str) -> dict:
    return {
        "is_exclusive_member": profile.is_exclusive_member,
        "checked_at": to_utc_z(profile.exclusive_member_checked_at),
        "cached": cached,
        "message": message,
    }
