# Overview: Flask API routes for the caller's own profile; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify

from ..decorators import require_auth
from ..responses import domain_error, internal_error, json_body
from ..services import profile_service
from ..validation import DomainError


profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    return jsonify(g.current_profile.to_dict(include_private=True))


@profile_bp.put("")
@require_auth
def update_profile_route():
    """
    Update business and banking details. Role, membership and identifiers are
    not writable here and are silently ignored.
    """
    try:
        profile = profile_service.update_profile(g.current_profile, json_body())
        return jsonify(profile.to_dict(include_private=True))
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update profile")


@profile_bp.post("/membership/refresh")
@require_auth
def refresh_membership_route():
    """
    Re-check VIP membership. Results are cached for
    EXCLUSIVE_MEMBER_CACHE_SECONDS; a failed lookup keeps the current status.
    """
    try:
        return jsonify(profile_service.refresh_membership(g.current_profile))
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("refresh membership")
