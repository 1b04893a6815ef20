# Overview: Request decorators for API routes (bearer auth, role checks, bot key).

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .services import session_service


def _is_authenticated() -> bool:
    return getattr(g, "current_profile", None) is not None


def require_auth(f):
    """
    Resolve the bearer token to a Profile and store it on g.current_profile.

    Routes read g.current_profile once and pass it to services explicitly.
    Returns 401 when the header is missing or the token is invalid, expired,
    revoked, or belongs to a deactivated profile.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        profile = session_service.validate_token(token)
        if not profile:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_profile = profile
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of `roles`. Must be stacked under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            profile = g.current_profile
            if profile.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_bot_key(f):
    """Shared-secret check on X-Bot-API-Key for bot-to-backend calls."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("BOT_API_KEY")
        if not expected:
            current_app.logger.error("BOT_API_KEY is not configured; rejecting bot request")
            return jsonify({"error": "Unauthorized", "message": "Invalid or missing X-Bot-API-Key header"}), 401

        supplied = request.headers.get("X-Bot-API-Key") or ""
        if not hmac.compare_digest(supplied, expected):
            return jsonify({"error": "Unauthorized", "message": "Invalid or missing X-Bot-API-Key header"}), 401

        return f(*args, **kwargs)

    return decorated_function
