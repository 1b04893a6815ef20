# Overview: JSON error responses shared by the API routes.

from flask import current_app, jsonify, request

from .extensions import db
from .validation import DomainError


def domain_error(exc: DomainError):
    """Business and input rejections: roll back, answer with the error's own status."""
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(action: str):
    """Anything unexpected: roll back, log the traceback, answer opaquely."""
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
