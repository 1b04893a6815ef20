# Overview: Flask API routes for vendor shipping label requests; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..responses import domain_error, internal_error, json_body
from ..services import label_service
from ..validation import DomainError, ValidationError


labels_bp = Blueprint("labels", __name__, url_prefix="/api/labels")


@labels_bp.get("")
@require_auth
def list_labels_route():
    try:
        labels = label_service.list_label_requests_for(g.current_profile, status=request.args.get("status"))
        return jsonify({"items": [label_service.label_summary(l) for l in labels], "count": len(labels)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list label requests")


@labels_bp.post("")
@require_auth
def request_label_route():
    """
    Request body:
    {
        "commitment_id": 7     // pending SHIP commitment owned by the caller
    }
    """
    data = json_body()
    if not data.get("commitment_id"):
        return domain_error(ValidationError("commitment_id is required"))

    try:
        label = label_service.request_label(actor=g.current_profile, commitment_id=data["commitment_id"])
        return jsonify(label_service.label_summary(label)), 201
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("request label")


@labels_bp.delete("/<int:label_id>")
@require_auth
def cancel_label_route(label_id: int):
    try:
        label_service.cancel_label_request(actor=g.current_profile, label_id=label_id)
        return jsonify({"success": True})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("cancel label request")
