# Overview: Flask API routes for vendor shipment tracking; parses input and returns JSON responses.

"""
Tracking Routes

Submitting a tracking number moves a pending SHIP commitment to IN_TRANSIT.
When no carrier is given it is detected from the number's shape.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..responses import domain_error, internal_error, json_body
from ..services import tracking_service
from ..validation import DomainError, ValidationError


tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/tracking")


@tracking_bp.get("")
@require_auth
def list_tracking_route():
    try:
        rows = tracking_service.list_tracking_for(
            g.current_profile,
            warehouse=request.args.get("warehouse"),
            carrier=request.args.get("carrier"),
        )
        return jsonify({"items": [tracking_service.tracking_summary(t) for t in rows], "count": len(rows)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list tracking")


@tracking_bp.post("")
@require_auth
def submit_tracking_route():
    """
    Request body:
    {
        "commitment_id": 7,                   // required
        "tracking_number": "1Z999AA1...",     // required
        "carrier": "UPS"                      // optional, detected when omitted
    }
    """
    data = json_body()
    if not data.get("commitment_id") or not data.get("tracking_number"):
        return domain_error(ValidationError("Missing required fields: commitment_id, tracking_number"))

    try:
        tracking = tracking_service.submit_tracking(
            actor=g.current_profile,
            commitment_id=data["commitment_id"],
            tracking_number=str(data["tracking_number"]),
            carrier=data.get("carrier"),
        )
        return jsonify(tracking_service.tracking_summary(tracking)), 201
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("submit tracking")


@tracking_bp.delete("/<int:tracking_id>")
@require_auth
def remove_tracking_route(tracking_id: int):
    """Remove tracking and return the commitment to PENDING."""
    try:
        commitment = tracking_service.remove_tracking(actor=g.current_profile, tracking_id=tracking_id)
        return jsonify({"success": True, "commitment": commitment.to_dict()})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("remove tracking")
