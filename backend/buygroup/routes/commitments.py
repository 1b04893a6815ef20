# Overview: Flask API routes for a vendor's own commitments; parses input and returns JSON responses.

"""
Commitment Routes

Vendors create, edit and cancel their own commitments. Payout rates and VIP
flags in request bodies are ignored; the server resolves them.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..responses import domain_error, internal_error, json_body
from ..services import commitment_service
from ..validation import DomainError, ValidationError


commitments_bp = Blueprint("commitments", __name__, url_prefix="/api/commitments")


@commitments_bp.get("")
@require_auth
def list_commitments_route():
    """
    Query parameters:
    - status: only this status (default: everything except CANCELLED)
    - warehouse: warehouse code
    """
    try:
        commitments = commitment_service.list_commitments_for(
            g.current_profile,
            status=request.args.get("status"),
            warehouse=request.args.get("warehouse"),
        )
        return jsonify({"items": [c.to_dict() for c in commitments], "count": len(commitments)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list commitments")


@commitments_bp.post("")
@require_auth
def create_commitment_route():
    """
    Request body:
    {
        "deal_id": 12,     // required
        "quantity": 3      // required, positive integer
    }

    Returns:
        201: Commitment (PENDING, warehouse "TBD")
        409: allocation rejection with remaining_allowance in details
    """
    data = json_body()
    if data.get("deal_id") in (None, "") or data.get("quantity") in (None, ""):
        return domain_error(ValidationError("Missing required fields: deal_id, quantity"))

    try:
        commitment = commitment_service.create_commitment(
            actor=g.current_profile,
            deal_id=data["deal_id"],
            quantity=data["quantity"],
        )
        return jsonify(commitment.to_dict()), 201
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("create commitment")


@commitments_bp.get("/<int:commitment_id>")
@require_auth
def get_commitment_route(commitment_id: int):
    try:
        commitment = commitment_service.get_commitment_for(g.current_profile, commitment_id)
        return jsonify(commitment.to_dict())
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("get commitment")


@commitments_bp.put("/<int:commitment_id>")
@require_auth
def update_commitment_route(commitment_id: int):
    """
    Request body (any subset):
    {
        "delivery_method": "SHIP" | "DROP_OFF",
        "warehouse": "NJ",
        "quantity": 4
    }
    """
    data = json_body()
    try:
        commitment = commitment_service.update_commitment(
            actor=g.current_profile,
            commitment_id=commitment_id,
            delivery_method=data.get("delivery_method"),
            warehouse=data.get("warehouse"),
            quantity=data.get("quantity"),
        )
        return jsonify(commitment.to_dict())
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update commitment")


@commitments_bp.delete("/<int:commitment_id>")
@require_auth
def cancel_commitment_route(commitment_id: int):
    """Cancel (never delete) a pending commitment."""
    try:
        commitment = commitment_service.cancel_commitment(
            actor=g.current_profile,
            commitment_id=commitment_id,
        )
        return jsonify({"success": True, "commitment": commitment.to_dict()})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("cancel commitment")
