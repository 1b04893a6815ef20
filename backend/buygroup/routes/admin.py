# Overview: Flask API routes for staff operations; parses input and returns JSON responses.

"""
Admin routes for deal management and commitment processing.

Provides endpoints for:
- Deal management (list with stats, create, update, delete)
- Commitment processing (deliver, fulfill, cancel)
- Tracking mirror updates
- Label request decisions
- Invoice bookkeeping

Deals, labels and invoices are ADMIN-only. Workers may also list commitments
and tracking and mark shipments delivered; the state machine decides which
moves each staff role may make.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.accounts import ROLE_ADMIN, STAFF_ROLES
from ..responses import domain_error, internal_error, json_body
from ..services import (
    commitment_service,
    deal_service,
    invoice_service,
    label_service,
    tracking_service,
)
from ..validation import DomainError, ValidationError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# DEAL MANAGEMENT
# =============================================================================

@admin_bp.get("/deals")
@require_auth
@require_role(ROLE_ADMIN)
def list_deals():
    """
    List every deal with commitment stats.

    Query params:
    - status: DRAFT | ACTIVE | PAUSED | EXPIRED | CLOSED
    """
    try:
        deals = deal_service.list_deals_with_stats(status=request.args.get("status"))
        return jsonify({"items": deals, "count": len(deals)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list deals")


@admin_bp.post("/deals")
@require_auth
@require_role(ROLE_ADMIN)
def create_deal():
    """
    Create a deal. New deals start DRAFT or ACTIVE; an ACTIVE deal is
    announced to the webhook after it is saved.

    Request body:
    {
        "title": "Nintendo Switch OLED",       // required
        "retail_price_cents": 34999,          // required
        "payout_cents": 36000,                // required
        "is_exclusive": true,                 // optional
        "exclusive_price_cents": 37000,       // optional, VIP payout
        "limit_per_vendor": 5,                // optional, null = unlimited
        "free_label_min": 3,                  // optional
        "deadline": "2026-11-01T00:00:00Z",   // optional
        "status": "DRAFT"                     // optional
    }
    """
    try:
        deal = deal_service.create_deal(actor=g.current_profile, payload=json_body())
        return jsonify(deal.to_dict()), 201
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("create deal")


@admin_bp.put("/deals/<int:deal_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_deal(deal_id: int):
    try:
        deal = deal_service.update_deal(actor=g.current_profile, deal_id=deal_id, payload=json_body())
        return jsonify(deal.to_dict())
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update deal")


@admin_bp.delete("/deals/<int:deal_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_deal(deal_id: int):
    """Delete a deal. Refused while any non-cancelled commitment exists."""
    try:
        deal_service.delete_deal(deal_id=deal_id)
        return jsonify({"success": True})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("delete deal")


# =============================================================================
# COMMITMENT PROCESSING
# =============================================================================

@admin_bp.get("/commitments")
@require_auth
@require_role(*STAFF_ROLES)
def list_commitments():
    """
    Query params:
    - status: status filter (default: everything except CANCELLED; ALL for everything)
    - warehouse: warehouse code
    - user_id, deal_id: int
    """
    try:
        commitments = commitment_service.list_all_commitments(
            status=request.args.get("status"),
            warehouse=request.args.get("warehouse"),
            user_id=request.args.get("user_id", type=int),
            deal_id=request.args.get("deal_id", type=int),
        )
        items = [c.to_dict(include_vendor=True) for c in commitments]
        return jsonify({"items": items, "count": len(items)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list commitments")


@admin_bp.put("/commitments/<int:commitment_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_commitment(commitment_id: int):
    """
    Request body:
    {
        "status": "DELIVERED" | "FULFILLED" | "CANCELLED",   // optional
        "notes": "...",                                      // optional
        "invoice_url": "https://...",                        // FULFILLED only
        "invoice_amount_cents": 180000                       // FULFILLED only
    }
    """
    data = json_body()
    try:
        commitment = commitment_service.admin_update_commitment(
            actor=g.current_profile,
            commitment_id=commitment_id,
            status=data.get("status"),
            notes=data.get("notes"),
            invoice_url=data.get("invoice_url"),
            invoice_amount_cents=data.get("invoice_amount_cents"),
        )
        return jsonify(commitment.to_dict(include_vendor=True))
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update commitment")


# =============================================================================
# TRACKING
# =============================================================================

@admin_bp.get("/tracking")
@require_auth
@require_role(*STAFF_ROLES)
def list_tracking():
    """
    Query params:
    - warehouse, carrier, status: filters (ALL disables a filter)
    - search: tracking number, vendor email or deal title
    """
    try:
        rows = tracking_service.list_all_tracking(
            warehouse=request.args.get("warehouse"),
            carrier=request.args.get("carrier"),
            status=request.args.get("status"),
            search=request.args.get("search"),
        )
        return jsonify({"items": [tracking_service.tracking_summary(t) for t in rows], "count": len(rows)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list tracking")


@admin_bp.patch("/tracking/<int:tracking_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_tracking(tracking_id: int):
    data = json_body()
    try:
        tracking = tracking_service.admin_update_tracking(
            actor=g.current_profile,
            tracking_id=tracking_id,
            last_status=data.get("last_status"),
            last_location=data.get("last_location"),
            estimated_delivery=data.get("estimated_delivery"),
            commitment_status=data.get("commitment_status"),
            invoice_url=data.get("invoice_url"),
            invoice_amount_cents=data.get("invoice_amount_cents"),
        )
        return jsonify(tracking_service.tracking_summary(tracking))
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update tracking")


# =============================================================================
# LABEL REQUESTS
# =============================================================================

@admin_bp.get("/labels")
@require_auth
@require_role(ROLE_ADMIN)
def list_labels():
    try:
        labels = label_service.list_all_label_requests(status=request.args.get("status"))
        items = [label_service.label_summary(l, include_vendor=True) for l in labels]
        return jsonify({"items": items, "count": len(items)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list label requests")


@admin_bp.put("/labels/<int:label_id>")
@require_auth
@require_role(ROLE_ADMIN)
def process_label(label_id: int):
    """
    Request body:
    {
        "status": "APPROVED" | "REJECTED",   // required
        "label_files": ["labels/7-1.pdf"],   // APPROVED needs files or label_url
        "label_url": "https://...",
        "notes": "..."
    }
    """
    data = json_body()
    if not data.get("status"):
        return domain_error(ValidationError("status is required"))

    try:
        label = label_service.process_label_request(
            actor=g.current_profile,
            label_id=label_id,
            status=data["status"],
            label_url=data.get("label_url"),
            label_files=data.get("label_files"),
            notes=data.get("notes"),
        )
        return jsonify(label_service.label_summary(label, include_vendor=True))
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("process label request")


# =============================================================================
# INVOICES
# =============================================================================

@admin_bp.get("/invoices")
@require_auth
@require_role(ROLE_ADMIN)
def list_invoices():
    try:
        invoices = invoice_service.list_all_invoices(status=request.args.get("status"))
        return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list invoices")


@admin_bp.put("/invoices/<int:invoice_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_invoice(invoice_id: int):
    """
    Request body (any subset):
    {
        "status": "PENDING" | "PAID",
        "check_number": "1042",
        "check_image_url": "https://...",
        "notes": "..."
    }
    """
    try:
        invoice = invoice_service.update_invoice(invoice_id=invoice_id, payload=json_body())
        return jsonify(invoice.to_dict())
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update invoice")
