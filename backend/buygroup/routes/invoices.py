# Overview: Flask API routes for a vendor's payout invoices; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify

from ..decorators import require_auth
from ..responses import internal_error
from ..services import invoice_service


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """Invoices for the caller's fulfilled commitments, newest first."""
    try:
        invoices = invoice_service.list_invoices_for(g.current_profile)
        return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})
    except Exception:
        return internal_error("list invoices")
