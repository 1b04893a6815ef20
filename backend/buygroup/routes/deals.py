# Overview: Flask API routes for browsing deals; parses input and returns JSON responses.

"""
Deal Routes

Any authenticated profile may browse. Non-admins only ever see ACTIVE deals
(EXPIRED too with include_expired=true); DRAFT, PAUSED and CLOSED deals are
admin-only. Each deal carries the payout the viewer would earn on it.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..responses import domain_error, internal_error
from ..services import deal_service
from ..services.pricing_service import resolve_payout_rate
from ..validation import DomainError


deals_bp = Blueprint("deals", __name__, url_prefix="/api/deals")


def _deal_for_viewer(deal, profile) -> dict:
    rate = resolve_payout_rate(profile, deal)
    data = deal.to_dict()
    data["payout_rate_cents"] = rate.rate_cents
    data["is_vip_pricing"] = rate.is_vip
    return data


@deals_bp.get("")
@require_auth
def list_deals_route():
    """
    Query parameters:
    - status: admin-only status filter
    - include_expired: non-admins also see EXPIRED deals (default: false)
    """
    profile = g.current_profile
    include_expired = request.args.get("include_expired", "false").lower() == "true"

    try:
        deals = deal_service.list_deals_for(
            profile,
            status=request.args.get("status"),
            include_expired=include_expired,
        )
        return jsonify({"items": [_deal_for_viewer(d, profile) for d in deals], "count": len(deals)})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("list deals")


@deals_bp.get("/<int:deal_id>")
@require_auth
def get_deal_route(deal_id: int):
    profile = g.current_profile
    try:
        deal = deal_service.get_deal_for(profile, deal_id)
        return jsonify(_deal_for_viewer(deal, profile))
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("get deal")
