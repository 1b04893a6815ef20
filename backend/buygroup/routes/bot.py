# Overview: Flask API routes for the community bot; shared-secret auth, JSON responses.

from flask import Blueprint, jsonify

from ..decorators import require_bot_key
from ..responses import internal_error
from ..services import deal_service


bot_bp = Blueprint("bot", __name__, url_prefix="/api/bot")


@bot_bp.get("/active-deals")
@require_bot_key
def active_deals_route():
    """ACTIVE deals formatted for bot embeds, soonest deadline first."""
    try:
        return jsonify(deal_service.active_deal_feed())
    except Exception:
        return internal_error("build active deal feed")
