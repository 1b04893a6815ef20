# Overview: Best-effort "deal is live" webhook to the community bot relay.

"""
Deal-activated notifications.

Called after the deal transaction commits. Nothing here raises: a missing
configuration, a timeout or a non-2xx answer is logged and reported as False
so the admin request that activated the deal still succeeds.
"""

from __future__ import annotations

import httpx
from flask import current_app

from buygroup.time_utils import to_utc_z, utcnow
from ..models.deals import PRICE_ABOVE_RETAIL


def _money(cents: int) -> str:
    return f"${cents / 100:.2f}"


def format_deal_payload(deal) -> dict:
    website_url = current_app.config.get("WEBSITE_URL", "").rstrip("/")
    retail = deal.retail_price_cents
    payout = deal.payout_cents

    discount = None
    if retail > payout:
        discount = f"{round(((retail - payout) / retail) * 100)}% off"

    if deal.price_type == PRICE_ABOVE_RETAIL:
        price, exclusive_price = _money(retail), _money(payout)
    else:
        price, exclusive_price = _money(payout), None

    payload = {
        "item": deal.title,
        "price": price,
        "exclusive_price": exclusive_price,
        "original_price": _money(retail),
        "discount": discount,
        "url": f"{website_url}/dashboard/deals/{deal.deal_id}",
        "image_url": deal.image_url,
        "store": current_app.config.get("BUYING_GROUP_NAME"),
        "category": "Deals",
        "description": deal.description or None,
        "timestamp": to_utc_z(utcnow()),
    }
    return {k: v for k, v in payload.items() if v is not None}


def notify_deal_activated(deal) -> bool:
    config = current_app.config
    url = config.get("DEAL_WEBHOOK_URL")
    secret = config.get("DEAL_WEBHOOK_SECRET")
    if not url or not secret:
        current_app.logger.info("Deal webhook not configured; skipping notification for %s", deal.deal_id)
        return False

    try:
        response = httpx.post(
            url,
            json=format_deal_payload(deal),
            headers={"X-Webhook-Secret": secret},
            timeout=config.get("DEAL_WEBHOOK_TIMEOUT", 5),
        )
    except httpx.HTTPError as exc:
        current_app.logger.warning("Deal webhook failed for %s: %s", deal.deal_id, exc)
        return False

    if response.is_success:
        current_app.logger.info("Deal webhook sent for %s", deal.deal_id)
        return True

    current_app.logger.warning(
        "Deal webhook rejected for %s: %s %s",
        deal.deal_id,
        response.status_code,
        response.text[:200],
    )
    return False
