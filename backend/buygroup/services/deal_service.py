# Overview: Deal lifecycle: admin CRUD, role-filtered reads, expiry sweep and the bot digest feed.

"""
Deal Lifecycle Service

STATE MACHINE (admin-controlled, vendors never move a deal):

    DRAFT   -> ACTIVE | CLOSED
    ACTIVE  -> PAUSED | EXPIRED | CLOSED
    PAUSED  -> ACTIVE | EXPIRED | CLOSED
    EXPIRED -> ACTIVE | CLOSED
    CLOSED  (terminal)

New deals start DRAFT or ACTIVE. Vendors only ever see ACTIVE deals (and
EXPIRED ones when browsing history); DRAFT is admin-only.

A deal with any non-cancelled commitment cannot be deleted; close it instead.
Entering ACTIVE (on create or update) fires the deal webhook after commit.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Commitment, Deal, Invoice, LabelRequest, Tracking
from ..models.accounts import ROLE_ADMIN
from ..models.commitments import STATUS_CANCELLED, STATUS_FULFILLED
from ..models.deals import (
    DEAL_ACTIVE,
    DEAL_CLOSED,
    DEAL_DRAFT,
    DEAL_EXPIRED,
    DEAL_PAUSED,
    DEAL_STATUSES,
    RETAIL_LINK_FIELDS,
)
from ..models.sequences import SEQUENCE_DEAL
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_amount_cents,
    require_choice,
    validate_payload,
)
from buygroup.time_utils import to_utc_z, utcnow
from . import notification_service, sequence_service
from .pricing_service import classify_price, profit_percent


DEAL_TRANSITIONS = {
    DEAL_DRAFT: {DEAL_ACTIVE, DEAL_CLOSED},
    DEAL_ACTIVE: {DEAL_PAUSED, DEAL_EXPIRED, DEAL_CLOSED},
    DEAL_PAUSED: {DEAL_ACTIVE, DEAL_EXPIRED, DEAL_CLOSED},
    DEAL_EXPIRED: {DEAL_ACTIVE, DEAL_CLOSED},
    DEAL_CLOSED: set(),
}
INITIAL_STATUSES = {DEAL_DRAFT, DEAL_ACTIVE}
VENDOR_VISIBLE_STATUSES = {DEAL_ACTIVE, DEAL_EXPIRED}

DEAL_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "image_url",
        "retail_price_cents", "payout_cents",
        "limit_per_vendor", "free_label_min",
        "is_exclusive", "exclusive_price_cents",
        "deadline", "status",
        *(column for column, _ in RETAIL_LINK_FIELDS),
        "link_other_name",
    },
    required_on_create={"title", "retail_price_cents", "payout_cents"},
    # Derived or server-owned; clients that echo them back are not rejected
    ignored_fields={
        "id", "deal_id", "deal_number", "price_type", "retail_links",
        "payout_rate", "is_vip_pricing", "created_at", "updated_at", "created_by_id",
    },
)

# Bot digest labels for price_type, and an emoji per retailer
_FEED_PRICE_TYPES = {"ABOVE_RETAIL": "above_retail", "RETAIL": "at_retail", "BELOW_COST": "below_retail"}
_LINK_EMOJI = {
    "link_amazon": "📦",
    "link_best_buy": "🟡",
    "link_walmart": "🔵",
    "link_target": "🎯",
    "link_home_depot": "🧰",
    "link_lowes": "🔧",
    "link_other": "🔗",
}


class DealError(ConflictError):
    """Business-rule rejection on a deal (bad status move, delete with commitments)."""
    default_code = "DEAL_RULE"


def can_transition(from_status: str, to_status: str) -> bool:
    if from_status == to_status:
        return True
    return to_status in DEAL_TRANSITIONS.get(from_status, set())


def _validated_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Deal, payload=payload, policy=DEAL_POLICY, partial=partial)

    if "retail_price_cents" in patch:
        patch["retail_price_cents"] = require_amount_cents(
            "retail_price_cents", patch["retail_price_cents"], allow_zero=False
        )
    if "payout_cents" in patch:
        patch["payout_cents"] = require_amount_cents("payout_cents", patch["payout_cents"])
    if patch.get("exclusive_price_cents") is not None:
        patch["exclusive_price_cents"] = require_amount_cents(
            "exclusive_price_cents", patch["exclusive_price_cents"]
        )
    # A limit of 0 is stored as-is and blocks commitments; only null is unbounded
    if patch.get("limit_per_vendor") is not None and patch["limit_per_vendor"] < 0:
        raise ValidationError("limit_per_vendor must be >= 0")
    if patch.get("free_label_min") is not None and patch["free_label_min"] < 1:
        raise ValidationError("free_label_min must be at least 1")
    if "status" in patch:
        patch["status"] = require_choice("status", patch["status"], DEAL_STATUSES)
    return patch


def get_deal(deal_id: int) -> Deal:
    deal = db.session.query(Deal).filter_by(id=deal_id).first()
    if not deal:
        raise NotFoundError("Deal not found")
    return deal


def create_deal(*, actor, payload: dict) -> Deal:
    patch = _validated_patch(payload, partial=False)
    status = patch.pop("status", None) or DEAL_DRAFT
    if status not in INITIAL_STATUSES:
        raise DealError(
            f"New deals must start as {DEAL_DRAFT} or {DEAL_ACTIVE}",
            code="INVALID_INITIAL_STATUS",
            details={"status": status},
        )

    deal = Deal(
        deal_number=sequence_service.next_number(SEQUENCE_DEAL),
        status=status,
        created_by_id=actor.id,
        **patch,
    )
    deal.description = deal.description or ""
    deal.price_type = classify_price(deal.retail_price_cents, deal.payout_cents)
    db.session.add(deal)
    db.session.commit()

    if deal.status == DEAL_ACTIVE:
        notification_service.notify_deal_activated(deal)
    return deal


def update_deal(*, actor, deal_id: int, payload: dict) -> Deal:
    deal = get_deal(deal_id)
    patch = _validated_patch(payload, partial=True)
    previous_status = deal.status

    new_status = patch.pop("status", None)
    if new_status is not None and not can_transition(previous_status, new_status):
        raise DealError(
            f"Cannot move deal from {previous_status} to {new_status}",
            code="INVALID_TRANSITION",
            details={"current_status": previous_status, "requested_status": new_status},
        )

    for key, value in patch.items():
        setattr(deal, key, value)
    if new_status is not None:
        deal.status = new_status
    if deal.description is None:
        deal.description = ""
    deal.price_type = classify_price(deal.retail_price_cents, deal.payout_cents)
    db.session.commit()

    if previous_status != DEAL_ACTIVE and deal.status == DEAL_ACTIVE:
        notification_service.notify_deal_activated(deal)
    return deal


def delete_deal(*, deal_id: int) -> None:
    """
    Hard-delete a deal that never had a live commitment. Cancelled
    commitments (and anything hanging off them) go with it.
    """
    deal = get_deal(deal_id)
    live = (
        db.session.query(func.count(Commitment.id))
        .filter(Commitment.deal_id == deal.id, Commitment.status != STATUS_CANCELLED)
        .scalar()
    )
    if live:
        raise DealError(
            "Cannot delete deal with active commitments. Set status to CLOSED instead.",
            code="DEAL_HAS_COMMITMENTS",
            details={"commitments": live},
        )

    cancelled_ids = [
        row.id for row in db.session.query(Commitment.id).filter(Commitment.deal_id == deal.id)
    ]
    if cancelled_ids:
        for child in (Tracking, LabelRequest, Invoice):
            db.session.query(child).filter(child.commitment_id.in_(cancelled_ids)).delete(
                synchronize_session=False
            )
        db.session.query(Commitment).filter(Commitment.id.in_(cancelled_ids)).delete(
            synchronize_session=False
        )
    db.session.delete(deal)
    db.session.commit()


def list_deals_for(profile, *, status: str | None = None, include_expired: bool = False) -> list[Deal]:
    """Admins see everything (optionally by status); everybody else sees ACTIVE (+EXPIRED)."""
    query = db.session.query(Deal)
    if profile.role == ROLE_ADMIN:
        if status:
            query = query.filter(Deal.status == require_choice("status", status, DEAL_STATUSES))
    elif include_expired:
        query = query.filter(Deal.status.in_(VENDOR_VISIBLE_STATUSES))
    else:
        query = query.filter(Deal.status == DEAL_ACTIVE)
    return query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()


def get_deal_for(profile, deal_id: int) -> Deal:
    deal = get_deal(deal_id)
    if profile.role != ROLE_ADMIN and deal.status not in VENDOR_VISIBLE_STATUSES:
        raise NotFoundError("Deal not available")
    return deal


def deal_stats(deal_ids=None) -> dict[int, dict]:
    """
    Per-deal totals over non-cancelled commitments:
    {deal_id: {total_commitments, total_quantity, fulfilled}}.
    """
    query = (
        db.session.query(
            Commitment.deal_id,
            func.count(Commitment.id),
            func.coalesce(func.sum(Commitment.quantity), 0),
            func.sum(case((Commitment.status == STATUS_FULFILLED, 1), else_=0)),
        )
        .filter(Commitment.status != STATUS_CANCELLED)
        .group_by(Commitment.deal_id)
    )
    if deal_ids is not None:
        query = query.filter(Commitment.deal_id.in_(list(deal_ids)))

    stats = {}
    for deal_id, count, quantity, fulfilled in query.all():
        stats[deal_id] = {
            "total_commitments": int(count),
            "total_quantity": int(quantity),
            "fulfilled": int(fulfilled or 0),
        }
    return stats


def list_deals_with_stats(*, status: str | None = None) -> list[dict]:
    query = db.session.query(Deal)
    if status:
        query = query.filter(Deal.status == require_choice("status", status, DEAL_STATUSES))
    deals = query.order_by(Deal.created_at.desc(), Deal.id.desc()).all()
    stats = deal_stats([d.id for d in deals])
    empty = {"total_commitments": 0, "total_quantity": 0, "fulfilled": 0}
    return [{**deal.to_dict(), "stats": stats.get(deal.id, empty)} for deal in deals]


def expire_overdue_deals(now: datetime | None = None) -> list[Deal]:
    """Move ACTIVE deals whose deadline has passed to EXPIRED."""
    now = now or utcnow()
    deals = (
        db.session.query(Deal)
        .filter(Deal.status == DEAL_ACTIVE, Deal.deadline.isnot(None), Deal.deadline < now)
        .all()
    )
    for deal in deals:
        deal.status = DEAL_EXPIRED
    db.session.commit()
    return deals


def active_deal_feed() -> dict:
    """Digest of ACTIVE deals for the community bot, soonest deadline first."""
    config = current_app.config
    website_url = config.get("WEBSITE_URL", "").rstrip("/")

    # NULL deadlines sort last
    deals = (
        db.session.query(Deal)
        .filter(Deal.status == DEAL_ACTIVE)
        .order_by(Deal.deadline.is_(None), Deal.deadline.asc(), Deal.created_at.desc())
        .all()
    )

    items = []
    for deal in deals:
        vip_price = deal.exclusive_price_cents if deal.is_exclusive else None
        best_payout = deal.payout_cents if vip_price is None else vip_price
        items.append({
            "deal_id": deal.deal_id,
            "item": deal.title,
            "description": deal.description,
            "image_url": deal.image_url,
            "buy_price_cents": deal.retail_price_cents,
            "sell_price_cents": deal.payout_cents,
            "vip_sell_price_cents": vip_price,
            "price_type": _FEED_PRICE_TYPES[classify_price(deal.retail_price_cents, deal.payout_cents)],
            "profit_percent": profit_percent(deal.retail_price_cents, best_payout),
            "vendor_limit": deal.limit_per_vendor,
            "free_label_min": deal.free_label_min,
            "deadline": to_utc_z(deal.deadline),
            "commit_url": f"{website_url}/dashboard/deals/{deal.id}",
            "retail_links": [
                {**link, "emoji": _LINK_EMOJI[column]}
                for (column, _), link in _links_with_columns(deal)
            ],
        })

    return {
        "buying_group": config.get("BUYING_GROUP_NAME"),
        "buying_group_id": config.get("BUYING_GROUP_ID"),
        "deals": items,
        "count": len(items),
        "generated_at": to_utc_z(utcnow()),
    }


def _links_with_columns(deal):
    for field in RETAIL_LINK_FIELDS:
        column, label = field
        url = getattr(deal, column)
        if url:
            yield field, {"name": label or deal.link_other_name or "Other", "url": url}
