# Overview: Tracking submission/removal for SHIP commitments and the staff-side carrier status mirror.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Commitment, Deal, Profile, Tracking
from ..models.accounts import ROLE_SELLER
from ..models.commitments import CARRIERS, DELIVERY_SHIP
from ..validation import ConflictError, ForbiddenError, NotFoundError, ValidationError, require_choice
from buygroup.time_utils import parse_iso_datetime, utcnow
from . import commitment_service
from .carrier_service import detect_carrier, normalize_tracking_number
from .commitment_service import REMOVE_TRACKING, SUBMIT_TRACKING, next_state
from .concurrency import lock_for_update, run_with_retry


INITIAL_TRACKING_STATUS = "Label Created"


def get_tracking(tracking_id: int, *, lock: bool = False) -> Tracking:
    query = db.session.query(Tracking).filter_by(id=tracking_id)
    if lock:
        query = lock_for_update(query)
    tracking = query.first()
    if not tracking:
        raise NotFoundError("Tracking not found")
    return tracking


def submit_tracking(*, actor, commitment_id: int, tracking_number: str, carrier: str | None = None) -> Tracking:
    """
    Attach tracking to the vendor's pending SHIP commitment and move it to
    IN_TRANSIT. Without an explicit carrier the number's shape decides it.
    """
    number = normalize_tracking_number(tracking_number)
    if not number:
        raise ValidationError("tracking_number is required")
    if carrier:
        carrier = require_choice("carrier", carrier, set(CARRIERS))
    else:
        carrier = detect_carrier(number)

    def _op() -> Tracking:
        commitment = commitment_service.get_owned_commitment(actor, commitment_id, lock=True)
        new_status = next_state(commitment.status, SUBMIT_TRACKING, ROLE_SELLER)
        if commitment.delivery_method != DELIVERY_SHIP:
            raise ValidationError("Tracking is only used for shipped commitments")
        if commitment.tracking is not None:
            raise ConflictError("Tracking already submitted for this commitment", code="TRACKING_EXISTS")

        tracking = Tracking(
            commitment_id=commitment.id,
            tracking_number=number,
            carrier=carrier,
            last_status=INITIAL_TRACKING_STATUS,
        )
        db.session.add(tracking)
        commitment.status = new_status
        commitment.shipped_at = utcnow()
        db.session.commit()
        return tracking

    return run_with_retry(_op)


def remove_tracking(*, actor, tracking_id: int) -> Commitment:
    """
    Delete tracking and return the commitment to PENDING. The owning vendor
    acts under the vendor rules; staff under their own role.
    """
    def _op() -> Commitment:
        tracking = get_tracking(tracking_id, lock=True)
        commitment = tracking.commitment
        if commitment.user_id == actor.id:
            role = ROLE_SELLER
        elif actor.is_staff:
            role = actor.role
        else:
            raise ForbiddenError("You can only remove your own tracking")

        commitment.status = next_state(commitment.status, REMOVE_TRACKING, role)
        commitment.shipped_at = None
        db.session.delete(tracking)
        db.session.commit()
        return commitment

    return run_with_retry(_op)


def list_tracking_for(actor, *, warehouse: str | None = None, carrier: str | None = None) -> list[Tracking]:
    query = db.session.query(Tracking).join(Commitment).filter(Commitment.user_id == actor.id)
    return _apply_filters(query, warehouse=warehouse, carrier=carrier).all()


def list_all_tracking(
    *,
    warehouse: str | None = None,
    carrier: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[Tracking]:
    query = db.session.query(Tracking).join(Commitment)
    if status and status.upper() != "ALL":
        query = query.filter(Commitment.status == status.strip().upper())
    if search:
        term = f"%{search.strip()}%"
        query = (
            query.join(Profile, Profile.id == Commitment.user_id)
            .join(Deal, Deal.id == Commitment.deal_id)
            .filter(or_(
                Tracking.tracking_number.ilike(term),
                Profile.email.ilike(term),
                Profile.first_name.ilike(term),
                Profile.last_name.ilike(term),
                Deal.title.ilike(term),
            ))
        )
    return _apply_filters(query, warehouse=warehouse, carrier=carrier).all()


def _apply_filters(query, *, warehouse, carrier):
    if warehouse and warehouse.upper() != "ALL":
        query = query.filter(Commitment.warehouse == warehouse.strip().upper())
    if carrier and carrier.upper() != "ALL":
        query = query.filter(Tracking.carrier == carrier.strip().upper())
    return query.order_by(Tracking.created_at.desc(), Tracking.id.desc())


def admin_update_tracking(
    *,
    actor,
    tracking_id: int,
    last_status: str | None = None,
    last_location: str | None = None,
    estimated_delivery: str | None = None,
    commitment_status: str | None = None,
    invoice_url: str | None = None,
    invoice_amount_cents: int | None = None,
) -> Tracking:
    """
    Staff update of the carrier mirror, optionally moving the commitment on
    (DELIVERED / FULFILLED) through the state machine. The mirror and the
    status move commit together, or not at all.
    """
    if not actor.is_staff:
        raise ForbiddenError("Staff access required")

    parsed_delivery = None
    if estimated_delivery is not None:
        try:
            parsed_delivery = parse_iso_datetime(estimated_delivery)
        except ValueError:
            raise ValidationError("estimated_delivery must be an ISO-8601 datetime")

    tracking = get_tracking(tracking_id)

    def _apply(commitment: Commitment) -> None:
        # Fresh rows on every attempt
        row = commitment.tracking
        if last_status is not None:
            row.last_status = last_status.strip() or None
        if last_location is not None:
            row.last_location = last_location.strip() or None
        if estimated_delivery is not None:
            row.estimated_delivery = parsed_delivery
        if commitment_status:
            commitment_service.stage_staff_status(
                actor,
                commitment,
                commitment_status,
                invoice_url=invoice_url,
                invoice_amount_cents=invoice_amount_cents,
            )

    commitment_service.run_staff_change(tracking.commitment_id, _apply)
    return tracking


def tracking_summary(tracking: Tracking) -> dict:
    """Tracking row with its vendor and deal, as staff listings show it."""
    commitment = tracking.commitment
    data = tracking.to_dict()
    data["vendor"] = {
        "id": commitment.user.id,
        "name": commitment.user.full_name,
        "email": commitment.user.email,
        "vendor_id": commitment.user.vendor_id,
    }
    data["commitment"] = {
        "id": commitment.id,
        "commitment_id": commitment.commitment_id,
        "quantity": commitment.quantity,
        "warehouse": commitment.warehouse,
        "status": commitment.status,
        "deal": {
            "id": commitment.deal.id,
            "deal_id": commitment.deal.deal_id,
            "title": commitment.deal.title,
            "payout_cents": commitment.deal.payout_cents,
        },
    }
    return data
