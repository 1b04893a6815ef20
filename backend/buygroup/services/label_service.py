# Overview: Prepaid shipping label requests: vendor request/cancel and admin approval.

"""
Label requests never change the commitment's status. A vendor may ask for
one label per pending SHIP commitment; admins approve it (with at least one
label file or URL) or reject it. Only PENDING requests can be withdrawn or
processed.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Commitment, LabelRequest
from ..models.accounts import ROLE_SELLER
from ..models.commitments import (
    DELIVERY_SHIP,
    LABEL_APPROVED,
    LABEL_PENDING,
    LABEL_REJECTED,
    TERMINAL_STATUSES,
)
from ..validation import ConflictError, ForbiddenError, NotFoundError, ValidationError, require_choice
from buygroup.time_utils import utcnow
from . import commitment_service
from .commitment_service import REQUEST_LABEL, next_state


PROCESSED_STATUSES = {LABEL_APPROVED, LABEL_REJECTED}


def get_label_request(label_id: int) -> LabelRequest:
    label = db.session.query(LabelRequest).filter_by(id=label_id).first()
    if not label:
        raise NotFoundError("Label request not found")
    return label


def request_label(*, actor, commitment_id: int) -> LabelRequest:
    commitment = commitment_service.get_owned_commitment(actor, commitment_id, lock=True)
    if commitment.label_request is not None:
        raise ConflictError("Label already requested for this commitment", code="LABEL_EXISTS")
    next_state(commitment.status, REQUEST_LABEL, ROLE_SELLER)
    if commitment.delivery_method != DELIVERY_SHIP:
        raise ValidationError("Labels only available for shipping, not drop-off")

    label = LabelRequest(commitment_id=commitment.id, status=LABEL_PENDING)
    db.session.add(label)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Label already requested for this commitment", code="LABEL_EXISTS")
    return label


def cancel_label_request(*, actor, label_id: int) -> None:
    label = get_label_request(label_id)
    if label.commitment.user_id != actor.id:
        raise ForbiddenError("You can only cancel your own label requests")
    if label.status != LABEL_PENDING:
        raise ConflictError("Can only cancel pending requests", details={"current_status": label.status})
    db.session.delete(label)
    db.session.commit()


def process_label_request(
    *,
    actor,
    label_id: int,
    status: str,
    label_url: str | None = None,
    label_files: list | None = None,
    notes: str | None = None,
) -> LabelRequest:
    """Admin decision. APPROVED needs label_files or label_url; REJECTED clears both."""
    status = require_choice("status", status, PROCESSED_STATUSES)
    label = get_label_request(label_id)
    if label.status != LABEL_PENDING:
        raise ConflictError("Label request was already processed", details={"current_status": label.status})
    commitment_status = label.commitment.status
    if status == LABEL_APPROVED and commitment_status in TERMINAL_STATUSES:
        raise ConflictError(
            f"Cannot approve a label for a {commitment_status} commitment",
            code="COMMITMENT_CLOSED",
            details={"commitment_status": commitment_status},
        )

    if label_files is not None and (
        not isinstance(label_files, list) or not all(isinstance(f, str) and f.strip() for f in label_files)
    ):
        raise ValidationError("label_files must be a list of file paths")
    label_url = (label_url or "").strip() or None

    if status == LABEL_APPROVED:
        if not label_files and not label_url:
            raise ValidationError("At least one label file is required for approval")
        label.label_url = label_url
        label.label_files = label_files or None
    else:
        label.label_url = None
        label.label_files = None

    label.status = status
    label.notes = (notes or "").strip() or None
    label.processed_at = utcnow()
    label.processed_by_id = actor.id
    db.session.commit()
    return label


def list_label_requests_for(actor, *, status: str | None = None) -> list[LabelRequest]:
    query = db.session.query(LabelRequest).join(Commitment).filter(Commitment.user_id == actor.id)
    return _filtered(query, status).all()


def list_all_label_requests(*, status: str | None = None) -> list[LabelRequest]:
    return _filtered(db.session.query(LabelRequest), status).all()


def _filtered(query, status):
    if status:
        query = query.filter(LabelRequest.status == status.strip().upper())
    return query.order_by(LabelRequest.created_at.desc(), LabelRequest.id.desc())


def label_summary(label: LabelRequest, *, include_vendor: bool = False) -> dict:
    commitment = label.commitment
    data = label.to_dict()
    data["commitment"] = {
        "id": commitment.id,
        "commitment_id": commitment.commitment_id,
        "quantity": commitment.quantity,
        "warehouse": commitment.warehouse,
        "status": commitment.status,
        "qualifies_for_free_label": commitment.qualifies_for_free_label,
        "deal": {"title": commitment.deal.title, "free_label_min": commitment.deal.free_label_min},
    }
    if include_vendor:
        data["vendor"] = {
            "id": commitment.user.id,
            "first_name": commitment.user.first_name,
            "last_name": commitment.user.last_name,
            "email": commitment.user.email,
            "vendor_id": commitment.user.vendor_id,
        }
    return data
