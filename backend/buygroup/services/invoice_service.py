# Overview: Invoice creation at fulfillment time and the admin bookkeeping on top of it.

from __future__ import annotations

from ..extensions import db
from ..models import Invoice
from ..models.commitments import INVOICE_PAID, INVOICE_STATUSES
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    require_amount_cents,
    require_choice,
)
from buygroup.time_utils import utcnow
from .pricing_service import resolve_payout_rate


def default_invoice_amount(commitment) -> int:
    """quantity x the payout rate resolved for the commitment's own vendor."""
    rate = resolve_payout_rate(commitment.user, commitment.deal)
    return commitment.quantity * rate.rate_cents


def create_invoice_for(commitment, *, skynova_url: str, amount_cents: int | None = None) -> Invoice:
    """
    Stage the Invoice for a commitment being fulfilled. Does not commit:
    the caller's fulfillment transaction owns it.
    """
    url = (skynova_url or "").strip()
    if not url:
        raise ValidationError("invoice_url is required")
    if commitment.invoice is not None:
        raise ConflictError("Commitment already has an invoice", code="INVOICE_EXISTS")

    if amount_cents is None:
        amount_cents = default_invoice_amount(commitment)
    else:
        amount_cents = require_amount_cents("invoice_amount_cents", amount_cents)

    invoice = Invoice(
        commitment_id=commitment.id,
        user_id=commitment.user_id,
        skynova_url=url,
        amount_cents=amount_cents,
    )
    db.session.add(invoice)
    db.session.flush()
    return invoice


def list_invoices_for(actor) -> list[Invoice]:
    return (
        db.session.query(Invoice)
        .filter(Invoice.user_id == actor.id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )


def list_all_invoices(*, status: str | None = None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if status:
        query = query.filter(Invoice.status == require_choice("status", status, INVOICE_STATUSES))
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


_UPDATABLE_TEXT_FIELDS = ("check_number", "check_image_url", "notes")


def update_invoice(*, invoice_id: int, payload: dict) -> Invoice:
    """
    Admin bookkeeping: status (PENDING/PAID), check details, notes.
    Moving to PAID stamps paid_at.
    """
    invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found")

    unknown = set(payload) - {"status", *_UPDATABLE_TEXT_FIELDS}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    if payload.get("status"):
        status = require_choice("status", payload["status"], INVOICE_STATUSES)
        if status == INVOICE_PAID and invoice.status != INVOICE_PAID:
            invoice.paid_at = utcnow()
        elif status != INVOICE_PAID:
            invoice.paid_at = None
        invoice.status = status

    for field_name in _UPDATABLE_TEXT_FIELDS:
        if field_name in payload:
            value = payload[field_name]
            setattr(invoice, field_name, str(value).strip() if value is not None else None)

    db.session.commit()
    return invoice
