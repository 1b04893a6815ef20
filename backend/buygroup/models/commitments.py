from __future__ import annotations

from ..extensions import db
from buygroup.time_utils import to_utc_z
from .sequences import SEQUENCE_COMMITMENT, SEQUENCE_DEAL, display_id


STATUS_PENDING = "PENDING"
STATUS_DROP_OFF_PENDING = "DROP_OFF_PENDING"
STATUS_IN_TRANSIT = "IN_TRANSIT"
STATUS_DELIVERED = "DELIVERED"
STATUS_FULFILLED = "FULFILLED"
STATUS_CANCELLED = "CANCELLED"
COMMITMENT_STATUSES = {
    STATUS_PENDING,
    STATUS_DROP_OFF_PENDING,
    STATUS_IN_TRANSIT,
    STATUS_DELIVERED,
    STATUS_FULFILLED,
    STATUS_CANCELLED,
}
TERMINAL_STATUSES = {STATUS_FULFILLED, STATUS_CANCELLED}
VENDOR_EDITABLE_STATUSES = {STATUS_PENDING, STATUS_DROP_OFF_PENDING}

DELIVERY_SHIP = "SHIP"
DELIVERY_DROP_OFF = "DROP_OFF"
DELIVERY_METHODS = {DELIVERY_SHIP, DELIVERY_DROP_OFF}

# Placeholder warehouse until the vendor picks a delivery path
WAREHOUSE_TBD = "TBD"

CARRIERS = {"UPS", "FEDEX", "USPS", "DHL", "UNKNOWN"}

LABEL_PENDING = "PENDING"
LABEL_APPROVED = "APPROVED"
LABEL_REJECTED = "REJECTED"

INVOICE_PENDING = "PENDING"
INVOICE_PAID = "PAID"
INVOICE_STATUSES = {INVOICE_PENDING, INVOICE_PAID}


class Commitment(db.Model):
    """
    A vendor's claim of `quantity` units against a deal, tracked from creation
    through delivery to fulfillment.

    INVARIANT: at most one active (not FULFILLED / CANCELLED) commitment per
    (user, deal). The partial unique index below enforces it at the database
    so two racing inserts cannot both land.
    """
    __tablename__ = "commitments"
    __table_args__ = (
        db.Index(
            "uq_commitments_active_user_deal",
            "user_id",
            "deal_id",
            unique=True,
            sqlite_where=db.text("status NOT IN ('FULFILLED', 'CANCELLED')"),
            postgresql_where=db.text("status NOT IN ('FULFILLED', 'CANCELLED')"),
        ),
        db.Index("ix_commitments_deal_user_status", "deal_id", "user_id", "status"),
        db.CheckConstraint("quantity > 0", name="ck_commitments_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    commitment_number = db.Column(db.Integer, nullable=False, unique=True)

    deal_id = db.Column(db.Integer, db.ForeignKey("deals.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    delivery_method = db.Column(db.String(16), nullable=False, default=DELIVERY_SHIP)
    warehouse = db.Column(db.String(32), nullable=False, default=WAREHOUSE_TBD, index=True)
    status = db.Column(db.String(24), nullable=False, default=STATUS_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    fulfilled_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    deal = db.relationship("Deal", backref=db.backref("commitments", lazy=True))
    user = db.relationship("Profile", foreign_keys=[user_id], backref=db.backref("commitments", lazy=True))
    fulfilled_by = db.relationship("Profile", foreign_keys=[fulfilled_by_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def commitment_id(self) -> str | None:
        return display_id(SEQUENCE_COMMITMENT, self.commitment_number)

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_STATUSES

    @property
    def qualifies_for_free_label(self) -> bool:
        minimum = self.deal.free_label_min if self.deal else None
        return minimum is not None and self.quantity >= minimum

    def __repr__(self) -> str:
        return f"<Commitment id={self.id} commitment_id={self.commitment_id} status={self.status}>"

    def to_dict(self, *, include_vendor: bool = False) -> dict:
        from ..services.pricing_service import resolve_payout_rate

        rate = resolve_payout_rate(self.user, self.deal)
        data = {
            "id": self.id,
            "commitment_id": self.commitment_id,
            "deal_id": self.deal_id,
            "user_id": self.user_id,
            "quantity": self.quantity,
            "delivery_method": self.delivery_method,
            "warehouse": self.warehouse,
            "status": self.status,
            "notes": self.notes,
            "payout_rate_cents": rate.rate_cents,
            "is_vip_pricing": rate.is_vip,
            "expected_payout_cents": rate.rate_cents * self.quantity,
            "qualifies_for_free_label": self.qualifies_for_free_label,
            "created_at": to_utc_z(self.created_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "fulfilled_by_id": self.fulfilled_by_id,
            "deal": {
                "id": self.deal.id,
                "deal_id": display_id(SEQUENCE_DEAL, self.deal.deal_number),
                "title": self.deal.title,
                "retail_price_cents": self.deal.retail_price_cents,
                "payout_cents": self.deal.payout_cents,
                "free_label_min": self.deal.free_label_min,
            },
            "tracking": self.tracking.to_dict() if self.tracking else None,
            "label_request": self.label_request.to_dict() if self.label_request else None,
            "invoice": self.invoice.to_dict() if self.invoice else None,
        }
        if include_vendor:
            data["vendor"] = self.user.to_dict(include_private=True)
        return data


class Tracking(db.Model):
    """Carrier tracking for a SHIP commitment; its presence means IN_TRANSIT."""
    __tablename__ = "trackings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    commitment_id = db.Column(db.Integer, db.ForeignKey("commitments.id"), nullable=False, unique=True)
    tracking_number = db.Column(db.String(64), nullable=False, index=True)
    carrier = db.Column(db.String(16), nullable=False, default="UNKNOWN", index=True)

    # Mirror of the last carrier scan, updated by staff
    last_status = db.Column(db.String(120), nullable=True)
    last_location = db.Column(db.String(120), nullable=True)
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    commitment = db.relationship(
        "Commitment",
        backref=db.backref("tracking", uselist=False, lazy=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commitment_id": self.commitment_id,
            "tracking_number": self.tracking_number,
            "carrier": self.carrier,
            "last_status": self.last_status,
            "last_location": self.last_location,
            "estimated_delivery": to_utc_z(self.estimated_delivery),
            "created_at": to_utc_z(self.created_at),
        }


class LabelRequest(db.Model):
    """
    Vendor request for a prepaid shipping label. APPROVED and REJECTED are
    final; a rejected vendor is handled outside the system.
    """
    __tablename__ = "label_requests"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    commitment_id = db.Column(db.Integer, db.ForeignKey("commitments.id"), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default=LABEL_PENDING, index=True)
    label_url = db.Column(db.String(500), nullable=True)
    label_files = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    commitment = db.relationship(
        "Commitment",
        backref=db.backref("label_request", uselist=False, lazy=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commitment_id": self.commitment_id,
            "status": self.status,
            "label_url": self.label_url,
            "label_files": self.label_files or [],
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "processed_at": to_utc_z(self.processed_at),
            "processed_by_id": self.processed_by_id,
        }


class Invoice(db.Model):
    """Payout invoice, created exactly once when a commitment is fulfilled."""
    __tablename__ = "invoices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    commitment_id = db.Column(db.Integer, db.ForeignKey("commitments.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    skynova_url = db.Column(db.String(500), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INVOICE_PENDING, index=True)

    check_number = db.Column(db.String(64), nullable=True)
    check_image_url = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    commitment = db.relationship(
        "Commitment",
        backref=db.backref("invoice", uselist=False, lazy=True),
    )
    user = db.relationship("Profile", backref=db.backref("invoices", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commitment_id": self.commitment_id,
            "commitment_display_id": self.commitment.commitment_id if self.commitment else None,
            "deal_title": self.commitment.deal.title if self.commitment else None,
            "user_id": self.user_id,
            "skynova_url": self.skynova_url,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "check_number": self.check_number,
            "check_image_url": self.check_image_url,
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }
