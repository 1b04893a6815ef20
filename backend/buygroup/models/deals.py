from __future__ import annotations

from ..extensions import db
from buygroup.time_utils import to_utc_z
from .sequences import SEQUENCE_DEAL, display_id


DEAL_DRAFT = "DRAFT"
DEAL_ACTIVE = "ACTIVE"
DEAL_PAUSED = "PAUSED"
DEAL_EXPIRED = "EXPIRED"
DEAL_CLOSED = "CLOSED"
DEAL_STATUSES = {DEAL_DRAFT, DEAL_ACTIVE, DEAL_PAUSED, DEAL_EXPIRED, DEAL_CLOSED}

PRICE_ABOVE_RETAIL = "ABOVE_RETAIL"
PRICE_RETAIL = "RETAIL"
PRICE_BELOW_COST = "BELOW_COST"

# (column, label) pairs rendered as retail links in listings and the bot feed
RETAIL_LINK_FIELDS = (
    ("link_amazon", "Amazon"),
    ("link_best_buy", "Best Buy"),
    ("link_walmart", "Walmart"),
    ("link_target", "Target"),
    ("link_home_depot", "Home Depot"),
    ("link_lowes", "Lowe's"),
    ("link_other", None),
)


class Deal(db.Model):
    """
    An admin-posted offer: vendors buy at `retail_price_cents` and are paid
    `payout_cents` per unit (or `exclusive_price_cents` for VIP members).

    `price_type` is derived from the two prices and never written by clients.
    """
    __tablename__ = "deals"
    __table_args__ = (
        db.Index("ix_deals_status_deadline", "status", "deadline"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_number = db.Column(db.Integer, nullable=False, unique=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True, default="")
    image_url = db.Column(db.String(500), nullable=True)

    retail_price_cents = db.Column(db.Integer, nullable=False)
    payout_cents = db.Column(db.Integer, nullable=False)
    price_type = db.Column(db.String(16), nullable=False, default=PRICE_BELOW_COST)

    # NULL means no per-vendor cap; 0 is a real cap that blocks commitments
    limit_per_vendor = db.Column(db.Integer, nullable=True)
    free_label_min = db.Column(db.Integer, nullable=True)

    is_exclusive = db.Column(db.Boolean, nullable=False, default=False)
    exclusive_price_cents = db.Column(db.Integer, nullable=True)

    deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=DEAL_DRAFT, index=True)

    link_amazon = db.Column(db.String(500), nullable=True)
    link_best_buy = db.Column(db.String(500), nullable=True)
    link_walmart = db.Column(db.String(500), nullable=True)
    link_target = db.Column(db.String(500), nullable=True)
    link_home_depot = db.Column(db.String(500), nullable=True)
    link_lowes = db.Column(db.String(500), nullable=True)
    link_other = db.Column(db.String(500), nullable=True)
    link_other_name = db.Column(db.String(64), nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    created_by = db.relationship("Profile", foreign_keys=[created_by_id])

    @property
    def deal_id(self) -> str | None:
        return display_id(SEQUENCE_DEAL, self.deal_number)

    def retail_links(self) -> list[dict]:
        links = []
        for column, label in RETAIL_LINK_FIELDS:
            url = getattr(self, column)
            if url:
                links.append({"name": label or self.link_other_name or "Other", "url": url})
        return links

    def __repr__(self) -> str:
        return f"<Deal id={self.id} deal_id={self.deal_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "deal_number": self.deal_number,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "retail_price_cents": self.retail_price_cents,
            "payout_cents": self.payout_cents,
            "price_type": self.price_type,
            "limit_per_vendor": self.limit_per_vendor,
            "free_label_min": self.free_label_min,
            "is_exclusive": self.is_exclusive,
            "exclusive_price_cents": self.exclusive_price_cents,
            "deadline": to_utc_z(self.deadline),
            "status": self.status,
            "retail_links": self.retail_links(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
