from __future__ import annotations

from ..extensions import db
from buygroup.time_utils import to_utc_z


class Warehouse(db.Model):
    """
    Receiving location. Commitments reference warehouses by `code`, so a
    warehouse is deactivated rather than deleted once it exists.
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    zip = db.Column(db.String(16), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    allow_drop_off = db.Column(db.Boolean, nullable=False, default=True)
    allow_shipping = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Warehouse code={self.code!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "phone": self.phone,
            "allow_drop_off": self.allow_drop_off,
            "allow_shipping": self.allow_shipping,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
