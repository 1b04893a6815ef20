from __future__ import annotations

from ..extensions import db
from buygroup.time_utils import to_utc_z
from .sequences import SEQUENCE_VENDOR, display_id


ROLE_SELLER = "SELLER"
ROLE_ADMIN = "ADMIN"
ROLE_WORKER = "WORKER"
VALID_ROLES = {ROLE_SELLER, ROLE_ADMIN, ROLE_WORKER}
STAFF_ROLES = {ROLE_ADMIN, ROLE_WORKER}


class Profile(db.Model):
    """
    A vendor (or staff member) account.

    Only `role` and `is_exclusive_member` feed pricing and allocation; the
    business/banking columns are stored for invoicing and never read by the
    commitment engine.
    """
    __tablename__ = "profiles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    vendor_number = db.Column(db.Integer, nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    first_name = db.Column(db.String(64), nullable=False, default="")
    last_name = db.Column(db.String(64), nullable=False, default="")
    role = db.Column(db.String(16), nullable=False, default=ROLE_SELLER, index=True)

    # Partner-community membership, refreshed from the identity provider
    discord_id = db.Column(db.String(64), nullable=True)
    discord_username = db.Column(db.String(128), nullable=True)
    is_exclusive_member = db.Column(db.Boolean, nullable=False, default=False)
    exclusive_member_checked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Business / banking details (opaque to core logic)
    company_name = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    zip_code = db.Column(db.String(16), nullable=True)
    bank_name = db.Column(db.String(120), nullable=True)
    bank_routing = db.Column(db.String(32), nullable=True)
    bank_account = db.Column(db.String(64), nullable=True)
    accounting_notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def vendor_id(self) -> str | None:
        return display_id(SEQUENCE_VENDOR, self.vendor_number)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Profile id={self.id} vendor_id={self.vendor_id} role={self.role}>"

    def to_dict(self, *, include_private: bool = False) -> dict:
        data = {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "vendor_number": self.vendor_number,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "is_exclusive_member": self.is_exclusive_member,
            "exclusive_member_checked_at": to_utc_z(self.exclusive_member_checked_at),
            "discord_username": self.discord_username,
            "company_name": self.company_name,
            "created_at": to_utc_z(self.created_at),
        }
        if include_private:
            data.update({
                "phone": self.phone,
                "address": self.address,
                "city": self.city,
                "state": self.state,
                "zip_code": self.zip_code,
                "bank_name": self.bank_name,
                "bank_routing": self.bank_routing,
                "bank_account": self.bank_account,
                "accounting_notes": self.accounting_notes,
            })
        return data


class SessionToken(db.Model):
    """
    Bearer token issued for a profile. Only the SHA-256 of the token is stored.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)

    profile = db.relationship("Profile", backref=db.backref("sessions", lazy=True))
