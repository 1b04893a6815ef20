from __future__ import annotations

from ..extensions import db


SEQUENCE_DEAL = "DEAL"
SEQUENCE_COMMITMENT = "COMMITMENT"
SEQUENCE_VENDOR = "VENDOR"

DISPLAY_PREFIXES = {
    SEQUENCE_DEAL: "D",
    SEQUENCE_COMMITMENT: "C",
    SEQUENCE_VENDOR: "U",
}


def display_id(kind: str, number: int | None) -> str | None:
    """Human-facing id such as D-00042 / C-00001 / U-00007."""
    if number is None:
        return None
    return f"{DISPLAY_PREFIXES[kind]}-{number:05d}"


class SequenceCounter(db.Model):
    """
    Per-kind counter backing the human-readable numbers on deals,
    commitments and vendors. `next_number` is the value the next caller gets.
    """
    __tablename__ = "sequence_counters"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
