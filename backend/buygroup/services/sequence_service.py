# Overview: Hands out human-facing numbers (D-/C-/U-) for deals, commitments and vendors.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import SequenceCounter
from ..models.sequences import DISPLAY_PREFIXES


class SequenceError(ValueError):
    pass


def next_number(kind: str) -> int:
    """
    Atomically allocate the next number for `kind`.

    Runs inside the caller's transaction: the UPDATE takes the row lock,
    and the number is only consumed if the caller commits.
    """
    if kind not in DISPLAY_PREFIXES:
        raise SequenceError(f"Unknown sequence kind: {kind}")

    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.kind == kind)
        .values(next_number=SequenceCounter.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(SequenceCounter.next_number)
            .filter_by(kind=kind)
            .scalar()
        )
        return current - 1

    # First number for this kind; a concurrent first insert loses on the
    # unique constraint and falls back to the UPDATE path.
    try:
        with db.session.begin_nested():
            db.session.add(SequenceCounter(kind=kind, next_number=2))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise SequenceError(f"Failed to allocate {kind} number")
        current = (
            db.session.query(SequenceCounter.next_number)
            .filter_by(kind=kind)
            .scalar()
        )
        return current - 1
