# Overview: Row locks taken around allocation checks, and the retry wrapper for commitment writes.

"""
Allocation runs check-then-insert, so the deal row and the vendor's existing
commitments on it are locked for the length of the transaction.

Locks are only ever taken on plain row selects. PostgreSQL rejects
FOR UPDATE together with aggregates (sum, count), so quantities are added up
in Python by allocation_service.summarize over the locked rows.

SQLite ignores FOR UPDATE; uq_commitments_active_user_deal still rejects a
second active commitment there.
"""

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Commitment, Deal
from ..models.commitments import STATUS_CANCELLED


def lock_for_update(query):
    return query.with_for_update()


def lock_deal(deal_id: int) -> Deal | None:
    return lock_for_update(db.session.query(Deal).filter_by(id=deal_id)).first()


def vendor_commitments_query(deal_id: int, user_id: int, *, exclude_id: int | None = None):
    """A vendor's non-cancelled commitments on one deal, selected FOR UPDATE."""
    query = db.session.query(Commitment).filter(
        Commitment.deal_id == deal_id,
        Commitment.user_id == user_id,
        Commitment.status != STATUS_CANCELLED,
    )
    if exclude_id is not None:
        query = query.filter(Commitment.id != exclude_id)
    return lock_for_update(query)


def lock_vendor_commitments(deal_id: int, user_id: int, *, exclude_id: int | None = None) -> list[Commitment]:
    return vendor_commitments_query(deal_id, user_id, exclude_id=exclude_id).all()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a commitment write, retrying when a row lock times out or another
    writer bumped Commitment.version_id first. Business rejections are not
    retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
