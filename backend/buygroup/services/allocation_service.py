# Overview: Decides how many units of a deal a vendor may still claim.

"""
Quantity Allocator

Pure functions over a vendor's existing commitments for ONE deal. Nothing here
touches the database; commitment_service loads (and locks) the rows and hands
them in, so the check and the insert share one transaction.

Counting rules:
    fulfilled_qty   = sum(quantity) where status == FULFILLED
    active_qty      = sum(quantity) where status not in {FULFILLED, CANCELLED}
    total_committed = fulfilled_qty + active_qty    (CANCELLED counts for nothing)

A deal with no per-vendor limit is treated as UNBOUNDED_VENDOR_LIMIT. A limit
of 0 is a real limit and blocks every commitment.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ..models.commitments import STATUS_CANCELLED, STATUS_FULFILLED
from ..models.deals import DEAL_ACTIVE
from ..validation import ConflictError


UNBOUNDED_VENDOR_LIMIT = 999

DEAL_NOT_ACTIVE = "DEAL_NOT_ACTIVE"
ACTIVE_COMMITMENT_EXISTS = "ACTIVE_COMMITMENT_EXISTS"
MAX_QUANTITY_FULFILLED = "MAX_QUANTITY_FULFILLED"
VENDOR_LIMIT_EXCEEDED = "VENDOR_LIMIT_EXCEEDED"


class AllocationError(ConflictError):
    """Business-rule rejection of a new commitment or a quantity change."""
    default_code = VENDOR_LIMIT_EXCEEDED


@dataclass(frozen=True)
class AllocationResult:
    allowed: bool
    remaining_allowance: int
    total_committed: int
    fulfilled_qty: int
    active_qty: int


@dataclass(frozen=True)
class QuantityUpdate:
    can_update: bool
    available: int
    new_total: int


def effective_limit(vendor_limit: int | None) -> int:
    return UNBOUNDED_VENDOR_LIMIT if vendor_limit is None else vendor_limit


def _quantity_and_status(commitment) -> tuple[int, str]:
    # Accepts Commitment rows as well as plain {"quantity", "status"} mappings
    if isinstance(commitment, Mapping):
        return commitment["quantity"], commitment["status"]
    return commitment.quantity, commitment.status


def summarize(existing: Iterable) -> tuple[int, int]:
    """Return (fulfilled_qty, active_qty)."""
    fulfilled_qty = 0
    active_qty = 0
    for commitment in existing:
        quantity, status = _quantity_and_status(commitment)
        if status == STATUS_FULFILLED:
            fulfilled_qty += quantity
        elif status != STATUS_CANCELLED:
            active_qty += quantity
    return fulfilled_qty, active_qty


def has_active_commitment(existing: Iterable) -> bool:
    return any(
        _quantity_and_status(c)[1] not in (STATUS_FULFILLED, STATUS_CANCELLED)
        for c in existing
    )


def can_commit(existing: Iterable, requested_qty: int, vendor_limit: int | None) -> AllocationResult:
    existing = list(existing)
    limit = effective_limit(vendor_limit)
    fulfilled_qty, active_qty = summarize(existing)
    total_committed = fulfilled_qty + active_qty
    remaining = limit - total_committed

    return AllocationResult(
        allowed=remaining > 0 and requested_qty <= remaining,
        remaining_allowance=remaining,
        total_committed=total_committed,
        fulfilled_qty=fulfilled_qty,
        active_qty=active_qty,
    )


def can_update_quantity(other_qty: int, new_quantity: int, vendor_limit: int | None) -> QuantityUpdate:
    """
    Check an edit of an existing commitment's quantity.

    `other_qty` is the sum over the vendor's OTHER non-cancelled commitments on
    the deal (fulfilled ones included), never the one being edited.
    """
    limit = effective_limit(vendor_limit)
    new_total = other_qty + new_quantity
    return QuantityUpdate(
        can_update=new_total <= limit,
        available=limit - other_qty,
        new_total=new_total,
    )


def check_new_commitment(deal, existing: Iterable, requested_qty: int) -> AllocationResult:
    """
    Apply every guard for a brand-new commitment, in order, and raise
    AllocationError on the first that fails.

    1. deal must be ACTIVE
    2. no in-flight commitment for this vendor/deal
    3. fulfilled quantity must be below the limit
    4. requested_qty must fit in the remaining allowance
    """
    existing = list(existing)
    limit = effective_limit(deal.limit_per_vendor)

    if deal.status != DEAL_ACTIVE:
        raise AllocationError(
            "Deal is not active",
            code=DEAL_NOT_ACTIVE,
            details={"deal_status": deal.status},
        )

    result = can_commit(existing, requested_qty, deal.limit_per_vendor)
    details = {
        "remaining_allowance": max(result.remaining_allowance, 0),
        "limit": limit,
        "fulfilled_qty": result.fulfilled_qty,
        "active_qty": result.active_qty,
    }

    if has_active_commitment(existing):
        raise AllocationError(
            "You already have an active commitment for this deal",
            code=ACTIVE_COMMITMENT_EXISTS,
            details=details,
        )

    if result.fulfilled_qty >= limit:
        raise AllocationError(
            f"You've already fulfilled the max quantity ({limit}) for this deal",
            code=MAX_QUANTITY_FULFILLED,
            details=details,
        )

    if not result.allowed:
        if result.remaining_allowance <= 0:
            message = f"You've reached the vendor limit of {limit} for this deal"
        else:
            message = (
                f"You can only commit {result.remaining_allowance} more units "
                f"(limit: {limit}/vendor, you've fulfilled: {result.fulfilled_qty})"
            )
        raise AllocationError(message, code=VENDOR_LIMIT_EXCEEDED, details=details)

    return result
