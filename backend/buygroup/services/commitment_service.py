# Overview: Commitment state machine and the vendor/admin operations that move commitments through it.

"""
Commitment Lifecycle Service

================================================================================
STATE MACHINE
================================================================================

    PENDING ──(drop-off)──> DROP_OFF_PENDING ──────────────┐
       │  ^                                                │
       │  └──(ship)──────────┘                             │
       │                                                   v
       └──(tracking)──> IN_TRANSIT ──(delivered)──> DELIVERED ──(fulfill)──> FULFILLED
                            │
                            └──(remove tracking)──> PENDING

    PENDING / DROP_OFF_PENDING ──(vendor cancel)──> CANCELLED
    any non-terminal           ──(admin cancel)───> CANCELLED

FULFILLED and CANCELLED are terminal: every action is rejected.

RULES:
1. The owning vendor may only act while the commitment is PENDING or
   DROP_OFF_PENDING (removing tracking from IN_TRANSIT is the one exception).
2. Workers may mark deliveries and remove tracking; only admins fulfill or
   force-cancel.
3. Fulfillment and its invoice are written in one transaction.
4. Commitments are never deleted; cancelling frees the allocation.

Every operation takes the acting Profile explicitly. Vendor-facing operations
check ownership and then run the state machine with the SELLER role, so a
staff member committing on their own account is held to the vendor rules.
================================================================================
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Commitment
from ..models.accounts import ROLE_ADMIN, ROLE_SELLER, ROLE_WORKER
from ..models.commitments import (
    DELIVERY_DROP_OFF,
    DELIVERY_METHODS,
    DELIVERY_SHIP,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_DROP_OFF_PENDING,
    STATUS_FULFILLED,
    STATUS_IN_TRANSIT,
    STATUS_PENDING,
    TERMINAL_STATUSES,
    WAREHOUSE_TBD,
)
from ..models.deals import DEAL_ACTIVE
from ..models.sequences import SEQUENCE_COMMITMENT
from ..validation import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    require_choice,
    require_positive_int,
)
from buygroup.time_utils import utcnow
from . import allocation_service, invoice_service, sequence_service, warehouse_service
from .allocation_service import (
    ACTIVE_COMMITMENT_EXISTS,
    DEAL_NOT_ACTIVE,
    VENDOR_LIMIT_EXCEEDED,
    AllocationError,
)
from .concurrency import lock_deal, lock_for_update, lock_vendor_commitments, run_with_retry


SET_DELIVERY_SHIP = "SET_DELIVERY_SHIP"
SET_DELIVERY_DROP_OFF = "SET_DELIVERY_DROP_OFF"
SUBMIT_TRACKING = "SUBMIT_TRACKING"
REMOVE_TRACKING = "REMOVE_TRACKING"
REQUEST_LABEL = "REQUEST_LABEL"
CANCEL = "CANCEL"
MARK_DELIVERED = "MARK_DELIVERED"
FULFILL = "FULFILL"

ACTIONS = {
    SET_DELIVERY_SHIP,
    SET_DELIVERY_DROP_OFF,
    SUBMIT_TRACKING,
    REMOVE_TRACKING,
    REQUEST_LABEL,
    CANCEL,
    MARK_DELIVERED,
    FULFILL,
}

# action -> {from_status: to_status}
_SELLER_MOVES = {
    SET_DELIVERY_SHIP: {STATUS_PENDING: STATUS_PENDING, STATUS_DROP_OFF_PENDING: STATUS_PENDING},
    SET_DELIVERY_DROP_OFF: {
        STATUS_PENDING: STATUS_DROP_OFF_PENDING,
        STATUS_DROP_OFF_PENDING: STATUS_DROP_OFF_PENDING,
    },
    SUBMIT_TRACKING: {STATUS_PENDING: STATUS_IN_TRANSIT},
    REMOVE_TRACKING: {STATUS_IN_TRANSIT: STATUS_PENDING},
    REQUEST_LABEL: {STATUS_PENDING: STATUS_PENDING},
    CANCEL: {STATUS_PENDING: STATUS_CANCELLED, STATUS_DROP_OFF_PENDING: STATUS_CANCELLED},
}

_WORKER_MOVES = {
    MARK_DELIVERED: {STATUS_IN_TRANSIT: STATUS_DELIVERED, STATUS_DROP_OFF_PENDING: STATUS_DELIVERED},
    REMOVE_TRACKING: {STATUS_IN_TRANSIT: STATUS_PENDING},
}

_ADMIN_MOVES = {
    **_WORKER_MOVES,
    FULFILL: {STATUS_DELIVERED: STATUS_FULFILLED, STATUS_DROP_OFF_PENDING: STATUS_FULFILLED},
    CANCEL: {
        STATUS_PENDING: STATUS_CANCELLED,
        STATUS_DROP_OFF_PENDING: STATUS_CANCELLED,
        STATUS_IN_TRANSIT: STATUS_CANCELLED,
        STATUS_DELIVERED: STATUS_CANCELLED,
    },
}

TRANSITIONS = {
    ROLE_SELLER: _SELLER_MOVES,
    ROLE_WORKER: _WORKER_MOVES,
    ROLE_ADMIN: _ADMIN_MOVES,
}

_REJECTION_MESSAGES = {
    SET_DELIVERY_SHIP: "Can only update pending commitments",
    SET_DELIVERY_DROP_OFF: "Can only update pending commitments",
    SUBMIT_TRACKING: "Can only submit tracking for pending commitments",
    REMOVE_TRACKING: "Tracking can only be removed while the shipment is in transit",
    REQUEST_LABEL: "Can only request labels for pending commitments",
    CANCEL: "Can only cancel pending commitments",
    MARK_DELIVERED: "Only in-transit or drop-off commitments can be marked delivered",
    FULFILL: "Only delivered or drop-off commitments can be fulfilled",
}


class TransitionError(ConflictError):
    """
    A state-machine rejection. Carries the current status, the attempted
    action and the acting role so the caller can explain it.
    """
    default_code = "INVALID_TRANSITION"

    def __init__(self, message: str, *, current_status: str, action: str, role: str, code: str | None = None):
        super().__init__(
            message,
            code=code,
            details={"current_status": current_status, "action": action, "role": role},
        )
        self.current_status = current_status
        self.action = action
        self.role = role


class RoleNotPermittedError(TransitionError):
    status_code = 403
    default_code = "ROLE_NOT_PERMITTED"


def next_state(current_status: str, action: str, actor_role: str) -> str:
    """
    Return the status a commitment moves to when `actor_role` performs
    `action` from `current_status`, or raise TransitionError.
    """
    if action not in ACTIONS:
        raise ValidationError(f"Unknown action: {action}")

    if current_status in TERMINAL_STATUSES:
        raise TransitionError(
            f"Commitment is {current_status}; no further changes are allowed",
            current_status=current_status,
            action=action,
            role=actor_role,
            code="TERMINAL_STATE",
        )

    moves = TRANSITIONS.get(actor_role, {})
    if action not in moves:
        raise RoleNotPermittedError(
            f"Role {actor_role} cannot perform {action}",
            current_status=current_status,
            action=action,
            role=actor_role,
        )

    target = moves[action].get(current_status)
    if target is None:
        raise TransitionError(
            _REJECTION_MESSAGES[action],
            current_status=current_status,
            action=action,
            role=actor_role,
        )
    return target


# =============================================================================
# Lookups
# =============================================================================

def get_commitment(commitment_id: int, *, lock: bool = False) -> Commitment:
    query = db.session.query(Commitment).filter_by(id=commitment_id)
    if lock:
        query = lock_for_update(query)
    commitment = query.first()
    if not commitment:
        raise NotFoundError("Commitment not found")
    return commitment


def get_owned_commitment(actor, commitment_id: int, *, lock: bool = False) -> Commitment:
    commitment = get_commitment(commitment_id, lock=lock)
    if commitment.user_id != actor.id:
        raise ForbiddenError("You can only change your own commitments")
    return commitment


def get_commitment_for(actor, commitment_id: int) -> Commitment:
    """Owner or staff may view."""
    commitment = get_commitment(commitment_id)
    if commitment.user_id != actor.id and not actor.is_staff:
        raise ForbiddenError("You can only view your own commitments")
    return commitment


def list_commitments_for(actor, *, status: str | None = None, warehouse: str | None = None) -> list[Commitment]:
    """The actor's own commitments, newest first. Cancelled ones are hidden unless asked for."""
    query = db.session.query(Commitment).filter(Commitment.user_id == actor.id)
    return _apply_list_filters(query, status=status, warehouse=warehouse).all()


def list_all_commitments(
    *,
    status: str | None = None,
    warehouse: str | None = None,
    user_id: int | None = None,
    deal_id: int | None = None,
) -> list[Commitment]:
    query = db.session.query(Commitment)
    if user_id is not None:
        query = query.filter(Commitment.user_id == user_id)
    if deal_id is not None:
        query = query.filter(Commitment.deal_id == deal_id)
    return _apply_list_filters(query, status=status, warehouse=warehouse).all()


def _apply_list_filters(query, *, status, warehouse):
    status = (status or "").strip().upper()
    if not status:
        query = query.filter(Commitment.status != STATUS_CANCELLED)
    elif status != "ALL":
        query = query.filter(Commitment.status == status)
    if warehouse and warehouse.upper() != "ALL":
        query = query.filter(Commitment.warehouse == warehouse.strip().upper())
    return query.order_by(Commitment.created_at.desc(), Commitment.id.desc())


# =============================================================================
# Vendor operations
# =============================================================================

def create_commitment(*, actor, deal_id: int, quantity) -> Commitment:
    """
    Claim `quantity` units of a deal for `actor`.

    The deal row and the vendor's commitments for it are locked, checked and
    inserted in one transaction. A concurrent insert that slips past the
    check loses on uq_commitments_active_user_deal and is reported as an
    ACTIVE_COMMITMENT_EXISTS rejection; it is not retried.
    """
    quantity = require_positive_int("quantity", quantity)

    deal = lock_deal(deal_id)
    if not deal:
        raise NotFoundError("Deal not found")

    existing = lock_vendor_commitments(deal.id, actor.id)
    allocation_service.check_new_commitment(deal, existing, quantity)

    commitment = Commitment(
        commitment_number=sequence_service.next_number(SEQUENCE_COMMITMENT),
        deal_id=deal.id,
        user_id=actor.id,
        quantity=quantity,
        delivery_method=DELIVERY_SHIP,
        warehouse=WAREHOUSE_TBD,
        status=STATUS_PENDING,
    )
    db.session.add(commitment)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise AllocationError(
            "You already have an active commitment for this deal",
            code=ACTIVE_COMMITMENT_EXISTS,
        )
    return commitment


def update_commitment(
    *,
    actor,
    commitment_id: int,
    delivery_method: str | None = None,
    warehouse: str | None = None,
    quantity=None,
) -> Commitment:
    """
    Vendor edit of a pending commitment: delivery method, warehouse, quantity.

    Choosing DROP_OFF moves the commitment to DROP_OFF_PENDING and choosing
    SHIP moves it back to PENDING. The warehouse (existing or new) must
    support the chosen method; it is never silently swapped.
    """
    if delivery_method is None and warehouse is None and quantity is None:
        raise ValidationError("Nothing to update")

    def _op() -> Commitment:
        commitment = get_owned_commitment(actor, commitment_id, lock=True)

        if commitment.status not in (STATUS_PENDING, STATUS_DROP_OFF_PENDING):
            raise TransitionError(
                "Can only update pending commitments",
                current_status=commitment.status,
                action="UPDATE",
                role=ROLE_SELLER,
            )

        # Validate everything before touching the row
        method = commitment.delivery_method
        new_status = commitment.status
        if delivery_method is not None:
            method = require_choice("delivery_method", delivery_method, DELIVERY_METHODS)
            action = SET_DELIVERY_DROP_OFF if method == DELIVERY_DROP_OFF else SET_DELIVERY_SHIP
            new_status = next_state(commitment.status, action, ROLE_SELLER)

        code = commitment.warehouse
        if warehouse is not None:
            code = str(warehouse).strip().upper()

        if delivery_method is not None or warehouse is not None:
            if code == WAREHOUSE_TBD:
                raise ValidationError("warehouse is required when choosing a delivery method")
            warehouse_service.require_warehouse_for(code, method)

        new_quantity = None
        if quantity is not None:
            new_quantity = require_positive_int("quantity", quantity)
            _check_quantity_change(commitment, new_quantity)

        commitment.delivery_method = method
        commitment.status = new_status
        commitment.warehouse = code
        if new_quantity is not None:
            commitment.quantity = new_quantity

        db.session.commit()
        return commitment

    return run_with_retry(_op)


def _check_quantity_change(commitment: Commitment, new_quantity: int) -> None:
    deal = lock_deal(commitment.deal_id)

    if new_quantity > commitment.quantity and deal.status != DEAL_ACTIVE:
        raise AllocationError(
            "Deal is not active",
            code=DEAL_NOT_ACTIVE,
            details={"deal_status": deal.status},
        )

    others = lock_vendor_commitments(deal.id, commitment.user_id, exclude_id=commitment.id)
    fulfilled_qty, active_qty = allocation_service.summarize(others)
    other_qty = fulfilled_qty + active_qty
    check = allocation_service.can_update_quantity(other_qty, new_quantity, deal.limit_per_vendor)
    if not check.can_update:
        limit = allocation_service.effective_limit(deal.limit_per_vendor)
        raise AllocationError(
            f"You can only commit {max(check.available, 0)} units on this deal (limit: {limit}/vendor)",
            code=VENDOR_LIMIT_EXCEEDED,
            details={
                "remaining_allowance": max(check.available, 0),
                "limit": limit,
                "new_total": check.new_total,
            },
        )


def cancel_commitment(*, actor, commitment_id: int) -> Commitment:
    def _op() -> Commitment:
        commitment = get_owned_commitment(actor, commitment_id, lock=True)
        commitment.status = next_state(commitment.status, CANCEL, ROLE_SELLER)
        db.session.commit()
        return commitment

    return run_with_retry(_op)


# =============================================================================
# Staff operations
# =============================================================================

ADMIN_STATUS_ACTIONS = {
    STATUS_DELIVERED: MARK_DELIVERED,
    STATUS_FULFILLED: FULFILL,
    STATUS_CANCELLED: CANCEL,
}


def stage_staff_status(
    actor,
    commitment: Commitment,
    status: str,
    *,
    notes: str | None = None,
    invoice_url: str | None = None,
    invoice_amount_cents: int | None = None,
) -> Commitment:
    """
    Move a locked commitment to DELIVERED / FULFILLED / CANCELLED through the
    state machine without committing. A FULFILLED move stages its Invoice
    when `invoice_url` is given; the caller commits both together.
    """
    target = require_choice("status", status, set(ADMIN_STATUS_ACTIONS))
    action = ADMIN_STATUS_ACTIONS[target]
    if action == FULFILL and invoice_amount_cents is not None and not invoice_url:
        raise ValidationError("invoice_url is required when invoice_amount_cents is given")

    commitment.status = next_state(commitment.status, action, actor.role)
    if action == MARK_DELIVERED:
        commitment.delivered_at = utcnow()
    elif action == FULFILL:
        commitment.fulfilled_at = utcnow()
        commitment.fulfilled_by_id = actor.id
    if notes is not None:
        commitment.notes = notes

    if action == FULFILL and invoice_url:
        invoice_service.create_invoice_for(
            commitment,
            skynova_url=invoice_url,
            amount_cents=invoice_amount_cents,
        )
    return commitment


def run_staff_change(commitment_id: int, change) -> Commitment:
    """
    Lock the commitment, apply `change(commitment)` and commit, retrying on
    lock conflicts. Any failure rolls back, so nothing is half-applied.
    """
    def _op() -> Commitment:
        commitment = get_commitment(commitment_id, lock=True)
        try:
            change(commitment)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return commitment

    return run_with_retry(_op)


def mark_delivered(*, actor, commitment_id: int, notes: str | None = None) -> Commitment:
    return run_staff_change(
        commitment_id,
        lambda commitment: stage_staff_status(actor, commitment, STATUS_DELIVERED, notes=notes),
    )


def fulfill_commitment(
    *,
    actor,
    commitment_id: int,
    invoice_url: str | None = None,
    invoice_amount_cents: int | None = None,
    notes: str | None = None,
) -> Commitment:
    """
    Mark a delivered (or dropped-off) commitment FULFILLED.

    When `invoice_url` is given the Invoice row is written in the same
    transaction; if that insert fails nothing is applied and the commitment
    keeps its previous status. Without an explicit amount the invoice is
    quantity x the payout rate resolved for the commitment's vendor.
    """
    if invoice_amount_cents is not None and not invoice_url:
        raise ValidationError("invoice_url is required when invoice_amount_cents is given")

    return run_staff_change(
        commitment_id,
        lambda commitment: stage_staff_status(
            actor,
            commitment,
            STATUS_FULFILLED,
            notes=notes,
            invoice_url=invoice_url,
            invoice_amount_cents=invoice_amount_cents,
        ),
    )


def admin_cancel_commitment(*, actor, commitment_id: int, notes: str | None = None) -> Commitment:
    return run_staff_change(
        commitment_id,
        lambda commitment: stage_staff_status(actor, commitment, STATUS_CANCELLED, notes=notes),
    )


def admin_update_commitment(
    *,
    actor,
    commitment_id: int,
    status: str | None = None,
    notes: str | None = None,
    invoice_url: str | None = None,
    invoice_amount_cents: int | None = None,
) -> Commitment:
    """
    Staff edit: a target status (DELIVERED / FULFILLED / CANCELLED) routed
    through the state machine, and/or notes.
    """
    if status is None:
        if notes is None:
            raise ValidationError("Nothing to update")
        commitment = get_commitment(commitment_id)
        if not actor.is_staff:
            raise ForbiddenError("Staff access required")
        commitment.notes = notes
        db.session.commit()
        return commitment

    require_choice("status", status, set(ADMIN_STATUS_ACTIONS))
    return run_staff_change(
        commitment_id,
        lambda commitment: stage_staff_status(
            actor,
            commitment,
            status,
            notes=notes,
            invoice_url=invoice_url,
            invoice_amount_cents=invoice_amount_cents,
        ),
    )
