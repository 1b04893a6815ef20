# Overview: Warehouse directory and the delivery-method checks commitments rely on.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Commitment, Warehouse
from ..models.commitments import DELIVERY_DROP_OFF, DELIVERY_SHIP
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)


WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "name", "address", "city", "state", "zip", "phone",
        "allow_drop_off", "allow_shipping", "is_active",
    },
    required_on_create={"code", "name"},
    ignored_fields={"id", "created_at"},
)

# Default network: four drop-off sites and one shipping hub
DEFAULT_WAREHOUSES = (
    {"code": "MA", "name": "Massachusetts", "allow_drop_off": True, "allow_shipping": False},
    {"code": "NJ", "name": "New Jersey", "allow_drop_off": True, "allow_shipping": False},
    {"code": "CT", "name": "Connecticut", "allow_drop_off": True, "allow_shipping": False},
    {"code": "NY", "name": "New York", "allow_drop_off": True, "allow_shipping": False},
    {"code": "DE", "name": "Delaware", "allow_drop_off": False, "allow_shipping": True},
)


def list_warehouses(*, include_inactive: bool = False) -> list[Warehouse]:
    query = db.session.query(Warehouse)
    if not include_inactive:
        query = query.filter(Warehouse.is_active.is_(True))
    return query.order_by(Warehouse.code.asc()).all()


def get_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.query(Warehouse).filter_by(id=warehouse_id).first()
    if not warehouse:
        raise NotFoundError("Warehouse not found")
    return warehouse


def require_warehouse_for(code: str, delivery_method: str) -> Warehouse:
    """
    Resolve an active warehouse by code and confirm it accepts the delivery
    method. Raises ValidationError rather than picking another warehouse.
    """
    warehouse = (
        db.session.query(Warehouse)
        .filter(Warehouse.code == code, Warehouse.is_active.is_(True))
        .first()
    )
    if not warehouse:
        raise ValidationError(f"Unknown or inactive warehouse: {code}")
    if delivery_method == DELIVERY_DROP_OFF and not warehouse.allow_drop_off:
        raise ValidationError(f"Warehouse {code} does not accept drop-offs")
    if delivery_method == DELIVERY_SHIP and not warehouse.allow_shipping:
        raise ValidationError(f"Warehouse {code} does not accept shipments")
    return warehouse


def create_warehouse(payload: dict) -> Warehouse:
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
    patch["code"] = patch["code"].upper()
    warehouse = Warehouse(**patch)
    db.session.add(warehouse)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Warehouse code already exists: {patch['code']}", code="DUPLICATE_CODE")
    return warehouse


def update_warehouse(warehouse_id: int, payload: dict) -> Warehouse:
    warehouse = get_warehouse(warehouse_id)
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=True)
    if "code" in patch:
        patch["code"] = patch["code"].upper()
        if patch["code"] != warehouse.code:
            _require_unreferenced(warehouse)
    for key, value in patch.items():
        setattr(warehouse, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Warehouse code already exists", code="DUPLICATE_CODE")
    return warehouse


def _require_unreferenced(warehouse: Warehouse) -> None:
    """Commitments store the code itself, so a referenced code is fixed."""
    in_use = (
        db.session.query(Commitment.id)
        .filter(Commitment.warehouse == warehouse.code)
        .count()
    )
    if in_use:
        raise ConflictError(
            f"Warehouse {warehouse.code} is referenced by commitments; its code cannot change",
            code="WAREHOUSE_IN_USE",
            details={"commitments": in_use},
        )


def deactivate_warehouse(warehouse_id: int) -> Warehouse:
    """Commitments keep referencing the code, so warehouses are never deleted."""
    warehouse = get_warehouse(warehouse_id)
    warehouse.is_active = False
    db.session.commit()
    return warehouse


def seed_default_warehouses() -> list[Warehouse]:
    """Upsert DEFAULT_WAREHOUSES by code."""
    seeded = []
    for defaults in DEFAULT_WAREHOUSES:
        warehouse = db.session.query(Warehouse).filter_by(code=defaults["code"]).first()
        if warehouse is None:
            warehouse = Warehouse(code=defaults["code"])
            db.session.add(warehouse)
        warehouse.name = defaults["name"]
        warehouse.allow_drop_off = defaults["allow_drop_off"]
        warehouse.allow_shipping = defaults["allow_shipping"]
        warehouse.is_active = True
        seeded.append(warehouse)
    db.session.commit()
    return seeded
