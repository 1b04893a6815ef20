# Overview: Flask API routes for warehouse management; parses input and returns JSON responses.

"""
Warehouse Routes

Any authenticated profile can list active warehouses (to choose a delivery
destination). Creating, editing and deactivating are admin-only.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.accounts import ROLE_ADMIN
from ..responses import domain_error, internal_error, json_body
from ..services import warehouse_service
from ..validation import DomainError


warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
def list_warehouses_route():
    """
    Query parameters:
    - include_inactive: admins only (default: false)
    """
    include_inactive = (
        request.args.get("include_inactive", "false").lower() == "true"
        and g.current_profile.role == ROLE_ADMIN
    )
    try:
        warehouses = warehouse_service.list_warehouses(include_inactive=include_inactive)
        return jsonify({"items": [w.to_dict() for w in warehouses], "count": len(warehouses)})
    except Exception:
        return internal_error("list warehouses")


@warehouses_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_warehouse_route():
    """
    Request body:
    {
        "code": "NJ",                 // required, unique
        "name": "New Jersey",         // required
        "allow_drop_off": true,
        "allow_shipping": false,
        "address": "...", "city": "...", "state": "...", "zip": "...", "phone": "..."
    }
    """
    try:
        warehouse = warehouse_service.create_warehouse(json_body())
        return jsonify(warehouse.to_dict()), 201
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("create warehouse")


@warehouses_bp.put("/<int:warehouse_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_warehouse_route(warehouse_id: int):
    try:
        warehouse = warehouse_service.update_warehouse(warehouse_id, json_body())
        return jsonify(warehouse.to_dict())
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("update warehouse")


@warehouses_bp.delete("/<int:warehouse_id>")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_warehouse_route(warehouse_id: int):
    """Soft delete: existing commitments keep their warehouse code."""
    try:
        warehouse = warehouse_service.deactivate_warehouse(warehouse_id)
        return jsonify({"success": True, "warehouse": warehouse.to_dict()})
    except DomainError as e:
        return domain_error(e)
    except Exception:
        return internal_error("deactivate warehouse")
