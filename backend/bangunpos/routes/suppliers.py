# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..models import Supplier
from ..services import supplier_service
from ..validation import ModelValidationPolicy, validate_payload

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact", "address"},
    required_on_create={"name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
def list_suppliers_route():
    """
    List suppliers.

    Query params:
    - search: str (optional) - matches name or contact
    """
    try:
        items = supplier_service.list_suppliers(search=request.args.get("search"))
        return jsonify({"items": items, "count": len(items)})
    except Exception:
        current_app.logger.exception("Failed to list suppliers")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier_route(supplier_id: int):
    try:
        return jsonify(supplier_service.get_supplier(supplier_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
        return jsonify(supplier_service.create_supplier(patch=patch)), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.put("/<int:supplier_id>")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        return jsonify(supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500
