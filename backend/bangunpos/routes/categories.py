# Overview: Flask API routes for product categories; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..models import Category
from ..services import category_service
from ..validation import ModelValidationPolicy, validate_payload

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    """List categories with their product counts."""
    try:
        items = category_service.list_categories()
        return jsonify({"items": items, "count": len(items)})
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        return jsonify(category_service.get_category(category_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.post("")
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        created = category_service.create_category(patch=patch)
        return jsonify(created), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.put("/<int:category_id>")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        updated = category_service.update_category(category_id=category_id, patch=patch)
        return jsonify(updated), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
def delete_category_route(category_id: int):
    """Delete a category; refused while products still belong to it."""
    try:
        category_service.delete_category(category_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
