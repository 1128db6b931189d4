# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/bangunpos/routes/products.py
"""
Product management routes.

Products are created together with their sales units. Stock is never set
through PUT; it changes through stock adjustments and sales only.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..models import Product
from ..services import products_service
from ..services.stock_service import list_low_stock_products
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_product,
    parse_bool_arg,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "supplier_id",
        "cost", "stock", "min_stock", "base_unit",
    },
    required_on_create={"sku", "name", "category_id", "units"},
    extra_fields={"units"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "supplier_id",
        "cost", "min_stock", "base_unit",
    },
    extra_fields={"units"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List products with search, filters and pagination.

    Query params:
    - page, per_page: int (optional)
    - search: str - matches name, SKU or description
    - category_id, supplier_id: int
    - low_stock: bool - only products at or below min_stock
    - sort_by: name | sku | stock | cost | created_at
    - sort_order: asc | desc
    """
    try:
        result = products_service.list_products(
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
            search=request.args.get("search"),
            category_id=request.args.get("category_id", type=int),
            supplier_id=request.args.get("supplier_id", type=int),
            low_stock=bool(parse_bool_arg(request.args.get("low_stock"))),
            sort_by=request.args.get("sort_by", "name"),
            sort_order=request.args.get("sort_order", "asc"),
        )
        return jsonify(result)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/stats")
def product_stats_route():
    try:
        return jsonify(products_service.product_stats())
    except Exception:
        current_app.logger.exception("Failed to compute product stats")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/low-stock")
def low_stock_route():
    try:
        items = list_low_stock_products()
        return jsonify({"items": items, "count": len(items)})
    except Exception:
        current_app.logger.exception("Failed to list low stock products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    """Product with units, stock status and its last stock movements."""
    try:
        return jsonify(products_service.get_product(product_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch)
        return jsonify(created), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
        return jsonify(updated), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product that has never been sold."""
    try:
        products_service.delete_product(product_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
