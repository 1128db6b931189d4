# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

# backend/bangunpos/routes/stock.py
"""
Stock ledger routes.

All quantities are in the product's base unit. Manual adjustments are the
only way to change stock outside of sales and cancellations.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..models import StockMovement
from ..services import stock_service
from ..validation import ModelValidationPolicy, enforce_rules_stock_adjustment, validate_payload

ADJUSTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "type", "quantity", "note"},
    required_on_create={"product_id", "type", "quantity"},
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def stock_report_route():
    """Stock position and value of every product."""
    try:
        return jsonify(stock_service.stock_report())
    except Exception:
        current_app.logger.exception("Failed to build stock report")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/low-stock")
def low_stock_route():
    try:
        items = stock_service.list_low_stock_products()
        return jsonify({"items": items, "count": len(items)})
    except Exception:
        current_app.logger.exception("Failed to list low stock products")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/adjustment")
def adjust_stock_route():
    """
    Manual stock adjustment.

    Body: {"product_id", "type": IN | OUT | ADJUSTMENT, "quantity", "note"?}
    IN and OUT take a positive quantity; ADJUSTMENT is signed.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockMovement, payload=payload, policy=ADJUSTMENT_POLICY, partial=False)
        enforce_rules_stock_adjustment(patch)
        result = stock_service.adjust_stock(
            product_id=patch["product_id"],
            quantity=patch["quantity"],
            movement_type=patch["type"],
            note=patch.get("note"),
        )
        return jsonify(result), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
def list_movements_route():
    """
    Query params:
    - product_id: int (optional)
    - type: IN | OUT | ADJUSTMENT (optional)
    - transaction_id: int (optional)
    - limit: int (default 200, max 1000)
    """
    limit = min(request.args.get("limit", default=200, type=int) or 200, 1000)

    try:
        movements = stock_service.list_stock_movements(
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("type"),
            transaction_id=request.args.get("transaction_id", type=int),
            limit=limit,
        )
        return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)})
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500
