# Overview: Flask API routes for sales transactions; parses input and returns JSON responses.

# backend/bangunpos/routes/transactions.py
"""
Transaction routes.

POST /api/transactions body:
{
  "customer_name": "Budi",
  "customer_phone": "0812...",          (optional)
  "customer_address": "...",            (optional)
  "payment_method": "CASH" | "DEBT",
  "paid_amount": 130000,
  "due_date": "2025-02-01",             (optional, DEBT only)
  "notes": "...",                       (optional)
  "items": [{"product_id": 1, "unit_name": "sak", "quantity": 2,
             "unit_price": 65000, "subtotal": 130000}]
}
unit_price and subtotal default to the catalog price and quantity * unit_price.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..services import transaction_service
from ..validation import ValidationError, parse_bool_arg

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
def list_transactions_route():
    """
    Query params:
    - page, per_page: int
    - search: str - customer name or receipt number
    - payment_method: CASH | DEBT
    - status: ACTIVE | CANCELLED
    - is_paid: bool
    - date_from, date_to: ISO dates (date_to inclusive)
    - sort_by: created_at | total | customer_name | receipt_number
    - sort_order: asc | desc
    """
    try:
        result = transaction_service.list_transactions(
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
            search=request.args.get("search"),
            payment_method=request.args.get("payment_method") or None,
            status=request.args.get("status") or None,
            is_paid=parse_bool_arg(request.args.get("is_paid")),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            sort_by=request.args.get("sort_by", "created_at"),
            sort_order=request.args.get("sort_order", "desc"),
        )
        return jsonify(result)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/stats")
def transaction_stats_route():
    try:
        stats = transaction_service.transaction_stats(
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
        )
        return jsonify(stats)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute transaction stats")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/daily")
def daily_sales_route():
    """?date=YYYY-MM-DD (default: today, UTC)"""
    try:
        return jsonify(transaction_service.daily_sales(request.args.get("date")))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load daily sales")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/receipt/<string:receipt_number>")
def get_by_receipt_route(receipt_number: str):
    try:
        return jsonify(transaction_service.get_transaction_by_receipt(receipt_number))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get transaction by receipt")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        return jsonify(transaction_service.get_transaction(transaction_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
def create_transaction_route():
    data = request.get_json(silent=True) or {}

    try:
        if "paid_amount" not in data:
            raise ValidationError("Missing required fields: paid_amount")
        txn = transaction_service.create_transaction(
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            customer_address=data.get("customer_address"),
            payment_method=data.get("payment_method"),
            paid_amount=data.get("paid_amount"),
            items=data.get("items"),
            notes=data.get("notes"),
            due_date=data.get("due_date"),
        )
        return jsonify(txn), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.put("/<int:transaction_id>")
def update_transaction_route(transaction_id: int):
    """Customer details and notes only."""
    payload = request.get_json(silent=True) or {}

    try:
        return jsonify(transaction_service.update_transaction(transaction_id, payload)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/cancel")
def cancel_transaction_route(transaction_id: int):
    data = request.get_json(silent=True) or {}

    try:
        txn = transaction_service.cancel_transaction(transaction_id, data.get("reason"))
        return jsonify(txn), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/payments")
def add_payment_route(transaction_id: int):
    """Body: {"amount", "method"?: CASH | TRANSFER | OTHER, "note"?}"""
    data = request.get_json(silent=True) or {}

    try:
        result = transaction_service.add_debt_payment(
            transaction_id,
            data.get("amount"),
            method=data.get("method") or "CASH",
            note=data.get("note"),
        )
        return jsonify(result), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add debt payment")
        return jsonify({"error": "Internal server error"}), 500
