# Overview: Flask API routes for the debt ledger; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..services import debt_service, transaction_service
from ..validation import ValidationError, parse_bool_arg

debt_bp = Blueprint("debt", __name__, url_prefix="/api/debt")


@debt_bp.get("")
def list_debts_route():
    """
    Query params:
    - status: PENDING | PARTIAL | PAID
    - customer: str - partial customer name
    - include_closed: bool - include records of cancelled transactions
    """
    try:
        items = debt_service.list_debts(
            status=request.args.get("status") or None,
            customer=request.args.get("customer"),
            include_closed=bool(parse_bool_arg(request.args.get("include_closed"))),
        )
        return jsonify({"items": items, "count": len(items)})
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list debts")
        return jsonify({"error": "Internal server error"}), 500


@debt_bp.get("/summary")
def debt_summary_route():
    try:
        return jsonify(debt_service.debt_summary())
    except Exception:
        current_app.logger.exception("Failed to compute debt summary")
        return jsonify({"error": "Internal server error"}), 500


@debt_bp.get("/customer/<string:name>")
def customer_debts_route(name: str):
    try:
        return jsonify(debt_service.customer_debts(name))
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer debts")
        return jsonify({"error": "Internal server error"}), 500


@debt_bp.post("/payment")
def debt_payment_route():
    """Body: {"transaction_id", "amount", "method"?, "note"?}"""
    data = request.get_json(silent=True) or {}

    try:
        transaction_id = data.get("transaction_id")
        if not isinstance(transaction_id, int) or isinstance(transaction_id, bool):
            raise ValidationError("transaction_id must be an integer")
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
