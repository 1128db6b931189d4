# Overview: Flask API routes for analytics; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..services import analytics_service

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/dashboard")
def dashboard_route():
    try:
        return jsonify(analytics_service.dashboard())
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/sales")
def sales_route():
    """?start=&end=&group_by=day|week|month"""
    try:
        report = analytics_service.sales_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/products")
def products_route():
    """?start=&end=&limit=10"""
    try:
        report = analytics_service.top_products(
            start=request.args.get("start"),
            end=request.args.get("end"),
            limit=request.args.get("limit", default=10, type=int),
        )
        return jsonify(report)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build product analytics")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/revenue")
def revenue_route():
    try:
        report = analytics_service.revenue_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build revenue report")
        return jsonify({"error": "Internal server error"}), 500
