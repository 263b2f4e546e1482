# Overview: Flask API routes for deals and the plots they consume.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError
from ..services import deal_service
from ..validation import coerce_id_list
from ..decorators import require_auth


deals_bp = Blueprint("deals", __name__, url_prefix="/api/deals")


@deals_bp.get("")
@require_auth
def list_deals_route():
    try:
        deals = deal_service.list_deals(g.scope)
        return jsonify({"deals": [d.to_dict() for d in deals]}), 200
    except Exception:
        current_app.logger.exception("Failed to list deals")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.get("/<int:deal_id>")
@require_auth
def get_deal_route(deal_id: int):
    try:
        deal = deal_service.get_deal(deal_id, g.scope)
        return jsonify({"deal": deal.to_dict(include_plots=True)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.post("")
@require_auth
def create_deal_route():
    """
    Request body:
    {
        "property_type": "plot",
        "customer_id": 4,                 (optional)
        "inventory_id": 3,                (optional)
        "plot_ids": [11, 12],             (optional; or "quantity": 2)
        "original_price_cents": 500000000,
        "sale_price_cents": 550000000,
        "salesperson_id": 7               (admins only)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if "inventory_id" in data and "inventory_unit_id" not in data:
            data["inventory_unit_id"] = data["inventory_id"]
        deal = deal_service.create_deal(g.scope, data)
        current_app.logger.info("Deal %s created by user %s", deal.id, g.current_user.id)
        return jsonify({"deal": deal.to_dict(include_plots=True)}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create deal")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.get("/<int:deal_id>/plots")
@require_auth
def get_deal_plots_route(deal_id: int):
    try:
        plots = deal_service.get_deal_plots(deal_id, g.scope)
        return jsonify({"plots": [p.to_dict() for p in plots]}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get deal plots")
        return jsonify({"error": "Internal server error"}), 500


@deals_bp.post("/<int:deal_id>/plots")
@require_auth
def attach_plots_route(deal_id: int):
    """
    Request body: {"plot_ids": [11, 12]}

    Returns:
        200: plots now used_in_deal
        400: plots not assigned/paid or of another unit
        403: plots assigned to another salesperson
        404: deal not found
    """
    try:
        data = request.get_json(silent=True) or {}
        plots = deal_service.attach_plots_to_deal(
            deal_id, coerce_id_list(data.get("plot_ids"), "plot_ids"), g.scope
        )
        current_app.logger.info("Plots %s attached to deal %s", [p.id for p in plots], deal_id)
        return jsonify({"plots": [p.to_dict() for p in plots]}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to attach plots to deal")
        return jsonify({"error": "Internal server error"}), 500
