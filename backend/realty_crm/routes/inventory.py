# Overview: Flask API routes for inventory units, plots and plot assignment.

# backend/realty_crm/routes/inventory.py
"""
Inventory API

Admins create units, edit them and assign plots to salespersons.
Everyone can browse requestable inventory; salespersons see the units they
hold plots in.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError
from ..services import allocation_service, inventory_service
from ..validation import coerce_cents, coerce_id_list, coerce_int, coerce_str
from ..decorators import require_auth, require_admin


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


# =============================================================================
# QUERIES
# =============================================================================

@inventory_bp.get("")
@require_auth
def list_inventory_route():
    """Role-scoped inventory with per-plot breakdown."""
    try:
        return jsonify({"inventory": inventory_service.list_inventory(g.scope)}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/available")
@require_auth
def list_available_route():
    try:
        return jsonify({"inventory": inventory_service.list_available_inventory()}), 200
    except Exception:
        current_app.logger.exception("Failed to list available inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:unit_id>")
@require_auth
def get_inventory_route(unit_id: int):
    try:
        return jsonify({"inventory": inventory_service.get_inventory_unit(unit_id, g.scope)}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:unit_id>/plots")
@require_auth
def list_plots_route(unit_id: int):
    """
    Query params:
    - available_only: only plots that can still be requested (default: false)
    """
    try:
        available_only = request.args.get("available_only", "false").lower() == "true"
        plots = inventory_service.list_plots(unit_id, g.scope, available_only=available_only)
        return jsonify({"plots": [p.to_dict() for p in plots]}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list plots")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ADMIN MUTATIONS
# =============================================================================

@inventory_bp.post("")
@require_auth
@require_admin
def create_inventory_route():
    """
    Request body:
    {
        "category": "plot",
        "address": "Block C, Phase 2",
        "price_cents": 250000000,
        "quantity": 3,
        "plot_numbers": "C-1, C-2, C-3"   (optional; string or list)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        unit = inventory_service.create_inventory_unit(
            category=data.get("category"),
            address=data.get("address"),
            price_cents=data.get("price_cents"),
            quantity=data.get("quantity"),
            plot_numbers=data.get("plot_numbers"),
            actor_user_id=g.current_user.id,
        )
        current_app.logger.info("Inventory %s created with %s plots", unit.id, unit.quantity)
        body = unit.to_dict()
        body["plots"] = [p.to_dict() for p in unit.plots]
        return jsonify({"inventory": body}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.put("/<int:unit_id>")
@require_auth
@require_admin
def update_inventory_route(unit_id: int):
    try:
        data = request.get_json(silent=True) or {}
        unit = inventory_service.update_inventory_unit(unit_id, data, actor_user_id=g.current_user.id)
        return jsonify({"inventory": unit.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/<int:unit_id>")
@require_auth
@require_admin
def delete_inventory_route(unit_id: int):
    try:
        inventory_service.delete_inventory_unit(unit_id, actor_user_id=g.current_user.id)
        current_app.logger.info("Inventory %s deleted by user %s", unit_id, g.current_user.id)
        return jsonify({"message": "Inventory deleted"}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:unit_id>/assign")
@require_auth
@require_admin
def assign_plots_route(unit_id: int):
    """
    Assign available plots to a salesperson.

    Request body:
    {
        "salesperson_id": 7,
        "plot_ids": [11, 12],
        "amount_paid_cents": 0,   (optional)
        "notes": "..."            (optional)
    }

    Returns:
        201: assignment summary
        400: no plots, plots of another unit, plots no longer available
        403: not an admin
        404: unit or salesperson not found
    """
    try:
        data = request.get_json(silent=True) or {}
        result = allocation_service.assign_plots(
            inventory_unit_id=unit_id,
            plot_ids=coerce_id_list(data.get("plot_ids"), "plot_ids"),
            salesperson_id=coerce_int(data.get("salesperson_id"), "salesperson_id"),
            actor_user_id=g.current_user.id,
            amount_paid_cents=coerce_cents(
                data.get("amount_paid_cents"), "amount_paid_cents", required=False, allow_zero=True
            ) or 0,
            notes=coerce_str(data.get("notes"), "notes"),
        )
        current_app.logger.info(
            "Assigned plots %s of inventory %s to salesperson %s",
            [p.id for p in result.plots], unit_id, result.assignment.salesperson_id,
        )
        return jsonify(result.to_dict()), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign plots")
        return jsonify({"error": "Internal server error"}), 500
