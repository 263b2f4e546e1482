# Overview: Flask API routes for investor payments toward plots, balances and contributions.

# backend/realty_crm/routes/inventory_payments.py
"""
Inventory Payment API Routes

Salespersons (and admins) pay for held plots from the investors they own.
One request may split the amount across several investors; the whole
request succeeds or fails together.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError
from ..services import funding_service
from ..validation import coerce_int
from ..decorators import require_auth


inventory_payments_bp = Blueprint("inventory_payments", __name__, url_prefix="/api/inventory-payments")


# =============================================================================
# PAYMENT CREATION / CORRECTION
# =============================================================================

@inventory_payments_bp.post("")
@require_auth
def record_payment_route():
    """
    Request body:
    {
        "inventory_id": 3,
        "plot_id": 11,
        "payment_date": "2026-03-01",
        "notes": "first installment",     (optional)
        "investor_payments": [
            {"investor_id": 5, "amount_cents": 60000000},
            {"investor_id": 6, "amount_cents": 40000000}
        ]
    }

    Returns:
        201: payments created and total
        400: invalid input, plot not payable, insufficient balance
        403: plot not assigned to caller, investor owned by someone else
        404: inventory or investor not found
    """
    try:
        data = request.get_json(silent=True) or {}
        unit_id = data.get("inventory_id", data.get("inventory_unit_id"))
        payments, total = funding_service.record_payment(
            inventory_unit_id=coerce_int(unit_id, "inventory_id"),
            plot_id=data.get("plot_id"),
            investor_payments=data.get("investor_payments"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
            scope=g.scope,
        )
        current_app.logger.info(
            "Recorded %s payment(s) totalling %s cents on plot %s by user %s",
            len(payments), total, data.get("plot_id"), g.current_user.id,
        )
        plot = payments[0].plot
        return jsonify({
            "payments": [p.to_dict() for p in payments],
            "total_amount_cents": total,
            "plot_status": plot.status if plot else None,
        }), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record inventory payment")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.put("/<int:payment_id>")
@require_auth
def update_payment_route(payment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        fields = {k: data[k] for k in ("amount_cents", "payment_date", "notes") if k in data}
        payment = funding_service.update_payment(payment_id, g.scope, **fields)
        return jsonify({"payment": payment.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory payment")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.delete("/<int:payment_id>")
@require_auth
def delete_payment_route(payment_id: int):
    try:
        funding_service.delete_payment(payment_id, g.scope)
        current_app.logger.info("Payment %s deleted by user %s", payment_id, g.current_user.id)
        return jsonify({"message": "Payment deleted"}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete inventory payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@inventory_payments_bp.get("")
@require_auth
def list_payments_route():
    """
    Query params:
    - inventory_id: only payments for this unit
    - plot_id: only payments for this plot
    """
    try:
        payments = funding_service.list_payments(
            g.scope,
            inventory_unit_id=request.args.get("inventory_id", type=int),
            plot_id=request.args.get("plot_id", type=int),
        )
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory payments")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment_route(payment_id: int):
    try:
        payment = funding_service.get_payment(payment_id, g.scope)
        return jsonify({"payment": payment.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get inventory payment")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.get("/inventory/<int:unit_id>")
@require_auth
def list_unit_payments_route(unit_id: int):
    try:
        payments = funding_service.list_payments(g.scope, inventory_unit_id=unit_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory payments")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.get("/inventory/<int:unit_id>/investors")
@require_auth
def unit_contributions_route(unit_id: int):
    try:
        return jsonify(funding_service.get_unit_contributions(unit_id, g.scope)), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get investor contributions")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.get("/inventory/<int:unit_id>/plot/<int:plot_id>/investors")
@require_auth
def plot_contributions_route(unit_id: int, plot_id: int):
    try:
        return jsonify(funding_service.get_plot_contributions(unit_id, plot_id, g.scope)), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get plot contributions")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# BALANCES
# =============================================================================

@inventory_payments_bp.get("/salesperson/<int:salesperson_id>/balance")
@require_auth
def salesperson_balance_route(salesperson_id: int):
    try:
        return jsonify(funding_service.get_salesperson_balance(salesperson_id, g.scope)), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get salesperson balance")
        return jsonify({"error": "Internal server error"}), 500


@inventory_payments_bp.get("/salesperson/<int:salesperson_id>/investors/balances")
@require_auth
def investor_balances_route(salesperson_id: int):
    try:
        balances = funding_service.get_investor_balances(salesperson_id, g.scope)
        return jsonify({"investors": balances}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get investor balances")
        return jsonify({"error": "Internal server error"}), 500
