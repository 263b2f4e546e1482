# Overview: Flask API routes for investors; every caller manages only the investors they own.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError
from ..services import funding_service
from ..decorators import require_auth


investors_bp = Blueprint("investors", __name__, url_prefix="/api/investors")


@investors_bp.get("")
@require_auth
def list_investors_route():
    try:
        investors = funding_service.list_investors(g.current_user.id)
        return jsonify({"investors": [i.to_dict() for i in investors]}), 200
    except Exception:
        current_app.logger.exception("Failed to list investors")
        return jsonify({"error": "Internal server error"}), 500


@investors_bp.get("/<int:investor_id>")
@require_auth
def get_investor_route(investor_id: int):
    try:
        investor = funding_service.get_investor(investor_id, g.current_user.id)
        return jsonify({"investor": investor.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get investor")
        return jsonify({"error": "Internal server error"}), 500


@investors_bp.post("")
@require_auth
def create_investor_route():
    """
    Request body:
    {
        "name": "Ali Khan",
        "phone": "0300-0000000",          (optional)
        "address": "...",                 (optional)
        "total_invested_cents": 100000000
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        investor = funding_service.create_investor(
            owner_id=g.current_user.id,
            name=data.get("name"),
            phone=data.get("phone"),
            address=data.get("address"),
            total_invested_cents=data.get("total_invested_cents", 0),
        )
        return jsonify({"investor": investor.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create investor")
        return jsonify({"error": "Internal server error"}), 500


@investors_bp.put("/<int:investor_id>")
@require_auth
def update_investor_route(investor_id: int):
    try:
        data = request.get_json(silent=True) or {}
        investor = funding_service.update_investor(investor_id, g.current_user.id, data)
        return jsonify({"investor": investor.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update investor")
        return jsonify({"error": "Internal server error"}), 500


@investors_bp.delete("/<int:investor_id>")
@require_auth
def delete_investor_route(investor_id: int):
    try:
        funding_service.delete_investor(investor_id, g.current_user.id)
        current_app.logger.info("Investor %s deleted by user %s", investor_id, g.current_user.id)
        return jsonify({"message": "Investor deleted"}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete investor")
        return jsonify({"error": "Internal server error"}), 500
