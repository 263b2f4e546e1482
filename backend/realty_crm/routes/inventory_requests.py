# Overview: Flask API routes for inventory requests; salespersons ask, admins approve or reject.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError
from ..services import request_service
from ..validation import coerce_id_list, coerce_int, coerce_str
from ..decorators import require_auth, require_admin


inventory_requests_bp = Blueprint("inventory_requests", __name__, url_prefix="/api/inventory-requests")


@inventory_requests_bp.get("")
@require_auth
def list_requests_route():
    """
    Admins see every request, salespersons their own.

    Query params:
    - status: pending | approved | rejected
    """
    try:
        requests = request_service.list_requests(g.scope, status=request.args.get("status"))
        return jsonify({"requests": [r.to_dict() for r in requests]}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory requests")
        return jsonify({"error": "Internal server error"}), 500


@inventory_requests_bp.get("/<int:request_id>")
@require_auth
def get_request_route(request_id: int):
    try:
        req = request_service.get_request(request_id, g.scope)
        return jsonify({"request": req.to_dict()}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get inventory request")
        return jsonify({"error": "Internal server error"}), 500


@inventory_requests_bp.post("")
@require_auth
def create_request_route():
    """
    Request body:
    {
        "inventory_id": 3,
        "plot_ids": [11, 12]   (optional; all available plots when omitted)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        unit_id = data.get("inventory_id", data.get("inventory_unit_id"))
        req = request_service.create_request(
            inventory_unit_id=coerce_int(unit_id, "inventory_id"),
            scope=g.scope,
            plot_ids=coerce_id_list(data.get("plot_ids"), "plot_ids"),
        )
        current_app.logger.info("Inventory request %s created by user %s", req.id, g.current_user.id)
        return jsonify({"request": req.to_dict()}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create inventory request")
        return jsonify({"error": "Internal server error"}), 500


@inventory_requests_bp.post("/<int:request_id>/approve")
@require_auth
@require_admin
def approve_request_route(request_id: int):
    """
    Approve a pending request; the plots are assigned to the requester and
    overlapping pending requests are rejected.

    Returns:
        200: approved request
        400: not pending, inventory not available, plots taken
        404: request not found
    """
    try:
        data = request.get_json(silent=True) or {}
        req = request_service.approve_request(
            request_id, g.scope, admin_notes=coerce_str(data.get("admin_notes"), "admin_notes")
        )
        current_app.logger.info("Inventory request %s approved by user %s", request_id, g.current_user.id)
        return jsonify({"request": req.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve inventory request")
        return jsonify({"error": "Internal server error"}), 500


@inventory_requests_bp.post("/<int:request_id>/reject")
@require_auth
@require_admin
def reject_request_route(request_id: int):
    try:
        data = request.get_json(silent=True) or {}
        req = request_service.reject_request(
            request_id, g.scope, admin_notes=coerce_str(data.get("admin_notes"), "admin_notes")
        )
        current_app.logger.info("Inventory request %s rejected by user %s", request_id, g.current_user.id)
        return jsonify({"request": req.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject inventory request")
        return jsonify({"error": "Internal server error"}), 500


@inventory_requests_bp.delete("/<int:request_id>")
@require_auth
def delete_request_route(request_id: int):
    try:
        request_service.delete_request(request_id, g.scope)
        return jsonify({"message": "Request deleted"}), 200
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete inventory request")
        return jsonify({"error": "Internal server error"}), 500
