# Overview: Flask API routes for staff accounts; admin only.

from flask import Blueprint, request, jsonify, current_app

from ..errors import DomainError
from ..models.auth import ROLE_SALESPERSON
from ..services import auth_service
from ..decorators import require_auth, require_admin


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/salespersons")
@require_auth
@require_admin
def list_salespersons_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = auth_service.list_salespersons(include_inactive=include_inactive)
    return jsonify({"salespersons": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    """
    Create a salesperson or admin account.

    Request body:
    {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "Password123!",
        "role": "salesperson"   (optional, default salesperson)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or ROLE_SALESPERSON,
        )
        current_app.logger.info("Created %s account %s", user.role, user.email)
        return jsonify({"user": user.to_dict()}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
