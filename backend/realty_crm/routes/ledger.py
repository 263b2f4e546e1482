# Overview: Flask API routes for the audit ledger; admin read-only.

from flask import Blueprint, request, jsonify, current_app

from ..services import ledger_service
from ..decorators import require_auth, require_admin


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@require_auth
@require_admin
def list_ledger_route():
    """
    Newest first.

    Query params:
    - event_type, entity_type, entity_id, inventory_id: filters
    - before_id: cursor (id of the last event of the previous page)
    - limit: page size (default 100, max 500)
    """
    try:
        events = ledger_service.list_events(
            event_type=request.args.get("event_type"),
            entity_type=request.args.get("entity_type"),
            entity_id=request.args.get("entity_id", type=int),
            inventory_unit_id=request.args.get("inventory_id", type=int),
            before_id=request.args.get("before_id", type=int),
            limit=request.args.get("limit", default=100, type=int),
        )
        next_cursor = events[-1].id if events else None
        return jsonify({
            "events": [e.to_dict() for e in events],
            "next_before_id": next_cursor,
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list ledger events")
        return jsonify({"error": "Internal server error"}), 500
