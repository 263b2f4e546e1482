# Overview: Service-layer operations for inventory requests; salesperson asks, admin decides.

"""
Inventory request workflow.

LIFECYCLE:
1. pending:  created by a salesperson for specific plots of a unit
2. approved: admin approved; the plots are assigned to the requester in the
             same transaction and every other pending request that touches
             any of those plots is rejected automatically
3. rejected: admin rejected, or superseded by another approval

A request created without plot ids covers every plot of the unit that is
available at that moment. Requests stored before plots existed have no plot
rows; approving one takes the plots available at approval time.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryRequest, InventoryRequestPlot, Plot
from ..time_utils import utcnow
from . import lifecycle_service as lifecycle
from .allocation_service import assign_plots_in_session, lock_unit, lock_unit_plots
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_event
from .scope import Scope


AUTO_REJECT_NOTE = "Automatically rejected: plots assigned via request #{request_id}"


def create_request(
    *,
    inventory_unit_id: int,
    scope: Scope,
    plot_ids: list[int] | None = None,
) -> InventoryRequest:
    """
    Raises:
        AuthorizationError: caller is not a salesperson
        NotFoundError: unit missing
        ConflictError: unit not available, plot not available, or the caller
                       already has a pending request for one of the plots
        ValidationError: plot of another unit, no available plots
    """
    if scope.is_admin:
        raise AuthorizationError("Only salespersons can request inventory")

    def _op():
        unit = lock_unit(inventory_unit_id)
        if unit.status != lifecycle.UNIT_AVAILABLE:
            raise ConflictError(f"Inventory {unit.id} is not available", current_status=unit.status)

        if plot_ids:
            plots = lock_unit_plots(unit, plot_ids)
            unavailable = [p for p in plots if p.status != lifecycle.PLOT_AVAILABLE]
            if unavailable:
                raise ConflictError(
                    "Some plots are not available: " + ", ".join(p.plot_number for p in unavailable),
                    unavailable_plots=[p.plot_number for p in unavailable],
                )
        else:
            plots = (
                db.session.query(Plot)
                .filter(Plot.inventory_unit_id == unit.id, Plot.status == lifecycle.PLOT_AVAILABLE)
                .order_by(Plot.id.asc())
                .all()
            )
            if not plots:
                raise ValidationError(f"Inventory {unit.id} has no available plots")

        wanted = [p.id for p in plots]
        duplicate = (
            db.session.query(InventoryRequest.id)
            .join(InventoryRequestPlot, InventoryRequestPlot.request_id == InventoryRequest.id)
            .filter(
                InventoryRequest.inventory_unit_id == unit.id,
                InventoryRequest.salesperson_id == scope.user_id,
                InventoryRequest.status == lifecycle.REQUEST_PENDING,
                InventoryRequestPlot.plot_id.in_(wanted),
            )
            .first()
        )
        if duplicate:
            raise ConflictError(
                "You already have a pending request for some of these plots",
                request_id=duplicate[0],
            )

        request = InventoryRequest(
            inventory_unit_id=unit.id,
            salesperson_id=scope.user_id,
            status=lifecycle.REQUEST_PENDING,
        )
        request.plot_links = [InventoryRequestPlot(plot_id=pid) for pid in wanted]
        db.session.add(request)
        db.session.flush()

        append_event(
            event_type="inventory_request.created",
            entity_type="inventory_request",
            entity_id=request.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=unit.id,
            payload={"plot_ids": wanted},
        )
        return request

    return run_in_transaction(_op)


def _lock_request(request_id: int) -> InventoryRequest:
    request = lock_for_update(db.session.query(InventoryRequest).filter_by(id=request_id)).first()
    if not request:
        raise NotFoundError(f"Request {request_id} not found")
    return request


def approve_request(request_id: int, scope: Scope, admin_notes: str | None = None) -> InventoryRequest:
    """
    Approve a pending request and assign its plots to the requester.

    Runs in one transaction: if the assignment fails (a plot was taken in
    the meantime) the request stays pending and nothing is written.
    """
    scope.require_admin()

    def _op():
        request = _lock_request(request_id)
        if request.status != lifecycle.REQUEST_PENDING:
            raise ConflictError(f"Request is already {request.status}", current_status=request.status)

        unit = lock_unit(request.inventory_unit_id)
        if unit.status != lifecycle.UNIT_AVAILABLE:
            raise ConflictError(f"Inventory {unit.id} is not available", current_status=unit.status)

        plot_ids = request.plot_ids
        if not plot_ids:
            # Requests from before per-plot requests carry no plot rows; they take
            # whatever the unit still has available
            plot_ids = [
                pid for (pid,) in db.session.query(Plot.id)
                .filter(Plot.inventory_unit_id == unit.id, Plot.status == lifecycle.PLOT_AVAILABLE)
                .order_by(Plot.id.asc())
            ]
            if not plot_ids:
                raise ConflictError(f"Inventory {unit.id} has no available plots")
            request.plot_links = [InventoryRequestPlot(plot_id=pid) for pid in plot_ids]
        now = utcnow()

        lifecycle.transition_request(request, lifecycle.REQUEST_APPROVED)
        request.admin_notes = admin_notes
        request.decided_at = now
        request.decided_by_user_id = scope.user_id

        assign_plots_in_session(
            inventory_unit_id=unit.id,
            plot_ids=plot_ids,
            salesperson_id=request.salesperson_id,
            actor_user_id=scope.user_id,
            amount_paid_cents=0,
            notes=f"Assigned via inventory request #{request.id}",
        )

        append_event(
            event_type="inventory_request.approved",
            entity_type="inventory_request",
            entity_id=request.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=unit.id,
            note=admin_notes,
            payload={"plot_ids": plot_ids, "salesperson_id": request.salesperson_id},
        )

        overlapping = db.session.query(InventoryRequestPlot.request_id).filter(
            InventoryRequestPlot.plot_id.in_(plot_ids)
        )
        # Requests without plot rows predate per-plot requests and cover the whole unit
        competing = lock_for_update(
            db.session.query(InventoryRequest)
            .filter(
                InventoryRequest.id != request.id,
                InventoryRequest.inventory_unit_id == unit.id,
                InventoryRequest.status == lifecycle.REQUEST_PENDING,
                or_(InventoryRequest.id.in_(overlapping), ~InventoryRequest.plot_links.any()),
            )
            .order_by(InventoryRequest.id.asc())
        ).all()

        for other in competing:
            lifecycle.transition_request(other, lifecycle.REQUEST_REJECTED)
            other.admin_notes = AUTO_REJECT_NOTE.format(request_id=request.id)
            other.decided_at = now
            other.decided_by_user_id = scope.user_id
            append_event(
                event_type="inventory_request.auto_rejected",
                entity_type="inventory_request",
                entity_id=other.id,
                actor_user_id=scope.user_id,
                inventory_unit_id=unit.id,
                note=other.admin_notes,
            )

        return request

    return run_in_transaction(_op)


def reject_request(request_id: int, scope: Scope, admin_notes: str | None = None) -> InventoryRequest:
    scope.require_admin()

    def _op():
        request = _lock_request(request_id)
        lifecycle.transition_request(request, lifecycle.REQUEST_REJECTED)
        request.admin_notes = admin_notes
        request.decided_at = utcnow()
        request.decided_by_user_id = scope.user_id

        append_event(
            event_type="inventory_request.rejected",
            entity_type="inventory_request",
            entity_id=request.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=request.inventory_unit_id,
            note=admin_notes,
        )
        return request

    return run_in_transaction(_op)


def delete_request(request_id: int, scope: Scope) -> None:
    """
    Salespersons may withdraw their own pending requests; admins may delete
    any request.
    """
    def _op():
        request = _lock_request(request_id)
        if not scope.is_admin:
            if request.salesperson_id != scope.user_id:
                raise NotFoundError(f"Request {request_id} not found")
            if request.status != lifecycle.REQUEST_PENDING:
                raise ConflictError("Only pending requests can be withdrawn", current_status=request.status)

        append_event(
            event_type="inventory_request.deleted",
            entity_type="inventory_request",
            entity_id=request.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=request.inventory_unit_id,
            payload={"status": request.status},
        )
        db.session.delete(request)

    run_in_transaction(_op)


def get_request(request_id: int, scope: Scope) -> InventoryRequest:
    request = db.session.query(InventoryRequest).filter_by(id=request_id).first()
    if not request or not scope.can_see(request.salesperson_id):
        raise NotFoundError(f"Request {request_id} not found")
    return request


def list_requests(scope: Scope, status: str | None = None) -> list[InventoryRequest]:
    q = scope.apply(db.session.query(InventoryRequest), InventoryRequest.salesperson_id)
    if status:
        q = q.filter(InventoryRequest.status == status)
    return q.order_by(InventoryRequest.created_at.desc(), InventoryRequest.id.desc()).all()

