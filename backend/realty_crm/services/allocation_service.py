# Overview: Service-layer operations for plot allocation; assigns plots to salespersons.

"""
Plot allocation.

An assignment moves a set of available plots of one inventory unit to a
salesperson and writes one immutable PlotAssignment record. Plots are re-read
under row lock inside the transaction, so two admins assigning the same plot
cannot both succeed: the second sees the plot as assigned and gets a
ConflictError.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryUnit, Plot, PlotAssignment
from ..time_utils import utcnow
from . import lifecycle_service as lifecycle
from .auth_service import get_active_salesperson
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_event


@dataclass
class AssignmentResult:
    assignment: PlotAssignment
    plots: list[Plot]

    @property
    def total_amount_cents(self) -> int:
        return self.assignment.total_amount_cents

    @property
    def amount_paid_cents(self) -> int:
        return self.assignment.amount_paid_cents

    @property
    def remaining_balance_cents(self) -> int:
        return self.assignment.total_amount_cents - self.assignment.amount_paid_cents

    def to_dict(self) -> dict:
        return {
            "assignment": self.assignment.to_dict(),
            "plots_assigned": [p.plot_number for p in self.plots],
            "plot_ids": [p.id for p in self.plots],
            "total_amount_cents": self.total_amount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_balance_cents": self.remaining_balance_cents,
        }


def recompute_unit_status(unit: InventoryUnit) -> str:
    """
    Re-derive unit.status from the current statuses of its plots.

    Must be called after any plot status change, in the same transaction.
    """
    statuses = [
        status for (status,) in db.session.query(Plot.status).filter(Plot.inventory_unit_id == unit.id)
    ]
    unit.status = lifecycle.derive_unit_status(statuses)
    return unit.status


def lock_unit(inventory_unit_id: int) -> InventoryUnit:
    unit = lock_for_update(
        db.session.query(InventoryUnit).filter_by(id=inventory_unit_id)
    ).first()
    if not unit:
        raise NotFoundError(f"Inventory {inventory_unit_id} not found")
    return unit


def lock_unit_plots(unit: InventoryUnit, plot_ids: list[int]) -> list[Plot]:
    """
    Lock the requested plots, in id order, and check they belong to `unit`.

    Raises ValidationError naming the ids that are unknown or belong to
    another unit.
    """
    plots = lock_for_update(
        db.session.query(Plot)
        .filter(Plot.id.in_(plot_ids), Plot.inventory_unit_id == unit.id)
        .order_by(Plot.id.asc())
    ).all()

    found = {p.id for p in plots}
    missing = [pid for pid in plot_ids if pid not in found]
    if missing:
        raise ValidationError(
            f"Plots do not belong to inventory {unit.id}: {', '.join(str(m) for m in missing)}",
            invalid_plot_ids=missing,
        )
    return plots


def assign_plots_in_session(
    *,
    inventory_unit_id: int,
    plot_ids: list[int],
    salesperson_id: int,
    actor_user_id: int | None,
    amount_paid_cents: int = 0,
    notes: str | None = None,
) -> AssignmentResult:
    """
    Assignment without commit, for callers that own the transaction
    (request approval).
    """
    if not plot_ids:
        raise ValidationError("No plots selected")
    if len(set(plot_ids)) != len(plot_ids):
        raise ValidationError("plot_ids contains duplicate ids")
    if amount_paid_cents is None:
        amount_paid_cents = 0
    if amount_paid_cents < 0:
        raise ValidationError("amount_paid_cents must be non-negative")

    salesperson = get_active_salesperson(salesperson_id)
    unit = lock_unit(inventory_unit_id)
    plots = lock_unit_plots(unit, plot_ids)

    unavailable = [p for p in plots if p.status != lifecycle.PLOT_AVAILABLE]
    if unavailable:
        raise ConflictError(
            "Some plots are not available: "
            + ", ".join(f"{p.plot_number} ({p.status})" for p in unavailable),
            unavailable_plots=[p.plot_number for p in unavailable],
        )

    now = utcnow()
    for plot in plots:
        lifecycle.transition_plot(plot, lifecycle.PLOT_ASSIGNED)
        plot.assigned_to = salesperson.id
        plot.assigned_at = now

    assignment = PlotAssignment(
        inventory_unit_id=unit.id,
        salesperson_id=salesperson.id,
        assignment_date=now,
        total_plots_assigned=len(plots),
        total_amount_cents=len(plots) * unit.price_cents,
        amount_paid_cents=amount_paid_cents,
        notes=notes,
        created_by_user_id=actor_user_id,
    )
    db.session.add(assignment)
    db.session.flush()

    recompute_unit_status(unit)

    append_event(
        event_type="plots.assigned",
        entity_type="plot_assignment",
        entity_id=assignment.id,
        actor_user_id=actor_user_id,
        inventory_unit_id=unit.id,
        occurred_at=now,
        note=notes,
        payload={
            "salesperson_id": salesperson.id,
            "plot_ids": [p.id for p in plots],
            "total_amount_cents": assignment.total_amount_cents,
        },
    )

    return AssignmentResult(assignment=assignment, plots=plots)


def assign_plots(
    *,
    inventory_unit_id: int,
    plot_ids: list[int],
    salesperson_id: int,
    actor_user_id: int | None,
    amount_paid_cents: int = 0,
    notes: str | None = None,
) -> AssignmentResult:
    """
    Assign available plots of a unit to a salesperson.

    Raises:
        ValidationError: no plots, duplicates, plots of another unit
        NotFoundError: unit or salesperson missing
        ConflictError: any selected plot is no longer available
    """
    def _op():
        return assign_plots_in_session(
            inventory_unit_id=inventory_unit_id,
            plot_ids=plot_ids,
            salesperson_id=salesperson_id,
            actor_user_id=actor_user_id,
            amount_paid_cents=amount_paid_cents,
            notes=notes,
        )

    return run_in_transaction(_op)
