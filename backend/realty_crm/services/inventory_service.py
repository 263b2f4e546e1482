# Overview: Service-layer operations for inventory units and their plots.

"""
Inventory units and plots.

A unit is created with `quantity` plots. Plot numbers come from the admin's
free text (comma, newline or semicolon separated); without it placeholder
numbers "<category>-<n>" are generated. Unit status and availability are
always derived from the plots.
"""

from __future__ import annotations

import re

from sqlalchemy import func

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Deal, InventoryUnit, Investor, Plot, PlotAssignment, User
from ..time_utils import to_utc_z
from ..validation import coerce_cents, coerce_int, coerce_str
from . import lifecycle_service as lifecycle
from .allocation_service import lock_unit, recompute_unit_status
from .concurrency import run_in_transaction
from .funding_service import contributions_for_plots, refresh_investor_cache
from .ledger_service import append_event
from .scope import Scope


CATEGORIES = {"plot", "house", "shop_office"}

_PLOT_NUMBER_SEPARATORS = re.compile(r"[,\n;]")


def parse_plot_numbers(text: str | None) -> list[str]:
    """'A-1, A-2;A-3\\nA-4' -> ['A-1', 'A-2', 'A-3', 'A-4']"""
    if not text:
        return []
    return [part.strip() for part in _PLOT_NUMBER_SEPARATORS.split(text) if part.strip()]


def placeholder_plot_numbers(category: str, quantity: int, unit_id: int | None = None) -> list[str]:
    prefix = f"{category}-{unit_id}" if unit_id is not None else category
    return [f"{prefix}-{i}" for i in range(1, quantity + 1)]


def _validate_category(category) -> str:
    category = coerce_str(category, "category", required=True)
    if category not in CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(sorted(CATEGORIES))}")
    return category


# =============================================================================
# CRUD
# =============================================================================

def create_inventory_unit(
    *,
    category: str,
    address: str,
    price_cents,
    quantity=None,
    plot_numbers: str | list[str] | None = None,
    actor_user_id: int | None = None,
) -> InventoryUnit:
    """
    Create a unit and its plots.

    Raises ValidationError when the number of plot numbers differs from
    quantity or the numbers repeat.
    """
    category = _validate_category(category)
    address = coerce_str(address, "address", required=True)
    price = coerce_cents(price_cents, "price_cents")
    qty = coerce_int(quantity, "quantity", required=False)
    qty = 1 if qty is None else qty
    if qty < 1:
        raise ValidationError("quantity must be at least 1")

    if isinstance(plot_numbers, (list, tuple)):
        raw_input = "\n".join(str(n) for n in plot_numbers)
        numbers = [str(n).strip() for n in plot_numbers if str(n).strip()]
    else:
        raw_input = plot_numbers or None
        numbers = parse_plot_numbers(plot_numbers)

    if numbers:
        if len(numbers) != qty:
            raise ValidationError(
                f"Number of plot numbers ({len(numbers)}) must match quantity ({qty})"
            )
        if len(set(numbers)) != len(numbers):
            raise ValidationError("Plot numbers must be unique")
    else:
        numbers = placeholder_plot_numbers(category, qty)

    def _op():
        unit = InventoryUnit(
            category=category,
            address=address,
            price_cents=price,
            quantity=qty,
            status=lifecycle.UNIT_AVAILABLE,
            plot_numbers_input=raw_input,
        )
        unit.plots = [Plot(plot_number=n, status=lifecycle.PLOT_AVAILABLE) for n in numbers]
        db.session.add(unit)
        db.session.flush()

        append_event(
            event_type="inventory.created",
            entity_type="inventory_unit",
            entity_id=unit.id,
            actor_user_id=actor_user_id,
            inventory_unit_id=unit.id,
            payload={"quantity": qty, "price_cents": price, "category": category},
        )
        return unit

    return run_in_transaction(_op)


def update_inventory_unit(unit_id: int, patch: dict, actor_user_id: int | None = None) -> InventoryUnit:
    """
    Update category/address/price_cents. Quantity and status follow the
    plots and are rejected here.
    """
    for derived in ("quantity", "status"):
        if derived in patch:
            raise ValidationError(f"{derived} cannot be changed directly")

    def _op():
        unit = lock_unit(unit_id)
        if "category" in patch:
            unit.category = _validate_category(patch["category"])
        if "address" in patch:
            unit.address = coerce_str(patch["address"], "address", required=True)
        if "price_cents" in patch:
            unit.price_cents = coerce_cents(patch["price_cents"], "price_cents")

        append_event(
            event_type="inventory.updated",
            entity_type="inventory_unit",
            entity_id=unit.id,
            actor_user_id=actor_user_id,
            inventory_unit_id=unit.id,
            payload={k: patch[k] for k in ("category", "address", "price_cents") if k in patch},
        )
        return unit

    return run_in_transaction(_op)


def delete_inventory_unit(unit_id: int, actor_user_id: int | None = None) -> None:
    """
    Delete a unit with its plots, assignments, requests and payments.

    Refused while a deal still references the unit.
    """
    def _op():
        unit = lock_unit(unit_id)
        deal_count = db.session.query(func.count(Deal.id)).filter(Deal.inventory_unit_id == unit.id).scalar()
        if deal_count:
            raise ConflictError(
                f"Inventory {unit.id} is referenced by {deal_count} deal(s) and cannot be deleted"
            )

        append_event(
            event_type="inventory.deleted",
            entity_type="inventory_unit",
            entity_id=unit.id,
            actor_user_id=actor_user_id,
            inventory_unit_id=unit.id,
            note=unit.address,
        )
        investor_ids = {p.investor_id for p in unit.payments if p.investor_id is not None}
        db.session.delete(unit)
        db.session.flush()

        # The unit's payments are gone; give the amounts back to their investors
        for investor in db.session.query(Investor).filter(Investor.id.in_(sorted(investor_ids))).all():
            refresh_investor_cache(investor)

    run_in_transaction(_op)


# =============================================================================
# READ MODELS
# =============================================================================

def _available_count(unit: InventoryUnit) -> int:
    return sum(1 for p in unit.plots if p.status == lifecycle.PLOT_AVAILABLE)


def _admin_unit_view(unit: InventoryUnit) -> dict:
    data = unit.to_dict()
    data["available_quantity"] = _available_count(unit)
    data["plots"] = [p.to_dict() for p in unit.plots]

    groups: dict[int, dict] = {}
    unassigned = []
    for plot in unit.plots:
        if plot.status == lifecycle.PLOT_AVAILABLE or plot.assigned_to is None:
            unassigned.append({"id": plot.id, "plot_number": plot.plot_number, "status": plot.status})
            continue
        group = groups.setdefault(plot.assigned_to, {
            "salesperson_id": plot.assigned_to,
            "salesperson_name": plot.assignee.name if plot.assignee else None,
            "plots": [],
        })
        group["plots"].append({"id": plot.id, "plot_number": plot.plot_number, "status": plot.status})

    for group in groups.values():
        group["plot_count"] = len(group["plots"])
        group["total_amount_cents"] = group["plot_count"] * unit.price_cents

    data["plot_assignments"] = sorted(groups.values(), key=lambda g: g["salesperson_id"])
    data["unassigned_plots"] = unassigned
    data["assignment_history"] = [a.to_dict() for a in unit.assignments]
    return data


def _salesperson_unit_view(unit: InventoryUnit, user_id: int) -> dict:
    data = unit.to_dict()
    data["available_quantity"] = _available_count(unit)

    mine = [p for p in unit.plots if p.assigned_to == user_id and p.status != lifecycle.PLOT_AVAILABLE]
    contributions = contributions_for_plots([p.id for p in mine])
    data["assigned_plots"] = []
    for plot in mine:
        plot_contributions = contributions.get(plot.id, [])
        paid = sum(c["amount_cents"] for c in plot_contributions)
        data["assigned_plots"].append({
            "id": plot.id,
            "plot_number": plot.plot_number,
            "status": plot.status,
            "assigned_at": to_utc_z(plot.assigned_at),
            "paid_cents": paid,
            "outstanding_cents": max(0, unit.price_cents - paid),
            "investor_contributions": plot_contributions,
        })
    data["assigned_plot_count"] = len(mine)
    data["assignment_history"] = [a.to_dict() for a in unit.assignments if a.salesperson_id == user_id]
    return data


def list_inventory(scope: Scope) -> list[dict]:
    """
    Admins: every unit with plots grouped by assignee.
    Salespersons: units where they hold plots, with their plots and the
    investor contributions on each.
    """
    q = db.session.query(InventoryUnit)
    if not scope.is_admin:
        held = db.session.query(Plot.inventory_unit_id).filter(Plot.assigned_to == scope.user_id)
        q = q.filter(InventoryUnit.id.in_(held))
    units = q.order_by(InventoryUnit.created_at.desc(), InventoryUnit.id.desc()).all()

    if scope.is_admin:
        return [_admin_unit_view(u) for u in units]
    return [_salesperson_unit_view(u, scope.user_id) for u in units]


def list_available_inventory() -> list[dict]:
    """Units that can still be requested, with their available plots."""
    has_available = db.session.query(Plot.inventory_unit_id).filter(Plot.status == lifecycle.PLOT_AVAILABLE)
    units = (
        db.session.query(InventoryUnit)
        .filter(
            InventoryUnit.status == lifecycle.UNIT_AVAILABLE,
            InventoryUnit.id.in_(has_available),
        )
        .order_by(InventoryUnit.created_at.desc(), InventoryUnit.id.desc())
        .all()
    )
    result = []
    for unit in units:
        data = unit.to_dict()
        available = [p for p in unit.plots if p.status == lifecycle.PLOT_AVAILABLE]
        data["available_quantity"] = len(available)
        data["available_plots"] = [{"id": p.id, "plot_number": p.plot_number} for p in available]
        result.append(data)
    return result


def _visible_unit(unit_id: int, scope: Scope) -> InventoryUnit:
    unit = db.session.query(InventoryUnit).filter_by(id=unit_id).first()
    if not unit:
        raise NotFoundError(f"Inventory {unit_id} not found")
    if scope.is_admin or unit.status == lifecycle.UNIT_AVAILABLE:
        return unit
    if any(p.assigned_to == scope.user_id for p in unit.plots):
        return unit
    raise NotFoundError(f"Inventory {unit_id} not found")


def get_inventory_unit(unit_id: int, scope: Scope) -> dict:
    unit = _visible_unit(unit_id, scope)
    if scope.is_admin:
        return _admin_unit_view(unit)
    data = _salesperson_unit_view(unit, scope.user_id)
    data["available_plots"] = [
        {"id": p.id, "plot_number": p.plot_number} for p in unit.plots if p.status == lifecycle.PLOT_AVAILABLE
    ]
    return data


def list_plots(unit_id: int, scope: Scope, available_only: bool = False) -> list[Plot]:
    unit = _visible_unit(unit_id, scope)
    q = db.session.query(Plot).filter(Plot.inventory_unit_id == unit.id)
    if available_only:
        q = q.filter(Plot.status == lifecycle.PLOT_AVAILABLE)
    elif not scope.is_admin:
        q = q.filter(
            (Plot.status == lifecycle.PLOT_AVAILABLE) | (Plot.assigned_to == scope.user_id)
        )
    return q.order_by(Plot.id.asc()).all()


# =============================================================================
# LEGACY MIGRATION
# =============================================================================

def migrate_legacy_units(actor_user_id: int | None = None) -> list[dict]:
    """
    Give every unit without plots its per-plot representation.

    Plot numbers come from plot_numbers_input when it parses to exactly
    `quantity` unique numbers, otherwise "<category>-<unit id>-<n>". A unit
    that was assigned wholesale (assigned_to set) gets all its plots assigned
    to that salesperson, with one PlotAssignment record. Payments recorded
    against the unit (plot_id NULL) are left untouched.

    Idempotent: units that already have plots are skipped.
    """
    def _op():
        has_plots = db.session.query(Plot.inventory_unit_id)
        units = (
            db.session.query(InventoryUnit)
            .filter(~InventoryUnit.id.in_(has_plots))
            .order_by(InventoryUnit.id.asc())
            .all()
        )

        report = []
        for unit in units:
            qty = unit.quantity if unit.quantity and unit.quantity > 0 else 1
            numbers = parse_plot_numbers(unit.plot_numbers_input)
            if len(numbers) != qty or len(set(numbers)) != len(numbers):
                numbers = placeholder_plot_numbers(unit.category, qty, unit_id=unit.id)

            legacy_status = unit.status
            assignee = None
            if unit.assigned_to is not None:
                assignee = db.session.query(User).filter_by(id=unit.assigned_to).first()

            plots = []
            for number in numbers:
                plot = Plot(inventory_unit_id=unit.id, plot_number=number, status=lifecycle.PLOT_AVAILABLE)
                if assignee is not None:
                    lifecycle.transition_plot(plot, lifecycle.PLOT_ASSIGNED)
                    plot.assigned_to = assignee.id
                    plot.assigned_at = unit.updated_at
                    if legacy_status == lifecycle.UNIT_PAID:
                        lifecycle.transition_plot(plot, lifecycle.PLOT_PAID)
                if legacy_status == lifecycle.UNIT_SOLD:
                    lifecycle.transition_plot(plot, lifecycle.PLOT_SOLD)
                plots.append(plot)
            db.session.add_all(plots)
            unit.quantity = qty
            db.session.flush()

            if assignee is not None:
                db.session.add(PlotAssignment(
                    inventory_unit_id=unit.id,
                    salesperson_id=assignee.id,
                    assignment_date=unit.updated_at,
                    total_plots_assigned=len(plots),
                    total_amount_cents=len(plots) * unit.price_cents,
                    amount_paid_cents=0,
                    notes="Migrated from whole-unit assignment",
                    created_by_user_id=actor_user_id,
                ))

            recompute_unit_status(unit)

            append_event(
                event_type="inventory.legacy_migrated",
                entity_type="inventory_unit",
                entity_id=unit.id,
                actor_user_id=actor_user_id,
                inventory_unit_id=unit.id,
                payload={"plot_numbers": numbers, "assigned_to": assignee.id if assignee else None},
            )
            report.append({
                "inventory_unit_id": unit.id,
                "plots_created": len(plots),
                "assigned_to": assignee.id if assignee else None,
            })
        return report

    return run_in_transaction(_op)
