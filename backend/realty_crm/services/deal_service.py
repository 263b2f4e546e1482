# Overview: Service-layer operations for deals; binds held plots to a sale.

"""
Deal-plot consumption.

Binding a plot to a deal moves it to used_in_deal, which is terminal: the
plot can no longer be assigned, requested, paid for by a new assignment or
attached to another deal. Salespersons may only bind plots assigned to
them; admins may bind any assigned or paid plot.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Deal, DealPlot, InventoryUnit, Plot, User
from ..models.auth import ROLE_SALESPERSON
from ..validation import coerce_cents, coerce_id_list, coerce_int, coerce_str
from . import lifecycle_service as lifecycle
from .allocation_service import lock_unit, lock_unit_plots, recompute_unit_status
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_event
from .scope import Scope


DEAL_STATUSES = {"in_progress", "deal_done", "deal_not_done"}
PROPERTY_TYPES = {"house", "plot", "shop_office"}


def _check_consumable(plots: list[Plot], scope: Scope) -> None:
    not_held = [p for p in plots if p.status not in lifecycle.HELD_PLOT_STATUSES]
    if not_held:
        raise ConflictError(
            "Some plots are not available for a deal: "
            + ", ".join(f"{p.plot_number} ({p.status})" for p in not_held),
            unavailable_plots=[p.plot_number for p in not_held],
        )
    if not scope.is_admin:
        foreign = [p for p in plots if p.assigned_to != scope.user_id]
        if foreign:
            raise AuthorizationError(
                "Some plots are not assigned to you: " + ", ".join(p.plot_number for p in foreign),
                plot_numbers=[p.plot_number for p in foreign],
            )


def _bind_plots(deal: Deal, unit: InventoryUnit, plots: list[Plot], scope: Scope) -> list[Plot]:
    _check_consumable(plots, scope)

    for plot in plots:
        lifecycle.transition_plot(plot, lifecycle.PLOT_USED_IN_DEAL)
        db.session.add(DealPlot(deal_id=deal.id, plot_id=plot.id))
    db.session.flush()

    recompute_unit_status(unit)

    append_event(
        event_type="deal.plots_attached",
        entity_type="deal",
        entity_id=deal.id,
        actor_user_id=scope.user_id,
        inventory_unit_id=unit.id,
        payload={"plot_ids": [p.id for p in plots]},
    )
    return plots


def _pick_plots_by_quantity(unit: InventoryUnit, quantity: int, scope: Scope) -> list[Plot]:
    """
    First `quantity` held plots of the unit in creation order; for salespersons
    only their own.
    """
    q = db.session.query(Plot).filter(
        Plot.inventory_unit_id == unit.id,
        Plot.status.in_(sorted(lifecycle.HELD_PLOT_STATUSES)),
    )
    if not scope.is_admin:
        q = q.filter(Plot.assigned_to == scope.user_id)
    eligible = lock_for_update(q.order_by(Plot.id.asc())).all()
    if len(eligible) < quantity:
        raise ConflictError(
            f"Insufficient inventory quantity. Available: {len(eligible)}, Requested: {quantity}",
            available=len(eligible),
            requested=quantity,
        )
    return eligible[:quantity]


def _profit(original_cents: int | None, sale_cents: int | None) -> tuple[int | None, Decimal | None]:
    if original_cents is None or sale_cents is None:
        return None, None
    profit = sale_cents - original_cents
    if original_cents == 0:
        return profit, None
    pct = (Decimal(profit) * 100 / Decimal(original_cents)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return profit, pct


def create_deal(scope: Scope, payload: dict) -> Deal:
    """
    Create a deal, optionally consuming plots of an inventory unit.

    payload keys: property_type (required), customer_id, salesperson_id
    (admins only), inventory_unit_id, plot_ids | quantity, status,
    original_price_cents, sale_price_cents, demand_price_cents, plot_info.
    """
    property_type = coerce_str(payload.get("property_type"), "property_type", required=True)
    if property_type not in PROPERTY_TYPES:
        raise ValidationError(f"property_type must be one of: {', '.join(sorted(PROPERTY_TYPES))}")

    status = coerce_str(payload.get("status"), "status") or "in_progress"
    if status not in DEAL_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(DEAL_STATUSES))}")

    customer_id = coerce_int(payload.get("customer_id"), "customer_id", required=False)
    inventory_unit_id = coerce_int(payload.get("inventory_unit_id"), "inventory_unit_id", required=False)
    plot_ids = coerce_id_list(payload.get("plot_ids"), "plot_ids")
    quantity = coerce_int(payload.get("quantity"), "quantity", required=False)
    if quantity is not None and quantity < 1:
        raise ValidationError("quantity must be at least 1")
    if (plot_ids or quantity) and inventory_unit_id is None:
        raise ValidationError("inventory_unit_id is required when selecting plots")

    original = coerce_cents(payload.get("original_price_cents"), "original_price_cents", required=False, allow_zero=True)
    sale = coerce_cents(payload.get("sale_price_cents"), "sale_price_cents", required=False, allow_zero=True)
    demand = coerce_cents(payload.get("demand_price_cents"), "demand_price_cents", required=False, allow_zero=True)

    salesperson_id = scope.user_id
    if scope.is_admin and payload.get("salesperson_id") is not None:
        salesperson_id = coerce_int(payload.get("salesperson_id"), "salesperson_id")

    def _op():
        if salesperson_id != scope.user_id:
            owner = db.session.query(User).filter_by(id=salesperson_id, role=ROLE_SALESPERSON).first()
            if not owner:
                raise NotFoundError(f"Salesperson {salesperson_id} not found")

        if customer_id is not None and not db.session.query(Customer).filter_by(id=customer_id).first():
            raise NotFoundError(f"Customer {customer_id} not found")

        unit = lock_unit(inventory_unit_id) if inventory_unit_id is not None else None

        profit, pct = _profit(original, sale)
        deal = Deal(
            customer_id=customer_id,
            salesperson_id=salesperson_id,
            inventory_unit_id=unit.id if unit else None,
            property_type=property_type,
            status=status,
            original_price_cents=original,
            sale_price_cents=sale,
            demand_price_cents=demand,
            profit_cents=profit,
            profit_percentage=pct,
            plot_info=coerce_str(payload.get("plot_info"), "plot_info"),
        )
        db.session.add(deal)
        db.session.flush()

        append_event(
            event_type="deal.created",
            entity_type="deal",
            entity_id=deal.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=deal.inventory_unit_id,
            payload={"salesperson_id": salesperson_id, "property_type": property_type},
        )

        if unit is not None:
            if plot_ids:
                _bind_plots(deal, unit, lock_unit_plots(unit, plot_ids), scope)
            elif quantity:
                _bind_plots(deal, unit, _pick_plots_by_quantity(unit, quantity, scope), scope)

        return deal

    return run_in_transaction(_op)


def _visible_deal(deal_id: int, scope: Scope, *, lock: bool = False) -> Deal:
    q = db.session.query(Deal).filter_by(id=deal_id)
    if lock:
        q = lock_for_update(q)
    deal = q.first()
    if not deal or not scope.can_see(deal.salesperson_id):
        raise NotFoundError(f"Deal {deal_id} not found")
    return deal


def attach_plots_to_deal(deal_id: int, plot_ids: list[int], scope: Scope) -> list[Plot]:
    """
    Bind plots of the deal's inventory unit to the deal.

    Raises:
        NotFoundError: deal missing or not visible to the caller
        ValidationError: no plots, deal without inventory, plots of another unit
        ConflictError: a plot is not assigned/paid (available, already in a deal, sold)
        AuthorizationError: salesperson binding a plot assigned to someone else
    """
    if not plot_ids:
        raise ValidationError("No plots selected")

    def _op():
        deal = _visible_deal(deal_id, scope, lock=True)
        if deal.inventory_unit_id is None:
            raise ValidationError(f"Deal {deal.id} is not linked to an inventory unit")
        unit = lock_unit(deal.inventory_unit_id)
        plots = lock_unit_plots(unit, plot_ids)
        return _bind_plots(deal, unit, plots, scope)

    return run_in_transaction(_op)


def get_deal(deal_id: int, scope: Scope) -> Deal:
    return _visible_deal(deal_id, scope)


def get_deal_plots(deal_id: int, scope: Scope) -> list[Plot]:
    deal = _visible_deal(deal_id, scope)
    return (
        db.session.query(Plot)
        .join(DealPlot, DealPlot.plot_id == Plot.id)
        .filter(DealPlot.deal_id == deal.id)
        .order_by(Plot.id.asc())
        .all()
    )


def list_deals(scope: Scope) -> list[Deal]:
    q = scope.apply(db.session.query(Deal), Deal.salesperson_id)
    return q.order_by(Deal.created_at.desc(), Deal.id.desc()).all()
