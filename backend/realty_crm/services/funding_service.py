# Overview: Service-layer operations for investor funding; payments, balances and contributions.

"""
Investor funding ledger.

inventory_payments is the ledger. An investor's balance is always

    remaining = total_invested_cents - SUM(payments.amount_cents)

computed from the ledger inside the transaction that needs it. The cached
paid_amount_cents / remaining_balance_cents columns on Investor are rebuilt
from the same aggregate whenever the investor's payments change, and are
only ever shown, never used for a decision.

Investors belong to the user who created them. Only the owner (admins
included) may draw on an investor.

A plot is promoted assigned -> paid once the ledger sum for that plot reaches
the unit price. Deleting a payment never demotes a plot.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import func

from ..errors import (
    AuthorizationError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import InventoryPayment, InventoryUnit, Investor, Plot
from ..validation import coerce_cents, coerce_date, coerce_int, coerce_str
from . import lifecycle_service as lifecycle
from .allocation_service import lock_unit, recompute_unit_status
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_event
from .scope import Scope


_UNSET: Any = object()


# =============================================================================
# LEDGER AGGREGATES
# =============================================================================

def used_cents_for_investor(investor_id: int, exclude_payment_id: int | None = None) -> int:
    q = db.session.query(func.coalesce(func.sum(InventoryPayment.amount_cents), 0)).filter(
        InventoryPayment.investor_id == investor_id
    )
    if exclude_payment_id is not None:
        q = q.filter(InventoryPayment.id != exclude_payment_id)
    return int(q.scalar() or 0)


def paid_cents_for_plot(plot_id: int) -> int:
    total = db.session.query(func.coalesce(func.sum(InventoryPayment.amount_cents), 0)).filter(
        InventoryPayment.plot_id == plot_id
    ).scalar()
    return int(total or 0)


def refresh_investor_cache(investor: Investor) -> Investor:
    """Rebuild the cached balance columns from the ledger."""
    used = used_cents_for_investor(investor.id)
    investor.paid_amount_cents = used
    investor.remaining_balance_cents = investor.total_invested_cents - used
    return investor


def _promote_if_fully_paid(plot: Plot, unit: InventoryUnit) -> bool:
    if plot.status != lifecycle.PLOT_ASSIGNED:
        return False
    if paid_cents_for_plot(plot.id) < unit.price_cents:
        return False
    lifecycle.transition_plot(plot, lifecycle.PLOT_PAID)
    return True


# =============================================================================
# INVESTORS
# =============================================================================

def _owned_investor(investor_id: int, owner_id: int, *, lock: bool = False) -> Investor:
    q = db.session.query(Investor).filter_by(id=investor_id, salesperson_id=owner_id)
    if lock:
        q = lock_for_update(q)
    investor = q.first()
    if not investor:
        raise NotFoundError(f"Investor {investor_id} not found")
    return investor


def create_investor(
    *,
    owner_id: int,
    name: str,
    phone: str | None = None,
    address: str | None = None,
    total_invested_cents: int = 0,
) -> Investor:
    name = coerce_str(name, "name", required=True, max_length=255)
    total = coerce_cents(total_invested_cents, "total_invested_cents", required=False, allow_zero=True) or 0

    def _op():
        investor = Investor(
            salesperson_id=owner_id,
            name=name,
            phone=coerce_str(phone, "phone", max_length=64),
            address=coerce_str(address, "address"),
            total_invested_cents=total,
            paid_amount_cents=0,
            remaining_balance_cents=total,
        )
        db.session.add(investor)
        db.session.flush()

        append_event(
            event_type="investor.created",
            entity_type="investor",
            entity_id=investor.id,
            actor_user_id=owner_id,
            investor_id=investor.id,
            payload={"total_invested_cents": total},
        )
        return investor

    return run_in_transaction(_op)


def list_investors(owner_id: int) -> list[Investor]:
    return (
        db.session.query(Investor)
        .filter(Investor.salesperson_id == owner_id)
        .order_by(Investor.created_at.desc(), Investor.id.desc())
        .all()
    )


def get_investor(investor_id: int, owner_id: int) -> Investor:
    return _owned_investor(investor_id, owner_id)


def update_investor(investor_id: int, owner_id: int, patch: dict) -> Investor:
    """
    Update name/phone/address/total_invested_cents.

    total_invested_cents may not drop below what the investor has already
    paid out (ConflictError).
    """
    def _op():
        investor = _owned_investor(investor_id, owner_id, lock=True)

        if "name" in patch:
            investor.name = coerce_str(patch["name"], "name", required=True, max_length=255)
        if "phone" in patch:
            investor.phone = coerce_str(patch["phone"], "phone", max_length=64)
        if "address" in patch:
            investor.address = coerce_str(patch["address"], "address")
        if "total_invested_cents" in patch:
            total = coerce_cents(patch["total_invested_cents"], "total_invested_cents", allow_zero=True)
            used = used_cents_for_investor(investor.id)
            if total < used:
                raise ConflictError(
                    f"total_invested_cents cannot be lower than the amount already used ({used})",
                    used_balance_cents=used,
                )
            investor.total_invested_cents = total

        refresh_investor_cache(investor)

        append_event(
            event_type="investor.updated",
            entity_type="investor",
            entity_id=investor.id,
            actor_user_id=owner_id,
            investor_id=investor.id,
            payload={k: patch[k] for k in ("name", "total_invested_cents") if k in patch},
        )
        return investor

    return run_in_transaction(_op)


def delete_investor(investor_id: int, owner_id: int) -> None:
    """Delete an investor. Its payments stay in the ledger with investor_id = NULL."""
    def _op():
        investor = _owned_investor(investor_id, owner_id, lock=True)

        db.session.query(InventoryPayment).filter(
            InventoryPayment.investor_id == investor.id
        ).update({InventoryPayment.investor_id: None}, synchronize_session="fetch")

        append_event(
            event_type="investor.deleted",
            entity_type="investor",
            entity_id=investor.id,
            actor_user_id=owner_id,
            investor_id=investor.id,
            note=investor.name,
        )
        db.session.delete(investor)

    run_in_transaction(_op)


# =============================================================================
# PAYMENTS
# =============================================================================

def _normalize_investor_payments(investor_payments) -> list[tuple[int, int]]:
    if not isinstance(investor_payments, (list, tuple)) or not investor_payments:
        raise ValidationError("At least one investor payment is required")

    rows: list[tuple[int, int]] = []
    seen: set[int] = set()
    for entry in investor_payments:
        if not isinstance(entry, dict):
            raise ValidationError("Each investor payment must be an object")
        investor_id = coerce_int(entry.get("investor_id"), "investor_id")
        amount = coerce_cents(entry.get("amount_cents"), "amount_cents")
        if investor_id in seen:
            raise ValidationError(f"Investor {investor_id} appears more than once")
        seen.add(investor_id)
        rows.append((investor_id, amount))
    return rows


def record_payment(
    *,
    inventory_unit_id: int,
    plot_id: int | None,
    investor_payments: list[dict],
    payment_date: str | date | None,
    scope: Scope,
    notes: str | None = None,
) -> tuple[list[InventoryPayment], int]:
    """
    Record one payment row per investor toward a single plot.

    All rows are written or none are. After the insert the plot is promoted
    to paid when the ledger sum for it reaches the unit price.

    Raises:
        ValidationError: missing date/plot, bad amounts, plot of another unit
        NotFoundError: unit or investor missing
        ConflictError: plot is not held (still available, or sold)
        AuthorizationError: plot not assigned to the caller (salespersons),
                            investor owned by someone else
        InsufficientBalanceError: an investor cannot cover its amount
    """
    paid_on = coerce_date(payment_date, "payment_date")
    if plot_id is None:
        raise ValidationError("plot_id is required")
    plot_id = coerce_int(plot_id, "plot_id")
    rows = _normalize_investor_payments(investor_payments)
    notes = coerce_str(notes, "notes")

    def _op():
        unit = lock_unit(inventory_unit_id)

        plot = lock_for_update(db.session.query(Plot).filter_by(id=plot_id)).first()
        if not plot or plot.inventory_unit_id != unit.id:
            raise ValidationError(f"Plot {plot_id} does not belong to inventory {unit.id}")
        if plot.status not in lifecycle.PAYABLE_PLOT_STATUSES:
            raise ConflictError(
                f"Plot {plot.plot_number} is {plot.status} and cannot receive payments",
                plot_number=plot.plot_number,
                current_status=plot.status,
            )
        if not scope.is_admin and plot.assigned_to != scope.user_id:
            raise AuthorizationError(f"Plot {plot.plot_number} is not assigned to you")

        # Lock investors in id order so concurrent payments cannot deadlock
        investor_ids = sorted(investor_id for investor_id, _ in rows)
        investors = {
            inv.id: inv
            for inv in lock_for_update(
                db.session.query(Investor).filter(Investor.id.in_(investor_ids)).order_by(Investor.id.asc())
            ).all()
        }

        for investor_id, amount in rows:
            investor = investors.get(investor_id)
            if not investor:
                raise NotFoundError(f"Investor {investor_id} not found")
            if investor.salesperson_id != scope.user_id:
                raise AuthorizationError(f"Investor {investor.name} does not belong to you")
            available = investor.total_invested_cents - used_cents_for_investor(investor.id)
            if amount > available:
                raise InsufficientBalanceError(investor.name, available, amount)

        payments = []
        for investor_id, amount in rows:
            payment = InventoryPayment(
                inventory_unit_id=unit.id,
                plot_id=plot.id,
                investor_id=investor_id,
                salesperson_id=scope.user_id,
                amount_cents=amount,
                payment_date=paid_on,
                notes=notes,
            )
            db.session.add(payment)
            payments.append(payment)
        db.session.flush()

        for investor in investors.values():
            refresh_investor_cache(investor)

        if _promote_if_fully_paid(plot, unit):
            recompute_unit_status(unit)

        for payment in payments:
            append_event(
                event_type="inventory_payment.created",
                entity_type="inventory_payment",
                entity_id=payment.id,
                actor_user_id=scope.user_id,
                inventory_unit_id=unit.id,
                plot_id=plot.id,
                investor_id=payment.investor_id,
                payload={"amount_cents": payment.amount_cents},
            )

        return payments, sum(amount for _, amount in rows)

    return run_in_transaction(_op)


def _scoped_payment(payment_id: int, scope: Scope) -> InventoryPayment:
    payment = lock_for_update(db.session.query(InventoryPayment).filter_by(id=payment_id)).first()
    if not payment or not scope.can_see(payment.salesperson_id):
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def update_payment(
    payment_id: int,
    scope: Scope,
    *,
    amount_cents: Any = _UNSET,
    payment_date: Any = _UNSET,
    notes: Any = _UNSET,
) -> InventoryPayment:
    """
    Correct amount/date/notes of a payment.

    A new amount is re-checked against the investor's balance without this
    payment. The plot may be promoted by a larger amount but never demoted.
    """
    new_amount = coerce_cents(amount_cents, "amount_cents") if amount_cents is not _UNSET else None
    new_date = coerce_date(payment_date, "payment_date") if payment_date is not _UNSET else None

    def _op():
        payment = _scoped_payment(payment_id, scope)
        old_amount = payment.amount_cents

        investor = None
        if payment.investor_id is not None:
            investor = lock_for_update(db.session.query(Investor).filter_by(id=payment.investor_id)).first()

        if new_amount is not None and new_amount != old_amount:
            if investor is not None:
                available = investor.total_invested_cents - used_cents_for_investor(
                    investor.id, exclude_payment_id=payment.id
                )
                if new_amount > available:
                    raise InsufficientBalanceError(investor.name, available, new_amount)
            payment.amount_cents = new_amount

        if new_date is not None:
            payment.payment_date = new_date
        if notes is not _UNSET:
            payment.notes = coerce_str(notes, "notes")

        db.session.flush()
        if investor is not None:
            refresh_investor_cache(investor)

        if payment.plot_id is not None:
            plot = lock_for_update(db.session.query(Plot).filter_by(id=payment.plot_id)).first()
            unit = payment.inventory_unit
            if plot is not None and _promote_if_fully_paid(plot, unit):
                recompute_unit_status(unit)

        append_event(
            event_type="inventory_payment.updated",
            entity_type="inventory_payment",
            entity_id=payment.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=payment.inventory_unit_id,
            plot_id=payment.plot_id,
            investor_id=payment.investor_id,
            payload={"old_amount_cents": old_amount, "amount_cents": payment.amount_cents},
        )
        return payment

    return run_in_transaction(_op)


def delete_payment(payment_id: int, scope: Scope) -> None:
    """
    Remove a payment and give the amount back to its investor.

    A plot that reached paid stays paid.
    """
    def _op():
        payment = _scoped_payment(payment_id, scope)
        investor_id = payment.investor_id

        append_event(
            event_type="inventory_payment.deleted",
            entity_type="inventory_payment",
            entity_id=payment.id,
            actor_user_id=scope.user_id,
            inventory_unit_id=payment.inventory_unit_id,
            plot_id=payment.plot_id,
            investor_id=investor_id,
            payload={"amount_cents": payment.amount_cents},
        )
        db.session.delete(payment)
        db.session.flush()

        if investor_id is not None:
            investor = lock_for_update(db.session.query(Investor).filter_by(id=investor_id)).first()
            if investor is not None:
                refresh_investor_cache(investor)

    run_in_transaction(_op)


def get_payment(payment_id: int, scope: Scope) -> InventoryPayment:
    payment = db.session.query(InventoryPayment).filter_by(id=payment_id).first()
    if not payment or not scope.can_see(payment.salesperson_id):
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def list_payments(
    scope: Scope,
    *,
    inventory_unit_id: int | None = None,
    plot_id: int | None = None,
) -> list[InventoryPayment]:
    q = scope.apply(db.session.query(InventoryPayment), InventoryPayment.salesperson_id)
    if inventory_unit_id is not None:
        q = q.filter(InventoryPayment.inventory_unit_id == inventory_unit_id)
    if plot_id is not None:
        q = q.filter(InventoryPayment.plot_id == plot_id)
    return q.order_by(InventoryPayment.payment_date.desc(), InventoryPayment.id.desc()).all()


# =============================================================================
# BALANCES
# =============================================================================

def _used_by_investor_subquery():
    return (
        db.session.query(
            InventoryPayment.investor_id.label("investor_id"),
            func.sum(InventoryPayment.amount_cents).label("used"),
        )
        .filter(InventoryPayment.investor_id.isnot(None))
        .group_by(InventoryPayment.investor_id)
        .subquery()
    )


def get_investor_balances(salesperson_id: int, scope: Scope) -> list[dict]:
    """Per-investor balances for one salesperson, from the ledger."""
    scope.require_self_or_admin(salesperson_id)

    used = _used_by_investor_subquery()
    rows = (
        db.session.query(Investor, func.coalesce(used.c.used, 0))
        .outerjoin(used, used.c.investor_id == Investor.id)
        .filter(Investor.salesperson_id == salesperson_id)
        .order_by(Investor.name.asc(), Investor.id.asc())
        .all()
    )
    return [
        {
            "id": investor.id,
            "name": investor.name,
            "total_invested_cents": investor.total_invested_cents,
            "used_balance_cents": int(used_cents),
            "remaining_balance_cents": investor.total_invested_cents - int(used_cents),
        }
        for investor, used_cents in rows
    ]


def get_salesperson_balance(salesperson_id: int, scope: Scope) -> dict:
    """Totals over every investor the salesperson owns."""
    balances = get_investor_balances(salesperson_id, scope)
    total_invested = sum(b["total_invested_cents"] for b in balances)
    total_used = sum(b["used_balance_cents"] for b in balances)
    return {
        "salesperson_id": salesperson_id,
        "investor_count": len(balances),
        "total_invested_cents": total_invested,
        "total_used_cents": total_used,
        "remaining_balance_cents": total_invested - total_used,
    }


# =============================================================================
# CONTRIBUTIONS
# =============================================================================

def contributions_for_plots(plot_ids: list[int]) -> dict[int, list[dict]]:
    """
    {plot_id: [{investor_id, investor_name, amount_cents}, ...]} summed from
    the ledger. Payments whose investor was deleted are grouped under
    investor_id None.
    """
    if not plot_ids:
        return {}
    rows = (
        db.session.query(
            InventoryPayment.plot_id,
            InventoryPayment.investor_id,
            Investor.name,
            func.sum(InventoryPayment.amount_cents),
        )
        .outerjoin(Investor, Investor.id == InventoryPayment.investor_id)
        .filter(InventoryPayment.plot_id.in_(plot_ids))
        .group_by(InventoryPayment.plot_id, InventoryPayment.investor_id, Investor.name)
        .order_by(InventoryPayment.plot_id.asc(), InventoryPayment.investor_id.asc())
        .all()
    )
    result: dict[int, list[dict]] = {}
    for plot_id, investor_id, investor_name, amount in rows:
        result.setdefault(plot_id, []).append({
            "investor_id": investor_id,
            "investor_name": investor_name,
            "amount_cents": int(amount or 0),
        })
    return result


def _require_unit_access(unit: InventoryUnit, scope: Scope, plot: Plot | None = None) -> None:
    if scope.is_admin:
        return
    if plot is not None:
        if plot.assigned_to != scope.user_id:
            raise AuthorizationError(f"Plot {plot.plot_number} is not assigned to you")
        return
    holds = db.session.query(Plot.id).filter(
        Plot.inventory_unit_id == unit.id, Plot.assigned_to == scope.user_id
    ).first()
    if not holds:
        raise AuthorizationError("You do not hold any plot of this inventory")


def get_unit_contributions(inventory_unit_id: int, scope: Scope) -> dict:
    """Investor totals for a unit, broken down per plot."""
    unit = db.session.query(InventoryUnit).filter_by(id=inventory_unit_id).first()
    if not unit:
        raise NotFoundError(f"Inventory {inventory_unit_id} not found")
    _require_unit_access(unit, scope)

    q = (
        db.session.query(
            InventoryPayment.investor_id,
            Investor.name,
            func.sum(InventoryPayment.amount_cents),
            func.count(InventoryPayment.id),
        )
        .outerjoin(Investor, Investor.id == InventoryPayment.investor_id)
        .filter(InventoryPayment.inventory_unit_id == unit.id)
    )
    q = scope.apply(q, InventoryPayment.salesperson_id)
    rows = q.group_by(InventoryPayment.investor_id, Investor.name).all()

    plots_q = db.session.query(Plot).filter(Plot.inventory_unit_id == unit.id)
    if not scope.is_admin:
        plots_q = plots_q.filter(Plot.assigned_to == scope.user_id)
    plots = plots_q.order_by(Plot.id.asc()).all()
    per_plot = contributions_for_plots([p.id for p in plots])

    investors = [
        {
            "investor_id": investor_id,
            "investor_name": name,
            "total_amount_cents": int(amount or 0),
            "payment_count": int(count),
        }
        for investor_id, name, amount, count in rows
    ]
    return {
        "inventory_unit_id": unit.id,
        "price_cents": unit.price_cents,
        "investors": investors,
        "total_paid_cents": sum(i["total_amount_cents"] for i in investors),
        "plots": [
            {
                "plot_id": p.id,
                "plot_number": p.plot_number,
                "status": p.status,
                "contributions": per_plot.get(p.id, []),
                "paid_cents": sum(c["amount_cents"] for c in per_plot.get(p.id, [])),
            }
            for p in plots
        ],
    }


def get_plot_contributions(inventory_unit_id: int, plot_id: int, scope: Scope) -> dict:
    plot = db.session.query(Plot).filter_by(id=plot_id, inventory_unit_id=inventory_unit_id).first()
    if not plot:
        raise NotFoundError(f"Plot {plot_id} not found in inventory {inventory_unit_id}")
    _require_unit_access(plot.inventory_unit, scope, plot=plot)

    contributions = contributions_for_plots([plot.id]).get(plot.id, [])
    paid = sum(c["amount_cents"] for c in contributions)
    return {
        "plot_id": plot.id,
        "plot_number": plot.plot_number,
        "status": plot.status,
        "price_cents": plot.inventory_unit.price_cents,
        "paid_cents": paid,
        "outstanding_cents": max(0, plot.inventory_unit.price_cents - paid),
        "contributions": contributions,
    }


# =============================================================================
# MAINTENANCE
# =============================================================================

def rebuild_investor_balances() -> list[dict]:
    """
    Rewrite every investor's cached balance from the ledger.

    Returns the investors whose cache had drifted, with old and new values.
    """
    def _op():
        drifted = []
        for investor in db.session.query(Investor).order_by(Investor.id.asc()).all():
            old = (investor.paid_amount_cents, investor.remaining_balance_cents)
            refresh_investor_cache(investor)
            new = (investor.paid_amount_cents, investor.remaining_balance_cents)
            if old != new:
                drifted.append({
                    "investor_id": investor.id,
                    "name": investor.name,
                    "old_paid_amount_cents": old[0],
                    "old_remaining_balance_cents": old[1],
                    "paid_amount_cents": new[0],
                    "remaining_balance_cents": new[1],
                })
        return drifted

    return run_in_transaction(_op)
