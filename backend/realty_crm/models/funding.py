from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


class Investor(db.Model):
    """
    A funder owned by exactly one user (salesperson_id), admins included.

    paid_amount_cents / remaining_balance_cents are a cache of the payment
    ledger. funding_service rebuilds them inside every transaction that
    touches the investor's payments; decisions always use a fresh aggregate.
    """
    __tablename__ = "investors"
    __table_args__ = (
        db.CheckConstraint("total_invested_cents >= 0", name="ck_investors_total_nonneg"),
        db.Index("ix_investors_salesperson", "salesperson_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)

    total_invested_cents = db.Column(db.BigInteger, nullable=False, default=0)
    paid_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    remaining_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    owner = db.relationship("User", foreign_keys=[salesperson_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salesperson_id": self.salesperson_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "total_invested_cents": self.total_invested_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_balance_cents": self.remaining_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryPayment(db.Model):
    """
    One investor's contribution toward one plot.

    This table is the funding ledger. plot_id is NULL only for rows carried
    over from the whole-unit model; investor_id becomes NULL when the investor
    is deleted.
    """
    __tablename__ = "inventory_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_inventory_payments_amount_positive"),
        db.Index("ix_inventory_payments_unit", "inventory_unit_id"),
        db.Index("ix_inventory_payments_plot", "plot_id"),
        db.Index("ix_inventory_payments_investor", "investor_id"),
        db.Index("ix_inventory_payments_salesperson", "salesperson_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_unit_id = db.Column(
        db.Integer, db.ForeignKey("inventory_units.id", ondelete="CASCADE"), nullable=False
    )
    plot_id = db.Column(db.Integer, db.ForeignKey("plots.id", ondelete="SET NULL"), nullable=True)
    investor_id = db.Column(db.Integer, db.ForeignKey("investors.id", ondelete="SET NULL"), nullable=True)
    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    plot = db.relationship("Plot")
    investor = db.relationship("Investor")
    salesperson = db.relationship("User", foreign_keys=[salesperson_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_unit_id": self.inventory_unit_id,
            "plot_id": self.plot_id,
            "plot_number": self.plot.plot_number if self.plot else None,
            "investor_id": self.investor_id,
            "investor_name": self.investor.name if self.investor else None,
            "salesperson_id": self.salesperson_id,
            "salesperson_name": self.salesperson.name if self.salesperson else None,
            "amount_cents": self.amount_cents,
            "payment_date": to_iso_date(self.payment_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
