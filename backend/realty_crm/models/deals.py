from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """Buyer on a deal. Only read here; customer management lives elsewhere."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_created_by", "created_by"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    cnic = db.Column(db.String(32), nullable=True)
    phone_number = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cnic": self.cnic,
            "phone_number": self.phone_number,
            "created_by": self.created_by,
        }


class Deal(db.Model):
    """
    A sale to a customer. Plots bound through DealPlot become used_in_deal.

    status: in_progress | deal_done | deal_not_done
    """
    __tablename__ = "deals"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('in_progress', 'deal_done', 'deal_not_done')", name="ck_deals_status"
        ),
        db.CheckConstraint(
            "property_type IN ('house', 'plot', 'shop_office')", name="ck_deals_property_type"
        ),
        db.Index("ix_deals_salesperson", "salesperson_id"),
        db.Index("ix_deals_unit", "inventory_unit_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    inventory_unit_id = db.Column(
        db.Integer, db.ForeignKey("inventory_units.id", ondelete="SET NULL"), nullable=True
    )
    property_type = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="in_progress")

    original_price_cents = db.Column(db.BigInteger, nullable=True)
    sale_price_cents = db.Column(db.BigInteger, nullable=True)
    demand_price_cents = db.Column(db.BigInteger, nullable=True)
    profit_cents = db.Column(db.BigInteger, nullable=True)
    profit_percentage = db.Column(db.Numeric(10, 2), nullable=True)
    plot_info = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    customer = db.relationship("Customer")
    salesperson = db.relationship("User", foreign_keys=[salesperson_id])
    inventory_unit = db.relationship("InventoryUnit")
    plot_links = db.relationship("DealPlot", backref="deal", lazy=True, cascade="all, delete-orphan")

    def to_dict(self, include_plots: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "salesperson_id": self.salesperson_id,
            "salesperson_name": self.salesperson.name if self.salesperson else None,
            "inventory_unit_id": self.inventory_unit_id,
            "property_type": self.property_type,
            "status": self.status,
            "original_price_cents": self.original_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "demand_price_cents": self.demand_price_cents,
            "profit_cents": self.profit_cents,
            "profit_percentage": float(self.profit_percentage) if self.profit_percentage is not None else None,
            "plot_info": self.plot_info,
            "created_at": to_utc_z(self.created_at),
        }
        if include_plots:
            data["plots"] = [
                {"id": link.plot.id, "plot_number": link.plot.plot_number, "status": link.plot.status}
                for link in sorted(self.plot_links, key=lambda link: link.plot_id)
            ]
        return data


class DealPlot(db.Model):
    """Binding of a plot to the deal that consumed it."""
    __tablename__ = "deal_plots"
    __table_args__ = (
        db.UniqueConstraint("deal_id", "plot_id", name="uq_deal_plots"),
        db.Index("ix_deal_plots_plot", "plot_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    deal_id = db.Column(db.Integer, db.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    plot_id = db.Column(db.Integer, db.ForeignKey("plots.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
