from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryUnit(db.Model):
    """
    A listed property offering (plot block, house, shop/office).

    price_cents is the price of ONE plot. quantity is the number of plots the
    unit was created with. status is derived from the plots and must only be
    written through allocation_service.recompute_unit_status.

    assigned_to is a leftover of the whole-unit assignment model; it is only
    read by the legacy migration.
    """
    __tablename__ = "inventory_units"
    __table_args__ = (
        db.CheckConstraint("category IN ('plot', 'house', 'shop_office')", name="ck_inventory_units_category"),
        db.CheckConstraint(
            "status IN ('available', 'assigned', 'paid', 'sold')", name="ck_inventory_units_status"
        ),
        db.CheckConstraint("price_cents >= 0", name="ck_inventory_units_price_nonneg"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_units_quantity_nonneg"),
        db.Index("ix_inventory_units_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(32), nullable=False)
    address = db.Column(db.Text, nullable=False)
    price_cents = db.Column(db.BigInteger, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(32), nullable=False, default="available")

    # Raw text the admin typed for plot numbers, kept for reference
    plot_numbers_input = db.Column(db.Text, nullable=True)

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    plots = db.relationship(
        "Plot",
        backref="inventory_unit",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Plot.id",
    )
    assignments = db.relationship(
        "PlotAssignment", backref="inventory_unit", lazy=True, cascade="all, delete-orphan"
    )
    requests = db.relationship(
        "InventoryRequest", backref="inventory_unit", lazy=True, cascade="all, delete-orphan"
    )
    payments = db.relationship(
        "InventoryPayment", backref="inventory_unit", lazy=True, cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "address": self.address,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "status": self.status,
            "plot_numbers_input": self.plot_numbers_input,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Plot(db.Model):
    """
    One sellable sub-unit of an InventoryUnit.

    status: available | assigned | paid | used_in_deal | sold
    assigned_to is set while the plot is held by a salesperson and kept once
    the plot is paid or consumed by a deal.
    """
    __tablename__ = "plots"
    __table_args__ = (
        db.UniqueConstraint("inventory_unit_id", "plot_number", name="uq_plots_unit_number"),
        db.CheckConstraint(
            "status IN ('available', 'assigned', 'paid', 'used_in_deal', 'sold')", name="ck_plots_status"
        ),
        db.Index("ix_plots_unit_status", "inventory_unit_id", "status"),
        db.Index("ix_plots_assigned_to", "assigned_to"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_unit_id = db.Column(
        db.Integer, db.ForeignKey("inventory_units.id", ondelete="CASCADE"), nullable=False
    )
    plot_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="available")

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    assignee = db.relationship("User", foreign_keys=[assigned_to])
    deal_links = db.relationship("DealPlot", backref="plot", lazy=True, cascade="all, delete-orphan")
    request_links = db.relationship(
        "InventoryRequestPlot", backref="plot", lazy=True, cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_unit_id": self.inventory_unit_id,
            "plot_number": self.plot_number,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "assigned_to_name": self.assignee.name if self.assignee else None,
            "assigned_at": to_utc_z(self.assigned_at),
        }


class PlotAssignment(db.Model):
    """
    Immutable record of one allocation of plots to a salesperson.

    total_amount_cents = total_plots_assigned * unit price at the time of assignment.
    amount_paid_cents is the down payment noted by the admin; it is informative
    only and does not move any investor balance.
    """
    __tablename__ = "plot_assignments"
    __table_args__ = (
        db.CheckConstraint("total_plots_assigned > 0", name="ck_plot_assignments_count_positive"),
        db.CheckConstraint("amount_paid_cents >= 0", name="ck_plot_assignments_paid_nonneg"),
        db.Index("ix_plot_assignments_unit_sp", "inventory_unit_id", "salesperson_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_unit_id = db.Column(
        db.Integer, db.ForeignKey("inventory_units.id", ondelete="CASCADE"), nullable=False
    )
    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    assignment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    total_plots_assigned = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.BigInteger, nullable=False)
    amount_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    salesperson = db.relationship("User", foreign_keys=[salesperson_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_unit_id": self.inventory_unit_id,
            "salesperson_id": self.salesperson_id,
            "salesperson_name": self.salesperson.name if self.salesperson else None,
            "assignment_date": to_utc_z(self.assignment_date),
            "total_plots_assigned": self.total_plots_assigned,
            "total_amount_cents": self.total_amount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_balance_cents": self.total_amount_cents - self.amount_paid_cents,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
        }


class InventoryRequest(db.Model):
    """
    A salesperson's ask for specific plots of a unit.

    status: pending -> approved | rejected (both terminal)
    """
    __tablename__ = "inventory_requests"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_inventory_requests_status"
        ),
        db.Index("ix_inventory_requests_unit_status", "inventory_unit_id", "status"),
        db.Index("ix_inventory_requests_salesperson", "salesperson_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_unit_id = db.Column(
        db.Integer, db.ForeignKey("inventory_units.id", ondelete="CASCADE"), nullable=False
    )
    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending")
    admin_notes = db.Column(db.Text, nullable=True)

    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    salesperson = db.relationship("User", foreign_keys=[salesperson_id])
    plot_links = db.relationship(
        "InventoryRequestPlot", backref="request", lazy=True, cascade="all, delete-orphan"
    )

    @property
    def plot_ids(self) -> list[int]:
        return sorted(link.plot_id for link in self.plot_links)

    def to_dict(self) -> dict:
        unit = self.inventory_unit
        return {
            "id": self.id,
            "inventory_unit_id": self.inventory_unit_id,
            "salesperson_id": self.salesperson_id,
            "salesperson_name": self.salesperson.name if self.salesperson else None,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "requested_plot_ids": self.plot_ids,
            "requested_plots": [
                {"id": link.plot.id, "plot_number": link.plot.plot_number}
                for link in sorted(self.plot_links, key=lambda l: l.plot_id)
            ],
            "inventory": {
                "category": unit.category,
                "address": unit.address,
                "price_cents": unit.price_cents,
                "status": unit.status,
            } if unit else None,
            "decided_at": to_utc_z(self.decided_at),
            "decided_by_user_id": self.decided_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryRequestPlot(db.Model):
    """Plots covered by an InventoryRequest."""
    __tablename__ = "inventory_request_plots"
    __table_args__ = (
        db.UniqueConstraint("request_id", "plot_id", name="uq_inventory_request_plots"),
        db.Index("ix_inventory_request_plots_plot", "plot_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer, db.ForeignKey("inventory_requests.id", ondelete="CASCADE"), nullable=False
    )
    plot_id = db.Column(db.Integer, db.ForeignKey("plots.id", ondelete="CASCADE"), nullable=False)
