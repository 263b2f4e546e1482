"""
Deal-plot consumption tests.

Verifies:
- Binding a held plot to a deal makes it used_in_deal, permanently
- A plot can back only one deal
- Salespersons bind only their own plots
- Profit is derived from original and sale price
"""

from decimal import Decimal

import pytest

from realty_crm.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from realty_crm.extensions import db
from realty_crm.models import Customer, DealPlot, InventoryUnit, Plot
from realty_crm.services import deal_service
from realty_crm.services.allocation_service import assign_plots


@pytest.fixture
def held_unit(admin, salesperson, make_unit):
    """A 3-plot unit whose first two plots are assigned to `salesperson`."""
    unit = make_unit(quantity=3, price_cents=200_000, plot_numbers="D-1, D-2, D-3")
    assign_plots(
        inventory_unit_id=unit.id,
        plot_ids=[unit.plots[0].id, unit.plots[1].id],
        salesperson_id=salesperson.id,
        actor_user_id=admin.id,
    )
    return db.session.get(InventoryUnit, unit.id)


class TestCreateDeal:

    def test_deal_with_plots_consumes_them(self, sp_scope, held_unit):
        plot_id = held_unit.plots[0].id
        deal = deal_service.create_deal(sp_scope, {
            "property_type": "plot",
            "inventory_unit_id": held_unit.id,
            "plot_ids": [plot_id],
            "original_price_cents": 200_000,
            "sale_price_cents": 250_000,
        })

        assert db.session.get(Plot, plot_id).status == "used_in_deal"
        assert [p.id for p in deal_service.get_deal_plots(deal.id, sp_scope)] == [plot_id]
        assert deal.profit_cents == 50_000
        assert Decimal(deal.profit_percentage) == Decimal("25.00")

    def test_deal_by_quantity_picks_held_plots(self, sp_scope, held_unit):
        deal = deal_service.create_deal(sp_scope, {
            "property_type": "plot",
            "inventory_unit_id": held_unit.id,
            "quantity": 2,
        })

        plots = deal_service.get_deal_plots(deal.id, sp_scope)
        assert [p.plot_number for p in plots] == ["D-1", "D-2"]
        assert all(p.status == "used_in_deal" for p in plots)

    def test_quantity_picks_plots_in_creation_order(self, admin, sp_scope, salesperson, make_unit):
        unit = make_unit(quantity=3, plot_numbers="P-2, P-10, P-1")
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[p.id for p in unit.plots],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )

        deal = deal_service.create_deal(sp_scope, {
            "property_type": "plot",
            "inventory_unit_id": unit.id,
            "quantity": 2,
        })

        assert [p.plot_number for p in deal_service.get_deal_plots(deal.id, sp_scope)] == ["P-2", "P-10"]

    def test_quantity_beyond_holdings_rejected(self, sp_scope, held_unit):
        with pytest.raises(ConflictError, match="Available: 2, Requested: 3"):
            deal_service.create_deal(sp_scope, {
                "property_type": "plot",
                "inventory_unit_id": held_unit.id,
                "quantity": 3,
            })

    def test_deal_without_inventory(self, app, sp_scope, salesperson):
        customer = Customer(name="Bilal", phone_number="0300-1111111", created_by=salesperson.id)
        db.session.add(customer)
        db.session.commit()

        deal = deal_service.create_deal(sp_scope, {"property_type": "house", "customer_id": customer.id})
        assert deal.inventory_unit_id is None
        assert deal.status == "in_progress"

    def test_unknown_property_type(self, sp_scope):
        with pytest.raises(ValidationError):
            deal_service.create_deal(sp_scope, {"property_type": "castle"})

    def test_plots_require_inventory(self, sp_scope, held_unit):
        with pytest.raises(ValidationError):
            deal_service.create_deal(sp_scope, {"property_type": "plot", "plot_ids": [held_unit.plots[0].id]})


class TestAttachPlots:

    def _empty_deal(self, scope, unit):
        return deal_service.create_deal(scope, {"property_type": "plot", "inventory_unit_id": unit.id})

    def test_attach_marks_unit_sold_when_everything_is_consumed(
        self, admin, admin_scope, other_salesperson, sp_scope, held_unit
    ):
        assign_plots(
            inventory_unit_id=held_unit.id,
            plot_ids=[held_unit.plots[2].id],
            salesperson_id=other_salesperson.id,
            actor_user_id=admin.id,
        )
        deal = self._empty_deal(admin_scope, held_unit)

        deal_service.attach_plots_to_deal(deal.id, [p.id for p in held_unit.plots], admin_scope)

        assert db.session.get(InventoryUnit, held_unit.id).status == "sold"

    def test_plot_cannot_back_two_deals(self, sp_scope, held_unit):
        plot_id = held_unit.plots[0].id
        first = self._empty_deal(sp_scope, held_unit)
        second = self._empty_deal(sp_scope, held_unit)

        deal_service.attach_plots_to_deal(first.id, [plot_id], sp_scope)
        with pytest.raises(ConflictError):
            deal_service.attach_plots_to_deal(second.id, [plot_id], sp_scope)

        assert db.session.query(DealPlot).filter_by(plot_id=plot_id).count() == 1

    def test_available_plot_cannot_be_attached(self, admin_scope, held_unit):
        deal = self._empty_deal(admin_scope, held_unit)
        with pytest.raises(ConflictError):
            deal_service.attach_plots_to_deal(deal.id, [held_unit.plots[2].id], admin_scope)

    def test_salesperson_cannot_attach_foreign_plot(self, admin, other_salesperson, sp_scope, held_unit):
        foreign = held_unit.plots[2].id
        assign_plots(
            inventory_unit_id=held_unit.id,
            plot_ids=[foreign],
            salesperson_id=other_salesperson.id,
            actor_user_id=admin.id,
        )
        deal = self._empty_deal(sp_scope, held_unit)

        with pytest.raises(AuthorizationError):
            deal_service.attach_plots_to_deal(deal.id, [foreign], sp_scope)
        assert db.session.get(Plot, foreign).status == "assigned"

    def test_empty_selection(self, sp_scope, held_unit):
        deal = self._empty_deal(sp_scope, held_unit)
        with pytest.raises(ValidationError, match="No plots selected"):
            deal_service.attach_plots_to_deal(deal.id, [], sp_scope)

    def test_deal_of_another_salesperson_is_invisible(self, sp_scope, other_scope, held_unit):
        deal = self._empty_deal(sp_scope, held_unit)
        with pytest.raises(NotFoundError):
            deal_service.attach_plots_to_deal(deal.id, [held_unit.plots[0].id], other_scope)


class TestDealRoutes:

    def test_create_and_attach_over_http(self, client, sp_headers, held_unit):
        resp = client.post(
            "/api/deals",
            json={"property_type": "plot", "inventory_id": held_unit.id},
            headers=sp_headers,
        )
        assert resp.status_code == 201
        deal_id = resp.json["deal"]["id"]

        resp = client.post(
            f"/api/deals/{deal_id}/plots",
            json={"plot_ids": [held_unit.plots[1].id]},
            headers=sp_headers,
        )
        assert resp.status_code == 200
        assert resp.json["plots"][0]["status"] == "used_in_deal"

        resp = client.get(f"/api/deals/{deal_id}/plots", headers=sp_headers)
        assert [p["id"] for p in resp.json["plots"]] == [held_unit.plots[1].id]

    def test_other_salesperson_gets_404(self, client, other_headers, sp_scope, held_unit):
        deal = deal_service.create_deal(sp_scope, {"property_type": "plot", "inventory_unit_id": held_unit.id})
        resp = client.get(f"/api/deals/{deal.id}", headers=other_headers)
        assert resp.status_code == 404
