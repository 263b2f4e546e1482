"""
Inventory unit and plot tests.

Verifies:
- Plot number parsing and placeholder generation
- Creation validates plot numbers against quantity
- Read models differ by role
- Legacy units without plots are migrated once
"""

import pytest

from realty_crm.errors import ConflictError, NotFoundError, ValidationError
from realty_crm.extensions import db
from realty_crm.models import InventoryPayment, InventoryUnit, Investor, Plot, PlotAssignment
from realty_crm.services import deal_service, funding_service, inventory_service
from realty_crm.services.allocation_service import assign_plots


class TestPlotNumbers:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("A-1, A-2, A-3", ["A-1", "A-2", "A-3"]),
            ("A-1;A-2\nA-3", ["A-1", "A-2", "A-3"]),
            (" 7 ,, 8 ,", ["7", "8"]),
            ("", []),
            (None, []),
        ],
    )
    def test_parse(self, text, expected):
        assert inventory_service.parse_plot_numbers(text) == expected

    def test_placeholders(self):
        assert inventory_service.placeholder_plot_numbers("house", 2) == ["house-1", "house-2"]
        assert inventory_service.placeholder_plot_numbers("plot", 1, unit_id=9) == ["plot-9-1"]


class TestCreateUnit:

    def test_creates_one_plot_per_number(self, make_unit):
        unit = make_unit(quantity=3, plot_numbers="C-1, C-2, C-3")
        assert [p.plot_number for p in unit.plots] == ["C-1", "C-2", "C-3"]
        assert all(p.status == "available" for p in unit.plots)
        assert unit.status == "available"

    def test_accepts_a_list(self, make_unit):
        unit = make_unit(quantity=2, plot_numbers=["X", "Y"])
        assert [p.plot_number for p in unit.plots] == ["X", "Y"]

    def test_placeholders_without_numbers(self, make_unit):
        unit = make_unit(quantity=2, category="shop_office")
        assert [p.plot_number for p in unit.plots] == ["shop_office-1", "shop_office-2"]

    def test_count_mismatch_rejected(self, make_unit):
        with pytest.raises(ValidationError, match="must match quantity"):
            make_unit(quantity=3, plot_numbers="A-1, A-2")
        assert db.session.query(InventoryUnit).count() == 0

    def test_duplicate_numbers_rejected(self, make_unit):
        with pytest.raises(ValidationError):
            make_unit(quantity=2, plot_numbers="A-1, A-1")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"category": "castle"},
            {"price_cents": -1},
            {"price_cents": 12.5},
            {"quantity": 0},
            {"address": "  "},
        ],
    )
    def test_invalid_fields(self, admin, overrides):
        fields = {"category": "plot", "address": "Block A", "price_cents": 1000, "quantity": 1}
        fields.update(overrides)
        with pytest.raises(ValidationError):
            inventory_service.create_inventory_unit(actor_user_id=admin.id, **fields)

    def test_status_cannot_be_set_directly(self, admin, make_unit):
        unit = make_unit()
        with pytest.raises(ValidationError):
            inventory_service.update_inventory_unit(unit.id, {"status": "sold"}, actor_user_id=admin.id)

    def test_update_price(self, admin, make_unit):
        unit = make_unit(price_cents=1_000)
        updated = inventory_service.update_inventory_unit(unit.id, {"price_cents": 2_500}, actor_user_id=admin.id)
        assert updated.price_cents == 2_500


class TestDeleteUnit:

    def test_delete_returns_payments_to_investors(self, admin, salesperson, sp_scope, make_unit, make_investor):
        unit = make_unit(quantity=1, price_cents=10_000)
        plot_id = unit.plots[0].id
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[plot_id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )
        investor = make_investor(salesperson, 50_000)
        funding_service.record_payment(
            inventory_unit_id=unit.id,
            plot_id=plot_id,
            investor_payments=[{"investor_id": investor.id, "amount_cents": 10_000}],
            payment_date="2026-03-01",
            scope=sp_scope,
        )

        inventory_service.delete_inventory_unit(unit.id, actor_user_id=admin.id)

        assert db.session.query(Plot).count() == 0
        assert db.session.query(InventoryPayment).count() == 0
        assert db.session.get(Investor, investor.id).remaining_balance_cents == 50_000

    def test_delete_refused_while_deals_reference_unit(self, admin, admin_scope, make_unit):
        unit = make_unit()
        deal_service.create_deal(admin_scope, {"property_type": "plot", "inventory_unit_id": unit.id})
        with pytest.raises(ConflictError):
            inventory_service.delete_inventory_unit(unit.id, actor_user_id=admin.id)


class TestReadModels:

    def test_admin_view_groups_by_assignee(self, admin, admin_scope, salesperson, make_unit):
        unit = make_unit(quantity=3)
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[unit.plots[0].id, unit.plots[1].id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )

        view = inventory_service.get_inventory_unit(unit.id, admin_scope)

        assert view["available_quantity"] == 1
        assert len(view["unassigned_plots"]) == 1
        [group] = view["plot_assignments"]
        assert group["salesperson_id"] == salesperson.id
        assert group["plot_count"] == 2

    def test_salesperson_lists_only_units_with_their_plots(
        self, admin, salesperson, sp_scope, other_scope, make_unit
    ):
        held = make_unit(address="Held")
        make_unit(address="Not held")
        assign_plots(
            inventory_unit_id=held.id,
            plot_ids=[held.plots[0].id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )

        mine = inventory_service.list_inventory(sp_scope)
        assert [u["id"] for u in mine] == [held.id]
        assert mine[0]["assigned_plots"][0]["outstanding_cents"] == held.price_cents
        assert inventory_service.list_inventory(other_scope) == []

    def test_fully_assigned_unit_hidden_from_others(self, admin, salesperson, other_scope, make_unit):
        unit = make_unit(quantity=1)
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[unit.plots[0].id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )
        assert inventory_service.list_available_inventory() == []
        with pytest.raises(NotFoundError):
            inventory_service.get_inventory_unit(unit.id, other_scope)

    def test_available_plots_filter(self, admin, salesperson, sp_scope, make_unit):
        unit = make_unit(quantity=2)
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[unit.plots[0].id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )
        plots = inventory_service.list_plots(unit.id, sp_scope, available_only=True)
        assert [p.id for p in plots] == [unit.plots[1].id]


class TestLegacyMigration:

    def _legacy_unit(self, **fields):
        unit = InventoryUnit(category="plot", address="Old block", price_cents=5_000, **fields)
        db.session.add(unit)
        db.session.commit()
        return unit

    def test_numbers_from_stored_input(self, app):
        unit = self._legacy_unit(quantity=2, status="available", plot_numbers_input="L-1, L-2")

        report = inventory_service.migrate_legacy_units()

        assert report == [{"inventory_unit_id": unit.id, "plots_created": 2, "assigned_to": None}]
        assert [p.plot_number for p in db.session.get(InventoryUnit, unit.id).plots] == ["L-1", "L-2"]

    def test_wholesale_assignment_becomes_per_plot(self, app, salesperson):
        unit = self._legacy_unit(quantity=3, status="assigned", assigned_to=salesperson.id)

        inventory_service.migrate_legacy_units()

        unit = db.session.get(InventoryUnit, unit.id)
        assert [p.plot_number for p in unit.plots] == [f"plot-{unit.id}-{i}" for i in (1, 2, 3)]
        assert all(p.status == "assigned" and p.assigned_to == salesperson.id for p in unit.plots)
        assert unit.status == "assigned"
        assignment = db.session.query(PlotAssignment).filter_by(inventory_unit_id=unit.id).one()
        assert assignment.total_plots_assigned == 3
        assert assignment.total_amount_cents == 15_000

    def test_sold_unit_keeps_sold_plots(self, app):
        unit = self._legacy_unit(quantity=1, status="sold")
        inventory_service.migrate_legacy_units()
        unit = db.session.get(InventoryUnit, unit.id)
        assert unit.plots[0].status == "sold"
        assert unit.status == "sold"

    def test_is_idempotent(self, app):
        self._legacy_unit(quantity=1, status="available")
        assert len(inventory_service.migrate_legacy_units()) == 1
        assert inventory_service.migrate_legacy_units() == []
        assert db.session.query(Plot).count() == 1


class TestInventoryRoutes:

    def test_create_over_http(self, client, admin_headers):
        resp = client.post(
            "/api/inventory",
            json={"category": "plot", "address": "Block Z", "price_cents": 90_000, "quantity": 2},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert len(resp.json["inventory"]["plots"]) == 2

    def test_salesperson_cannot_create(self, client, sp_headers):
        resp = client.post(
            "/api/inventory",
            json={"category": "plot", "address": "Block Z", "price_cents": 90_000, "quantity": 2},
            headers=sp_headers,
        )
        assert resp.status_code == 403

    def test_available_listing(self, client, sp_headers, make_unit):
        unit = make_unit(quantity=2)
        resp = client.get("/api/inventory/available", headers=sp_headers)
        assert resp.status_code == 200
        assert resp.json["inventory"][0]["id"] == unit.id
        assert len(resp.json["inventory"][0]["available_plots"]) == 2
