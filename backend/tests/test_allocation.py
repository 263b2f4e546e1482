"""
Plot allocation tests.

Verifies:
- Assigning some plots leaves the rest available and the unit available
- Assigning every plot flips the unit to assigned
- A plot cannot be assigned twice; the first assignee is kept
- A failed assignment writes nothing
"""

import pytest

from realty_crm.errors import ConflictError, NotFoundError, ValidationError
from realty_crm.extensions import db
from realty_crm.models import InventoryUnit, LedgerEvent, Plot, PlotAssignment
from realty_crm.services.allocation_service import assign_plots


def _plots_by_number(unit_id):
    plots = db.session.query(Plot).filter_by(inventory_unit_id=unit_id).all()
    return {p.plot_number: p for p in plots}


class TestAssignPlots:

    def test_assign_single_plot_keeps_unit_available(self, admin, salesperson, make_unit):
        unit = make_unit(quantity=3, price_cents=1_000_000, plot_numbers="1, 2, 3")
        plots = _plots_by_number(unit.id)

        result = assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[plots["2"].id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
            amount_paid_cents=0,
        )

        plots = _plots_by_number(unit.id)
        assert plots["2"].status == "assigned"
        assert plots["2"].assigned_to == salesperson.id
        assert plots["1"].status == "available"
        assert plots["3"].status == "available"
        assert db.session.get(InventoryUnit, unit.id).status == "available"

        assert result.assignment.total_plots_assigned == 1
        assert result.total_amount_cents == 1_000_000
        assert result.remaining_balance_cents == 1_000_000
        assert result.to_dict()["plots_assigned"] == ["2"]

    def test_assign_all_plots_marks_unit_assigned(self, admin, salesperson, make_unit):
        unit = make_unit(quantity=2, price_cents=50_000)
        plot_ids = [p.id for p in unit.plots]

        result = assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=plot_ids,
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
            amount_paid_cents=20_000,
            notes="Booked at the site office",
        )

        assert db.session.get(InventoryUnit, unit.id).status == "assigned"
        assert result.total_amount_cents == 100_000
        assert result.amount_paid_cents == 20_000
        assert result.remaining_balance_cents == 80_000

        events = db.session.query(LedgerEvent).filter_by(event_type="plots.assigned").all()
        assert len(events) == 1
        assert events[0].inventory_unit_id == unit.id

    def test_double_assignment_conflicts(self, admin, salesperson, other_salesperson, make_unit):
        unit = make_unit(quantity=2)
        plot_id = unit.plots[0].id

        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[plot_id],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )

        with pytest.raises(ConflictError) as exc:
            assign_plots(
                inventory_unit_id=unit.id,
                plot_ids=[plot_id],
                salesperson_id=other_salesperson.id,
                actor_user_id=admin.id,
            )

        assert exc.value.details["unavailable_plots"] == [unit.plots[0].plot_number]
        assert db.session.get(Plot, plot_id).assigned_to == salesperson.id
        assert db.session.query(PlotAssignment).count() == 1

    def test_partial_conflict_assigns_nothing(self, admin, salesperson, other_salesperson, make_unit):
        unit = make_unit(quantity=3)
        first, second, third = [p.id for p in unit.plots]

        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[second],
            salesperson_id=salesperson.id,
            actor_user_id=admin.id,
        )

        with pytest.raises(ConflictError):
            assign_plots(
                inventory_unit_id=unit.id,
                plot_ids=[first, second, third],
                salesperson_id=other_salesperson.id,
                actor_user_id=admin.id,
            )

        assert db.session.get(Plot, first).status == "available"
        assert db.session.get(Plot, third).status == "available"

    def test_empty_selection_rejected(self, admin, salesperson, make_unit):
        unit = make_unit()
        with pytest.raises(ValidationError, match="No plots selected"):
            assign_plots(
                inventory_unit_id=unit.id,
                plot_ids=[],
                salesperson_id=salesperson.id,
                actor_user_id=admin.id,
            )

    def test_plot_of_another_unit_rejected(self, admin, salesperson, make_unit):
        unit = make_unit(address="Block A")
        other = make_unit(address="Block B")

        with pytest.raises(ValidationError) as exc:
            assign_plots(
                inventory_unit_id=unit.id,
                plot_ids=[other.plots[0].id],
                salesperson_id=salesperson.id,
                actor_user_id=admin.id,
            )
        assert exc.value.details["invalid_plot_ids"] == [other.plots[0].id]

    def test_admin_is_not_a_valid_assignee(self, admin, make_unit):
        unit = make_unit()
        with pytest.raises(NotFoundError):
            assign_plots(
                inventory_unit_id=unit.id,
                plot_ids=[unit.plots[0].id],
                salesperson_id=admin.id,
                actor_user_id=admin.id,
            )

    def test_missing_unit(self, admin, salesperson):
        with pytest.raises(NotFoundError):
            assign_plots(
                inventory_unit_id=999,
                plot_ids=[1],
                salesperson_id=salesperson.id,
                actor_user_id=admin.id,
            )


class TestAssignRoute:

    def test_admin_assigns_over_http(self, client, admin_headers, salesperson, make_unit):
        unit = make_unit(quantity=2)
        resp = client.post(
            f"/api/inventory/{unit.id}/assign",
            json={"salesperson_id": salesperson.id, "plot_ids": [unit.plots[0].id]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["plot_ids"] == [unit.plots[0].id]

    def test_second_assignment_returns_400(self, client, admin_headers, salesperson, make_unit):
        unit = make_unit(quantity=2)
        body = {"salesperson_id": salesperson.id, "plot_ids": [unit.plots[0].id]}
        assert client.post(f"/api/inventory/{unit.id}/assign", json=body, headers=admin_headers).status_code == 201

        resp = client.post(f"/api/inventory/{unit.id}/assign", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error_type"] == "conflict"

    def test_salesperson_cannot_assign(self, client, sp_headers, salesperson, make_unit):
        unit = make_unit()
        resp = client.post(
            f"/api/inventory/{unit.id}/assign",
            json={"salesperson_id": salesperson.id, "plot_ids": [unit.plots[0].id]},
            headers=sp_headers,
        )
        assert resp.status_code == 403
