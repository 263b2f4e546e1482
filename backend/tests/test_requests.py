"""
Inventory request workflow tests.

Verifies:
- Approval assigns the requested plots to the requester
- Competing pending requests for the same plots are rejected automatically
- Requests for other plots of the same unit stay pending
- Only salespersons request and only admins decide
"""

import pytest

from realty_crm.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from realty_crm.extensions import db
from realty_crm.models import InventoryRequest, InventoryUnit, Plot, PlotAssignment
from realty_crm.services import inventory_service, request_service
from realty_crm.services.allocation_service import assign_plots


class TestCreateRequest:

    def test_request_specific_plots(self, sp_scope, salesperson, make_unit):
        unit = make_unit(quantity=3)
        wanted = [unit.plots[0].id, unit.plots[2].id]

        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope, plot_ids=wanted)

        assert req.status == "pending"
        assert req.salesperson_id == salesperson.id
        assert sorted(req.plot_ids) == sorted(wanted)
        assert db.session.get(Plot, wanted[0]).status == "available"

    def test_request_without_plots_covers_available_ones(self, admin, other_salesperson, sp_scope, make_unit):
        unit = make_unit(quantity=3)
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[unit.plots[0].id],
            salesperson_id=other_salesperson.id,
            actor_user_id=admin.id,
        )

        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)

        assert sorted(req.plot_ids) == [unit.plots[1].id, unit.plots[2].id]

    def test_admin_cannot_request(self, admin_scope, make_unit):
        unit = make_unit()
        with pytest.raises(AuthorizationError):
            request_service.create_request(inventory_unit_id=unit.id, scope=admin_scope)

    def test_unavailable_plot_rejected(self, admin, other_salesperson, sp_scope, make_unit):
        unit = make_unit(quantity=2)
        taken = unit.plots[0].id
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[taken],
            salesperson_id=other_salesperson.id,
            actor_user_id=admin.id,
        )
        with pytest.raises(ConflictError):
            request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[taken])

    def test_fully_assigned_unit_rejected(self, admin, other_salesperson, sp_scope, make_unit):
        unit = make_unit(quantity=1)
        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[unit.plots[0].id],
            salesperson_id=other_salesperson.id,
            actor_user_id=admin.id,
        )
        with pytest.raises(ConflictError):
            request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)

    def test_duplicate_pending_request_rejected(self, sp_scope, make_unit):
        unit = make_unit(quantity=2)
        plot_id = unit.plots[0].id
        request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[plot_id])

        with pytest.raises(ConflictError):
            request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[plot_id])

    def test_plot_of_another_unit_rejected(self, sp_scope, make_unit):
        unit = make_unit(address="Block A")
        other = make_unit(address="Block B")
        with pytest.raises(ValidationError):
            request_service.create_request(
                inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[other.plots[0].id]
            )


class TestApproveRequest:

    def test_approval_assigns_and_rejects_competitors(
        self, admin_scope, salesperson, sp_scope, other_scope, make_unit
    ):
        unit = make_unit(quantity=3)
        shared = unit.plots[0].id
        untouched = unit.plots[2].id

        mine = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[shared])
        competing = request_service.create_request(
            inventory_unit_id=unit.id, scope=other_scope, plot_ids=[shared, unit.plots[1].id]
        )
        unrelated = request_service.create_request(
            inventory_unit_id=unit.id, scope=other_scope, plot_ids=[untouched]
        )

        approved = request_service.approve_request(mine.id, admin_scope, admin_notes="Go ahead")

        assert approved.status == "approved"
        assert approved.decided_by_user_id == admin_scope.user_id
        plot = db.session.get(Plot, shared)
        assert plot.status == "assigned"
        assert plot.assigned_to == salesperson.id

        competing = db.session.get(InventoryRequest, competing.id)
        assert competing.status == "rejected"
        assert competing.admin_notes == request_service.AUTO_REJECT_NOTE.format(request_id=mine.id)

        assert db.session.get(InventoryRequest, unrelated.id).status == "pending"
        assert db.session.query(PlotAssignment).filter_by(salesperson_id=salesperson.id).count() == 1

    def test_approval_fails_when_plot_was_taken(
        self, admin, admin_scope, other_salesperson, sp_scope, make_unit
    ):
        unit = make_unit(quantity=2)
        plot_id = unit.plots[0].id
        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[plot_id])

        assign_plots(
            inventory_unit_id=unit.id,
            plot_ids=[plot_id],
            salesperson_id=other_salesperson.id,
            actor_user_id=admin.id,
        )

        with pytest.raises(ConflictError):
            request_service.approve_request(req.id, admin_scope)

        assert db.session.get(InventoryRequest, req.id).status == "pending"
        assert db.session.get(Plot, plot_id).assigned_to == other_salesperson.id

    def test_decided_request_cannot_be_approved(self, admin_scope, sp_scope, make_unit):
        unit = make_unit(quantity=2)
        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)
        request_service.reject_request(req.id, admin_scope, admin_notes="Not now")

        with pytest.raises(ConflictError):
            request_service.approve_request(req.id, admin_scope)

    def test_salesperson_cannot_decide(self, sp_scope, make_unit):
        unit = make_unit()
        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)
        with pytest.raises(AuthorizationError):
            request_service.approve_request(req.id, sp_scope)
        with pytest.raises(AuthorizationError):
            request_service.reject_request(req.id, sp_scope)

    def test_missing_request(self, admin_scope):
        with pytest.raises(NotFoundError):
            request_service.approve_request(404, admin_scope)

    def test_whole_unit_request_from_before_plots(self, admin, admin_scope, salesperson, other_salesperson):
        unit = InventoryUnit(category="plot", address="Old block", price_cents=5_000, quantity=2, status="available")
        db.session.add(unit)
        db.session.flush()
        mine = InventoryRequest(inventory_unit_id=unit.id, salesperson_id=salesperson.id, status="pending")
        theirs = InventoryRequest(inventory_unit_id=unit.id, salesperson_id=other_salesperson.id, status="pending")
        db.session.add_all([mine, theirs])
        db.session.commit()

        inventory_service.migrate_legacy_units(actor_user_id=admin.id)
        approved = request_service.approve_request(mine.id, admin_scope)

        assert approved.status == "approved"
        plots = db.session.query(Plot).filter_by(inventory_unit_id=unit.id).all()
        assert len(plots) == 2
        assert all(p.status == "assigned" and p.assigned_to == salesperson.id for p in plots)
        assert approved.plot_ids == sorted(p.id for p in plots)
        assert db.session.get(InventoryUnit, unit.id).status == "assigned"
        assert db.session.get(InventoryRequest, theirs.id).status == "rejected"


class TestRequestVisibility:

    def test_salesperson_sees_only_own(self, admin_scope, sp_scope, other_scope, make_unit):
        unit = make_unit(quantity=2)
        mine = request_service.create_request(
            inventory_unit_id=unit.id, scope=sp_scope, plot_ids=[unit.plots[0].id]
        )
        theirs = request_service.create_request(
            inventory_unit_id=unit.id, scope=other_scope, plot_ids=[unit.plots[1].id]
        )

        assert [r.id for r in request_service.list_requests(sp_scope)] == [mine.id]
        assert {r.id for r in request_service.list_requests(admin_scope)} == {mine.id, theirs.id}
        with pytest.raises(NotFoundError):
            request_service.get_request(theirs.id, sp_scope)

    def test_withdraw_own_pending_request(self, sp_scope, other_scope, make_unit):
        unit = make_unit()
        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)

        with pytest.raises(NotFoundError):
            request_service.delete_request(req.id, other_scope)

        request_service.delete_request(req.id, sp_scope)
        assert db.session.get(InventoryRequest, req.id) is None

    def test_cannot_withdraw_decided_request(self, admin_scope, sp_scope, make_unit):
        unit = make_unit()
        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)
        request_service.reject_request(req.id, admin_scope)

        with pytest.raises(ConflictError):
            request_service.delete_request(req.id, sp_scope)


class TestRequestRoutes:

    def test_request_and_approve_over_http(self, client, sp_headers, admin_headers, make_unit):
        unit = make_unit(quantity=2)
        resp = client.post(
            "/api/inventory-requests",
            json={"inventory_id": unit.id, "plot_ids": [unit.plots[1].id]},
            headers=sp_headers,
        )
        assert resp.status_code == 201
        request_id = resp.json["request"]["id"]
        assert resp.json["request"]["requested_plot_ids"] == [unit.plots[1].id]

        resp = client.post(f"/api/inventory-requests/{request_id}/approve", json={}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["request"]["status"] == "approved"

    def test_salesperson_cannot_approve_over_http(self, client, sp_headers, sp_scope, make_unit):
        unit = make_unit()
        req = request_service.create_request(inventory_unit_id=unit.id, scope=sp_scope)
        resp = client.post(f"/api/inventory-requests/{req.id}/approve", json={}, headers=sp_headers)
        assert resp.status_code == 403
