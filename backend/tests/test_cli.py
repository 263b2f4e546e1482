"""
CLI command tests.
"""

from realty_crm.extensions import db
from realty_crm.models import InventoryUnit, Plot, User

from conftest import PASSWORD


def test_create_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "system", "create-admin", "--name", "Owner", "--email", "Boss@Example.com", "--password", PASSWORD,
    ])
    assert "PASS Created admin" in result.output
    assert db.session.query(User).filter_by(email="boss@example.com").one().role == "admin"


def test_create_user_with_weak_password(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--name", "Jane", "--email", "jane@example.com", "--password", "short",
    ])
    assert "FAIL" in result.output
    assert db.session.query(User).count() == 0


def test_migrate_legacy(app):
    db.session.add(InventoryUnit(category="house", address="Legacy", price_cents=100, quantity=2, status="available"))
    db.session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=["inventory", "migrate-legacy"])
    assert "DONE Migrated 1 inventory unit(s)" in result.output
    assert db.session.query(Plot).count() == 2

    result = runner.invoke(args=["inventory", "migrate-legacy"])
    assert "Nothing to migrate" in result.output


def test_rebuild_balances_clean(app, salesperson, make_investor):
    make_investor(salesperson, 1_000)
    result = app.test_cli_runner().invoke(args=["ledger", "rebuild-balances"])
    assert "PASS All investor balances match the ledger" in result.output
