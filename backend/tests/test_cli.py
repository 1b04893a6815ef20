"""
CLI command tests.
"""

from buygroup.models import Profile, Warehouse
from buygroup.extensions import db


def test_create_promote_and_issue_token(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--email", "ops@example.com", "--first-name", "Ops"])
    assert result.exit_code == 0, result.output
    assert "U-00001" in result.output

    result = runner.invoke(args=["users", "promote", "ops@example.com", "worker"])
    assert result.exit_code == 0, result.output
    assert db.session.query(Profile).one().role == "WORKER"

    result = runner.invoke(args=["users", "issue-token", "U-00001"])
    assert result.exit_code == 0, result.output
    assert len(result.output.strip().splitlines()[-1]) > 20


def test_duplicate_user_fails_cleanly(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["users", "create", "--email", "ops@example.com"])
    result = runner.invoke(args=["users", "create", "--email", "ops@example.com"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_seed_warehouses_is_idempotent(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["warehouses", "seed"])
    result = runner.invoke(args=["warehouses", "seed"])
    assert result.exit_code == 0, result.output
    assert db.session.query(Warehouse).count() == 5


def test_expire_overdue(app, make_deal):
    make_deal(deadline="2020-01-01")
    result = app.test_cli_runner().invoke(args=["deals", "expire-overdue"])
    assert result.exit_code == 0, result.output
    assert "1 deal(s) expired" in result.output
