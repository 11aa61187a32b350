# Overview: Pytest coverage for the flask CLI commands and the health endpoint.

from backoffice.models import CashFlowRecord, Organization, User
from backoffice.services import sales_service


def test_health(client, db_session, org_a):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ok"
    assert data["checks"]["database"]["details"]["organizations"] == 1


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--org", "Test Imports", "--org-code", "TEST"])
    assert result.exit_code == 0
    assert "Back office initialized" in result.output

    result = runner.invoke(args=["system", "init", "--org-code", "TEST"])
    assert "already exists" in result.output

    org = db_session.query(Organization).filter_by(code="TEST").one()
    usernames = sorted(u.username for u in db_session.query(User).filter_by(org_id=org.id))
    assert usernames == ["admin", "employee", "investor"]


def test_orgs_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["orgs", "create", "--name", "Kyoto Spirits", "--code", "KYOTO"])
    assert "PASS" in result.output

    result = runner.invoke(args=["orgs", "create", "--name", "Again", "--code", "KYOTO"])
    assert "already exists" in result.output

    result = runner.invoke(args=["orgs", "list"])
    assert "Kyoto Spirits" in result.output


def test_perms_list_for_role(app, setup_roles, org_a):
    result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "investor", "--org-id", str(org_a.id)])

    assert "VIEW_SALES" in result.output
    assert "Total: 3 permissions" in result.output


def test_cashflow_resync(app, db_session, employee_a, customer_a, product_a, variant_a):
    sale = sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "items": [{"product_id": product_a.id, "variant_id": variant_a.id, "quantity": 1}],
    })
    sales_service.confirm_sale(sale.org_id, sale.id)
    db_session.query(CashFlowRecord).delete()
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["cashflow", "resync", "--org-id", str(employee_a.org_id)])

    assert "Re-synced 1 sales, 2 cashflow rows written" in result.output
    assert db_session.query(CashFlowRecord).count() == 2
