# Overview: Pytest coverage for login, logout, sessions and user administration.

from backoffice.models import SecurityEvent, SessionToken
from backoffice.services import session_service

PASSWORD = "Password123!"


class TestLogin:

    def test_login_with_username(self, client, employee_a):
        response = client.post("/api/auth/login", json={"username": "employee_a", "password": PASSWORD})

        assert response.status_code == 200
        data = response.get_json()
        assert data["roles"] == ["employee"]
        assert "USE_CALCULATOR" in data["permissions"]
        assert "MANAGE_ROLES" not in data["permissions"]
        assert data["org_id"] == employee_a.org_id
        assert len(data["token"]) == 64

    def test_login_with_email_and_org_code(self, client, employee_a):
        response = client.post(
            "/api/auth/login",
            json={"email": "employee_a@sakura.test", "password": PASSWORD, "org_code": "SAKURA"},
        )

        assert response.status_code == 200

    def test_wrong_org_code(self, client, employee_a):
        response = client.post(
            "/api/auth/login",
            json={"username": "employee_a", "password": PASSWORD, "org_code": "HIGHLAND"},
        )

        assert response.status_code == 401

    def test_bad_password_is_logged(self, client, db_session, employee_a):
        response = client.post("/api/auth/login", json={"username": "employee_a", "password": "Wrong123!"})

        assert response.status_code == 401
        assert db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={"username": "x"}).status_code == 400

    def test_token_works_and_logout_revokes(self, client, employee_a):
        token = client.post(
            "/api/auth/login", json={"username": "employee_a", "password": PASSWORD}
        ).get_json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers).get_json()
        assert me["user"]["username"] == "employee_a"
        assert me["organization"]["code"] == "SAKURA"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestSessions:

    def test_idle_session_expires(self, db_session, employee_a):
        session, token = session_service.create_session(employee_a.id)
        session.last_used_at = session.last_used_at - session_service.SESSION_IDLE_TIMEOUT * 2
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_only_hash_is_stored(self, db_session, employee_a):
        session, token = session_service.create_session(employee_a.id)

        assert session.token_hash != token
        assert session.token_hash == session_service.hash_token(token)


class TestUserAdmin:

    def test_create_user(self, client, admin_headers):
        response = client.post(
            "/api/admin/users",
            json={"username": "kenji", "email": "kenji@sakura.test", "password": "Kenji2026!", "role": "investor"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.get_json()["user"]["roles"] == ["investor"]

    def test_create_user_defaults_to_employee(self, client, admin_headers):
        response = client.post(
            "/api/admin/users",
            json={"username": "yuki", "email": "yuki@sakura.test", "password": "Yuki2026!x"},
            headers=admin_headers,
        )

        assert response.get_json()["user"]["roles"] == ["employee"]

    def test_weak_password(self, client, admin_headers):
        response = client.post(
            "/api/admin/users",
            json={"username": "weak", "email": "weak@sakura.test", "password": "password"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_unknown_role(self, client, admin_headers):
        response = client.post(
            "/api/admin/users",
            json={"username": "r", "email": "r@sakura.test", "password": "Role2026!x", "role": "owner"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_duplicate_username(self, client, admin_headers, employee_a):
        response = client.post(
            "/api/admin/users",
            json={"username": "employee_a", "email": "other@sakura.test", "password": PASSWORD},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_change_role_revokes_sessions(self, client, admin_headers, employee_a, employee_headers):
        response = client.put(
            f"/api/admin/users/{employee_a.id}/role",
            json={"role": "investor"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.get_json()["user"]["roles"] == ["investor"]
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401

    def test_cannot_change_own_role(self, client, admin_a, admin_headers):
        response = client.put(
            f"/api/admin/users/{admin_a.id}/role",
            json={"role": "employee"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_deactivate_and_reactivate(self, client, admin_headers, employee_a, employee_headers):
        response = client.post(f"/api/admin/users/{employee_a.id}/deactivate", headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()["sessions_revoked"] == 1
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401
        assert client.post(
            "/api/auth/login", json={"username": "employee_a", "password": PASSWORD}
        ).status_code == 401

        assert client.post(f"/api/admin/users/{employee_a.id}/deactivate", headers=admin_headers).status_code == 400

        response = client.post(f"/api/admin/users/{employee_a.id}/reactivate", headers=admin_headers)
        assert response.status_code == 200
        assert client.post(
            "/api/auth/login", json={"username": "employee_a", "password": PASSWORD}
        ).status_code == 200

    def test_cannot_deactivate_self(self, client, admin_a, admin_headers):
        response = client.post(f"/api/admin/users/{admin_a.id}/deactivate", headers=admin_headers)

        assert response.status_code == 400

    def test_list_roles(self, client, admin_headers):
        roles = {r["name"]: r["permissions"] for r in client.get("/api/admin/roles", headers=admin_headers).get_json()["roles"]}

        assert set(roles) == {"admin", "employee", "investor"}
        assert roles["investor"] == ["USE_CALCULATOR", "VIEW_PRODUCTS", "VIEW_SALES"]
