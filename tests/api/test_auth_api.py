"""Parent registration and login, child PIN login and token checks."""

from httpx import AsyncClient

from heroes.auth.jwt import create_access_token
from tests.factories import PARENT_PASSWORD, child_headers, parent_headers


def _register_body(email: str = "sarah@example.com", **extra) -> dict:
    return {
        "email": email,
        "password": PARENT_PASSWORD,
        "first_name": "Sarah",
        "last_name": "Hero",
        **extra,
    }


class TestRegister:
    async def test_register_returns_token(self, client: AsyncClient):
        response = await client.post("/api/auth/register", json=_register_body())
        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == "parent"
        assert data["user"]["email"] == "sarah@example.com"
        assert len(data["user"]["family_code"]) == 6
        assert "password_hash" not in data["user"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["role"] == "parent"
        assert me.json()["family_code"] == data["user"]["family_code"]

    async def test_duplicate_email(self, client: AsyncClient):
        await client.post("/api/auth/register", json=_register_body())
        response = await client.post("/api/auth/register", json=_register_body("SARAH@example.com"))
        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    async def test_weak_password(self, client: AsyncClient):
        body = _register_body()
        body["password"] = "alllowercase"
        response = await client.post("/api/auth/register", json=body)
        assert response.status_code == 400
        assert "uppercase" in response.json()["detail"]

    async def test_co_parent_joins_family(self, client: AsyncClient):
        first = (await client.post("/api/auth/register", json=_register_body())).json()
        code = first["user"]["family_code"]
        response = await client.post(
            "/api/auth/register", json=_register_body("mike@example.com", join_family_code=code)
        )
        assert response.status_code == 201
        assert response.json()["user"]["family_code"] == code

    async def test_unknown_family_code(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register", json=_register_body(join_family_code="QQQQQQ")
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Invalid family code"

    async def test_invalid_email(self, client: AsyncClient):
        response = await client.post("/api/auth/register", json=_register_body("not-an-email"))
        assert response.status_code == 422


class TestLogin:
    async def test_parent_login(self, client: AsyncClient, family):
        response = await client.post(
            "/api/auth/login", json={"email": "sarah@example.com", "password": PARENT_PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == family.parent.id

    async def test_wrong_password(self, client: AsyncClient, family):
        response = await client.post(
            "/api/auth/login", json={"email": "sarah@example.com", "password": "Wr0ngPassword"}
        )
        assert response.status_code == 401

    async def test_child_login(self, client: AsyncClient, family):
        response = await client.post(
            "/api/auth/child-login",
            json={"username": family.child.username, "pin": family.pin, "family_code": family.parent.family_code},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "child"
        assert data["child"]["id"] == family.child.id
        assert "pin_hash" not in data["child"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.json()["child"]["name"] == "Emma"

    async def test_child_login_wrong_pin(self, client: AsyncClient, family):
        wrong = "1234" if family.pin != "1234" else "4321"
        response = await client.post(
            "/api/auth/child-login", json={"username": family.child.username, "pin": wrong}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or PIN"

    async def test_emergency_mode_blocks_child(self, client: AsyncClient, family):
        activated = await client.post(
            f"/api/children/{family.child.id}/emergency/activate", headers=parent_headers(family.parent)
        )
        assert activated.status_code == 200
        assert activated.json()["emergency_mode"] is True

        login = await client.post(
            "/api/auth/child-login", json={"username": family.child.username, "pin": family.pin}
        )
        assert login.status_code == 403

        me = await client.get("/api/auth/me", headers=child_headers(family.child, family.parent.family_code))
        assert me.status_code == 403

        await client.post(
            f"/api/children/{family.child.id}/emergency/deactivate", headers=parent_headers(family.parent)
        )
        login = await client.post(
            "/api/auth/child-login", json={"username": family.child.username, "pin": family.pin}
        )
        assert login.status_code == 200


class TestTokens:
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401

    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401

    async def test_token_for_deleted_user(self, client: AsyncClient, database):
        token = create_access_token("ghost", "parent", "ABCDEF")
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_child_cannot_use_parent_endpoints(self, client: AsyncClient, family):
        response = await client.get("/api/children", headers=child_headers(family.child, family.parent.family_code))
        assert response.status_code == 403
