"""Children, parental controls and weekend challenges over HTTP."""

from httpx import AsyncClient

from tests.factories import child_headers, make_parent, parent_headers


class TestChildren:
    async def test_create_returns_credentials(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        response = await client.post(
            "/api/children", json={"name": "Liam", "avatar_type": "ninja", "pin": "2468"}, headers=parent
        )
        assert response.status_code == 201
        data = response.json()
        assert data["pin"] == "2468"
        assert data["username"].startswith("liam")
        assert data["child"]["unlocked_avatars"] == ["ninja"]

        login = await client.post("/api/auth/child-login", json={"username": data["username"], "pin": "2468"})
        assert login.status_code == 200

        listed = await client.get("/api/children", headers=parent)
        assert {c["name"] for c in listed.json()} == {"Emma", "Liam"}

    async def test_invalid_pin(self, client: AsyncClient, family):
        response = await client.post(
            "/api/children", json={"name": "Liam", "pin": "12a4"}, headers=parent_headers(family.parent)
        )
        assert response.status_code == 422

    async def test_co_parent_sees_children(self, client: AsyncClient, family, db_session):
        co_parent = await make_parent(
            db_session, email="mike@example.com", join_family_code=family.parent.family_code
        )
        listed = await client.get("/api/children", headers=parent_headers(co_parent))
        assert [c["id"] for c in listed.json()] == [family.child.id]

    async def test_child_sees_only_itself(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        sibling = (await client.post("/api/children", json={"name": "Liam"}, headers=parent)).json()["child"]
        child = child_headers(family.child, family.parent.family_code)

        own = await client.get(f"/api/children/{family.child.id}", headers=child)
        assert own.status_code == 200
        other = await client.get(f"/api/children/{sibling['id']}", headers=child)
        assert other.status_code == 403

    async def test_level(self, client: AsyncClient, family):
        response = await client.get(
            f"/api/children/{family.child.id}/level", headers=child_headers(family.child, family.parent.family_code)
        )
        assert response.status_code == 200
        assert response.json()["level"] == 1

    async def test_update_and_delete(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        updated = await client.put(f"/api/children/{family.child.id}", json={"name": "Emma Rose"}, headers=parent)
        assert updated.json()["name"] == "Emma Rose"

        deleted = await client.delete(f"/api/children/{family.child.id}", headers=parent)
        assert deleted.status_code == 204
        missing = await client.get(f"/api/children/{family.child.id}", headers=parent)
        assert missing.status_code == 404


class TestParentalControls:
    async def test_read_and_update(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        controls = await client.get(f"/api/children/{family.child.id}/parental-controls", headers=parent)
        assert controls.status_code == 200
        assert controls.json()["daily_screen_time"] == 60

        updated = await client.put(
            f"/api/children/{family.child.id}/parental-controls",
            json={"daily_screen_time": 45, "bedtime_start": "19:30"},
            headers=parent,
        )
        assert updated.json()["daily_screen_time"] == 45
        assert updated.json()["bedtime_start"] == "19:30"

    async def test_invalid_bedtime(self, client: AsyncClient, family):
        response = await client.put(
            f"/api/children/{family.child.id}/parental-controls",
            json={"bedtime_start": "7pm"},
            headers=parent_headers(family.parent),
        )
        assert response.status_code == 422


class TestChallenges:
    async def test_accept_and_complete(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        child = child_headers(family.child, family.parent.family_code)
        created = await client.post(
            f"/api/children/{family.child.id}/challenges",
            json={
                "name": "Garden Helper",
                "description": "Help plant the tomatoes",
                "start_date": "2026-03-14",
                "end_date": "2026-03-15",
                "points_reward": 30,
            },
            headers=parent,
        )
        assert created.status_code == 201
        challenge_id = created.json()["id"]
        assert created.json()["state"] == "available"

        early = await client.post(f"/api/challenges/{challenge_id}/complete", headers=child)
        assert early.status_code == 400

        accepted = await client.post(f"/api/challenges/{challenge_id}/accept", headers=child)
        assert accepted.json()["state"] == "accepted"
        completed = await client.post(f"/api/challenges/{challenge_id}/complete", headers=child)
        assert completed.json()["state"] == "completed"

        profile = (await client.get(f"/api/children/{family.child.id}", headers=child)).json()
        assert profile["reward_points"] == 30
