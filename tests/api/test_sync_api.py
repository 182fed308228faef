"""Device registration and polling catch-up over HTTP."""

from httpx import AsyncClient

from tests.factories import child_headers, parent_headers


async def _register(client: AsyncClient, headers: dict, device_id: str = "ipad-1") -> dict:
    response = await client.post(
        "/api/sync/register-device",
        json={"device_id": device_id, "device_name": "Kitchen iPad", "device_type": "ios"},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


class TestDevices:
    async def test_register_returns_polling_hints(self, client: AsyncClient, family):
        data = await _register(client, parent_headers(family.parent))
        assert data["device"]["device_id"] == "ipad-1"
        assert data["initial_delay_seconds"] == 1
        assert data["poll_interval_seconds"] == 30
        assert data["server_time"]

    async def test_register_twice_keeps_one_device(self, client: AsyncClient, family):
        headers = parent_headers(family.parent)
        first = await _register(client, headers)
        second = await _register(client, headers)
        assert first["device"]["id"] == second["device"]["id"]
        devices = await client.get("/api/sync/devices", headers=headers)
        assert len(devices.json()) == 1

    async def test_deactivate(self, client: AsyncClient, family):
        headers = parent_headers(family.parent)
        await _register(client, headers)
        response = await client.post("/api/sync/devices/ipad-1/deactivate", headers=headers)
        assert response.json()["is_active"] is False
        assert (await client.get("/api/sync/devices", headers=headers)).json() == []

    async def test_bad_device_type(self, client: AsyncClient, family):
        response = await client.post(
            "/api/sync/register-device",
            json={"device_id": "x", "device_name": "Fridge", "device_type": "toaster"},
            headers=parent_headers(family.parent),
        )
        assert response.status_code == 422


class TestCatchUp:
    async def test_family_data_and_ack(self, client: AsyncClient, family):
        headers = parent_headers(family.parent)
        await _register(client, headers)
        child = child_headers(family.child, family.parent.family_code)
        await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)

        data = (await client.get("/api/sync/family-data", headers=headers)).json()
        assert [c["id"] for c in data["children"]] == [family.child.id]
        assert len(data["habits"]) == 1
        assert len(data["completions"]) == 1
        assert "habit_completed" in {e["event_type"] for e in data["sync_events"]}

        later = (
            await client.get(
                "/api/sync/family-data", params={"last_sync_time": data["last_sync_time"]}, headers=headers
            )
        ).json()
        assert later["sync_events"] == []

        ack = await client.post(
            "/api/sync/mark-completed",
            json={"device_id": "ipad-1", "event_ids": [e["id"] for e in data["sync_events"]]},
            headers=headers,
        )
        assert ack.json()["processed"] == len(data["sync_events"])
        assert ack.json()["device_known"] is True

    async def test_ack_from_unknown_device(self, client: AsyncClient, family):
        ack = await client.post(
            "/api/sync/mark-completed",
            json={"device_id": "ghost", "event_ids": []},
            headers=parent_headers(family.parent),
        )
        assert ack.status_code == 200
        assert ack.json()["processed"] == 0
        assert ack.json()["device_known"] is False

    async def test_child_view_is_narrowed(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        liam = (await client.post("/api/children", json={"name": "Liam"}, headers=parent)).json()
        liam_id = liam["child"]["id"]
        emma = child_headers(family.child, family.parent.family_code)
        await client.post(f"/api/habits/{family.habit.id}/complete", headers=emma)

        full = (await client.get("/api/sync/family-data", headers=parent)).json()
        assert len(full["children"]) == 2
        assert liam_id in {e["entity_id"] for e in full["sync_events"]}

        narrowed = (await client.get("/api/sync/child-family-data", headers=emma)).json()
        assert [c["id"] for c in narrowed["children"]] == [family.child.id]
        assert {r["child_id"] for r in narrowed["rewards"]} == {family.child.id}

        events = narrowed["sync_events"]
        assert "habit_completed" in {e["event_type"] for e in events}
        for event in events:
            assert event["entity_id"] == family.child.id or event["event_data"]["child_id"] == family.child.id
            assert liam_id not in (event["entity_id"], (event["event_data"] or {}).get("child_id"))

    async def test_child_cannot_register_device(self, client: AsyncClient, family):
        response = await client.post(
            "/api/sync/register-device",
            json={"device_id": "kid-tab", "device_name": "Tablet", "device_type": "android"},
            headers=child_headers(family.child, family.parent.family_code),
        )
        assert response.status_code == 403
