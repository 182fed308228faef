"""Habit CRUD, submission, parent review and auto-approval over HTTP."""

from httpx import AsyncClient

from tests.factories import child_headers, make_parent, parent_headers


class TestHabitCrud:
    async def test_create_list_update_delete(self, client: AsyncClient, family):
        headers = parent_headers(family.parent)
        created = await client.post(
            f"/api/children/{family.child.id}/habits",
            json={"name": "Read a Book", "xp_reward": 50, "icon": "📚", "time_range_start": "18:00"},
            headers=headers,
        )
        assert created.status_code == 201
        habit = created.json()
        assert habit["xp_reward"] == 50
        assert habit["time_range_start"] == "18:00"

        listed = await client.get(f"/api/children/{family.child.id}/habits", headers=headers)
        assert {h["name"] for h in listed.json()} == {"Brush Teeth", "Read a Book"}

        updated = await client.put(f"/api/habits/{habit['id']}", json={"is_active": False}, headers=headers)
        assert updated.json()["is_active"] is False
        active = await client.get(
            f"/api/children/{family.child.id}/habits", params={"active_only": True}, headers=headers
        )
        assert [h["name"] for h in active.json()] == ["Brush Teeth"]

        deleted = await client.delete(f"/api/habits/{habit['id']}", headers=headers)
        assert deleted.status_code == 204

    async def test_bad_time_range(self, client: AsyncClient, family):
        response = await client.post(
            f"/api/children/{family.child.id}/habits",
            json={"name": "Late", "time_range_end": "25:00"},
            headers=parent_headers(family.parent),
        )
        assert response.status_code == 422

    async def test_child_cannot_create_habits(self, client: AsyncClient, family):
        response = await client.post(
            f"/api/children/{family.child.id}/habits",
            json={"name": "Candy"},
            headers=child_headers(family.child, family.parent.family_code),
        )
        assert response.status_code == 403

    async def test_other_family_gets_404(self, client: AsyncClient, family, db_session):
        stranger = await make_parent(db_session, email="other@example.com")
        response = await client.get(f"/api/children/{family.child.id}/habits", headers=parent_headers(stranger))
        assert response.status_code == 404


class TestCompletionFlow:
    async def test_submit_review_and_settle(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        child = child_headers(family.child, family.parent.family_code)

        submitted = await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)
        assert submitted.status_code == 201
        completion = submitted.json()
        assert completion["status"] == "pending"
        assert completion["xp_earned"] == 10
        assert completion["reward_points_earned"] == 1

        count = await client.get("/api/pending-habits/count", headers=parent)
        assert count.json() == {"count": 1}
        pending = (await client.get("/api/pending-habits/all", headers=parent)).json()
        assert pending[0]["habit_name"] == "Brush Teeth"
        assert pending[0]["child_name"] == "Emma"
        assert pending[0]["auto_approve_at"] is None

        approved = await client.post(
            f"/api/habit-completions/{completion['id']}/approve", json={"message": "Great job!"}, headers=parent
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["parent_message"] == "Great job!"
        assert approved.json()["reviewed_by"] == family.parent.id

        again = await client.post(f"/api/habit-completions/{completion['id']}/approve", headers=parent)
        assert again.status_code == 400
        assert again.json()["detail"] == "Habit completion already reviewed"

        profile = (await client.get(f"/api/children/{family.child.id}", headers=child)).json()
        assert profile["total_xp"] == 10
        assert profile["reward_points"] == 1

        retry = await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)
        assert retry.status_code == 400
        assert retry.json()["detail"] == "Habit already completed today"

        today = await client.get(f"/api/children/{family.child.id}/completions/today", headers=child)
        assert [c["status"] for c in today.json()] == ["approved"]

    async def test_reject_then_reload(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        child = child_headers(family.child, family.parent.family_code)
        completion = (await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)).json()

        blank = await client.post(
            f"/api/habit-completions/{completion['id']}/reject", json={"message": "   "}, headers=parent
        )
        assert blank.status_code == 400

        rejected = await client.post(
            f"/api/habit-completions/{completion['id']}/reject", json={"message": "Two minutes please"}, headers=parent
        )
        assert rejected.json()["status"] == "rejected"

        reload = await client.post(f"/api/children/{family.child.id}/reload-habits", headers=child)
        assert reload.json() == {"child_id": family.child.id, "cleared": 1}

        resubmit = await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)
        assert resubmit.status_code == 201

    async def test_child_cannot_review(self, client: AsyncClient, family):
        child = child_headers(family.child, family.parent.family_code)
        completion = (await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)).json()
        response = await client.post(f"/api/habit-completions/{completion['id']}/approve", headers=child)
        assert response.status_code == 403

    async def test_child_cannot_complete_sibling_habit(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        sibling = (await client.post("/api/children", json={"name": "Liam"}, headers=parent)).json()["child"]
        habit = (
            await client.post(f"/api/children/{sibling['id']}/habits", json={"name": "Feed Cat"}, headers=parent)
        ).json()

        response = await client.post(
            f"/api/habits/{habit['id']}/complete", headers=child_headers(family.child, family.parent.family_code)
        )
        assert response.status_code == 403

    async def test_streak_and_weekly_progress(self, client: AsyncClient, family):
        child = child_headers(family.child, family.parent.family_code)
        streak = await client.get(f"/api/habits/{family.habit.id}/streak/{family.child.id}", headers=child)
        assert streak.json()["streak"] == 0

        progress = await client.get(f"/api/children/{family.child.id}/weekly-progress", headers=child)
        data = progress.json()
        assert data["total_habits"] == 7
        assert len(data["daily_breakdown"]) == 7
        assert data["status"] == "red"


class TestAutoApproval:
    async def test_settings_drive_pending_deadline(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        child = child_headers(family.child, family.parent.family_code)

        saved = await client.put(
            "/api/auto-approval-settings",
            json={"enabled": True, "time_value": 2, "time_unit": "hours"},
            headers=parent,
        )
        assert saved.status_code == 200
        assert saved.json()["enabled"] is True

        await client.post(f"/api/habits/{family.habit.id}/complete", headers=child)
        pending = (await client.get(f"/api/children/{family.child.id}/pending-habits", headers=parent)).json()
        assert pending[0]["auto_approve_at"] is not None
        assert 0 < pending[0]["seconds_until_auto_approval"] <= 2 * 3600

        stats = await client.get("/api/auto-approval-stats", headers=parent)
        assert stats.json() == {"this_week": 0, "total_saved": 0, "pending": 1}

    async def test_invalid_unit(self, client: AsyncClient, family):
        response = await client.put(
            "/api/auto-approval-settings",
            json={"enabled": True, "time_value": 2, "time_unit": "minutes"},
            headers=parent_headers(family.parent),
        )
        assert response.status_code == 422


class TestMasterHabits:
    async def test_assign_to_children(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        master = await client.post(
            "/api/master-habits",
            json={"name": "Homework", "xp_reward": 40, "reminder_time": 15, "time_range_start": "16:00"},
            headers=parent,
        )
        assert master.status_code == 201
        master_id = master.json()["id"]

        assigned = await client.post(
            f"/api/master-habits/{master_id}/assign", json={"child_ids": [family.child.id]}, headers=parent
        )
        assert assigned.status_code == 201
        habit = assigned.json()[0]
        assert habit["master_habit_id"] == master_id
        assert habit["xp_reward"] == 40
        assert habit["child_id"] == family.child.id

        listed = await client.get("/api/master-habits", headers=parent)
        assert [m["id"] for m in listed.json()] == [master_id]

    async def test_assign_requires_children(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        master_id = (await client.post("/api/master-habits", json={"name": "Homework"}, headers=parent)).json()["id"]
        response = await client.post(f"/api/master-habits/{master_id}/assign", json={"child_ids": []}, headers=parent)
        assert response.status_code == 422
