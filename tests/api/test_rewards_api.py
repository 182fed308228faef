"""Rewards, claims, bonus points and the shop over HTTP."""

from httpx import AsyncClient

from tests.factories import child_headers, parent_headers


async def _grant_points(client: AsyncClient, family, amount: int) -> None:
    parent = parent_headers(family.parent)
    entry = await client.post(
        f"/api/children/{family.child.id}/transactions",
        json={"amount": amount, "description": "Helped with groceries"},
        headers=parent,
    )
    assert entry.status_code == 201
    approved = await client.post(f"/api/transactions/{entry.json()['id']}/approve", headers=parent)
    assert approved.status_code == 200


class TestBonusPoints:
    async def test_pending_until_approved(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        entry = (
            await client.post(
                f"/api/children/{family.child.id}/transactions", json={"amount": 15}, headers=parent
            )
        ).json()
        assert entry["requires_approval"] is True
        assert entry["is_approved"] is False
        assert entry["type"] == "bonus_earned"

        pending = await client.get("/api/transactions/pending", headers=parent)
        assert [t["id"] for t in pending.json()] == [entry["id"]]

        await client.post(f"/api/transactions/{entry['id']}/approve", headers=parent)
        again = await client.post(f"/api/transactions/{entry['id']}/approve", headers=parent)
        assert again.status_code == 400

        child = (await client.get(f"/api/children/{family.child.id}", headers=parent)).json()
        assert child["reward_points"] == 15

    async def test_non_positive_amount(self, client: AsyncClient, family):
        response = await client.post(
            f"/api/children/{family.child.id}/transactions",
            json={"amount": 0},
            headers=parent_headers(family.parent),
        )
        assert response.status_code == 422


class TestClaims:
    async def test_claim_lifecycle(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        child = child_headers(family.child, family.parent.family_code)
        await _grant_points(client, family, 12)

        reward = (
            await client.post(
                f"/api/children/{family.child.id}/rewards",
                json={"name": "Movie Night", "type": "privilege", "cost": 10, "cost_type": "points"},
                headers=parent,
            )
        ).json()

        claim = await client.post(f"/api/rewards/{reward['id']}/claim", headers=child)
        assert claim.status_code == 201
        claim_id = claim.json()["id"]
        assert claim.json()["status"] == "pending"

        used_early = await client.post(f"/api/reward-claims/{claim_id}/use", headers=parent)
        assert used_early.status_code == 400

        approved = await client.post(f"/api/reward-claims/{claim_id}/approve", headers=parent)
        assert approved.json()["status"] == "approved"
        used = await client.post(f"/api/reward-claims/{claim_id}/use", headers=parent)
        assert used.json()["status"] == "used"

        profile = (await client.get(f"/api/children/{family.child.id}", headers=child)).json()
        assert profile["reward_points"] == 2

        ledger = (await client.get(f"/api/children/{family.child.id}/transactions", headers=child)).json()
        assert sorted(t["amount"] for t in ledger) == [-10, 12]

    async def test_not_enough_points(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        rewards = (await client.get(f"/api/children/{family.child.id}/rewards", headers=parent)).json()
        treat = next(r for r in rewards if r["name"] == "Special Treat")

        claim = (
            await client.post(
                f"/api/rewards/{treat['id']}/claim", headers=child_headers(family.child, family.parent.family_code)
            )
        ).json()
        response = await client.post(f"/api/reward-claims/{claim['id']}/approve", headers=parent)
        assert response.status_code == 400
        assert response.json()["detail"] == "Not enough reward points"

    async def test_recurring_reward(self, client: AsyncClient, family):
        parent = parent_headers(family.parent)
        reward = await client.post(
            f"/api/children/{family.child.id}/rewards",
            json={"name": "Ice Cream", "type": "treat", "cost": 3, "category": "daily", "is_recurring": True},
            headers=parent,
        )
        assert reward.status_code == 201
        assert reward.json()["next_occurrence"] is not None

        instances = await client.get(f"/api/rewards/{reward.json()['id']}/instances", headers=parent)
        assert instances.json() == []

        templates = await client.get(f"/api/children/{family.child.id}/rewards/recurring", headers=parent)
        assert [r["id"] for r in templates.json()] == [reward.json()["id"]]

        child = child_headers(family.child, family.parent.family_code)
        response = await client.get(f"/api/children/{family.child.id}/rewards/recurring", headers=child)
        assert response.status_code == 403

    async def test_recurring_without_cadence(self, client: AsyncClient, family):
        response = await client.post(
            f"/api/children/{family.child.id}/rewards",
            json={"name": "Ice Cream", "type": "treat", "cost": 3, "is_recurring": True},
            headers=parent_headers(family.parent),
        )
        assert response.status_code == 400


class TestShop:
    async def test_catalogue(self, client: AsyncClient, family):
        child = child_headers(family.child, family.parent.family_code)
        avatars = (await client.get("/api/shop/avatars", headers=child)).json()
        assert avatars[0]["avatar_type"] == "robot"
        assert avatars[-1]["avatar_type"] == "superhero"
        gear = (await client.get("/api/shop/gear", headers=child)).json()
        assert {g["name"] for g in gear} == {"Brave Helmet", "Shiny Armor", "Toothbrush Sword", "Homework Shield"}

    async def test_buy_avatar_and_gear(self, client: AsyncClient, family):
        child = child_headers(family.child, family.parent.family_code)
        await _grant_points(client, family, 50)

        bought = await client.post(f"/api/children/{family.child.id}/shop/avatars/ninja", headers=child)
        assert bought.status_code == 200
        assert bought.json()["reward_points"] == 25
        assert bought.json()["unlocked_avatars"] == ["robot", "ninja"]

        twice = await client.post(f"/api/children/{family.child.id}/shop/avatars/ninja", headers=child)
        assert twice.status_code == 400
        assert twice.json()["detail"] == "Avatar already unlocked"

        gear = (await client.get("/api/shop/gear", headers=child)).json()
        helmet = next(g for g in gear if g["name"] == "Brave Helmet")
        bought = await client.post(f"/api/children/{family.child.id}/shop/gear/{helmet['id']}", headers=child)
        assert bought.json()["unlocked_gear"] == [helmet["id"]]
        assert bought.json()["reward_points"] == 5

        broke = await client.post(f"/api/children/{family.child.id}/shop/avatars/wizard", headers=child)
        assert broke.status_code == 400

    async def test_unknown_avatar(self, client: AsyncClient, family):
        response = await client.post(
            f"/api/children/{family.child.id}/shop/avatars/dragon",
            headers=child_headers(family.child, family.parent.family_code),
        )
        assert response.status_code == 404
