import uuid

EXPENSES = "/api/v1/expenses"
CATEGORIES = "/api/v1/categories"


async def _create_expense(client, category, amount=12.0, date="2024-01-10T12:00:00", **fields):
    payload = {"category_id": str(category.id), "amount": amount, "description": "Lunch", "date": date}
    payload.update(fields)
    return await client.post(EXPENSES, json=payload)


async def test_expense_crud(client, category):
    created = await _create_expense(client, category)
    assert created.status_code == 201
    expense = created.json()
    assert expense["recurring_expense_id"] is None

    response = await client.patch(f"{EXPENSES}/{expense['id']}", json={"amount": 15.0})
    assert response.status_code == 200
    assert response.json()["amount"] == 15.0
    assert response.json()["description"] == "Lunch"

    assert (await client.get(f"{EXPENSES}/{expense['id']}")).status_code == 200
    assert (await client.delete(f"{EXPENSES}/{expense['id']}")).status_code == 204
    assert (await client.get(f"{EXPENSES}/{expense['id']}")).status_code == 404


async def test_expense_validation(client, category, other_category):
    assert (await _create_expense(client, category, amount=0)).status_code == 422
    assert (await _create_expense(client, other_category)).status_code == 400
    assert (await client.get(f"{EXPENSES}/{uuid.uuid4()}")).status_code == 404


async def test_expense_filters(client, category):
    await _create_expense(client, category, amount=5.0, date="2024-01-05T09:00:00")
    await _create_expense(client, category, amount=50.0, date="2024-01-20T09:00:00")
    await _create_expense(client, category, amount=500.0, date="2024-02-02T09:00:00")

    listed = (await client.get(EXPENSES)).json()
    assert [e["amount"] for e in listed] == [500.0, 50.0, 5.0]

    january = await client.get(
        EXPENSES, params={"start_date": "2024-01-01T00:00:00", "end_date": "2024-01-31T23:59:59"}
    )
    assert [e["amount"] for e in january.json()] == [50.0, 5.0]

    mid_range = await client.get(EXPENSES, params={"min_amount": 10, "max_amount": 100})
    assert [e["amount"] for e in mid_range.json()] == [50.0]

    limited = await client.get(EXPENSES, params={"limit": 1})
    assert [e["amount"] for e in limited.json()] == [500.0]


async def test_category_crud(client):
    created = await client.post(CATEGORIES, json={"name": "Groceries"})
    assert created.status_code == 201
    category = created.json()
    assert category["color"] == "#3B82F6"
    assert category["is_default"] is False

    renamed = await client.patch(f"{CATEGORIES}/{category['id']}", json={"name": "Food"})
    assert renamed.json()["name"] == "Food"

    listed = await client.get(CATEGORIES)
    assert [c["name"] for c in listed.json()] == ["Food"]

    assert (await client.delete(f"{CATEGORIES}/{category['id']}")).status_code == 204
    assert (await client.get(f"{CATEGORIES}/{category['id']}")).status_code == 404


async def test_deleting_category_in_use_by_recurring_expense_is_refused(client, category):
    recurring = await client.post(
        "/api/v1/recurring-expenses",
        json={"category_id": str(category.id), "amount": 9.0, "type": "daily"},
    )
    recurring_url = f"/api/v1/recurring-expenses/{recurring.json()['id']}"
    expense = (await _create_expense(client, category)).json()

    refused = await client.delete(f"{CATEGORIES}/{category.id}")
    assert refused.status_code == 400
    assert "recurring expenses" in refused.json()["detail"]
    assert (await client.get(recurring_url)).status_code == 200
    assert (await client.get(f"{CATEGORIES}/{category.id}")).status_code == 200

    assert (await client.delete(recurring_url)).status_code == 204
    assert (await client.delete(f"{CATEGORIES}/{category.id}")).status_code == 204

    kept = await client.get(f"{EXPENSES}/{expense['id']}")
    assert kept.status_code == 200
    assert kept.json()["category_id"] is None


async def test_users_me(client, user):
    response = await client.get("/api/v1/users/me")
    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"

    updated = await client.patch("/api/v1/users/me", json={"full_name": "Alice Smith"})
    assert updated.json()["full_name"] == "Alice Smith"

    assert (await client.patch("/api/v1/users/me", json={})).status_code == 400


async def test_root_and_health(client):
    root = await client.get("/")
    assert root.status_code == 200
    assert "version" in root.json()

    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["scheduler_running"] is False
