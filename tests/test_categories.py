import crud
from models import PeriodCategoryBudget


def test_create_category_trims_name_and_defaults(client):
    resp = client.post("/categories", json={"name": "  Groceries  ", "budget_limit": 250})

    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "Groceries"
    assert body["budget_limit"] == 250
    assert body["is_active"] is True
    assert body["exclude_from_budget"] is False


def test_income_category_is_excluded_from_budget_by_default(make_category):
    income = make_category("Income")
    salary = make_category("Salary", exclude_from_budget=True)

    assert income["exclude_from_budget"] is True
    assert salary["exclude_from_budget"] is True


def test_create_category_validation(client):
    assert client.post("/categories", json={"name": "   "}).status_code == 400
    assert client.post("/categories", json={"name": "x" * 51}).status_code == 400
    assert client.post("/categories", json={"name": "x" * 50}).status_code == 201

    resp = client.post("/categories", json={"name": "Rent", "budget_limit": -1})
    assert resp.status_code == 400
    assert "Budget limit" in resp.json()["error"]


def test_duplicate_name_is_case_insensitive(client, make_category):
    make_category("Food", 500)

    resp = client.post("/categories", json={"name": "fOOd"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Category name already exists"}


def test_list_hides_inactive_unless_requested(client, make_category):
    make_category("Food")
    gym = make_category("Gym")
    client.delete(f"/categories/{gym['id']}")

    names = [c["name"] for c in client.get("/categories").json()]
    assert names == ["Food"]

    names = [c["name"] for c in client.get("/categories", params={"include_inactive": "true"}).json()]
    assert names == ["Food", "Gym"]


def test_update_category(client, make_category):
    food = make_category("Food", 500)
    make_category("Travel", 100)

    # renaming to a different case of its own name is not a duplicate
    resp = client.put(f"/categories/{food['id']}", json={"name": "FOOD", "budget_limit": 450})
    assert resp.status_code == 200
    assert resp.json()["name"] == "FOOD"
    assert resp.json()["budget_limit"] == 450

    resp = client.put(f"/categories/{food['id']}", json={"name": "travel"})
    assert resp.status_code == 400

    assert client.put(f"/categories/{food['id']}", json={}).status_code == 400
    assert client.put("/categories/999", json={"name": "Nope"}).status_code == 404


def test_default_delete_deactivates(client, make_category):
    food = make_category("Food")

    resp = client.delete(f"/categories/{food['id']}")

    assert resp.status_code == 200
    assert resp.json()["deactivated"] is True
    assert resp.json()["deleted"] is False
    assert client.get(f"/categories/{food['id']}").json()["is_active"] is False


def test_soft_delete_with_transactions_reports_it(client, make_category, make_transaction):
    food = make_category("Food")
    make_transaction("Lunch", 12, category_id=food["id"])

    resp = client.delete(f"/categories/{food['id']}")

    assert resp.json()["message"] == "Category deactivated (has existing transactions)"


def test_hard_delete_without_transactions_removes_row(client, make_category):
    food = make_category("Food")

    resp = client.delete(f"/categories/{food['id']}", params={"hard_delete": "true"})

    assert resp.status_code == 200
    assert resp.json()["deleted"] is True
    assert client.get(f"/categories/{food['id']}").status_code == 404


def test_hard_delete_with_transactions_is_a_conflict(client, make_category, make_transaction):
    food = make_category("Food")
    make_transaction("Lunch", 12, category_id=food["id"])

    resp = client.delete(f"/categories/{food['id']}", params={"hard_delete": "true"})

    assert resp.status_code == 400
    assert resp.json()["transaction_count"] == 1
    assert client.get(f"/categories/{food['id']}").json()["is_active"] is True


def test_hard_delete_cascades_to_period_budgets(client, db, make_category):
    food = make_category("Food", 500)
    make_category("Rent", 1000)
    period = client.post(
        "/periods",
        json={"period_type": "monthly", "start_date": "2024-01-01", "end_date": "2024-01-31"},
    ).json()

    client.delete(f"/categories/{food['id']}", params={"hard_delete": "true"})

    budgets = client.get(f"/periods/{period['id']}/budgets").json()
    assert [b["category_name"] for b in budgets] == ["Rent"]
    assert db.query(PeriodCategoryBudget).filter_by(category_id=food["id"]).count() == 0


def test_unknown_category_is_404(client):
    resp = client.get("/categories/42")

    assert resp.status_code == 404
    assert resp.json() == {"error": "Category not found"}


def test_seed_default_categories_only_fills_empty_table(db):
    assert crud.seed_default_categories(db) == 5
    assert crud.seed_default_categories(db) == 0

    income = [c for c in crud.list_categories(db) if c.name == "Income"][0]
    assert income.exclude_from_budget is True
    assert {c.name for c in crud.list_categories(db)} == {
        "Food", "Transportation", "Entertainment", "Utilities", "Income"
    }


def test_non_finite_budget_limits_are_rejected(client, make_category):
    headers = {"Content-Type": "application/json"}

    for token in ("NaN", "Infinity"):
        resp = client.post("/categories", content=f'{{"name": "Rent", "budget_limit": {token}}}', headers=headers)
        assert resp.status_code == 400, token
        assert "Budget limit" in resp.json()["error"]

    food = make_category("Food", 500)
    resp = client.put(f"/categories/{food['id']}", content='{"budget_limit": Infinity}', headers=headers)
    assert resp.status_code == 400
    assert client.get(f"/categories/{food['id']}").json()["budget_limit"] == 500
    assert client.get("/categories").json()[0]["name"] == "Food"
