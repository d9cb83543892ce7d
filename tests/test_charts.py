import csv
from io import StringIO


def test_expense_breakdown_orders_by_total_and_skips_empty(client, make_category, make_transaction):
    food = make_category("Food", 500)
    rent = make_category("Rent", 1200)
    make_category("Travel", 100)
    make_transaction("Groceries", 120, category_id=food["id"])
    make_transaction("Dinner", 80, category_id=food["id"])
    make_transaction("March rent", 1000, category_id=rent["id"])
    make_transaction("Refund", 50, type="income", category_id=food["id"])

    rows = client.get("/charts/expense-breakdown").json()

    assert [(r["name"], r["total"]) for r in rows] == [("Rent", 1000), ("Food", 200)]


def test_expense_breakdown_respects_window(client, make_category, make_transaction):
    food = make_category("Food", 500)
    make_transaction("old", 70, category_id=food["id"], date="2023-12-31T10:00:00")
    make_transaction("new", 30, category_id=food["id"], date="2024-01-02T10:00:00")

    rows = client.get("/charts/expense-breakdown", params={"start_date": "2024-01-01"}).json()

    assert rows == [{"category_id": food["id"], "name": "Food", "total": 30}]


def test_monthly_trend_is_chronological(client, make_transaction):
    make_transaction("feb pay", 1000, type="income", date="2024-02-01T09:00:00")
    make_transaction("jan food", 40, date="2024-01-15T09:00:00")
    make_transaction("feb food", 60, date="2024-02-15T09:00:00")

    rows = client.get("/charts/monthly-trend").json()

    assert rows == [
        {"month": "2024-01", "income": 0, "expenses": 40},
        {"month": "2024-02", "income": 1000, "expenses": 60},
    ]


def test_monthly_trend_caps_at_twelve_months_without_window(client, make_transaction):
    months = [f"2023-{m:02d}" for m in range(1, 13)] + ["2024-01", "2024-02"]
    for month in months:
        make_transaction(f"spend {month}", 10, date=f"{month}-15T09:00:00")

    rows = client.get("/charts/monthly-trend").json()
    assert len(rows) == 12
    assert rows[0]["month"] == "2023-03"
    assert rows[-1]["month"] == "2024-02"

    windowed = client.get(
        "/charts/monthly-trend",
        params={"start_date": "2023-01-01", "end_date": "2024-12-31"},
    ).json()
    assert len(windowed) == 14
    assert windowed[0]["month"] == "2023-01"


def test_income_vs_expense_totals(client, make_transaction):
    make_transaction("pay", 1000, type="income", date="2024-01-01T09:00:00")
    make_transaction("bonus", 500, type="income", date="2024-02-01T09:00:00")
    make_transaction("rent", 700, date="2024-01-03T09:00:00")

    rows = client.get("/charts/income-expense").json()
    assert {r["type"]: r["total"] for r in rows} == {"income": 1500, "expense": 700}

    rows = client.get("/charts/income-expense", params={"end_date": "2024-01-31"}).json()
    assert {r["type"]: r["total"] for r in rows} == {"income": 1000, "expense": 700}

    assert client.get("/charts/income-expense", params={"start_date": "2030-01-01"}).json() == []


def test_export_csv(client, make_category, make_transaction):
    food = make_category("Food", 500)
    make_transaction('Lunch with "Sam"', 12.5, category_id=food["id"], date="2024-03-10T12:00:00")
    make_transaction("Paycheck", 2000, type="income", date="2024-03-01T09:00:00")

    resp = client.get("/export/csv")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "budget_transactions.csv" in resp.headers["content-disposition"]

    rows = list(csv.reader(StringIO(resp.text)))
    assert rows[0] == ["ID", "Description", "Amount", "Type", "Date", "Category"]
    assert rows[1][1:] == ['Lunch with "Sam"', "12.5", "expense", "2024-03-10 12:00:00", "Food"]
    assert rows[2][1:] == ["Paycheck", "2000.0", "income", "2024-03-01 09:00:00", ""]


def test_monthly_trend_keeps_most_recent_months_with_data(client, make_transaction):
    make_transaction("old", 5, date="2022-01-10T09:00:00")
    make_transaction("gap year", 7, type="income", date="2024-05-10T09:00:00")

    rows = client.get("/charts/monthly-trend").json()

    assert rows == [
        {"month": "2022-01", "income": 0, "expenses": 5},
        {"month": "2024-05", "income": 7, "expenses": 0},
    ]
