"""
Reports and dashboard HTTP tests.

Verifies the aggregate endpoints read from the same sale / debt / expense
rows the write path produces, and that cancelled sales and rejected
expenses stay out of the totals.
"""

from datetime import timedelta

from duka.services import reporting_service
from duka.time_utils import today


def _sell(client, headers, product_id, quantity, method="cash", **extra):
    body = {"productId": product_id, "quantity": quantity, "paymentMethod": method}
    body.update(extra)
    return client.post("/api/sales", json=body, headers=headers).get_json()


def _expense(client, headers, amount, category="Rent"):
    body = {"description": f"{category} payment", "category": category, "amount": amount}
    return client.post("/api/expenses", json=body, headers=headers).get_json()


class TestSalesReports:

    def test_sales_summary_by_method(self, client, admin_headers, product):
        pid = product.id
        _sell(client, admin_headers, pid, 2)
        _sell(client, admin_headers, pid, 1, "mpesa")
        _sell(client, admin_headers, pid, 1, "debt", customerName="Jane", customerPhone="0712")
        cancelled = _sell(client, admin_headers, pid, 3)
        client.patch(f"/api/sales/{cancelled['id']}/status", json={"status": "cancelled"}, headers=admin_headers)

        body = client.get("/api/reports/sales-summary", headers=admin_headers).get_json()

        assert body["total_sales"] == 3
        assert body["total_revenue"] == "400.00"
        assert body["average_sale"] == "133.33"
        assert body["cash_sales"] == "200.00"
        assert body["mobile_money_sales"] == "100.00"
        assert body["debt_sales"] == "100.00"

    def test_daily_sales_zero_filled(self, client, admin_headers, product):
        _sell(client, admin_headers, product.id, 2)

        items = client.get("/api/reports/daily-sales?days=3", headers=admin_headers).get_json()["items"]

        assert [i["date"] for i in items] == [
            (today() - timedelta(days=n)).isoformat() for n in (2, 1, 0)
        ]
        assert [i["count"] for i in items] == [0, 0, 1]
        assert items[-1]["revenue"] == "200.00"

    def test_top_products(self, client, admin_headers, make_product):
        rice = make_product(name="Rice", stock=50, price="10")
        soap = make_product(name="Soap", stock=50, price="10")
        _sell(client, admin_headers, rice.id, 5)
        _sell(client, admin_headers, soap.id, 8)

        items = client.get("/api/reports/top-products?limit=1", headers=admin_headers).get_json()["items"]

        assert [(i["product_name"], i["quantity_sold"]) for i in items] == [("Soap", 8)]

    def test_bad_date_range(self, client, admin_headers):
        resp = client.get(
            "/api/reports/sales-summary?date_from=2026-02-01&date_to=2026-01-01",
            headers=admin_headers,
        )
        assert resp.status_code == 400


class TestDebtReports:

    def test_debt_summary_and_overdue(self, client, admin_headers):
        past = (today() - timedelta(days=4)).isoformat()
        late = client.post(
            "/api/debts",
            json={"customerName": "Late", "customerPhone": "1", "amount": "300", "dueDate": past},
            headers=admin_headers,
        ).get_json()
        client.post(
            "/api/debts",
            json={"customerName": "Prompt", "customerPhone": "2", "amount": "100", "amountPaid": "100"},
            headers=admin_headers,
        )

        summary = client.get("/api/reports/debts-summary", headers=admin_headers).get_json()
        assert summary["total_debts"] == 2
        assert summary["total_outstanding"] == "300.00"
        assert summary["overdue_count"] == 1
        assert summary["overdue_amount"] == "300.00"
        assert summary["paid_count"] == 1

        overdue = client.get("/api/reports/overdue-debts", headers=admin_headers).get_json()
        assert overdue["count"] == 1
        assert overdue["items"][0]["id"] == late["id"]
        assert overdue["items"][0]["days_overdue"] == 4

        customers = client.get("/api/reports/debts-by-customer", headers=admin_headers).get_json()["items"]
        assert customers[0]["customer_name"] == "Late"
        assert customers[0]["total_balance"] == "300.00"


class TestExpenseReports:

    def test_rejected_expenses_left_out(self, client, admin_headers):
        _expense(client, admin_headers, "1000", "Rent")
        _expense(client, admin_headers, "250", "Utilities")
        rejected = _expense(client, admin_headers, "999", "Utilities")
        client.post(f"/api/expenses/{rejected['id']}/reject", headers=admin_headers)

        summary = client.get("/api/reports/expenses-summary", headers=admin_headers).get_json()
        assert summary["total_expenses"] == 3
        assert summary["pending_amount"] == "1250.00"
        assert summary["rejected_amount"] == "999.00"

        by_category = client.get("/api/reports/expenses-by-category", headers=admin_headers).get_json()["items"]
        assert [(c["category"], c["total"]) for c in by_category] == [("Rent", "1000.00"), ("Utilities", "250.00")]

        months = client.get("/api/reports/monthly-expenses?months=2", headers=admin_headers).get_json()["items"]
        assert len(months) == 2
        assert months[-1]["month"] == today().strftime("%Y-%m")
        assert months[-1]["total"] == "1250.00"

    def test_weekly_expenses_monday_first(self, db_session):
        week = reporting_service.weekly_expenses()
        assert len(week) == 7
        assert week[0]["day"] == "Monday"
        assert week[-1]["day"] == "Sunday"


class TestDashboard:

    def test_stats_charts_and_feed(self, client, admin_headers, product):
        _sell(client, admin_headers, product.id, 2)
        _expense(client, admin_headers, "50", "Transport")

        stats = client.get("/api/dashboard/stats", headers=admin_headers).get_json()
        assert stats["sales"]["today_revenue"] == "200.00"
        assert stats["expenses"]["pending_count"] == 1
        assert stats["month_net"] == "150.00"

        charts = client.get("/api/dashboard/charts", headers=admin_headers).get_json()
        assert len(charts["daily_sales"]) == 7

        weekly = client.get("/api/dashboard/weekly-expenses", headers=admin_headers).get_json()["items"]
        assert len(weekly) == 7

        feed = client.get("/api/dashboard/recent-activities?limit=5", headers=admin_headers).get_json()["items"]
        assert {item["type"] for item in feed} == {"sale", "expense"}
