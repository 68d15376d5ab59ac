"""API endpoint integration tests.

Tests the FastAPI endpoints for categories, transactions, books, book sales,
payroll and reports.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def dec(value) -> Decimal:
    return Decimal(str(value))


async def _create_category(client: AsyncClient, finance_type: str, name: str, **extra) -> dict:
    response = await client.post(
        "/api/v1/finance/categories",
        json={"type": finance_type, "name": name, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _create_transaction(client: AsyncClient, category: dict, amount, occurred_at: str, **extra):
    return await client.post(
        "/api/v1/finance/transactions",
        json={
            "type": category["type"],
            "categoryId": category["id"],
            "amount": amount,
            "paymentMethod": extra.pop("paymentMethod", "CASH"),
            "occurredAt": occurred_at,
            **extra,
        },
    )


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should return 200."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert "timestamp" in data

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestAuthentication:
    """The acting user comes from X-User-ID."""

    async def test_missing_user_header(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/finance/categories", headers={"X-User-ID": ""}
        )
        assert response.status_code == 401

    async def test_malformed_user_header(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/finance/categories", headers={"X-User-ID": "not-a-uuid"}
        )
        assert response.status_code == 400


class TestCategories:
    """Category endpoints."""

    async def test_create_list_update(self, client: AsyncClient):
        parent = await _create_category(client, "EXPENSE", "Facilities")
        child = await _create_category(client, "EXPENSE", "Electricity", parentId=parent["id"])
        assert child["parent"]["name"] == "Facilities"

        response = await client.get("/api/v1/finance/categories", params={"type": "EXPENSE"})
        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Electricity", "Facilities"]

        response = await client.patch(
            f"/api/v1/finance/categories/{child['id']}",
            json={"name": "Power", "parentId": None},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["name"] == "Power"
        assert data["parentId"] is None

    async def test_duplicate_category(self, client: AsyncClient):
        await _create_category(client, "REVENUE", "Tuition")

        response = await client.post(
            "/api/v1/finance/categories", json={"type": "REVENUE", "name": "Tuition"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_unknown_category(self, client: AsyncClient):
        response = await client.patch(
            f"/api/v1/finance/categories/{uuid4()}", json={"name": "x"}
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestTransactions:
    """Transaction endpoints."""

    async def test_create_and_list(self, client: AsyncClient, seed):
        tuition = await _create_category(client, "REVENUE", "Tuition")
        for day in range(1, 4):
            response = await _create_transaction(
                client, tuition, 1000 * day, f"2024-05-0{day}T09:00:00", note=f"fees {day}"
            )
            assert response.status_code == 201, response.text

        response = await client.get(
            "/api/v1/finance/transactions",
            params={"from": "2024-05-02", "to": "2024-05-03", "pageSize": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["pagination"] == {"page": 1, "pageSize": 1, "total": 2, "totalPages": 2}
        item = data["items"][0]
        assert dec(item["amount"]) == Decimal("3000")
        assert item["category"]["name"] == "Tuition"
        assert item["createdByUser"]["id"] == str(seed.admin_id)

    async def test_category_type_mismatch(self, client: AsyncClient):
        utilities = await _create_category(client, "EXPENSE", "Utilities")

        response = await client.post(
            "/api/v1/finance/transactions",
            json={
                "type": "REVENUE",
                "categoryId": utilities["id"],
                "amount": 100,
                "paymentMethod": "CASH",
                "occurredAt": "2024-05-01T09:00:00",
            },
        )

        assert response.status_code == 400
        assert response.json()["code"] == "CATEGORY_TYPE_MISMATCH"

    async def test_non_positive_amount(self, client: AsyncClient):
        tuition = await _create_category(client, "REVENUE", "Tuition")

        response = await _create_transaction(client, tuition, 0, "2024-05-01T09:00:00")

        assert response.status_code == 400

    async def test_type_cannot_be_patched(self, client: AsyncClient):
        tuition = await _create_category(client, "REVENUE", "Tuition")
        tx = (await _create_transaction(client, tuition, 100, "2024-05-01T09:00:00")).json()

        response = await client.patch(
            f"/api/v1/finance/transactions/{tx['id']}", json={"type": "EXPENSE"}
        )

        assert response.status_code == 422

    async def test_patch_and_soft_delete(self, client: AsyncClient):
        tuition = await _create_category(client, "REVENUE", "Tuition")
        tx = (await _create_transaction(client, tuition, 100, "2024-05-01T09:00:00")).json()

        response = await client.patch(
            f"/api/v1/finance/transactions/{tx['id']}", json={"amount": 250, "note": "fixed"}
        )
        assert response.status_code == 200
        assert dec(response.json()["amount"]) == Decimal("250")

        response = await client.delete(f"/api/v1/finance/transactions/{tx['id']}")
        assert response.status_code == 200
        assert response.json() == {"id": tx["id"], "deleted": True}

        response = await client.delete(f"/api/v1/finance/transactions/{tx['id']}")
        assert response.status_code == 404

        listed = (await client.get("/api/v1/finance/transactions")).json()
        assert listed["pagination"]["total"] == 0


class TestBooks:
    """Book catalogue endpoints."""

    async def test_book_lifecycle(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/books", json={"title": "Science 3", "salePrice": 3000, "costPrice": 2100}
        )
        assert response.status_code == 201, response.text
        book = response.json()

        response = await client.patch(f"/api/v1/books/{book['id']}", json={"costPrice": None})
        assert response.status_code == 200
        assert response.json()["costPrice"] is None

        response = await client.delete(f"/api/v1/books/{book['id']}")
        assert response.json() == {"id": book["id"], "deactivated": True}

        titles = [b["title"] for b in (await client.get("/api/v1/books")).json()]
        assert titles == ["English Workbook", "Myanmar Grammar I"]


class TestBookSales:
    """Book sale endpoints."""

    async def test_create_mixed_cost_sale(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/book-sales",
            json={
                "soldAt": "2024-05-10T14:00:00",
                "paymentMethod": "CASH",
                "items": [
                    {"bookId": str(seed.costed_book_id), "qty": 2, "unitPrice": 1500},
                    {"bookId": str(seed.uncosted_book_id), "qty": 1, "unitPrice": 2000},
                ],
            },
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["costPriceMissingWarning"] is True
        sale = data["sale"]
        assert dec(sale["totalAmount"]) == Decimal("5000")
        assert dec(sale["profitAmount"]) == Decimal("3000")
        assert {dec(i["lineTotal"]) for i in sale["items"]} == {Decimal("3000"), Decimal("2000")}

        revenue = (await client.get("/api/v1/finance/transactions", params={"type": "REVENUE"})).json()
        [tx] = revenue["items"]
        assert dec(tx["amount"]) == Decimal("3000")
        assert tx["referenceType"] == "BOOK_SALE"
        assert tx["referenceId"] == sale["id"]
        assert tx["category"]["name"] == "Book Sales"

    async def test_empty_items_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/book-sales",
            json={"soldAt": "2024-05-10T14:00:00", "paymentMethod": "CASH", "items": []},
        )
        assert response.status_code == 400

    async def test_unknown_book(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/book-sales",
            json={
                "soldAt": "2024-05-10T14:00:00",
                "paymentMethod": "CASH",
                "items": [{"bookId": str(uuid4()), "qty": 1, "unitPrice": 100}],
            },
        )
        assert response.status_code == 404

    async def test_update_and_list(self, client: AsyncClient, seed):
        created = (
            await client.post(
                "/api/v1/book-sales",
                json={
                    "soldAt": "2024-05-10T14:00:00",
                    "paymentMethod": "CASH",
                    "items": [{"bookId": str(seed.costed_book_id), "qty": 2, "unitPrice": 1500}],
                },
            )
        ).json()["sale"]
        line = created["items"][0]

        response = await client.patch(
            f"/api/v1/book-sales/{created['id']}",
            json={
                "items": [
                    {"id": line["id"], "bookId": line["bookId"], "qty": 1, "unitPrice": 1500},
                    {"bookId": str(seed.uncosted_book_id), "qty": 1, "unitPrice": 2000},
                ]
            },
        )
        assert response.status_code == 200, response.text
        updated = response.json()
        assert updated["costPriceMissingWarning"] is True
        assert dec(updated["sale"]["totalAmount"]) == Decimal("3500")
        assert dec(updated["sale"]["profitAmount"]) == Decimal("2500")

        sales = (
            await client.get("/api/v1/book-sales", params={"from": "2024-05-01", "to": "2024-05-10"})
        ).json()
        assert [s["id"] for s in sales] == [created["id"]]
        assert len(sales[0]["items"]) == 2


class TestPayroll:
    """Payroll endpoints."""

    async def test_generate_update_pay(self, client: AsyncClient, seed):
        response = await client.post("/api/v1/payroll/generate", params={"month": "2024-05"})
        assert response.status_code == 201
        generated = response.json()
        assert generated["month"] == "2024-05"
        assert generated["created"] == 3

        again = (await client.post("/api/v1/payroll/generate", params={"month": "2024-05"})).json()
        assert again["created"] == 0

        rows = (await client.get("/api/v1/payroll", params={"month": "2024-05"})).json()
        assert [r["teacherUser"]["lastName"] for r in rows] == ["Aye", "Lwin", "Thein"]
        assert all(r["status"] == "DRAFT" for r in rows)
        payroll_id = rows[0]["id"]

        response = await client.patch(
            f"/api/v1/payroll/{payroll_id}",
            json={"baseSalary": 500000, "bonus": 50000, "deduction": 20000},
        )
        assert response.status_code == 200, response.text
        assert dec(response.json()["netPay"]) == Decimal("530000")

        response = await client.post(f"/api/v1/payroll/{payroll_id}/pay", json={"paymentMethod": "BANK"})
        assert response.status_code == 200, response.text
        paid = response.json()
        assert paid["status"] == "PAID"
        assert paid["paidAt"] is not None

        response = await client.post(f"/api/v1/payroll/{payroll_id}/pay", json={"paymentMethod": "BANK"})
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"

        response = await client.patch(f"/api/v1/payroll/{payroll_id}", json={"bonus": 1})
        assert response.status_code == 409

        expenses = (await client.get("/api/v1/finance/transactions", params={"type": "EXPENSE"})).json()
        [tx] = expenses["items"]
        assert dec(tx["amount"]) == Decimal("530000")
        assert tx["referenceType"] == "PAYROLL"
        assert tx["referenceId"] == payroll_id

    @pytest.mark.parametrize("month", [None, "2024-5", "May 2024", "2024-13"])
    async def test_month_is_validated(self, client: AsyncClient, month):
        params = {"month": month} if month is not None else {}
        response = await client.post("/api/v1/payroll/generate", params=params)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_update_cannot_mark_paid(self, client: AsyncClient, seed):
        await client.post("/api/v1/payroll/generate", params={"month": "2024-05"})
        rows = (await client.get("/api/v1/payroll", params={"month": "2024-05"})).json()

        response = await client.patch(f"/api/v1/payroll/{rows[0]['id']}", json={"status": "PAID"})

        assert response.status_code == 409


class TestReports:
    """Report endpoints."""

    async def test_monthly_and_daily(self, client: AsyncClient, seed):
        tuition = await _create_category(client, "REVENUE", "Tuition")
        await _create_transaction(client, tuition, 1000, "2024-05-03T09:00:00")
        await _create_transaction(client, tuition, 500, "2024-05-15T09:00:00", paymentMethod="KBZPAY")
        await client.post("/api/v1/payroll/generate", params={"month": "2024-05"})
        rows = (await client.get("/api/v1/payroll", params={"month": "2024-05"})).json()
        await client.patch(f"/api/v1/payroll/{rows[0]['id']}", json={"baseSalary": 200})

        monthly = (await client.get("/api/v1/finance/reports/monthly", params={"month": "2024-05"})).json()
        assert dec(monthly["totalRevenue"]) == Decimal("1500")
        assert dec(monthly["totalPayroll"]) == Decimal("200")
        assert dec(monthly["net"]) == Decimal("1300")
        assert {m["paymentMethod"] for m in monthly["byPaymentMethod"]} == {"CASH", "KBZPAY"}

        daily = (await client.get("/api/v1/finance/reports/daily", params={"date": "2024-05-15"})).json()
        assert dec(daily["totalRevenue"]) == Decimal("500")
        assert dec(daily["totalPayroll"]) == Decimal("200")

        yearly = (await client.get("/api/v1/finance/reports/yearly", params={"year": "2024"})).json()
        assert dec(yearly["totalRevenue"]) == Decimal("1500")

        everything = (await client.get("/api/v1/finance/reports/all")).json()
        assert [c["name"] for c in everything["byCategory"]] == ["Tuition"]

    @pytest.mark.parametrize(
        "path,params",
        [
            ("/api/v1/finance/reports/yearly", {"year": "24"}),
            ("/api/v1/finance/reports/monthly", {"month": "2024/05"}),
            ("/api/v1/finance/reports/daily", {"date": "2024-02-30"}),
        ],
    )
    async def test_malformed_period(self, client: AsyncClient, path, params):
        response = await client.get(path, params=params)
        assert response.status_code == 400
