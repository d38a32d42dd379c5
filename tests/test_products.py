"""상품 API 테스트.

Product API tests — Price change math, price history, audit log,
categories and the Excel price import.
"""

from decimal import Decimal
from io import BytesIO

import pytest
from httpx import AsyncClient
from openpyxl import Workbook, load_workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import PriceHistory, ProductAuditLog
from app.services.product_service import compute_price_change
from tests.conftest import auth_header

URL = "/api/products"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _workbook(rows: list[list], headers: list[str] | None = None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(headers or ["product_id", "new_price"])
    for row in rows:
        ws.append(row)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestPriceChangeMath:
    """가격 변동 계산 테스트."""

    @pytest.mark.parametrize(
        ("old", "new", "change", "pct"),
        [
            ("100.00", "110.00", "10.00", "10.00"),
            ("125.50", "100.00", "-25.50", "-20.32"),
            ("0.00", "50.00", "50.00", "0.00"),
            ("7.25", "7.25", "0.00", "0.00"),
        ],
    )
    def test_compute_price_change(self, old, new, change, pct):
        assert compute_price_change(Decimal(old), Decimal(new)) == (Decimal(change), Decimal(pct))


class TestPriceUpdate:
    """단가 변경 및 가격 이력 테스트."""

    async def test_update_price_records_history(
        self, client: AsyncClient, db: AsyncSession, admin_token, products
    ):
        product = products[0]
        res = await client.put(
            f"{URL}/{product.id}/price",
            json={"new_price": "138.05", "year": 2026, "notes": "Supplier increase"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200, res.text
        data = res.json()
        assert Decimal(data["old_price"]) == Decimal("125.50")
        assert Decimal(data["new_price"]) == Decimal("138.05")
        assert Decimal(data["price_change"]) == Decimal("12.55")
        assert Decimal(data["percentage_change"]) == Decimal("10.00")
        assert data["year"] == 2026
        assert data["created_by"] == "admin.user"

        res = await client.get(f"{URL}/{product.id}", headers=auth_header(admin_token))
        assert Decimal(res.json()["unit_cost"]) == Decimal("138.05")

        audit = (await db.execute(
            select(ProductAuditLog).where(ProductAuditLog.product_id == product.id)
        )).scalars().all()
        assert [a.action_type for a in audit] == ["UPDATE"]

    async def test_from_zero_price(self, client: AsyncClient, admin_token, products):
        res = await client.put(
            f"{URL}/{products[2].id}/price", json={"new_price": "99.00"},
            headers=auth_header(admin_token),
        )
        assert Decimal(res.json()["percentage_change"]) == Decimal("0")

    async def test_price_history_listing(self, client: AsyncClient, requester_token, admin_token, products):
        for price in ("130.00", "140.00"):
            await client.put(
                f"{URL}/{products[0].id}/price", json={"new_price": price},
                headers=auth_header(admin_token),
            )
        res = await client.get(f"{URL}/{products[0].id}/price-history", headers=auth_header(requester_token))
        assert res.status_code == 200
        history = res.json()
        assert len(history) == 2
        assert Decimal(history[0]["new_price"]) == Decimal("140.00")
        assert Decimal(history[0]["old_price"]) == Decimal("130.00")

    async def test_update_without_price_change_writes_no_history(
        self, client: AsyncClient, db: AsyncSession, admin_token, products
    ):
        res = await client.put(
            f"{URL}/{products[1].id}",
            json={"name": "Blue Ballpoint Pen", "unit_cost": "7.25"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["name"] == "Blue Ballpoint Pen"
        rows = (await db.execute(
            select(PriceHistory).where(PriceHistory.product_id == products[1].id)
        )).scalars().all()
        assert rows == []

    async def test_update_with_price_change_writes_history(
        self, client: AsyncClient, db: AsyncSession, admin_token, products
    ):
        await client.put(
            f"{URL}/{products[1].id}", json={"unit_cost": "8.00", "year": 2025},
            headers=auth_header(admin_token),
        )
        rows = (await db.execute(
            select(PriceHistory).where(PriceHistory.product_id == products[1].id)
        )).scalars().all()
        assert len(rows) == 1
        assert rows[0].year == 2025

    async def test_user_cannot_change_price(self, client: AsyncClient, requester_token, products):
        res = await client.put(
            f"{URL}/{products[0].id}/price", json={"new_price": "1.00"},
            headers=auth_header(requester_token),
        )
        assert res.status_code == 403

    async def test_negative_price_rejected(self, client: AsyncClient, admin_token, products):
        res = await client.put(
            f"{URL}/{products[0].id}/price", json={"new_price": "-1"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 422


class TestProductCrud:
    """상품 CRUD 및 감사 로그 테스트."""

    async def test_create_and_delete_audited(self, client: AsyncClient, admin_token, manager_token):
        res = await client.post(
            URL, json={"name": "Sticky Notes", "unit_cost": "35.00", "order_unit": "pad"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 201
        product_id = res.json()["id"]

        res = await client.delete(f"{URL}/{product_id}", headers=auth_header(admin_token))
        assert res.status_code == 200

        res = await client.get(
            f"{URL}/audit-log", params={"product_id": product_id},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 200
        actions = [row["action_type"] for row in res.json()["items"]]
        assert sorted(actions) == ["CREATE", "DELETE"]

    async def test_cannot_delete_product_in_use(
        self, client: AsyncClient, admin_token, requester_token, products
    ):
        await client.post(
            "/api/requisitions",
            json={"items": [{"product_id": products[0].id, "quantity": 1}]},
            headers=auth_header(requester_token),
        )
        res = await client.delete(f"{URL}/{products[0].id}", headers=auth_header(admin_token))
        assert res.status_code == 400

    async def test_list_and_search(self, client: AsyncClient, requester_token, products):
        res = await client.get(URL, params={"search": "pen"}, headers=auth_header(requester_token))
        assert res.status_code == 200
        assert [p["name"] for p in res.json()["items"]] == ["Blue Pen"]

    async def test_audit_stats_require_system_logs(
        self, client: AsyncClient, admin_token, manager_token, products
    ):
        await client.put(
            f"{URL}/{products[0].id}/price", json={"new_price": "130.00"},
            headers=auth_header(admin_token),
        )
        res = await client.post(f"{URL}/audit-log", headers=auth_header(manager_token))
        assert res.status_code == 403

        res = await client.post(f"{URL}/audit-log", headers=auth_header(admin_token))
        assert res.status_code == 200
        stats = res.json()
        assert stats["total"] == 1
        assert stats["by_action"] == {"UPDATE": 1}
        assert stats["recent"][0]["product_id"] == products[0].id

    async def test_audit_log_hidden_from_users(self, client: AsyncClient, requester_token):
        res = await client.get(f"{URL}/audit-log", headers=auth_header(requester_token))
        assert res.status_code == 403


class TestCategories:
    async def test_create_and_duplicate(self, client: AsyncClient, admin_token, requester_token):
        res = await client.post("/api/categories", json={"name": "Ink"}, headers=auth_header(admin_token))
        assert res.status_code == 201
        res = await client.post("/api/categories", json={"name": "Ink"}, headers=auth_header(admin_token))
        assert res.status_code == 409

        res = await client.get("/api/categories", headers=auth_header(requester_token))
        assert [c["name"] for c in res.json()] == ["Ink"]


class TestPriceImport:
    """Excel 가격 가져오기 테스트."""

    async def test_import_updates_valid_rows(
        self, client: AsyncClient, db: AsyncSession, admin_token, products
    ):
        content = _workbook([
            [products[0].id, 130],
            ["abc", 5],
            [9999, 1],
            [products[1].id, -2],
            [None, None],
        ])
        res = await client.post(
            f"{URL}/import-prices",
            files={"file": ("prices.xlsx", content, XLSX)},
            data={"year": "2026"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200, res.text
        data = res.json()
        assert data["updated"] == 1
        assert data["results"][0]["product_id"] == products[0].id
        assert sorted(e["row"] for e in data["errors"]) == [3, 4, 5]

        rows = (await db.execute(select(PriceHistory))).scalars().all()
        assert len(rows) == 1
        assert rows[0].year == 2026
        assert rows[0].new_price == Decimal("130.00")

    async def test_missing_column(self, client: AsyncClient, admin_token, products):
        content = _workbook([[1, 2]], headers=["id", "price"])
        res = await client.post(
            f"{URL}/import-prices",
            files={"file": ("prices.xlsx", content, XLSX)},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400
        assert "product_id" in res.json()["detail"]

    async def test_rejects_non_xlsx(self, client: AsyncClient, admin_token):
        res = await client.post(
            f"{URL}/import-prices",
            files={"file": ("prices.csv", b"product_id,new_price\n1,2\n", "text/csv")},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400

    async def test_template_download(self, client: AsyncClient, requester_token):
        res = await client.get(f"{URL}/import-prices/template", headers=auth_header(requester_token))
        assert res.status_code == 200
        assert res.headers["content-type"].startswith(XLSX)
        ws = load_workbook(BytesIO(res.content)).active
        assert [c.value for c in ws[1]] == ["product_id", "new_price"]
