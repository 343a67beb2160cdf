"""
Tests per gli endpoint REST (httpx + ASGITransport).
"""

from decimal import Decimal

import pytest

from app.api.v1 import invoices as invoices_api
from app.core.exceptions import AllocationExhausted
from conftest import create_customer, create_legacy_invoice


async def post_customer(client, name="Cartiera Rossi", email=None):
    payload = {"name": name}
    if email:
        payload["email"] = email
    response = await client.post("/api/v1/customers/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def sale_payload(customer_id, **overrides):
    payload = {
        "customer_id": customer_id,
        "items": [
            {"description": "Risma A4 80g", "quantity": "10", "unit_price": "4.50"},
            {"description": "Carta kraft", "sku": "KR-70", "quantity": "2", "unit_price": "12.25"},
        ],
    }
    payload.update(overrides)
    return payload


# ============================================================
# Tests per clienti
# ============================================================


class TestCustomersApi:

    @pytest.mark.anyio
    async def test_create_and_get_customer(self, client):
        created = await post_customer(client, email="ordini@cartierarossi.it")

        response = await client.get(f"/api/v1/customers/{created['id']}")

        assert response.status_code == 200
        assert response.json()["name"] == "Cartiera Rossi"

    @pytest.mark.anyio
    async def test_duplicate_email_is_rejected(self, client):
        await post_customer(client, email="ordini@cartierarossi.it")

        response = await client.post(
            "/api/v1/customers/",
            json={"name": "Altra Cartiera", "email": "ordini@cartierarossi.it"},
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "DUPLICATE_RESOURCE"

    @pytest.mark.anyio
    async def test_list_customers(self, client):
        await post_customer(client, "Acme Imballaggi")
        await post_customer(client, "Beta Cartotecnica")

        response = await client.get("/api/v1/customers/", params={"search": "acme"})

        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["name"] == "Acme Imballaggi"


# ============================================================
# Tests per fatture
# ============================================================


class TestInvoicesApi:

    @pytest.mark.anyio
    async def test_create_invoice_assigns_number(self, client):
        """Test la prima vendita riceve il numero iniziale, la seconda il successivo."""
        customer = await post_customer(client)

        first = await client.post("/api/v1/invoices/", json=sale_payload(customer["id"]))
        second = await client.post("/api/v1/invoices/", json=sale_payload(customer["id"]))

        assert first.status_code == 201, first.text
        body = first.json()
        assert body["invoiceNumber"] == "1000"
        assert second.json()["invoiceNumber"] == "1001"
        assert Decimal(body["totalAmount"]) == Decimal("69.50")
        assert Decimal(body["balance"]) == Decimal("69.50")
        assert Decimal(body["paidAmount"]) == Decimal("0")
        assert body["status"] == "OPEN"
        assert [item["position"] for item in body["items"]] == [1, 2]

    @pytest.mark.anyio
    async def test_invoice_number_in_payload_is_ignored(self, client):
        customer = await post_customer(client)

        response = await client.post(
            "/api/v1/invoices/",
            json=sale_payload(customer["id"], invoice_number="9999"),
        )

        assert response.json()["invoiceNumber"] == "1000"

    @pytest.mark.anyio
    async def test_create_invoice_continues_legacy_numbering(self, client, db):
        customer = await create_customer(db)
        await create_legacy_invoice(db, customer, "1042-3")

        response = await client.post("/api/v1/invoices/", json=sale_payload(str(customer.id)))

        assert response.json()["invoiceNumber"] == "1043"

    @pytest.mark.anyio
    async def test_unknown_customer(self, client):
        response = await client.post(
            "/api/v1/invoices/",
            json=sale_payload("00000000-0000-0000-0000-000000000000"),
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    @pytest.mark.anyio
    async def test_discount_larger_than_total(self, client):
        customer = await post_customer(client)

        response = await client.post(
            "/api/v1/invoices/",
            json=sale_payload(customer["id"], discount_amount="100.00"),
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "BUSINESS_VALIDATION_ERROR"

    @pytest.mark.anyio
    async def test_exhausted_allocation_returns_503(self, client, monkeypatch):
        customer = await post_customer(client)

        async def exhausted(db, invoice):
            raise AllocationExhausted(5, "1004")

        monkeypatch.setattr(invoices_api.invoice_service.allocator, "allocate", exhausted)

        response = await client.post("/api/v1/invoices/", json=sale_payload(customer["id"]))

        assert response.status_code == 503
        body = response.json()
        assert body["error_code"] == "INVOICE_NUMBER_EXHAUSTED"
        assert body["extra"] == {"attempts": 5, "last_candidate": "1004"}

    @pytest.mark.anyio
    async def test_get_by_number_list_and_delete(self, client):
        customer = await post_customer(client)
        created = (await client.post("/api/v1/invoices/", json=sale_payload(customer["id"]))).json()

        by_number = await client.get("/api/v1/invoices/number/1000")
        assert by_number.status_code == 200
        assert by_number.json()["id"] == created["id"]

        listing = await client.get("/api/v1/invoices/", params={"customer_id": customer["id"], "status": "OPEN"})
        assert listing.json()["total"] == 1

        deleted = await client.delete(f"/api/v1/invoices/{created['id']}")
        assert deleted.status_code == 204

        missing = await client.get(f"/api/v1/invoices/{created['id']}")
        assert missing.status_code == 404


# ============================================================
# Tests per manutenzione numerazione
# ============================================================


class TestInvoiceNumbersAdminApi:

    @pytest.mark.anyio
    async def test_preview_next(self, client, db):
        customer = await create_customer(db)
        await create_legacy_invoice(db, customer, "1999")

        response = await client.get("/api/v1/admin/invoice-numbers/next")

        assert response.status_code == 200
        assert response.json() == {"candidate": "2000", "available": True, "maxNumericBase": 1999}

    @pytest.mark.anyio
    async def test_repair_defaults_to_dry_run(self, client, db):
        customer = await create_customer(db)
        await create_legacy_invoice(db, customer, "1042")
        await create_legacy_invoice(db, customer, "1042-2", minutes=1)

        preview = await client.post("/api/v1/admin/invoice-numbers/repair")
        assert preview.status_code == 200
        assert preview.json()["dryRun"] is True
        assert preview.json()["merged"] == 1

        applied = await client.post("/api/v1/admin/invoice-numbers/repair", params={"dry_run": "false"})
        assert applied.json()["dryRun"] is False
        assert applied.json()["merged"] == 1

        again = await client.post("/api/v1/admin/invoice-numbers/repair", params={"dry_run": "false"})
        assert again.json()["isEmpty"] is True

    @pytest.mark.anyio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
