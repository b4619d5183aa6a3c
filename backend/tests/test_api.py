"""
HTTP contract tests.

Verifies:
- Envelope shape { success, data?, error?: {code, message}, meta? }
- Status codes per error code
- Wire contract of items, close, stock movements and appointment cascade
"""

import pytest

from barbershop.extensions import db
from barbershop.models import Comanda
from conftest import TEST_PASSWORD


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/comandas"),
            ("POST", "/api/comandas/1/items"),
            ("PATCH", "/api/comandas/1/close"),
            ("POST", "/api/stock-movements"),
            ("PATCH", "/api/appointments/1/complete"),
            ("GET", "/api/commissions"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401
        assert resp.json["success"] is False
        assert resp.json["error"]["code"] == "UNAUTHORIZED"

    def test_login_me_logout(self, client, cashier):
        resp = client.post("/api/auth/login", json={"email": "cashier@test.local", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        token = resp.json["data"]["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.json["data"]["email"] == "cashier@test.local"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_login_bad_password(self, client, cashier):
        resp = client.post("/api/auth/login", json={"email": "cashier@test.local", "password": "wrong-pass1"})
        assert resp.status_code == 401

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"


# =============================================================================
# COMANDA ITEMS
# =============================================================================


class TestItemsEndpoint:

    def test_add_item_returns_201(self, client, comanda, haircut, cashier_headers):
        resp = client.post(
            f"/api/comandas/{comanda.id}/items",
            json={"service_id": haircut.id, "quantity": 2, "unit_price": 30.5},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        assert resp.json["success"] is True
        assert resp.json["data"]["total_price"] == 61.0
        assert resp.json["data"]["item_type"] == "service"

    @pytest.mark.parametrize(
        "body",
        [
            {"quantity": 1, "unit_price": 10},
            {"service_id": 1, "product_id": 1, "quantity": 1, "unit_price": 10},
            {"service_id": 1, "quantity": 0, "unit_price": 10},
            {"service_id": 1, "quantity": 1.5, "unit_price": 10},
            {"service_id": 1, "quantity": 1, "unit_price": -1},
            {"service_id": 1, "quantity": 1},
        ],
    )
    def test_invalid_body_is_422(self, client, comanda, cashier_headers, body):
        resp = client.post(f"/api/comandas/{comanda.id}/items", json=body, headers=cashier_headers)
        assert resp.status_code == 422
        assert resp.json["error"]["code"] == "VALIDATION_ERROR"

    def test_client_forbidden(self, client, comanda, haircut, client_headers):
        resp = client.post(
            f"/api/comandas/{comanda.id}/items",
            json={"service_id": haircut.id, "quantity": 1, "unit_price": 10},
            headers=client_headers,
        )
        assert resp.status_code == 403
        assert resp.json["error"]["code"] == "FORBIDDEN"

    def test_unknown_comanda_is_404(self, client, haircut, cashier_headers):
        resp = client.post(
            "/api/comandas/999999/items",
            json={"service_id": haircut.id, "quantity": 1, "unit_price": 10},
            headers=cashier_headers,
        )
        assert resp.status_code == 404
        assert resp.json["error"]["code"] == "NOT_FOUND"

    def test_delete_item_returns_null_data(self, client, comanda, haircut, cashier_headers):
        created = client.post(
            f"/api/comandas/{comanda.id}/items",
            json={"service_id": haircut.id, "quantity": 1, "unit_price": 10},
            headers=cashier_headers,
        ).json["data"]

        resp = client.delete(f"/api/comandas/{comanda.id}/items/{created['id']}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json == {"success": True, "data": None}


# =============================================================================
# CLOSE
# =============================================================================


class TestCloseEndpoint:

    @pytest.fixture
    def billed(self, client, comanda, haircut, beard, cashier_headers):
        for service, price in ((haircut, 60), (beard, 40)):
            client.post(
                f"/api/comandas/{comanda.id}/items",
                json={"service_id": service.id, "quantity": 1, "unit_price": price},
                headers=cashier_headers,
            )
        return comanda

    def test_close_returns_comanda_with_commissions(self, client, billed, cashier_headers):
        resp = client.patch(
            f"/api/comandas/{billed.id}/close",
            json={"payment_method": "Cartão de Crédito", "final_total": 100},
            headers=cashier_headers,
        )
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["status"] == "closed"
        assert data["payment_method"] == "credit_card"
        assert data["final_total"] == 100.0
        assert data["total_commission"] == 40.0
        assert len(data["commissions"]) == 2
        assert [item["commission_value"] for item in data["items"]] == [24.0, 16.0]

    def test_put_is_accepted(self, client, billed, cashier_headers):
        resp = client.put(f"/api/comandas/{billed.id}/close", json={"payment_method": "pix"}, headers=cashier_headers)
        assert resp.status_code == 200

    def test_second_close_is_422(self, client, billed, cashier_headers):
        client.patch(f"/api/comandas/{billed.id}/close", json={"payment_method": "cash"}, headers=cashier_headers)
        resp = client.patch(f"/api/comandas/{billed.id}/close", json={"payment_method": "cash"}, headers=cashier_headers)
        assert resp.status_code == 422

    def test_missing_payment_method_is_422(self, client, billed, cashier_headers):
        resp = client.patch(f"/api/comandas/{billed.id}/close", json={}, headers=cashier_headers)
        assert resp.status_code == 422

    def test_final_total_mismatch_is_422(self, client, billed, cashier_headers):
        resp = client.patch(
            f"/api/comandas/{billed.id}/close",
            json={"payment_method": "cash", "final_total": 90},
            headers=cashier_headers,
        )
        assert resp.status_code == 422
        assert db.session.get(Comanda, billed.id).status == "open"

    def test_recalculate_admin_only(self, client, billed, cashier_headers, admin_headers):
        client.patch(f"/api/comandas/{billed.id}/close", json={"payment_method": "cash"}, headers=cashier_headers)

        denied = client.post(f"/api/comandas/{billed.id}/recalculate-commission", headers=cashier_headers)
        assert denied.status_code == 403

        resp = client.post(f"/api/comandas/{billed.id}/recalculate-commission", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["total_commission"] == 40.0


# =============================================================================
# COMANDAS
# =============================================================================


class TestComandasEndpoint:

    def test_open_then_conflict(self, client, appointment, cashier_headers):
        first = client.post("/api/comandas", json={"appointment_id": appointment.id}, headers=cashier_headers)
        assert first.status_code == 201
        assert first.json["data"]["total"] == 60.0

        second = client.post("/api/comandas", json={"appointment_id": appointment.id}, headers=cashier_headers)
        assert second.status_code == 409
        assert second.json["error"]["code"] == "CONFLICT"

    def test_list_is_scoped(self, client, comanda, employee_headers, other_employee_headers):
        mine = client.get("/api/comandas", headers=employee_headers)
        assert [c["id"] for c in mine.json["data"]] == [comanda.id]
        assert mine.json["meta"]["count"] == 1

        theirs = client.get("/api/comandas", headers=other_employee_headers)
        assert theirs.json["data"] == []

    def test_adjust(self, client, comanda, haircut, cashier_headers):
        client.post(
            f"/api/comandas/{comanda.id}/items",
            json={"service_id": haircut.id, "quantity": 1, "unit_price": 60},
            headers=cashier_headers,
        )
        resp = client.patch(f"/api/comandas/{comanda.id}", json={"discount": "5.00", "taxes": 1}, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["final_total"] == 56.0

    def test_bad_date_filter_is_422(self, client, comanda, cashier_headers):
        resp = client.get("/api/comandas?start_date=yesterday", headers=cashier_headers)
        assert resp.status_code == 422


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================


class TestStockEndpoint:

    def test_record_returns_new_stock_in_meta(self, client, pomade, cashier_headers):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": pomade.id, "quantity": 4, "movement_type": "purchase", "reference_id": "NF-1"},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        assert resp.json["meta"]["newStockQuantity"] == 7
        assert resp.json["data"]["product"]["sku"] == "POM-001"

    def test_insufficient_stock_is_422(self, client, pomade, cashier_headers):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": pomade.id, "quantity": -5, "movement_type": "sale"},
            headers=cashier_headers,
        )
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        "body",
        [
            {"quantity": 1, "movement_type": "purchase"},
            {"product_id": 1, "quantity": 0, "movement_type": "purchase"},
            {"product_id": 1, "quantity": "2.5", "movement_type": "purchase"},
            {"product_id": 1, "quantity": 1, "movement_type": "gift"},
        ],
    )
    def test_invalid_body_is_422(self, client, cashier_headers, body):
        resp = client.post("/api/stock-movements", json=body, headers=cashier_headers)
        assert resp.status_code == 422

    def test_client_forbidden(self, client, pomade, client_headers):
        resp = client.post(
            "/api/stock-movements",
            json={"product_id": pomade.id, "quantity": 1, "movement_type": "purchase"},
            headers=client_headers,
        )
        assert resp.status_code == 403

    def test_history(self, client, pomade, cashier_headers):
        client.post(
            "/api/stock-movements",
            json={"product_id": pomade.id, "quantity": 1, "movement_type": "loss"},
            headers=cashier_headers,
        )
        resp = client.get(f"/api/stock-movements?product_id={pomade.id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert [m["quantity"] for m in resp.json["data"]] == [-1]


# =============================================================================
# APPOINTMENTS & COMMISSIONS
# =============================================================================


class TestAppointmentEndpoint:

    def test_complete_closes_comanda(self, client, appointment, comanda, haircut, employee_headers):
        client.post(
            f"/api/comandas/{comanda.id}/items",
            json={"service_id": haircut.id, "quantity": 1, "unit_price": 60},
            headers=employee_headers,
        )
        resp = client.patch(
            f"/api/appointments/{appointment.id}/complete",
            json={"payment_method": "dinheiro"},
            headers=employee_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "completed"
        assert resp.json["data"]["comanda"]["status"] == "closed"
        assert resp.json["data"]["comanda"]["payment_method"] == "cash"

    def test_client_cannot_complete(self, client, appointment, client_headers):
        resp = client.patch(f"/api/appointments/{appointment.id}/complete", headers=client_headers)
        assert resp.status_code == 403

    def test_client_cancels_own(self, client, appointment, comanda, client_headers):
        resp = client.patch(f"/api/appointments/{appointment.id}/cancel", headers=client_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["comanda"]["status"] == "canceled"


def test_commissions_listing(client, comanda, haircut, cashier_headers, employee_headers, client_headers):
    client.post(
        f"/api/comandas/{comanda.id}/items",
        json={"service_id": haircut.id, "quantity": 1, "unit_price": 60},
        headers=cashier_headers,
    )
    client.patch(f"/api/comandas/{comanda.id}/close", json={"payment_method": "cash"}, headers=cashier_headers)

    resp = client.get("/api/commissions", headers=employee_headers)
    assert resp.status_code == 200
    assert resp.json["meta"]["summary"]["pending"] == 24.0

    assert client.get("/api/commissions", headers=client_headers).status_code == 403
