"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Operators are denied admin operations (403)
- Order submission over HTTP (201 / 400 / 409)
- Spreadsheet upload/download and CSV export
- Settings endpoints
"""

import io

import pytest

from shopdesk.models import Client, Product
from shopdesk.services.storage import StorageError
from shopdesk.services import products_service
from shopdesk.services.spreadsheet_service import XLSX_MIME_TYPE, clients_template


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/products/low-stock"),
            ("GET", "/api/clients"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("DELETE", "/api/orders"),
            ("GET", "/api/settings/tickets"),
            ("GET", "/api/settings/users"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["details"]["orders"] == 0


# =============================================================================
# OPERATOR DENIED ADMIN OPERATIONS (403)
# =============================================================================


class TestOperatorDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/products"),
            ("PUT", "/api/products/some-id"),
            ("DELETE", "/api/products/some-id"),
            ("GET", "/api/products/export"),
            ("POST", "/api/products/import"),
            ("PUT", "/api/clients/some-id"),
            ("DELETE", "/api/clients/some-id"),
            ("GET", "/api/clients/template"),
            ("DELETE", "/api/orders/some-id"),
            ("DELETE", "/api/orders"),
            ("GET", "/api/orders/export"),
            ("PUT", "/api/settings/tickets"),
            ("GET", "/api/settings/users"),
            ("PUT", "/api/settings/users"),
            ("GET", "/api/settings/low-stock-threshold"),
        ],
    )
    def test_admin_only(self, client, operator_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=operator_headers, json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_operator_can_sell_and_register_clients(self, client, operator_headers):
        assert client.get("/api/products", headers=operator_headers).status_code == 200
        assert client.get("/api/settings/tickets", headers=operator_headers).status_code == 200

        resp = client.post("/api/clients", headers=operator_headers, json={
            "name": "Ana Gutierrez",
            "document_id": "3345123 CB",
            "phone": "72211223",
            "address": "Av. America 890",
        })
        assert resp.status_code == 201

    def test_operator_cannot_overwrite_client_through_post(self, client, db_session, operator_headers, make_client):
        existing = make_client(name="Ana Gutierrez")
        client_id = existing.id

        resp = client.post("/api/clients", headers=operator_headers, json={
            "id": client_id,
            "name": "Overwritten by operator",
            "document_id": "3345123 CB",
            "phone": "72211223",
            "address": "Av. America 890",
        })

        assert resp.status_code == 403
        db_session.expire_all()
        assert db_session.get(Client, client_id).name == "Ana Gutierrez"
        assert db_session.query(Client).count() == 1

    def test_admin_may_post_an_existing_client(self, client, db_session, admin_headers, make_client):
        client_id = make_client(name="Ana Gutierrez").id

        resp = client.post("/api/clients", headers=admin_headers, json={
            "id": client_id,
            "name": "Ana Gutierrez Rojas",
            "document_id": "3345123 CB",
            "phone": "72211223",
            "address": "Av. America 890",
        })

        assert resp.status_code == 201
        assert resp.json["id"] == client_id
        assert resp.json["name"] == "Ana Gutierrez Rojas"


# =============================================================================
# PRODUCTS / CLIENTS
# =============================================================================


class TestProductRoutes:

    PRODUCT = {"name": "Smart Shirt", "color": "Blue", "stock": 3, "cost_cents": 6000, "sale_price_cents": 10000}

    def test_crud(self, client, admin_headers):
        created = client.post("/api/products", headers=admin_headers, json=self.PRODUCT)
        assert created.status_code == 201
        product_id = created.json["id"]

        updated = client.put(f"/api/products/{product_id}", headers=admin_headers, json={"stock": 9})
        assert updated.status_code == 200
        assert updated.json["stock"] == 9

        listed = client.get("/api/products", headers=admin_headers)
        assert listed.json["count"] == 1

        assert client.get(f"/api/products/{product_id}", headers=admin_headers).json["name"] == "Smart Shirt"
        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 404
        assert client.get(f"/api/products/{product_id}", headers=admin_headers).status_code == 404

    def test_validation_error(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={**self.PRODUCT, "sale_price_cents": 1})
        assert resp.status_code == 400
        assert "cost" in resp.json["error"]

    def test_low_stock(self, client, admin_headers):
        client.post("/api/products", headers=admin_headers, json=self.PRODUCT)

        resp = client.get("/api/products/low-stock", headers=admin_headers)
        assert resp.json["count"] == 1

        resp = client.get("/api/products/low-stock?threshold=2", headers=admin_headers)
        assert resp.json["count"] == 0

    def test_export_and_template(self, client, admin_headers):
        client.post("/api/products", headers=admin_headers, json=self.PRODUCT)

        export = client.get("/api/products/export", headers=admin_headers)
        assert export.status_code == 200
        assert export.mimetype == XLSX_MIME_TYPE
        assert "attachment" in export.headers["Content-Disposition"]

        template = client.get("/api/products/template", headers=admin_headers)
        assert template.status_code == 200

    def test_storage_failure_is_503(self, client, admin_headers, monkeypatch):
        def broken(*args, **kwargs):
            raise StorageError()

        monkeypatch.setattr(products_service, "list_products", broken)

        resp = client.get("/api/products", headers=admin_headers)
        assert resp.status_code == 503
        assert resp.json == {"error": "Could not save or load data"}


class TestClientRoutes:

    def test_import_upload(self, client, admin_headers):
        resp = client.post(
            "/api/clients/import",
            headers=admin_headers,
            data={"file": (io.BytesIO(clients_template()), "clients.xlsx")},
            content_type="multipart/form-data",
        )

        assert resp.status_code == 200
        assert resp.json["created_count"] == 1
        assert client.get("/api/clients", headers=admin_headers).json["count"] == 1

    def test_import_without_file(self, client, admin_headers):
        resp = client.post("/api/clients/import", headers=admin_headers, data={}, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_invalid_phone(self, client, admin_headers):
        resp = client.post("/api/clients", headers=admin_headers, json={
            "name": "Ana", "document_id": "1", "phone": "12", "address": "x",
        })
        assert resp.status_code == 400


# =============================================================================
# ORDERS
# =============================================================================


class TestOrderRoutes:

    @pytest.fixture
    def catalog(self, make_product, make_client):
        return make_product(stock=5, sale_price_cents=10000), make_client()

    def _order(self, product, customer, qty=2, **extra):
        body = {
            "kind": "sale",
            "client_id": customer.id,
            "payment_method": "cash",
            "items": [{"product_id": product.id, "qty": qty}],
        }
        body.update(extra)
        return body

    def test_submit_sale(self, client, db_session, operator_headers, catalog):
        product, customer = catalog

        resp = client.post("/api/orders", headers=operator_headers, json=self._order(product, customer, discount_cents=5000))

        assert resp.status_code == 201
        assert resp.json["ticket_number"] == "000001"
        assert resp.json["total_cents"] == 15000
        assert resp.json["performed_by_username"] == "Maria"

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 3

        fetched = client.get(f"/api/orders/{resp.json['id']}", headers=operator_headers)
        assert fetched.json["items"][0]["qty"] == 2

    def test_insufficient_stock_is_409(self, client, db_session, operator_headers, catalog):
        product, customer = catalog

        resp = client.post("/api/orders", headers=operator_headers, json=self._order(product, customer, qty=6))

        assert resp.status_code == 409
        assert resp.json["details"]["items"][0]["available"] == 5
        assert client.get("/api/orders", headers=operator_headers).json["count"] == 0

    def test_invalid_payload_is_400(self, client, operator_headers, catalog):
        product, customer = catalog

        resp = client.post("/api/orders", headers=operator_headers, json=self._order(product, customer, payment_method="card"))
        assert resp.status_code == 400

        resp = client.post("/api/orders", headers=operator_headers, json=self._order(product, customer, discount_cents=999999))
        assert resp.status_code == 400

    @pytest.mark.parametrize("q", ["\u00b2", "%", "_"])
    def test_search_with_odd_characters(self, client, operator_headers, catalog, q):
        product, customer = catalog
        client.post("/api/orders", headers=operator_headers, json=self._order(product, customer, qty=1))

        resp = client.get("/api/orders", headers=operator_headers, query_string={"q": q})

        assert resp.status_code == 200
        assert resp.json["count"] == 0

    def test_history_filters(self, client, admin_headers, catalog):
        product, customer = catalog
        client.post("/api/orders", headers=admin_headers, json=self._order(product, customer, qty=1))
        client.post("/api/orders", headers=admin_headers,
                    json=self._order(product, customer, qty=1, kind="sales-order", payment_method="qr"))

        assert client.get("/api/orders?kind=sale", headers=admin_headers).json["count"] == 1
        assert client.get("/api/orders?method=qr,transfer", headers=admin_headers).json["count"] == 1
        assert client.get("/api/orders?from=2000-01-01&to=2999-12-31", headers=admin_headers).json["count"] == 2
        assert client.get("/api/orders?to=2000-01-01", headers=admin_headers).json["count"] == 0
        assert client.get("/api/orders?kind=refund", headers=admin_headers).status_code == 400
        assert client.get("/api/orders?from=yesterday", headers=admin_headers).status_code == 400

    def test_csv_export(self, client, admin_headers, catalog):
        product, customer = catalog
        client.post("/api/orders", headers=admin_headers, json=self._order(product, customer))

        resp = client.get("/api/orders/export", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        lines = resp.get_data(as_text=True).split("\r\n")
        assert lines[0].startswith('"Date","Type","Number"')
        assert '"sale","000001"' in lines[1]

    def test_delete_and_clear(self, client, admin_headers, catalog):
        product, customer = catalog
        first = client.post("/api/orders", headers=admin_headers, json=self._order(product, customer, qty=1))
        client.post("/api/orders", headers=admin_headers, json=self._order(product, customer, qty=1))

        assert client.delete(f"/api/orders/{first.json['id']}", headers=admin_headers).status_code == 200
        assert client.delete(f"/api/orders/{first.json['id']}", headers=admin_headers).status_code == 404

        resp = client.delete("/api/orders", headers=admin_headers)
        assert resp.json == {"ok": True, "deleted": 1}


# =============================================================================
# SETTINGS
# =============================================================================


class TestSettingsRoutes:

    def test_tickets(self, client, admin_headers):
        resp = client.put("/api/settings/tickets", headers=admin_headers, json={
            "company_name": "Boutique Sofia",
            "sale": {"next_number": 40},
        })
        assert resp.status_code == 200
        assert resp.json["sale"]["next_number"] == 40

        assert client.get("/api/settings/tickets", headers=admin_headers).json["company_name"] == "Boutique Sofia"

        bad = client.put("/api/settings/tickets", headers=admin_headers, json={"sale": {"next_number": 0}})
        assert bad.status_code == 400

    def test_users_round_trip(self, client, admin_headers):
        users = client.get("/api/settings/users", headers=admin_headers).json
        assert users["admin"] == {"username": "Admin", "has_password": True}

        users["operators"].append({"username": "Pedro", "password": "Pedro-pass1", "active": True})
        resp = client.put("/api/settings/users", headers=admin_headers, json=users)
        assert resp.status_code == 200
        assert [op["username"] for op in resp.json["operators"]] == ["Maria", "Pedro"]

        login = client.post("/api/auth/login", json={"role": "operator", "username": "pedro", "password": "Pedro-pass1"})
        assert login.status_code == 200

    def test_duplicate_username_is_409(self, client, admin_headers):
        resp = client.put("/api/settings/users", headers=admin_headers, json={
            "admin": {"username": "Admin"},
            "operators": [{"username": "ADMIN", "password": "Whatever-1"}],
        })
        assert resp.status_code == 409

    def test_deactivated_operator_loses_session(self, client, admin_headers, operator_headers):
        users = client.get("/api/settings/users", headers=admin_headers).json
        users["operators"][0]["active"] = False
        client.put("/api/settings/users", headers=admin_headers, json=users)

        assert client.get("/api/products", headers=operator_headers).status_code == 401

    def test_low_stock_threshold(self, client, admin_headers):
        assert client.get("/api/settings/low-stock-threshold", headers=admin_headers).json == {"threshold": 5}

        resp = client.put("/api/settings/low-stock-threshold", headers=admin_headers, json={"threshold": 12})
        assert resp.json == {"threshold": 12}

        bad = client.put("/api/settings/low-stock-threshold", headers=admin_headers, json={"threshold": "x"})
        assert bad.status_code == 400

        listed = client.put("/api/settings/low-stock-threshold", headers=admin_headers, json=[12])
        assert listed.status_code == 400
