"""
Product and client repository tests.

Verifies:
- Upsert creates with a fresh id, updates in place by id
- Delete reports unknown ids
- Data-entry rules (price vs cost, phone format, image shape)
- Low-stock listing
"""

import pytest

from shopdesk.models import Product, Client, Order
from shopdesk.services import products_service, clients_service, settings_service, orders_service
from shopdesk.services.auth_service import AuthenticatedUser
from shopdesk.services.orders_service import CartLine, OrderDraft
from shopdesk.validation import ValidationError, is_valid_phone, parse_amount_cents, format_amount


PRODUCT = {
    "name": "Smart Shirt",
    "color": "Blue",
    "stock": 25,
    "cost_cents": 12000,
    "sale_price_cents": 21000,
}


class TestProductUpsert:

    def test_create_assigns_new_id(self, db_session):
        product = products_service.upsert_product(payload=dict(PRODUCT))

        assert product.id
        assert db_session.query(Product).count() == 1
        assert product.to_dict()["image"] is None

    def test_update_by_id_keeps_row_count(self, db_session):
        product = products_service.upsert_product(payload=dict(PRODUCT))

        updated = products_service.upsert_product(payload={"stock": 7, "name": "Smart Shirt XL"}, product_id=product.id)

        assert updated.id == product.id
        assert updated.stock == 7
        assert updated.name == "Smart Shirt XL"
        assert updated.color == "Blue"
        assert db_session.query(Product).count() == 1

    def test_unknown_explicit_id_creates(self, db_session):
        product = products_service.upsert_product(payload=dict(PRODUCT), product_id="fixed-id")

        assert product.id == "fixed-id"
        assert products_service.get_product("fixed-id") is not None

    def test_missing_fields_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Missing required fields"):
            products_service.upsert_product(payload={"name": "Only a name"})

    def test_sale_price_below_cost_rejected(self, db_session):
        with pytest.raises(ValidationError, match="cannot be lower"):
            products_service.upsert_product(payload={**PRODUCT, "sale_price_cents": 11999})

    def test_partial_update_checks_price_against_stored_cost(self, db_session):
        product = products_service.upsert_product(payload=dict(PRODUCT))

        with pytest.raises(ValidationError):
            products_service.upsert_product(payload={"sale_price_cents": 100}, product_id=product.id)

    @pytest.mark.parametrize(
        "changes",
        [
            {"stock": -1},
            {"stock": 2.5},
            {"cost_cents": -5},
            {"name": "  "},
            {"sku": "not-a-field"},
            {"image": {"name": "a.pdf", "size": 10, "type": "application/pdf", "data_url": "data:"}},
        ],
    )
    def test_invalid_payloads(self, db_session, changes):
        with pytest.raises(ValidationError):
            products_service.upsert_product(payload={**PRODUCT, **changes})

    def test_image_is_stored(self, db_session):
        image = {"name": "shirt.png", "size": 2048, "type": "image/png", "data_url": "data:image/png;base64,AAAA"}

        product = products_service.upsert_product(payload={**PRODUCT, "image": image})

        db_session.expire_all()
        assert db_session.get(Product, product.id).image == image


class TestProductDelete:

    def test_delete_existing(self, db_session):
        product = products_service.upsert_product(payload=dict(PRODUCT))

        assert products_service.delete_product(product.id) is True
        assert products_service.get_product(product.id) is None

    def test_delete_unknown(self, db_session):
        assert products_service.delete_product("missing") is False


class TestLowStock:

    def test_default_threshold(self, db_session, make_product):
        make_product(name="A", stock=5)
        make_product(name="B", stock=0)
        make_product(name="C", stock=6)

        result = products_service.list_low_stock_products()

        assert result["threshold"] == 5
        assert [p["name"] for p in result["items"]] == ["B", "A"]

    def test_configured_threshold(self, db_session, make_product):
        make_product(name="A", stock=5)
        make_product(name="C", stock=6)
        settings_service.set_low_stock_threshold(10)

        assert products_service.list_low_stock_products()["count"] == 2
        assert products_service.list_low_stock_products(threshold=0)["count"] == 0


class TestProductListing:

    def test_pagination_envelope(self, db_session, make_product):
        for i in range(3):
            make_product(name=f"Product {i}")

        assert products_service.list_products()["count"] == 3

        page = products_service.list_products(page=2, per_page=2)
        assert page["count"] == 1
        assert page["pagination"]["total_pages"] == 2
        assert page["pagination"]["has_prev"] is True


class TestClients:

    CLIENT = {
        "name": "Juan Carlos Rojas",
        "document_id": "4567123 SC",
        "phone": "70012345",
        "address": "Calle Sucre 12, Santa Cruz",
    }

    def test_create_and_update(self, db_session):
        client = clients_service.upsert_client(payload=dict(self.CLIENT))

        updated = clients_service.upsert_client(payload={"address": "Av. Banzer 4"}, client_id=client.id)

        assert updated.id == client.id
        assert updated.address == "Av. Banzer 4"
        assert db_session.query(Client).count() == 1

    def test_document_id_not_unique(self, db_session):
        clients_service.upsert_client(payload=dict(self.CLIENT))
        clients_service.upsert_client(payload={**self.CLIENT, "name": "Sofia Rojas"})

        assert clients_service.list_clients()["count"] == 2

    def test_invalid_phone_rejected(self, db_session):
        with pytest.raises(ValidationError, match="phone"):
            clients_service.upsert_client(payload={**self.CLIENT, "phone": "12-34"})

    def test_delete_keeps_order_snapshot(self, db_session, make_product):
        client = clients_service.upsert_client(payload=dict(self.CLIENT))
        product = make_product()
        order = orders_service.create_order(
            OrderDraft(kind="sale", client_id=client.id, payment_method="cash",
                       lines=[CartLine(product_id=product.id, qty=1)]),
            performed_by=AuthenticatedUser(username="Admin", role="admin"),
        )

        assert clients_service.delete_client(client.id) is True
        assert clients_service.delete_client(client.id) is False

        db_session.expire_all()
        stored = db_session.get(Order, order.id)
        assert stored.client_id is None
        assert stored.client_name == "Juan Carlos Rojas"


class TestValueHelpers:

    @pytest.mark.parametrize(
        "phone,valid",
        [
            ("+591 765-43210", True),
            ("7001234", True),
            ("123456", False),
            ("1234567890123456", False),
            ("7001234a", False),
            ("", False),
            (None, False),
        ],
    )
    def test_phone(self, phone, valid):
        assert is_valid_phone(phone) is valid

    @pytest.mark.parametrize(
        "raw,cents",
        [
            (120, 12000),
            (12.5, 1250),
            ("1.234,50", 123450),
            ("120,00", 12000),
            ("12.50", 1250),
            ("1.234", 123),
            ("abc", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_amount(self, raw, cents):
        assert parse_amount_cents(raw) == cents

    def test_format_amount(self):
        assert format_amount(123450) == "1234.50"
        assert format_amount(5) == "0.05"
