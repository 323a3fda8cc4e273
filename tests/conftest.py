import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.main import create_app
from storefront.models import Order, Product
from storefront.processor import StripeProcessor
from storefront.settings import Settings

WEBHOOK_SECRET = "whsec_test_secret"
SELLER_ID = "seller-1"


class FakeStore:
    """In-memory catalog + orders; enforces the (provider, reference) uniqueness like the real table."""

    def __init__(self):
        self.products = {}
        self.orders = []
        self.lookups = []

    def add_product(self, product_id, price, status="active", owner_id=SELLER_ID, name="Camiseta"):
        self.products[product_id] = Product(
            id=product_id,
            owner_id=owner_id,
            name=name,
            price=Decimal(price),
            status=status,
        )

    def get_active_product(self, product_id):
        self.lookups.append(product_id)
        product = self.products.get(product_id)
        if product is None or product.status != "active":
            return None
        return product

    def get_product(self, product_id):
        self.lookups.append(product_id)
        return self.products.get(product_id)

    def list_active_products(self):
        return [p for p in self.products.values() if p.status == "active"]

    def insert_order(self, order):
        for existing in self.orders:
            if (existing.payment_provider, existing.payment_reference) == (
                order.payment_provider,
                order.payment_reference,
            ):
                return None
        order_id = f"order-{len(self.orders) + 1}"
        self.orders.append(
            Order(
                id=order_id,
                created_at=datetime.now(timezone.utc),
                product_name=self.products[order.product_id].name,
                **order.model_dump(),
            )
        )
        return order_id

    def list_seller_orders(self, seller_id):
        return [o for o in self.orders if o.seller_id == seller_id]

    def get_seller_order(self, seller_id, order_id):
        for o in self.orders:
            if o.id == order_id and o.seller_id == seller_id:
                return o
        return None

    def update_order_status(self, seller_id, order_id, status):
        order = self.get_seller_order(seller_id, order_id)
        if order is None:
            return False
        order.payment_status = status
        return True


class FakeProcessor(StripeProcessor):
    """Records charge creation; signature verification is the real Stripe routine."""

    def __init__(self):
        super().__init__("sk_test_fake")
        self.created = []

    def create_intent(self, amount, currency, metadata, idempotency_key=None):
        intent_id = f"pi_test_{len(self.created) + 1}"
        self.created.append(
            {
                "id": intent_id,
                "amount": amount,
                "currency": currency,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        return intent_id, f"{intent_id}_secret_abc"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def make_event(event_type="payment_intent.succeeded", intent_id="pi_test_1", amount=4990, metadata=None):
    return json.dumps(
        {
            "id": "evt_test_1",
            "object": "event",
            "type": event_type,
            "data": {
                "object": {
                    "id": intent_id,
                    "object": "payment_intent",
                    "amount": amount,
                    "currency": "brl",
                    "status": "succeeded",
                    "metadata": metadata if metadata is not None else default_metadata(),
                }
            },
        }
    )


def default_metadata(product_id="p1"):
    return {
        "product_id": product_id,
        "product_name": "Camiseta",
        "buyer_email": "ana@example.com",
        "buyer_name": "Ana Souza",
        "buyer_address": "Rua das Flores 10",
        "buyer_city": "Curitiba",
        "buyer_state": "PR",
        "buyer_zip_code": "80000-000",
    }


BUYER_INFO = {
    "fullName": "Ana Souza",
    "email": "ana@example.com",
    "streetAddress": "Rua das Flores 10",
    "city": "Curitiba",
    "state": "PR",
    "zipCode": "80000-000",
}


@pytest.fixture
def settings():
    return Settings(
        stripe_secret_key="sk_test_fake",
        stripe_publishable_key="pk_test_fake",
        stripe_webhook_secret=WEBHOOK_SECRET,
        log_json=False,
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def client(settings, store, processor):
    app = create_app(settings, store=store, processor=processor)
    return TestClient(app)
