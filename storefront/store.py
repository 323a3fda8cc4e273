import uuid
from typing import List, Optional

import psycopg

from .db import get_conn
from .errors import StorageError
from .models import NewOrder, Order, Product

PRODUCT_COLUMNS = "id, owner_id, name, description, price, image_url, status, created_at"

ORDER_COLUMNS = (
    "o.id, o.product_id, o.seller_id, o.customer_name, o.customer_email, o.customer_address, "
    "o.quantity, o.total_amount, o.payment_status, o.payment_provider, o.payment_reference, "
    "o.created_at, p.name AS product_name, p.image_url AS product_image_url"
)


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _stringify_ids(row: dict, *keys: str) -> dict:
    for key in keys:
        if row.get(key) is not None:
            row[key] = str(row[key])
    return row


class PostgresStore:
    """
    Catalog lookups and order persistence.
    One connection per call; callers never see psycopg errors, only StorageError.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url

    def _fetch_product(self, product_id: str, active_only: bool) -> Optional[Product]:
        pid = _as_uuid(product_id)
        if pid is None:
            return None

        query = f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = %s"
        if active_only:
            query += " AND status = 'active'"

        try:
            with get_conn(self.database_url) as conn:
                row = conn.execute(query, (pid,)).fetchone()
        except psycopg.Error as e:
            raise StorageError("Product fetch error", product_id=product_id, error=str(e)) from e

        if not row:
            return None
        return Product.model_validate(_stringify_ids(row, "id"))

    def get_active_product(self, product_id: str) -> Optional[Product]:
        return self._fetch_product(product_id, active_only=True)

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._fetch_product(product_id, active_only=False)

    def list_active_products(self) -> List[Product]:
        try:
            with get_conn(self.database_url) as conn:
                rows = conn.execute(
                    f"SELECT {PRODUCT_COLUMNS} FROM products WHERE status = 'active' "
                    "ORDER BY created_at DESC"
                ).fetchall()
        except psycopg.Error as e:
            raise StorageError("Failed to fetch products", error=str(e)) from e

        return [Product.model_validate(_stringify_ids(row, "id")) for row in rows]

    def insert_order(self, order: NewOrder) -> Optional[str]:
        """
        Returns the new order id, or None when this (provider, reference)
        pair was already recorded.
        """
        try:
            with get_conn(self.database_url) as conn:
                row = conn.execute(
                    "INSERT INTO orders(product_id, seller_id, customer_name, customer_email, customer_address, "
                    "quantity, total_amount, payment_status, payment_provider, payment_reference) "
                    "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s) "
                    "ON CONFLICT (payment_provider, payment_reference) DO NOTHING "
                    "RETURNING id",
                    (
                        order.product_id,
                        order.seller_id,
                        order.customer_name,
                        order.customer_email,
                        order.customer_address,
                        order.quantity,
                        order.total_amount,
                        order.payment_status,
                        order.payment_provider,
                        order.payment_reference,
                    ),
                ).fetchone()
        except psycopg.Error as e:
            raise StorageError(
                "Failed to create order",
                payment_reference=order.payment_reference,
                error=str(e),
            ) from e

        if not row:
            return None
        return str(row["id"])

    def list_seller_orders(self, seller_id: str) -> List[Order]:
        try:
            with get_conn(self.database_url) as conn:
                rows = conn.execute(
                    f"SELECT {ORDER_COLUMNS} FROM orders o "
                    "JOIN products p ON p.id = o.product_id "
                    "WHERE o.seller_id = %s ORDER BY o.created_at DESC",
                    (seller_id,),
                ).fetchall()
        except psycopg.Error as e:
            raise StorageError("Failed to fetch orders", seller_id=seller_id, error=str(e)) from e

        return [Order.model_validate(_stringify_ids(row, "id", "product_id")) for row in rows]

    def get_seller_order(self, seller_id: str, order_id: str) -> Optional[Order]:
        oid = _as_uuid(order_id)
        if oid is None:
            return None

        try:
            with get_conn(self.database_url) as conn:
                row = conn.execute(
                    f"SELECT {ORDER_COLUMNS} FROM orders o "
                    "JOIN products p ON p.id = o.product_id "
                    "WHERE o.id = %s AND o.seller_id = %s",
                    (oid, seller_id),
                ).fetchone()
        except psycopg.Error as e:
            raise StorageError("Failed to fetch order", order_id=order_id, error=str(e)) from e

        if not row:
            return None
        return Order.model_validate(_stringify_ids(row, "id", "product_id"))

    def update_order_status(self, seller_id: str, order_id: str, status: str) -> bool:
        oid = _as_uuid(order_id)
        if oid is None:
            return False

        try:
            with get_conn(self.database_url) as conn:
                cur = conn.execute(
                    "UPDATE orders SET payment_status = %s WHERE id = %s AND seller_id = %s",
                    (status, oid, seller_id),
                )
                updated = cur.rowcount
        except psycopg.Error as e:
            raise StorageError("Failed to update order status", order_id=order_id, error=str(e)) from e

        return updated > 0
