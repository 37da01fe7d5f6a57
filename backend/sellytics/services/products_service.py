# backend/sellytics/services/products_service.py
"""
Products Service

STORE-SCOPED: every product belongs to the store in the caller's context.
A new product is seeded into inventory with its purchased batch as the
opening stock.
"""
from __future__ import annotations

import logging

from ..errors import PartialFailure, PersistenceError, ValidationError
from ..extensions import datastore
from ..models import Product
from ..validation import coerce_cents, coerce_int, coerce_text
from .context import StoreContext

logger = logging.getLogger(__name__)

PRODUCTS = "products"
INVENTORY = "inventory"


def create_product(
    ctx: StoreContext,
    name: str,
    *,
    purchase_price_cents: int = 0,
    purchase_qty: int = 0,
    selling_price_cents: int | None = None,
    description: str | None = None,
    supplier_name: str | None = None,
    device_id_template: str | None = None,
) -> Product:
    row = {
        "store_id": ctx.store_id,
        "name": coerce_text("name", name, max_length=255),
        "description": coerce_text("description", description, required=False),
        "purchase_price_cents": coerce_cents("purchase_price_cents", purchase_price_cents),
        "purchase_qty": coerce_int("purchase_qty", purchase_qty, minimum=0),
        "selling_price_cents": coerce_cents("selling_price_cents", selling_price_cents, required=False),
        "supplier_name": coerce_text("supplier_name", supplier_name, max_length=255, required=False),
        "device_id_template": coerce_text("device_id_template", device_id_template, max_length=64, required=False),
    }
    if row["selling_price_cents"] == 0:
        raise ValidationError("selling_price_cents must be > 0")

    product = datastore.insert(PRODUCTS, [row])[0]

    try:
        datastore.insert(INVENTORY, [{
            "store_id": ctx.store_id,
            "product_id": product.id,
            "available_qty": row["purchase_qty"],
            "quantity_sold": 0,
        }])
    except PersistenceError as exc:
        logger.error("Product %s was created but not seeded into inventory: %s", product.id, exc)
        raise PartialFailure(
            "create_product",
            [{"step": "product_written", "product_id": product.id}],
            exc,
        ) from exc

    logger.info("Product %s (%s) created in store %s", product.id, row["name"], ctx.store_id)
    return datastore.get(PRODUCTS, product.id)


def list_products(ctx: StoreContext) -> list[Product]:
    return datastore.select(PRODUCTS, {"store_id": ctx.store_id}, order_by=["name", "id"])
