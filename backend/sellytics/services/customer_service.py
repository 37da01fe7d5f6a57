# backend/sellytics/services/customer_service.py

from __future__ import annotations

import logging

from ..errors import NotFound
from ..extensions import datastore
from ..models import Customer
from ..validation import coerce_text
from .context import StoreContext

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"


def create_customer(ctx: StoreContext, full_name: str, *, phone: str | None = None, email: str | None = None) -> Customer:
    customer = datastore.insert(CUSTOMERS, [{
        "store_id": ctx.store_id,
        "full_name": coerce_text("full_name", full_name, max_length=255),
        "phone": coerce_text("phone", phone, max_length=32, required=False),
        "email": coerce_text("email", email, max_length=255, required=False),
    }])[0]
    logger.info("Customer %s created in store %s", customer.id, ctx.store_id)
    return customer


def get_customer(ctx: StoreContext, customer_id: int) -> Customer:
    rows = datastore.select(CUSTOMERS, {"id": customer_id, "store_id": ctx.store_id})
    if not rows:
        raise NotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return rows[0]


def list_customers(ctx: StoreContext) -> list[Customer]:
    return datastore.select(CUSTOMERS, {"store_id": ctx.store_id}, order_by=["full_name", "id"])
