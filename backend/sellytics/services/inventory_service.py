# Overview: Service-layer operations for inventory counters; owns the stock invariants.

# backend/sellytics/services/inventory_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app

from ..errors import (
    DuplicateDeviceId,
    InsufficientStock,
    NotFound,
    PartialFailure,
    PersistenceError,
    SaleError,
    ValidationError,
)
from ..extensions import datastore
from ..models import InventoryRecord, Product
from ..time_utils import utcnow
from .context import StoreContext
"""
Sellytics Inventory Invariants (authoritative)

- One InventoryRecord per (store_id, product_id).
- available_qty >= 0 at all times. A change that would cross zero is
  refused by a single conditional UPDATE; it is never written and then
  repaired.
- quantity_sold grows with new sales. Edits never touch it; deletes only
  lower it when REVERSE_QUANTITY_SOLD_ON_DELETE is set.
- Restock only ever adds stock (added_qty > 0).
- Device identifiers are unique within a line and within a sale; empty
  identifiers are untracked units.
"""

logger = logging.getLogger(__name__)

PRODUCTS = "products"
INVENTORY = "inventory"


def get_product(ctx: StoreContext, product_id: int) -> Product:
    rows = datastore.select(PRODUCTS, {"id": product_id, "store_id": ctx.store_id})
    if not rows:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return rows[0]


def get_inventory_record(ctx: StoreContext, product_id: int, *, for_update: bool = False) -> InventoryRecord | None:
    rows = datastore.select(
        INVENTORY,
        {"store_id": ctx.store_id, "product_id": product_id},
        for_update=for_update,
    )
    return rows[0] if rows else None


def check_availability(ctx: StoreContext, product_id: int, requested_qty: int) -> InventoryRecord | None:
    """
    Fresh-read availability check.

    Raises InsufficientStock when requested_qty exceeds available_qty (a
    product with no inventory row has nothing available). This is the early,
    user-facing check; apply_sale_delta() re-validates atomically.
    """
    if requested_qty <= 0:
        raise ValidationError("requested quantity must be > 0")

    product = get_product(ctx, product_id)
    record = get_inventory_record(ctx, product_id)
    available = record.available_qty if record else 0
    if requested_qty > available:
        raise InsufficientStock(product_id, available, requested_qty, product.name)
    return record


def apply_sale_delta(ctx: StoreContext, product_id: int, qty_delta: int, *, sold_delta: int = 0) -> None:
    """
    Apply a signed stock change in one conditional UPDATE.

    qty_delta < 0: stock leaves (new sale, quantity increased on edit)
    qty_delta > 0: stock returns (delete, quantity decreased on edit)
    sold_delta:    change to quantity_sold (new sales pass +qty)

    Zero affected rows means the row is missing or available_qty would go
    negative; nothing is written in either case.
    """
    if qty_delta == 0 and sold_delta == 0:
        return

    affected = datastore.adjust(
        INVENTORY,
        {"available_qty": qty_delta, "quantity_sold": sold_delta},
        {"store_id": ctx.store_id, "product_id": product_id},
        floors={"available_qty": 0, "quantity_sold": 0},
        patch={"last_updated": utcnow()},
    )
    if affected:
        return

    record = get_inventory_record(ctx, product_id)
    if record is None:
        raise NotFound(
            f"No inventory record for product {product_id}",
            details={"product_id": product_id},
        )
    if qty_delta >= 0:
        raise SaleError(
            f"quantity_sold for product {product_id} would go negative",
            details={"product_id": product_id, "quantity_sold": record.quantity_sold, "sold_delta": sold_delta},
        )
    product = get_product(ctx, product_id)
    raise InsufficientStock(product_id, record.available_qty, -qty_delta, product.name)


def restock(
    ctx: StoreContext,
    product_id: int,
    added_qty: int,
    *,
    purchase_price_cents: int | None = None,
) -> InventoryRecord:
    """
    Add a purchased batch to stock.

    The batch (size and, when given, total price) is recorded on the product
    first, then available_qty is incremented. A product that was never
    seeded gets its inventory row here.
    """
    if isinstance(added_qty, bool) or not isinstance(added_qty, int) or added_qty <= 0:
        raise ValidationError("Restock quantity must be greater than zero")

    get_product(ctx, product_id)

    batch = {"purchase_qty": added_qty}
    if purchase_price_cents is not None:
        if purchase_price_cents < 0:
            raise ValidationError("purchase_price_cents must be >= 0")
        batch["purchase_price_cents"] = purchase_price_cents
    datastore.update(PRODUCTS, batch, {"id": product_id, "store_id": ctx.store_id})

    try:
        affected = datastore.adjust(
            INVENTORY,
            {"available_qty": added_qty},
            {"store_id": ctx.store_id, "product_id": product_id},
            patch={"last_updated": utcnow()},
        )
        if not affected:
            datastore.insert(INVENTORY, [{
                "store_id": ctx.store_id,
                "product_id": product_id,
                "available_qty": added_qty,
                "quantity_sold": 0,
            }])
    except PersistenceError as exc:
        logger.error("Restock of product %s recorded the batch but not the stock: %s", product_id, exc)
        raise PartialFailure(
            "restock",
            [{"step": "product_batch_recorded", "product_id": product_id, **batch}],
            exc,
        ) from exc

    logger.info("Restocked product %s in store %s by %s", product_id, ctx.store_id, added_qty)
    return get_inventory_record(ctx, product_id)


def seed_inventory(ctx: StoreContext) -> list[InventoryRecord]:
    """Create missing inventory rows (available = purchase_qty, sold = 0)."""
    products = datastore.select(PRODUCTS, {"store_id": ctx.store_id}, order_by=["id"])
    seeded = {r.product_id for r in datastore.select(INVENTORY, {"store_id": ctx.store_id})}
    rows = [
        {
            "store_id": ctx.store_id,
            "product_id": p.id,
            "available_qty": p.purchase_qty or 0,
            "quantity_sold": 0,
        }
        for p in products
        if p.id not in seeded
    ]
    if not rows:
        return []
    created = datastore.insert(INVENTORY, rows)
    logger.info("Seeded %s products into inventory for store %s", len(created), ctx.store_id)
    return created


def list_inventory(ctx: StoreContext) -> list[InventoryRecord]:
    return datastore.select(INVENTORY, {"store_id": ctx.store_id}, order_by=["product_id"])


def list_low_stock(ctx: StoreContext, threshold: int | None = None) -> list[InventoryRecord]:
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    records = datastore.select(INVENTORY, {"store_id": ctx.store_id}, order_by=["available_qty", "product_id"])
    return [r for r in records if r.available_qty <= threshold]


# =============================================================================
# DEVICE IDENTIFIERS
# =============================================================================

@dataclass
class DeviceSelection:
    device_ids: list[str] = field(default_factory=list)
    device_sizes: list[str] = field(default_factory=list)
    quantity: int = 1


def validate_device_ids(
    device_ids: Iterable[str] | None,
    device_sizes: Iterable[str] | None = None,
    quantity: int | None = None,
    *,
    taken: Iterable[str] = (),
    taken_scope: str = "sale",
) -> DeviceSelection:
    """
    Normalize a line's device identifiers and derive its quantity.

    - Identifiers are stripped; empty ones are untracked units and dropped
      (with their size tag).
    - A non-empty identifier may appear once per line, and must not be in
      `taken` (identifiers already used elsewhere in `taken_scope`).
    - quantity=None means "derive it": the count of identifiers, or 1.
      An explicit quantity wins but cannot be smaller than the number of
      identifiers.
    """
    raw_ids = list(device_ids or [])
    raw_sizes = list(device_sizes or [])
    taken_ids = set(taken)

    ids: list[str] = []
    sizes: list[str] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_ids):
        device_id = (raw or "").strip()
        if not device_id:
            continue
        if device_id in seen:
            raise DuplicateDeviceId(device_id, "line")
        if device_id in taken_ids:
            raise DuplicateDeviceId(device_id, taken_scope)
        seen.add(device_id)
        ids.append(device_id)
        size = raw_sizes[idx] if idx < len(raw_sizes) else ""
        sizes.append((size or "").strip())

    if quantity is None:
        quantity = len(ids) or 1
    elif quantity <= 0:
        raise ValidationError("quantity must be > 0")
    elif len(ids) > quantity:
        raise ValidationError(
            f"{len(ids)} device IDs given for a quantity of {quantity}",
            details={"device_count": len(ids), "quantity": quantity},
        )

    return DeviceSelection(device_ids=ids, device_sizes=sizes, quantity=quantity)
