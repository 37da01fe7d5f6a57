"""
Sale transaction coordinator

WHY: A checkout touches three tables (sale_groups, sale_lines, inventory)
through independent data store calls. This module sequences those calls so
that a sale is either fully recorded, fully compensated, or explicitly
flagged for reconciliation. It never leaves silent inconsistency.

ORDERING:
- All validation and availability checks run before the first write.
- Stock is reserved first, one conditional UPDATE per product (the same
  product on two lines is aggregated into one reservation).
- The group header is written and yields an id before its lines.
- On failure, completed steps are undone newest-first; if an undo fails the
  caller gets PartialFailure listing what is still applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from flask import current_app

from ..errors import LedgerError, NotFound, PartialFailure, PersistenceError, ValidationError
from ..extensions import datastore
from ..models import Product, SaleGroup, SaleLine
from ..validation import coerce_cents, coerce_int, coerce_text, coerce_text_list
from .context import StoreContext
from .inventory_service import (
    apply_sale_delta,
    check_availability,
    get_product,
    validate_device_ids,
)

logger = logging.getLogger(__name__)

SALE_GROUPS = "sale_groups"
SALE_LINES = "sale_lines"


@dataclass
class LineRequest:
    """
    One cart line as submitted by the caller.

    quantity=None derives the quantity from the device identifiers;
    unit_price_cents=None takes the product's selling price.
    """
    product_id: int | None
    quantity: int | None = None
    unit_price_cents: int | None = None
    device_ids: list[str] = field(default_factory=list)
    device_sizes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "LineRequest":
        if not isinstance(data, dict):
            raise ValidationError("Each sale line must be an object")
        return cls(
            product_id=coerce_int("product_id", data.get("product_id"), required=False),
            quantity=coerce_int("quantity", data.get("quantity"), required=False),
            unit_price_cents=coerce_cents("unit_price_cents", data.get("unit_price_cents"), required=False),
            device_ids=coerce_text_list("device_ids", data.get("device_ids")) or [],
            device_sizes=coerce_text_list("device_sizes", data.get("device_sizes")) or [],
        )


@dataclass
class LinePatch:
    """Fields of an existing sale line that may be edited; None keeps the current value."""
    quantity: int | None = None
    unit_price_cents: int | None = None
    device_ids: list[str] | None = None
    device_sizes: list[str] | None = None
    payment_method: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "LinePatch":
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        allowed = {"quantity", "unit_price_cents", "device_ids", "device_sizes", "payment_method"}
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
        return cls(
            quantity=coerce_int("quantity", data.get("quantity"), required=False),
            unit_price_cents=coerce_cents("unit_price_cents", data.get("unit_price_cents"), required=False),
            device_ids=coerce_text_list("device_ids", data.get("device_ids")),
            device_sizes=coerce_text_list("device_sizes", data.get("device_sizes")),
            payment_method=coerce_text("payment_method", data.get("payment_method"), max_length=32, required=False),
        )


@dataclass
class _PreparedLine:
    product: Product
    quantity: int
    unit_price_cents: int
    device_ids: list[str]
    device_sizes: list[str]

    @property
    def amount_cents(self) -> int:
        return self.quantity * self.unit_price_cents


class _Steps:
    """Undo log for a multi-step write."""

    def __init__(self, operation: str):
        self.operation = operation
        self._done: list[tuple[dict, Callable[[], None]]] = []

    def record(self, description: dict, undo: Callable[[], None]) -> None:
        self._done.append((description, undo))

    def unwind(self, cause: Exception) -> None:
        """
        Undo completed steps newest-first. Every undo is attempted; when
        any of them fails, PartialFailure lists the steps still applied.
        """
        still_applied = []
        last_exc = None
        for description, undo in reversed(self._done):
            try:
                undo()
            except LedgerError as undo_exc:
                logger.error("%s: compensation of %s failed: %s", self.operation, description, undo_exc)
                still_applied.insert(0, description)
                last_exc = undo_exc
        self._done = []
        if still_applied:
            raise PartialFailure(self.operation, still_applied, cause) from last_exc


def _require_payment_method(payment_method: str | None) -> str:
    method = str(payment_method).strip() if payment_method is not None else ""
    if not method:
        raise ValidationError("Please select a payment method.")
    if len(method) > 32:
        raise ValidationError("payment_method exceeds max length 32")
    return method


def _flag_for_reconciliation(group_id: int) -> None:
    try:
        datastore.update(SALE_GROUPS, {"needs_reconciliation": True}, {"id": group_id})
    except PersistenceError:
        logger.exception("Could not flag sale group %s for reconciliation", group_id)


# =============================================================================
# READS
# =============================================================================

def get_sale_group(ctx: StoreContext, group_id: int) -> SaleGroup:
    rows = datastore.select(SALE_GROUPS, {"id": group_id, "store_id": ctx.store_id})
    if not rows:
        raise NotFound(f"Sale group {group_id} not found", details={"sale_group_id": group_id})
    return rows[0]


def get_sale_line(ctx: StoreContext, line_id: int) -> SaleLine:
    rows = datastore.select(SALE_LINES, {"id": line_id, "store_id": ctx.store_id})
    if not rows:
        raise NotFound(f"Sale line {line_id} not found", details={"sale_line_id": line_id})
    return rows[0]


def list_sale_groups(ctx: StoreContext, limit: int = 50) -> list[SaleGroup]:
    return datastore.select(
        SALE_GROUPS,
        {"store_id": ctx.store_id},
        order_by=["-created_at", "-id"],
        limit=limit,
    )


def device_ids_in_use(ctx: StoreContext, *, exclude_line_ids: Iterable[int] = ()) -> set[str]:
    excluded = set(exclude_line_ids)
    in_use: set[str] = set()
    for line in datastore.select(SALE_LINES, {"store_id": ctx.store_id}):
        if line.id not in excluded:
            in_use.update(line.device_ids or [])
    return in_use


def find_sale_lines_by_device_id(ctx: StoreContext, device_id: str) -> list[SaleLine]:
    needle = (device_id or "").strip()
    if not needle:
        raise ValidationError("Device ID cannot be empty")
    lines = datastore.select(SALE_LINES, {"store_id": ctx.store_id}, order_by=["-id"])
    return [line for line in lines if needle in (line.device_ids or [])]


# =============================================================================
# CREATE
# =============================================================================

def _prepare_lines(ctx: StoreContext, lines: list[LineRequest]) -> list[_PreparedLine]:
    store_wide = current_app.config.get("ENFORCE_STORE_WIDE_DEVICE_IDS", False)
    taken = device_ids_in_use(ctx) if store_wide else set()
    in_this_sale: set[str] = set()

    prepared = []
    for line in lines:
        if not line.product_id:
            raise ValidationError("Please fill in all required fields for each sale line.")
        product = get_product(ctx, line.product_id)

        unit_price = line.unit_price_cents
        if unit_price is None:
            unit_price = product.selling_price_cents
        if unit_price is None or unit_price <= 0:
            raise ValidationError(
                "unit_price_cents must be > 0",
                details={"product_id": product.id},
            )

        selection = validate_device_ids(
            line.device_ids,
            line.device_sizes,
            line.quantity,
            taken=taken | in_this_sale,
            taken_scope="store" if store_wide else "sale",
        )
        in_this_sale.update(selection.device_ids)

        prepared.append(_PreparedLine(
            product=product,
            quantity=selection.quantity,
            unit_price_cents=unit_price,
            device_ids=selection.device_ids,
            device_sizes=selection.device_sizes,
        ))
    return prepared


def create_sale(
    ctx: StoreContext,
    lines: list[LineRequest],
    payment_method: str,
    *,
    request_id: str | None = None,
) -> SaleGroup:
    """
    Record one checkout: a sale group, its lines, and the stock they take.

    Nothing is written unless every line validates and every product has
    enough stock. A repeated request_id returns the group created the first
    time instead of selling twice.
    """
    method = _require_payment_method(payment_method)
    if not lines:
        raise ValidationError("Cannot create a sale with no lines")

    if request_id:
        existing = datastore.select(SALE_GROUPS, {"store_id": ctx.store_id, "request_id": request_id})
        if existing:
            return existing[0]

    prepared = _prepare_lines(ctx, lines)

    requested: dict[int, int] = {}
    for line in prepared:
        requested[line.product.id] = requested.get(line.product.id, 0) + line.quantity
    for product_id, qty in requested.items():
        check_availability(ctx, product_id, qty)

    total = sum(line.amount_cents for line in prepared)

    steps = _Steps("create_sale")
    group_id = None
    try:
        for product_id in sorted(requested):
            qty = requested[product_id]
            apply_sale_delta(ctx, product_id, -qty, sold_delta=qty)
            steps.record(
                {"step": "stock_reserved", "product_id": product_id, "quantity": qty},
                lambda pid=product_id, q=qty: apply_sale_delta(ctx, pid, q, sold_delta=-q),
            )

        group = datastore.insert(SALE_GROUPS, [{
            "store_id": ctx.store_id,
            "total_amount_cents": total,
            "payment_method": method,
            "request_id": request_id,
            "created_by_user_id": ctx.user_id,
        }])[0]
        group_id = group.id
        steps.record(
            {"step": "sale_group_written", "sale_group_id": group_id},
            lambda gid=group_id: datastore.delete(SALE_GROUPS, {"id": gid}),
        )

        datastore.insert(SALE_LINES, [
            {
                "sale_group_id": group_id,
                "store_id": ctx.store_id,
                "product_id": line.product.id,
                "quantity": line.quantity,
                "unit_price_cents": line.unit_price_cents,
                "amount_cents": line.amount_cents,
                "device_ids": line.device_ids,
                "device_sizes": line.device_sizes,
                "payment_method": method,
            }
            for line in prepared
        ])
    except LedgerError as exc:
        try:
            steps.unwind(exc)
        except PartialFailure:
            if group_id is not None:
                _flag_for_reconciliation(group_id)
            raise
        raise

    logger.info(
        "Sale group %s created in store %s: %s line(s), total %s, paid by %s",
        group_id, ctx.store_id, len(prepared), total, method,
    )
    return get_sale_group(ctx, group_id)


# =============================================================================
# EDIT
# =============================================================================

def edit_sale_line(ctx: StoreContext, line_id: int, patch: LinePatch) -> SaleLine:
    """
    Edit one sale line and move stock by the quantity difference.

    Raising the quantity takes the extra units from stock (checked before
    any write); lowering it returns them. quantity_sold is not changed.
    """
    line = get_sale_line(ctx, line_id)
    line_id = line.id
    group_id = line.sale_group_id
    old_qty = line.quantity
    product_id = line.product_id

    siblings = datastore.select(SALE_LINES, {"sale_group_id": group_id})
    taken = set()
    for sibling in siblings:
        if sibling.id != line_id:
            taken.update(sibling.device_ids or [])
    taken_scope = "sale"
    if current_app.config.get("ENFORCE_STORE_WIDE_DEVICE_IDS", False):
        taken |= device_ids_in_use(ctx, exclude_line_ids=[line_id])
        taken_scope = "store"

    if patch.device_ids is not None:
        device_ids = patch.device_ids
        device_sizes = patch.device_sizes if patch.device_sizes is not None else []
        quantity = patch.quantity
    else:
        device_ids = list(line.device_ids or [])
        device_sizes = patch.device_sizes if patch.device_sizes is not None else list(line.device_sizes or [])
        quantity = patch.quantity if patch.quantity is not None else old_qty
    selection = validate_device_ids(device_ids, device_sizes, quantity, taken=taken, taken_scope=taken_scope)

    unit_price = patch.unit_price_cents if patch.unit_price_cents is not None else line.unit_price_cents
    if unit_price <= 0:
        raise ValidationError("unit_price_cents must be > 0")
    method = _require_payment_method(patch.payment_method or line.payment_method)

    new_qty = selection.quantity
    delta = new_qty - old_qty
    if delta > 0:
        check_availability(ctx, product_id, delta)

    steps = _Steps("edit_sale_line")
    try:
        if delta != 0:
            apply_sale_delta(ctx, product_id, -delta)
            steps.record(
                {"step": "stock_moved", "product_id": product_id, "quantity_delta": -delta},
                lambda: apply_sale_delta(ctx, product_id, delta),
            )

        updated = datastore.update(
            SALE_LINES,
            {
                "quantity": new_qty,
                "unit_price_cents": unit_price,
                "amount_cents": new_qty * unit_price,
                "device_ids": selection.device_ids,
                "device_sizes": selection.device_sizes,
                "payment_method": method,
            },
            {"id": line_id},
        )
        # Deleted by another request since it was read
        if not updated:
            raise NotFound(f"Sale line {line_id} not found", details={"sale_line_id": line_id})
    except LedgerError as exc:
        try:
            steps.unwind(exc)
        except PartialFailure:
            _flag_for_reconciliation(group_id)
            raise
        raise

    logger.info("Sale line %s edited: quantity %s -> %s", line_id, old_qty, new_qty)
    return get_sale_line(ctx, line_id)


# =============================================================================
# DELETE
# =============================================================================

def _return_stock(ctx: StoreContext, product_id: int, qty: int) -> None:
    reverse_sold = current_app.config.get("REVERSE_QUANTITY_SOLD_ON_DELETE", False)
    apply_sale_delta(ctx, product_id, qty, sold_delta=-qty if reverse_sold else 0)


def delete_sale_line(ctx: StoreContext, line_id: int) -> None:
    """
    Delete one sale line and return its quantity to stock.

    When the line was the last one of its group, the empty group is
    deleted as well. A line that another request deleted first raises
    NotFound without touching stock.
    """
    line = get_sale_line(ctx, line_id)
    line_id = line.id
    group_id = line.sale_group_id
    product_id = line.product_id
    qty = line.quantity

    if not datastore.delete(SALE_LINES, {"id": line_id}):
        raise NotFound(f"Sale line {line_id} not found", details={"sale_line_id": line_id})
    applied = [{"step": "sale_line_deleted", "sale_line_id": line_id, "product_id": product_id, "quantity": qty}]

    try:
        _return_stock(ctx, product_id, qty)
        applied.append({"step": "stock_returned", "product_id": product_id, "quantity": qty})

        if not datastore.select(SALE_LINES, {"sale_group_id": group_id}):
            datastore.delete(SALE_GROUPS, {"id": group_id})
    except LedgerError as exc:
        logger.error("Deleting sale line %s stopped after %s: %s", line_id, applied, exc)
        _flag_for_reconciliation(group_id)
        raise PartialFailure("delete_sale_line", applied, exc) from exc

    logger.info("Sale line %s deleted; %s unit(s) of product %s returned to stock", line_id, qty, product_id)


def delete_sale_group(ctx: StoreContext, group_id: int) -> None:
    """
    Delete a sale group with all its lines, returning every line's stock.

    Lines are removed one at a time and only the ones this call removed
    give their stock back.
    """
    group = get_sale_group(ctx, group_id)
    group_id = group.id
    lines = [
        (line.id, line.product_id, line.quantity)
        for line in datastore.select(SALE_LINES, {"sale_group_id": group_id})
    ]

    applied: list[dict] = []
    returned: dict[int, int] = {}
    try:
        for line_id, product_id, qty in lines:
            # Already deleted elsewhere, and its stock with it
            if not datastore.delete(SALE_LINES, {"id": line_id}):
                continue
            applied.append({"step": "sale_line_deleted", "sale_line_id": line_id, "product_id": product_id, "quantity": qty})
            returned[product_id] = returned.get(product_id, 0) + qty

        if lines and not applied:
            raise NotFound(f"Sale group {group_id} not found", details={"sale_group_id": group_id})

        for product_id in sorted(returned):
            _return_stock(ctx, product_id, returned[product_id])
            applied.append({"step": "stock_returned", "product_id": product_id, "quantity": returned[product_id]})

        if not datastore.delete(SALE_GROUPS, {"id": group_id}) and not applied:
            raise NotFound(f"Sale group {group_id} not found", details={"sale_group_id": group_id})
    except LedgerError as exc:
        if not applied:
            raise
        logger.error("Deleting sale group %s stopped after %s: %s", group_id, applied, exc)
        _flag_for_reconciliation(group_id)
        raise PartialFailure("delete_sale_group", applied, exc) from exc

    logger.info("Sale group %s deleted with %s line(s)", group_id, len(lines))
