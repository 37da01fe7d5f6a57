# Overview: Service-layer operations for credit sales and their repayments.

"""
Debt Service

WHY: A customer may take goods on credit and repay over time. The balance is
never stored; it is derived from the append-only payment rows so concurrent
payments cannot overwrite each other.

DESIGN PRINCIPLES:
- remaining = amount_owed - SUM(payments); never negative
- A deposit given at creation is written as the first payment
- Status is derived: paid when nothing remains, partial when something was
  paid, owing otherwise
- Payment rows are immutable
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..errors import NotFound, OverPayment, PartialFailure, PersistenceError, ValidationError
from ..extensions import datastore
from ..models import DebtRecord, PaymentRecord
from ..time_utils import to_utc_z
from .context import StoreContext
from .customer_service import get_customer
from .inventory_service import get_product

logger = logging.getLogger(__name__)

DEBTS = "debts"
PAYMENTS = "debt_payments"


# =============================================================================
# DEBT STATUS (CONSTANTS)
# =============================================================================

DEBT_STATUS_OWING = "owing"
DEBT_STATUS_PARTIAL = "partial"
DEBT_STATUS_PAID = "paid"


def derive_status(amount_owed_cents: int, amount_paid_cents: int) -> str:
    if amount_owed_cents - amount_paid_cents <= 0:
        return DEBT_STATUS_PAID
    if amount_paid_cents > 0:
        return DEBT_STATUS_PARTIAL
    return DEBT_STATUS_OWING


@dataclass
class DebtBalance:
    debt: DebtRecord
    amount_paid_cents: int = 0
    last_payment_date: datetime | None = None

    @property
    def remaining_cents(self) -> int:
        return max(self.debt.amount_owed_cents - self.amount_paid_cents, 0)

    @property
    def status(self) -> str:
        return derive_status(self.debt.amount_owed_cents, self.amount_paid_cents)

    def to_dict(self) -> dict:
        data = self.debt.to_dict()
        data.update({
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_cents": self.remaining_cents,
            "status": self.status,
            "last_payment_date": to_utc_z(self.last_payment_date),
        })
        return data


# =============================================================================
# READS
# =============================================================================

def get_debt(ctx: StoreContext, debt_id: int, *, for_update: bool = False) -> DebtRecord:
    rows = datastore.select(DEBTS, {"id": debt_id, "store_id": ctx.store_id}, for_update=for_update)
    if not rows:
        raise NotFound(f"Debt {debt_id} not found", details={"debt_id": debt_id})
    return rows[0]


def _balances(debts: list[DebtRecord]) -> list[DebtBalance]:
    by_id = {d.id: DebtBalance(debt=d) for d in debts}
    if not by_id:
        return []
    for payment in datastore.select(PAYMENTS, {"debt_id": list(by_id)}):
        balance = by_id[payment.debt_id]
        balance.amount_paid_cents += payment.amount_paid_cents
        if balance.last_payment_date is None or payment.payment_date > balance.last_payment_date:
            balance.last_payment_date = payment.payment_date
    return [by_id[d.id] for d in debts]


def get_debt_balance(ctx: StoreContext, debt_id: int) -> DebtBalance:
    return _balances([get_debt(ctx, debt_id)])[0]


def list_payments(ctx: StoreContext, debt_id: int) -> list[PaymentRecord]:
    get_debt(ctx, debt_id)
    return datastore.select(PAYMENTS, {"debt_id": debt_id}, order_by=["payment_date", "id"])


def list_outstanding(
    ctx: StoreContext,
    *,
    customer_id: int | None = None,
    include_settled: bool = False,
) -> list[DebtBalance]:
    """
    Debts of the store with their derived balances, oldest first.

    Settled debts (nothing remaining) are left out unless include_settled,
    which lists them after the outstanding ones.
    """
    filters = {"store_id": ctx.store_id}
    if customer_id is not None:
        filters["customer_id"] = customer_id
    debts = datastore.select(DEBTS, filters, order_by=["debt_date", "id"])
    balances = _balances(debts)
    if include_settled:
        # Outstanding first, each part keeping oldest-first order
        return sorted(balances, key=lambda b: b.remaining_cents == 0)
    return [b for b in balances if b.remaining_cents > 0]


# =============================================================================
# WRITES
# =============================================================================

def record_debt(
    ctx: StoreContext,
    customer_id: int,
    amount_owed_cents: int,
    *,
    product_id: int | None = None,
    quantity: int = 1,
    deposit_cents: int = 0,
    device_id: str | None = None,
    debt_date: datetime | None = None,
) -> DebtBalance:
    """
    Record a credit sale.

    A deposit is stored on the debt and also appended as its first payment,
    so the derived balance already accounts for it. Stock is not moved: a
    credit sale that takes goods is recorded as a sale as well.
    """
    if amount_owed_cents is None or amount_owed_cents <= 0:
        raise ValidationError("amount_owed_cents must be > 0")
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be > 0")
    deposit_cents = deposit_cents or 0
    if deposit_cents < 0:
        raise ValidationError("deposit_cents must be >= 0")

    get_customer(ctx, customer_id)
    if product_id is not None:
        get_product(ctx, product_id)

    if deposit_cents > amount_owed_cents:
        raise OverPayment(0, amount_owed_cents, deposit_cents)

    row = {
        "store_id": ctx.store_id,
        "customer_id": customer_id,
        "product_id": product_id,
        "quantity": quantity,
        "amount_owed_cents": amount_owed_cents,
        "amount_deposited_cents": deposit_cents,
        "device_id": (device_id or "").strip() or None,
        "created_by_user_id": ctx.user_id,
    }
    if debt_date is not None:
        row["debt_date"] = debt_date
    debt = datastore.insert(DEBTS, [row])[0]

    if deposit_cents > 0:
        try:
            _append_payment(ctx, debt, deposit_cents)
        except PersistenceError as exc:
            logger.error("Debt %s was written but its deposit payment was not: %s", debt.id, exc)
            raise PartialFailure(
                "record_debt",
                [{"step": "debt_written", "debt_id": debt.id, "amount_owed_cents": amount_owed_cents}],
                exc,
            ) from exc

    logger.info(
        "Debt %s recorded for customer %s in store %s: owed %s, deposit %s",
        debt.id, customer_id, ctx.store_id, amount_owed_cents, deposit_cents,
    )
    return get_debt_balance(ctx, debt.id)


def _append_payment(ctx: StoreContext, debt: DebtRecord, amount_cents: int) -> PaymentRecord:
    return datastore.insert(PAYMENTS, [{
        "debt_id": debt.id,
        "store_id": ctx.store_id,
        "customer_id": debt.customer_id,
        "product_id": debt.product_id,
        "amount_paid_cents": amount_cents,
        "recorded_by_user_id": ctx.user_id,
    }])[0]


def record_payment(ctx: StoreContext, debt_id: int, amount_cents: int) -> PaymentRecord:
    """
    Append a repayment to a debt.

    The debt row is locked while the remaining balance is derived, so two
    payments cannot both fit into the same remaining amount.
    """
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    debt = get_debt(ctx, debt_id, for_update=True)
    remaining = _balances([debt])[0].remaining_cents
    if amount_cents > remaining:
        datastore.release()
        raise OverPayment(debt_id, remaining, amount_cents)

    payment = _append_payment(ctx, debt, amount_cents)
    logger.info("Payment %s of %s recorded against debt %s", payment.id, amount_cents, debt.id)
    return payment
