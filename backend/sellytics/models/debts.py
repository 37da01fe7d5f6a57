from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DebtRecord(db.Model):
    """
    A credit sale: the customer owes amount_owed_cents.

    The remaining balance is NOT stored. It is always derived as
    amount_owed_cents - SUM(payments.amount_paid_cents), so concurrent
    payments append rows instead of racing on a shared counter.
    amount_deposited_cents records the deposit entered at creation; that
    deposit is also written as the first payment.
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.Index("ix_debts_store_date", "store_id", "debt_date"),
        db.CheckConstraint("amount_owed_cents > 0", name="ck_debts_owed_positive"),
        db.CheckConstraint("amount_deposited_cents >= 0", name="ck_debts_deposit_non_negative"),
        db.CheckConstraint("quantity >= 1", name="ck_debts_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    amount_owed_cents = db.Column(db.Integer, nullable=False)
    amount_deposited_cents = db.Column(db.Integer, nullable=False, default=0)

    device_id = db.Column(db.String(128), nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    debt_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")
    product = db.relationship("Product")
    payments = db.relationship(
        "PaymentRecord",
        back_populates="debt",
        order_by="PaymentRecord.payment_date",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "amount_owed_cents": self.amount_owed_cents,
            "amount_deposited_cents": self.amount_deposited_cents,
            "device_id": self.device_id,
            "created_by_user_id": self.created_by_user_id,
            "debt_date": to_utc_z(self.debt_date),
        }


class PaymentRecord(db.Model):
    """
    Append-only repayment against a debt.

    IMMUTABLE: rows are never updated or deleted by the services.
    """
    __tablename__ = "debt_payments"
    __table_args__ = (
        db.Index("ix_debt_payments_debt_date", "debt_id", "payment_date"),
        db.CheckConstraint("amount_paid_cents > 0", name="ck_debt_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("debts.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    amount_paid_cents = db.Column(db.Integer, nullable=False)
    recorded_by_user_id = db.Column(db.Integer, nullable=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt = db.relationship("DebtRecord", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "amount_paid_cents": self.amount_paid_cents,
            "recorded_by_user_id": self.recorded_by_user_id,
            "payment_date": to_utc_z(self.payment_date),
        }
