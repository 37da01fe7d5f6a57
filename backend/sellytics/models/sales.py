from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SaleGroup(db.Model):
    """
    One checkout transaction holding 1..N sale lines.

    total_amount_cents is the checkout total (sum of line amounts when the
    sale was created); it is not rewritten by later line edits.
    needs_reconciliation is set when a multi-step write could not be
    completed or compensated.
    """
    __tablename__ = "sale_groups"
    __table_args__ = (
        db.UniqueConstraint("store_id", "request_id", name="uq_sale_groups_store_request"),
        db.Index("ix_sale_groups_store_created", "store_id", "created_at"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_sale_groups_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    # Client-generated idempotency key (optional)
    request_id = db.Column(db.String(64), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    needs_reconciliation = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "SaleLine",
        back_populates="sale_group",
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "request_id": self.request_id,
            "created_by_user_id": self.created_by_user_id,
            "needs_reconciliation": self.needs_reconciliation,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """One product entry within a sale group."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.Index("ix_sale_lines_store_product", "store_id", "product_id"),
        db.CheckConstraint("quantity >= 1", name="ck_sale_lines_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sale_lines_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_group_id = db.Column(
        db.Integer,
        db.ForeignKey("sale_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Non-empty device/serial identifiers, and a size/variant tag per identifier
    device_ids = db.Column(db.JSON, nullable=False, default=list)
    device_sizes = db.Column(db.JSON, nullable=False, default=list)

    payment_method = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale_group = db.relationship("SaleGroup", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_group_id": self.sale_group_id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "amount_cents": self.amount_cents,
            "device_ids": list(self.device_ids or []),
            "device_sizes": list(self.device_sizes or []),
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
