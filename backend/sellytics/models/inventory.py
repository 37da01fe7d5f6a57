from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data, recorded per purchased batch.

    purchase_price_cents is the TOTAL paid for the batch and purchase_qty the
    batch size, so the unit cost is purchase_price_cents / purchase_qty.
    A restock overwrites both with the latest batch.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_store_name", "store_id", "name"),
        db.CheckConstraint("purchase_qty >= 0", name="ck_products_purchase_qty_non_negative"),
        db.CheckConstraint("purchase_price_cents >= 0", name="ck_products_purchase_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_qty = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=True)

    supplier_name = db.Column(db.String(255), nullable=True)
    # Optional serial template shown when the product is sold (e.g. "IMEI")
    device_id_template = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def unit_cost_cents(self) -> int | None:
        if not self.purchase_qty:
            return None
        # nearest-cent rounding (half-up)
        return (self.purchase_price_cents + self.purchase_qty // 2) // self.purchase_qty

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "purchase_price_cents": self.purchase_price_cents,
            "purchase_qty": self.purchase_qty,
            "unit_cost_cents": self.unit_cost_cents,
            "selling_price_cents": self.selling_price_cents,
            "supplier_name": self.supplier_name,
            "device_id_template": self.device_id_template,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryRecord(db.Model):
    """
    Stock counters for one product in one store.

    INVARIANT: available_qty never goes negative. The CHECK constraint is
    the last line of defence; services change counters only through
    DataStore.adjust(), which refuses the update instead.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_id", name="uq_inventory_store_product"),
        db.CheckConstraint("available_qty >= 0", name="ck_inventory_available_non_negative"),
        db.CheckConstraint("quantity_sold >= 0", name="ck_inventory_sold_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    available_qty = db.Column(db.Integer, nullable=False, default=0)
    quantity_sold = db.Column(db.Integer, nullable=False, default=0)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "available_qty": self.available_qty,
            "quantity_sold": self.quantity_sold,
            "last_updated": to_utc_z(self.last_updated),
        }
