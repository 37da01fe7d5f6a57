# backend/sellytics/routes/inventory.py
"""
Inventory routes.

Restock is retried on transient storage failures: nothing has been applied
when such a failure is reported, so repeating it cannot double the stock.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_store_context
from ..errors import LedgerError
from ..services import inventory_service
from ..services.concurrency import run_with_retry
from ..validation import coerce_cents, coerce_int, require_fields

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_store_context
def list_inventory_route():
    records = inventory_service.list_inventory(g.store_context)
    return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200


@inventory_bp.get("/low-stock")
@require_store_context
def low_stock_route():
    try:
        threshold = coerce_int("threshold", request.args.get("threshold"), minimum=0, required=False)
        records = inventory_service.list_low_stock(g.store_context, threshold)
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/<int:product_id>")
@require_store_context
def get_inventory_route(product_id: int):
    try:
        inventory_service.get_product(g.store_context, product_id)
        record = inventory_service.get_inventory_record(g.store_context, product_id)
        if record is None:
            return jsonify({"error": "Product has no inventory record"}), 404
        return jsonify({"inventory": record.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get inventory record")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:product_id>/restock")
@require_store_context
def restock_route(product_id: int):
    """
    Add a purchased batch to stock.

    Body: added_qty (required, > 0), purchase_price_cents (batch total, optional)
    """
    try:
        data = require_fields(request.get_json(silent=True), {"added_qty"})
        added_qty = coerce_int("added_qty", data["added_qty"], minimum=1)
        purchase_price = coerce_cents("purchase_price_cents", data.get("purchase_price_cents"), required=False)

        record = run_with_retry(lambda: inventory_service.restock(
            g.store_context,
            product_id,
            added_qty,
            purchase_price_cents=purchase_price,
        ))
        return jsonify({"inventory": record.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/seed")
@require_store_context
def seed_inventory_route():
    try:
        created = inventory_service.seed_inventory(g.store_context)
        return jsonify({"items": [r.to_dict() for r in created], "count": len(created)}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to seed inventory")
        return jsonify({"error": "Internal server error"}), 500
