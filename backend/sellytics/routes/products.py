# backend/sellytics/routes/products.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_store_context
from ..errors import LedgerError
from ..services import products_service
from ..validation import require_fields

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_store_context
def list_products_route():
    products = products_service.list_products(g.store_context)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
@require_store_context
def create_product_route():
    """
    Create a product and seed its opening stock from purchase_qty.

    Body: name (required), purchase_price_cents, purchase_qty,
    selling_price_cents, description, supplier_name, device_id_template
    """
    try:
        data = require_fields(request.get_json(silent=True), {"name"})
        product = products_service.create_product(
            g.store_context,
            data["name"],
            purchase_price_cents=data.get("purchase_price_cents", 0),
            purchase_qty=data.get("purchase_qty", 0),
            selling_price_cents=data.get("selling_price_cents"),
            description=data.get("description"),
            supplier_name=data.get("supplier_name"),
            device_id_template=data.get("device_id_template"),
        )
        return jsonify({"product": product.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500
