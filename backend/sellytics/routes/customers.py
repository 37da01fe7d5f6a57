# backend/sellytics/routes/customers.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_store_context
from ..errors import LedgerError
from ..services import customer_service
from ..validation import require_fields

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_store_context
def list_customers_route():
    customers = customer_service.list_customers(g.store_context)
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@require_store_context
def create_customer_route():
    try:
        data = require_fields(request.get_json(silent=True), {"full_name"})
        customer = customer_service.create_customer(
            g.store_context,
            data["full_name"],
            phone=data.get("phone"),
            email=data.get("email"),
        )
        return jsonify({"customer": customer.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500
