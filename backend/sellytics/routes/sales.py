# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/sellytics/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_store_context
from ..errors import LedgerError, ValidationError
from ..services import sales_service
from ..services.sales_service import LinePatch, LineRequest
from ..validation import coerce_int, coerce_text


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_store_context
def create_sale_route():
    """
    Record a checkout.

    Body:
      lines: [{product_id, quantity?, unit_price_cents?, device_ids?, device_sizes?}, ...]
      payment_method: required
      request_id: optional idempotency key; a repeat returns the first sale
    """
    try:
        data = request.get_json(silent=True) or {}
        raw_lines = data.get("lines")
        if not isinstance(raw_lines, list) or not raw_lines:
            raise ValidationError("lines must be a non-empty list")

        lines = [LineRequest.from_dict(item) for item in raw_lines]
        group = sales_service.create_sale(
            g.store_context,
            lines,
            data.get("payment_method"),
            request_id=coerce_text("request_id", data.get("request_id"), max_length=64, required=False),
        )
        return jsonify({"sale": group.to_dict(include_lines=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_store_context
def list_sales_route():
    try:
        limit = coerce_int("limit", request.args.get("limit"), minimum=1, required=False) or 50
        groups = sales_service.list_sale_groups(g.store_context, limit=min(limit, 500))
        return jsonify({"items": [s.to_dict(include_lines=True) for s in groups], "count": len(groups)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:group_id>")
@require_store_context
def get_sale_route(group_id: int):
    try:
        group = sales_service.get_sale_group(g.store_context, group_id)
        return jsonify({"sale": group.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/lines/by-device/<device_id>")
@require_store_context
def find_by_device_route(device_id: str):
    try:
        lines = sales_service.find_sale_lines_by_device_id(g.store_context, device_id)
        return jsonify({"items": [line.to_dict() for line in lines], "count": len(lines)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to search sale lines by device ID")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/lines/<int:line_id>")
@require_store_context
def edit_line_route(line_id: int):
    """Edit quantity, price, device identifiers or payment method of one line."""
    try:
        patch = LinePatch.from_dict(request.get_json(silent=True) or {})
        line = sales_service.edit_sale_line(g.store_context, line_id, patch)
        return jsonify({"line": line.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit sale line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/lines/<int:line_id>")
@require_store_context
def delete_line_route(line_id: int):
    try:
        sales_service.delete_sale_line(g.store_context, line_id)
        return "", 204

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:group_id>")
@require_store_context
def delete_sale_route(group_id: int):
    try:
        sales_service.delete_sale_group(g.store_context, group_id)
        return "", 204

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
