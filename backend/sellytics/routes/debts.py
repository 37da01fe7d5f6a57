# backend/sellytics/routes/debts.py
"""
Debt (credit sale) routes.

Payments are retried on transient storage failures; a failed append left
nothing behind, so the retry cannot pay twice.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_store_context
from ..errors import LedgerError
from ..services import debt_service
from ..services.concurrency import run_with_retry
from ..validation import coerce_cents, coerce_datetime, coerce_int, coerce_text, require_fields

debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("")
@require_store_context
def list_debts_route():
    """Outstanding debts, oldest first. ?include_settled=1 lists paid ones too."""
    try:
        customer_id = coerce_int("customer_id", request.args.get("customer_id"), required=False)
        include_settled = request.args.get("include_settled", "").lower() in {"1", "true", "yes"}
        balances = debt_service.list_outstanding(
            g.store_context,
            customer_id=customer_id,
            include_settled=include_settled,
        )
        return jsonify({"items": [b.to_dict() for b in balances], "count": len(balances)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list debts")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.post("")
@require_store_context
def create_debt_route():
    """
    Record a credit sale.

    Body: customer_id, amount_owed_cents (required); product_id, quantity,
    deposit_cents, device_id, debt_date (ISO-8601) optional
    """
    try:
        data = require_fields(request.get_json(silent=True), {"customer_id", "amount_owed_cents"})
        balance = debt_service.record_debt(
            g.store_context,
            coerce_int("customer_id", data["customer_id"]),
            coerce_cents("amount_owed_cents", data["amount_owed_cents"], minimum=1),
            product_id=coerce_int("product_id", data.get("product_id"), required=False),
            quantity=coerce_int("quantity", data.get("quantity"), minimum=1, required=False) or 1,
            deposit_cents=coerce_cents("deposit_cents", data.get("deposit_cents"), required=False) or 0,
            device_id=coerce_text("device_id", data.get("device_id"), max_length=128, required=False),
            debt_date=coerce_datetime("debt_date", data.get("debt_date")),
        )
        return jsonify({"debt": balance.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record debt")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.get("/<int:debt_id>")
@require_store_context
def get_debt_route(debt_id: int):
    try:
        balance = debt_service.get_debt_balance(g.store_context, debt_id)
        payments = debt_service.list_payments(g.store_context, debt_id)
        return jsonify({
            "debt": balance.to_dict(),
            "payments": [p.to_dict() for p in payments],
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get debt")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.post("/<int:debt_id>/payments")
@require_store_context
def add_payment_route(debt_id: int):
    """Body: amount_cents (required, > 0, at most the remaining balance)"""
    try:
        data = require_fields(request.get_json(silent=True), {"amount_cents"})
        amount = coerce_cents("amount_cents", data["amount_cents"], minimum=1)

        payment = run_with_retry(lambda: debt_service.record_payment(g.store_context, debt_id, amount))
        balance = debt_service.get_debt_balance(g.store_context, debt_id)
        return jsonify({"payment": payment.to_dict(), "debt": balance.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
