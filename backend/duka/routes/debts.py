# Overview: Flask API routes for debts and debt payments; parses input and returns JSON responses.

"""
Debt API routes

Payments are append-only: there is no route that edits or removes a
payment row. Deleting a debt removes its payment history with it.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import DomainError, domain_error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..money import money_str
from ..request_args import page_args
from ..services import debt_service
from ..services.input_schemas import DebtInput, DebtUpdateInput, PaymentInput
from ..validation import ValidationError


debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("")
@require_auth
def list_debts_route():
    """
    List debts, newest first.

    Query params: status (pending, partially-paid, paid, overdue),
    customer_name, customer_phone, page, per_page.
    """
    try:
        page, per_page = page_args()
        result = debt_service.list_debts(
            status=(request.args.get("status") or "").strip().lower() or None,
            customer_name=request.args.get("customer_name") or None,
            customer_phone=request.args.get("customer_phone") or None,
            page=page,
            per_page=per_page,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@debts_bp.get("/<debt_id>")
@require_auth
def get_debt_route(debt_id: str):
    try:
        debt = debt_service.get_debt(debt_id)
    except DomainError as e:
        return domain_error_response(e)
    return jsonify(debt.to_dict()), 200


@debts_bp.get("/<debt_id>/payments")
@require_auth
def payment_history_route(debt_id: str):
    """Payment ledger for a debt, newest first."""
    try:
        payments = debt_service.payment_history(debt_id)
    except DomainError as e:
        return domain_error_response(e)
    return jsonify({
        "debt_id": debt_id,
        "items": [p.to_dict() for p in payments],
        "count": len(payments),
        "total_paid": money_str(debt_service.ledger_total(debt_id)),
    }), 200


@debts_bp.post("")
@require_auth
def create_debt_route():
    """Record a debt that did not come from a sale."""
    try:
        data = DebtInput.from_payload(request.get_json(silent=True) or {})
        debt = debt_service.create_debt(data, user_id=current_user_id())
        return jsonify(debt.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create debt")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.put("/<debt_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_debt_route(debt_id: str):
    try:
        data = DebtUpdateInput.from_payload(request.get_json(silent=True) or {})
        debt = debt_service.update_debt(debt_id, data)
        return jsonify(debt.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update debt")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.post("/<debt_id>/payments")
@require_auth
def make_payment_route(debt_id: str):
    """
    Record a payment against a debt.

    Body: {"amount": "40.00", "payment_method": "cash", "payment_reference": "...", "notes": "..."}
    """
    try:
        payment = PaymentInput.from_payload(request.get_json(silent=True) or {})
        debt, row = debt_service.make_payment(debt_id, payment, user_id=current_user_id())
        return jsonify({"debt": debt.to_dict(), "payment": row.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record debt payment")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.delete("/<debt_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_debt_route(debt_id: str):
    try:
        debt_service.delete_debt(debt_id)
        return jsonify({"ok": True}), 200

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete debt")
        return jsonify({"error": "Internal server error"}), 500
