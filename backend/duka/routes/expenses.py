# Overview: Flask API routes for expenses; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import DomainError, domain_error_response
from ..models import Expense
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..request_args import date_range_args, page_args
from ..services import expense_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_expense,
    normalize_keys,
    validate_payload,
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "category", "amount"},
    required_on_create={"description", "category", "amount"},
)

_READ_ONLY_FIELDS = {
    "id", "status", "approved_by", "approved_at", "created_by", "created_at", "updated_at",
}

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


def _expense_patch(partial: bool) -> dict:
    data = normalize_keys(request.get_json(silent=True) or {})
    data = {k: v for k, v in data.items() if k not in _READ_ONLY_FIELDS}
    patch = validate_payload(model=Expense, payload=data, policy=EXPENSE_POLICY, partial=partial)
    enforce_rules_expense(patch)
    return patch


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        date_from, date_to = date_range_args()
        page, per_page = page_args()
        result = expense_service.list_expenses(
            category=request.args.get("category") or None,
            status=(request.args.get("status") or "").strip().lower() or None,
            date_from=date_from,
            date_to=date_to,
            search=request.args.get("search") or None,
            page=page,
            per_page=per_page,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@expenses_bp.get("/<expense_id>")
@require_auth
def get_expense_route(expense_id: str):
    try:
        return jsonify(expense_service.get_expense(expense_id).to_dict()), 200
    except DomainError as e:
        return domain_error_response(e)


@expenses_bp.post("")
@require_auth
def create_expense_route():
    try:
        patch = _expense_patch(partial=False)
        expense = expense_service.create_expense(patch=patch, user_id=current_user_id())
        return jsonify(expense.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.put("/<expense_id>")
@require_auth
def update_expense_route(expense_id: str):
    try:
        patch = _expense_patch(partial=True)
        expense = expense_service.update_expense(expense_id, patch=patch)
        return jsonify(expense.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<expense_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_expense_route(expense_id: str):
    try:
        expense_service.delete_expense(expense_id)
        return jsonify({"ok": True}), 200

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/<expense_id>/approve")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def approve_expense_route(expense_id: str):
    try:
        expense = expense_service.approve_expense(expense_id, user_id=current_user_id())
        return jsonify(expense.to_dict()), 200

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/<expense_id>/reject")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def reject_expense_route(expense_id: str):
    try:
        expense = expense_service.reject_expense(expense_id, user_id=current_user_id())
        return jsonify(expense.to_dict()), 200

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject expense")
        return jsonify({"error": "Internal server error"}), 500
