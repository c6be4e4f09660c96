# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/duka/routes/sales.py
"""Sales API routes with role enforcement"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import DomainError, domain_error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..request_args import date_range_args, page_args
from ..services import sales_service
from ..services.input_schemas import (
    CreateSaleInput,
    UpdateSaleInput,
    parse_payment_method,
    parse_sale_status,
)
from ..validation import ValidationError, normalize_keys


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_payload(sale) -> dict:
    body = sale.to_dict()
    debt = sale.debt
    body["debt"] = debt.to_dict() if debt is not None else None
    return body


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, newest first.

    Query params: date_from, date_to (YYYY-MM-DD is inclusive), payment_method,
    status, customer_name, product_id, sort_by, sort_dir, page, per_page.
    """
    try:
        date_from, date_to = date_range_args()
        method = request.args.get("payment_method")
        status = request.args.get("status")
        page, per_page = page_args()
        result = sales_service.list_sales(
            date_from=date_from,
            date_to=date_to,
            payment_method=parse_payment_method(method) if method else None,
            status=parse_sale_status(status) if status else None,
            customer_name=request.args.get("customer_name") or None,
            product_id=request.args.get("product_id") or None,
            sort_by=request.args.get("sort_by", "created_at"),
            sort_dir=request.args.get("sort_dir", "desc").lower(),
            page=page,
            per_page=per_page,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id: str):
    try:
        sale = sales_service.get_sale(sale_id)
    except DomainError as e:
        return domain_error_response(e)
    return jsonify(_sale_payload(sale)), 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale. Takes stock and, for debt sales, opens the customer's debt.

    Available to: admin, manager, cashier
    """
    try:
        data = CreateSaleInput.from_payload(request.get_json(silent=True) or {})
        sale = sales_service.create_sale(data, user_id=current_user_id())
        return jsonify(_sale_payload(sale)), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<sale_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_sale_route(sale_id: str):
    """
    Edit a sale. Stock and the linked debt follow the change.

    Available to: admin, manager
    """
    try:
        changes = UpdateSaleInput.from_payload(request.get_json(silent=True) or {})
        sale = sales_service.update_sale(sale_id, changes, user_id=current_user_id())
        return jsonify(_sale_payload(sale)), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<sale_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_sale_status_route(sale_id: str):
    """Change sale status only. Does not move stock."""
    try:
        data = normalize_keys(request.get_json(silent=True) or {})
        status = parse_sale_status(data.get("status"))
        sale = sales_service.update_sale_status(sale_id, status)
        return jsonify(sale.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<sale_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_sale_route(sale_id: str):
    """
    Delete a sale, restoring its stock and removing its debt and payments.

    Available to: admin, manager
    """
    try:
        result = sales_service.delete_sale(sale_id, user_id=current_user_id())
        return jsonify(result), 200

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
