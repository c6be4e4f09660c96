# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/duka/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Write operations require admin or manager
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import DomainError, domain_error_response
from ..models import Product
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..request_args import bool_arg, page_args
from ..services import products_service, stock_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    normalize_keys,
    parse_int,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "description", "barcode", "supplier",
        "price", "cost_price", "stock_quantity", "low_stock_threshold", "is_active",
    },
    required_on_create={"name", "category", "price"},
)

# Stock moves only through POST /<id>/stock once a product exists
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock_quantity"},
)

# Fields clients echo back on edit forms; dropped before validation
_READ_ONLY_FIELDS = {"id", "created_at", "updated_at", "created_by", "is_low_stock"}

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _strip_read_only(payload):
    data = normalize_keys(payload)
    return {k: v for k, v in data.items() if k not in _READ_ONLY_FIELDS}


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - category: exact match
    - low_stock: only products at or below their threshold
    - search: name substring or exact barcode
    - include_inactive: default true
    - page / per_page: optional pagination (per_page max 100)
    """
    page, per_page = page_args()
    return products_service.list_products(
        category=request.args.get("category") or None,
        low_stock=bool_arg("low_stock"),
        search=request.args.get("search") or None,
        include_inactive=bool_arg("include_inactive", default=True),
        page=page,
        per_page=per_page,
    )


@products_bp.get("/categories")
@require_auth
def list_categories():
    return {"items": products_service.list_categories()}


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    products = products_service.low_stock_products()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<product_id>")
@require_auth
def get_product(product_id: str):
    try:
        return products_service.get_product(product_id).to_dict()
    except DomainError as e:
        return domain_error_response(e)


@products_bp.get("/<product_id>/can-delete")
@require_auth
def can_delete_product(product_id: str):
    try:
        products_service.get_product(product_id)
    except DomainError as e:
        return domain_error_response(e)
    return {"product_id": product_id, "can_delete": stock_service.can_delete(product_id)}


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Product, payload=_strip_read_only(payload), policy=PRODUCT_POLICY, partial=False
        )
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch, user_id=current_user_id())
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return created, 201


@products_bp.put("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        data = _strip_read_only(payload)
        if "stock_quantity" in data:
            raise ValidationError(
                "stock_quantity cannot be edited directly; use POST /api/products/<id>/stock"
            )
        patch = validate_payload(model=Product, payload=data, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return updated, 200


@products_bp.post("/<product_id>/stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def adjust_stock_route(product_id: str):
    """
    Adjust on-hand stock by a signed delta.

    Body: {"delta": int} (negative removes stock; cannot go below zero)
    """
    payload = request.get_json(silent=True) or {}

    try:
        data = normalize_keys(payload)
        if data.get("delta") is None:
            raise ValidationError("delta is required")
        delta = parse_int("delta", data["delta"])
        product = stock_service.adjust_stock(product_id, delta, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    return product.to_dict(), 200


@products_bp.delete("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_product_route(product_id: str):
    try:
        products_service.delete_product(product_id=product_id)
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True}, 200
