# backend/duka/services/products_service.py
"""
Products Service

Catalogue reads and writes. Stock is not writable from here after creation;
on-hand changes go through stock_service so every movement is checked.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from duka.errors import ConstraintError, NotFoundError
from duka.time_utils import utcnow
from .concurrency import run_atomic
from .pagination import paginate
from .stock_service import can_delete, lock_product

PRODUCT_MUTABLE_FIELDS = {
    "name", "category", "description", "barcode", "supplier",
    "price", "cost_price", "low_stock_threshold", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    *,
    category: str | None = None,
    low_stock: bool = False,
    search: str | None = None,
    include_inactive: bool = True,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional filters and pagination.

    Args:
        category: exact category match
        low_stock: only products at or below their low_stock_threshold
        search: case-insensitive substring of name, or barcode
        include_inactive: include products flagged is_active=False
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)
    """
    query = db.session.query(Product)

    if category:
        query = query.filter(Product.category == category)
    if low_stock:
        query = query.filter(Product.stock_quantity <= Product.low_stock_threshold)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(func.lower(Product.name).like(pattern), Product.barcode == search.strip())
        )
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda p: p.to_dict())


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def create_product(*, patch: dict, user_id: str | None = None) -> dict:
    """Create product from a validated patch dict. Initial stock is taken as given."""
    def _op():
        product = Product(created_by=user_id)
        apply_product_patch(product, patch)
        product.stock_quantity = patch.get("stock_quantity") or 0
        if patch.get("low_stock_threshold") is None:
            product.low_stock_threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 10)
        db.session.add(product)
        db.session.flush()
        return product

    product = run_atomic(_op)
    current_app.logger.info("Product created id=%s name=%r", product.id, product.name)
    return product.to_dict()


def update_product(*, product_id: str, patch: dict) -> dict:
    def _op():
        product = lock_product(product_id)
        apply_product_patch(product, patch)
        product.updated_at = utcnow()
        db.session.flush()
        return product

    return run_atomic(_op).to_dict()


def delete_product(*, product_id: str) -> None:
    """Hard delete; refused while any sale references the product."""
    def _op():
        product = lock_product(product_id)
        if not can_delete(product_id):
            raise ConstraintError(
                "Cannot delete product with existing sales",
                details={"product_id": product_id},
            )
        db.session.delete(product)
        db.session.flush()

    try:
        run_atomic(_op)
    except IntegrityError:
        # A sale landed between the check and the delete; the FK caught it
        raise ConstraintError(
            "Cannot delete product with existing sales",
            details={"product_id": product_id},
        )
    current_app.logger.info("Product deleted id=%s", product_id)


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.category.isnot(None))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [r[0] for r in rows]


def low_stock_products(limit: int | None = None) -> list[Product]:
    query = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .filter(Product.stock_quantity <= Product.low_stock_threshold)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()
