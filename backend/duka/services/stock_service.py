# Overview: Stock ledger helpers; the only code that moves Product.stock_quantity.

"""
Stock helpers.

WHY: Every path that changes on-hand quantity (create/update/delete sale,
manual adjustment) goes through decrement_stock / increment_stock so the
"never below zero" rule is checked in exactly one place.

Callers are responsible for holding the product row lock
(lock_product) and for running inside run_atomic; these helpers never
commit.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Sale
from duka.errors import InsufficientStockError, NotFoundError
from duka.time_utils import utcnow
from duka.validation import ValidationError
from .concurrency import lock_for_update, run_atomic


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")


def lock_product(product_id: str) -> Product:
    """Locked read of a product row; NotFound if absent."""
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def decrement_stock(product: Product, quantity: int) -> Product:
    _require_positive(quantity)
    if quantity > product.stock_quantity:
        raise InsufficientStockError(
            f"Insufficient stock. Available: {product.stock_quantity}",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "on_hand": product.stock_quantity,
            },
        )
    product.stock_quantity = product.stock_quantity - quantity
    product.updated_at = utcnow()
    return product


def increment_stock(product: Product, quantity: int) -> Product:
    """Restore stock. No upper bound."""
    _require_positive(quantity)
    product.stock_quantity = product.stock_quantity + quantity
    product.updated_at = utcnow()
    return product


def can_delete(product_id: str) -> bool:
    """True iff no sale references the product."""
    return db.session.query(Sale.id).filter_by(product_id=product_id).first() is None


def adjust_stock(product_id: str, delta: int, user_id: str | None = None) -> Product:
    """
    Direct stock correction (receiving, shrinkage, recount).

    delta > 0 restocks; delta < 0 removes and fails with InsufficientStock
    rather than going below zero.
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("delta must be a non-zero integer")

    def _op():
        product = lock_product(product_id)
        before = product.stock_quantity
        if delta > 0:
            increment_stock(product, delta)
        else:
            decrement_stock(product, -delta)
        db.session.flush()
        current_app.logger.info(
            "Stock adjusted product=%s %s -> %s by user=%s",
            product.id, before, product.stock_quantity, user_id,
        )
        return product

    return run_atomic(_op)
