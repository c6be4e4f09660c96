"""
Sales Service - the sale / stock / debt write path

WHY: A sale moves three things at once: the sale row, the product's on-hand
quantity and (for debt sales) the customer's debt. Each operation here runs
as a single run_atomic() transaction with the product row locked, so either
all three change or none do.

This module is the only place a debt-backed sale is created.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Debt, DebtPayment, Sale
from ..models.debts import DEBT_STATUS_PENDING, balance_for, status_for
from ..models.sales import PAYMENT_DEBT
from duka.errors import InvalidAmountError, InvalidStateError, NotFoundError
from duka.money import ZERO, line_total, quantize
from duka.time_utils import utcnow
from duka.validation import ValidationError
from .concurrency import lock_for_update, run_atomic
from .input_schemas import CreateSaleInput, UpdateSaleInput
from .pagination import paginate
from .stock_service import decrement_stock, increment_stock, lock_product

# Client totals may differ from ours by rounding only
TOTAL_TOLERANCE = Decimal("0.005")

SALE_SORT_COLUMNS = {
    "created_at": Sale.created_at,
    "total": Sale.total,
    "quantity": Sale.quantity,
    "product_name": Sale.product_name,
}


def _lock_sale(sale_id: str) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def _lock_linked_debt(sale_id: str) -> Debt | None:
    return lock_for_update(db.session.query(Debt).filter_by(sale_id=sale_id)).first()


def _check_client_total(client_total: Decimal | None, server_total: Decimal) -> None:
    """A caller-sent total is advisory; reject it only if it disagrees."""
    if client_total is None:
        return
    if abs(Decimal(client_total) - server_total) > TOTAL_TOLERANCE:
        raise InvalidAmountError(
            "Total does not match quantity x unit_price",
            details={"expected_total": str(server_total), "received_total": str(client_total)},
        )


def _debt_notes(product_name: str, quantity: int) -> str:
    return f"Sale: {product_name} ({quantity} units)"


def _create_sale_debt(sale: Sale, *, due_date=None, user_id: str | None = None) -> Debt:
    debt = Debt(
        sale_id=sale.id,
        customer_name=sale.customer_name,
        customer_phone=sale.customer_phone,
        amount=sale.total,
        amount_paid=ZERO,
        balance=sale.total,
        status=DEBT_STATUS_PENDING,
        due_date=due_date,
        notes=_debt_notes(sale.product_name, sale.quantity),
        created_by=user_id,
    )
    db.session.add(debt)
    return debt


def create_sale(data: CreateSaleInput, user_id: str | None = None) -> Sale:
    """
    Record a sale and take the stock in one transaction.

    Debt sales also open a pending Debt for the full total, linked to the sale.

    Raises:
        NotFoundError: product does not exist
        InsufficientStockError: quantity exceeds on-hand stock
        InvalidAmountError: unit price not positive, or client total disagrees
    """
    def _op():
        product = lock_product(data.product_id)

        unit_price = data.unit_price if data.unit_price is not None else quantize(product.price)
        if unit_price <= ZERO:
            raise InvalidAmountError("unit_price must be greater than 0", details={"product_id": product.id})
        total = line_total(data.quantity, unit_price)
        _check_client_total(data.total, total)

        decrement_stock(product, data.quantity)

        sale = Sale(
            product_id=product.id,
            product_name=product.name,
            quantity=data.quantity,
            unit_price=unit_price,
            total=total,
            payment_method=data.payment_method,
            payment_reference=data.payment_reference,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            status=data.status,
            notes=data.notes,
            created_by=user_id,
        )
        db.session.add(sale)
        db.session.flush()

        if sale.payment_method == PAYMENT_DEBT:
            _create_sale_debt(sale, due_date=data.due_date, user_id=user_id)
            db.session.flush()

        return sale

    sale = run_atomic(_op)
    current_app.logger.info(
        "Sale created id=%s product=%s qty=%s total=%s method=%s",
        sale.id, sale.product_id, sale.quantity, sale.total, sale.payment_method,
    )
    return sale


def update_sale(sale_id: str, changes: UpdateSaleInput, user_id: str | None = None) -> Sale:
    """
    Edit a sale, moving stock and the linked debt to match.

    - product changed: old product gets its quantity back, the new product is
      charged the new quantity
    - same product, quantity changed: only the signed difference moves
    - payment method changes open or remove the linked debt; a debt that
      already has payments cannot be removed (InvalidState)
    """
    if changes.is_empty():
        raise ValidationError("No changes supplied")

    def _op():
        sale = _lock_sale(sale_id)
        old_product_id = sale.product_id
        old_quantity = sale.quantity
        old_method = sale.payment_method

        new_product_id = changes.product_id or old_product_id
        new_quantity = changes.quantity if changes.quantity is not None else old_quantity

        if new_product_id != old_product_id:
            old_product = lock_product(old_product_id)
            increment_stock(old_product, old_quantity)

            new_product = lock_product(new_product_id)
            decrement_stock(new_product, new_quantity)

            sale.product_id = new_product.id
            sale.product_name = new_product.name
            unit_price = changes.unit_price if changes.unit_price is not None else quantize(new_product.price)
        else:
            delta = new_quantity - old_quantity
            if delta:
                product = lock_product(old_product_id)
                if delta > 0:
                    decrement_stock(product, delta)
                else:
                    increment_stock(product, -delta)
            unit_price = changes.unit_price if changes.unit_price is not None else Decimal(sale.unit_price)

        if unit_price <= ZERO:
            raise InvalidAmountError("unit_price must be greater than 0")
        total = line_total(new_quantity, unit_price)
        _check_client_total(changes.total, total)

        sale.quantity = new_quantity
        sale.unit_price = unit_price
        sale.total = total

        for field in changes.provided:
            setattr(sale, field, getattr(changes, field))
        if changes.status is not None:
            sale.status = changes.status

        new_method = changes.payment_method or old_method
        sale.payment_method = new_method
        sale.updated_at = utcnow()

        _sync_sale_debt(sale, old_method=old_method, user_id=user_id)

        db.session.flush()
        return sale

    sale = run_atomic(_op)
    current_app.logger.info(
        "Sale updated id=%s product=%s qty=%s total=%s method=%s",
        sale.id, sale.product_id, sale.quantity, sale.total, sale.payment_method,
    )
    return sale


def _sync_sale_debt(sale: Sale, *, old_method: str, user_id: str | None) -> None:
    """
    Keep the linked debt in step with an edited sale.

    A debt is only opened when the sale switches to debt. A debt sale whose
    debt was already deleted stays without one.
    """
    debt = _lock_linked_debt(sale.id)

    if sale.payment_method != PAYMENT_DEBT:
        if debt is None:
            return
        has_payments = (
            Decimal(debt.amount_paid) > ZERO
            or db.session.query(DebtPayment.id).filter_by(debt_id=debt.id).first() is not None
        )
        if has_payments:
            raise InvalidStateError(
                "Cannot change payment method: the linked debt already has payments",
                details={"debt_id": debt.id, "amount_paid": str(debt.amount_paid)},
            )
        db.session.delete(debt)
        return

    if not sale.customer_name or not sale.customer_phone:
        raise ValidationError("customer_name and customer_phone are required for debt sales")

    if debt is None:
        if old_method != PAYMENT_DEBT:
            _create_sale_debt(sale, user_id=user_id)
        return

    amount_paid = Decimal(debt.amount_paid)
    if Decimal(sale.total) < amount_paid:
        raise InvalidAmountError(
            "Sale total cannot be less than the amount already paid on its debt",
            details={"debt_id": debt.id, "amount_paid": str(amount_paid), "total": str(sale.total)},
        )
    debt.customer_name = sale.customer_name
    debt.customer_phone = sale.customer_phone
    debt.amount = sale.total
    debt.balance = balance_for(sale.total, amount_paid)
    debt.status = status_for(amount_paid, debt.balance)
    debt.updated_at = utcnow()


def update_sale_status(sale_id: str, status: str) -> Sale:
    """Change only the status field. Stock is not touched by status changes."""
    def _op():
        sale = _lock_sale(sale_id)
        sale.status = status
        sale.updated_at = utcnow()
        db.session.flush()
        return sale

    return run_atomic(_op)


def delete_sale(sale_id: str, user_id: str | None = None) -> dict:
    """
    Delete a sale, put its quantity back on the shelf and drop its debt.

    Returns the deleted sale summary and the restored product.
    """
    def _op():
        sale = _lock_sale(sale_id)
        product = lock_product(sale.product_id)
        increment_stock(product, sale.quantity)

        debt = _lock_linked_debt(sale.id)
        deleted_debt_id = None
        if debt is not None:
            deleted_debt_id = debt.id
            # Payments go with it (ORM cascade)
            db.session.delete(debt)
            db.session.flush()

        summary = sale.to_dict()
        db.session.delete(sale)
        db.session.flush()
        return {
            "sale": summary,
            "product": product.to_dict(),
            "deleted_debt_id": deleted_debt_id,
        }

    result = run_atomic(_op)
    current_app.logger.info(
        "Sale deleted id=%s; restored %s units to product=%s (user=%s)",
        sale_id, result["sale"]["quantity"], result["product"]["id"], user_id,
    )
    return result


def get_sale(sale_id: str) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    *,
    date_from=None,
    date_to=None,
    payment_method: str | None = None,
    status: str | None = None,
    customer_name: str | None = None,
    product_id: str | None = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Filtered sale listing. date_from/date_to are UTC-naive datetimes; the
    route widens a bare date_to to the end of that day.
    """
    query = db.session.query(Sale)

    if date_from is not None:
        query = query.filter(Sale.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Sale.created_at <= date_to)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    if status:
        query = query.filter(Sale.status == status)
    if customer_name:
        query = query.filter(func.lower(Sale.customer_name).like(f"%{customer_name.strip().lower()}%"))
    if product_id:
        query = query.filter(Sale.product_id == product_id)

    column = SALE_SORT_COLUMNS.get(sort_by)
    if column is None:
        raise ValidationError(f"sort_by must be one of: {', '.join(SALE_SORT_COLUMNS)}")
    if sort_dir not in ("asc", "desc"):
        raise ValidationError("sort_dir must be asc or desc")
    order = column.asc() if sort_dir == "asc" else column.desc()
    query = query.order_by(order, Sale.id.asc())

    return paginate(query, page=page, per_page=per_page, serialize=lambda s: s.to_dict())

