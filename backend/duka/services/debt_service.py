# Overview: Debt payment ledger and debt administration.

"""
Debt Service

WHY: A debt's amount_paid must always equal the sum of its payment rows.
make_payment() is the only writer of amount_paid; it appends the ledger row
and moves the running totals in the same transaction. Payment rows are
never updated or deleted here.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, func, not_

from ..extensions import db
from ..models import Debt, DebtPayment
from ..models.debts import (
    DEBT_STATUS_OVERDUE,
    DEBT_STATUS_PAID,
    DEBT_STATUS_PENDING,
    DEBT_STATUSES,
    balance_for,
    status_for,
)
from duka.errors import InvalidAmountError, InvalidStateError, NotFoundError
from duka.money import ZERO, quantize
from duka.time_utils import today, utcnow
from duka.validation import ValidationError
from .concurrency import lock_for_update, run_atomic
from .input_schemas import DebtInput, DebtUpdateInput, PaymentInput
from .pagination import paginate


def _lock_debt(debt_id: str) -> Debt:
    debt = lock_for_update(db.session.query(Debt).filter_by(id=debt_id)).first()
    if not debt:
        raise NotFoundError("Debt not found", details={"debt_id": debt_id})
    return debt


def _record_payment_locked(debt: Debt, payment: PaymentInput, user_id: str | None) -> DebtPayment:
    """Apply one payment to a locked debt. Caller owns the transaction."""
    if debt.status == DEBT_STATUS_PAID:
        raise InvalidStateError("Debt is already paid", details={"debt_id": debt.id})

    old_paid = Decimal(debt.amount_paid)
    amount = Decimal(debt.amount)
    new_paid = quantize(old_paid + payment.amount)
    if new_paid > amount:
        raise InvalidAmountError(
            "Payment exceeds outstanding balance",
            details={
                "debt_id": debt.id,
                "balance": str(balance_for(amount, old_paid)),
                "payment": str(payment.amount),
            },
        )

    debt.amount_paid = new_paid
    debt.balance = balance_for(amount, new_paid)
    debt.status = status_for(new_paid, debt.balance)
    debt.updated_at = utcnow()

    row = DebtPayment(
        debt_id=debt.id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        notes=payment.notes,
        created_by=user_id,
    )
    db.session.add(row)
    return row


def make_payment(debt_id: str, payment: PaymentInput, user_id: str | None = None) -> tuple[Debt, DebtPayment]:
    """
    Record a payment against a debt.

    Overdue debts accept payments; only a stored status of "paid" refuses them.

    Raises:
        InvalidAmountError: amount <= 0 (before any work), or payment would overpay
        NotFoundError: debt does not exist
        InvalidStateError: debt already paid
    """
    if payment.amount <= ZERO:
        raise InvalidAmountError("Payment amount must be greater than 0")

    def _op():
        debt = _lock_debt(debt_id)
        row = _record_payment_locked(debt, payment, user_id)
        db.session.flush()
        return debt, row

    debt, row = run_atomic(_op)
    current_app.logger.info(
        "Debt payment recorded debt=%s amount=%s balance=%s status=%s",
        debt.id, row.amount, debt.balance, debt.status,
    )
    return debt, row


def create_debt(data: DebtInput, user_id: str | None = None) -> Debt:
    """
    Record a standalone debt (not tied to a sale).

    The debt always starts with nothing paid. A deposit taken at the counter
    is posted as its first ledger payment inside the same transaction.
    """
    if data.initial_payment is not None and data.initial_payment > data.amount:
        raise InvalidAmountError("Initial payment exceeds debt amount")

    def _op():
        debt = Debt(
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            amount=data.amount,
            amount_paid=ZERO,
            balance=data.amount,
            status=DEBT_STATUS_PENDING,
            due_date=data.due_date,
            notes=data.notes,
            created_by=user_id,
        )
        db.session.add(debt)
        db.session.flush()

        if data.initial_payment is not None:
            _record_payment_locked(
                debt,
                PaymentInput(amount=data.initial_payment, notes="Initial payment"),
                user_id,
            )
            db.session.flush()
        return debt

    debt = run_atomic(_op)
    current_app.logger.info("Debt created id=%s amount=%s customer=%r", debt.id, debt.amount, debt.customer_name)
    return debt


def update_debt(debt_id: str, data: DebtUpdateInput) -> Debt:
    """
    Update customer details, due date, notes or amount.

    Lowering the amount below what has already been paid is refused; balance
    and status follow the new amount.
    """
    changes = data.changes()
    if not changes:
        raise ValidationError("No changes supplied")

    def _op():
        debt = _lock_debt(debt_id)
        for field in ("customer_name", "customer_phone", "due_date", "notes"):
            if field in changes:
                setattr(debt, field, changes[field])

        if "amount" in changes:
            amount_paid = Decimal(debt.amount_paid)
            if changes["amount"] < amount_paid:
                raise InvalidAmountError(
                    "Debt amount cannot be less than the amount already paid",
                    details={"debt_id": debt.id, "amount_paid": str(amount_paid)},
                )
            debt.amount = changes["amount"]
            debt.balance = balance_for(debt.amount, amount_paid)
            debt.status = status_for(amount_paid, debt.balance)

        debt.updated_at = utcnow()
        db.session.flush()
        return debt

    return run_atomic(_op)


def delete_debt(debt_id: str) -> None:
    """Delete a debt and its payment history."""
    def _op():
        debt = _lock_debt(debt_id)
        db.session.delete(debt)
        db.session.flush()

    run_atomic(_op)
    current_app.logger.info("Debt deleted id=%s", debt_id)


def get_debt(debt_id: str) -> Debt:
    debt = db.session.get(Debt, debt_id)
    if not debt:
        raise NotFoundError("Debt not found", details={"debt_id": debt_id})
    return debt


def payment_history(debt_id: str) -> list[DebtPayment]:
    """Ledger entries for a debt, newest first."""
    get_debt(debt_id)
    return (
        db.session.query(DebtPayment)
        .filter_by(debt_id=debt_id)
        .order_by(DebtPayment.created_at.desc(), DebtPayment.id.desc())
        .all()
    )


def overdue_filter(on: date):
    return and_(
        Debt.status != DEBT_STATUS_PAID,
        Debt.due_date.isnot(None),
        Debt.due_date < on,
        Debt.balance > 0,
    )


def list_debts(
    *,
    status: str | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Debt listing. status may be a stored status or the derived "overdue";
    filtering by a stored status excludes debts that are currently overdue,
    matching the status each row reports.
    """
    on = today()
    query = db.session.query(Debt)

    if status:
        if status == DEBT_STATUS_OVERDUE:
            query = query.filter(overdue_filter(on))
        elif status in DEBT_STATUSES:
            query = query.filter(Debt.status == status).filter(not_(overdue_filter(on)))
        else:
            raise ValidationError(
                f"status must be one of: {', '.join(DEBT_STATUSES + (DEBT_STATUS_OVERDUE,))}"
            )
    if customer_name:
        query = query.filter(func.lower(Debt.customer_name).like(f"%{customer_name.strip().lower()}%"))
    if customer_phone:
        query = query.filter(Debt.customer_phone.like(f"%{customer_phone.strip()}%"))

    query = query.order_by(Debt.created_at.desc(), Debt.id.asc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda d: d.to_dict(on))


def ledger_total(debt_id: str) -> Decimal:
    """Sum of payment rows for a debt."""
    total = (
        db.session.query(func.coalesce(func.sum(DebtPayment.amount), 0))
        .filter(DebtPayment.debt_id == debt_id)
        .scalar()
    )
    return quantize(Decimal(str(total)))
