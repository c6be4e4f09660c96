# Overview: Expense recording and the pending -> approved/rejected workflow.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Expense
from ..models.expenses import (
    EXPENSE_STATUS_APPROVED,
    EXPENSE_STATUS_PENDING,
    EXPENSE_STATUS_REJECTED,
    EXPENSE_STATUSES,
)
from duka.errors import InvalidStateError, NotFoundError
from duka.time_utils import utcnow
from duka.validation import ValidationError
from .concurrency import lock_for_update, run_atomic
from .pagination import paginate

EXPENSE_MUTABLE_FIELDS = {"description", "category", "amount"}


def _lock_expense(expense_id: str) -> Expense:
    expense = lock_for_update(db.session.query(Expense).filter_by(id=expense_id)).first()
    if not expense:
        raise NotFoundError("Expense not found", details={"expense_id": expense_id})
    return expense


def create_expense(*, patch: dict, user_id: str | None = None) -> Expense:
    def _op():
        expense = Expense(status=EXPENSE_STATUS_PENDING, created_by=user_id)
        for k in EXPENSE_MUTABLE_FIELDS:
            if k in patch:
                setattr(expense, k, patch[k])
        db.session.add(expense)
        db.session.flush()
        return expense

    expense = run_atomic(_op)
    current_app.logger.info("Expense recorded id=%s amount=%s category=%s", expense.id, expense.amount, expense.category)
    return expense


def get_expense(expense_id: str) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found", details={"expense_id": expense_id})
    return expense


def list_expenses(
    *,
    category: str | None = None,
    status: str | None = None,
    date_from=None,
    date_to=None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Expense)

    if category:
        query = query.filter(Expense.category == category)
    if status:
        if status not in EXPENSE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(EXPENSE_STATUSES)}")
        query = query.filter(Expense.status == status)
    if date_from is not None:
        query = query.filter(Expense.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Expense.created_at <= date_to)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(func.lower(Expense.description).like(pattern), func.lower(Expense.category).like(pattern))
        )

    query = query.order_by(Expense.created_at.desc(), Expense.id.asc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda e: e.to_dict())


def update_expense(expense_id: str, *, patch: dict) -> Expense:
    """Edit description, category or amount. Only pending expenses can change."""
    def _op():
        expense = _lock_expense(expense_id)
        if expense.status != EXPENSE_STATUS_PENDING:
            raise InvalidStateError(
                f"Cannot edit a {expense.status} expense",
                details={"expense_id": expense.id, "status": expense.status},
            )
        for k, v in patch.items():
            if k in EXPENSE_MUTABLE_FIELDS:
                setattr(expense, k, v)
        expense.updated_at = utcnow()
        db.session.flush()
        return expense

    return run_atomic(_op)


def delete_expense(expense_id: str) -> None:
    def _op():
        expense = _lock_expense(expense_id)
        db.session.delete(expense)
        db.session.flush()

    run_atomic(_op)
    current_app.logger.info("Expense deleted id=%s", expense_id)


def _decide(expense_id: str, new_status: str, user_id: str | None) -> Expense:
    def _op():
        expense = _lock_expense(expense_id)
        if expense.status != EXPENSE_STATUS_PENDING:
            raise InvalidStateError(
                f"Expense is already {expense.status}",
                details={"expense_id": expense.id, "status": expense.status},
            )
        expense.status = new_status
        expense.approved_by = user_id
        expense.approved_at = utcnow()
        expense.updated_at = expense.approved_at
        db.session.flush()
        return expense

    expense = run_atomic(_op)
    current_app.logger.info("Expense %s id=%s by user=%s", new_status, expense.id, user_id)
    return expense


def approve_expense(expense_id: str, user_id: str | None = None) -> Expense:
    return _decide(expense_id, EXPENSE_STATUS_APPROVED, user_id)


def reject_expense(expense_id: str, user_id: str | None = None) -> Expense:
    return _decide(expense_id, EXPENSE_STATUS_REJECTED, user_id)
