# Overview: Read-only aggregate reports over sales, debts and expenses.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from duka.extensions import db
from duka.models import Debt, Expense, Sale
from duka.models.debts import (
    DEBT_STATUS_OVERDUE,
    DEBT_STATUS_PAID,
    DEBT_STATUS_PARTIALLY_PAID,
    DEBT_STATUS_PENDING,
)
from duka.models.expenses import (
    EXPENSE_STATUS_APPROVED,
    EXPENSE_STATUS_PENDING,
    EXPENSE_STATUS_REJECTED,
)
from duka.models.sales import (
    PAYMENT_CASH,
    PAYMENT_DEBT,
    PAYMENT_METHODS,
    PAYMENT_MOBILE_MONEY,
    SALE_STATUS_CANCELLED,
)
from duka.money import ZERO, money_str, quantize
from duka.time_utils import to_utc_z, today
from .debt_service import overdue_filter


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return quantize(Decimal(str(value)))


def _day_key(value) -> str:
    # func.date() is a 'YYYY-MM-DD' string on SQLite and a date elsewhere
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def _counted_sales(query):
    """Cancelled sales never count toward revenue."""
    return query.filter(Sale.status != SALE_STATUS_CANCELLED)


def _apply_range(query, column, date_from: datetime | None, date_to: datetime | None):
    if date_from is not None:
        query = query.filter(column >= date_from)
    if date_to is not None:
        query = query.filter(column <= date_to)
    return query


def sales_summary(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    query = db.session.query(
        Sale.payment_method,
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total), 0).label("revenue"),
    )
    query = _apply_range(_counted_sales(query), Sale.created_at, date_from, date_to)
    rows = query.group_by(Sale.payment_method).all()

    by_method = {m: {"count": 0, "revenue": ZERO} for m in PAYMENT_METHODS}
    for row in rows:
        bucket = by_method.setdefault(row.payment_method, {"count": 0, "revenue": ZERO})
        bucket["count"] = int(row.count or 0)
        bucket["revenue"] = _money(row.revenue)

    total_sales = sum(b["count"] for b in by_method.values())
    total_revenue = sum((b["revenue"] for b in by_method.values()), ZERO)

    return {
        "date_from": to_utc_z(date_from),
        "date_to": to_utc_z(date_to),
        "total_sales": total_sales,
        "total_revenue": money_str(total_revenue),
        "average_sale": money_str(total_revenue / total_sales) if total_sales else money_str(ZERO),
        "cash_sales": money_str(by_method[PAYMENT_CASH]["revenue"]),
        "mobile_money_sales": money_str(by_method[PAYMENT_MOBILE_MONEY]["revenue"]),
        "debt_sales": money_str(by_method[PAYMENT_DEBT]["revenue"]),
    }


def daily_sales(*, days: int = 7, on: date | None = None) -> list[dict]:
    """Per-day sale count and revenue for the last `days` days, oldest first, zero-filled."""
    on = on or today()
    days = max(1, min(days, 366))
    start_day = on - timedelta(days=days - 1)
    start_dt = datetime.combine(start_day, datetime.min.time())

    day_expr = func.date(Sale.created_at)
    rows = (
        _counted_sales(
            db.session.query(
                day_expr.label("day"),
                func.count(Sale.id).label("count"),
                func.coalesce(func.sum(Sale.total), 0).label("revenue"),
            )
        )
        .filter(Sale.created_at >= start_dt)
        .group_by(day_expr)
        .all()
    )
    found = {_day_key(r.day): r for r in rows}

    result = []
    for offset in range(days):
        day = (start_day + timedelta(days=offset)).isoformat()
        row = found.get(day)
        result.append({
            "date": day,
            "count": int(row.count) if row else 0,
            "revenue": money_str(_money(row.revenue) if row else ZERO),
        })
    return result


def top_products(
    *,
    limit: int = 10,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[dict]:
    """Best sellers by quantity, with the revenue they brought in."""
    quantity_sum = func.sum(Sale.quantity)
    query = db.session.query(
        Sale.product_id,
        func.max(Sale.product_name).label("product_name"),
        quantity_sum.label("quantity_sold"),
        func.coalesce(func.sum(Sale.total), 0).label("revenue"),
        func.count(Sale.id).label("sales_count"),
    )
    query = _apply_range(_counted_sales(query), Sale.created_at, date_from, date_to)
    rows = (
        query.group_by(Sale.product_id)
        .order_by(quantity_sum.desc(), Sale.product_id.asc())
        .limit(max(1, limit))
        .all()
    )
    return [
        {
            "product_id": r.product_id,
            "product_name": r.product_name,
            "quantity_sold": int(r.quantity_sold or 0),
            "revenue": money_str(_money(r.revenue)),
            "sales_count": int(r.sales_count or 0),
        }
        for r in rows
    ]


def payment_distribution(*, date_from: datetime | None = None, date_to: datetime | None = None) -> list[dict]:
    summary = sales_summary(date_from=date_from, date_to=date_to)
    query = db.session.query(Sale.payment_method, func.count(Sale.id))
    query = _apply_range(_counted_sales(query), Sale.created_at, date_from, date_to)
    counts = dict(query.group_by(Sale.payment_method).all())
    revenue = {
        PAYMENT_CASH: summary["cash_sales"],
        PAYMENT_MOBILE_MONEY: summary["mobile_money_sales"],
        PAYMENT_DEBT: summary["debt_sales"],
    }
    return [
        {"payment_method": m, "count": int(counts.get(m, 0)), "revenue": revenue[m]}
        for m in PAYMENT_METHODS
    ]


# =============================================================================
# DEBTS
# =============================================================================

def debt_summary(*, on: date | None = None) -> dict:
    """Totals plus a count per effective status (overdue derived from due_date)."""
    on = on or today()
    totals = db.session.query(
        func.count(Debt.id),
        func.coalesce(func.sum(Debt.amount), 0),
        func.coalesce(func.sum(Debt.amount_paid), 0),
        func.coalesce(func.sum(Debt.balance), 0),
    ).one()

    counts = {
        DEBT_STATUS_PENDING: 0,
        DEBT_STATUS_PARTIALLY_PAID: 0,
        DEBT_STATUS_PAID: 0,
        DEBT_STATUS_OVERDUE: 0,
    }
    overdue_amount = ZERO
    for debt in db.session.query(Debt).filter(Debt.status != DEBT_STATUS_PAID).all():
        status = debt.effective_status(on)
        counts[status] = counts.get(status, 0) + 1
        if status == DEBT_STATUS_OVERDUE:
            overdue_amount += _money(debt.balance)
    counts[DEBT_STATUS_PAID] = (
        db.session.query(func.count(Debt.id)).filter(Debt.status == DEBT_STATUS_PAID).scalar() or 0
    )

    return {
        "total_debts": int(totals[0] or 0),
        "total_amount": money_str(_money(totals[1])),
        "total_paid": money_str(_money(totals[2])),
        "total_outstanding": money_str(_money(totals[3])),
        "overdue_amount": money_str(overdue_amount),
        "pending_count": counts[DEBT_STATUS_PENDING],
        "partially_paid_count": counts[DEBT_STATUS_PARTIALLY_PAID],
        "paid_count": counts[DEBT_STATUS_PAID],
        "overdue_count": counts[DEBT_STATUS_OVERDUE],
    }


def debts_by_customer() -> list[dict]:
    rows = (
        db.session.query(
            Debt.customer_name,
            Debt.customer_phone,
            func.count(Debt.id).label("debt_count"),
            func.coalesce(func.sum(Debt.amount), 0).label("total_amount"),
            func.coalesce(func.sum(Debt.amount_paid), 0).label("total_paid"),
            func.coalesce(func.sum(Debt.balance), 0).label("total_balance"),
        )
        .group_by(Debt.customer_name, Debt.customer_phone)
        .order_by(func.sum(Debt.balance).desc(), Debt.customer_name.asc())
        .all()
    )
    return [
        {
            "customer_name": r.customer_name,
            "customer_phone": r.customer_phone,
            "debt_count": int(r.debt_count or 0),
            "total_amount": money_str(_money(r.total_amount)),
            "total_paid": money_str(_money(r.total_paid)),
            "total_balance": money_str(_money(r.total_balance)),
        }
        for r in rows
    ]


def overdue_debts(*, on: date | None = None) -> list[dict]:
    on = on or today()
    debts = (
        db.session.query(Debt)
        .filter(overdue_filter(on))
        .order_by(Debt.due_date.asc(), Debt.created_at.asc())
        .all()
    )
    result = []
    for debt in debts:
        row = debt.to_dict(on)
        row["days_overdue"] = (on - debt.due_date).days
        result.append(row)
    return result


# =============================================================================
# EXPENSES
# =============================================================================

def expense_summary(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    query = db.session.query(
        Expense.status,
        func.count(Expense.id),
        func.coalesce(func.sum(Expense.amount), 0),
    )
    query = _apply_range(query, Expense.created_at, date_from, date_to)
    rows = query.group_by(Expense.status).all()

    amounts = {EXPENSE_STATUS_APPROVED: ZERO, EXPENSE_STATUS_PENDING: ZERO, EXPENSE_STATUS_REJECTED: ZERO}
    total_count = 0
    for status, count, amount in rows:
        amounts[status] = _money(amount)
        total_count += int(count or 0)

    return {
        "date_from": to_utc_z(date_from),
        "date_to": to_utc_z(date_to),
        "total_expenses": total_count,
        "total_amount": money_str(sum(amounts.values(), ZERO)),
        "approved_amount": money_str(amounts[EXPENSE_STATUS_APPROVED]),
        "pending_amount": money_str(amounts[EXPENSE_STATUS_PENDING]),
        "rejected_amount": money_str(amounts[EXPENSE_STATUS_REJECTED]),
    }


def _expense_totals_by_day(start_dt: datetime, end_dt: datetime | None = None) -> dict[str, Decimal]:
    """Non-rejected expense totals keyed by 'YYYY-MM-DD'."""
    day_expr = func.date(Expense.created_at)
    query = (
        db.session.query(day_expr.label("day"), func.coalesce(func.sum(Expense.amount), 0).label("total"))
        .filter(Expense.status != EXPENSE_STATUS_REJECTED)
        .filter(Expense.created_at >= start_dt)
    )
    if end_dt is not None:
        query = query.filter(Expense.created_at <= end_dt)
    return {_day_key(r.day): _money(r.total) for r in query.group_by(day_expr).all()}


def monthly_expenses(*, months: int = 12, on: date | None = None) -> list[dict]:
    """Expense totals per calendar month (YYYY-MM), oldest first, zero-filled."""
    on = on or today()
    months = max(1, min(months, 60))

    keys = []
    year, month = on.year, on.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    keys.reverse()

    first_year, first_month = (int(p) for p in keys[0].split("-"))
    start_dt = datetime(first_year, first_month, 1)

    buckets = {k: ZERO for k in keys}
    for day, total in _expense_totals_by_day(start_dt).items():
        key = day[:7]
        if key in buckets:
            buckets[key] += total

    return [{"month": k, "total": money_str(buckets[k])} for k in keys]


def weekly_expenses(*, on: date | None = None) -> list[dict]:
    """Monday..Sunday of the current week, zero-filled."""
    on = on or today()
    monday = on - timedelta(days=on.weekday())
    start_dt = datetime.combine(monday, datetime.min.time())
    end_dt = datetime.combine(monday + timedelta(days=6), datetime.max.time())
    totals = _expense_totals_by_day(start_dt, end_dt)

    result = []
    for offset in range(7):
        day = monday + timedelta(days=offset)
        result.append({
            "date": day.isoformat(),
            "day": day.strftime("%A"),
            "total": money_str(totals.get(day.isoformat(), ZERO)),
        })
    return result


def expenses_by_category(*, date_from: datetime | None = None, date_to: datetime | None = None) -> list[dict]:
    total_expr = func.coalesce(func.sum(Expense.amount), 0)
    query = db.session.query(
        Expense.category,
        func.count(Expense.id).label("count"),
        total_expr.label("total"),
    ).filter(Expense.status != EXPENSE_STATUS_REJECTED)
    query = _apply_range(query, Expense.created_at, date_from, date_to)
    rows = query.group_by(Expense.category).order_by(total_expr.desc(), Expense.category.asc()).all()
    return [
        {"category": r.category, "count": int(r.count or 0), "total": money_str(_money(r.total))}
        for r in rows
    ]


def recent_activities(*, limit: int = 10) -> list[dict]:
    """Latest sales and expenses merged into one feed, newest first."""
    limit = max(1, min(limit, 100))
    sales = db.session.query(Sale).order_by(Sale.created_at.desc()).limit(limit).all()
    expenses = db.session.query(Expense).order_by(Expense.created_at.desc()).limit(limit).all()

    feed = [
        {
            "type": "sale",
            "id": s.id,
            "description": f"Sold {s.quantity} x {s.product_name}",
            "amount": money_str(s.total),
            "payment_method": s.payment_method,
            "status": s.status,
            "_at": s.created_at,
            "created_at": to_utc_z(s.created_at),
        }
        for s in sales
    ] + [
        {
            "type": "expense",
            "id": e.id,
            "description": e.description,
            "amount": money_str(e.amount),
            "category": e.category,
            "status": e.status,
            "_at": e.created_at,
            "created_at": to_utc_z(e.created_at),
        }
        for e in expenses
    ]
    feed.sort(key=lambda item: item["_at"], reverse=True)
    for item in feed:
        del item["_at"]
    return feed[:limit]
