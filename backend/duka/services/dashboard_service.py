"""
Dashboard Service

Stats and chart payloads for the landing page, served through a small TTL
cache owned by the app (app.extensions["duka_dashboard_cache"]).

The cache is dropped after any commit that wrote a product, sale, debt,
debt payment or expense, so the dashboard never lags a write by more than
the request that made it. TTL expiry covers everything else.
"""

from __future__ import annotations

import threading
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable

from flask import current_app, has_app_context
from sqlalchemy import event, func
from sqlalchemy.orm import Session

from duka.extensions import db
from duka.models import Debt, DebtPayment, Expense, Product, Sale
from duka.models.debts import DEBT_STATUS_PAID
from duka.models.expenses import EXPENSE_STATUS_PENDING, EXPENSE_STATUS_REJECTED
from duka.models.sales import SALE_STATUS_CANCELLED
from duka.money import ZERO, money_str, quantize
from duka.time_utils import today
from . import reporting_service
from .products_service import low_stock_products

CACHE_EXTENSION_KEY = "duka_dashboard_cache"

STATS_KEY = "stats"
CHARTS_KEY = "charts"

_WATCHED_MODELS = (Product, Sale, Debt, DebtPayment, Expense)
_DIRTY_FLAG = "duka_dashboard_dirty"


class DashboardCache:
    """
    Keyed TTL cache.

    clock is injectable so tests can move time without sleeping.
    """

    def __init__(self, ttl_seconds: dict[str, float] | float, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def ttl_for(self, key: str) -> float:
        if isinstance(self._ttl, dict):
            return self._ttl.get(key, 0)
        return self._ttl

    def get(self, key: str):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_for(key), value)

    def get_or_compute(self, key: str, compute: Callable[[], Any]):
        value = self.get(key)
        if value is None:
            value = compute()
            self.set(key, value)
        return value

    def invalidate(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


def init_dashboard_cache(app) -> DashboardCache:
    cache = DashboardCache(
        {
            STATS_KEY: app.config.get("DASHBOARD_STATS_TTL", 300),
            CHARTS_KEY: app.config.get("DASHBOARD_CHARTS_TTL", 600),
        }
    )
    app.extensions[CACHE_EXTENSION_KEY] = cache
    return cache


def get_cache() -> DashboardCache:
    return current_app.extensions[CACHE_EXTENSION_KEY]


# =============================================================================
# WRITE-DRIVEN INVALIDATION
# =============================================================================

@event.listens_for(Session, "after_flush")
def _mark_dashboard_dirty(session, flush_context):
    touched = any(
        isinstance(obj, _WATCHED_MODELS)
        for obj in list(session.new) + list(session.dirty) + list(session.deleted)
    )
    if touched:
        session.info[_DIRTY_FLAG] = True


@event.listens_for(Session, "after_commit")
def _invalidate_on_commit(session):
    if not session.info.pop(_DIRTY_FLAG, False):
        return
    if not has_app_context():
        return
    cache = current_app.extensions.get(CACHE_EXTENSION_KEY)
    if cache is not None:
        cache.invalidate()


@event.listens_for(Session, "after_rollback")
def _forget_on_rollback(session):
    session.info.pop(_DIRTY_FLAG, None)


# =============================================================================
# PAYLOADS
# =============================================================================

def _money_sum(query) -> Any:
    value = query.scalar()
    return quantize(Decimal(str(value))) if value is not None else ZERO


def _start_of(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


def compute_stats(on: date | None = None) -> dict:
    on = on or today()
    day_start = _start_of(on)
    month_start = _start_of(on.replace(day=1))

    def sales_total(since: datetime | None = None):
        query = db.session.query(func.sum(Sale.total)).filter(Sale.status != SALE_STATUS_CANCELLED)
        if since is not None:
            query = query.filter(Sale.created_at >= since)
        return _money_sum(query)

    def sales_count(since: datetime | None = None) -> int:
        query = db.session.query(func.count(Sale.id)).filter(Sale.status != SALE_STATUS_CANCELLED)
        if since is not None:
            query = query.filter(Sale.created_at >= since)
        return int(query.scalar() or 0)

    def expenses_total(since: datetime | None = None):
        query = db.session.query(func.sum(Expense.amount)).filter(Expense.status != EXPENSE_STATUS_REJECTED)
        if since is not None:
            query = query.filter(Expense.created_at >= since)
        return _money_sum(query)

    debt_summary = reporting_service.debt_summary(on=on)
    low_stock = low_stock_products()

    month_revenue = sales_total(month_start)
    month_expenses = expenses_total(month_start)

    return {
        "sales": {
            "total_sales": sales_count(),
            "total_revenue": money_str(sales_total()),
            "today_sales": sales_count(day_start),
            "today_revenue": money_str(sales_total(day_start)),
            "month_sales": sales_count(month_start),
            "month_revenue": money_str(month_revenue),
        },
        "expenses": {
            "total_amount": money_str(expenses_total()),
            "today_amount": money_str(expenses_total(day_start)),
            "month_amount": money_str(month_expenses),
            "pending_count": int(
                db.session.query(func.count(Expense.id)).filter(Expense.status == EXPENSE_STATUS_PENDING).scalar() or 0
            ),
        },
        "debts": {
            "total_outstanding": debt_summary["total_outstanding"],
            "open_count": int(
                db.session.query(func.count(Debt.id)).filter(Debt.status != DEBT_STATUS_PAID).scalar() or 0
            ),
            "overdue_count": debt_summary["overdue_count"],
            "overdue_amount": debt_summary["overdue_amount"],
        },
        "inventory": {
            "total_products": int(db.session.query(func.count(Product.id)).scalar() or 0),
            "stock_units": int(db.session.query(func.coalesce(func.sum(Product.stock_quantity), 0)).scalar() or 0),
            "low_stock_count": len(low_stock),
            "low_stock_products": [p.to_dict() for p in low_stock[:5]],
        },
        "month_net": money_str(month_revenue - month_expenses),
    }


def compute_charts(on: date | None = None) -> dict:
    on = on or today()
    since = _start_of(on - timedelta(days=29))
    return {
        "daily_sales": reporting_service.daily_sales(days=7, on=on),
        "top_products": reporting_service.top_products(limit=5),
        "payment_methods": reporting_service.payment_distribution(date_from=since),
        "expenses_by_category": reporting_service.expenses_by_category(date_from=since),
    }


def get_stats() -> dict:
    return get_cache().get_or_compute(STATS_KEY, compute_stats)


def get_charts() -> dict:
    return get_cache().get_or_compute(CHARTS_KEY, compute_charts)
