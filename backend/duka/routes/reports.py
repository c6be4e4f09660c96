from flask import Blueprint, jsonify, request

from duka.decorators import require_auth
from duka.request_args import date_range_args
from duka.services import reporting_service
from duka.validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-summary")
@require_auth
def sales_summary():
    try:
        date_from, date_to = date_range_args()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(reporting_service.sales_summary(date_from=date_from, date_to=date_to)), 200


@reports_bp.get("/daily-sales")
@require_auth
def daily_sales():
    days = request.args.get("days", 7, type=int)
    return jsonify({"items": reporting_service.daily_sales(days=days)}), 200


@reports_bp.get("/top-products")
@require_auth
def top_products():
    limit = request.args.get("limit", 10, type=int)
    try:
        date_from, date_to = date_range_args()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({
        "items": reporting_service.top_products(limit=limit, date_from=date_from, date_to=date_to)
    }), 200


@reports_bp.get("/debts-summary")
@require_auth
def debts_summary():
    return jsonify(reporting_service.debt_summary()), 200


@reports_bp.get("/debts-by-customer")
@require_auth
def debts_by_customer():
    return jsonify({"items": reporting_service.debts_by_customer()}), 200


@reports_bp.get("/overdue-debts")
@require_auth
def overdue_debts():
    items = reporting_service.overdue_debts()
    return jsonify({"items": items, "count": len(items)}), 200


@reports_bp.get("/expenses-summary")
@require_auth
def expenses_summary():
    try:
        date_from, date_to = date_range_args()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(reporting_service.expense_summary(date_from=date_from, date_to=date_to)), 200


@reports_bp.get("/monthly-expenses")
@require_auth
def monthly_expenses():
    months = request.args.get("months", 12, type=int)
    return jsonify({"items": reporting_service.monthly_expenses(months=months)}), 200


@reports_bp.get("/expenses-by-category")
@require_auth
def expenses_by_category():
    try:
        date_from, date_to = date_range_args()
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({
        "items": reporting_service.expenses_by_category(date_from=date_from, date_to=date_to)
    }), 200
