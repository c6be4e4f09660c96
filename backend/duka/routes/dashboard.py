# Overview: Dashboard endpoints; cached stats/charts plus two live feeds.

from flask import Blueprint, jsonify, request

from duka.decorators import require_auth
from duka.services import dashboard_service, reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def stats():
    return jsonify(dashboard_service.get_stats()), 200


@dashboard_bp.get("/charts")
@require_auth
def charts():
    return jsonify(dashboard_service.get_charts()), 200


@dashboard_bp.get("/weekly-expenses")
@require_auth
def weekly_expenses():
    return jsonify({"items": reporting_service.weekly_expenses()}), 200


@dashboard_bp.get("/recent-activities")
@require_auth
def recent_activities():
    limit = request.args.get("limit", 10, type=int)
    return jsonify({"items": reporting_service.recent_activities(limit=limit)}), 200
