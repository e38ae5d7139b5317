"""Dashboard blueprint — /api/dashboard/stats, /api/search

Read-only numbers and typeahead for the dashboard. Login required,
CSRF-exempt.
"""

from flask import Blueprint, jsonify, request

from leadbook.decorators import api_login_required
from leadbook.services import query_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api")

SEARCH_LIMIT = 10


@dashboard_bp.route("/dashboard/stats", methods=["GET"])
@api_login_required
def stats():
    return jsonify(success=True, data=query_service.dashboard_stats())


@dashboard_bp.route("/search", methods=["GET"])
@api_login_required
def search():
    """Typeahead over buyers. Empty query returns an empty list."""
    results = query_service.quick_search(request.args.get("q", ""), limit=SEARCH_LIMIT)
    return jsonify(
        success=True,
        data=[b.to_dict(include_owner=False) for b in results],
    )
