"""Buyers blueprint — /api/buyers/*

Thin JSON layer over the buyer services. Routes read the request, call
one service and serialize the result; BuyerError subclasses raised by the
services are turned into JSON by the app-level error handler.
All routes require login. CSRF-exempt (JSON API, SameSite session cookie).

Route Map:
  GET    /api/buyers                 — List (filters, sort, pagination)
  POST   /api/buyers                 — Create
  GET    /api/buyers/export          — CSV export of the filtered set
  POST   /api/buyers/import          — CSV import (multipart "file" or text/csv body)
  GET    /api/buyers/import/template — Empty CSV with the accepted headers
  GET    /api/buyers/<id>            — Detail + 5 latest history entries
  PUT    /api/buyers/<id>            — Update (body carries updatedAt)
  DELETE /api/buyers/<id>            — Delete
  GET    /api/buyers/<id>/history    — Full history ledger
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user

from leadbook.decorators import api_login_required
from leadbook.errors import CSVImportError
from leadbook.extensions import limiter
from leadbook.services import (
    buyer_service,
    csv_service,
    history_service,
    query_service,
)

buyers_bp = Blueprint("buyers", __name__, url_prefix="/api/buyers")

logger = logging.getLogger(__name__)

RECENT_HISTORY = 5


def _json_body():
    """Parsed JSON object body, or None if missing/invalid."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _invalid_body():
    return jsonify(
        success=False,
        error="invalid_json",
        message="Request body must be a JSON object.",
    ), 400


# ─── List / Create ───────────────────────────────────────────────

@buyers_bp.route("", methods=["GET"])
@api_login_required
def list_buyers():
    filters = query_service.parse_filters(request.args)
    page = query_service.list_buyers(
        filters,
        page=request.args.get("page"),
        page_size=request.args.get("limit") or request.args.get("pageSize"),
    )
    return jsonify(
        success=True,
        data={
            "buyers": [b.to_dict() for b in page.records],
            "pagination": page.pagination(),
        },
    )


@buyers_bp.route("", methods=["POST"])
@api_login_required
def create_buyer():
    payload = _json_body()
    if payload is None:
        return _invalid_body()
    buyer = buyer_service.create_buyer(payload, current_user.id)
    return jsonify(success=True, data=buyer.to_dict()), 201


# ─── CSV ─────────────────────────────────────────────────────────

@buyers_bp.route("/export", methods=["GET"])
@api_login_required
def export_buyers():
    filters = query_service.parse_filters(request.args)
    content = csv_service.export_buyers_csv(filters)
    today = datetime.now(timezone.utc).date().isoformat()
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="buyers-{today}.csv"'},
    )


def _read_upload():
    """CSV text from a multipart "file" field or a raw text/csv body."""
    upload = request.files.get("file")
    if upload is not None:
        filename = upload.filename or ""
        if upload.mimetype != "text/csv" and not filename.lower().endswith(".csv"):
            raise CSVImportError("File must be a CSV")
        raw = upload.read()
    elif request.mimetype == "text/csv":
        raw = request.get_data()
    else:
        raise CSVImportError("No file provided")

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise CSVImportError("CSV file must be UTF-8 encoded") from None


@buyers_bp.route("/import", methods=["POST"])
@api_login_required
@limiter.limit(lambda: current_app.config["IMPORT_RATE_LIMIT"])
def import_buyers():
    result = csv_service.import_buyers_csv(_read_upload(), current_user.id)
    if not result.ok:
        return jsonify(
            success=False,
            error="all_rows_invalid",
            message="All rows contain errors",
            data=result.to_dict(),
        ), 400
    return jsonify(success=True, data=result.to_dict())


@buyers_bp.route("/import/template", methods=["GET"])
@api_login_required
def import_template():
    return Response(
        csv_service.template_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": 'attachment; filename="buyers-template.csv"'},
    )


# ─── Single buyer ────────────────────────────────────────────────

@buyers_bp.route("/<buyer_id>", methods=["GET"])
@api_login_required
def get_buyer(buyer_id):
    buyer = buyer_service.get_buyer(buyer_id)
    data = buyer.to_dict()
    data["history"] = [
        h.to_dict() for h in history_service.list_for_buyer(buyer.id, limit=RECENT_HISTORY)
    ]
    return jsonify(success=True, data=data)


@buyers_bp.route("/<buyer_id>", methods=["PUT"])
@api_login_required
def update_buyer(buyer_id):
    payload = _json_body()
    if payload is None:
        return _invalid_body()
    expected = payload.get("updatedAt") or payload.get("expectedUpdatedAt")
    buyer = buyer_service.update_buyer(buyer_id, payload, expected, current_user.id)
    return jsonify(success=True, data=buyer.to_dict())


@buyers_bp.route("/<buyer_id>", methods=["DELETE"])
@api_login_required
def delete_buyer(buyer_id):
    payload = _json_body() or {}
    expected = payload.get("updatedAt") or request.args.get("updatedAt")
    buyer_service.delete_buyer(buyer_id, current_user.id, expected_updated_at=expected)
    return jsonify(success=True, message="Buyer deleted successfully")


@buyers_bp.route("/<buyer_id>/history", methods=["GET"])
@api_login_required
def buyer_history(buyer_id):
    buyer = buyer_service.get_buyer(buyer_id)
    return jsonify(
        success=True,
        data=[h.to_dict() for h in history_service.list_for_buyer(buyer.id)],
    )
