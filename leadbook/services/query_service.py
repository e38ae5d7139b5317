"""Buyer queries — filtering, sorting, pagination, dashboard numbers.

Read-only. Every authenticated user may read every buyer; ownership only
gates mutation (buyer_service).

Search is always case-insensitive substring matching over full name,
phone and email, on every backend (ILIKE on Postgres, lower() LIKE
lower() elsewhere). LIKE wildcards typed by the user are matched literally.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from leadbook.errors import ValidationError
from leadbook.extensions import db
from leadbook.models.buyer import ENUM_VALUES, Buyer, isoformat, utcnow
from leadbook.services import buyer_store
from leadbook.services.validation import normalize_enum

SORT_COLUMNS = {
    "fullName": Buyer.full_name,
    "createdAt": Buyer.created_at,
    "updatedAt": Buyer.updated_at,
}
SORT_ALIASES = {"full_name": "fullName", "created_at": "createdAt", "updated_at": "updatedAt"}
SORT_ORDERS = ("asc", "desc")

FILTER_FIELDS = ("city", "propertyType", "status", "timeline")


@dataclass
class BuyerFilters:
    search: Optional[str] = None
    city: Optional[str] = None
    property_type: Optional[str] = None
    status: Optional[str] = None
    timeline: Optional[str] = None
    sort_by: str = "updatedAt"
    sort_order: str = "desc"


@dataclass
class Page:
    records: list = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10

    @property
    def total_pages(self):
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_next(self):
        return self.page < self.total_pages

    @property
    def has_prev(self):
        return self.page > 1

    def pagination(self):
        return {
            "page": self.page,
            "limit": self.page_size,
            "total": self.total_count,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def _param(params, *names):
    for name in names:
        value = params.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def parse_filters(params):
    """Build BuyerFilters from request args (or any mapping).

    Enum filters go through the same normalization as buyer fields,
    so "mohali", "Mohali" and "MOHALI" are equivalent.

    Raises:
        ValidationError: On unknown enum values, sort field or order.
    """
    params = params or {}
    errors = {}
    values = {}

    for key in FILTER_FIELDS:
        snake = "property_type" if key == "propertyType" else key
        raw = _param(params, key, snake)
        if raw is None:
            values[snake] = None
            continue
        code = normalize_enum(key, raw)
        if code is None:
            errors[key] = [
                f"Invalid {key} '{raw}'. Must be one of: {', '.join(ENUM_VALUES[key])}"
            ]
        values[snake] = code

    sort_by = _param(params, "sortBy", "sort_by") or "updatedAt"
    sort_by = SORT_ALIASES.get(sort_by, sort_by)
    if sort_by not in SORT_COLUMNS:
        errors["sortBy"] = [f"sortBy must be one of: {', '.join(SORT_COLUMNS)}"]

    sort_order = (_param(params, "sortOrder", "sort_order") or "desc").lower()
    if sort_order not in SORT_ORDERS:
        errors["sortOrder"] = ["sortOrder must be 'asc' or 'desc'"]

    if errors:
        raise ValidationError(errors, message="Invalid query parameters.")

    return BuyerFilters(
        search=_param(params, "search", "q"),
        sort_by=sort_by,
        sort_order=sort_order,
        **values,
    )


def _escape_like(term):
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _search_clause(term, columns):
    pattern = f"%{_escape_like(term)}%"
    return db.or_(*[col.ilike(pattern, escape="\\") for col in columns])


def build_predicate(filters):
    """Translate filters into a list of ANDed SQLAlchemy clauses."""
    clauses = []
    if filters.search:
        clauses.append(
            _search_clause(filters.search, [Buyer.full_name, Buyer.phone, Buyer.email])
        )
    if filters.city:
        clauses.append(Buyer.city == filters.city)
    if filters.property_type:
        clauses.append(Buyer.property_type == filters.property_type)
    if filters.status:
        clauses.append(Buyer.status == filters.status)
    if filters.timeline:
        clauses.append(Buyer.timeline == filters.timeline)
    return clauses


def build_order(filters):
    column = SORT_COLUMNS[filters.sort_by]
    direction = column.asc() if filters.sort_order == "asc" else column.desc()
    # id breaks ties so pages never overlap
    return [direction, Buyer.id.asc()]


def _positive_int(value, name, default):
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            {name: [f"{name} must be a positive integer"]},
            message="Invalid query parameters.",
        ) from None
    if number < 1:
        raise ValidationError(
            {name: [f"{name} must be a positive integer"]},
            message="Invalid query parameters.",
        )
    return number


def list_buyers(filters=None, page=None, page_size=None):
    """Paginated, sorted buyer list.

    Args:
        filters: BuyerFilters (defaults to no filters, newest update first).
        page: 1-based page number.
        page_size: Rows per page, capped at BUYERS_MAX_PAGE_SIZE.

    Returns:
        Page with records and pagination metadata.
    """
    filters = filters or BuyerFilters()
    page = _positive_int(page, "page", 1)
    page_size = _positive_int(
        page_size, "limit", current_app.config["BUYERS_DEFAULT_PAGE_SIZE"]
    )
    page_size = min(page_size, current_app.config["BUYERS_MAX_PAGE_SIZE"])

    predicate = build_predicate(filters)
    records = buyer_store.find(
        predicate,
        order_by=build_order(filters),
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    total = buyer_store.count(predicate)
    return Page(records=records, total_count=total, page=page, page_size=page_size)


def all_matching(filters=None):
    """Every buyer matching the filters, unpaginated (CSV export)."""
    filters = filters or BuyerFilters()
    return buyer_store.find(build_predicate(filters), order_by=build_order(filters))


def quick_search(term, limit=10):
    """Typeahead search over name, phone, email, city and property type."""
    term = (term or "").strip()
    if not term:
        return []
    clause = _search_clause(
        term,
        [Buyer.full_name, Buyer.phone, Buyer.email, Buyer.city, Buyer.property_type],
    )
    return buyer_store.find([clause], order_by=[Buyer.updated_at.desc()], limit=limit)


def dashboard_stats(recent=5):
    """Headline numbers for the dashboard and analytics views.

    Returns:
        dict with totalBuyers, newThisMonth, converted, activeLeads,
        statusCounts, cityCounts and recentBuyers.
    """
    now = utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    status_counts = buyer_store.count_by(Buyer.status)
    recent_buyers = buyer_store.find(
        order_by=[Buyer.created_at.desc(), Buyer.id.asc()], limit=recent
    )

    return {
        "totalBuyers": buyer_store.count(),
        "newThisMonth": buyer_store.count([Buyer.created_at >= month_start]),
        "converted": status_counts.get("CONVERTED", 0),
        "activeLeads": sum(status_counts.get(s, 0) for s in Buyer.ACTIVE_STATUSES),
        "statusCounts": status_counts,
        "cityCounts": buyer_store.count_by(Buyer.city),
        "recentBuyers": [
            {
                "id": b.id,
                "fullName": b.full_name,
                "city": b.city,
                "status": b.status,
                "createdAt": isoformat(b.created_at),
                "ownerName": b.owner.name if b.owner else None,
            }
            for b in recent_buyers
        ],
    }
