"""Buyer store — the only code that reads or writes the buyers table.

Every function flushes but does NOT commit. buyer_service owns the
transaction, so a record change and its history row land together.
Tags are (de)serialized by the Buyer model; callers only ever see lists.
"""

from leadbook.extensions import db
from leadbook.models.buyer import Buyer


def get(buyer_id):
    """Load one buyer straight from the database.

    populate_existing makes sure a copy already sitting in the session's
    identity map is overwritten with the current row, so concurrency
    checks never run against stale state.

    Returns:
        Buyer or None.
    """
    if not buyer_id:
        return None
    return db.session.get(Buyer, buyer_id, populate_existing=True)


def _filtered(predicate):
    query = Buyer.query
    if predicate:
        query = query.filter(*predicate)
    return query


def find(predicate=None, order_by=(), offset=0, limit=None):
    """Fetch many buyers.

    Args:
        predicate: Iterable of SQLAlchemy filter clauses, ANDed together.
        order_by: Iterable of ORDER BY clauses.
        offset: Rows to skip.
        limit: Max rows, or None for all.

    Returns:
        List of Buyer objects.
    """
    query = _filtered(predicate).order_by(*order_by)
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def count(predicate=None):
    return _filtered(predicate).count()


def count_by(column, predicate=None):
    """Grouped counts, e.g. count_by(Buyer.status) -> {"NEW": 3, ...}."""
    query = db.session.query(column, db.func.count(Buyer.id))
    if predicate:
        query = query.filter(*predicate)
    return {value: total for value, total in query.group_by(column).all()}


def insert(buyer):
    db.session.add(buyer)
    db.session.flush()
    return buyer


def save(buyer):
    """Flush pending changes. The UPDATE is guarded by updated_at (see Buyer)."""
    db.session.flush()
    return buyer


def delete(buyer):
    db.session.delete(buyer)
    db.session.flush()
