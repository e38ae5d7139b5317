"""History ledger — append-only audit trail per buyer.

Functions flush but do NOT commit — the caller commits, so each entry
shares the transaction of the mutation it documents.
"""

from leadbook.extensions import db
from leadbook.models.buyer_history import BuyerHistory


def record(buyer_id, user_id, action, **context):
    """Append one history entry.

    Args:
        buyer_id: Buyer UUID string.
        user_id: Acting user's UUID string.
        action: One of BuyerHistory.ACTIONS.
        **context: Extra JSON-safe payload (data=..., changes=..., buyer_name=...).

    Returns:
        The created BuyerHistory object.

    Raises:
        ValueError: If action is invalid.
    """
    if action not in BuyerHistory.ACTIONS:
        raise ValueError(
            f"Invalid action '{action}'. Must be one of: {', '.join(BuyerHistory.ACTIONS)}"
        )

    entry = BuyerHistory(
        buyer_id=buyer_id,
        changed_by_id=user_id,
        diff={"action": action, **context},
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def diff(before, after):
    """Field-level changes between two payloads.

    Only keys present in `after` are compared; unchanged fields are left out.

    Returns:
        dict of field -> {"old": ..., "new": ...}; empty when nothing changed.
    """
    changes = {}
    for key, new in after.items():
        old = before.get(key)
        if old != new:
            changes[key] = {"old": old, "new": new}
    return changes


def list_for_buyer(buyer_id, limit=None):
    """History for one buyer, newest first."""
    query = BuyerHistory.query.filter_by(buyer_id=buyer_id).order_by(
        BuyerHistory.changed_at.desc()
    )
    if limit:
        query = query.limit(limit)
    return query.all()
