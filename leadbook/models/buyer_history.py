"""BuyerHistory model — per-buyer audit ledger.

One row per committed mutation, written in the same transaction as the
change it documents. Rows are never edited; they go away only when the
buyer itself is deleted (cascade).

diff shapes:
    {"action": "created" | "imported", "data": {...}}
    {"action": "updated", "changes": {"status": {"old": "NEW", "new": "CONVERTED"}}}
    {"action": "deleted", "buyer_name": "Jane Doe"}
"""

import uuid

from leadbook.extensions import db
from leadbook.models.buyer import isoformat, utcnow


class BuyerHistory(db.Model):
    __tablename__ = "buyer_history"

    ACTIONS = ["created", "updated", "deleted", "imported"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    buyer_id = db.Column(
        db.String(36),
        db.ForeignKey("buyers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    changed_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    diff = db.Column(db.JSON, nullable=False, default=dict)

    # --- Relationships ---
    buyer = db.relationship("Buyer", back_populates="history")
    changed_by = db.relationship("User", back_populates="history_entries", lazy="joined")

    @property
    def action(self):
        return (self.diff or {}).get("action")

    def to_dict(self):
        return {
            "id": self.id,
            "buyerId": self.buyer_id,
            "action": self.action,
            "diff": self.diff,
            "changedAt": isoformat(self.changed_at),
            "changedBy": self.changed_by.to_dict() if self.changed_by else None,
        }

    def __repr__(self):
        return f"<BuyerHistory {self.action} on {self.buyer_id}>"
