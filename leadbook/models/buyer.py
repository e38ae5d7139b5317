"""Buyer model (lead pipeline).

Tracks a real-estate buyer lead from first contact to close.
Pipeline: NEW -> CONTACTED -> QUALIFIED -> VISITED -> NEGOTIATION -> CONVERTED | DROPPED

updated_at is the optimistic concurrency token. It is mapped as the
version column, so every UPDATE/DELETE the ORM emits carries
"WHERE updated_at = <value loaded>" and fails with StaleDataError when
another writer got there first. Only buyer_service assigns it.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone

from leadbook.extensions import db


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return an aware UTC datetime. SQLite hands back naive values, stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def next_updated_at(previous):
    """Fresh concurrency token, strictly later than the previous one."""
    now = utcnow()
    previous = as_utc(previous)
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


class Buyer(db.Model):
    __tablename__ = "buyers"

    # -- Closed value sets --
    CITIES = ["CHANDIGARH", "MOHALI", "ZIRAKPUR", "PANCHKULA", "OTHER"]
    PROPERTY_TYPES = ["APARTMENT", "VILLA", "PLOT", "OFFICE", "RETAIL"]
    BHKS = ["STUDIO", "ONE", "TWO", "THREE", "FOUR"]
    PURPOSES = ["BUY", "RENT"]
    TIMELINES = [
        "ZERO_TO_THREE_MONTHS",
        "THREE_TO_SIX_MONTHS",
        "MORE_THAN_SIX_MONTHS",
        "EXPLORING",
    ]
    SOURCES = ["WEBSITE", "REFERRAL", "WALK_IN", "CALL", "OTHER"]
    STATUSES = [
        "NEW",
        "CONTACTED",
        "QUALIFIED",
        "VISITED",
        "NEGOTIATION",
        "CONVERTED",
        "DROPPED",
    ]

    # bhk is required for these and meaningless for the rest
    RESIDENTIAL_TYPES = ["APARTMENT", "VILLA"]
    ACTIVE_STATUSES = ["NEW", "CONTACTED", "QUALIFIED", "VISITED", "NEGOTIATION"]

    # External (camelCase) field name -> column attribute, in export order.
    # Everything here is caller-editable; id/owner/timestamps are not.
    FIELDS = {
        "fullName": "full_name",
        "email": "email",
        "phone": "phone",
        "city": "city",
        "propertyType": "property_type",
        "bhk": "bhk",
        "purpose": "purpose",
        "budgetMin": "budget_min",
        "budgetMax": "budget_max",
        "timeline": "timeline",
        "source": "source",
        "notes": "notes",
        "tags": "tags",
        "status": "status",
    }

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    full_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(15), nullable=False)
    city = db.Column(db.String(20), nullable=False, index=True)
    property_type = db.Column(db.String(20), nullable=False)
    bhk = db.Column(db.String(10), nullable=True)  # residential only
    purpose = db.Column(db.String(10), nullable=False)  # BUY | RENT
    budget_min = db.Column(db.Integer, nullable=True)
    budget_max = db.Column(db.Integer, nullable=True)
    timeline = db.Column(db.String(30), nullable=False)
    source = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="NEW", index=True)
    notes = db.Column(db.Text, nullable=True)
    tags_json = db.Column(
        "tags", db.Text, nullable=False, default="[]"
    )  # JSON array; read/write through .tags
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    __mapper_args__ = {
        "version_id_col": updated_at,
        "version_id_generator": False,
    }

    # --- Relationships ---
    owner = db.relationship("User", back_populates="buyers", lazy="joined")
    history = db.relationship(
        "BuyerHistory",
        back_populates="buyer",
        cascade="all, delete-orphan",
        order_by="BuyerHistory.changed_at.desc()",
    )

    @property
    def tags(self):
        try:
            tags = json.loads(self.tags_json or "[]")
        except ValueError:
            return []
        return [str(t) for t in tags] if isinstance(tags, list) else []

    @tags.setter
    def tags(self, value):
        self.tags_json = json.dumps(list(value or []))

    def to_payload(self):
        """Editable fields keyed by their external names (history diffs, merges)."""
        return {key: getattr(self, attr) for key, attr in self.FIELDS.items()}

    def to_dict(self, include_owner=True):
        data = {"id": self.id}
        data.update(self.to_payload())
        data["ownerId"] = self.owner_id
        data["createdAt"] = isoformat(self.created_at)
        data["updatedAt"] = isoformat(self.updated_at)
        if include_owner:
            data["owner"] = self.owner.to_dict() if self.owner else None
        return data

    def __repr__(self):
        return f"<Buyer {self.full_name} ({self.status})>"


# Display labels used by CSV export and accepted back on import.
DISPLAY_LABELS = {
    "city": {
        "CHANDIGARH": "Chandigarh",
        "MOHALI": "Mohali",
        "ZIRAKPUR": "Zirakpur",
        "PANCHKULA": "Panchkula",
        "OTHER": "Other",
    },
    "propertyType": {
        "APARTMENT": "Apartment",
        "VILLA": "Villa",
        "PLOT": "Plot",
        "OFFICE": "Office",
        "RETAIL": "Retail",
    },
    "bhk": {
        "STUDIO": "Studio",
        "ONE": "1",
        "TWO": "2",
        "THREE": "3",
        "FOUR": "4",
    },
    "purpose": {
        "BUY": "Buy",
        "RENT": "Rent",
    },
    "timeline": {
        "ZERO_TO_THREE_MONTHS": "0-3m",
        "THREE_TO_SIX_MONTHS": "3-6m",
        "MORE_THAN_SIX_MONTHS": ">6m",
        "EXPLORING": "Exploring",
    },
    "source": {
        "WEBSITE": "Website",
        "REFERRAL": "Referral",
        "WALK_IN": "Walk-in",
        "CALL": "Call",
        "OTHER": "Other",
    },
    "status": {
        "NEW": "New",
        "CONTACTED": "Contacted",
        "QUALIFIED": "Qualified",
        "VISITED": "Visited",
        "NEGOTIATION": "Negotiation",
        "CONVERTED": "Converted",
        "DROPPED": "Dropped",
    },
}

ENUM_VALUES = {
    "city": Buyer.CITIES,
    "propertyType": Buyer.PROPERTY_TYPES,
    "bhk": Buyer.BHKS,
    "purpose": Buyer.PURPOSES,
    "timeline": Buyer.TIMELINES,
    "source": Buyer.SOURCES,
    "status": Buyer.STATUSES,
}
