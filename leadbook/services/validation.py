"""Buyer field validation — the single normalization boundary.

validate_buyer() takes a loosely-typed mapping (CSV strings or JSON
values, camelCase or snake_case keys) and returns a BuyerData with
canonical values, or raises ValidationError listing every failed field.
Nothing here touches the database.

Enum fields are case-insensitive. Accepted spellings: the code in any case,
the code with "-" or spaces instead of "_", or the CSV display label
("Walk-in", "0-3m", "2"), so an exported file imports back unchanged.
"""

import html
import json
import re
from dataclasses import dataclass, field
from typing import Optional

import bleach

from leadbook.errors import ValidationError
from leadbook.models.buyer import DISPLAY_LABELS, ENUM_VALUES, Buyer

PHONE_RE = re.compile(r"^\d{10,15}$")
# Simple email regex — not exhaustive, just sanity-check
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

FULL_NAME_MIN = 2
FULL_NAME_MAX = 80
NOTES_MAX = 1000
TAG_MAX_LENGTH = 30
TAGS_MAX = 20
# budget columns are 32-bit INTEGER
BUDGET_MAX = 2_147_483_647

_SNAKE_TO_CAMEL = {attr: key for key, attr in Buyer.FIELDS.items()}


@dataclass
class BuyerData:
    """A validated, canonical buyer record (no id, owner or timestamps)."""

    full_name: str
    phone: str
    city: str
    property_type: str
    purpose: str
    timeline: str
    source: str
    email: Optional[str] = None
    bhk: Optional[str] = None
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    notes: Optional[str] = None
    tags: list = field(default_factory=list)
    status: str = "NEW"

    def to_payload(self):
        """Same keys and value types as Buyer.to_payload()."""
        return {key: getattr(self, attr) for key, attr in Buyer.FIELDS.items()}

    def apply_to(self, buyer):
        for attr in Buyer.FIELDS.values():
            setattr(buyer, attr, getattr(self, attr))
        return buyer


def canonical_key(key):
    """Map a snake_case attribute name onto its external camelCase key."""
    return _SNAKE_TO_CAMEL.get(key, key)


def normalize_enum(name, value):
    """Return the canonical code for `value`, or None when nothing matches.

    Args:
        name: External field name, e.g. "propertyType".
        value: Raw input (any case, code or display label).
    """
    text = str(value).strip()
    if not text:
        return None
    code = re.sub(r"[-\s]+", "_", text.upper())
    if code in ENUM_VALUES[name]:
        return code
    by_label = {label.lower(): c for c, label in DISPLAY_LABELS[name].items()}
    return by_label.get(text.lower())


def sanitize_text(value):
    """Strip HTML tags and surrounding whitespace; None stays None."""
    if value is None:
        return None
    cleaned = bleach.clean(str(value), tags=[], strip=True)
    # bleach escapes bare &, < and >; stored text keeps them literal
    return html.unescape(cleaned).strip()


def parse_tags(value):
    """Accept a list, a JSON array string or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError:
                value = text.split(",")
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple)):
        raise TypeError("tags must be a list of strings")

    tags = []
    for item in value:
        if item is None:
            continue
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def split_tags(text):
    """Split a CSV tags cell on commas only; brackets are part of the tag."""
    if text is None:
        return []
    return [tag.strip() for tag in str(text).split(",") if tag.strip()]


def _get(data, key):
    """Read a field by camelCase key, falling back to its snake_case name."""
    if key in data:
        return data[key]
    return data.get(Buyer.FIELDS.get(key, key))


def _blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_budget(value):
    if isinstance(value, bool):
        raise ValueError
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError
        return int(value)
    # "13,00,000" style grouping is common in lead sheets
    text = str(value).replace(",", "").replace(" ", "").strip()
    if not re.fullmatch(r"[-+]?\d+", text):
        raise ValueError
    return int(text)


def validate_buyer(data, include_status=False):
    """Validate and normalize one candidate buyer record.

    Args:
        data: Mapping of raw field values.
        include_status: Read `status` from the input (updates, CSV rows).
            When False the record always starts as NEW.

    Returns:
        BuyerData with canonical values.

    Raises:
        ValidationError: with every failing field and its messages.
    """
    errors = {}

    def fail(key, message):
        errors.setdefault(key, []).append(message)

    # --- Contact ---
    full_name = sanitize_text(_get(data, "fullName"))
    if not full_name:
        fail("fullName", "Full name is required")
    elif len(full_name) < FULL_NAME_MIN:
        fail("fullName", f"Full name must be at least {FULL_NAME_MIN} characters")
    elif len(full_name) > FULL_NAME_MAX:
        fail("fullName", f"Full name must be at most {FULL_NAME_MAX} characters")

    email = _get(data, "email")
    email = None if _blank(email) else str(email).strip()
    if email is not None and not EMAIL_RE.match(email):
        fail("email", "Invalid email format")

    phone = _get(data, "phone")
    phone = "" if _blank(phone) else str(phone).strip()
    if not phone:
        fail("phone", "Phone is required")
    elif not PHONE_RE.match(phone):
        fail("phone", "Phone must be 10-15 digits")

    # --- Classification ---
    enums = {}
    required = ["city", "propertyType", "purpose", "timeline", "source"]
    optional = ["bhk"] + (["status"] if include_status else [])
    for key in required + optional:
        raw = _get(data, key)
        if _blank(raw):
            if key in required:
                fail(key, f"{key} is required")
            enums[key] = None
            continue
        code = normalize_enum(key, raw)
        if code is None:
            allowed = ", ".join(ENUM_VALUES[key])
            fail(key, f"Invalid {key} '{raw}'. Must be one of: {allowed}")
        enums[key] = code

    # --- Budget ---
    budgets = {}
    for key in ("budgetMin", "budgetMax"):
        raw = _get(data, key)
        if _blank(raw):
            budgets[key] = None
            continue
        try:
            amount = _parse_budget(raw)
        except ValueError:
            fail(key, "Budget must be a whole number")
            budgets[key] = None
            continue
        if amount <= 0:
            fail(key, "Budget must be positive")
        elif amount > BUDGET_MAX:
            fail(key, f"Budget must be at most {BUDGET_MAX}")
        budgets[key] = amount

    # --- Free-form ---
    notes = sanitize_text(_get(data, "notes")) or None
    if notes is not None and len(notes) > NOTES_MAX:
        fail("notes", f"Notes must be at most {NOTES_MAX} characters")

    try:
        tags = parse_tags(_get(data, "tags"))
    except TypeError as e:
        fail("tags", str(e))
        tags = []
    if len(tags) > TAGS_MAX:
        fail("tags", f"At most {TAGS_MAX} tags are allowed")
    for tag in tags:
        if len(tag) > TAG_MAX_LENGTH:
            fail("tags", f"Tags must be at most {TAG_MAX_LENGTH} characters")
        if "," in tag:
            fail("tags", f"Tag '{tag}' cannot contain a comma")

    # --- Cross-field rules (only once their inputs parsed cleanly) ---
    property_type = enums.get("propertyType")
    bhk = enums.get("bhk")
    if property_type and "bhk" not in errors:
        if property_type in Buyer.RESIDENTIAL_TYPES:
            if not bhk:
                fail("bhk", "BHK is required for Apartment and Villa properties")
        else:
            bhk = None

    budget_min, budget_max = budgets["budgetMin"], budgets["budgetMax"]
    if (
        "budgetMin" not in errors
        and "budgetMax" not in errors
        and budget_min is not None
        and budget_max is not None
        and budget_max < budget_min
    ):
        fail(
            "budgetMax",
            "Maximum budget must be greater than or equal to minimum budget",
        )

    if errors:
        raise ValidationError(errors)

    return BuyerData(
        full_name=full_name,
        email=email,
        phone=phone,
        city=enums["city"],
        property_type=property_type,
        bhk=bhk,
        purpose=enums["purpose"],
        budget_min=budget_min,
        budget_max=budget_max,
        timeline=enums["timeline"],
        source=enums["source"],
        notes=notes,
        tags=tags,
        status=enums.get("status") or "NEW",
    )
