"""CSV import/export for buyers.

Import: header check -> per-row validation -> commit valid rows. Bad rows
are collected into the report, never raised, so one bad row never sinks
the batch. Each valid row is committed on its own (buyer + "imported"
history entry) through buyer_service.

Export: same filters as the buyer list, no pagination, fixed column
order, enum codes rendered as display labels.
"""

import csv
import io
import logging
from dataclasses import dataclass, field

from flask import current_app

from leadbook.errors import CSVImportError, HeaderError, ValidationError
from leadbook.models.buyer import DISPLAY_LABELS
from leadbook.services import buyer_service, query_service
from leadbook.services.validation import split_tags, validate_buyer

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = [
    "fullName",
    "phone",
    "city",
    "propertyType",
    "purpose",
    "timeline",
    "source",
]
OPTIONAL_HEADERS = [
    "email",
    "bhk",
    "budgetMin",
    "budgetMax",
    "notes",
    "tags",
    "status",
]
EXPORT_COLUMNS = [
    "fullName",
    "email",
    "phone",
    "city",
    "propertyType",
    "bhk",
    "purpose",
    "budgetMin",
    "budgetMax",
    "timeline",
    "source",
    "notes",
    "tags",
    "status",
]

FIRST_DATA_ROW = 2  # row 1 is the header


@dataclass
class RowError:
    row_number: int
    field_errors: dict
    raw_row: dict

    def to_dict(self):
        return {"row": self.row_number, "errors": self.field_errors, "data": self.raw_row}


@dataclass
class ImportResult:
    imported_count: int = 0
    errors: list = field(default_factory=list)
    total_rows_seen: int = 0
    skipped_rows: int = 0  # rows past the cap, ignored

    @property
    def ok(self):
        """False when nothing could be imported (all rows invalid)."""
        return self.imported_count > 0

    def to_dict(self):
        return {
            "imported": self.imported_count,
            "errors": [e.to_dict() for e in self.errors],
            "total": self.total_rows_seen,
            "skipped": self.skipped_rows,
        }


def read_rows(text, max_rows):
    """Parse CSV text into header-keyed dicts.

    Blank lines are dropped; cells and header names are trimmed; columns
    past the header are ignored and short rows are padded with "".

    Returns:
        (rows, skipped): up to `max_rows` dicts and how many rows were cut.

    Raises:
        CSVImportError: If the text is empty or not parseable.
        HeaderError: If any required header is missing.
    """
    text = (text or "").lstrip("\ufeff")
    if not text.strip():
        raise CSVImportError("CSV file is empty")

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        header = next(reader, [])
        headers = [h.strip() for h in header]
        missing = [h for h in REQUIRED_HEADERS if h not in headers]
        if missing:
            raise HeaderError(missing)

        rows, skipped = [], 0
        for cells in reader:
            if not any(cell.strip() for cell in cells):
                continue
            if len(rows) >= max_rows:
                skipped += 1
                continue
            cells = [c.strip() for c in cells] + [""] * (len(headers) - len(cells))
            rows.append({h: cells[i] for i, h in enumerate(headers) if h})
    except csv.Error as e:
        raise CSVImportError(f"Failed to parse CSV file: {e}") from e

    return rows, skipped


def import_buyers_csv(text, acting_user_id, max_rows=None):
    """Validate and import buyers from CSV text.

    Args:
        text: Raw CSV, header row first.
        acting_user_id: Owner of every imported buyer.
        max_rows: Row cap (defaults to CSV_IMPORT_MAX_ROWS).

    Returns:
        ImportResult. When no row validates nothing is committed and
        result.ok is False.

    Raises:
        CSVImportError / HeaderError: For file-level problems, before any row
        is processed.
        InternalError: If the database fails while committing a row. Rows
        committed before it stay committed.
    """
    if max_rows is None:
        max_rows = current_app.config["CSV_IMPORT_MAX_ROWS"]

    rows, skipped = read_rows(text, max_rows)
    if not rows:
        raise CSVImportError("CSV file has no data rows")
    if skipped:
        logger.info(f"CSV import capped at {max_rows} rows, {skipped} ignored")

    result = ImportResult(total_rows_seen=len(rows), skipped_rows=skipped)
    valid = []
    for index, row in enumerate(rows):
        try:
            fields = {**row, "tags": split_tags(row.get("tags"))}
            valid.append(validate_buyer(fields, include_status=True))
        except ValidationError as e:
            result.errors.append(
                RowError(row_number=index + FIRST_DATA_ROW, field_errors=e.errors, raw_row=row)
            )

    if not valid:
        logger.warning(
            f"CSV import by {acting_user_id} rejected: all {len(rows)} rows invalid"
        )
        return result

    for data in valid:
        buyer_service.insert_buyer(data, acting_user_id, action="imported")
        result.imported_count += 1

    logger.info(
        f"CSV import by {acting_user_id}: {result.imported_count} imported, "
        f"{len(result.errors)} rejected, {skipped} skipped"
    )
    return result


def template_csv():
    """Empty import template: required headers, then optional ones."""
    out = io.StringIO()
    csv.writer(out, lineterminator="\n").writerow(REQUIRED_HEADERS + OPTIONAL_HEADERS)
    return out.getvalue()


def _label(name, code):
    if not code:
        return ""
    return DISPLAY_LABELS[name].get(code, code)


def export_row(buyer):
    """One buyer as a list of cells in EXPORT_COLUMNS order."""
    return [
        buyer.full_name,
        buyer.email or "",
        buyer.phone,
        _label("city", buyer.city),
        _label("propertyType", buyer.property_type),
        _label("bhk", buyer.bhk),
        _label("purpose", buyer.purpose),
        "" if buyer.budget_min is None else buyer.budget_min,
        "" if buyer.budget_max is None else buyer.budget_max,
        _label("timeline", buyer.timeline),
        _label("source", buyer.source),
        buyer.notes or "",
        ", ".join(buyer.tags),
        _label("status", buyer.status),
    ]


def export_buyers_csv(filters=None):
    """Render every buyer matching `filters` as CSV text.

    No matches still yields the header row.
    """
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    count = 0
    for buyer in query_service.all_matching(filters):
        writer.writerow(export_row(buyer))
        count += 1
    logger.info(f"Exported {count} buyers to CSV")
    return out.getvalue()
