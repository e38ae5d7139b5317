"""Tests for CSV import and export.

Covers:
- Header check fails the whole file
- Mixed valid/invalid rows, row numbering
- Row cap and all-invalid files
- Export column order and display labels
- Export -> import round trip
"""

import csv
import io

import pytest

from leadbook.errors import CSVImportError, HeaderError
from leadbook.models.buyer import Buyer
from leadbook.models.buyer_history import BuyerHistory
from leadbook.services import buyer_service, csv_service, query_service

HEADER = "fullName,phone,city,propertyType,bhk,purpose,timeline,source,budgetMin,budgetMax,tags"


def _csv(*rows):
    return "\n".join((HEADER,) + rows) + "\n"


def _valid_row(i=0):
    return f"Buyer {i:03d},98765{i:05d},Mohali,Apartment,2,Buy,0-3m,Website,,,"


class TestImport:
    def test_missing_headers(self, seed_data):
        with pytest.raises(HeaderError) as exc:
            csv_service.import_buyers_csv("fullName,phone\nJane,9876543210\n", seed_data["owner_id"])
        assert "city" in exc.value.missing
        assert Buyer.query.count() == 1

    def test_empty_file(self, seed_data):
        with pytest.raises(CSVImportError, match="empty"):
            csv_service.import_buyers_csv("", seed_data["owner_id"])

    def test_header_only(self, seed_data):
        with pytest.raises(CSVImportError, match="no data rows"):
            csv_service.import_buyers_csv(_csv(), seed_data["owner_id"])

    def test_mixed_rows(self, seed_data):
        text = _csv(
            _valid_row(1),
            "X,123,Delhi,Apartment,,Buy,0-3m,Website,,,",
            _valid_row(2),
        )
        result = csv_service.import_buyers_csv(text, seed_data["owner_id"])

        assert result.ok
        assert result.imported_count == 2
        assert result.total_rows_seen == 3
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.row_number == 3
        assert {"fullName", "phone", "city", "bhk"} <= set(error.field_errors)
        assert error.raw_row["city"] == "Delhi"

    def test_oversized_budget_row_rejected(self, seed_data):
        text = _csv(
            _valid_row(1),
            "Big Budget,9876500099,Mohali,Apartment,2,Buy,0-3m,Website,100000000000000000000,,",
            _valid_row(2),
        )
        result = csv_service.import_buyers_csv(text, seed_data["owner_id"])

        assert result.imported_count == 2
        assert [e.row_number for e in result.errors] == [3]
        assert list(result.errors[0].field_errors) == ["budgetMin"]
        assert Buyer.query.filter_by(full_name="Buyer 002").count() == 1
        assert Buyer.query.filter_by(full_name="Big Budget").count() == 0

    def test_imported_rows_owned_and_logged(self, seed_data):
        csv_service.import_buyers_csv(_csv(_valid_row(1)), seed_data["owner_id"])

        buyer = Buyer.query.filter_by(full_name="Buyer 001").one()
        assert buyer.owner_id == seed_data["owner_id"]
        entries = BuyerHistory.query.filter_by(buyer_id=buyer.id).all()
        assert [e.action for e in entries] == ["imported"]

    def test_all_invalid_commits_nothing(self, seed_data):
        rows = [f"Bad {i},1,Nowhere,Castle,,Buy,0-3m,Website,,," for i in range(4)]
        result = csv_service.import_buyers_csv(_csv(*rows), seed_data["owner_id"])

        assert not result.ok
        assert result.imported_count == 0
        assert len(result.errors) == 4
        assert Buyer.query.count() == 1

    def test_row_cap(self, seed_data):
        rows = [_valid_row(i) for i in range(201)]
        result = csv_service.import_buyers_csv(_csv(*rows), seed_data["owner_id"])

        assert result.total_rows_seen == 200
        assert result.imported_count == 200
        assert result.skipped_rows == 1
        assert Buyer.query.count() == 201  # seed buyer + 200

    def test_blank_lines_skipped_and_bom_stripped(self, seed_data):
        text = "\ufeff" + _csv(_valid_row(1), "", ",,,,,,,,,,", _valid_row(2))
        result = csv_service.import_buyers_csv(text, seed_data["owner_id"])
        assert result.imported_count == 2
        assert result.total_rows_seen == 2

    def test_status_column_honored(self, seed_data):
        text = (
            "fullName,phone,city,propertyType,purpose,timeline,source,status\n"
            "Plot Buyer,9876500001,Panchkula,Plot,Buy,Exploring,Referral,Qualified\n"
        )
        csv_service.import_buyers_csv(text, seed_data["owner_id"])
        buyer = Buyer.query.filter_by(full_name="Plot Buyer").one()
        assert buyer.status == "QUALIFIED"
        assert buyer.bhk is None

    def test_result_dict(self, seed_data):
        result = csv_service.import_buyers_csv(_csv(_valid_row(1)), seed_data["owner_id"])
        assert result.to_dict() == {"imported": 1, "errors": [], "total": 1, "skipped": 0}


class TestExport:
    def test_columns_and_labels(self, seed_data, buyer_payload):
        buyer_service.create_buyer(
            buyer_payload(
                fullName="Walk In Buyer",
                city="CHANDIGARH",
                source="WALK_IN",
                timeline="MORE_THAN_SIX_MONTHS",
                budgetMin=100,
                tags=["hot", "nri"],
            ),
            seed_data["owner_id"],
        )
        text = csv_service.export_buyers_csv(
            query_service.parse_filters({"city": "CHANDIGARH"})
        )
        rows = list(csv.reader(io.StringIO(text)))

        assert rows[0] == csv_service.EXPORT_COLUMNS
        assert len(rows) == 2
        row = dict(zip(rows[0], rows[1]))
        assert row["city"] == "Chandigarh"
        assert row["source"] == "Walk-in"
        assert row["timeline"] == ">6m"
        assert row["bhk"] == "2"
        assert row["budgetMin"] == "100"
        assert row["budgetMax"] == ""
        assert row["tags"] == "hot, nri"
        assert row["status"] == "New"

    def test_no_matches_still_has_header(self, seed_data):
        text = csv_service.export_buyers_csv(query_service.parse_filters({"city": "OTHER"}))
        assert text.strip() == ",".join(csv_service.EXPORT_COLUMNS)

    def test_round_trip(self, seed_data, buyer_payload):
        owner_id = seed_data["owner_id"]
        buyer_service.create_buyer(
            buyer_payload(
                fullName="Round Trip",
                email="rt@example.com",
                city="ZIRAKPUR",
                propertyType="VILLA",
                bhk="STUDIO",
                purpose="RENT",
                timeline="THREE_TO_SIX_MONTHS",
                source="CALL",
                budgetMin=2500000,
                budgetMax=3000000,
                notes='Wants "quiet" street, near school',
                tags=["hot", "second home"],
            ),
            owner_id,
        )
        fields = list(Buyer.FIELDS)
        before = sorted(
            (tuple(str(b.to_payload()[f]) for f in fields) for b in Buyer.query.all())
        )

        exported = csv_service.export_buyers_csv()
        for buyer in Buyer.query.all():
            buyer_service.delete_buyer(buyer.id, owner_id)

        result = csv_service.import_buyers_csv(exported, owner_id)
        assert result.imported_count == 2 and not result.errors

        after = sorted(
            (tuple(str(b.to_payload()[f]) for f in fields) for b in Buyer.query.all())
        )
        assert after == before

    def test_round_trip_keeps_bracketed_tags(self, seed_data, buyer_payload):
        owner_id = seed_data["owner_id"]
        buyer_service.create_buyer(
            buyer_payload(fullName="Bracket Tags", tags=["[vip]", "hot", "[1]"]),
            owner_id,
        )
        exported = csv_service.export_buyers_csv(
            query_service.parse_filters({"search": "Bracket"})
        )
        for buyer in Buyer.query.all():
            buyer_service.delete_buyer(buyer.id, owner_id)

        result = csv_service.import_buyers_csv(exported, owner_id)
        assert result.imported_count == 1 and not result.errors
        assert Buyer.query.one().tags == ["[vip]", "hot", "[1]"]

    def test_template(self):
        header = csv_service.template_csv().strip().split(",")
        assert header[: len(csv_service.REQUIRED_HEADERS)] == csv_service.REQUIRED_HEADERS
        assert "tags" in header
