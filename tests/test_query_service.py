"""Tests for buyer listing, filtering, search and dashboard numbers."""

import pytest

from leadbook.errors import ValidationError
from leadbook.services import buyer_service, query_service
from leadbook.services.query_service import BuyerFilters


@pytest.fixture
def many_buyers(seed_data, buyer_payload):
    """Seed buyer plus four more across cities and property types."""
    owner_id = seed_data["owner_id"]
    specs = [
        dict(fullName="Arjun Mehta", phone="9000000001", city="CHANDIGARH",
             email="arjun@example.com"),
        dict(fullName="Bela Singh", phone="9000000002", city="CHANDIGARH",
             propertyType="PLOT", bhk=None, timeline="EXPLORING"),
        dict(fullName="Chetan 100%", phone="9000000003", city="PANCHKULA",
             propertyType="OFFICE", bhk=None),
        dict(fullName="dev_kumar", phone="9000000004", city="ZIRAKPUR"),
    ]
    for spec in specs:
        buyer_service.create_buyer(buyer_payload(**spec), owner_id)
    return seed_data


def _names(page_or_list):
    records = getattr(page_or_list, "records", page_or_list)
    return sorted(b.full_name for b in records)


class TestParseFilters:
    def test_defaults(self):
        filters = query_service.parse_filters({})
        assert filters == BuyerFilters()

    def test_enum_values_normalized(self):
        filters = query_service.parse_filters(
            {"city": "mohali", "propertyType": "Apartment", "timeline": "0-3m"}
        )
        assert filters.city == "MOHALI"
        assert filters.property_type == "APARTMENT"
        assert filters.timeline == "ZERO_TO_THREE_MONTHS"

    def test_snake_case_and_q_alias(self):
        filters = query_service.parse_filters(
            {"property_type": "plot", "q": "jane", "sort_by": "full_name", "sort_order": "ASC"}
        )
        assert filters.property_type == "PLOT"
        assert filters.search == "jane"
        assert filters.sort_by == "fullName"
        assert filters.sort_order == "asc"

    def test_invalid_values_collected(self):
        with pytest.raises(ValidationError) as exc:
            query_service.parse_filters({"city": "Delhi", "sortBy": "phone", "sortOrder": "up"})
        assert set(exc.value.errors) == {"city", "sortBy", "sortOrder"}


class TestListBuyers:
    def test_filter_by_city(self, many_buyers):
        page = query_service.list_buyers(BuyerFilters(city="CHANDIGARH"))
        assert _names(page) == ["Arjun Mehta", "Bela Singh"]
        assert page.total_count == 2

    def test_filters_are_anded(self, many_buyers):
        page = query_service.list_buyers(
            BuyerFilters(city="CHANDIGARH", timeline="EXPLORING")
        )
        assert _names(page) == ["Bela Singh"]

    def test_search_is_case_insensitive(self, many_buyers):
        assert _names(query_service.list_buyers(BuyerFilters(search="JANE"))) == ["Jane Doe"]
        assert _names(query_service.list_buyers(BuyerFilters(search="ARJUN@EXAMPLE"))) == [
            "Arjun Mehta"
        ]
        assert _names(query_service.list_buyers(BuyerFilters(search="9000000002"))) == [
            "Bela Singh"
        ]

    def test_search_wildcards_are_literal(self, many_buyers):
        assert _names(query_service.list_buyers(BuyerFilters(search="100%"))) == ["Chetan 100%"]
        assert _names(query_service.list_buyers(BuyerFilters(search="_"))) == ["dev_kumar"]

    def test_sort_by_name(self, many_buyers):
        page = query_service.list_buyers(BuyerFilters(sort_by="fullName", sort_order="asc"))
        assert [b.full_name for b in page.records][0] == "Arjun Mehta"

    def test_default_sort_is_latest_update_first(self, many_buyers):
        page = query_service.list_buyers()
        assert page.records[0].full_name == "dev_kumar"

    def test_pagination(self, many_buyers):
        first = query_service.list_buyers(page=1, page_size=2)
        last = query_service.list_buyers(page=3, page_size=2)

        assert first.total_count == 5
        assert first.total_pages == 3
        assert first.has_next and not first.has_prev
        assert len(last.records) == 1
        assert not last.has_next and last.has_prev

        seen = set()
        for number in (1, 2, 3):
            seen.update(b.id for b in query_service.list_buyers(page=number, page_size=2).records)
        assert len(seen) == 5

    def test_page_size_capped(self, app, many_buyers):
        page = query_service.list_buyers(page_size=10_000)
        assert page.page_size == app.config["BUYERS_MAX_PAGE_SIZE"]

    @pytest.mark.parametrize("bad", ["0", "-1", "abc"])
    def test_invalid_page(self, seed_data, bad):
        with pytest.raises(ValidationError) as exc:
            query_service.list_buyers(page=bad)
        assert "page" in exc.value.errors

    def test_pagination_dict(self, many_buyers):
        meta = query_service.list_buyers(page=2, page_size=2).pagination()
        assert meta == {
            "page": 2,
            "limit": 2,
            "total": 5,
            "totalPages": 3,
            "hasNext": True,
            "hasPrev": True,
        }

    def test_other_users_see_every_buyer(self, many_buyers):
        # listing has no owner filter; ownership only gates mutation
        assert query_service.list_buyers().total_count == 5


class TestQuickSearchAndStats:
    def test_quick_search_matches_city(self, many_buyers):
        assert _names(query_service.quick_search("panchkula")) == ["Chetan 100%"]

    def test_quick_search_empty(self, many_buyers):
        assert query_service.quick_search("  ") == []

    def test_dashboard_stats(self, many_buyers):
        buyer = buyer_service.get_buyer(many_buyers["buyer_id"])
        buyer_service.update_buyer(
            buyer.id, {"status": "CONVERTED"}, buyer.updated_at, many_buyers["owner_id"]
        )

        stats = query_service.dashboard_stats()
        assert stats["totalBuyers"] == 5
        assert stats["newThisMonth"] == 5
        assert stats["converted"] == 1
        assert stats["activeLeads"] == 4
        assert stats["statusCounts"] == {"NEW": 4, "CONVERTED": 1}
        assert stats["cityCounts"]["CHANDIGARH"] == 2
        assert len(stats["recentBuyers"]) == 5
