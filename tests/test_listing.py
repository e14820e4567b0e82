"""
tests/test_listing.py — Directory Search / Filter / Sort / Paginate
=====================================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import make_org
from orgsync.database.models import Organization
from orgsync.engine.listing import (
    ListQuery,
    Page,
    clamp_page,
    like_pattern,
    normalize_department,
    normalize_year_filter,
    run_listing,
    search_clause,
)


# ===========================================================================
# Filter normalisation
# ===========================================================================
class TestYearFilter:
    @pytest.mark.parametrize("value, expected", [("1", 1), ("5", 5), (" 3 ", 3), (2, 2)])
    def test_accepts_one_through_five(self, value, expected):
        assert normalize_year_filter(value) == expected

    @pytest.mark.parametrize("value", ["0", "6", "all", "abc", "", None, "1.5"])
    def test_everything_else_is_ignored(self, value):
        assert normalize_year_filter(value) is None


class TestDepartmentFilter:
    def test_case_insensitive(self):
        assert normalize_department("cite") == "CITE"

    def test_hospitality_department_known(self):
        assert normalize_department("CIHTM") == "CIHTM"

    @pytest.mark.parametrize("value", ["all", "MIT", "", None])
    def test_unknown_ignored(self, value):
        assert normalize_department(value) is None


# ===========================================================================
# Paging
# ===========================================================================
class TestClampPage:
    def test_in_range_page_kept(self):
        assert clamp_page(2, total=25, page_size=10) == 2

    def test_page_past_end_resets_to_first(self):
        assert clamp_page(4, total=25, page_size=10) == 1

    def test_exact_boundary_resets(self):
        assert clamp_page(3, total=20, page_size=10) == 1

    def test_non_positive_page(self):
        assert clamp_page(0, total=5, page_size=10) == 1


class TestPage:
    def test_total_pages_rounds_up(self):
        assert Page(items=[], total=21, page=1, page_size=10).total_pages == 3

    def test_empty_result_has_one_page(self):
        assert Page(items=[], total=0, page=1, page_size=10).total_pages == 1

    def test_to_dict_serializes_items(self):
        page = Page(items=[1, 2], total=2, page=1, page_size=10)
        assert page.to_dict(lambda i: i * 10)["items"] == [10, 20]


# ===========================================================================
# Running against a table
# ===========================================================================
class TestRunListing:
    @pytest.fixture
    def orgs(self, db_engine):
        make_org(db_engine, "ACM", name="Association for Computing", department="CITE", org_type="Prof")
        make_org(db_engine, "RCY", name="Red Cross Youth", department="CON", org_type="Socio-Civic")
        make_org(db_engine, "JPIA", name="Junior Accountants", department="CBEAM", org_type="Prof")
        make_org(db_engine, "DEV", name="Developers Guild", department="CITE", org_type="SPIN",
                 status="inactive")
        return db_engine

    def _run(self, engine, **kwargs) -> Page:
        query = ListQuery(**kwargs)
        with Session(engine) as session:
            page = run_listing(
                session, select(Organization), Organization, query,
                search_columns=(Organization.name, Organization.org_code),
                sortable=("name", "org_code"),
                default_sort="name",
            )
            page.items = [o.org_code for o in page.items]
            return page

    def test_default_sort_by_name(self, orgs):
        assert self._run(orgs).items == ["ACM", "DEV", "JPIA", "RCY"]

    def test_search_is_case_insensitive(self, orgs):
        assert self._run(orgs, search="cross").items == ["RCY"]

    def test_filters_skip_all(self, orgs):
        page = self._run(orgs, filters={"department": "CITE", "org_type": "all"})
        assert page.items == ["ACM", "DEV"]
        assert page.total == 2

    def test_descending_sort(self, orgs):
        assert self._run(orgs, sort_field="org_code", sort_dir="desc").items == ["RCY", "JPIA", "DEV", "ACM"]

    def test_unknown_sort_falls_back(self, orgs):
        assert self._run(orgs, sort_field="id; drop table").items[0] == "ACM"

    def test_pagination(self, orgs):
        page = self._run(orgs, page=2, page_size=3)
        assert page.items == ["RCY"]
        assert page.total_pages == 2

    def test_page_past_filtered_end_resets(self, orgs):
        page = self._run(orgs, filters={"department": "CON"}, page=3, page_size=1)
        assert page.page == 1
        assert page.items == ["RCY"]

    def test_wildcards_match_literally(self, orgs):
        make_org(orgs, "PCT", name="100% Club")
        make_org(orgs, "USC", name="Under_Score Society")
        assert self._run(orgs, search="%").items == ["PCT"]
        assert self._run(orgs, search="_").items == ["USC"]
        assert self._run(orgs, search="d_r").items == []
        assert self._run(orgs, search="0% c").items == ["PCT"]


class TestLikePattern:
    @pytest.mark.parametrize("term, expected", [
        ("cross", "%cross%"),
        ("50%", "%50\\%%"),
        ("a_b", "%a\\_b%"),
        ("c:\\dir", "%c:\\\\dir%"),
    ])
    def test_escapes_wildcards(self, term, expected):
        assert like_pattern(term) == expected

    def test_blank_search_has_no_clause(self):
        assert search_clause("  ", (Organization.name,)) is None
        assert search_clause("acm", ()) is None
