from datetime import datetime, timezone

import pytest

from src.hospital_api.errors import ValidationError
from src.hospital_api.services.query import MAX_INT, FieldFilter, Page, parse_list_query, project

FIELDS = {"name": str, "province": str, "ordinal": int, "created_at": datetime}


def test_defaults_when_no_parameters():
    query = parse_list_query([], fields=FIELDS)
    assert query.filters == []
    assert query.select is None
    assert query.sort == [("created_at", True)]
    assert (query.page, query.limit, query.offset) == (1, 25, 0)


def test_parses_filters_operators_and_coerces_types():
    query = parse_list_query(
        [
            ("province", "Bangkok"),
            ("ordinal[gte]", "10"),
            ("ordinal[lt]", "20"),
            ("name[in]", "A, B ,C"),
        ],
        fields=FIELDS,
    )
    assert query.filters == [
        FieldFilter("province", "eq", "Bangkok"),
        FieldFilter("ordinal", "gte", 10),
        FieldFilter("ordinal", "lt", 20),
        FieldFilter("name", "in", ["A", "B", "C"]),
    ]


def test_parses_select_sort_and_paging():
    query = parse_list_query(
        [("select", "name,tel"), ("sort", "-ordinal,name"), ("page", "3"), ("limit", "10")],
        fields={**FIELDS, "tel": str},
    )
    assert query.select == ["name", "tel"]
    assert query.sort == [("ordinal", True), ("name", False)]
    assert query.page == 3
    assert query.limit == 10
    assert query.offset == 20


@pytest.mark.parametrize(
    "params",
    [
        [("password", "x")],
        [("ordinal[regex]", "1")],
        [("ordinal[gt]", "abc")],
        [("page", "0")],
        [("limit", "ten")],
        [("sort", "unknown")],
        [("select", "name,secret")],
        [("select", "-name")],
        [("limit", "101")],
        [("limit", str(10**20))],
        [("page", str(10**20))],
        [("ordinal[gt]", str(10**20))],
        [("ordinal[in]", f"1,{MAX_INT + 1}")],
    ],
)
def test_rejects_invalid_parameters(params):
    with pytest.raises(ValidationError):
        parse_list_query(params, fields=FIELDS)


def test_ignored_parameters_are_skipped():
    query = parse_list_query([("hospital_id", "abc")], fields=FIELDS, ignore=("hospital_id",))
    assert query.filters == []


def test_pagination_metadata_in_the_middle():
    page = Page(items=list(range(10)), total=25, page=2, limit=10)
    assert page.pagination() == {"next": {"page": 3, "limit": 10}, "prev": {"page": 1, "limit": 10}}


def test_pagination_metadata_at_the_edges():
    assert Page(items=[], total=25, page=1, limit=10).pagination() == {"next": {"page": 2, "limit": 10}}
    assert Page(items=[], total=25, page=3, limit=10).pagination() == {"prev": {"page": 2, "limit": 10}}
    assert Page(items=[], total=0, page=1, limit=10).pagination() == {}


def test_project_keeps_id_and_selected_fields():
    data = {"id": "1", "name": "A", "tel": "02-1234567", "province": "Bangkok"}
    assert project(data, ["name"]) == {"id": "1", "name": "A"}
    assert project(data, None) == data


def test_largest_page_keeps_offset_in_range():
    query = parse_list_query([("page", str(MAX_INT // 100 + 1)), ("limit", "100")], fields=FIELDS)
    assert query.offset <= MAX_INT


def test_datetime_filters_are_normalized_to_utc():
    query = parse_list_query(
        [
            ("created_at[gt]", "2030-01-01T05:00:00+07:00"),
            ("created_at[lt]", "2030-01-02T00:00:00Z"),
            ("created_at[gte]", "2030-01-01T00:00:00"),
        ],
        fields=FIELDS,
    )
    assert [f.value for f in query.filters] == [
        datetime(2029, 12, 31, 22, 0, tzinfo=timezone.utc),
        datetime(2030, 1, 2, 0, 0, tzinfo=timezone.utc),
        datetime(2030, 1, 1, 0, 0, tzinfo=timezone.utc),
    ]


def test_select_only_fields_can_be_projected_but_not_sorted_or_filtered():
    query = parse_list_query([("select", "hospital,user_id")], fields=FIELDS, extra_select=("hospital", "user_id"))
    assert query.select == ["hospital", "user_id"]

    for params in ([("sort", "hospital")], [("user_id", "abc")]):
        with pytest.raises(ValidationError):
            parse_list_query(params, fields=FIELDS, extra_select=("hospital", "user_id"))
