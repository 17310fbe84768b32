"""Tests for QueryOptions."""

from __future__ import annotations

import pytest

from joinery_core.primitives.exceptions import ConfigurationError
from joinery_specifications import (
    FilterOperator,
    OperatorNotFoundError,
    QueryOptions,
    QueryOptionsError,
    SortDirection,
)
from joinery_specifications.query_options import FilterCondition, parse_operator

# -- Construction -----------------------------------------------------------


def test_default_query_options():
    opts = QueryOptions()
    assert opts.filters == {}
    assert opts.order_by is None
    assert opts.sort_direction is SortDirection.ASC
    assert opts.is_paged is False
    assert opts.skip is None
    assert opts.limit is None


def test_bare_value_means_eq():
    opts = QueryOptions(filters={"status": "open"})
    assert opts.filters == {"status": {FilterOperator.EQ: "open"}}


def test_operator_aliases_and_dollar_prefix():
    opts = QueryOptions(
        filters={"total": {">=": 10, "$lt": 50}, "tags": {"nin": ("a", "b")}}
    )
    assert opts.filters["total"] == {FilterOperator.GE: 10, FilterOperator.LT: 50}
    assert opts.filters["tags"] == {FilterOperator.NOT_IN: ["a", "b"]}


def test_conditions_are_flattened_in_declaration_order():
    opts = QueryOptions(filters={"a": {"gt": 1, "lt": 5}, "b": "x"})
    assert opts.conditions == (
        FilterCondition("a", FilterOperator.GT, 1),
        FilterCondition("a", FilterOperator.LT, 5),
        FilterCondition("b", FilterOperator.EQ, "x"),
    )


# -- Validation ---------------------------------------------------------------


@pytest.mark.parametrize("page", [0, -1, 1.5, "2", True])
def test_invalid_page_rejected(page):
    with pytest.raises(QueryOptionsError) as exc_info:
        QueryOptions(page=page, page_size=10)
    assert exc_info.value.path == "page"


def test_invalid_page_size_rejected():
    with pytest.raises(QueryOptionsError) as exc_info:
        QueryOptions(page=1, page_size=0)
    assert exc_info.value.path == "pageSize"
    assert exc_info.value.to_dict()["error"] == "VALIDATION_ERROR"


def test_validation_errors_are_configuration_errors():
    with pytest.raises(ConfigurationError):
        QueryOptions(page=0)


def test_set_operator_requires_list():
    with pytest.raises(QueryOptionsError, match="requires a list"):
        QueryOptions(filters={"status": {"in": "open"}})


def test_contains_requires_string():
    with pytest.raises(QueryOptionsError, match="requires a string"):
        QueryOptions(filters={"name": {"contains": 5}})


def test_unknown_operator_suggests_closest():
    with pytest.raises(OperatorNotFoundError) as exc_info:
        QueryOptions(filters={"name": {"contians": "a"}})
    assert "contains" in exc_info.value.suggestions


def test_parse_operator_accepts_enum():
    assert parse_operator(FilterOperator.IN) is FilterOperator.IN
    assert parse_operator("ICONTAINS") is FilterOperator.CONTAINS


def test_invalid_sort_direction():
    with pytest.raises(QueryOptionsError) as exc_info:
        QueryOptions(order_by="name", sort_direction="sideways")
    assert exc_info.value.path == "sortDirection"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("asc", SortDirection.ASC), ("DESC", SortDirection.DESC), (-1, SortDirection.DESC)],
)
def test_sort_direction_parse(raw, expected):
    assert SortDirection.parse(raw) is expected


# -- Paging -------------------------------------------------------------------


def test_page_without_size_uses_default():
    opts = QueryOptions(page=3)
    assert opts.page_size == QueryOptions.DEFAULT_PAGE_SIZE
    assert opts.skip == 20
    assert opts.limit == 10


def test_size_without_page_starts_at_first_page():
    opts = QueryOptions(page_size=2)
    assert opts.page == 1
    assert opts.skip == 0
    assert opts.limit == 2


def test_with_page_keeps_filters():
    opts = QueryOptions(filters={"a": 1}, page=1, page_size=2).with_page(3)
    assert opts.page == 3
    assert opts.page_size == 2
    assert opts.skip == 4
    assert opts.filters == {"a": {FilterOperator.EQ: 1}}


def test_without_paging():
    opts = QueryOptions(page=2, page_size=5).without_paging()
    assert opts.is_paged is False


def test_with_filters_merges_operators():
    opts = QueryOptions(filters={"total": {"gt": 1}}).with_filters(
        {"total": {"lt": 9}, "status": "open"}
    )
    assert opts.filters == {
        "total": {FilterOperator.GT: 1, FilterOperator.LT: 9},
        "status": {FilterOperator.EQ: "open"},
    }


# -- Wire shape ---------------------------------------------------------------


def test_from_dict_camel_case():
    opts = QueryOptions.from_dict(
        {
            "filters": {"status": {"eq": "open"}},
            "orderBy": "createdAt",
            "sortDirection": "desc",
            "page": 2,
            "pageSize": 5,
        }
    )
    assert opts.order_by == "createdAt"
    assert opts.sort_direction is SortDirection.DESC
    assert opts.skip == 5


def test_from_dict_snake_case_and_empty():
    opts = QueryOptions.from_dict({"order_by": "name", "page_size": 3})
    assert opts.order_by == "name"
    assert opts.page == 1
    assert QueryOptions.from_dict(None) == QueryOptions()


def test_to_dict_round_trip():
    data = {
        "filters": {"status": {"in": ["a", "b"]}},
        "orderBy": "name",
        "sortDirection": "desc",
        "page": 1,
        "pageSize": 10,
    }
    assert QueryOptions.from_dict(data).to_dict() == data
