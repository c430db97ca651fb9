"""Tests for the filter stage."""

from datetime import date, datetime

import pytest

from reflex_grid_engine.filtering import (
    EMPTY_VALUE_KEY,
    apply_advanced_filters,
    apply_filters,
    merge_filter_model,
    value_options,
)
from reflex_grid_engine.models import Column


def _names(rows) -> list[str]:
    return [r["name"] for r in rows]


class TestQuickFilter:
    """The quick filter matches any own field, case-insensitively."""

    def test_matches_any_field(self, employees, columns) -> None:
        rows = apply_filters(employees, {"quickFilter": "MARKET"}, columns)
        assert _names(rows) == ["Carol Williams", "David Brown"]

    def test_matches_numbers_and_booleans_as_text(self, employees, columns) -> None:
        assert _names(apply_filters(employees, {"quickFilter": "7000"}, columns)) == ["David Brown"]
        assert _names(apply_filters(employees, {"quickFilter": "false"}, columns)) == ["David Brown"]

    def test_empty_term_keeps_everything(self, employees, columns) -> None:
        assert len(apply_filters(employees, {"quickFilter": ""}, columns)) == 5


class TestFilterItems:
    """Structured filter items and their operators."""

    @pytest.mark.parametrize(
        ("operator", "value", "expected"),
        [
            ("contains", "son", ["Alice Johnson"]),
            ("startsWith", "bob", ["Bob Smith"]),
            ("endsWith", "DAVIS", ["Eve Davis"]),
            ("equals", "Eve Davis", ["Eve Davis"]),
        ],
    )
    def test_text_operators(self, employees, columns, operator, value, expected) -> None:
        model = {"items": [{"field": "name", "operator": operator, "value": value}]}
        assert _names(apply_filters(employees, model, columns)) == expected

    def test_numeric_operators(self, employees, columns) -> None:
        model = {"items": [{"field": "salary", "operator": "gte", "value": "85000"}]}
        assert _names(apply_filters(employees, model, columns)) == ["Alice Johnson", "Bob Smith"]
        model = {"items": [{"field": "salary", "operator": "lt", "value": 75000}]}
        assert _names(apply_filters(employees, model, columns)) == ["David Brown"]

    def test_equals_compares_loosely(self, employees, columns) -> None:
        model = {"items": [{"field": "salary", "operator": "equals", "value": "80000"}]}
        assert _names(apply_filters(employees, model, columns)) == ["Eve Davis"]

    def test_neq(self, employees, columns) -> None:
        model = {"items": [{"field": "department", "operator": "neq", "value": "Engineering"}]}
        assert len(apply_filters(employees, model, columns)) == 3

    def test_is_on_booleans(self, employees, columns) -> None:
        model = {"items": [{"field": "active", "operator": "is", "value": "false"}]}
        assert _names(apply_filters(employees, model, columns)) == ["David Brown"]
        model = {"items": [{"field": "active", "operator": "is", "value": True}]}
        assert len(apply_filters(employees, model, columns)) == 4

    def test_is_empty_and_is_not_empty_are_complements(self, columns) -> None:
        rows = [
            {"id": 1, "name": "a"},
            {"id": 2, "name": ""},
            {"id": 3, "name": None},
            {"id": 4},
            {"id": 5, "name": 0},
        ]
        empty = apply_filters(rows, {"items": [{"field": "name", "operator": "isEmpty"}]}, columns)
        not_empty = apply_filters(rows, {"items": [{"field": "name", "operator": "isNotEmpty"}]}, columns)
        assert [r["id"] for r in empty] == [2, 3, 4]
        assert [r["id"] for r in not_empty] == [1, 5]
        assert len(empty) + len(not_empty) == len(rows)

    def test_link_operator_or(self, employees, columns) -> None:
        model = {
            "items": [
                {"field": "department", "operator": "equals", "value": "Sales"},
                {"field": "salary", "operator": "gt", "value": 90000},
            ],
            "linkOperator": "or",
        }
        assert _names(apply_filters(employees, model, columns)) == ["Alice Johnson", "Eve Davis"]

    def test_link_operator_defaults_to_and(self, employees, columns) -> None:
        model = {
            "items": [
                {"field": "department", "operator": "equals", "value": "Engineering"},
                {"field": "salary", "operator": "lt", "value": 90000},
            ],
        }
        assert _names(apply_filters(employees, model, columns)) == ["Bob Smith"]

    def test_unknown_operator_matches_everything(self, employees, columns) -> None:
        model = {"items": [{"field": "name", "operator": "soundsLike", "value": "x"}]}
        assert len(apply_filters(employees, model, columns)) == 5

    def test_incomplete_items_are_skipped(self, employees, columns) -> None:
        model = {"items": [{"field": "name"}, {"operator": "equals", "value": "x"}]}
        assert len(apply_filters(employees, model, columns)) == 5

    def test_value_getter_is_used(self, employees) -> None:
        columns = [Column(field="initials", value_getter=lambda r: "".join(p[0] for p in r["name"].split()))]
        model = {"items": [{"field": "initials", "operator": "equals", "value": "BS"}]}
        assert _names(apply_filters(employees, model, columns)) == ["Bob Smith"]

    def test_input_is_not_mutated(self, employees, columns) -> None:
        before = list(employees)
        apply_filters(employees, {"quickFilter": "alice"}, columns)
        assert employees == before


class TestAdvancedFilters:
    """Value-set and date filters."""

    def test_value_set(self, employees, columns) -> None:
        model = {"filters": {"department": {"Sales", "Marketing"}}}
        assert len(apply_advanced_filters(employees, model, columns)) == 3

    def test_empty_sentinel(self, columns) -> None:
        rows = [{"id": 1, "department": None}, {"id": 2, "department": "Sales"}, {"id": 3, "department": ""}]
        model = {"filters": {"department": [EMPTY_VALUE_KEY]}}
        assert [r["id"] for r in apply_advanced_filters(rows, model, columns)] == [1, 3]

    def test_empty_selection_is_inactive(self, employees, columns) -> None:
        assert len(apply_advanced_filters(employees, {"filters": {"department": []}}, columns)) == 5

    def test_date_range(self, columns) -> None:
        rows = [
            {"id": 1, "hired": date(2023, 12, 31)},
            {"id": 2, "hired": "2024-01-01T08:30:00"},
            {"id": 3, "hired": datetime(2024, 6, 30, 23, 0)},
            {"id": 4, "hired": "not a date"},
            {"id": 5, "hired": date(2024, 7, 1)},
        ]
        model = {
            "dateFilters": {
                "hired": {"mode": "range", "startDate": date(2024, 1, 1), "endDate": "2024-06-30"},
            },
        }
        assert [r["id"] for r in apply_advanced_filters(rows, model, columns)] == [2, 3]

    def test_exact_date(self, columns) -> None:
        rows = [{"id": 1, "hired": "2024-03-05T17:00:00"}, {"id": 2, "hired": "2024-03-06"}]
        model = {"dateFilters": {"hired": {"mode": "exact", "date": date(2024, 3, 5)}}}
        assert [r["id"] for r in apply_advanced_filters(rows, model, columns)] == [1]

    def test_value_options_lists_empty_last(self, columns) -> None:
        rows = [{"d": "b"}, {"d": None}, {"d": "a"}, {"d": "b"}]
        assert value_options(rows, "d", columns) == ["a", "b", EMPTY_VALUE_KEY]


class TestMergeFilterModel:
    """Single-item filter changes accumulate per field."""

    def test_upsert_by_field(self) -> None:
        existing = {"items": [{"field": "name", "operator": "contains", "value": "a"}]}
        incoming = {"items": [{"field": "salary", "operator": "gt", "value": 1}]}
        merged = merge_filter_model(existing, incoming)
        assert [i["field"] for i in merged["items"]] == ["name", "salary"]

    def test_valueless_item_keeps_existing_but_adopts_operator(self) -> None:
        existing = {"items": [{"field": "name", "operator": "contains", "value": "a"}]}
        merged = merge_filter_model(existing, {"items": [{"field": "name", "operator": "startsWith"}]})
        assert merged["items"] == [{"field": "name", "operator": "startsWith", "value": "a"}]

    def test_valueless_new_field_is_ignored(self) -> None:
        merged = merge_filter_model({"items": []}, {"items": [{"field": "name", "operator": "contains"}]})
        assert merged["items"] == []

    def test_is_empty_counts_as_a_value(self) -> None:
        merged = merge_filter_model({"items": []}, {"items": [{"field": "name", "operator": "isEmpty"}]})
        assert merged["items"] == [{"field": "name", "operator": "isEmpty"}]

    def test_empty_items_clear(self) -> None:
        existing = {"items": [{"field": "name", "operator": "contains", "value": "a"}], "quickFilter": "x"}
        merged = merge_filter_model(existing, {"items": []})
        assert merged["items"] == []
        assert merged["quickFilter"] == "x"

    def test_logic_operator_alias(self) -> None:
        merged = merge_filter_model({"items": []}, {"items": [], "logicOperator": "or"})
        assert merged["linkOperator"] == "or"
