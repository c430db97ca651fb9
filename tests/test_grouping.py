"""Tests for grouping, aggregation and flattening."""

import pytest

from reflex_grid_engine.grouping import (
    build_tree,
    calculate_aggregation,
    collect_group_ids,
    flatten_tree,
)
from reflex_grid_engine.models import Column
from reflex_grid_engine.row_index import default_get_row_id
from reflex_grid_engine.types import GroupNode, RowNode


def _tree(rows, fields, columns, aggregation_model=None, expanded=None):
    return build_tree(rows, fields, columns, aggregation_model or {}, expanded or {}, default_get_row_id)


class TestCalculateAggregation:
    def test_basic(self) -> None:
        values = [95000, 85000]
        assert calculate_aggregation(values, "sum") == 180000
        assert calculate_aggregation(values, "count") == 2
        assert calculate_aggregation(values, "avg") == 90000
        assert calculate_aggregation(values, "min") == 85000
        assert calculate_aggregation(values, "max") == 95000

    def test_non_numeric_values_are_dropped_except_for_count(self) -> None:
        values = [10, "20", "n/a", None, float("nan")]
        assert calculate_aggregation(values, "count") == 5
        assert calculate_aggregation(values, "sum") == 30
        assert calculate_aggregation(values, "avg") == 15

    @pytest.mark.parametrize("agg_type", ["avg", "min", "max", "sum"])
    def test_no_numbers_defaults_to_zero(self, agg_type) -> None:
        assert calculate_aggregation(["x", None], agg_type) == 0


class TestBuildTree:
    """Partitioning, ids, expansion and aggregations."""

    def test_groups_in_order_of_first_appearance(self, employees, columns) -> None:
        tree = _tree(employees, ["department"], columns)
        assert [n.id for n in tree] == ["department:Engineering", "department:Marketing", "department:Sales"]
        assert all(isinstance(n, GroupNode) for n in tree)
        assert [n.child_count for n in tree] == [2, 2, 1]

    def test_children_are_rows_one_level_down(self, employees, columns) -> None:
        engineering = _tree(employees, ["department"], columns)[0]
        assert [c.id for c in engineering.children] == [1, 2]
        assert all(isinstance(c, RowNode) and c.depth == 1 for c in engineering.children)

    def test_nested_group_ids(self, employees, columns) -> None:
        tree = _tree(employees, ["department", "active"], columns)
        marketing = tree[1]
        assert [c.id for c in marketing.children] == [
            "department:Marketing|active:true",
            "department:Marketing|active:false",
        ]
        assert marketing.children[0].depth == 1

    def test_aggregations(self, employees) -> None:
        columns = [Column(field="salary", aggregations=["sum", "count", "avg"])]
        engineering = _tree(employees, ["department"], columns)[0]
        assert engineering.aggregations == {"salary": {"sum": 180000, "count": 2, "avg": 90000}}

    def test_aggregation_model_overrides_column(self, employees) -> None:
        columns = [Column(field="salary", aggregations=["sum"])]
        tree = _tree(employees, ["department"], columns, aggregation_model={"salary": ["max"]})
        assert tree[0].aggregations == {"salary": {"max": 95000}}

    def test_collapsed_group_keeps_child_count_without_children(self, employees, columns) -> None:
        tree = _tree(employees, ["department"], columns, expanded={"department:Engineering": False})
        engineering = tree[0]
        assert engineering.is_expanded is False
        assert engineering.child_count == 2
        assert engineering.children == []

    def test_child_count_counts_leaves_in_nested_groups(self, employees, columns) -> None:
        tree = _tree(employees, ["department", "active"], columns)
        marketing = tree[1]
        assert marketing.child_count == 2
        assert sum(c.child_count for c in marketing.children) == 2

    def test_booleans_and_numbers_group_separately(self) -> None:
        rows = [{"id": 1, "v": True}, {"id": 2, "v": 1}, {"id": 3, "v": True}]
        tree = _tree(rows, ["v"], [])
        assert [n.child_count for n in tree] == [2, 1]

    def test_null_values_form_a_group(self) -> None:
        rows = [{"id": 1, "v": None}, {"id": 2}]
        tree = _tree(rows, ["v"], [])
        assert [n.id for n in tree] == ["v:null"]
        assert tree[0].child_count == 2

    def test_unhashable_values_group_by_identity(self) -> None:
        shared = ["a"]
        rows = [{"id": 1, "tags": shared}, {"id": 2, "tags": shared}, {"id": 3, "tags": ["a"]}]
        assert [n.child_count for n in _tree(rows, ["tags"], [])] == [2, 1]

    def test_group_key_groups_by_content(self) -> None:
        rows = [{"id": 1, "tags": ["a"]}, {"id": 2, "tags": ["a"]}]
        columns = [Column(field="tags", group_key=tuple)]
        assert [n.child_count for n in _tree(rows, ["tags"], columns)] == [2]

    def test_collect_group_ids_sees_every_depth(self, employees, columns) -> None:
        ids = collect_group_ids(employees, ["department", "active"], columns)
        assert ids == [
            "department:Engineering",
            "department:Engineering|active:true",
            "department:Marketing",
            "department:Marketing|active:true",
            "department:Marketing|active:false",
            "department:Sales",
            "department:Sales|active:true",
        ]


class TestFlattenTree:
    """Pre-order, descending only into expanded groups."""

    def test_expanded_order(self, employees, columns) -> None:
        flat = flatten_tree(_tree(employees, ["department"], columns))
        assert [n.id for n in flat] == [
            "department:Engineering", 1, 2,
            "department:Marketing", 3, 4,
            "department:Sales", 5,
        ]

    def test_fully_collapsed_group_yields_one_node(self, employees, columns) -> None:
        rows = [r for r in employees if r["department"] == "Engineering"]
        tree = _tree(rows, ["department"], columns, expanded={"department:Engineering": False})
        flat = flatten_tree(tree)
        assert len(flat) == 1
        assert flat[0].id == "department:Engineering"

    def test_ungrouped_rows_pass_through(self, employees, columns) -> None:
        flat = flatten_tree(_tree(employees, [], columns))
        assert [n.id for n in flat] == [1, 2, 3, 4, 5]

    def test_unknown_node_type_raises(self) -> None:
        with pytest.raises(TypeError):
            flatten_tree(["not a node"])  # type: ignore[list-item]
