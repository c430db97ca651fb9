"""Grouping, aggregation and flattening stages.

Rows are partitioned by the resolved value of each grouping field in
turn.  Hashable values group by equality (``True`` and ``1`` stay
apart); unhashable values such as lists or dicts group by object
identity, so two equal-looking list values on different rows form two
groups.  Give the column a ``group_key`` to group such values by
content.

Group ids are the ancestor path of ``field:value`` pairs joined with
``"|"``, e.g. ``"department:Engineering|active:true"``.
"""

import math
from typing import Any, Callable, Iterable, Mapping

from reflex_grid_engine.filtering import _coerce_numeric, stringify
from reflex_grid_engine.models import Column, find_column, resolve_field_value
from reflex_grid_engine.types import GroupNode, RowId, RowNode, TreeNode


class _IdentityKey:
    """Groups an unhashable value by object identity."""

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def __hash__(self) -> int:
        return id(self.value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _IdentityKey) and other.value is self.value


def _partition_key(value: Any, column: Column | None) -> Any:
    if column is not None and column.group_key is not None:
        value = column.group_key(value)
    try:
        hash(value)
    except TypeError:
        return _IdentityKey(value)
    return (isinstance(value, bool), value)


def group_label(value: Any) -> str:
    """String form of a group value as used in group ids."""
    if value is None:
        return "null"
    return stringify(value)


def make_group_id(parent_id: str, field: str, value: Any) -> str:
    segment = f"{field}:{group_label(value)}"
    return f"{parent_id}|{segment}" if parent_id else segment


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def calculate_aggregation(values: list[Any], agg_type: str) -> float:
    """Aggregate *values* for one aggregation type.

    ``count`` counts every value.  The numeric aggregations only see
    values that coerce to a finite number; ``avg``/``min``/``max`` of no
    numbers is ``0``.  Unknown types yield ``0``.
    """
    if agg_type == "count":
        return len(values)

    numbers: list[float] = []
    for value in values:
        number = _coerce_numeric(value)
        if number is not None and math.isfinite(number):
            numbers.append(number)

    if agg_type == "sum":
        return sum(numbers)
    if not numbers:
        return 0
    if agg_type == "avg":
        return sum(numbers) / len(numbers)
    if agg_type == "min":
        return min(numbers)
    if agg_type == "max":
        return max(numbers)
    return 0


def _aggregation_targets(
    columns: list[Column],
    aggregation_model: Mapping[str, list[str]],
) -> list[tuple[str, Column | None, list[str]]]:
    """Fields to aggregate and their types; the model overrides the column."""
    targets: list[tuple[str, Column | None, list[str]]] = []
    for column in columns:
        if column.field in aggregation_model:
            agg_types = list(aggregation_model[column.field])
        else:
            agg_types = list(column.aggregations)
        if agg_types:
            targets.append((column.field, column, agg_types))
    for field_name, agg_types in aggregation_model.items():
        if agg_types and find_column(columns, field_name) is None:
            targets.append((field_name, None, list(agg_types)))
    return targets


def compute_aggregations(
    rows: list[Any],
    columns: list[Column],
    aggregation_model: Mapping[str, list[str]],
) -> dict[str, dict[str, float]]:
    """Per-field, per-type aggregations over *rows*."""
    result: dict[str, dict[str, float]] = {}
    for field_name, column, agg_types in _aggregation_targets(columns, aggregation_model):
        if column is not None:
            values = [column.get_value(row) for row in rows]
        else:
            values = [resolve_field_value(row, field_name, columns) for row in rows]
        result[field_name] = {agg: calculate_aggregation(values, agg) for agg in agg_types}
    return result


# ---------------------------------------------------------------------------
# Tree building
# ---------------------------------------------------------------------------

def _partition(
    rows: Iterable[Any],
    field: str,
    columns: list[Column],
) -> list[tuple[Any, list[Any]]]:
    """Split *rows* by the value of *field*, in order of first appearance."""
    column = find_column(columns, field)
    groups: dict[Any, tuple[Any, list[Any]]] = {}
    for row in rows:
        value = resolve_field_value(row, field, columns)
        key = _partition_key(value, column)
        if key not in groups:
            groups[key] = (value, [])
        groups[key][1].append(row)
    return list(groups.values())


def build_tree(
    rows: list[Any],
    group_fields: list[str],
    columns: list[Column],
    aggregation_model: Mapping[str, list[str]],
    expanded: Mapping[str, bool],
    get_row_id: Callable[[Any], RowId],
    depth: int = 0,
    parent_id: str = "",
) -> list[TreeNode]:
    """Build the group/row tree for *rows*.

    Groups start expanded unless *expanded* maps their id to ``False``.
    Collapsed groups report their ``child_count`` but their children are
    not built.

    Args:
        rows: Filtered and sorted rows.
        group_fields: Grouping fields, outermost first.
        columns: Declared columns.
        aggregation_model: ``{field: [agg_type, ...]}`` overrides.
        expanded: ``{group_id: bool}`` expansion state.
        get_row_id: Row identity function.
        depth: Depth of the nodes produced by this call.
        parent_id: Group id of the enclosing group (``""`` at the top).

    Returns:
        The nodes at *depth*.
    """
    if not group_fields:
        return [RowNode(id=get_row_id(row), row=row, depth=depth) for row in rows]

    current_field, remaining = group_fields[0], group_fields[1:]
    nodes: list[TreeNode] = []
    for value, group_rows in _partition(rows, current_field, columns):
        group_id = make_group_id(parent_id, current_field, value)
        is_expanded = expanded.get(group_id, True)
        children: list[TreeNode] = []
        if is_expanded:
            children = build_tree(
                group_rows, remaining, columns, aggregation_model, expanded,
                get_row_id, depth + 1, group_id,
            )
        nodes.append(
            GroupNode(
                id=group_id,
                field=current_field,
                value=value,
                depth=depth,
                child_count=len(group_rows),
                is_expanded=is_expanded,
                aggregations=compute_aggregations(group_rows, columns, aggregation_model),
                children=children,
            )
        )
    return nodes


def collect_group_ids(
    rows: list[Any],
    group_fields: list[str],
    columns: list[Column],
    parent_id: str = "",
) -> list[str]:
    """Every group id the tree would contain with all groups expanded."""
    if not group_fields:
        return []
    ids: list[str] = []
    for value, group_rows in _partition(rows, group_fields[0], columns):
        group_id = make_group_id(parent_id, group_fields[0], value)
        ids.append(group_id)
        ids.extend(collect_group_ids(group_rows, group_fields[1:], columns, group_id))
    return ids


def flatten_tree(nodes: list[TreeNode]) -> list[TreeNode]:
    """Pre-order walk of *nodes*, descending only into expanded groups.

    The result is what windowed renderers index into.
    """
    result: list[TreeNode] = []

    def _visit(node: TreeNode) -> None:
        result.append(node)
        if isinstance(node, GroupNode):
            if node.is_expanded:
                for child in node.children:
                    _visit(child)
        elif not isinstance(node, RowNode):
            raise TypeError(f"Unexpected tree node: {node!r}")

    for node in nodes:
        _visit(node)
    return result
