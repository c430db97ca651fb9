"""Column declarations.

Two flavours exist side by side:

* :class:`Column` is what the engine works with.  It carries the
  callables (value getter/setter, editability predicate, validator,
  grouping key) that drive filtering, sorting, grouping and editing.
* :class:`ColumnDef` is the serialisable subset sent to a frontend grid
  as column props.  Attributes are converted from snake_case to
  camelCase when serialised via ``PropsBase``.
"""

import dataclasses
from typing import Any, Awaitable, Callable, Literal, Union

import reflex as rx
from reflex.components.props import PropsBase

from reflex_grid_engine.row_index import merge_row, read_field

ColumnType = Literal["string", "number", "date", "dateTime", "boolean", "singleSelect"]

# Returns an error message, ``None``, or an awaitable resolving to either.
Validator = Callable[[Any, Any], Union[str, None, Awaitable[Union[str, None]]]]


class ColumnDef(PropsBase):
    """Frontend column definition (maps to MUI ``GridColDef``)."""

    field: str
    header_name: str | None = None
    width: int | None = None
    min_width: int | None = None
    max_width: int | None = None
    flex: int | None = None
    type: ColumnType | None = None
    align: Literal["left", "center", "right"] | None = None
    header_align: Literal["left", "center", "right"] | None = None
    editable: bool | rx.Var[bool] = False
    sortable: bool | rx.Var[bool] = True
    filterable: bool | rx.Var[bool] = True
    hide: bool | rx.Var[bool] = False
    description: str | None = None
    value_options: list[str] | None = None


@dataclasses.dataclass
class Column:
    """Engine-side description of one field.

    Attributes:
        field: Name of the row field this column reads.
        header_name: Human-readable header.
        type: Grid type hint (used by frontends and the CLI).
        width: Initial width in pixels.
        editable: ``True``/``False`` or a predicate ``(row) -> bool``.
        sortable: Frontend hint; the engine sorts on any declared column.
        filterable: Frontend hint; the engine filters on any row field.
        hidden: Initially hidden.
        value_getter: ``(row) -> value``; defaults to reading ``field``.
        value_setter: ``(row, value) -> new_row``; defaults to a shallow
            merge of ``{field: value}``.
        value_formatter: ``(value, row) -> str`` for display.
        value_parser: ``(raw) -> value`` for frontend input.
        value_options: Allowed values for ``singleSelect`` columns.
        aggregations: Aggregation types computed per group.
        validate: ``(value, row) -> error | None``, sync or async; runs
            before an asynchronous save.
        group_key: ``(value) -> hashable`` used instead of the raw value
            when partitioning rows into groups.
        description: Header tooltip text.
    """

    field: str
    header_name: str | None = None
    type: ColumnType | None = None
    width: int | None = None
    editable: bool | Callable[[Any], bool] = False
    sortable: bool = True
    filterable: bool = True
    hidden: bool = False
    value_getter: Callable[[Any], Any] | None = None
    value_setter: Callable[[Any, Any], Any] | None = None
    value_formatter: Callable[[Any, Any], str] | None = None
    value_parser: Callable[[Any], Any] | None = None
    value_options: list[Any] | None = None
    aggregations: list[str] = dataclasses.field(default_factory=list)
    validate: Validator | None = None
    group_key: Callable[[Any], Any] | None = None
    description: str | None = None

    def get_value(self, row: Any) -> Any:
        """Resolve this column's value for *row*."""
        if self.value_getter is not None:
            return self.value_getter(row)
        return read_field(row, self.field)

    def set_value(self, row: Any, value: Any) -> Any:
        """Return a new row with *value* written into this column."""
        if self.value_setter is not None:
            return self.value_setter(row, value)
        return merge_row(row, {self.field: value})

    def is_editable(self, row: Any) -> bool:
        if callable(self.editable):
            return bool(self.editable(row))
        return self.editable is True

    def format_value(self, row: Any) -> str:
        value = self.get_value(row)
        if self.value_formatter is not None:
            return self.value_formatter(value, row)
        return "" if value is None else str(value)

    def to_column_def(self) -> ColumnDef:
        """Return the serialisable frontend definition of this column."""
        value_options = None
        if self.value_options is not None:
            value_options = [str(v) for v in self.value_options]
        return ColumnDef(
            field=self.field,
            header_name=self.header_name,
            width=self.width,
            type=self.type,
            editable=self.editable if isinstance(self.editable, bool) else True,
            sortable=self.sortable,
            filterable=self.filterable,
            hide=self.hidden,
            description=self.description,
            value_options=value_options,
        )


def find_column(columns: list[Column], field_name: str) -> Column | None:
    """Return the declared column for *field_name*, if any."""
    for column in columns:
        if column.field == field_name:
            return column
    return None


def resolve_field_value(row: Any, field_name: str, columns: list[Column]) -> Any:
    """Resolve *field_name* on *row*, through a declared column when there is one.

    Undeclared fields fall back to a direct read, so filters and grouping
    are not restricted to declared columns.
    """
    column = find_column(columns, field_name)
    if column is not None:
        return column.get_value(row)
    return read_field(row, field_name)
