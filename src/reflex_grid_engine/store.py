"""The per-grid store.

:class:`GridStore` is the explicit context object for one grid: it owns
the row index, the column declarations, every model (filter, sort,
grouping, selection, editing ...) and the derived pipeline output.  Any
mutation that can change what is displayed re-runs the whole pipeline::

    rows -> filter -> advanced filter -> sort -> group/aggregate -> flatten

Example::

    store = GridStore(rows, columns)
    store.set_grouping_model(["department"])
    store.toggle_group_expanded("department:Marketing")
    for node in store.flattened_nodes:
        ...
"""

import time
from typing import Any, Callable, Iterable, Mapping

from reflex_grid_engine import log
from reflex_grid_engine.config import GridSettings, get_settings
from reflex_grid_engine.editing import CellEditor, ProcessRowUpdate, ProcessRowUpdateError
from reflex_grid_engine.filtering import apply_advanced_filters, apply_filters, merge_filter_model
from reflex_grid_engine.filtering import value_options as _value_options
from reflex_grid_engine.grouping import build_tree, collect_group_ids, flatten_tree
from reflex_grid_engine.models import Column
from reflex_grid_engine.row_index import GetRowId, RowIndex
from reflex_grid_engine.selection import SelectionState, SelectionStatus
from reflex_grid_engine.sorting import apply_sort, toggle_sort_model
from reflex_grid_engine.subscription import (
    ApplyEvent,
    EventLike,
    EventSource,
    SubscriptionReconciler,
    Unsubscribe,
)
from reflex_grid_engine.types import (
    CellState,
    ConflictPolicy,
    Density,
    EditingCell,
    ExportScope,
    FocusDirection,
    FocusedCell,
    GroupNode,
    RowId,
    RowNode,
    SelectionModel,
    SubscriptionEvent,
    TreeNode,
)

Listener = Callable[["GridStore"], None]


def _empty_filter_model() -> dict[str, Any]:
    return {"items": [], "quickFilter": "", "linkOperator": "and"}


class GridStore:
    """State of one grid instance.

    Args:
        rows: Initial rows.
        columns: Declared columns.
        get_row_id: Row identity function (defaults to the ``id`` field).
        conflict_policy: Overrides ``settings.conflict_policy``.
        apply_event: Hook replacing the built-in push-event reconciliation.
        process_row_update: Default persistence function for :meth:`save_cell_edit`.
        on_process_row_update_error: Called with ``(exc, {"row_id", "field"})``
            when a save is rejected.
        settings: Explicit settings; defaults to :func:`get_settings`.
    """

    def __init__(
        self,
        rows: Iterable[Any] | None = None,
        columns: Iterable[Column] | None = None,
        get_row_id: GetRowId | None = None,
        *,
        conflict_policy: ConflictPolicy | str | None = None,
        apply_event: ApplyEvent | None = None,
        process_row_update: ProcessRowUpdate | None = None,
        on_process_row_update_error: ProcessRowUpdateError | None = None,
        settings: GridSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()

        self._row_index = RowIndex(rows, get_row_id)
        self._columns: list[Column] = list(columns or [])

        # Models
        self._filter_model: dict[str, Any] = _empty_filter_model()
        self._advanced_filter_model: dict[str, Any] = {"filters": {}, "dateFilters": {}}
        self._sort_model: list[dict[str, Any]] = []
        self._grouping_fields: list[str] = []
        self._expanded: dict[str, bool] = {}
        self._aggregation_model: dict[str, list[str]] = {}
        self._pagination_model: dict[str, int] = {"page": 0, "pageSize": self.settings.page_size}
        self._column_visibility: dict[str, bool] = {c.field: False for c in self._columns if c.hidden}
        self._column_sizing: dict[str, int] = {}
        self.density: Density = self.settings.density
        self.loading = False
        self.focused_cell: FocusedCell | None = None

        self._selection = SelectionState()
        self._editor = CellEditor(self._row_index, lambda: self._columns, self._reprocess)
        self._reconciler = SubscriptionReconciler(
            self._row_index,
            self._editor,
            ConflictPolicy(conflict_policy or self.settings.conflict_policy),
            apply_event=apply_event,
            on_change=self._reprocess,
        )
        self.process_row_update = process_row_update
        self.on_process_row_update_error = on_process_row_update_error

        # Derived
        self._processed_rows: list[Any] = []
        self._tree_nodes: list[TreeNode] = []
        self._flattened_nodes: list[TreeNode] = []
        self._listeners: list[Listener] = []

        self._reprocess()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _reprocess(self) -> None:
        t0 = time.perf_counter()
        columns = self._columns
        processed = apply_filters(self._row_index.rows, self._filter_model, columns)
        processed = apply_advanced_filters(processed, self._advanced_filter_model, columns)
        processed = apply_sort(processed, self._sort_model, columns)

        get_row_id = self._row_index.get_row_id
        if self._grouping_fields:
            tree = build_tree(
                processed,
                self._grouping_fields,
                columns,
                self._aggregation_model,
                self._expanded,
                get_row_id,
            )
        else:
            tree = [RowNode(id=get_row_id(row), row=row, depth=0) for row in processed]

        self._processed_rows = processed
        self._tree_nodes = tree
        self._flattened_nodes = flatten_tree(tree)
        elapsed_ms = (time.perf_counter() - t0) * 1000
        log.debug(
            f"Recomputed {len(processed)}/{len(self._row_index)} rows into "
            f"{len(self._flattened_nodes)} nodes ({elapsed_ms:.1f}ms)"
        )
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                log.exception("Grid store listener failed")

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with the store after every recompute.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def refresh(self) -> None:
        """Force a recompute (e.g. after a column getter changed behaviour)."""
        self._reprocess()

    # ------------------------------------------------------------------
    # Derived output
    # ------------------------------------------------------------------

    @property
    def row_index(self) -> RowIndex:
        return self._row_index

    @property
    def rows(self) -> list[Any]:
        """All rows, unfiltered."""
        return self._row_index.rows

    @property
    def rows_by_id(self) -> Mapping[RowId, Any]:
        return self._row_index.rows_by_id

    @property
    def total_row_count(self) -> int:
        return len(self._row_index)

    @property
    def processed_rows(self) -> list[Any]:
        """Filtered and sorted rows, before grouping."""
        return self._processed_rows

    @property
    def processed_row_count(self) -> int:
        return len(self._processed_rows)

    @property
    def tree_nodes(self) -> list[TreeNode]:
        return self._tree_nodes

    @property
    def flattened_nodes(self) -> list[TreeNode]:
        """The render list: pre-order walk of the tree through expanded groups."""
        return self._flattened_nodes

    def processed_row_ids(self) -> list[RowId]:
        get_row_id = self._row_index.get_row_id
        return [get_row_id(row) for row in self._processed_rows]

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    @property
    def get_row_id(self) -> GetRowId:
        return self._row_index.get_row_id

    def set_get_row_id(self, get_row_id: GetRowId) -> None:
        self._row_index.get_row_id = get_row_id
        self._reprocess()

    def set_rows(self, rows: Iterable[Any]) -> None:
        self._row_index.set_rows(rows)
        self._reprocess()

    def get_row(self, row_id: RowId) -> Any:
        return self._row_index.get_row(row_id)

    def has_row(self, row_id: RowId) -> bool:
        return self._row_index.has_row(row_id)

    def update_row(self, row_id: RowId, updates: Any) -> bool:
        """Shallow-merge *updates* into a row; ``False`` if it does not exist."""
        if not self._row_index.update_row(row_id, updates):
            log.debug(f"update_row ignored: no row {row_id!r}")
            return False
        self._reprocess()
        return True

    def replace_row(self, row_id: RowId, row: Any) -> bool:
        if not self._row_index.replace_row(row_id, row):
            log.debug(f"replace_row ignored: no row {row_id!r}")
            return False
        self._reprocess()
        return True

    def add_row(self, row: Any) -> None:
        self._row_index.add_row(row)
        self._reprocess()

    def remove_row(self, row_id: RowId) -> bool:
        if not self._row_index.remove_row(row_id):
            return False
        self._reprocess()
        return True

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    @property
    def columns(self) -> list[Column]:
        return self._columns

    def set_columns(self, columns: Iterable[Column]) -> None:
        known = {c.field for c in self._columns}
        self._columns = list(columns)
        for column in self._columns:
            if column.hidden and column.field not in known:
                self._column_visibility.setdefault(column.field, False)
        self._reprocess()

    @property
    def column_visibility(self) -> dict[str, bool]:
        return self._column_visibility

    def set_column_visibility(self, model: Mapping[str, bool]) -> None:
        self._column_visibility = dict(model)

    def toggle_column_visibility(self, field: str) -> None:
        """Flip one column's visibility; columns absent from the model are visible."""
        visible = self._column_visibility.get(field, True)
        self._column_visibility = {**self._column_visibility, field: not visible}

    def is_column_visible(self, field: str) -> bool:
        return self._column_visibility.get(field, True) is not False

    def visible_columns(self) -> list[Column]:
        return [c for c in self._columns if self.is_column_visible(c.field)]

    @property
    def column_sizing(self) -> dict[str, int]:
        return self._column_sizing

    def set_column_width(self, field: str, width: int) -> None:
        self._column_sizing = {**self._column_sizing, field: width}

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    @property
    def filter_model(self) -> dict[str, Any]:
        return self._filter_model

    @property
    def advanced_filter_model(self) -> dict[str, Any]:
        return self._advanced_filter_model

    def _reset_page(self) -> None:
        self._pagination_model = {**self._pagination_model, "page": 0}

    def set_filter_model(self, model: Mapping[str, Any]) -> None:
        self._filter_model = {**_empty_filter_model(), **dict(model)}
        self._reset_page()
        self._reprocess()

    def merge_filter_model(self, incoming: Mapping[str, Any]) -> None:
        """Fold a single-item filter change into the current filter model."""
        self.set_filter_model(merge_filter_model(self._filter_model, incoming))

    def set_quick_filter(self, value: str) -> None:
        self.set_filter_model({**self._filter_model, "quickFilter": value or ""})

    def set_advanced_filter_model(self, model: Mapping[str, Any]) -> None:
        self._advanced_filter_model = {"filters": {}, "dateFilters": {}, **dict(model)}
        self._reset_page()
        self._reprocess()

    def clear_filters(self) -> None:
        self._filter_model = _empty_filter_model()
        self._advanced_filter_model = {"filters": {}, "dateFilters": {}}
        self._reset_page()
        self._reprocess()

    def value_options(self, field: str) -> list[str]:
        """Distinct value keys of *field* over all rows."""
        return _value_options(self._row_index.rows, field, self._columns)

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    @property
    def sort_model(self) -> list[dict[str, Any]]:
        return self._sort_model

    def set_sort_model(self, model: Iterable[Mapping[str, Any]]) -> None:
        self._sort_model = [dict(entry) for entry in model]
        self._reprocess()

    def toggle_sort(self, field: str, multi: bool = False) -> None:
        """Cycle *field* through asc, desc and unsorted."""
        self.set_sort_model(toggle_sort_model(self._sort_model, field, multi=multi))

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    @property
    def pagination_model(self) -> dict[str, int]:
        return self._pagination_model

    def set_pagination_model(self, model: Mapping[str, int]) -> None:
        self._pagination_model = {**self._pagination_model, **dict(model)}

    def set_page(self, page: int) -> None:
        self._pagination_model = {**self._pagination_model, "page": page}

    def set_page_size(self, page_size: int) -> None:
        self._pagination_model = {"page": 0, "pageSize": page_size}

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    @property
    def grouping_fields(self) -> list[str]:
        return self._grouping_fields

    @property
    def expanded(self) -> dict[str, bool]:
        return self._expanded

    @property
    def grouping_model(self) -> dict[str, Any]:
        return {"fields": list(self._grouping_fields), "expanded": dict(self._expanded)}

    def set_grouping_model(
        self,
        fields: Iterable[str],
        expanded: Mapping[str, bool] | None = None,
    ) -> None:
        self._grouping_fields = list(fields)
        if expanded is not None:
            self._expanded = dict(expanded)
        self._reprocess()

    def add_grouping_field(self, field: str) -> None:
        if field not in self._grouping_fields:
            self.set_grouping_model([*self._grouping_fields, field])

    def remove_grouping_field(self, field: str) -> None:
        self.set_grouping_model([f for f in self._grouping_fields if f != field])

    def reorder_grouping_fields(self, fields: Iterable[str]) -> None:
        self.set_grouping_model(fields)

    def toggle_group_expanded(self, group_id: str) -> None:
        is_expanded = self._expanded.get(group_id, True)
        self._expanded = {**self._expanded, group_id: not is_expanded}
        self._reprocess()

    def _set_all_expanded(self, value: bool) -> None:
        group_ids = collect_group_ids(self._processed_rows, self._grouping_fields, self._columns)
        self._expanded = {group_id: value for group_id in group_ids}
        self._reprocess()

    def expand_all_groups(self) -> None:
        self._set_all_expanded(True)

    def collapse_all_groups(self) -> None:
        """Collapse every group at every depth, including ones currently hidden."""
        self._set_all_expanded(False)

    @property
    def aggregation_model(self) -> dict[str, list[str]]:
        return self._aggregation_model

    def set_aggregation_model(self, model: Mapping[str, Iterable[str]]) -> None:
        self._aggregation_model = {field: list(types) for field, types in model.items()}
        self._reprocess()

    def group_node(self, group_id: str) -> GroupNode | None:
        """Find a group anywhere in the built tree."""
        stack = list(self._tree_nodes)
        while stack:
            node = stack.pop()
            if isinstance(node, GroupNode):
                if node.id == group_id:
                    return node
                stack.extend(node.children)
        return None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selection_model(self) -> SelectionModel:
        return self._selection.model

    def set_selection_model(self, model: SelectionModel) -> None:
        self._selection.set_model(model)

    def select_row(self, row_id: RowId) -> None:
        self._selection.select(row_id)

    def deselect_row(self, row_id: RowId) -> None:
        self._selection.deselect(row_id)

    def toggle_row_selection(self, row_id: RowId) -> None:
        self._selection.toggle(row_id)

    def select_all(self) -> None:
        """Select exactly the rows that currently pass the filters."""
        self._selection.select_all(self.processed_row_ids())

    def deselect_all(self) -> None:
        self._selection.deselect_all()

    def is_selected(self, row_id: RowId) -> bool:
        return self._selection.is_selected(row_id)

    def selection_status(self) -> SelectionStatus:
        return self._selection.status(self.processed_row_ids())

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    @property
    def editing_cells(self) -> Mapping[str, EditingCell]:
        return self._editor.cells

    def get_editing_cell(self, row_id: RowId, field: str) -> EditingCell | None:
        return self._editor.get(row_id, field)

    def is_editing(self, row_id: RowId, field: str) -> bool:
        return self._editor.is_editing(row_id, field)

    def start_cell_edit(self, row_id: RowId, field: str) -> EditingCell | None:
        """Open an edit session on a cell and focus it.

        Raises:
            IllegalTransitionError: If the cell is being saved.
        """
        cell = self._editor.start(row_id, field)
        if cell is not None:
            self.focused_cell = FocusedCell(row_id, field)
        return cell

    def update_cell_value(self, row_id: RowId, field: str, value: Any) -> bool:
        return self._editor.update(row_id, field, value)

    def set_cell_state(
        self,
        row_id: RowId,
        field: str,
        state: CellState,
        error: str | None = None,
    ) -> bool:
        return self._editor.set_state(row_id, field, state, error)

    def commit_cell_edit(self, row_id: RowId, field: str) -> Any:
        """Write the pending value locally and close the session."""
        return self._editor.commit(row_id, field)

    def cancel_cell_edit(self, row_id: RowId, field: str) -> bool:
        return self._editor.cancel(row_id, field)

    async def save_cell_edit(
        self,
        row_id: RowId,
        field: str,
        process_row_update: ProcessRowUpdate | None = None,
    ) -> Any:
        """Validate and persist an edit through ``process_row_update``.

        Uses the store-level function when none is passed; without either
        the validated row is committed locally.
        """
        return await self._editor.save(
            row_id,
            field,
            process_row_update or self.process_row_update,
            self.on_process_row_update_error,
        )

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    @property
    def conflict_policy(self) -> ConflictPolicy:
        return self._reconciler.conflict_policy

    def set_conflict_policy(self, policy: ConflictPolicy | str) -> None:
        self._reconciler.conflict_policy = ConflictPolicy(policy)

    @property
    def pending_conflicts(self) -> Mapping[RowId, SubscriptionEvent]:
        return self._reconciler.pending_conflicts

    def apply_subscription_event(self, event: EventLike) -> bool:
        return self._reconciler.apply(event)

    def resolve_conflict(self, row_id: RowId, resolution: str) -> bool:
        return self._reconciler.resolve_conflict(row_id, resolution)

    def subscribe(self, source: EventSource | Callable[..., Unsubscribe]) -> Unsubscribe:
        """Apply every event *source* delivers until the returned function is called."""
        return self._reconciler.subscribe(source)

    # ------------------------------------------------------------------
    # Focus
    # ------------------------------------------------------------------

    def set_focused_cell(self, row_id: RowId | None, field: str | None = None) -> None:
        if row_id is None or field is None:
            self.focused_cell = None
        else:
            self.focused_cell = FocusedCell(row_id, field)

    def move_focus(self, direction: FocusDirection) -> None:
        """Move the focused cell over row nodes and visible columns, clamped at the edges."""
        focused = self.focused_cell
        if focused is None:
            return
        row_nodes = [n for n in self._flattened_nodes if isinstance(n, RowNode)]
        columns = self.visible_columns()
        row_pos = next((i for i, n in enumerate(row_nodes) if n.id == focused.row_id), -1)
        col_pos = next((i for i, c in enumerate(columns) if c.field == focused.field), -1)
        if row_pos == -1 or col_pos == -1:
            return

        if direction == "up":
            row_pos = max(0, row_pos - 1)
        elif direction == "down":
            row_pos = min(len(row_nodes) - 1, row_pos + 1)
        elif direction == "left":
            col_pos = max(0, col_pos - 1)
        elif direction == "right":
            col_pos = min(len(columns) - 1, col_pos + 1)
        self.focused_cell = FocusedCell(row_nodes[row_pos].id, columns[col_pos].field)

    # ------------------------------------------------------------------
    # UI flags / export
    # ------------------------------------------------------------------

    def set_density(self, density: Density) -> None:
        self.density = density

    def set_loading(self, loading: bool) -> None:
        self.loading = loading

    def export_rows(self, scope: ExportScope = "filtered") -> list[Any]:
        """Rows for an export: all, the processed ones, or the selected ones.

        ``"selected"`` keeps row-index order.
        """
        if scope == "all":
            return list(self._row_index.rows)
        if scope == "selected":
            get_row_id = self._row_index.get_row_id
            return [row for row in self._row_index.rows if self.is_selected(get_row_id(row))]
        return list(self._processed_rows)
