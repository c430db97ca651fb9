"""Reflex binding: project a :class:`GridStore` into reactive state.

``GridStateMixin`` is a Reflex **state mixin** (``mixin=True``).  Each
subclass gets its own independent set of ``grid_*`` reactive vars, so
several grids on the same page do not interfere with each other.

Typical usage::

    from reflex_grid_engine import Column, GridStateMixin

    class EmployeeGrid(GridStateMixin, rx.State):
        def load(self):
            self.set_grid_data(fetch_employees(), COLUMNS)

The store itself is not serialisable, so it lives in a module-level
registry keyed by the state class name; the reactive vars hold a
JSON-safe snapshot that is refreshed after every handler.
"""

import enum
from datetime import date, datetime, time
from typing import Any, Callable, Iterable, Mapping

import polars as pl
import reflex as rx

from reflex_grid_engine.grouping import group_label
from reflex_grid_engine.models import Column
from reflex_grid_engine.polars_utils import id_getter, lazyframe_to_grid, resolve_id_field
from reflex_grid_engine.row_index import row_fields
from reflex_grid_engine.store import GridStore
from reflex_grid_engine.types import EditingCell, GroupNode, RowId, RowNode, TreeNode


# ---------------------------------------------------------------------------
# Module-level store registry
# ---------------------------------------------------------------------------

_store_registry: dict[str, GridStore] = {}


def get_store(store_id: str) -> GridStore | None:
    """Return the store registered under *store_id* (a state class name)."""
    return _store_registry.get(store_id)


def register_store(store_id: str, store: GridStore) -> GridStore:
    _store_registry[store_id] = store
    return store


def drop_store(store_id: str) -> None:
    _store_registry.pop(store_id, None)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def jsonable(value: Any) -> Any:
    """Convert a cell value to something JSON can carry."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [jsonable(v) for v in value]
    return str(value)


def serialize_row(row: Any) -> dict[str, Any]:
    return {k: jsonable(v) for k, v in row_fields(row).items()}


def serialize_node(node: TreeNode, columns: list[Column] | None = None) -> dict[str, Any]:
    """Render a tree node as a JSON-safe dict with camelCase keys.

    Row nodes carry their row; when *columns* is given they also carry
    the formatted cell text per column.
    """
    if isinstance(node, GroupNode):
        return {
            "type": "group",
            "id": node.id,
            "field": node.field,
            "value": jsonable(node.value),
            "label": group_label(node.value),
            "depth": node.depth,
            "childCount": node.child_count,
            "isExpanded": node.is_expanded,
            "aggregations": jsonable(node.aggregations),
        }
    if isinstance(node, RowNode):
        data: dict[str, Any] = {
            "type": "row",
            "id": jsonable(node.id),
            "depth": node.depth,
            "row": serialize_row(node.row),
        }
        if columns is not None:
            data["cells"] = {c.field: c.format_value(node.row) for c in columns}
        return data
    raise TypeError(f"Unexpected tree node: {node!r}")


def serialize_editing_cell(cell: EditingCell) -> dict[str, Any]:
    return {
        "rowId": jsonable(cell.row_id),
        "field": cell.field,
        "value": jsonable(cell.value),
        "originalValue": jsonable(cell.original_value),
        "state": cell.state.value,
        "error": cell.error,
    }


def sort_model_from_mui(sort_model: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Translate MUI ``[{"field", "sort"}]`` into engine sort entries.

    Entries whose ``sort`` is empty (MUI's "unsorted") are dropped.
    """
    result: list[dict[str, Any]] = []
    for entry in sort_model:
        direction = entry.get("direction") or entry.get("sort")
        if entry.get("field") and direction in ("asc", "desc"):
            result.append({"field": entry["field"], "direction": direction})
    return result


def sort_model_to_mui(sort_model: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [{"field": e.get("field"), "sort": e.get("direction", "asc")} for e in sort_model]


def resolve_row_id(store: GridStore, row_id: Any) -> Any:
    """Map a row id coming back from the frontend onto a store id.

    JSON turns integer ids into strings in some paths, so ids are also
    matched by their string form.
    """
    if store.has_row(row_id):
        return row_id
    for candidate in store.rows_by_id:
        if str(candidate) == str(row_id):
            return candidate
    return row_id


def localize_event(store: GridStore, event: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of a frontend push *event* with its ``id`` mapped onto a store id."""
    event = dict(event)
    if event.get("id") is not None:
        event["id"] = resolve_row_id(store, event["id"])
    return event


# ---------------------------------------------------------------------------
# Reflex state mixin
# ---------------------------------------------------------------------------

class GridStateMixin(rx.State, mixin=True):
    """Reflex state mixin that drives one in-memory grid.

    Subclasses **must** also inherit from ``rx.State`` so that Reflex's
    metaclass registers the vars on the child::

        class MyGrid(GridStateMixin, rx.State):
            ...

    All state var names are prefixed with ``grid_``.
    """

    # -- Frontend state vars --
    grid_nodes: list[dict[str, Any]] = []
    grid_columns: list[dict[str, Any]] = []
    grid_row_count: int = 0
    grid_total_row_count: int = 0
    grid_loaded: bool = False
    grid_loading: bool = False
    grid_stats: str = ""
    grid_filter_model: dict[str, Any] = {"items": []}
    grid_sort_model: list[dict[str, Any]] = []
    grid_grouping_fields: list[str] = []
    grid_selected_ids: list[str] = []
    grid_selection_status: str = "none"
    grid_editing_cells: dict[str, dict[str, Any]] = {}
    grid_pending_conflicts: list[str] = []
    grid_density: str = "standard"

    # -- Backend-only vars (not sent to frontend) --
    _grid_store_id: str = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_grid_data(
        self,
        rows: Iterable[Any],
        columns: Iterable[Column],
        get_row_id: Callable[[Any], RowId] | None = None,
        **store_kwargs: Any,
    ) -> None:
        """Create this grid's store from *rows* and *columns*.

        Extra keyword arguments go to :class:`GridStore`.
        """
        store_id = type(self).__name__
        self._grid_store_id = store_id  # type: ignore[assignment]
        register_store(store_id, GridStore(rows, columns, get_row_id, **store_kwargs))
        self.grid_loaded = True  # type: ignore[assignment]
        self._sync_grid()

    def set_grid_lazyframe(
        self,
        lf: pl.LazyFrame,
        descriptions: dict[str, str] | None = None,
        id_field: str | None = None,
        limit: int | None = None,
        **store_kwargs: Any,
    ):
        """Collect a polars LazyFrame into this grid's store.

        This is a **generator** -- use ``yield from self.set_grid_lazyframe(...)``
        so the loading state reaches the frontend first.
        """
        self.grid_loading = True  # type: ignore[assignment]
        self.grid_stats = "Loading..."  # type: ignore[assignment]
        yield

        rows, columns = lazyframe_to_grid(
            lf,
            id_field=id_field,
            limit=limit,
            column_descriptions=descriptions,
            json_safe=True,
        )
        get_row_id = id_getter(resolve_id_field(rows, id_field))
        self.set_grid_data(rows, columns, get_row_id, **store_kwargs)
        self.grid_loading = False  # type: ignore[assignment]

    def _grid_store(self) -> GridStore | None:
        return get_store(self._grid_store_id) if self._grid_store_id else None

    def _resolve_grid_row_id(self, store: GridStore, row_id: Any) -> Any:
        return resolve_row_id(store, row_id)

    def _sync_grid(self) -> None:
        """Copy a JSON-safe snapshot of the store into the reactive vars."""
        store = self._grid_store()
        if store is None:
            return
        visible = store.visible_columns()
        self.grid_nodes = [serialize_node(n, visible) for n in store.flattened_nodes]  # type: ignore[assignment]
        self.grid_columns = [c.to_column_def().dict() for c in store.columns]  # type: ignore[assignment]
        self.grid_row_count = store.processed_row_count  # type: ignore[assignment]
        self.grid_total_row_count = store.total_row_count  # type: ignore[assignment]
        self.grid_filter_model = jsonable(store.filter_model)  # type: ignore[assignment]
        self.grid_sort_model = sort_model_to_mui(store.sort_model)  # type: ignore[assignment]
        self.grid_grouping_fields = list(store.grouping_fields)  # type: ignore[assignment]
        self.grid_selected_ids = sorted(str(i) for i in store.selection_model.selected_ids)  # type: ignore[assignment]
        self.grid_selection_status = store.selection_status()  # type: ignore[assignment]
        self.grid_editing_cells = {  # type: ignore[assignment]
            key: serialize_editing_cell(cell) for key, cell in store.editing_cells.items()
        }
        self.grid_pending_conflicts = [str(i) for i in store.pending_conflicts]  # type: ignore[assignment]
        self.grid_density = store.density  # type: ignore[assignment]
        self.grid_stats = (  # type: ignore[assignment]
            f"{store.processed_row_count:,} of {store.total_row_count:,} rows"
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def handle_grid_filter(self, filter_model: dict[str, Any]) -> None:
        """Fold a single-item filter change into the accumulated filter model."""
        store = self._grid_store()
        if store is None:
            return
        store.merge_filter_model(filter_model)
        self._sync_grid()

    def handle_grid_quick_filter(self, value: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.set_quick_filter(value)
        self._sync_grid()

    def handle_grid_advanced_filter(self, model: dict[str, Any]) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.set_advanced_filter_model(model)
        self._sync_grid()

    def clear_grid_filters(self) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.clear_filters()
        self._sync_grid()

    def handle_grid_sort(self, sort_model: list[dict[str, Any]]) -> None:
        """Replace the sort model with one sent by a MUI grid."""
        store = self._grid_store()
        if store is None:
            return
        store.set_sort_model(sort_model_from_mui(sort_model))
        self._sync_grid()

    def toggle_grid_sort(self, field: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.toggle_sort(field)
        self._sync_grid()

    def set_grid_grouping(self, fields: list[str]) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.set_grouping_model(fields)
        self._sync_grid()

    def toggle_grid_group(self, group_id: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.toggle_group_expanded(group_id)
        self._sync_grid()

    def expand_all_grid_groups(self) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.expand_all_groups()
        self._sync_grid()

    def collapse_all_grid_groups(self) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.collapse_all_groups()
        self._sync_grid()

    def toggle_grid_row_selection(self, row_id: Any) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.toggle_row_selection(self._resolve_grid_row_id(store, row_id))
        self._sync_grid()

    def select_all_grid_rows(self) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.select_all()
        self._sync_grid()

    def deselect_all_grid_rows(self) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.deselect_all()
        self._sync_grid()

    def start_grid_cell_edit(self, row_id: Any, field: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.start_cell_edit(self._resolve_grid_row_id(store, row_id), field)
        self._sync_grid()

    def update_grid_cell_value(self, row_id: Any, field: str, value: Any) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.update_cell_value(self._resolve_grid_row_id(store, row_id), field, value)
        self._sync_grid()

    def commit_grid_cell_edit(self, row_id: Any, field: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.commit_cell_edit(self._resolve_grid_row_id(store, row_id), field)
        self._sync_grid()

    def cancel_grid_cell_edit(self, row_id: Any, field: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.cancel_cell_edit(self._resolve_grid_row_id(store, row_id), field)
        self._sync_grid()

    async def save_grid_cell_edit(self, row_id: Any, field: str) -> None:
        """Validate and persist an edit with the store's ``process_row_update``."""
        store = self._grid_store()
        if store is None:
            return
        await store.save_cell_edit(self._resolve_grid_row_id(store, row_id), field)
        self._sync_grid()

    def apply_grid_event(self, event: dict[str, Any]) -> None:
        """Apply a push event delivered as a dict (``{"type", "id", ...}``)."""
        store = self._grid_store()
        if store is None:
            return
        store.apply_subscription_event(localize_event(store, event))
        self._sync_grid()

    def resolve_grid_conflict(self, row_id: Any, resolution: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.resolve_conflict(self._resolve_grid_row_id(store, row_id), resolution)
        self._sync_grid()

    def change_grid_density(self, density: str) -> None:
        store = self._grid_store()
        if store is None:
            return
        store.set_density(density)  # type: ignore[arg-type]
        self._sync_grid()
