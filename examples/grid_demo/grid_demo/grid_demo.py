"""Example Reflex app driving an in-memory grid with ``GridStateMixin``.

The employee table below is rendered with plain Radix table components;
every interaction (quick filter, sorting, grouping, selection, push
updates) goes through the grid store on the backend, and the page only
renders the flattened ``grid_nodes`` snapshot.
"""

from typing import Any

import polars as pl
import reflex as rx

from reflex_grid_engine import GridStateMixin

GROUPABLE_FIELDS: list[str] = ["department", "active"]


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

def _build_employee_lazyframe() -> pl.LazyFrame:
    """Twelve employees across three departments."""
    return pl.LazyFrame(
        {
            "id": list(range(1, 13)),
            "name": [
                "Alice Smith", "Bob Johnson", "Charlie Williams", "Diana Brown",
                "Eve Jones", "Frank Garcia", "Grace Miller", "Hank Davis",
                "Ivy Rodriguez", "Jack Martinez", "Karen Hernandez", "Leo Lopez",
            ],
            "department": [
                "Engineering", "Marketing", "Engineering", "Sales",
                "Engineering", "Marketing", "Sales", "Engineering",
                "Marketing", "Sales", "Engineering", "Marketing",
            ],
            "salary": [
                95000, 72000, 110000, 68000, 125000, 71000,
                82000, 98000, 67000, 78000, 105000, 69000,
            ],
            "active": [
                True, True, True, False, True, True,
                False, True, True, True, True, False,
            ],
        }
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class EmployeeGrid(GridStateMixin, rx.State):
    """Employee grid; all ``grid_*`` vars and handlers come from the mixin."""

    quick_filter: str = ""

    def load(self):
        yield from self.set_grid_lazyframe(
            _build_employee_lazyframe(),
            descriptions={"salary": "Yearly base salary in USD"},
        )
        store = self._grid_store()
        if store is not None:
            store.set_aggregation_model({"salary": ["sum", "avg"], "name": ["count"]})
            self._sync_grid()

    def set_quick(self, value: str) -> None:
        self.quick_filter = value
        self.handle_grid_quick_filter(value)

    def toggle_grouping(self, field: str) -> None:
        fields = list(self.grid_grouping_fields)
        if field in fields:
            fields.remove(field)
        else:
            fields.append(field)
        self.set_grid_grouping(fields)

    def push_raise(self) -> None:
        """Simulate a server push giving Alice a raise."""
        store = self._grid_store()
        if store is None:
            return
        salary = (store.get_row(1) or {}).get("salary", 0)
        self.apply_grid_event({"type": "UPDATED", "id": 1, "patch": {"salary": salary + 5000}})


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------

def _toolbar() -> rx.Component:
    return rx.hstack(
        rx.input(
            placeholder="Quick filter...",
            value=EmployeeGrid.quick_filter,
            on_change=EmployeeGrid.set_quick,
            width="240px",
        ),
        *[
            rx.button(
                f"Group by {field}",
                variant=rx.cond(EmployeeGrid.grid_grouping_fields.contains(field), "solid", "outline"),
                on_click=EmployeeGrid.toggle_grouping(field),
            )
            for field in GROUPABLE_FIELDS
        ],
        rx.button("Expand all", variant="soft", on_click=EmployeeGrid.expand_all_grid_groups),
        rx.button("Collapse all", variant="soft", on_click=EmployeeGrid.collapse_all_grid_groups),
        rx.button("Push update", color_scheme="amber", on_click=EmployeeGrid.push_raise),
        spacing="2",
        margin_bottom="1em",
    )


def _header_cell(column: rx.Var[dict[str, Any]]) -> rx.Component:
    return rx.table.column_header_cell(
        column["headerName"].to(str),
        on_click=EmployeeGrid.toggle_grid_sort(column["field"].to(str)),
        cursor="pointer",
    )


def _group_row(node: rx.Var[dict[str, Any]]) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.hstack(
                rx.icon(rx.cond(node["isExpanded"].to(bool), "chevron_down", "chevron_right"), size=16),
                rx.text(node["field"].to(str), ": ", node["label"].to(str), weight="bold"),
                rx.badge(node["childCount"].to(str)),
                rx.text(node["aggregations"].to_string(), size="1", color="var(--gray-9)"),
                padding_left=(node["depth"].to(int) * 16).to_string() + "px",
                align="center",
            ),
            col_span=EmployeeGrid.grid_columns.length() + 1,  # type: ignore[operator]
        ),
        on_click=EmployeeGrid.toggle_grid_group(node["id"].to(str)),
        cursor="pointer",
        background="var(--gray-3)",
    )


def _data_row(node: rx.Var[dict[str, Any]]) -> rx.Component:
    row_id = node["id"].to(str)
    return rx.table.row(
        rx.table.cell(
            rx.checkbox(
                checked=EmployeeGrid.grid_selected_ids.contains(row_id),
                on_change=lambda _: EmployeeGrid.toggle_grid_row_selection(row_id),
            ),
        ),
        rx.foreach(
            EmployeeGrid.grid_columns,
            lambda column: rx.table.cell(
                node["cells"].to(dict)[column["field"].to(str)].to(str),
            ),
        ),
    )


def _grid() -> rx.Component:
    return rx.table.root(
        rx.table.header(
            rx.table.row(
                rx.table.column_header_cell(
                    rx.checkbox(
                        checked=EmployeeGrid.grid_selection_status == "all",
                        on_change=lambda checked: rx.cond(
                            checked,
                            EmployeeGrid.select_all_grid_rows,
                            EmployeeGrid.deselect_all_grid_rows,
                        ),
                    ),
                ),
                rx.foreach(EmployeeGrid.grid_columns, _header_cell),
            ),
        ),
        rx.table.body(
            rx.foreach(
                EmployeeGrid.grid_nodes,
                lambda node: rx.cond(node["type"] == "group", _group_row(node), _data_row(node)),
            ),
        ),
        width="100%",
    )


def index() -> rx.Component:
    return rx.box(
        rx.heading("Grid Engine -- Reflex Demo", size="6", margin_bottom="1em"),
        _toolbar(),
        rx.text(EmployeeGrid.grid_stats, size="2", color="var(--gray-9)", margin_bottom="0.5em"),
        rx.cond(EmployeeGrid.grid_loaded, _grid(), rx.spinner()),
        padding="2em",
        max_width="1200px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=EmployeeGrid.load)
