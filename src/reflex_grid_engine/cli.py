"""CLI for reflex-grid-engine -- run the grid pipeline over a data file.

Usage::

    # Print a CSV / TSV / Parquet file as the grid would show it
    reflex-grid-engine view employees.csv

    # Group by department with salary totals, sorted by salary descending
    reflex-grid-engine view employees.csv --group-by department \\
        --agg salary:sum --agg salary:avg --sort salary:desc

    # Structured filters (AND by default, --any for OR) and a quick filter
    reflex-grid-engine view employees.csv --filter "salary gt 80000" --quick eng

    # Distinct values for an advanced value filter
    reflex-grid-engine values employees.csv department
"""

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from reflex_grid_engine import log
from reflex_grid_engine.config import get_settings
from reflex_grid_engine.exceptions import FileFormatError
from reflex_grid_engine.filtering import VALUELESS_OPERATORS
from reflex_grid_engine.grouping import group_label
from reflex_grid_engine.polars_utils import id_getter, lazyframe_to_grid, resolve_id_field, scan_file
from reflex_grid_engine.state import serialize_node
from reflex_grid_engine.store import GridStore
from reflex_grid_engine.types import AGGREGATION_TYPES, GroupNode, RowNode

app = typer.Typer(
    name="reflex-grid-engine",
    help="Filter, sort, group and aggregate tabular data files.",
    no_args_is_help=True,
)


@app.callback()
def _configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    if verbose:
        log.enable_debug()
    else:
        log.set_level(get_settings().log_level)


# ---------------------------------------------------------------------------
# Option parsing
# ---------------------------------------------------------------------------

def _parse_sort(specs: list[str]) -> list[dict[str, str]]:
    """``"field"`` or ``"field:asc|desc"`` -> sort model entries."""
    model: list[dict[str, str]] = []
    for spec in specs:
        field, _, direction = spec.partition(":")
        direction = direction.lower() or "asc"
        if direction not in ("asc", "desc"):
            raise typer.BadParameter(f"Bad sort direction in {spec!r}", param_hint="--sort")
        model.append({"field": field, "direction": direction})
    return model


def _parse_filter(spec: str) -> dict[str, Any]:
    """``"field operator value"`` -> filter item (the value may contain spaces)."""
    parts = spec.split(maxsplit=2)
    if len(parts) == 2 and parts[1] in VALUELESS_OPERATORS:
        return {"field": parts[0], "operator": parts[1]}
    if len(parts) != 3:
        raise typer.BadParameter(
            f"Expected 'field operator value', got {spec!r}", param_hint="--filter"
        )
    return {"field": parts[0], "operator": parts[1], "value": parts[2]}


def _parse_aggregations(specs: list[str]) -> dict[str, list[str]]:
    """``"field:type"`` -> aggregation model."""
    model: dict[str, list[str]] = {}
    for spec in specs:
        field, _, agg_type = spec.partition(":")
        if agg_type not in AGGREGATION_TYPES:
            raise typer.BadParameter(
                f"Unknown aggregation in {spec!r}; use one of {', '.join(AGGREGATION_TYPES)}",
                param_hint="--agg",
            )
        model.setdefault(field, []).append(agg_type)
    return model


def _load_store(file: Path, limit: int | None, id_field: str | None) -> GridStore:
    try:
        lf = scan_file(file)
    except (FileNotFoundError, FileFormatError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    rows, columns = lazyframe_to_grid(lf, id_field=id_field, limit=limit)
    return GridStore(rows, columns, id_getter(resolve_id_field(rows, id_field)))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _format_number(value: float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:.2f}"
    return str(int(value))


def _render_node(store: GridStore, node: GroupNode | RowNode) -> str:
    indent = "  " * node.depth
    if isinstance(node, GroupNode):
        marker = "v" if node.is_expanded else ">"
        line = f"{indent}{marker} {node.field}: {group_label(node.value)} ({node.child_count})"
        aggs = [
            f"{field} {agg}={_format_number(value)}"
            for field, values in node.aggregations.items()
            for agg, value in values.items()
        ]
        if aggs:
            line += "  [" + ", ".join(aggs) + "]"
        return line
    return indent + " | ".join(c.format_value(node.row) for c in store.visible_columns())


@app.command()
def view(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, NDJSON, IPC)")],
    group_by: Annotated[Optional[list[str]], typer.Option("--group-by", "-g", help="Grouping field (repeatable, outermost first)")] = None,
    sort: Annotated[Optional[list[str]], typer.Option("--sort", "-s", help="Sort key 'field[:asc|desc]' (repeatable)")] = None,
    filters: Annotated[Optional[list[str]], typer.Option("--filter", "-f", help="Filter 'field operator value' (repeatable)")] = None,
    any_filter: Annotated[bool, typer.Option("--any", help="Rows need to pass any filter instead of all")] = False,
    quick: Annotated[Optional[str], typer.Option("--quick", "-q", help="Quick filter text matched against every field")] = None,
    agg: Annotated[Optional[list[str]], typer.Option("--agg", "-a", help="Group aggregation 'field:type' (repeatable)")] = None,
    collapse: Annotated[bool, typer.Option("--collapse", help="Collapse every group")] = False,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Maximum number of rows to load")] = None,
    id_field: Annotated[Optional[str], typer.Option("--id-field", help="Column holding the unique row id")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the flattened nodes as JSON")] = False,
) -> None:
    """Print the flattened grid view of a data file."""
    store = _load_store(file, limit, id_field)

    items = [_parse_filter(spec) for spec in filters or []]
    if items or quick:
        store.set_filter_model({
            "items": items,
            "quickFilter": quick or "",
            "linkOperator": "or" if any_filter else "and",
        })
    if sort:
        store.set_sort_model(_parse_sort(sort))
    if agg:
        store.set_aggregation_model(_parse_aggregations(agg))
    if group_by:
        store.set_grouping_model(group_by)
        if collapse:
            store.collapse_all_groups()

    if as_json:
        nodes = [serialize_node(node, store.columns) for node in store.flattened_nodes]
        typer.echo(json.dumps(nodes, indent=2))
        return

    for node in store.flattened_nodes:
        typer.echo(_render_node(store, node))
    typer.echo(f"{store.processed_row_count} of {store.total_row_count} rows")


@app.command()
def values(
    file: Annotated[Path, typer.Argument(help="Path to the data file")],
    field: Annotated[str, typer.Argument(help="Field to list the distinct values of")],
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Maximum number of rows to load")] = None,
) -> None:
    """List the distinct value keys of FIELD (empty values show as __empty__)."""
    store = _load_store(file, limit, None)
    for key in store.value_options(field):
        typer.echo(key)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
