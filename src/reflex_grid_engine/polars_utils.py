"""Utilities for turning polars frames and data files into engine rows and columns."""

import time
from pathlib import Path
from typing import Any

import polars as pl

from reflex_grid_engine import log
from reflex_grid_engine.exceptions import FileFormatError
from reflex_grid_engine.models import Column

SUPPORTED_SUFFIXES: tuple[str, ...] = (
    ".parquet", ".pq", ".csv", ".tsv", ".json", ".ndjson", ".jsonl",
    ".ipc", ".arrow", ".feather",
)


def polars_dtype_to_grid_type(dtype: pl.DataType) -> str:
    """Map a polars DataType to the closest grid column type.

    Args:
        dtype: A polars data type.

    Returns:
        One of ``"string"``, ``"number"``, ``"boolean"``, ``"date"``,
        ``"dateTime"``.
    """
    if isinstance(dtype, pl.Boolean):
        return "boolean"
    if dtype.is_numeric():
        return "number"
    if isinstance(dtype, pl.Date):
        return "date"
    if isinstance(dtype, pl.Datetime):
        return "dateTime"
    # Everything else (String, Categorical, Enum, List, Struct, Duration, ...)
    return "string"


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case or raw field name to a human-friendly header.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"__row_id__"`` -> ``"Row Id"``
    """
    return field.strip("_").replace("_", " ").title()


def _is_categorical_dtype(dtype: pl.DataType) -> bool:
    """Return True if the dtype is explicitly categorical (Categorical or Enum)."""
    return isinstance(dtype, (pl.Categorical, pl.Enum))


def _detect_single_select(
    df: pl.DataFrame,
    col_name: str,
    dtype: pl.DataType,
    max_unique_abs: int,
) -> list[str] | None:
    """Return the sorted distinct values of *col_name* if it is low-cardinality text.

    Categorical and Enum columns always qualify; String columns qualify
    when they have at most *max_unique_abs* distinct values.
    """
    if _is_categorical_dtype(dtype):
        return df[col_name].cast(pl.String).unique().drop_nulls().sort().to_list()

    if not isinstance(dtype, pl.String) or df.height == 0:
        return None

    unique_vals: list[str] = df[col_name].unique().drop_nulls().sort().to_list()
    if len(unique_vals) <= max_unique_abs:
        return unique_vals
    return None


def _dataframe_to_dicts(df: pl.DataFrame, *, json_safe: bool = False) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of row dicts.

    Dates and datetimes stay native Python values unless *json_safe* is
    set, since the date filters and the sort compare them directly.  With
    *json_safe*, temporal columns become ISO-8601 strings.  List columns
    are always comma-joined and Struct columns cast to String.
    """
    temporal_cols: set[str] = set()
    list_cols: set[str] = set()
    struct_cols: set[str] = set()

    for name, dtype in df.schema.items():
        if isinstance(dtype, (pl.Date, pl.Datetime, pl.Time, pl.Duration)):
            if json_safe or isinstance(dtype, (pl.Time, pl.Duration)):
                temporal_cols.add(name)
        elif isinstance(dtype, (pl.List, pl.Array)):
            list_cols.add(name)
        elif isinstance(dtype, pl.Struct):
            struct_cols.add(name)

    if not (temporal_cols | list_cols | struct_cols):
        return df.to_dicts()

    exprs: list[pl.Expr] = []
    for c in df.columns:
        if c in list_cols:
            exprs.append(pl.col(c).cast(pl.List(pl.String)).list.join(","))
        elif c in temporal_cols or c in struct_cols:
            exprs.append(pl.col(c).cast(pl.String))
        else:
            exprs.append(pl.col(c))
    return df.select(exprs).to_dicts()


def build_columns_from_schema(
    schema: pl.Schema,
    *,
    value_options_map: dict[str, list[str]] | None = None,
    column_descriptions: dict[str, str] | None = None,
    id_field: str | None = None,
    show_id_field: bool = False,
    editable: bool = False,
) -> list[Column]:
    """Build engine columns from a polars Schema without collecting data.

    Args:
        schema: A polars ``Schema`` (e.g. ``lf.collect_schema()``).
        value_options_map: Pre-computed ``{column: values}``; those columns
            become ``singleSelect``.
        column_descriptions: Optional ``{column: description}`` mapping.
        id_field: Row identifier column, left out unless *show_id_field*.
        show_id_field: Whether to include the *id_field* column.
        editable: Mark every column editable.

    Returns:
        One :class:`Column` per schema entry.
    """
    value_options_map = value_options_map or {}
    column_descriptions = column_descriptions or {}

    columns: list[Column] = []
    for col_name, dtype in schema.items():
        if not show_id_field and col_name == id_field:
            continue

        grid_type = polars_dtype_to_grid_type(dtype)
        value_options = value_options_map.get(col_name)
        if value_options is not None or _is_categorical_dtype(dtype):
            grid_type = "singleSelect"

        columns.append(
            Column(
                field=col_name,
                header_name=_humanize_field_name(col_name),
                type=grid_type,  # type: ignore[arg-type]
                editable=editable,
                value_options=value_options,
                description=column_descriptions.get(col_name),
            )
        )
    return columns


def lazyframe_to_grid(
    lf: pl.LazyFrame | pl.DataFrame,
    *,
    id_field: str | None = None,
    show_id_field: bool = False,
    limit: int | None = None,
    single_select_threshold: int = 500,
    column_descriptions: dict[str, str] | None = None,
    json_safe: bool = False,
) -> tuple[list[dict[str, Any]], list[Column]]:
    """Collect a polars frame into engine rows and inferred columns.

    Args:
        lf: LazyFrame (or DataFrame) to convert.
        id_field: Column holding the unique row id.  If ``None`` and there
            is no unique ``"id"`` column, a ``"__row_id__"`` index column
            is added.
        show_id_field: Whether the id column gets a :class:`Column`.
        limit: Optional maximum number of rows to collect.
        single_select_threshold: String columns with at most this many
            distinct values become ``singleSelect``.  ``0`` disables it.
        column_descriptions: Optional ``{column: description}`` mapping.
        json_safe: Render temporal values as ISO strings.

    Returns:
        A ``(rows, columns)`` tuple.  Use the returned id field name with
        :func:`id_getter` when it is not ``"id"``.
    """
    if isinstance(lf, pl.DataFrame):
        lf = lf.lazy()
    if limit is not None:
        lf = lf.head(limit)

    t0 = time.perf_counter()
    df = lf.collect()

    effective_id_field = id_field
    if effective_id_field is None:
        if "id" in df.columns and df["id"].n_unique() == df.height:
            effective_id_field = "id"
        else:
            df = df.with_row_index("__row_id__")
            effective_id_field = "__row_id__"

    rows = _dataframe_to_dicts(df, json_safe=json_safe)

    value_options_map: dict[str, list[str]] = {}
    if single_select_threshold > 0:
        for col_name, dtype in df.schema.items():
            options = _detect_single_select(df, col_name, dtype, single_select_threshold)
            if options is not None:
                value_options_map[col_name] = options

    columns = build_columns_from_schema(
        df.schema,
        value_options_map=value_options_map,
        column_descriptions=column_descriptions,
        id_field=effective_id_field,
        show_id_field=show_id_field,
    )
    elapsed_ms = (time.perf_counter() - t0) * 1000
    log.debug(f"Collected {len(rows)} rows, {len(columns)} columns ({elapsed_ms:.1f}ms)")
    return rows, columns


def id_getter(id_field: str):
    """Return a ``get_row_id`` function reading *id_field* from dict rows."""

    def _get(row: dict[str, Any]) -> Any:
        return row.get(id_field)

    return _get


def resolve_id_field(rows: list[dict[str, Any]], id_field: str | None) -> str:
    """The id field :func:`lazyframe_to_grid` used for *rows*."""
    if id_field is not None:
        return id_field
    if rows and "__row_id__" in rows[0]:
        return "__row_id__"
    return "id"


# ---------------------------------------------------------------------------
# File scanner
# ---------------------------------------------------------------------------

def scan_file(path: Path | str) -> pl.LazyFrame:
    """Scan a data file into a LazyFrame, picking the reader from the extension.

    * ``.parquet`` / ``.pq`` -- ``pl.scan_parquet()``
    * ``.csv`` -- ``pl.scan_csv()``
    * ``.tsv`` -- ``pl.scan_csv(separator="\\t")``
    * ``.json`` -- ``pl.read_json().lazy()`` (no streaming scan)
    * ``.ndjson`` / ``.jsonl`` -- ``pl.scan_ndjson()``
    * ``.ipc`` / ``.arrow`` / ``.feather`` -- ``pl.scan_ipc()``

    Raises:
        FileNotFoundError: If *path* does not exist.
        FileFormatError: If the extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()

    if suffix in (".parquet", ".pq"):
        return pl.scan_parquet(path)
    if suffix == ".csv":
        return pl.scan_csv(path)
    if suffix == ".tsv":
        return pl.scan_csv(path, separator="\t")
    if suffix == ".json":
        return pl.read_json(path).lazy()
    if suffix in (".ndjson", ".jsonl"):
        return pl.scan_ndjson(path)
    if suffix in (".ipc", ".arrow", ".feather"):
        return pl.scan_ipc(path)

    raise FileFormatError(
        f"Unsupported file extension: {suffix!r}. Supported: {', '.join(SUPPORTED_SUFFIXES)}",
        suffix=suffix,
    )
