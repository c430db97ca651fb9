"""Sort stage: multi-key typed comparison with nulls always last."""

import functools
import locale
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from reflex_grid_engine.models import Column, find_column
from reflex_grid_engine.types import SortDirection


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _locale_compare(a: str, b: str) -> int:
    """Collation-aware string comparison, case-insensitive first."""
    result = locale.strcoll(a.casefold(), b.casefold())
    if result == 0:
        result = locale.strcoll(a, b)
    return _sign(result)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare_values(a: Any, b: Any) -> int:
    """Ascending comparison of two non-null cell values.

    Strings collate, numbers and dates compare by magnitude, anything
    else (including mixed types) compares by its string form.
    """
    if isinstance(a, str) and isinstance(b, str):
        return _locale_compare(a, b)
    if _is_number(a) and _is_number(b):
        return _sign(a - b)
    if isinstance(a, datetime) and isinstance(b, datetime):
        return _sign(a.timestamp() - b.timestamp())
    if type(a) is date and type(b) is date:
        return _sign((a - b).days)
    return _locale_compare(str(a), str(b))


def _sort_direction(entry: Mapping[str, Any]) -> str:
    # "sort" is the MUI spelling of the direction key.
    return entry.get("direction") or entry.get("sort") or "asc"


def apply_sort(
    rows: Iterable[Any],
    sort_model: list[Mapping[str, Any]],
    columns: list[Column],
) -> list[Any]:
    """Sort *rows* by *sort_model*, returning a new list.

    Keys are tried in order and the first non-zero comparison wins.
    ``None`` sorts last regardless of direction.  Keys naming a field
    with no declared column are skipped.  The sort is stable.

    Args:
        rows: Rows to sort (left untouched).
        sort_model: ``[{"field": ..., "direction": "asc" | "desc"}, ...]``.
        columns: Declared columns; values resolve through their getters.

    Returns:
        The sorted rows, or a plain copy when the model is empty.
    """
    rows = list(rows)
    keys: list[tuple[Column, bool]] = []
    for entry in sort_model:
        column = find_column(columns, entry.get("field", ""))
        if column is None:
            continue
        keys.append((column, _sort_direction(entry) == "desc"))
    if not keys:
        return rows

    def _compare(a: Any, b: Any) -> int:
        for column, descending in keys:
            a_value = column.get_value(a)
            b_value = column.get_value(b)
            if a_value is None and b_value is None:
                continue
            if a_value is None:
                return 1
            if b_value is None:
                return -1
            result = compare_values(a_value, b_value)
            if result != 0:
                return -result if descending else result
        return 0

    return sorted(rows, key=functools.cmp_to_key(_compare))


def toggle_sort_model(
    sort_model: list[Mapping[str, Any]],
    field: str,
    *,
    multi: bool = False,
) -> list[dict[str, Any]]:
    """Advance *field* through none -> asc -> desc -> none.

    By default the result sorts by *field* alone.  With ``multi=True``
    the other keys are kept and *field* is cycled in place (appended
    when new, removed after ``desc``).
    """
    current: SortDirection | None = None
    for entry in sort_model:
        if entry.get("field") == field:
            current = _sort_direction(entry)  # type: ignore[assignment]
            break

    if current is None:
        next_direction: str | None = "asc"
    elif current == "asc":
        next_direction = "desc"
    else:
        next_direction = None

    if not multi:
        return [] if next_direction is None else [{"field": field, "direction": next_direction}]

    result: list[dict[str, Any]] = []
    for entry in sort_model:
        if entry.get("field") != field:
            result.append({"field": entry.get("field"), "direction": _sort_direction(entry)})
        elif next_direction is not None:
            result.append({"field": field, "direction": next_direction})
    if current is None:
        result.append({"field": field, "direction": "asc"})
    return result
