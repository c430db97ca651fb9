"""The row index: source rows plus an identity-keyed lookup map.

Rows are opaque records.  The engine only touches them through the
helpers in this module, which understand mappings (dicts), dataclasses,
pydantic models and plain attribute objects.
"""

import copy
import dataclasses
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping

from pydantic import BaseModel

from reflex_grid_engine.types import RowId

GetRowId = Callable[[Any], RowId]


# ---------------------------------------------------------------------------
# Row record helpers
# ---------------------------------------------------------------------------

def read_field(row: Any, field_name: str) -> Any:
    """Read *field_name* from *row*; missing fields read as ``None``."""
    if isinstance(row, Mapping):
        return row.get(field_name)
    return getattr(row, field_name, None)


def row_fields(row: Any) -> dict[str, Any]:
    """Return the row's own fields as a plain dict."""
    if isinstance(row, Mapping):
        return dict(row)
    if dataclasses.is_dataclass(row) and not isinstance(row, type):
        return {f.name: getattr(row, f.name) for f in dataclasses.fields(row)}
    if isinstance(row, BaseModel):
        return dict(row)
    if hasattr(row, "__dict__"):
        return {k: v for k, v in vars(row).items() if not k.startswith("_")}
    return {}


def merge_row(row: Any, updates: Any) -> Any:
    """Return a shallow copy of *row* with *updates* applied.

    *updates* may be a mapping of field values or another row record.
    The original row is never mutated.
    """
    changes = dict(updates) if isinstance(updates, Mapping) else row_fields(updates)
    if isinstance(row, Mapping):
        return {**row, **changes}
    if dataclasses.is_dataclass(row) and not isinstance(row, type):
        names = {f.name for f in dataclasses.fields(row) if f.init}
        return dataclasses.replace(row, **{k: v for k, v in changes.items() if k in names})
    if isinstance(row, BaseModel):
        return row.model_copy(update=changes)
    new_row = copy.copy(row)
    for key, value in changes.items():
        setattr(new_row, key, value)
    return new_row


def default_get_row_id(row: Any) -> RowId:
    """Identity function used when the caller supplies none: the ``id`` field."""
    return read_field(row, "id")


# ---------------------------------------------------------------------------
# RowIndex
# ---------------------------------------------------------------------------

class RowIndex:
    """Authoritative row collection kept in lockstep with ``rows_by_id``.

    Every mutation builds the new sequence and the new map first and
    swaps both in together, so readers never observe them disagreeing.
    The sequence returned by :attr:`rows` is replaced, never mutated in
    place, and must be treated as read-only.

    Row ids must be unique; a duplicate id silently overwrites the
    earlier row in the lookup map.
    """

    def __init__(
        self,
        rows: Iterable[Any] | None = None,
        get_row_id: GetRowId | None = None,
    ) -> None:
        self._get_row_id: GetRowId = get_row_id or default_get_row_id
        self._rows: list[Any] = []
        self._rows_by_id: dict[RowId, Any] = {}
        self._version = 0
        if rows is not None:
            self.set_rows(rows)

    # -- accessors --

    @property
    def get_row_id(self) -> GetRowId:
        return self._get_row_id

    @get_row_id.setter
    def get_row_id(self, func: GetRowId) -> None:
        self._get_row_id = func
        self._commit(self._rows)

    @property
    def rows(self) -> list[Any]:
        return self._rows

    @property
    def rows_by_id(self) -> Mapping[RowId, Any]:
        return MappingProxyType(self._rows_by_id)

    @property
    def version(self) -> int:
        """Counter bumped on every mutation."""
        return self._version

    def get_row(self, row_id: RowId) -> Any:
        return self._rows_by_id.get(row_id)

    def has_row(self, row_id: RowId) -> bool:
        return row_id in self._rows_by_id

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._rows_by_id

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._rows)

    # -- mutations --

    def set_rows(self, rows: Iterable[Any]) -> None:
        self._commit(list(rows))

    def update_row(self, row_id: RowId, updates: Any) -> bool:
        """Shallow-merge *updates* into the row with *row_id*.

        Returns:
            ``False`` (and changes nothing) when no such row exists.
        """
        if row_id not in self._rows_by_id:
            return False
        get_id = self._get_row_id
        self._commit([merge_row(r, updates) if get_id(r) == row_id else r for r in self._rows])
        return True

    def replace_row(self, row_id: RowId, new_row: Any) -> bool:
        """Replace the row with *row_id* by *new_row*, keeping its position."""
        if row_id not in self._rows_by_id:
            return False
        get_id = self._get_row_id
        self._commit([new_row if get_id(r) == row_id else r for r in self._rows])
        return True

    def add_row(self, row: Any) -> None:
        self._commit([*self._rows, row])

    def remove_row(self, row_id: RowId) -> bool:
        if row_id not in self._rows_by_id:
            return False
        get_id = self._get_row_id
        self._commit([r for r in self._rows if get_id(r) != row_id])
        return True

    def _commit(self, rows: list[Any]) -> None:
        get_id = self._get_row_id
        rows_by_id = {get_id(row): row for row in rows}
        self._rows, self._rows_by_id = rows, rows_by_id
        self._version += 1
