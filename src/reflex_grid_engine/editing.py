"""Cell editing state machine.

Transitions::

    pristine -> editing                 start
    editing  -> pristine                commit (local) / cancel
    editing  -> saving -> pristine      save succeeded
    editing  -> saving -> error         validation failed / save rejected
    error    -> editing                 update (retry)
    editing  -> conflict -> editing     pending push event resolved "local"

The row index is only written when an edit is committed or a save
succeeds, so cancelling never needs a rollback.
"""

import inspect
from typing import Any, Awaitable, Callable, Iterator, Mapping, Union

from reflex_grid_engine import log
from reflex_grid_engine.exceptions import IllegalTransitionError
from reflex_grid_engine.models import Column, find_column
from reflex_grid_engine.row_index import RowIndex
from reflex_grid_engine.types import CellState, EditingCell, RowId, cell_key

ProcessRowUpdate = Callable[[Any, Any], Union[Any, Awaitable[Any]]]
ProcessRowUpdateError = Callable[[BaseException, dict[str, Any]], None]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class CellEditor:
    """Open edit sessions for one grid, keyed by ``"{row_id}:{field}"``.

    Args:
        row_index: Row index that commits are written to.
        get_columns: Returns the currently declared columns.
        on_change: Called after every commit that wrote the row index.
    """

    def __init__(
        self,
        row_index: RowIndex,
        get_columns: Callable[[], list[Column]],
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._row_index = row_index
        self._get_columns = get_columns
        self._on_change = on_change
        self._cells: dict[str, EditingCell] = {}

    # -- lookups --

    @property
    def cells(self) -> Mapping[str, EditingCell]:
        return self._cells

    def get(self, row_id: RowId, field: str) -> EditingCell | None:
        return self._cells.get(cell_key(row_id, field))

    def is_editing(self, row_id: RowId, field: str) -> bool:
        return cell_key(row_id, field) in self._cells

    def cells_for_row(self, row_id: RowId) -> list[EditingCell]:
        return [cell for cell in self._cells.values() if cell.row_id == row_id]

    def fields_for_row(self, row_id: RowId) -> set[str]:
        return {cell.field for cell in self.cells_for_row(row_id)}

    def __iter__(self) -> Iterator[EditingCell]:
        return iter(list(self._cells.values()))

    def __len__(self) -> int:
        return len(self._cells)

    # -- transitions --

    def start(self, row_id: RowId, field: str) -> EditingCell | None:
        """Open an edit session, snapshotting the current value.

        Starting over an open (non-saving) session re-snapshots it.

        Returns:
            The new editing cell, or ``None`` when the row is missing, the
            column is undeclared or the cell is not editable.

        Raises:
            IllegalTransitionError: If the cell is currently being saved.
        """
        existing = self.get(row_id, field)
        if existing is not None and existing.state == CellState.SAVING:
            raise IllegalTransitionError(
                "Cannot start editing a cell while it is being saved",
                row_id=row_id,
                field=field,
            )

        row = self._row_index.get_row(row_id)
        if row is None:
            log.debug(f"start_cell_edit ignored: no row {row_id!r}")
            return None
        column = find_column(self._get_columns(), field)
        if column is None:
            log.debug(f"start_cell_edit ignored: undeclared column {field!r}")
            return None
        if not column.is_editable(row):
            log.debug(f"start_cell_edit ignored: {row_id!r}:{field} is not editable")
            return None

        value = column.get_value(row)
        cell = EditingCell(row_id=row_id, field=field, value=value, original_value=value)
        self._cells[cell.key] = cell
        return cell

    def update(self, row_id: RowId, field: str, value: Any) -> bool:
        """Set the pending value of an open session.

        Updating a cell in ``error`` is the retry transition: it returns to
        ``editing`` and the error is cleared.  Cells being saved are left
        alone.
        """
        cell = self.get(row_id, field)
        if cell is None:
            return False
        if cell.state == CellState.SAVING:
            log.debug(f"update_cell_value ignored: {cell.key} is saving")
            return False
        cell.value = value
        if cell.state == CellState.ERROR:
            cell.state = CellState.EDITING
            cell.error = None
        return True

    def set_state(
        self,
        row_id: RowId,
        field: str,
        state: CellState,
        error: str | None = None,
    ) -> bool:
        cell = self.get(row_id, field)
        if cell is None:
            return False
        cell.state = CellState(state)
        cell.error = error
        return True

    def cancel(self, row_id: RowId, field: str) -> bool:
        return self._cells.pop(cell_key(row_id, field), None) is not None

    def cancel_row(self, row_id: RowId) -> list[EditingCell]:
        """Close every session on *row_id* and return them."""
        removed = self.cells_for_row(row_id)
        for cell in removed:
            del self._cells[cell.key]
        return removed

    def clear(self) -> None:
        self._cells.clear()

    def _resolve(self, row_id: RowId, field: str) -> tuple[EditingCell, Any, Column] | None:
        cell = self.get(row_id, field)
        if cell is None:
            return None
        row = self._row_index.get_row(row_id)
        column = find_column(self._get_columns(), field)
        if row is None or column is None:
            log.debug(f"Edit on {cell.key} dropped: row or column no longer exists")
            del self._cells[cell.key]
            return None
        return cell, row, column

    def _write(self, row_id: RowId, new_row: Any) -> None:
        self._row_index.replace_row(row_id, new_row)
        if self._on_change is not None:
            self._on_change()

    def commit(self, row_id: RowId, field: str) -> Any:
        """Write the pending value through the column setter and close the session.

        Returns:
            The new row, or ``None`` if there was nothing to commit.
        """
        resolved = self._resolve(row_id, field)
        if resolved is None:
            return None
        cell, row, column = resolved
        if cell.state == CellState.SAVING:
            log.debug(f"commit_cell_edit ignored: {cell.key} is saving")
            return None
        new_row = column.set_value(row, cell.value)
        del self._cells[cell.key]
        self._write(row_id, new_row)
        return new_row

    async def save(
        self,
        row_id: RowId,
        field: str,
        process_row_update: ProcessRowUpdate | None = None,
        on_error: ProcessRowUpdateError | None = None,
    ) -> Any:
        """Validate and persist an edit through *process_row_update*.

        The cell moves to ``saving``, the column validator runs (if any),
        then ``process_row_update(new_row, old_row)`` is called and awaited
        when it returns an awaitable.  The row it returns, not the locally
        built one, is written to the row index.

        Validation failures and rejected saves put the cell in ``error``
        and leave the row index untouched; rejections are also reported
        through *on_error*.  If the session is cancelled while the save is
        in flight, the confirmed row is returned but not written.

        Returns:
            The saved row, or ``None`` when nothing was saved.
        """
        resolved = self._resolve(row_id, field)
        if resolved is None:
            return None
        cell, row, column = resolved
        if cell.state == CellState.SAVING:
            raise IllegalTransitionError(
                "Cell is already being saved", row_id=row_id, field=field
            )

        cell.state = CellState.SAVING
        cell.error = None
        new_row = column.set_value(row, cell.value)

        if column.validate is not None:
            try:
                message = await _maybe_await(column.validate(cell.value, new_row))
            except Exception as exc:
                if self._cells.get(cell.key) is cell:
                    cell.state = CellState.ERROR
                    cell.error = str(exc)
                log.warn(f"Validator for {cell.key} raised: {exc}")
                return None
            if self._cells.get(cell.key) is not cell:
                return None
            if message is not None:
                cell.state = CellState.ERROR
                cell.error = str(message)
                log.warn(f"Validation failed for {cell.key}: {message}")
                return None

        if process_row_update is None:
            saved = new_row
        else:
            try:
                saved = await _maybe_await(process_row_update(new_row, row))
            except Exception as exc:
                if self._cells.get(cell.key) is cell:
                    cell.state = CellState.ERROR
                    cell.error = str(exc)
                log.warn(f"Saving {cell.key} failed: {exc}")
                if on_error is not None:
                    on_error(exc, {"row_id": row_id, "field": field})
                return None
            if saved is None:
                if self._cells.get(cell.key) is cell:
                    cell.state = CellState.ERROR
                    cell.error = "Save returned no row"
                log.warn(f"Saving {cell.key} returned no row")
                return None

        if self._cells.get(cell.key) is not cell:
            log.debug(f"Save of {cell.key} finished after the edit was discarded")
            return saved
        del self._cells[cell.key]
        self._write(row_id, saved)
        return saved
