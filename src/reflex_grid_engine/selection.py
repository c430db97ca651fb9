"""Row selection state machine.

The grid-level status (all / some / none) is never stored: it is
derived on demand against the currently processed row ids, so a row that
is filtered out does not count towards "all selected".
"""

from typing import Iterable, Literal

from reflex_grid_engine.types import RowId, SelectionModel

SelectionStatus = Literal["all", "some", "none"]


class SelectionState:
    """Selected row ids plus the ``select_all`` flag."""

    def __init__(self, model: SelectionModel | None = None) -> None:
        self._model = model or SelectionModel()

    @property
    def model(self) -> SelectionModel:
        return self._model

    @property
    def selected_ids(self) -> set[RowId]:
        return self._model.selected_ids

    def set_model(self, model: SelectionModel) -> None:
        self._model = SelectionModel(set(model.selected_ids), model.select_all)

    def is_selected(self, row_id: RowId) -> bool:
        return row_id in self._model.selected_ids

    def select(self, row_id: RowId) -> None:
        self._model = SelectionModel(
            self._model.selected_ids | {row_id}, self._model.select_all
        )

    def deselect(self, row_id: RowId) -> None:
        """Remove *row_id*; any manual deselect clears ``select_all``."""
        self._model = SelectionModel(self._model.selected_ids - {row_id}, False)

    def toggle(self, row_id: RowId) -> None:
        if self.is_selected(row_id):
            self.deselect(row_id)
        else:
            self.select(row_id)

    def select_all(self, processed_ids: Iterable[RowId]) -> None:
        """Select exactly *processed_ids* and set the ``select_all`` flag."""
        self._model = SelectionModel(set(processed_ids), True)

    def deselect_all(self) -> None:
        self._model = SelectionModel()

    def status(self, processed_ids: Iterable[RowId]) -> SelectionStatus:
        """Derive the grid status against the processed row ids.

        Returns:
            ``"all"`` when every processed row is selected (and there is at
            least one), ``"some"`` when at least one is, else ``"none"``.
        """
        ids = list(processed_ids)
        selected = self._model.selected_ids
        hits = sum(1 for row_id in ids if row_id in selected)
        if ids and hits == len(ids):
            return "all"
        if hits:
            return "some"
        return "none"
