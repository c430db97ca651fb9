"""Tests for the selection state machine."""

from reflex_grid_engine.selection import SelectionState
from reflex_grid_engine.types import SelectionModel


class TestSelectionState:
    def test_select_toggle_deselect(self) -> None:
        state = SelectionState()
        state.select(1)
        state.toggle(2)
        assert state.selected_ids == {1, 2}
        state.toggle(1)
        assert state.selected_ids == {2}
        state.deselect(2)
        assert state.selected_ids == set()

    def test_select_all_uses_given_ids_and_sets_flag(self) -> None:
        state = SelectionState()
        state.select_all([1, 3])
        assert state.model == SelectionModel({1, 3}, True)

    def test_manual_deselect_clears_select_all(self) -> None:
        state = SelectionState()
        state.select_all([1, 2, 3])
        state.deselect(2)
        assert state.model.select_all is False
        assert state.selected_ids == {1, 3}

    def test_status_is_derived_from_processed_ids(self) -> None:
        state = SelectionState()
        assert state.status([1, 2]) == "none"
        state.select(1)
        assert state.status([1, 2]) == "some"
        assert state.status([1]) == "all"
        assert state.status([2]) == "none"
        assert state.status([]) == "none"

    def test_set_model_copies(self) -> None:
        ids = {1}
        state = SelectionState()
        state.set_model(SelectionModel(ids))
        ids.add(2)
        assert state.selected_ids == {1}
