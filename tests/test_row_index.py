"""Tests for the row index and the row record helpers."""

import dataclasses

from pydantic import BaseModel

from reflex_grid_engine.row_index import RowIndex, merge_row, read_field, row_fields


@dataclasses.dataclass
class Person:
    id: int
    name: str


class PersonModel(BaseModel):
    id: int
    name: str


class Plain:
    def __init__(self, id: int, name: str) -> None:
        self.id = id
        self.name = name
        self._secret = "hidden"


class TestRowHelpers:
    """Field access works the same for every supported row flavour."""

    def test_read_field_on_mapping_and_object(self) -> None:
        assert read_field({"name": "a"}, "name") == "a"
        assert read_field({"name": "a"}, "missing") is None
        assert read_field(Person(1, "a"), "name") == "a"
        assert read_field(Person(1, "a"), "missing") is None

    def test_row_fields(self) -> None:
        assert row_fields(Person(1, "a")) == {"id": 1, "name": "a"}
        assert row_fields(PersonModel(id=1, name="a")) == {"id": 1, "name": "a"}
        assert row_fields(Plain(1, "a")) == {"id": 1, "name": "a"}

    def test_merge_row_never_mutates(self) -> None:
        row = {"id": 1, "name": "a", "extra": True}
        merged = merge_row(row, {"name": "b"})
        assert merged == {"id": 1, "name": "b", "extra": True}
        assert row["name"] == "a"

    def test_merge_row_dataclass_and_model(self) -> None:
        person = Person(1, "a")
        assert merge_row(person, {"name": "b"}) == Person(1, "b")
        assert person.name == "a"

        model = PersonModel(id=1, name="a")
        assert merge_row(model, {"name": "b"}).name == "b"
        assert model.name == "a"

    def test_merge_row_plain_object(self) -> None:
        plain = Plain(1, "a")
        merged = merge_row(plain, {"name": "b"})
        assert merged.name == "b"
        assert plain.name == "a"


class TestRowIndex:
    """The sequence and the lookup map always agree."""

    def test_lookup(self, employees) -> None:
        index = RowIndex(employees)
        assert len(index) == 5
        assert index.get_row(3)["name"] == "Carol Williams"
        assert 3 in index
        assert index.has_row(99) is False
        assert index.get_row(99) is None

    def test_update_row_merges_and_keeps_position(self, employees) -> None:
        index = RowIndex(employees)
        assert index.update_row(2, {"salary": 1}) is True
        assert index.rows[1] == {**employees[1], "salary": 1}
        assert index.rows_by_id[2]["salary"] == 1

    def test_update_missing_row_is_noop(self, employees) -> None:
        index = RowIndex(employees)
        version = index.version
        assert index.update_row(99, {"salary": 1}) is False
        assert index.version == version

    def test_remove_and_add(self, employees) -> None:
        index = RowIndex(employees)
        assert index.remove_row(1) is True
        assert len(index) == 4
        assert not index.has_row(1)
        index.add_row({"id": 6, "name": "Frank"})
        assert index.rows[-1]["id"] == 6
        assert index.rows_by_id[6]["name"] == "Frank"

    def test_replace_row(self, employees) -> None:
        index = RowIndex(employees)
        assert index.replace_row(1, {"id": 1, "name": "Replaced"})
        assert index.get_row(1) == {"id": 1, "name": "Replaced"}
        assert index.rows[0] is index.get_row(1)

    def test_rows_are_replaced_not_mutated(self, employees) -> None:
        index = RowIndex(employees)
        before = index.rows
        index.remove_row(1)
        assert len(before) == 5
        assert index.rows is not before

    def test_custom_identity(self) -> None:
        index = RowIndex([{"key": "a"}, {"key": "b"}], get_row_id=lambda r: r["key"])
        assert index.get_row("b") == {"key": "b"}
        index.get_row_id = lambda r: r["key"].upper()
        assert index.get_row("B") == {"key": "b"}
