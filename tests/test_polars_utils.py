"""Tests for polars ingestion helpers."""

from datetime import date

import polars as pl
import pytest

from reflex_grid_engine.exceptions import FileFormatError
from reflex_grid_engine.polars_utils import (
    _humanize_field_name,
    build_columns_from_schema,
    id_getter,
    lazyframe_to_grid,
    polars_dtype_to_grid_type,
    resolve_id_field,
    scan_file,
)
from reflex_grid_engine.store import GridStore


@pytest.fixture
def frame(employees) -> pl.DataFrame:
    return pl.DataFrame(employees)


class TestDtypeMapping:
    @pytest.mark.parametrize(
        ("dtype", "expected"),
        [
            (pl.Int64(), "number"),
            (pl.Float32(), "number"),
            (pl.Boolean(), "boolean"),
            (pl.Date(), "date"),
            (pl.Datetime(), "dateTime"),
            (pl.String(), "string"),
        ],
    )
    def test_mapping(self, dtype, expected) -> None:
        assert polars_dtype_to_grid_type(dtype) == expected

    def test_humanize(self) -> None:
        assert _humanize_field_name("first_name") == "First Name"
        assert _humanize_field_name("__row_id__") == "Row Id"


class TestLazyframeToGrid:
    def test_rows_and_columns(self, frame) -> None:
        rows, columns = lazyframe_to_grid(frame.lazy())
        assert rows[0]["name"] == "Alice Johnson"
        assert [c.field for c in columns] == ["name", "department", "salary", "active"]
        by_field = {c.field: c for c in columns}
        assert by_field["salary"].type == "number"
        assert by_field["active"].type == "boolean"
        assert by_field["department"].type == "singleSelect"
        assert by_field["department"].value_options == ["Engineering", "Marketing", "Sales"]
        assert by_field["name"].header_name == "Name"

    def test_row_index_added_without_unique_id(self) -> None:
        rows, columns = lazyframe_to_grid(pl.DataFrame({"v": [1, 1]}))
        assert [r["__row_id__"] for r in rows] == [0, 1]
        assert resolve_id_field(rows, None) == "__row_id__"
        assert [c.field for c in columns] == ["v"]

    def test_limit(self, frame) -> None:
        rows, _ = lazyframe_to_grid(frame, limit=2)
        assert len(rows) == 2

    def test_dates_stay_native_unless_json_safe(self) -> None:
        df = pl.DataFrame({"id": [1], "hired": [date(2024, 1, 2)]})
        rows, _ = lazyframe_to_grid(df)
        assert rows[0]["hired"] == date(2024, 1, 2)
        rows, _ = lazyframe_to_grid(df, json_safe=True)
        assert rows[0]["hired"] == "2024-01-02"

    def test_feeds_a_store(self, frame) -> None:
        rows, columns = lazyframe_to_grid(frame)
        store = GridStore(rows, columns, id_getter(resolve_id_field(rows, None)))
        store.set_grouping_model(["department"])
        store.set_aggregation_model({"salary": ["sum"]})
        assert store.group_node("department:Engineering").aggregations == {"salary": {"sum": 180000}}

    def test_schema_columns(self, frame) -> None:
        columns = build_columns_from_schema(
            frame.schema,
            value_options_map={"department": ["Engineering"]},
            column_descriptions={"salary": "Yearly"},
            id_field="id",
        )
        by_field = {c.field: c for c in columns}
        assert "id" not in by_field
        assert by_field["department"].type == "singleSelect"
        assert by_field["salary"].description == "Yearly"


class TestScanFile:
    def test_csv_and_tsv(self, frame, tmp_path) -> None:
        csv_path = tmp_path / "people.csv"
        frame.write_csv(csv_path)
        assert scan_file(csv_path).collect().height == 5

        tsv_path = tmp_path / "people.tsv"
        frame.write_csv(tsv_path, separator="\t")
        assert scan_file(tsv_path).collect().columns == frame.columns

    def test_parquet(self, frame, tmp_path) -> None:
        path = tmp_path / "people.parquet"
        frame.write_parquet(path)
        assert scan_file(path).collect().equals(frame)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            scan_file(tmp_path / "nope.csv")

    def test_unsupported_extension(self, tmp_path) -> None:
        path = tmp_path / "people.xlsx"
        path.write_text("x")
        with pytest.raises(FileFormatError):
            scan_file(path)
