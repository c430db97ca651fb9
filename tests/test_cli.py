"""Tests for the command line interface."""

import json

import polars as pl
import pytest
import typer
from typer.testing import CliRunner

from reflex_grid_engine.cli import _parse_aggregations, _parse_filter, _parse_sort, app

from .conftest import make_employees

runner = CliRunner()


@pytest.fixture
def employees_csv(tmp_path):
    path = tmp_path / "employees.csv"
    pl.DataFrame(make_employees()).write_csv(path)
    return path


class TestOptionParsing:
    def test_sort(self) -> None:
        assert _parse_sort(["salary:desc", "name"]) == [
            {"field": "salary", "direction": "desc"},
            {"field": "name", "direction": "asc"},
        ]

    def test_filter_keeps_spaces_in_value(self) -> None:
        assert _parse_filter("name contains Alice J") == {
            "field": "name", "operator": "contains", "value": "Alice J",
        }
        assert _parse_filter("name isEmpty") == {"field": "name", "operator": "isEmpty"}

    def test_aggregations(self) -> None:
        assert _parse_aggregations(["salary:sum", "salary:avg"]) == {"salary": ["sum", "avg"]}

    @pytest.mark.parametrize(
        ("parser", "arg"),
        [
            (_parse_sort, ["salary:up"]),
            (_parse_aggregations, ["salary:median"]),
            (_parse_filter, "salary"),
        ],
    )
    def test_bad_values(self, parser, arg) -> None:
        with pytest.raises(typer.BadParameter):
            parser(arg)


class TestView:
    def test_plain_view(self, employees_csv) -> None:
        result = runner.invoke(app, ["view", str(employees_csv)])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("Alice Johnson | Engineering | 95000")
        assert lines[-1] == "5 of 5 rows"

    def test_filter_and_sort(self, employees_csv) -> None:
        result = runner.invoke(
            app, ["view", str(employees_csv), "-f", "salary gt 80000", "-s", "salary"]
        )
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("Bob Smith")
        assert lines[1].startswith("Alice Johnson")
        assert lines[-1] == "2 of 5 rows"

    def test_group_with_aggregation(self, employees_csv) -> None:
        result = runner.invoke(
            app, ["view", str(employees_csv), "-g", "department", "-a", "salary:sum"]
        )
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "v department: Engineering (2)  [salary sum=180000]"
        assert lines[1].startswith("  Alice Johnson")

    def test_collapsed_groups(self, employees_csv) -> None:
        result = runner.invoke(app, ["view", str(employees_csv), "-g", "department", "--collapse"])
        assert result.exit_code == 0
        assert result.output.splitlines()[:3] == [
            "> department: Engineering (2)",
            "> department: Marketing (2)",
            "> department: Sales (1)",
        ]

    def test_json_output(self, employees_csv) -> None:
        result = runner.invoke(app, ["view", str(employees_csv), "-q", "eve", "--json"])
        assert result.exit_code == 0
        nodes = json.loads(result.output)
        assert len(nodes) == 1
        assert nodes[0]["type"] == "row"
        assert nodes[0]["row"]["name"] == "Eve Davis"
        assert nodes[0]["cells"]["salary"] == "80000"

    def test_unsupported_file(self, tmp_path) -> None:
        path = tmp_path / "data.xlsx"
        path.write_text("nope")
        result = runner.invoke(app, ["view", str(path)])
        assert result.exit_code == 1


class TestValues:
    def test_distinct_values(self, employees_csv) -> None:
        result = runner.invoke(app, ["values", str(employees_csv), "department"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["Engineering", "Marketing", "Sales"]
