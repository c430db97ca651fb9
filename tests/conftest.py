"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from reflex_grid_engine.config import GridSettings, clear_settings_cache
from reflex_grid_engine.models import Column
from reflex_grid_engine.store import GridStore


def make_employees() -> list[dict[str, Any]]:
    """Five employees across three departments."""
    return [
        {"id": 1, "name": "Alice Johnson", "department": "Engineering", "salary": 95000, "active": True},
        {"id": 2, "name": "Bob Smith", "department": "Engineering", "salary": 85000, "active": True},
        {"id": 3, "name": "Carol Williams", "department": "Marketing", "salary": 75000, "active": True},
        {"id": 4, "name": "David Brown", "department": "Marketing", "salary": 70000, "active": False},
        {"id": 5, "name": "Eve Davis", "department": "Sales", "salary": 80000, "active": True},
    ]


def make_columns() -> list[Column]:
    return [
        Column(field="name", header_name="Name", editable=True),
        Column(field="department", header_name="Department", editable=True),
        Column(field="salary", header_name="Salary", type="number", editable=True),
        Column(field="active", header_name="Active", type="boolean", editable=True),
    ]


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Keep REFLEX_GRID_* variables from the environment out of the tests."""
    for name in ("CONFLICT_POLICY", "DENSITY", "PAGE_SIZE", "LOG_LEVEL"):
        monkeypatch.delenv(f"REFLEX_GRID_{name}", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def employees() -> list[dict[str, Any]]:
    return make_employees()


@pytest.fixture
def columns() -> list[Column]:
    return make_columns()


@pytest.fixture
def store(employees: list[dict[str, Any]], columns: list[Column]) -> GridStore:
    """A store over the employee rows with default settings."""
    return GridStore(employees, columns, settings=GridSettings())
