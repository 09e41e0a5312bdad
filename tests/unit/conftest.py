"""Conftest for unit tests - every test collected under ``tests/unit`` is a unit test."""

from pathlib import Path

import pytest


_UNIT_DIR = Path(__file__).parent


def pytest_collection_modifyitems(config, items):
    for item in items:
        if _UNIT_DIR in Path(item.path).parents:
            item.add_marker(pytest.mark.unit)
