"""Conftest for unit tests - automatically mark all tests as unit tests."""

import pytest


def pytest_collection_modifyitems(config, items):
    """Mark every test collected from the unit directory."""
    for item in items:
        if "unit" in item.path.parts:
            item.add_marker(pytest.mark.unit)
