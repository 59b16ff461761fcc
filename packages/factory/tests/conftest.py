"""Pytest configuration and fixtures for factory package tests."""

import pytest

from dataknobs_factory import FactoryRegistry
from dataknobs_factory.testing import create_test_registry
from factory_models import define_factories


@pytest.fixture
def factory() -> FactoryRegistry:
    """Create a registry with the shared factories defined."""
    registry = create_test_registry()
    define_factories(registry)
    return registry
