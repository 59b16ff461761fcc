"""Testing utilities for code that uses factories.

Provides a ready-made registry for tests, a cleanup context manager, and
pytest skip markers for optional integrations.

Example:
    ```python
    from dataknobs_factory.testing import create_test_registry, registry_cleanup

    @pytest.fixture
    async def factory():
        registry = create_test_registry()
        define_factories(registry)
        async with registry_cleanup(registry):
            yield registry

    @requires_package("dataknobs_data")
    async def test_with_record_store(factory):
        ...
    ```
"""

from __future__ import annotations

import importlib.util
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict

from dataknobs_factory.adapters import ObjectAdapter
from dataknobs_factory.config import FactorySettings
from dataknobs_factory.registry import FactoryRegistry

TEST_SEED = 1234


def create_test_registry(
    seed: int | None = TEST_SEED,
    use_object_adapter: bool = False,
    options: Dict[str, Any] | None = None,
) -> FactoryRegistry:
    """Create an isolated registry with deterministic random values.

    Args:
        seed: Faker and random seed (None for unseeded)
        use_object_adapter: Use ObjectAdapter as the default adapter
        options: Registry options bag

    Returns:
        A fresh registry
    """
    settings = FactorySettings(
        faker_seed=seed,
        default_adapter="object" if use_object_adapter else "default",
    )
    return FactoryRegistry(settings=settings, options=options, name="test_factories")


@asynccontextmanager
async def registry_cleanup(registry: FactoryRegistry) -> AsyncIterator[FactoryRegistry]:
    """Yield the registry and clean up everything it created on exit."""
    try:
        yield registry
    finally:
        await registry.clean_up()


def is_package_available(package_name: str) -> bool:
    """Check if a Python package is available.

    Args:
        package_name: Name of the package to check

    Returns:
        True if package can be imported, False otherwise
    """
    return importlib.util.find_spec(package_name) is not None


# Pytest Markers


try:
    import pytest

    def requires_package(package_name: str) -> Any:
        """Create a skip marker for a required package.

        Args:
            package_name: Name of the required package

        Returns:
            pytest.mark.skipif marker
        """
        return pytest.mark.skipif(
            not is_package_available(package_name),
            reason=f"{package_name} not installed",
        )

except ImportError:
    # pytest not installed - provide placeholder markers
    def requires_package(package_name: str) -> Any:  # type: ignore
        return None


__all__ = [
    "TEST_SEED",
    "create_test_registry",
    "registry_cleanup",
    "is_package_available",
    "requires_package",
]
