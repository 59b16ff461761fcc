"""Settings for factory registries.

Settings can come from a dictionary, a YAML or JSON file, or environment
variables. Environment variables use the ``DATAKNOBS_FACTORY_`` prefix and
take precedence over file values:

- ``DATAKNOBS_FACTORY_FAKER_SEED``: integer seed for random values
- ``DATAKNOBS_FACTORY_FAKER_LOCALE``: Faker locale, comma separated for several
- ``DATAKNOBS_FACTORY_DEFAULT_ADAPTER``: ``default`` or ``object``

Example:
    ```python
    settings = FactorySettings.load("tests/factory.yaml")
    registry = FactoryRegistry(settings=settings)
    ```

Example YAML:
    ```yaml
    faker_seed: 1234
    faker_locale: en_US
    default_adapter: object
    options:
      owner: test-suite
    ```
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from dataknobs_factory.adapters import Adapter, DefaultAdapter, ObjectAdapter
from dataknobs_factory.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "DATAKNOBS_FACTORY_"

ADAPTERS: Dict[str, type[Adapter]] = {
    "default": DefaultAdapter,
    "object": ObjectAdapter,
}


@dataclass
class FactorySettings:
    """Configuration applied when a registry is constructed.

    Attributes:
        faker_locale: Locale (or list of locales) for the Faker instance
        faker_seed: Seed for random values; None leaves them unseeded
        default_adapter: Name of the adapter used when no factory-specific one is set
        options: Initial registry options bag (hooks and hook context)
    """

    faker_locale: str | List[str] | None = None
    faker_seed: int | None = None
    default_adapter: str = "default"
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_adapter not in ADAPTERS:
            raise ConfigurationError(
                f"Unknown default adapter: {self.default_adapter}",
                context={"default_adapter": self.default_adapter, "available": list(ADAPTERS)},
            )
        if self.faker_seed is not None:
            self.faker_seed = _parse_seed(self.faker_seed)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FactorySettings:
        """Create settings from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug("Ignoring unknown factory settings: %s", sorted(unknown))
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> FactorySettings:
        """Load settings from a YAML or JSON file."""
        return cls.from_dict(_read_file(Path(path)))

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> FactorySettings:
        """Load settings from environment variables only."""
        return cls.from_dict(_env_values(prefix))

    @classmethod
    def load(
        cls,
        source: Union[str, Path, Dict[str, Any], None] = None,
        prefix: str = ENV_PREFIX,
    ) -> FactorySettings:
        """Load settings from a dict or file, then apply environment overrides.

        Args:
            source: Settings dictionary, path to a settings file, or None
            prefix: Environment variable prefix

        Returns:
            Combined settings
        """
        if source is None:
            data: Dict[str, Any] = {}
        elif isinstance(source, dict):
            data = dict(source)
        else:
            data = _read_file(Path(source))

        data.update(_env_values(prefix))
        return cls.from_dict(data)

    def create_adapter(self) -> Adapter:
        """Instantiate the configured default adapter."""
        return ADAPTERS[self.default_adapter]()


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"Settings file not found: {path}",
            context={"path": str(path)},
        )

    with open(path) as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file must contain a mapping: {path}",
            context={"path": str(path), "type": type(data).__name__},
        )
    return data


def _env_values(prefix: str) -> Dict[str, Any]:
    values: Dict[str, Any] = {}

    seed = os.environ.get(f"{prefix}FAKER_SEED")
    if seed:
        values["faker_seed"] = _parse_seed(seed)

    locale = os.environ.get(f"{prefix}FAKER_LOCALE")
    if locale:
        locales = [part.strip() for part in locale.split(",") if part.strip()]
        values["faker_locale"] = locales[0] if len(locales) == 1 else locales

    adapter = os.environ.get(f"{prefix}DEFAULT_ADAPTER")
    if adapter:
        values["default_adapter"] = adapter.strip().lower()

    return values


def _parse_seed(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError("Invalid faker seed", context={"faker_seed": value})
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid faker seed: {value!r}",
            context={"faker_seed": value},
        ) from e


__all__ = ["FactorySettings", "ENV_PREFIX", "ADAPTERS"]
