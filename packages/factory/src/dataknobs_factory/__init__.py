"""Test-data factories for dataknobs packages.

Factories describe how to produce model instances for tests: a template of
attributes (literals, callables, nested dicts and lists, generators) plus
optional lifecycle hooks. A registry resolves templates into attributes,
builds instances through a pluggable adapter, saves them, and removes
everything it created on cleanup.

- **Registry**: Named factories, adapters, sequences and cleanup tracking
- **Generators**: Sequences, associations, Faker values and random choice
- **Adapters**: Model construction and persistence (plain objects, records, SQLAlchemy)
- **Resolver**: Concurrent resolution of nested attribute templates

Example:
    ```python
    from dataknobs_factory import factory

    factory.define("job", Job, {
        "title": "Engineer",
        "company": "Foobar Inc.",
        "duties": {"cleaning": False, "writing": True, "computing": True},
    })

    job = await factory.create("job", {"title": "Developer"})
    await factory.clean_up()
    ```
"""

from dataknobs_factory.adapters import (
    Adapter,
    DefaultAdapter,
    ObjectAdapter,
    RecordAdapter,
    SQLAlchemyAdapter,
)
from dataknobs_factory.config import FactorySettings
from dataknobs_factory.definition import Factory
from dataknobs_factory.exceptions import (
    ConfigurationError,
    DefinitionError,
    FactoryError,
    FactoryNotFoundError,
    GeneratorLookupError,
    SyncResolutionError,
    ValidationError,
)
from dataknobs_factory.generators import (
    Assoc,
    AssocAttrs,
    AssocAttrsMany,
    AssocMany,
    Generator,
    OneOf,
    RandomValue,
    Sequence,
)
from dataknobs_factory.registry import FactoryRegistry, RegistryView
from dataknobs_factory.resolver import populate, populate_sync
from dataknobs_factory.sequences import SequenceStore

__version__ = "0.1.0"

factory = FactoryRegistry()

__all__ = [
    # Version
    "__version__",
    # Default registry
    "factory",
    # Registry and factories
    "FactoryRegistry",
    "RegistryView",
    "Factory",
    "FactorySettings",
    # Resolver
    "populate",
    "populate_sync",
    # Generators
    "Generator",
    "Sequence",
    "SequenceStore",
    "Assoc",
    "AssocAttrs",
    "AssocMany",
    "AssocAttrsMany",
    "RandomValue",
    "OneOf",
    # Adapters
    "Adapter",
    "DefaultAdapter",
    "ObjectAdapter",
    "RecordAdapter",
    "SQLAlchemyAdapter",
    # Exceptions
    "FactoryError",
    "DefinitionError",
    "FactoryNotFoundError",
    "GeneratorLookupError",
    "ValidationError",
    "SyncResolutionError",
    "ConfigurationError",
]
