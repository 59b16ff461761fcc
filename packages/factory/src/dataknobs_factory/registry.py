"""Registry of named factories.

The registry is the entry point for tests. It owns the named factories,
the adapters used to build and persist their instances, the sequence
counters, the random-value generator, and the list of everything created
since the last cleanup.

Example:
    ```python
    from dataknobs_factory import FactoryRegistry, ObjectAdapter

    factory = FactoryRegistry()
    factory.set_adapter(ObjectAdapter())

    factory.define("job", Job, {
        "title": "Engineer",
        "company": "Foobar Inc.",
    })
    factory.define("person", Person, {
        "name": factory.seq("person.name", lambda n: f"Person {n}"),
        "job": factory.assoc("job"),
    })

    person = await factory.build("person")
    jobs = await factory.create_many("job", 3, [{"title": "Scientist"}])
    await factory.clean_up()
    ```

Scoped options:
    ```python
    async def stamp_owner(instance, overrides, build_options, options):
        instance.owner = options["owner"]
        return instance

    builder = factory.with_options({"after_create": stamp_owner, "owner": "alice"})
    job = await builder.create("job")
    ```
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from faker import Faker

from dataknobs_factory.adapters.base import Adapter
from dataknobs_factory.config import FactorySettings
from dataknobs_factory.definition import (
    Attributes,
    BatchArgument,
    Factory,
    Initializer,
    batch_arguments,
)
from dataknobs_factory.exceptions import (
    DefinitionError,
    FactoryNotFoundError,
    SyncResolutionError,
)
from dataknobs_factory.generators import (
    Assoc,
    AssocAttrs,
    AssocAttrsMany,
    AssocMany,
    OneOf,
    RandomValue,
    Sequence,
)
from dataknobs_factory.sequences import SequenceStore

logger = logging.getLogger(__name__)


class FactoryRegistry:
    """Named factories plus the adapters and state they share.

    Registries are independent of each other: each one has its own
    factories, adapters, sequence counters, random generator and
    created-instance list.

    Args:
        settings: Optional settings (Faker locale and seed, default adapter, options)
        options: Registry options bag, merged over ``settings.options``
        name: Name of the registry (for logging and errors)

    Attributes:
        default_adapter: Adapter used for factories without a specific one
        sequences: Sequence counters used by :meth:`seq`
        faker: Faker instance used by :meth:`chance`
        random: Random source used by :meth:`one_of`
        options: Options bag holding registry-level hooks and their context
    """

    def __init__(
        self,
        settings: FactorySettings | None = None,
        options: Dict[str, Any] | None = None,
        name: str = "factories",
    ):
        self.settings = settings or FactorySettings()
        self._name = name
        self._factories: Dict[str, Factory] = {}
        self._adapters: Dict[str, Adapter] = {}
        self._created: List[Tuple[Adapter, Any]] = []
        self._lock = threading.RLock()

        self.default_adapter: Adapter = self.settings.create_adapter()
        self.sequences = SequenceStore()
        self.faker = Faker(self.settings.faker_locale)
        self.random = random.Random(self.settings.faker_seed)
        if self.settings.faker_seed is not None:
            self.faker.seed_instance(self.settings.faker_seed)
        self.options: Dict[str, Any] = {**self.settings.options, **(options or {})}

    @classmethod
    def from_config(
        cls,
        source: Union[str, Path, Dict[str, Any], None] = None,
        **kwargs: Any,
    ) -> FactoryRegistry:
        """Create a registry from a settings dict or file plus the environment."""
        return cls(settings=FactorySettings.load(source), **kwargs)

    @property
    def name(self) -> str:
        """Get registry name."""
        return self._name

    # Definitions

    def define(
        self,
        name: str,
        model: Any,
        initializer: Initializer,
        options: Dict[str, Any] | None = None,
    ) -> Factory:
        """Define a named factory.

        Args:
            name: Unique factory name
            model: Model descriptor handed to the adapter
            initializer: Attribute template, or callable taking build options
            options: Factory-level hooks (``after_build``, ``after_create``)

        Returns:
            The new factory

        Raises:
            DefinitionError: If the name is taken or the model/initializer is invalid
        """
        with self._lock:
            if name in self._factories:
                raise DefinitionError(
                    f"Factory {name} already defined",
                    context={"factory": name, "registry": self._name},
                )
            factory = Factory(model, initializer, options, name=name)
            self._factories[name] = factory

        logger.debug("Defined factory %s for %s", name, getattr(model, "__name__", model))
        return factory

    def get_factory(self, name: str, raise_error: bool = True) -> Factory | None:
        """Look up a factory by name.

        Raises:
            FactoryNotFoundError: If the factory is unknown and ``raise_error`` is set
        """
        with self._lock:
            factory = self._factories.get(name)
            if factory is None and raise_error:
                raise FactoryNotFoundError(
                    f"Invalid factory '{name}' requested",
                    context={
                        "factory": name,
                        "registry": self._name,
                        "available_keys": list(self._factories.keys()),
                    },
                )
            return factory

    def has_factory(self, name: str) -> bool:
        """Check if a factory is defined."""
        with self._lock:
            return name in self._factories

    def list_factories(self) -> List[str]:
        """List defined factory names."""
        with self._lock:
            return list(self._factories.keys())

    # Adapters

    def get_adapter(self, name: str | None = None) -> Adapter:
        """Return the adapter bound to a factory name, or the default adapter."""
        with self._lock:
            if name is None:
                return self.default_adapter
            return self._adapters.get(name, self.default_adapter)

    def set_adapter(self, adapter: Adapter, names: str | List[str] | None = None) -> Adapter:
        """Bind an adapter to some factories, or make it the default.

        Args:
            adapter: Adapter to use
            names: Factory name or names; None replaces the default adapter

        Returns:
            The adapter
        """
        with self._lock:
            if not names:
                self.default_adapter = adapter
                logger.debug("Default adapter set to %s", type(adapter).__name__)
            else:
                for name in [names] if isinstance(names, str) else names:
                    self._adapters[name] = adapter
                    logger.debug("Adapter %s bound to factory %s", type(adapter).__name__, name)
        return adapter

    # Generators

    def assoc(
        self,
        name: str,
        key: str | None = None,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Callable[[], Any]:
        """Template leaf creating (and saving) an instance of another factory."""
        return Assoc(self).bind(name, key, overrides, build_options)

    def assoc_attrs(
        self,
        name: str,
        key: str | None = None,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Callable[[], Any]:
        """Template leaf resolving the attributes of another factory."""
        return AssocAttrs(self).bind(name, key, overrides, build_options)

    def assoc_many(
        self,
        name: str,
        num: int,
        key: str | None = None,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> Callable[[], Any]:
        """Template leaf creating ``num`` instances of another factory."""
        return AssocMany(self).bind(name, num, key, overrides, build_options)

    def assoc_attrs_many(
        self,
        name: str,
        num: int,
        key: str | None = None,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> Callable[[], Any]:
        """Template leaf resolving ``num`` attribute sets of another factory."""
        return AssocAttrsMany(self).bind(name, num, key, overrides, build_options)

    def seq(
        self,
        sequence_id: str | Callable[[int], Any] | None = None,
        transform: Callable[[int], Any] | None = None,
    ) -> Callable[[], Any]:
        """Template leaf producing successive integers, optionally transformed."""
        return Sequence(self).bind(sequence_id, transform)

    sequence = seq

    def reset_seq(self, sequence_id: str | None = None) -> None:
        """Reset one sequence counter, or all of them."""
        self.sequences.reset(sequence_id)

    reset_sequence = reset_seq

    def chance(self, method: str, *args: Any, **kwargs: Any) -> Callable[[], Any]:
        """Template leaf calling a Faker method.

        Raises:
            GeneratorLookupError: If Faker has no such method
        """
        return RandomValue(self).bind(method, *args, **kwargs)

    random_value = chance

    def one_of(self, candidates: List[Any]) -> Callable[[], Any]:
        """Template leaf picking one of ``candidates`` at random."""
        return OneOf(self).bind(candidates)

    # Operations

    async def attrs(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Attributes:
        """Resolve the attributes of a named factory."""
        return await self.get_factory(name).attrs(overrides, build_options)

    async def build(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        """Build an unsaved instance of a named factory."""
        return await self._build(name, overrides, build_options, self.options)

    async def create(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        """Build and save an instance, recording it for cleanup."""
        return await self._create(name, overrides, build_options, self.options)

    async def attrs_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Attributes]:
        """Resolve ``num`` attribute sets of a named factory."""
        return await self.get_factory(name).attrs_many(num, overrides, build_options)

    async def build_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Any]:
        """Build ``num`` unsaved instances of a named factory."""
        return await self._build_many(name, num, overrides, build_options, self.options)

    async def create_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Any]:
        """Build and save ``num`` instances, recording them for cleanup."""
        return await self._create_many(name, num, overrides, build_options, self.options)

    def attrs_sync(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Attributes:
        """Resolve attributes without an event loop."""
        return self.get_factory(name).attrs_sync(overrides, build_options)

    def build_sync(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        """Build an unsaved instance without an event loop."""
        return self._build_sync(name, overrides, build_options, self.options)

    def with_options(self, options: Dict[str, Any], merge: bool = False) -> RegistryView:
        """Return a view of this registry with its own options bag.

        Args:
            options: Options for the view
            merge: Merge into the registry's options instead of replacing them

        Returns:
            View sharing factories, adapters and state with this registry
        """
        return RegistryView(self, {**self.options, **options} if merge else dict(options))

    # Cleanup

    @property
    def created(self) -> List[Tuple[Adapter, Any]]:
        """Snapshot of the (adapter, instance) pairs awaiting cleanup."""
        with self._lock:
            return list(self._created)

    async def clean_up(self) -> None:
        """Destroy every recorded instance and reset all sequences.

        All destroys are issued concurrently. Once every one has finished,
        the first failure, if any, is raised.
        """
        with self._lock:
            created = list(self._created)
            self._created.clear()
        self.sequences.reset()

        logger.debug("Cleaning up %d created instances", len(created))
        results = await asyncio.gather(
            *(adapter.destroy(instance, type(instance)) for adapter, instance in created),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    cleanup = clean_up

    # Internals shared with RegistryView

    async def _build(
        self,
        name: str,
        overrides: Attributes | None,
        build_options: Dict[str, Any] | None,
        options: Dict[str, Any],
    ) -> Any:
        factory = self.get_factory(name)
        instance = await factory.build(self.get_adapter(name), overrides, build_options)
        return await _run_hook(options, "after_build", instance, overrides or {}, build_options or {})

    async def _create(
        self,
        name: str,
        overrides: Attributes | None,
        build_options: Dict[str, Any] | None,
        options: Dict[str, Any],
    ) -> Any:
        factory = self.get_factory(name)
        adapter = self.get_adapter(name)
        instance = await factory.create(adapter, overrides, build_options)
        self._record(adapter, [instance])
        return await _run_hook(options, "after_create", instance, overrides or {}, build_options or {})

    async def _build_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument,
        build_options: BatchArgument,
        options: Dict[str, Any],
    ) -> List[Any]:
        factory = self.get_factory(name)
        pairs = batch_arguments(num, overrides, build_options, name)
        instances = await factory.build_many(self.get_adapter(name), num, overrides, build_options)
        return await _run_hooks(options, "after_build", instances, pairs)

    async def _create_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument,
        build_options: BatchArgument,
        options: Dict[str, Any],
    ) -> List[Any]:
        factory = self.get_factory(name)
        adapter = self.get_adapter(name)
        pairs = batch_arguments(num, overrides, build_options, name)
        instances = await factory.create_many(adapter, num, overrides, build_options)
        self._record(adapter, instances)
        return await _run_hooks(options, "after_create", instances, pairs)

    def _build_sync(
        self,
        name: str,
        overrides: Attributes | None,
        build_options: Dict[str, Any] | None,
        options: Dict[str, Any],
    ) -> Any:
        instance = self.get_factory(name).build_sync(self.get_adapter(name), overrides, build_options)
        hook = options.get("after_build")
        if hook is None:
            return instance
        result = hook(instance, overrides or {}, build_options or {}, options)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise SyncResolutionError(
                "Registry after_build hook returned a deferred value during synchronous build",
                context={"factory": name},
            )
        return result

    def _record(self, adapter: Adapter, instances: List[Any]) -> None:
        with self._lock:
            self._created.extend((adapter, instance) for instance in instances)


class RegistryView:
    """A registry seen through a different options bag.

    Views are created by :meth:`FactoryRegistry.with_options`. They share
    everything with their registry except the options, so hooks can receive
    per-call context without touching the registry's own options.
    """

    def __init__(self, registry: FactoryRegistry, options: Dict[str, Any]):
        self.registry = registry
        self.options = options

    def with_options(self, options: Dict[str, Any], merge: bool = False) -> RegistryView:
        """Chain another options overlay onto this view."""
        return RegistryView(self.registry, {**self.options, **options} if merge else dict(options))

    async def attrs(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Attributes:
        return await self.registry.attrs(name, overrides, build_options)

    async def attrs_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Attributes]:
        return await self.registry.attrs_many(name, num, overrides, build_options)

    async def build(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        return await self.registry._build(name, overrides, build_options, self.options)

    async def create(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        return await self.registry._create(name, overrides, build_options, self.options)

    async def build_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Any]:
        return await self.registry._build_many(name, num, overrides, build_options, self.options)

    async def create_many(
        self,
        name: str,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Any]:
        return await self.registry._create_many(name, num, overrides, build_options, self.options)

    def attrs_sync(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Attributes:
        return self.registry.attrs_sync(name, overrides, build_options)

    def build_sync(
        self,
        name: str,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        return self.registry._build_sync(name, overrides, build_options, self.options)


async def _run_hook(
    options: Dict[str, Any],
    hook_name: str,
    instance: Any,
    overrides: Any,
    build_options: Any,
) -> Any:
    hook = options.get(hook_name)
    if hook is None:
        return instance
    result = hook(instance, overrides, build_options, options)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _run_hooks(
    options: Dict[str, Any],
    hook_name: str,
    instances: List[Any],
    pairs: List[Tuple[Attributes, Dict[str, Any]]],
) -> List[Any]:
    if options.get(hook_name) is None:
        return instances
    return list(
        await asyncio.gather(
            *(
                _run_hook(options, hook_name, instance, overrides, build_options)
                for instance, (overrides, build_options) in zip(instances, pairs)
            )
        )
    )


__all__ = ["FactoryRegistry", "RegistryView"]
