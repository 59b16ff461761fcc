"""Value generators used as template leaves.

A generator is bound to a registry and produces a value, possibly
asynchronously, from the arguments captured when the template was declared.
Templates never hold generators directly; they hold a zero-argument thunk
returned by :meth:`Generator.bind`, so the resolver only ever sees callables.

Example:
    ```python
    factory.define("person", Person, {
        "name": factory.seq("person.name", lambda n: f"Person {n}"),
        "job": factory.assoc("job"),
        "email": factory.chance("email"),
        "role": factory.one_of(["admin", "member"]),
    })
    ```
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List

from dataknobs_factory.exceptions import DefinitionError, GeneratorLookupError, ValidationError

if TYPE_CHECKING:
    from dataknobs_factory.registry import FactoryRegistry


class Generator(ABC):
    """Base class for registry-bound value producers.

    Args:
        registry: Registry whose factories, adapters and state the generator uses

    Raises:
        DefinitionError: If no registry is given
    """

    def __init__(self, registry: FactoryRegistry):
        if registry is None:
            raise DefinitionError("No factory registry provided to generator")
        self.registry = registry

    @abstractmethod
    def produce(self, *args: Any, **kwargs: Any) -> Any:
        """Produce a value, or an awaitable of one."""

    def bind(self, *args: Any, **kwargs: Any) -> Callable[[], Any]:
        """Capture arguments and return a zero-argument thunk for a template."""
        return partial(self.produce, *args, **kwargs)

    def get_attribute(self, name: str, instance: Any, key: str) -> Any:
        """Read one attribute of an instance through its factory's adapter."""
        model = self.registry.get_factory(name).model
        return self.registry.get_adapter(name).get(instance, key, model)


class Sequence(Generator):
    """Successive integers from a counter kept in the registry.

    Each ``Sequence`` declared without an explicit id reserves an anonymous
    id the first time it produces a value.
    """

    def __init__(self, registry: FactoryRegistry):
        super().__init__(registry)
        self.id: str | None = None

    def produce(
        self,
        sequence_id: str | Callable[[int], Any] | None = None,
        transform: Callable[[int], Any] | None = None,
    ) -> Any:
        if callable(sequence_id):
            transform = sequence_id
            sequence_id = None

        if sequence_id is None:
            if self.id is None:
                self.id = self.registry.sequences.allocate_id()
            sequence_id = self.id

        value = self.registry.sequences.next(sequence_id)
        return transform(value) if transform else value


class Assoc(Generator):
    """Create an instance of another factory, or one attribute of it."""

    async def produce(
        self,
        name: str,
        key: str | None = None,
        overrides: Dict[str, Any] | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        instance = await self.registry.create(name, overrides, build_options)
        return await _maybe_await(self.get_attribute(name, instance, key)) if key else instance


class AssocAttrs(Generator):
    """Resolve the attributes of another factory without building it."""

    async def produce(
        self,
        name: str,
        key: str | None = None,
        overrides: Dict[str, Any] | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        attrs = await self.registry.attrs(name, overrides, build_options)
        return attrs[key] if key else attrs


class AssocMany(Generator):
    """Create ``num`` instances of another factory."""

    async def produce(
        self,
        name: str,
        num: int,
        key: str | None = None,
        overrides: List[Dict[str, Any]] | Dict[str, Any] | None = None,
        build_options: List[Dict[str, Any]] | Dict[str, Any] | None = None,
    ) -> List[Any]:
        instances = await self.registry.create_many(name, num, overrides, build_options)
        if not key:
            return instances
        return [await _maybe_await(self.get_attribute(name, instance, key)) for instance in instances]


class AssocAttrsMany(Generator):
    """Resolve ``num`` attribute sets of another factory."""

    async def produce(
        self,
        name: str,
        num: int,
        key: str | None = None,
        overrides: List[Dict[str, Any]] | Dict[str, Any] | None = None,
        build_options: List[Dict[str, Any]] | Dict[str, Any] | None = None,
    ) -> List[Any]:
        if isinstance(num, bool) or not isinstance(num, int) or num < 1:
            raise ValidationError(
                "Invalid number of items requested",
                context={"factory": name, "num": num},
            )
        attrs_list = await self.registry.attrs_many(name, num, overrides, build_options)
        return [attrs[key] for attrs in attrs_list] if key else attrs_list


class RandomValue(Generator):
    """Delegate to a method of the registry's Faker instance."""

    def bind(self, method: str, *args: Any, **kwargs: Any) -> Callable[[], Any]:
        self._lookup(method)
        return super().bind(method, *args, **kwargs)

    def produce(self, method: str, *args: Any, **kwargs: Any) -> Any:
        return self._lookup(method)(*args, **kwargs)

    def _lookup(self, method: str) -> Callable[..., Any]:
        try:
            func = getattr(self.registry.faker, method)
        except AttributeError:
            func = None
        if method.startswith("_") or not callable(func):
            raise GeneratorLookupError(
                f"Invalid random value method requested: {method}",
                context={"method": method},
            )
        return func


class OneOf(Generator):
    """Pick one candidate uniformly at random, invoking it if callable."""

    def produce(self, candidates: List[Any]) -> Any:
        if not isinstance(candidates, list):
            raise ValidationError(
                "Expected a list of possible values",
                context={"type": type(candidates).__name__},
            )
        if not candidates:
            raise ValidationError("Empty list passed for possible values")

        value = self.registry.random.choice(candidates)
        return value() if callable(value) and not isinstance(value, type) else value


async def _maybe_await(value: Any) -> Any:
    return await value if inspect.isawaitable(value) else value


__all__ = [
    "Generator",
    "Sequence",
    "Assoc",
    "AssocAttrs",
    "AssocMany",
    "AssocAttrsMany",
    "RandomValue",
    "OneOf",
]
