"""Factory definitions: a model, an attribute template and lifecycle hooks."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Dict, List, Tuple

from dataknobs_factory.adapters.base import Adapter
from dataknobs_factory.exceptions import DefinitionError, SyncResolutionError, ValidationError
from dataknobs_factory.resolver import populate, populate_sync

logger = logging.getLogger(__name__)

Attributes = Dict[str, Any]
Initializer = Dict[str, Any] | Callable[[Dict[str, Any]], Any]
BatchArgument = List[Dict[str, Any]] | Dict[str, Any] | None


class Factory:
    """Produce attributes and instances for one model.

    A factory binds a model descriptor to an initializer, which is either an
    attribute template or a callable taking the build options and returning
    one. Optional ``after_build`` and ``after_create`` hooks receive
    ``(instance, overrides, build_options)`` and their return value replaces
    the instance.

    Args:
        model: Model descriptor handed to the adapter
        initializer: Attribute template, or callable producing one from build options
        options: Optional hooks (``after_build``, ``after_create``)
        name: Name the factory is registered under, used in errors and logs

    Raises:
        DefinitionError: If the model or initializer is invalid

    Example:
        ```python
        job_factory = Factory(Job, {"title": "Engineer", "company": "Foobar Inc."})
        job = await job_factory.build(DefaultAdapter(), {"title": "Developer"})
        ```
    """

    def __init__(
        self,
        model: Any,
        initializer: Initializer,
        options: Dict[str, Any] | None = None,
        name: str | None = None,
    ):
        if model is None:
            raise DefinitionError(
                "Invalid model passed to the factory",
                context={"factory": name},
            )
        if initializer is None or not (isinstance(initializer, dict) or callable(initializer)):
            raise DefinitionError(
                "Invalid initializer passed to the factory",
                context={"factory": name, "type": type(initializer).__name__},
            )

        self.name = name
        self.model = model
        self.initializer = initializer
        self.options: Dict[str, Any] = dict(options or {})

    def get_factory_attrs(self, build_options: Dict[str, Any] | None = None) -> Any:
        """Materialize the attribute template for the given build options.

        Returns:
            A fresh template dict, or an awaitable of one when the
            initializer is a coroutine function
        """
        if callable(self.initializer):
            return self.initializer(build_options or {})
        return dict(self.initializer)

    async def attrs(
        self,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Attributes:
        """Resolve the template into a fresh attribute dict.

        Template keys present in ``overrides`` are never resolved. The
        overrides are resolved afterwards in their own pass, so they may
        themselves hold awaitables.
        """
        overrides = overrides or {}
        template = self.get_factory_attrs(build_options)
        if inspect.isawaitable(template):
            template = await template

        attrs: Attributes = {}
        await populate(attrs, self._filter(template, overrides))
        await populate(attrs, overrides)
        return attrs

    async def build(
        self,
        adapter: Adapter,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        """Resolve attributes and build an unsaved instance."""
        attrs = await self.attrs(overrides, build_options)
        instance = await _resolve(adapter.build(self.model, attrs))
        return await self._after("after_build", instance, overrides or {}, build_options or {})

    async def create(
        self,
        adapter: Adapter,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        """Build an instance and save it through the adapter."""
        instance = await self.build(adapter, overrides, build_options)
        saved = await adapter.save(instance, self.model)
        return await self._after("after_create", saved, overrides or {}, build_options or {})

    async def attrs_many(
        self,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Attributes]:
        """Resolve ``num`` attribute dicts concurrently, in input order.

        ``overrides`` and ``build_options`` are either one mapping shared by
        every item, or a list matched by position and padded with empty
        mappings up to ``num``.
        """
        pairs = self._batch(num, overrides, build_options)
        logger.debug("Resolving %d attribute sets for factory %s", num, self.name)
        return list(await asyncio.gather(*(self.attrs(o, b) for o, b in pairs)))

    async def build_many(
        self,
        adapter: Adapter,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
        run_hooks: bool = True,
    ) -> List[Any]:
        """Build ``num`` instances; ``run_hooks=False`` skips ``after_build``."""
        pairs = self._batch(num, overrides, build_options)
        attrs_list = await self.attrs_many(num, overrides, build_options)
        instances = await asyncio.gather(*(_resolve(adapter.build(self.model, attrs)) for attrs in attrs_list))
        if not run_hooks or not self.options.get("after_build"):
            return list(instances)
        return list(
            await asyncio.gather(
                *(self._after("after_build", instance, o, b) for instance, (o, b) in zip(instances, pairs))
            )
        )

    async def create_many(
        self,
        adapter: Adapter,
        num: int,
        overrides: BatchArgument = None,
        build_options: BatchArgument = None,
    ) -> List[Any]:
        """Build and save ``num`` instances."""
        pairs = self._batch(num, overrides, build_options)
        instances = await self.build_many(adapter, num, overrides, build_options)
        saved = await asyncio.gather(*(adapter.save(instance, self.model) for instance in instances))
        if not self.options.get("after_create"):
            return list(saved)
        return list(
            await asyncio.gather(
                *(self._after("after_create", instance, o, b) for instance, (o, b) in zip(saved, pairs))
            )
        )

    def attrs_sync(
        self,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Attributes:
        """Resolve attributes without suspending.

        Raises:
            SyncResolutionError: If any leaf, the initializer or an override
                produces an awaitable
        """
        overrides = overrides or {}
        template = self.get_factory_attrs(build_options)
        _require_sync(template, f"Initializer of factory {self.name}")

        attrs: Attributes = {}
        populate_sync(attrs, self._filter(template, overrides))
        populate_sync(attrs, overrides)
        return attrs

    def build_sync(
        self,
        adapter: Adapter,
        overrides: Attributes | None = None,
        build_options: Dict[str, Any] | None = None,
    ) -> Any:
        """Build an unsaved instance without suspending."""
        attrs = self.attrs_sync(overrides, build_options)
        instance = adapter.build(self.model, attrs)
        _require_sync(instance, f"Adapter build for factory {self.name}")

        hook = self.options.get("after_build")
        if hook is None:
            return instance
        result = hook(instance, overrides or {}, build_options or {})
        _require_sync(result, f"after_build hook of factory {self.name}")
        return result

    def _filter(self, template: Any, overrides: Attributes) -> Attributes:
        if not isinstance(template, dict):
            raise DefinitionError(
                "Factory initializer must produce a dict of attributes",
                context={"factory": self.name, "type": type(template).__name__},
            )
        return {key: value for key, value in template.items() if key not in overrides}

    async def _after(self, hook_name: str, instance: Any, overrides: Any, build_options: Any) -> Any:
        hook = self.options.get(hook_name)
        if hook is None:
            return instance
        return await _resolve(hook(instance, overrides, build_options))

    def _batch(
        self,
        num: int,
        overrides: BatchArgument,
        build_options: BatchArgument,
    ) -> List[Tuple[Attributes, Dict[str, Any]]]:
        return batch_arguments(num, overrides, build_options, self.name)


def batch_arguments(
    num: int,
    overrides: BatchArgument = None,
    build_options: BatchArgument = None,
    factory_name: str | None = None,
) -> List[Tuple[Attributes, Dict[str, Any]]]:
    """Validate batch arguments and expand them to ``num`` (overrides, build_options) pairs.

    Raises:
        ValidationError: If ``num`` is not a positive integer, an argument
            is neither a list nor a mapping, or a list entry is not a mapping
    """
    if isinstance(num, bool) or not isinstance(num, int) or num < 1:
        raise ValidationError(
            "Invalid number of objects requested",
            context={"factory": factory_name, "num": num},
        )
    overrides_list = _expand(num, overrides, "overrides", factory_name)
    options_list = _expand(num, build_options, "build_options", factory_name)
    return list(zip(overrides_list, options_list))


def _expand(num: int, value: BatchArgument, label: str, factory_name: str | None) -> List[Dict[str, Any]]:
    if value is None:
        return [{} for _ in range(num)]
    if isinstance(value, dict):
        return [value] * num
    if not isinstance(value, list):
        raise ValidationError(
            f"Invalid {label} passed: expected a list or a mapping",
            context={"factory": factory_name, "type": type(value).__name__},
        )
    for index, item in enumerate(value):
        if item is not None and not isinstance(item, dict):
            raise ValidationError(
                f"Invalid {label} passed: entry {index} is not a mapping",
                context={"factory": factory_name, "index": index, "type": type(item).__name__},
            )
    padded = [item or {} for item in value[:num]]
    return padded + [{} for _ in range(num - len(padded))]


async def _resolve(value: Any) -> Any:
    return await value if inspect.isawaitable(value) else value


def _require_sync(value: Any, what: str) -> None:
    if inspect.isawaitable(value):
        if inspect.iscoroutine(value):
            value.close()
        raise SyncResolutionError(f"{what} returned a deferred value during synchronous build")
