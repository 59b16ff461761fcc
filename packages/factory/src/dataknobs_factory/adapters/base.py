"""Adapter contract between factories and a persistence mechanism."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, Dict


class Adapter(ABC):
    """Bridge from a model descriptor to a concrete way of storing instances.

    Factories only ever talk to models through an adapter. ``build`` creates
    an unsaved instance, ``save`` and ``destroy`` persist and remove it, and
    ``get`` / ``set`` read and write attributes.
    """

    @abstractmethod
    def build(self, model: Any, attributes: Dict[str, Any]) -> Any:
        """Construct an in-memory, unsaved instance."""

    @abstractmethod
    async def save(self, instance: Any, model: Any) -> Any:
        """Persist an instance and return it."""

    @abstractmethod
    async def destroy(self, instance: Any, model: Any) -> Any:
        """Remove the persisted state of an instance and return it."""

    @abstractmethod
    def get(self, instance: Any, attribute: str, model: Any) -> Any:
        """Read a named attribute from an instance."""

    @abstractmethod
    def set(self, attributes: Dict[str, Any], instance: Any, model: Any) -> Any:
        """Write attributes onto an instance and return it."""


class DefaultAdapter(Adapter):
    """Adapter for models that save and destroy themselves.

    The model is called with the attributes as keyword arguments, and
    instances are expected to expose ``save()`` and ``destroy()`` methods,
    which may be coroutines.

    Example:
        ```python
        @dataclass
        class Job:
            title: str

            async def save(self): ...
            async def destroy(self): ...

        factory.set_adapter(DefaultAdapter())
        ```
    """

    def build(self, model: Any, attributes: Dict[str, Any]) -> Any:
        return model(**attributes)

    async def save(self, instance: Any, model: Any) -> Any:
        result = instance.save()
        if inspect.isawaitable(result):
            await result
        return instance

    async def destroy(self, instance: Any, model: Any) -> Any:
        result = instance.destroy()
        if inspect.isawaitable(result):
            await result
        return instance

    def get(self, instance: Any, attribute: str, model: Any) -> Any:
        return getattr(instance, attribute)

    def set(self, attributes: Dict[str, Any], instance: Any, model: Any) -> Any:
        for name, value in attributes.items():
            setattr(instance, name, value)
        return instance
