"""Plain-object adapter with no persistence."""

from typing import Any, Dict, MutableMapping

from .base import DefaultAdapter


class ObjectAdapter(DefaultAdapter):
    """Build bare objects and keep everything in memory.

    The model is called without arguments and the attributes are assigned
    afterwards, so any class with a no-argument constructor works, as does
    ``dict``. Saving and destroying only hand the instance back.
    """

    def build(self, model: Any, attributes: Dict[str, Any]) -> Any:
        instance = model()
        return self.set(attributes, instance, model)

    async def save(self, instance: Any, model: Any) -> Any:
        return instance

    async def destroy(self, instance: Any, model: Any) -> Any:
        return instance

    def get(self, instance: Any, attribute: str, model: Any) -> Any:
        if isinstance(instance, MutableMapping):
            return instance[attribute]
        return getattr(instance, attribute)

    def set(self, attributes: Dict[str, Any], instance: Any, model: Any) -> Any:
        if isinstance(instance, MutableMapping):
            instance.update(attributes)
            return instance
        return super().set(attributes, instance, model)
