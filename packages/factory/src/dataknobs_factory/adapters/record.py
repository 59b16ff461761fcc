"""Document-store adapter for dataknobs records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict

from .base import Adapter

if TYPE_CHECKING:
    from dataknobs_data import AsyncDatabase

logger = logging.getLogger(__name__)


class RecordAdapter(Adapter):
    """Persist ``Record`` documents in a dataknobs ``AsyncDatabase``.

    The model is the record class (``dataknobs_data.Record`` or a subclass),
    which is called with the attributes as its data. Saving stores the record
    and copies the storage id the database assigns back onto the instance;
    destroying deletes the record by that id.

    Args:
        database: Async database backend holding the records

    Example:
        ```python
        from dataknobs_data import Record
        from dataknobs_data.backends.memory import AsyncMemoryDatabase

        factory.set_adapter(RecordAdapter(AsyncMemoryDatabase()), "profile")
        factory.define("profile", Record, {"name": factory.chance("name")})
        profile = await factory.create("profile")
        profile.storage_id
        # '3f0c...'
        ```
    """

    def __init__(self, database: AsyncDatabase):
        self.database = database

    def build(self, model: Any, attributes: Dict[str, Any]) -> Any:
        return model(dict(attributes))

    async def save(self, instance: Any, model: Any) -> Any:
        instance.storage_id = await self.database.create(instance)
        logger.debug("Stored record %s", instance.storage_id)
        return instance

    async def destroy(self, instance: Any, model: Any) -> Any:
        if instance.storage_id is not None:
            await self.database.delete(instance.storage_id)
        return instance

    def get(self, instance: Any, attribute: str, model: Any) -> Any:
        if instance.has_field(attribute):
            return instance.get_value(attribute)
        return getattr(instance, attribute)

    def set(self, attributes: Dict[str, Any], instance: Any, model: Any) -> Any:
        for name, value in attributes.items():
            instance.set_value(name, value)
        return instance
