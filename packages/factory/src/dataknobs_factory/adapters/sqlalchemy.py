"""SQLAlchemy adapter for mapped models."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .base import DefaultAdapter

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class SQLAlchemyAdapter(DefaultAdapter):
    """Persist instances of mapped classes through an ``AsyncSession``.

    Instances are added and flushed on save, so generated primary keys are
    populated while the surrounding transaction stays open. With
    ``commit=True`` each save and destroy commits instead. Operations on
    the session are serialized, since an ``AsyncSession`` must not be used
    concurrently.

    Args:
        session: Async session used for every operation
        commit: Commit after each save and destroy rather than flushing

    Example:
        ```python
        async with async_session() as session:
            factory.set_adapter(SQLAlchemyAdapter(session), ["user", "api_key"])
            user = await factory.create("user")
        ```
    """

    def __init__(self, session: AsyncSession, commit: bool = False):
        self.session = session
        self.commit = commit
        self._lock = asyncio.Lock()

    async def save(self, instance: Any, model: Any) -> Any:
        async with self._lock:
            self.session.add(instance)
            await self._finish()
        logger.debug("Saved %s instance", getattr(model, "__name__", model))
        return instance

    async def destroy(self, instance: Any, model: Any) -> Any:
        async with self._lock:
            await self.session.delete(instance)
            await self._finish()
        return instance

    async def _finish(self) -> None:
        if self.commit:
            await self.session.commit()
        else:
            await self.session.flush()
