"""Attribute resolution for factory templates.

A template is a tree of dicts and lists whose leaves are literals,
zero-argument callables, or awaitables. Resolution walks the template and
writes a mirror of it into a target container with every leaf evaluated:

- ``list`` values become fresh lists and are resolved element by element
- ``None`` is assigned as-is
- ``dict`` values are resolved into the existing target mapping at that key,
  or a fresh one
- callables (other than classes) are invoked and their result assigned
- awaitables are awaited and their result assigned
- anything else is a literal

All deferred leaves found while walking are awaited concurrently, and
their results are assigned only once every one of them has succeeded. If a
deferred leaf fails, the first failure is raised; the other leaves are not
cancelled, but none of the deferred results are written into the target.

Example:
    ```python
    attrs = {}
    await populate(attrs, {"name": "Job", "tags": ["a", lambda: "b"]})
    attrs
    # {'name': 'Job', 'tags': ['a', 'b']}
    ```
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable
from typing import Any, List, Tuple

from dataknobs_factory.exceptions import SyncResolutionError

Container = dict | list
Pending = List[Tuple[Container, Any, Awaitable[Any]]]


def is_container(value: Any) -> bool:
    """Check whether a value is a container the resolver descends into."""
    return isinstance(value, (dict, list))


def is_leaf_function(value: Any) -> bool:
    """Check whether a template leaf should be invoked to produce its value."""
    return callable(value) and not isinstance(value, type)


def populate(target: Container, source: Container) -> Awaitable[None]:
    """Resolve ``source`` into ``target`` in place.

    Argument validation happens before any leaf is touched, so a bad
    argument raises immediately rather than when the result is awaited.

    Literal and synchronous leaves are written during the walk; deferred
    results are written only after all of them have resolved, so a failed
    resolution leaves no deferred values behind in ``target``.

    Args:
        target: Dict or list receiving the resolved values
        source: Template (or override mapping) to resolve

    Returns:
        Awaitable that completes once every leaf has been assigned

    Raises:
        TypeError: If target or source is not a dict or list
    """
    _check_arguments(target, source)
    return _populate(target, source)


def populate_sync(target: Container, source: Container) -> None:
    """Resolve ``source`` into ``target`` without suspending.

    Raises:
        TypeError: If target or source is not a dict or list
        SyncResolutionError: As soon as a leaf produces an awaitable
    """
    _check_arguments(target, source)
    _walk(target, source, None)


async def _populate(target: Container, source: Container) -> None:
    pending: Pending = []
    try:
        _walk(target, source, pending)
    except BaseException:
        _discard(pending)
        raise

    if not pending:
        return

    values = await asyncio.gather(*(awaitable for _, _, awaitable in pending))
    for (container, key, _), value in zip(pending, values):
        container[key] = value


def _check_arguments(target: Any, source: Any) -> None:
    if not is_container(target):
        raise TypeError(f"Invalid target passed: expected dict or list, got {type(target).__name__}")
    if not is_container(source):
        raise TypeError(f"Invalid source passed: expected dict or list, got {type(source).__name__}")


def _keys(source: Container) -> Any:
    return range(len(source)) if isinstance(source, list) else list(source.keys())


def _existing(target: Container, key: Any) -> Any:
    if isinstance(target, list):
        return target[key] if key < len(target) else None
    return target.get(key)


def _walk(target: Container, source: Container, pending: Pending | None) -> None:
    """Assign every leaf that is ready and queue the deferred ones.

    With ``pending`` set to None the walk is synchronous and any deferred
    leaf is an error.
    """
    if isinstance(target, list) and len(target) < len(source):
        target.extend([None] * (len(source) - len(target)))

    for key in _keys(source):
        value = source[key]

        if isinstance(value, list):
            target[key] = []
            _walk(target[key], value, pending)
        elif value is None:
            target[key] = None
        elif isinstance(value, dict):
            existing = _existing(target, key)
            target[key] = existing if isinstance(existing, dict) else {}
            _walk(target[key], value, pending)
        else:
            if is_leaf_function(value):
                value = value()
            if inspect.isawaitable(value):
                if pending is None:
                    _discard([(target, key, value)])
                    raise SyncResolutionError(
                        f"Attribute '{key}' produced a deferred value during synchronous resolution",
                        context={"attribute": key},
                    )
                pending.append((target, key, value))
            else:
                target[key] = value


def _discard(pending: Pending) -> None:
    # Close coroutines that will never be awaited.
    for _, _, awaitable in pending:
        if inspect.iscoroutine(awaitable):
            awaitable.close()


__all__ = [
    "populate",
    "populate_sync",
    "is_container",
    "is_leaf_function",
]
