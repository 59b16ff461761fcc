"""Exception hierarchy for the factory package.

Every error raised by the factory machinery extends :class:`FactoryError`,
which carries an optional context dictionary describing what was being
resolved when things went wrong.

The hierarchy maps onto the failure classes of the library:

- Definition errors (bad model, bad initializer, duplicate name)
- Lookup errors (unknown factory, unknown random-value method)
- Validation errors (bad batch counts, malformed override lists)
- Sync resolution errors (a deferred value met on the synchronous path)

Errors raised by generators, adapters or hooks are never wrapped; they
propagate to the caller unchanged.

Example:
    ```python
    from dataknobs_factory.exceptions import FactoryError, FactoryNotFoundError

    try:
        await factory.build("unknown")
    except FactoryNotFoundError as e:
        print(e.context["available_keys"])
    ```
"""

from typing import Any, Dict


class FactoryError(Exception):
    """Base exception for the factory package.

    Attributes:
        context: Dictionary containing contextual information about the error
        details: Alias for context

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context (factory name, counts, etc.)
        details: Alternative to context (takes precedence when both are given)

    Example:
        ```python
        error = FactoryError("Build failed", context={"factory": "user"})
        str(error)
        # 'Build failed'
        error.context
        # {'factory': 'user'}
        ```
    """

    def __init__(
        self,
        message: str,
        context: Dict[str, Any] | None = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.context = details or context or {}
        self.details = self.context


class DefinitionError(FactoryError):
    """Raised when a factory or generator is defined incorrectly.

    Common scenarios include:
    - A missing model descriptor
    - An initializer that is neither a mapping nor a callable
    - Defining the same factory name twice

    Example:
        ```python
        raise DefinitionError(
            "Factory user already defined",
            context={"factory": "user"}
        )
        ```
    """

    pass


class FactoryNotFoundError(FactoryError, LookupError):
    """Raised when a factory name has not been defined."""

    pass


class GeneratorLookupError(FactoryError, LookupError):
    """Raised when a random-value method does not exist on the data generator."""

    pass


class ValidationError(FactoryError, ValueError):
    """Raised when arguments to a factory operation are invalid.

    Use this exception for malformed batch requests and generator arguments:
    - Batch counts that are not positive integers
    - Override or build-option lists that are not lists or mappings
    - Empty candidate lists for random selection

    Example:
        ```python
        raise ValidationError(
            "Invalid number of objects requested",
            context={"num": 0}
        )
        ```
    """

    pass


class SyncResolutionError(FactoryError):
    """Raised when the synchronous path meets a value that needs to be awaited."""

    pass


class ConfigurationError(FactoryError):
    """Raised when factory settings are invalid."""

    pass


__all__ = [
    "FactoryError",
    "DefinitionError",
    "FactoryNotFoundError",
    "GeneratorLookupError",
    "ValidationError",
    "SyncResolutionError",
    "ConfigurationError",
]
