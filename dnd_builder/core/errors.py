# ABOUTME: Error taxonomy for the character builder service
# ABOUTME: Invalid-argument, not-found, invalid-state and persistence errors carrying context

from typing import Any, Dict, Optional


class BuilderError(Exception):
    """
    Base error for character builder operations.

    Carries the name of the failing operation and a context dictionary
    (character IDs, rule keys, statuses) so callers and logs can tell
    exactly which call failed and on what.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None
    ):
        """
        Initialize the error.

        Args:
            message: Human readable error message
            operation: Name of the service operation that failed
            context: Extra key/value context (IDs, keys, statuses)
            cause: Underlying exception, if this error wraps another
        """
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context: Dict[str, Any] = dict(context) if context else {}
        self.cause = cause

    def with_context(self, **kwargs: Any) -> "BuilderError":
        """
        Attach context to the error (builder style).

        Returns:
            The same error instance, for chaining in a raise statement
        """
        self.context.update(kwargs)
        return self

    def in_operation(self, operation: str) -> "BuilderError":
        """Record the operation name if one is not already set."""
        if self.operation is None:
            self.operation = operation
        return self

    def __str__(self) -> str:
        text = self.message
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        if self.operation:
            text = f"[{self.operation}] {text}"
        return text


class InvalidArgumentError(BuilderError, ValueError):
    """A required identifier was missing or an input was malformed."""


class NotFoundError(BuilderError, LookupError):
    """An unknown character, draft, session or rule key was requested."""


class InvalidStateError(BuilderError):
    """The operation is not allowed in the record's current state."""


class PersistenceError(BuilderError):
    """A store failed to read or write a record."""


def is_not_found(error: BaseException) -> bool:
    """Check whether an error (or the error it wraps) is a NotFoundError."""
    while error is not None:
        if isinstance(error, NotFoundError):
            return True
        error = getattr(error, "cause", None)
    return False
