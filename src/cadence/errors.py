"""
Structured error types for the cadence scheduler.

Every failure the scheduler observes falls into one of three kinds, and each
kind has a fixed handling rule:

- **ConfigurationError:** invalid registration arguments. Raised
  synchronously to the caller; the item never reaches the scheduler.
- **ExecutionError:** a callback failed. Logged with the item identity,
  then handled by the tick pipeline (ticking items rerun next tick,
  deadline items are backoff-rescheduled). Never escapes a tick.
- **InternalSchedulerError:** something escaped the tick pipeline itself.
  Logged distinctly; the recurring timer is rearmed regardless.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        CadenceError                              │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigurationError   ExecutionError     InternalSchedulerError  │
        │  (CONFIG)             (EXECUTION)        (INTERNAL)              │
        │  retryable=False      retryable=True     retryable=False         │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ConfigurationError("Negative minutes value: -1")
    >>> error.retryable
    False

    >>> try:
    ...     raise ConnectionError("refused")
    ... except ConnectionError as e:
    ...     error = ExecutionError("refresh failed", cause=e).with_context(item_id="oauth")
    >>> error.context.item_id
    'oauth'

Guardrails:
    ❌ DON'T: Let a callback exception escape the tick as-is
    ✅ DO: Wrap it in ExecutionError with cause= and the item id

    ❌ DON'T: Register an item and validate later
    ✅ DO: Raise ConfigurationError before the item is constructed

Tags:
    error-handling, exception-hierarchy, scheduler, cadence
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"          # Invalid registration arguments, settings
    EXECUTION = "EXECUTION"    # Callback failures
    INTERNAL = "INTERNAL"      # Scheduler bugs, unexpected state
    UNKNOWN = "UNKNOWN"        # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        item_id: Id of the work item involved
        item_kind: Kind of the work item (ticking, one_shot, repeating)
        reschedule_count: Consecutive failures of the item so far
        metadata: Additional key-value pairs
    """

    item_id: str | None = None
    item_kind: str | None = None
    reschedule_count: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["item_id", "item_kind", "reschedule_count"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CadenceError(Exception):
    """
    Base exception for all cadence errors.

    Subclasses set ``default_category`` and ``default_retryable`` so the
    common cases need only a message.

    Examples:
        >>> error = CadenceError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CadenceError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ExecutionError("Failed", cause=e).with_context(item_id="sync")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigurationError(CadenceError):
    """Invalid registration arguments or settings.

    Surfaced synchronously to the registering caller; never retryable.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class ExecutionError(CadenceError):
    """A work item's callback raised or its awaitable failed.

    The original exception is available as ``cause`` (and ``__cause__``).
    """

    default_category = ErrorCategory.EXECUTION
    default_retryable = True


class InternalSchedulerError(CadenceError):
    """An exception escaped the tick pipeline: a scheduler bug."""

    default_category = ErrorCategory.INTERNAL
    default_retryable = False


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CadenceError):
        return error.retryable
    return False


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CadenceError):
        return error.category
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CadenceError",
    "ConfigurationError",
    "ExecutionError",
    "InternalSchedulerError",
    "is_retryable",
    "categorize_error",
]
