from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar


class SchedulerError(Exception):
    """Base class for failures surfaced by the study scheduler."""

    kind = "scheduler_error"


class InvalidQuality(SchedulerError):
    """Quality rating outside 0..5. The caller must re-prompt."""

    kind = "invalid_quality"


class NotFound(SchedulerError):
    """No question or progress record with the requested id."""

    kind = "not_found"


class Conflict(SchedulerError):
    """Optimistic version check failed; reload and retry."""

    kind = "conflict"


class PersistenceUnavailable(SchedulerError):
    """The progress store could not be reached."""

    kind = "persistence_unavailable"


T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of a scheduler operation: either a value or a SchedulerError.

    Errors are returned, not raised, so callers branch on `ok` instead of
    wrapping every call in try/except. A successful outcome may carry a
    `None` value (e.g. no card left to study).
    """

    value: Optional[T] = None
    error: Optional[SchedulerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SchedulerError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> Optional[T]:
        """Return the value, raising the carried error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value
