"""Value-or-failure wrapper for bookkeeping operations.

Process log and TTable operations never raise on store failures; they return a
:class:`StoreResult` whose ``error`` tells callers apart "no data" from "store
unreachable".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

__all__ = ["StoreResult"]

T = TypeVar("T")


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store backed operation.

    Attributes:
        value: The produced value. ``None`` may be a legitimate "nothing found".
        error: The failure, or ``None`` when the operation succeeded.

    Example:
        >>> result = await process_log.check_dependency("review", "APP-1", 12)
        >>> if not result.ok:
        ...     alert(result.error)
        >>> elif result.value is None:
        ...     print("review has not run yet")
    """

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> StoreResult[T]:
        """Build a successful result.

        Args:
            value: The produced value.

        Returns:
            A result without error.
        """
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception, default: T | None = None) -> StoreResult[T]:
        """Build a failed result.

        Args:
            error: The failure.
            default: Neutral value to expose as ``value``.

        Returns:
            A result carrying the error.
        """
        return cls(value=default, error=error)

    def unwrap(self) -> T | None:
        """Return the value or raise the carried error.

        Raises:
            Exception: The carried error, if any.
        """
        if self.error is not None:
            raise self.error
        return self.value
