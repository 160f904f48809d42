"""Base class for store backed services.

Process log and TTable operations are bookkeeping: a store failure must not abort
the workflow step being recorded. :class:`StoreService` runs each operation as
one unit of work and converts store failures into failed
:class:`~litestar_flowgraph.core.result.StoreResult` values.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from litestar_flowgraph.core.result import StoreResult
from litestar_flowgraph.core.types import utc_now
from litestar_flowgraph.exceptions import FlowGraphError, StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_flowgraph.core.types import Clock

__all__ = ["StoreService"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreService:
    """Session owning service with failure-to-result conversion.

    Attributes:
        session: SQLAlchemy async session for database operations.
        clock: Source of write timestamps.
    """

    def __init__(self, session: AsyncSession, clock: Clock | None = None) -> None:
        """Initialize the service.

        Args:
            session: SQLAlchemy async session.
            clock: Optional clock; defaults to UTC now.
        """
        self.session = session
        self.clock = clock or utc_now

    async def _run(
        self,
        operation: str,
        work: Callable[[], Awaitable[T]],
        *,
        default: T | None = None,
        commit: bool = True,
    ) -> StoreResult[T]:
        """Run ``work`` as one unit of work.

        Engine errors (e.g. not found) are returned as-is; any other exception is
        logged and wrapped in :class:`StoreUnavailableError`. Cancellation rolls
        back and propagates.

        Args:
            operation: Operation name used in logs and errors.
            work: The coroutine factory doing the store calls.
            default: Neutral value exposed by failed results.
            commit: Whether to commit after ``work`` succeeds.

        Returns:
            The result of ``work`` or the failure.
        """
        try:
            value = await work()
            if commit:
                await self.session.commit()
        except asyncio.CancelledError:
            await self._rollback()
            raise
        except FlowGraphError as e:
            await self._rollback()
            return StoreResult.failure(e, default)
        except Exception as e:
            await self._rollback()
            logger.exception("Store operation %s failed", operation)
            return StoreResult.failure(StoreUnavailableError(operation, e), default)
        return StoreResult.success(value)

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except Exception:
            logger.warning("Rollback failed", exc_info=True)
