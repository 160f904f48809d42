"""Background persistence of merged TTables.

The projector returns a merged working record without waiting for it to be
written. Writes are handed to :class:`TTablePersistenceQueue`, a bounded queue
drained by one worker task; failed writes are logged, emitted on the event bus
and pushed to the ``errors`` channel instead of being dropped silently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from litestar_flowgraph.core.models import PersistenceFailure, TTable
from litestar_flowgraph.core.types import utc_now
from litestar_flowgraph.db.repositories import TTableRepository

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from litestar_flowgraph.core.protocols import EventBus
    from litestar_flowgraph.core.types import Clock

__all__ = ["PERSIST_FAILED_EVENT", "TTablePersistenceQueue"]

logger = logging.getLogger(__name__)

PERSIST_FAILED_EVENT = "ttable.persist_failed"
"""Event emitted when a queued TTable write fails."""


class TTablePersistenceQueue:
    """Bounded queue of TTable writes drained by a background worker.

    Every job runs in its own session, so writes never share the request's
    session. A job cancelled mid-write is rolled back.

    Attributes:
        session_maker: Factory for the worker's sessions.
        maxsize: Capacity of the job queue. Writes submitted while it is full
            are held in an overflow buffer, so ``submit`` never waits.
        event_bus: Optional event bus failures are emitted on.
        errors: Channel of :class:`PersistenceFailure` items for monitoring.

    Example:
        >>> async with TTablePersistenceQueue(session_maker) as queue:
        ...     projector = TTableProjector(session, persistence=queue)
        ...     merged = (await projector.merge_stage_results(ttable, output)).value
        ...     await queue.join()
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        maxsize: int = 100,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
        error_channel_size: int = 100,
    ) -> None:
        """Initialize the queue.

        Args:
            session_maker: Factory for the worker's sessions.
            maxsize: Capacity of the job queue.
            event_bus: Optional event bus failures are emitted on.
            clock: Optional clock used to stamp failures.
            error_channel_size: Capacity of ``errors``; the newest failures are
                dropped (and logged) once it is full.
        """
        self.session_maker = session_maker
        self.maxsize = maxsize
        self.event_bus = event_bus
        self.clock = clock or utc_now
        self.errors: asyncio.Queue[PersistenceFailure] = asyncio.Queue(maxsize=error_channel_size)
        self._jobs: asyncio.Queue[TTable] = asyncio.Queue(maxsize=maxsize)
        self._overflow: deque[TTable] = deque()
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the worker task is alive."""
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        """Start the worker task. Starting a running queue is a no-op."""
        if self.running:
            return
        self._refill()
        self._worker = asyncio.create_task(self._run(), name="ttable-persistence")

    async def stop(self, *, drain: bool = True) -> None:
        """Stop the worker task.

        Args:
            drain: Wait for queued writes to finish before stopping.
        """
        if self._worker is None:
            return
        if drain and self.running:
            await self._jobs.join()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    async def __aenter__(self) -> TTablePersistenceQueue:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop(drain=exc_type is None)

    async def submit(self, ttable: TTable) -> None:
        """Queue a write of ``ttable``.

        A snapshot is queued, so later in-memory changes do not leak into the
        write. Never waits: when the job queue is full the snapshot is
        buffered and moved into the queue, in submission order, as the worker
        frees slots.

        Args:
            ttable: The merged record to persist.

        Raises:
            RuntimeError: If the queue has not been started.
        """
        if not self.running:
            msg = "TTablePersistenceQueue has not been started."
            raise RuntimeError(msg)
        snapshot = TTable(app_id=ttable.app_id, fields=dict(ttable.fields), processing_time=ttable.processing_time)
        if not self._overflow:
            try:
                self._jobs.put_nowait(snapshot)
            except asyncio.QueueFull:
                pass
            else:
                return
        logger.warning("TTable persistence queue full; buffering write for %s", ttable.app_id)
        self._overflow.append(snapshot)

    @property
    def pending(self) -> int:
        """Number of writes not yet picked up by the worker."""
        return self._jobs.qsize() + len(self._overflow)

    async def join(self) -> None:
        """Wait until every queued write has been processed."""
        await self._jobs.join()

    async def _run(self) -> None:
        """Worker loop."""
        while True:
            ttable = await self._jobs.get()
            try:
                await self._persist(ttable)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._report(ttable, e)
            finally:
                # join() must not return while writes are buffered
                self._refill()
                self._jobs.task_done()

    def _refill(self) -> None:
        while self._overflow and not self._jobs.full():
            self._jobs.put_nowait(self._overflow.popleft())

    async def _persist(self, ttable: TTable) -> None:
        async with self.session_maker() as session:
            repo = TTableRepository(session=session)
            try:
                await repo.replace_document(ttable.app_id, dict(ttable.fields), ttable.processing_time or self.clock())
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    async def _report(self, ttable: TTable, error: Exception) -> None:
        logger.error("Persisting TTable for %s failed", ttable.app_id, exc_info=error)
        failure = PersistenceFailure(app_id=ttable.app_id, error=error, occurred_at=self.clock())
        try:
            self.errors.put_nowait(failure)
        except asyncio.QueueFull:
            logger.warning("Persistence error channel full; dropping failure for %s", ttable.app_id)
        if self.event_bus is not None:
            try:
                await self.event_bus.emit(PERSIST_FAILED_EVENT, app_id=ttable.app_id, error=str(error))
            except Exception:
                logger.exception("Emitting %s failed", PERSIST_FAILED_EVENT)

    def __repr__(self) -> str:
        state: dict[str, Any] = {"running": self.running, "pending": self.pending, "errors": self.errors.qsize()}
        return f"{type(self).__name__}({', '.join(f'{k}={v}' for k, v in state.items())})"
