"""Process log: append-mostly history of workflow step executions.

The log answers "where is application X in workflow Y" and whether a prior step
has finished. It is bookkeeping: every operation returns a
:class:`~litestar_flowgraph.core.result.StoreResult` instead of raising on store
failures, so a failed log write never aborts the step it records. Malformed
workflow ids are the exception and raise to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar_flowgraph.core.definition import parse_workflow_id
from litestar_flowgraph.core.models import DependencyStatus, Progress
from litestar_flowgraph.core.types import START, LogStatus
from litestar_flowgraph.db.models import ProcessLogModel
from litestar_flowgraph.db.repositories import ProcessLogRepository
from litestar_flowgraph.engine.base import StoreService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_flowgraph.core.definition import WorkflowGraph
    from litestar_flowgraph.core.models import ProcessLogEntry
    from litestar_flowgraph.core.result import StoreResult
    from litestar_flowgraph.core.types import Clock

__all__ = ["ProcessLog"]

logger = logging.getLogger(__name__)


class ProcessLog(StoreService):
    """Service recording and querying step executions.

    Example:
        >>> log = ProcessLog(session)
        >>> log_id = (await log.insert(graph, "APP-1", "tt_app1", "u1", "start", "e1")).value
        >>> await log.update_status(log_id, "u1", "finished")
        >>> (await log.check_dependency("start", "APP-1", graph.workflow_id)).value.satisfied
        True
    """

    def __init__(self, session: AsyncSession, clock: Clock | None = None) -> None:
        """Initialize the process log.

        Args:
            session: SQLAlchemy async session.
            clock: Optional clock; defaults to UTC now.
        """
        super().__init__(session, clock)
        self._repo = ProcessLogRepository(session=session)

    async def insert(
        self,
        graph: WorkflowGraph,
        app_id: str,
        ttable: str,
        user_id: str,
        source_id: str,
        edge_id: str,
        data: dict[str, Any] | None = None,
        notes: str | None = None,
        status: str = LogStatus.PROCESS,
    ) -> StoreResult[int]:
        """Record the start of a step.

        The first entry of a run (``source_id`` ``start``) records the workflow
        version as its notes, ignoring ``notes``.

        Args:
            graph: The workflow being executed.
            app_id: Application identifier.
            ttable: Working record table name.
            user_id: User starting the step.
            source_id: Node or edge label producing the entry.
            edge_id: Id of the executed edge.
            data: Optional payload.
            notes: Optional notes.
            status: Initial status.

        Returns:
            The new entry id.

        Raises:
            InvalidWorkflowCodeError: If the graph code is not ``W<number>``.
        """
        workflow_id = graph.workflow_id
        if source_id.lower() == START:
            if graph.version is None:
                logger.warning("Workflow %s has no header version; start entry notes left empty", graph.flows_code)
            notes = graph.version or ""
        now = self.clock()
        model = ProcessLogModel(
            app_id=app_id,
            ttable=ttable,
            user_id=user_id,
            source_id=source_id,
            workflow_id=workflow_id,
            edge_id=edge_id,
            status=str(status),
            action_date=now,
            finish_date=None,
            data=dict(data or {}),
            notes=notes or "",
            processing_time=now,
        )

        async def work() -> int:
            added = await self._repo.add(model)
            return added.id

        return await self._run("process_log.insert", work)

    async def update_status(
        self,
        log_id: int,
        user_id: str,
        status: str,
        data: dict[str, Any] | None = None,
    ) -> StoreResult[int]:
        """Mark an entry with a completion status.

        Sets ``finish_date``, ``status`` and ``user_id``, merges ``data`` over the
        stored payload and refreshes ``processing_time``. ``source_id`` and ``edge_id`` are kept.

        Args:
            log_id: The entry id.
            user_id: User completing the step.
            status: The new status, typically ``finished``.
            data: Optional payload merged over the stored one.

        Returns:
            The entry id, or None as value when no such entry exists.
        """

        async def work() -> int | None:
            entry = await self._repo.set_status(
                log_id,
                user_id=user_id,
                status=str(status),
                data=data,
                finish_date=self.clock(),
            )
            return entry.id if entry else None

        return await self._run("process_log.update_status", work)

    async def update_data(self, log_id: int, data: dict[str, Any]) -> StoreResult[ProcessLogEntry]:
        """Replace the payload of an entry.

        Args:
            log_id: The entry id.
            data: The replacement payload.

        Returns:
            The updated entry, or None as value when no such entry exists.
        """

        async def work() -> ProcessLogEntry | None:
            entry = await self._repo.set_data(log_id, dict(data), self.clock())
            return entry.to_entry() if entry else None

        return await self._run("process_log.update_data", work)

    async def remove(self, log_id: int) -> StoreResult[int]:
        """Delete an entry (administrative removal only).

        Args:
            log_id: The entry id.

        Returns:
            The removed id, or None as value when no such entry exists.
        """

        async def work() -> int | None:
            entry = await self._repo.get_one_or_none(id=log_id)
            if entry is None:
                return None
            await self._repo.delete(log_id)
            return log_id

        return await self._run("process_log.remove", work)

    async def latest_by_app_id(self, app_id: str) -> StoreResult[ProcessLogEntry]:
        """Get the most recently written entry of an application.

        Args:
            app_id: Application identifier.

        Returns:
            The entry, or None as value when the application has no entries.
        """

        async def work() -> ProcessLogEntry | None:
            entry = await self._repo.latest_for_app(app_id)
            return entry.to_entry() if entry else None

        return await self._run("process_log.latest_by_app_id", work, commit=False)

    async def history(self, app_id: str) -> StoreResult[list[ProcessLogEntry]]:
        """Get every entry of an application in id order.

        Args:
            app_id: Application identifier.

        Returns:
            The entries; an empty list as value on failure.
        """

        async def work() -> list[ProcessLogEntry]:
            return [entry.to_entry() for entry in await self._repo.find_by_app(app_id)]

        return await self._run("process_log.history", work, default=[], commit=False)

    async def check_dependency(
        self,
        source_id: str,
        app_id: str,
        workflow_id: int | str,
    ) -> StoreResult[DependencyStatus]:
        """Check whether a prior step has finished for an application.

        Only the newest entry (by id) for ``(app_id, workflow_id, source_id)``
        counts; ``source_id`` is matched case-insensitively.

        Args:
            source_id: Source id of the prior step.
            app_id: Application identifier.
            workflow_id: Numeric workflow id, or a ``W<id>`` code.

        Returns:
            The dependency state, or None as value when the step was never
            attempted.

        Raises:
            InvalidWorkflowCodeError: If ``workflow_id`` is not numeric.
        """
        numeric_id = parse_workflow_id(workflow_id)

        async def work() -> DependencyStatus | None:
            entry = await self._repo.latest_for_source(app_id, numeric_id, source_id)
            if entry is None:
                return None
            return DependencyStatus(
                app_id=app_id,
                workflow_id=numeric_id,
                edge_id=entry.edge_id,
                status=entry.status,
                satisfied=entry.status.casefold() == LogStatus.FINISHED.value,
            )

        return await self._run("process_log.check_dependency", work, commit=False)

    async def calc_progress(self, graph: WorkflowGraph, app_id: str) -> StoreResult[Progress]:
        """Calculate how far an application has advanced through a workflow.

        Repeated visits to the same source count once.

        Args:
            graph: The workflow graph.
            app_id: Application identifier.

        Returns:
            ``(total_steps, current_step)``; ``(0, 0)`` as value on failure.
        """

        async def work() -> Progress:
            current = await self._repo.count_distinct_sources(app_id)
            return Progress(total_steps=len(graph.edges), current_step=current)

        return await self._run("process_log.calc_progress", work, default=Progress(0, 0), commit=False)
