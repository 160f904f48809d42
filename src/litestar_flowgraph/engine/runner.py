"""Step runner wiring the engine components together.

The runner executes one workflow step in a fixed order: load the definition,
resolve the next edge, check dependencies, record the start in the process log,
run the external action, fold its results into the TTable and mark the log entry
with the outcome. Bookkeeping failures are logged and do not abort the step,
except a TTable that cannot be read, which fails the step before its action runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from litestar_flowgraph.core.models import TTable
from litestar_flowgraph.core.types import ANY_LABEL, LogStatus, StrEnum
from litestar_flowgraph.engine.navigator import GraphNavigator
from litestar_flowgraph.exceptions import TTableNotFoundError

if TYPE_CHECKING:
    from litestar_flowgraph.core.definition import Edge
    from litestar_flowgraph.core.models import DependencyStatus
    from litestar_flowgraph.core.protocols import EventBus, ProcessConnector, StepAction
    from litestar_flowgraph.core.types import Document
    from litestar_flowgraph.engine.definitions import WorkflowDefinitionStore
    from litestar_flowgraph.engine.process_log import ProcessLog
    from litestar_flowgraph.engine.ttable import TTableProjector

__all__ = ["ConnectorStepAction", "StepOutcome", "StepOutcomeKind", "WorkflowStepRunner"]

logger = logging.getLogger(__name__)


class StepOutcomeKind(StrEnum):
    """How a step run ended.

    Attributes:
        END: Navigation reached the terminal edge; nothing was executed.
        BLOCKED: A dependency has not finished; nothing was executed.
        COMPLETED: The step ran and its log entry was marked finished.
        FAILED: The external action raised, or the TTable could not be loaded;
            the log entry was marked failed.
    """

    END = "end"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StepOutcome:
    """Result of :meth:`WorkflowStepRunner.run_step`.

    Attributes:
        kind: How the run ended.
        edge: The edge resolved for the step.
        log_id: Id of the process log entry, when one was written.
        ttable: The application's working record after the step.
        output: The external action's response.
        blocked_by: Source id of the unfinished dependency.
        dependency: State of that dependency; None when it never ran.
        error: The action's exception, or the store error that blocked the step.
    """

    kind: StepOutcomeKind
    edge: Edge
    log_id: int | None = None
    ttable: TTable | None = None
    output: Document | None = None
    blocked_by: str | None = None
    dependency: DependencyStatus | None = None
    error: Exception | None = None


class ConnectorStepAction:
    """Step action calling the connector named by the edge type.

    Attributes:
        connector: The process connector.
        name: Connector name; defaults to the edge's ``data.type``.
        build_payload: Optional request body builder.
    """

    def __init__(
        self,
        connector: ProcessConnector,
        name: str | None = None,
        build_payload: Callable[[Edge, TTable | None], Document] | None = None,
    ) -> None:
        self.connector = connector
        self.name = name
        self.build_payload = build_payload or _default_payload

    async def __call__(self, edge: Edge, ttable: TTable | None) -> Document | None:
        return await self.connector.call(self.name or edge.type, self.build_payload(edge, ttable))


class WorkflowStepRunner:
    """Execute single workflow steps against the stores.

    Attributes:
        definitions: Store the workflow graphs are loaded from.
        process_log: Log the step executions are recorded in.
        projector: Projector the action results are folded into.
        event_bus: Optional event bus for step events.

    Example:
        >>> runner = WorkflowStepRunner(definitions, process_log, projector)
        >>> outcome = await runner.run_step("W12", "APP-1", "u1", action=ConnectorStepAction(connector))
        >>> outcome.kind
        <StepOutcomeKind.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        definitions: WorkflowDefinitionStore,
        process_log: ProcessLog,
        projector: TTableProjector,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            definitions: Workflow definition store.
            process_log: Process log.
            projector: TTable projector.
            event_bus: Optional event bus implementing ``emit``.
        """
        self.definitions = definitions
        self.process_log = process_log
        self.projector = projector
        self.event_bus = event_bus

    async def run_step(
        self,
        code: str | int,
        app_id: str,
        user_id: str,
        source_id: str = "",
        label: str = ANY_LABEL,
        ttable_name: str | None = None,
        depends_on: Sequence[str] = (),
        action: StepAction | None = None,
    ) -> StepOutcome:
        """Run the step following ``source_id`` for an application.

        Args:
            code: Workflow code.
            app_id: Application identifier.
            user_id: User running the step.
            source_id: Node the application sits on; blank means ``start``.
            label: Branch label chosen by the previous step.
            ttable_name: Working record table name logged with the entry;
                defaults to ``app_id``.
            depends_on: Source ids that must have finished first.
            action: External work of the step; its response is folded into the
                TTable.

        Returns:
            The step outcome.

        Raises:
            WorkflowDefinitionNotFoundError: If no graph is stored under ``code``.
            InvalidWorkflowCodeError: If the stored code is not numeric.
        """
        graph = await self.definitions.get(code)
        edge = GraphNavigator(graph).get_next_action(source_id, label)
        if edge.is_end:
            await self._emit("step.end", app_id=app_id, flows_code=graph.flows_code, source_id=source_id)
            return StepOutcome(kind=StepOutcomeKind.END, edge=edge)

        for dependency in depends_on:
            checked = await self.process_log.check_dependency(dependency, app_id, graph.workflow_id)
            if checked.ok and checked.value is not None and checked.value.satisfied:
                continue
            await self._emit("step.blocked", app_id=app_id, edge_id=edge.id, blocked_by=dependency)
            return StepOutcome(
                kind=StepOutcomeKind.BLOCKED,
                edge=edge,
                blocked_by=dependency,
                dependency=checked.value,
                error=checked.error,
            )

        inserted = await self.process_log.insert(graph, app_id, ttable_name or app_id, user_id, edge.source, edge.id)
        if not inserted.ok:
            logger.warning("Step %s of %s runs unlogged: %s", edge.id, app_id, inserted.error)
        log_id = inserted.value
        await self._emit("step.started", app_id=app_id, edge_id=edge.id, log_id=log_id)

        loaded = await self.projector.get(app_id)
        if not loaded.ok and not isinstance(loaded.error, TTableNotFoundError):
            # an unreadable record must not be overwritten
            error = loaded.error
            logger.warning("TTable of %s unavailable; step %s not run: %s", app_id, edge.id, error)
            await self._mark(log_id, user_id, LogStatus.FAILED, {"error": str(error)})
            await self._emit("step.failed", app_id=app_id, edge_id=edge.id, log_id=log_id, error=str(error))
            return StepOutcome(kind=StepOutcomeKind.FAILED, edge=edge, log_id=log_id, error=error)
        ttable = loaded.value
        output: Document | None = None
        if action is not None:
            try:
                output = await action(edge, ttable)
            except Exception as e:
                logger.warning("Step %s of %s failed: %s", edge.id, app_id, e)
                await self._mark(log_id, user_id, LogStatus.FAILED, {"error": str(e)})
                await self._emit("step.failed", app_id=app_id, edge_id=edge.id, log_id=log_id, error=str(e))
                return StepOutcome(kind=StepOutcomeKind.FAILED, edge=edge, log_id=log_id, ttable=ttable, error=e)

        if output:
            merged = await self.projector.merge_decision_output(ttable or TTable(app_id=app_id), output)
            if not merged.ok:
                logger.warning("TTable of %s not persisted: %s", app_id, merged.error)
            ttable = merged.value

        await self._mark(log_id, user_id, LogStatus.FINISHED)
        await self._emit("step.completed", app_id=app_id, edge_id=edge.id, log_id=log_id)
        return StepOutcome(kind=StepOutcomeKind.COMPLETED, edge=edge, log_id=log_id, ttable=ttable, output=output)

    async def _mark(self, log_id: int | None, user_id: str, status: LogStatus, data: Document | None = None) -> None:
        if log_id is None:
            return
        updated = await self.process_log.update_status(log_id, user_id, status, data)
        if not updated.ok:
            logger.warning("Could not mark log entry %s %s: %s", log_id, status, updated.error)

    async def _emit(self, event_type: str, **kwargs: Any) -> None:
        if self.event_bus:
            await self.event_bus.emit(event_type, **kwargs)


def _default_payload(edge: Edge, ttable: TTable | None) -> Document:
    return {
        "edge": edge.to_document(),
        "ttable": ttable.to_document() if ttable is not None else {},
    }
