"""Workflow definition store.

Loads and persists workflow graph documents by code. Unlike the bookkeeping
services, failures here propagate: a step cannot be navigated without its
definition.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from litestar_flowgraph.core.definition import normalize_flows_code
from litestar_flowgraph.core.types import utc_now
from litestar_flowgraph.db.repositories import WorkflowConfigRepository
from litestar_flowgraph.engine.navigator import GraphNavigator
from litestar_flowgraph.exceptions import WorkflowDefinitionNotFoundError, WorkflowValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_flowgraph.core.definition import WorkflowGraph
    from litestar_flowgraph.core.types import Clock

__all__ = ["WorkflowDefinitionStore"]

logger = logging.getLogger(__name__)


class WorkflowDefinitionStore:
    """Store for workflow graph documents.

    Attributes:
        session: SQLAlchemy async session for database operations.
        clock: Source of ``processing_time`` stamps.

    Example:
        >>> store = WorkflowDefinitionStore(session)
        >>> graph = await store.get(12)
        >>> graph.flows_code
        'W12'
    """

    def __init__(self, session: AsyncSession, clock: Clock | None = None) -> None:
        """Initialize the store.

        Args:
            session: SQLAlchemy async session.
            clock: Optional clock; defaults to UTC now.
        """
        self.session = session
        self.clock = clock or utc_now
        self._repo = WorkflowConfigRepository(session=session)

    async def get(self, code: str | int) -> WorkflowGraph:
        """Load a workflow graph.

        Args:
            code: Workflow code; prefixed with ``W`` unless it already is.

        Returns:
            The stored graph.

        Raises:
            WorkflowDefinitionNotFoundError: If no graph is stored under the code.
        """
        flows_code = normalize_flows_code(code)
        model = await self._repo.get_by_code(flows_code)
        if model is None:
            raise WorkflowDefinitionNotFoundError(flows_code)
        return model.to_graph()

    async def get_navigator(self, code: str | int) -> GraphNavigator:
        """Load a workflow graph and index it for navigation.

        Args:
            code: Workflow code.

        Returns:
            A navigator over the stored graph.
        """
        return GraphNavigator.from_graph(await self.get(code))

    async def upsert(self, graph: WorkflowGraph) -> WorkflowGraph:
        """Replace the graph stored under its code, creating it if absent.

        The whole document is replaced and ``processing_time`` refreshed.

        Args:
            graph: The graph to store.

        Returns:
            The graph as stored, with ``processing_time`` set.

        Raises:
            WorkflowValidationError: If the graph is structurally invalid.
        """
        errors = graph.validate()
        if errors:
            raise WorkflowValidationError(errors)

        graph.flows_code = normalize_flows_code(graph.flows_code)
        graph.processing_time = self.clock()
        document = graph.to_document()
        try:
            model = await self._repo.replace_document(graph.flows_code, document, graph.processing_time)
            stored = model.to_graph()
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise
        logger.debug("Stored workflow %s (%d nodes, %d edges)", graph.flows_code, len(graph.nodes), len(graph.edges))
        return stored

    async def remove(self, code: str | int) -> bool:
        """Delete a stored graph.

        Args:
            code: Workflow code.

        Returns:
            True if a graph was deleted.
        """
        flows_code = normalize_flows_code(code)
        try:
            deleted = await self._repo.delete_by_code(flows_code)
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise
        return deleted
