"""Repository implementations for workflow graph persistence.

This module provides async repositories for the workflow graph, process log and
TTable models using advanced-alchemy's repository pattern. Repositories flush;
committing is left to the services that own the unit of work.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import and_, distinct, func, select

from litestar_flowgraph.db.models import ProcessLogModel, TTableModel, WorkflowConfigModel

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "ProcessLogRepository",
    "TTableRepository",
    "WorkflowConfigRepository",
]


class WorkflowConfigRepository(SQLAlchemyAsyncRepository[WorkflowConfigModel]):
    """Repository for workflow graph documents."""

    model_type = WorkflowConfigModel

    async def get_by_code(self, flows_code: str) -> WorkflowConfigModel | None:
        """Get a workflow graph by its canonical code.

        Args:
            flows_code: The canonical ``W<id>`` code.

        Returns:
            The stored graph or None if not found.
        """
        stmt = select(WorkflowConfigModel).where(WorkflowConfigModel.flows_code == flows_code).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace_document(
        self,
        flows_code: str,
        document: dict[str, Any],
        processing_time: datetime,
    ) -> WorkflowConfigModel:
        """Replace the document stored under ``flows_code``, creating it if absent.

        Args:
            flows_code: The canonical code.
            document: The full replacement document.
            processing_time: Write timestamp.

        Returns:
            The stored row.
        """
        existing = await self.get_by_code(flows_code)
        if existing is None:
            return await self.add(
                WorkflowConfigModel(flows_code=flows_code, document=document, processing_time=processing_time)
            )
        existing.document = document
        existing.processing_time = processing_time
        await self.session.flush()
        return existing

    async def delete_by_code(self, flows_code: str) -> bool:
        """Delete the graph stored under ``flows_code``.

        Args:
            flows_code: The canonical code.

        Returns:
            True if a graph was deleted.
        """
        existing = await self.get_by_code(flows_code)
        if existing is None:
            return False
        await self.session.delete(existing)
        await self.session.flush()
        return True


class ProcessLogRepository(SQLAlchemyAsyncRepository[ProcessLogModel]):
    """Repository for process log entries.

    Provides the ordered lookups dependency checks and progress calculation
    rely on.
    """

    model_type = ProcessLogModel

    async def latest_for_app(self, app_id: str) -> ProcessLogModel | None:
        """Get the most recently written entry of an application.

        Args:
            app_id: The application identifier.

        Returns:
            The entry with the latest ``processing_time`` (highest id on ties), or None.
        """
        stmt = (
            select(ProcessLogModel)
            .where(ProcessLogModel.app_id == app_id)
            .order_by(ProcessLogModel.processing_time.desc(), ProcessLogModel.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def latest_for_source(self, app_id: str, workflow_id: int, source_id: str) -> ProcessLogModel | None:
        """Get the newest entry for a step, matching ``source_id`` case-insensitively.

        Both sides are folded by the database's ``lower()``; SQLite folds ASCII
        letters only.

        Args:
            app_id: The application identifier.
            workflow_id: The numeric workflow id.
            source_id: The step source id.

        Returns:
            The entry with the highest id, or None.
        """
        stmt = (
            select(ProcessLogModel)
            .where(
                and_(
                    ProcessLogModel.app_id == app_id,
                    ProcessLogModel.workflow_id == workflow_id,
                    func.lower(ProcessLogModel.source_id) == func.lower(source_id),
                )
            )
            .order_by(ProcessLogModel.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_distinct_sources(self, app_id: str) -> int:
        """Count the distinct source ids logged for an application.

        Args:
            app_id: The application identifier.

        Returns:
            Number of distinct sources.
        """
        stmt = select(func.count(distinct(ProcessLogModel.source_id))).where(ProcessLogModel.app_id == app_id)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def find_by_app(self, app_id: str) -> Sequence[ProcessLogModel]:
        """Find all entries of an application.

        Args:
            app_id: The application identifier.

        Returns:
            Entries in id order.
        """
        stmt = select(ProcessLogModel).where(ProcessLogModel.app_id == app_id).order_by(ProcessLogModel.id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def set_status(
        self,
        log_id: int,
        *,
        user_id: str,
        status: str,
        data: dict[str, Any] | None,
        finish_date: datetime,
    ) -> ProcessLogModel | None:
        """Set the completion fields of an entry.

        Args:
            log_id: The entry id.
            user_id: The user completing the step.
            status: The new status.
            data: Payload merged over the stored one, key by key.
            finish_date: Completion and write timestamp.

        Returns:
            The updated entry or None if not found.
        """
        entry = await self.get_one_or_none(id=log_id)
        if entry:
            entry.status = status
            entry.user_id = user_id
            entry.finish_date = finish_date
            entry.data = {**(entry.data or {}), **(data or {})}
            entry.processing_time = finish_date
            await self.session.flush()
        return entry

    async def set_data(self, log_id: int, data: dict[str, Any], processing_time: datetime) -> ProcessLogModel | None:
        """Replace the payload of an entry.

        Args:
            log_id: The entry id.
            data: The replacement payload.
            processing_time: Write timestamp.

        Returns:
            The updated entry or None if not found.
        """
        entry = await self.get_one_or_none(id=log_id)
        if entry:
            entry.data = data
            entry.processing_time = processing_time
            await self.session.flush()
        return entry


class TTableRepository(SQLAlchemyAsyncRepository[TTableModel]):
    """Repository for application working records."""

    model_type = TTableModel

    async def get_by_app_id(self, app_id: str) -> TTableModel | None:
        """Get the working record of an application.

        Args:
            app_id: The application identifier.

        Returns:
            The record or None if not found.
        """
        stmt = select(TTableModel).where(TTableModel.app_id == app_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace_document(
        self,
        app_id: str,
        document: dict[str, Any],
        processing_time: datetime,
    ) -> TTableModel:
        """Replace the record of ``app_id``, creating it if absent.

        Args:
            app_id: The application identifier.
            document: The full replacement field map.
            processing_time: Write timestamp.

        Returns:
            The stored record.
        """
        existing = await self.get_by_app_id(app_id)
        if existing is None:
            return await self.add(TTableModel(app_id=app_id, document=document, processing_time=processing_time))
        existing.document = document
        existing.processing_time = processing_time
        await self.session.flush()
        return existing
