"""TTable projector: the per-application working record.

Business rules run in an external decision service; the projector reconciles the
authoritative working record with partial results computed there. Merges
overwrite field by field and the merged view is returned before it is written.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar_flowgraph.core.merge import collect_stage_results, collect_temp_results, merge_documents
from litestar_flowgraph.core.models import TTable
from litestar_flowgraph.core.result import StoreResult
from litestar_flowgraph.db.repositories import TTableRepository
from litestar_flowgraph.engine.base import StoreService
from litestar_flowgraph.exceptions import TTableNotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_flowgraph.core.types import Clock, Document
    from litestar_flowgraph.engine.persistence import TTablePersistenceQueue

__all__ = ["TTableProjector"]

logger = logging.getLogger(__name__)


class TTableProjector(StoreService):
    """Service maintaining application working records.

    When a running :class:`TTablePersistenceQueue` is configured, merged records
    are written in the background; otherwise the write is awaited inline.

    Attributes:
        persistence: Optional background writer for merged records.
        merge_arrays: Merge list fields element-wise instead of replacing them.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        persistence: TTablePersistenceQueue | None = None,
        *,
        merge_arrays: bool = False,
    ) -> None:
        """Initialize the projector.

        Args:
            session: SQLAlchemy async session.
            clock: Optional clock; defaults to UTC now.
            persistence: Optional background writer for merged records.
            merge_arrays: Merge list fields element-wise instead of replacing them.
        """
        super().__init__(session, clock)
        self.persistence = persistence
        self.merge_arrays = merge_arrays
        self._repo = TTableRepository(session=session)

    async def get(self, app_id: str, fields: Sequence[str] | None = None) -> StoreResult[TTable]:
        """Load the working record of an application.

        Args:
            app_id: Application identifier.
            fields: Optional projection; only these fields are returned.

        Returns:
            The record; a failed result carrying :class:`TTableNotFoundError`
            when the application has none.

        Raises:
            ValueError: If ``app_id`` is blank.
        """
        if not app_id or not app_id.strip():
            msg = "app_id must not be blank"
            raise ValueError(msg)

        async def work() -> TTable:
            model = await self._repo.get_by_app_id(app_id)
            if model is None:
                raise TTableNotFoundError(app_id)
            ttable = model.to_ttable()
            if fields is not None:
                ttable.fields = {name: ttable.fields[name] for name in fields if name in ttable.fields}
            return ttable

        return await self._run("ttable.get", work, commit=False)

    async def get_or_create(self, app_id: str, fields: Document | None = None) -> StoreResult[TTable]:
        """Load the working record of an application, creating it on first touch.

        Args:
            app_id: Application identifier.
            fields: Initial fields for a new record.

        Returns:
            The existing or newly stored record.
        """
        result = await self.get(app_id)
        if result.ok or not isinstance(result.error, TTableNotFoundError):
            return result
        ttable = TTable(app_id=app_id, fields=dict(fields or {}))
        created = await self.upsert(ttable)
        if not created.ok:
            return StoreResult.failure(created.error, ttable)  # type: ignore[arg-type]
        return StoreResult.success(ttable)

    async def upsert(self, ttable: TTable) -> StoreResult[str]:
        """Replace the stored record of ``ttable.app_id``, creating it if absent.

        Stamps ``ttable.processing_time``.

        Args:
            ttable: The record to store.

        Returns:
            The application id.
        """
        ttable.processing_time = self.clock()
        fields = dict(ttable.fields)
        processing_time = ttable.processing_time

        async def work() -> str:
            await self._repo.replace_document(ttable.app_id, fields, processing_time)
            return ttable.app_id

        return await self._run("ttable.upsert", work)

    async def merge_fields(self, ttable: TTable, fields: Document) -> StoreResult[TTable]:
        """Merge ``fields`` into a record and persist the result.

        Nothing is merged or written when ``fields`` is empty.

        Args:
            ttable: The current record.
            fields: Field values that win over the record's.

        Returns:
            The merged record. If an inline write fails the result carries the
            error and still exposes the merged record as its value.
        """
        if not fields:
            return StoreResult.success(ttable)

        merged = TTable(
            app_id=ttable.app_id,
            fields=merge_documents(ttable.fields, fields, merge_arrays=self.merge_arrays),
            processing_time=self.clock(),
        )

        if self.persistence is not None and self.persistence.running:
            await self.persistence.submit(merged)
            return StoreResult.success(merged)

        written = await self.upsert(merged)
        if not written.ok:
            return StoreResult.failure(written.error, merged)  # type: ignore[arg-type]
        return StoreResult.success(merged)

    async def merge_stage_results(self, ttable: TTable, output: Document | None) -> StoreResult[TTable]:
        """Fold ``data.stages[].result[]`` of a decision-flow response into a record.

        Later stages win over earlier ones for the same field.

        Args:
            ttable: The current record.
            output: The decision-flow response.

        Returns:
            The merged record.
        """
        fields = collect_stage_results(output)
        logger.debug("Merging %d stage result fields into TTable %s", len(fields), ttable.app_id)
        return await self.merge_fields(ttable, fields)

    async def merge_temp_results(self, ttable: TTable, output: Document | None) -> StoreResult[TTable]:
        """Fold the non-empty ``data.temp_results`` of a decision-flow response into a record.

        Args:
            ttable: The current record.
            output: The decision-flow response.

        Returns:
            The merged record.
        """
        fields = collect_temp_results(output)
        logger.debug("Merging %d temp result fields into TTable %s", len(fields), ttable.app_id)
        return await self.merge_fields(ttable, fields)

    async def merge_decision_output(self, ttable: TTable, output: Document | None) -> StoreResult[TTable]:
        """Fold both the stage results and the temp results of a response.

        Stage results are applied first; temp results win on conflicts.

        Args:
            ttable: The current record.
            output: The decision-flow response.

        Returns:
            The merged record.
        """
        fields: dict[str, Any] = {**collect_stage_results(output), **collect_temp_results(output)}
        return await self.merge_fields(ttable, fields)
