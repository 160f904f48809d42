"""SQLAlchemy models for workflow graph persistence.

This module defines the database models backing the engine:
- WorkflowConfigModel: Stores workflow graph documents keyed by ``flows_code``
- ProcessLogModel: Records step executions per application
- TTableModel: Stores the working record of each application
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from advanced_alchemy.base import BigIntAuditBase, UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import JSON, BigInteger, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from litestar_flowgraph.core.definition import WorkflowGraph
from litestar_flowgraph.core.models import ProcessLogEntry, TTable

__all__ = [
    "ProcessLogModel",
    "TTableModel",
    "WorkflowConfigModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")


class WorkflowConfigModel(UUIDAuditBase):
    """Persisted workflow graph document.

    Attributes:
        flows_code: Canonical ``W<id>`` code, unique.
        document: The full graph document (header, nodes, edges, extras).
        processing_time: When the document was last written.
    """

    __tablename__ = "workflow_configs"
    __table_args__ = (Index("ix_workflow_configs_flows_code", "flows_code", unique=True),)

    flows_code: Mapped[str] = mapped_column(String(64))
    document: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    processing_time: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))

    def to_graph(self) -> WorkflowGraph:
        """Convert the row into a typed graph."""
        graph = WorkflowGraph.from_document({**self.document, "flows_code": self.flows_code})
        graph.processing_time = self.processing_time
        return graph


class ProcessLogModel(BigIntAuditBase):
    """One execution of a workflow step.

    The integer primary key orders entries: for a given application, workflow
    and source, the highest id is the current dependency state.

    Attributes:
        app_id: Application identifier.
        ttable: Name of the working record table.
        user_id: User who started or last updated the step.
        source_id: Workflow node or edge label that produced the entry.
        workflow_id: Numeric workflow id.
        edge_id: Id of the executed edge.
        status: Free text state.
        action_date: When the step started.
        finish_date: When a status was last set.
        data: Opaque step payload.
        notes: Free text notes.
        processing_time: When the entry was last written.
    """

    __tablename__ = "workflow_process_logs"
    __table_args__ = (
        Index("ix_process_logs_app_id", "app_id"),
        Index("ix_process_logs_dependency", "app_id", "workflow_id", "source_id"),
        Index("ix_process_logs_app_processing_time", "app_id", "processing_time"),
    )

    app_id: Mapped[str] = mapped_column(String(255))
    ttable: Mapped[str] = mapped_column(String(255), default="")
    user_id: Mapped[str] = mapped_column(String(255), default="")
    source_id: Mapped[str] = mapped_column(String(255))
    workflow_id: Mapped[int] = mapped_column(BigInteger)
    edge_id: Mapped[str] = mapped_column(String(255), default="")
    status: Mapped[str] = mapped_column(String(50))
    action_date: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    finish_date: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    notes: Mapped[str] = mapped_column(Text, default="")
    processing_time: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))

    def to_entry(self) -> ProcessLogEntry:
        """Convert the row into a log entry."""
        return ProcessLogEntry(
            id=self.id,
            app_id=self.app_id,
            ttable=self.ttable,
            user_id=self.user_id,
            source_id=self.source_id,
            workflow_id=self.workflow_id,
            edge_id=self.edge_id,
            status=self.status,
            action_date=self.action_date,
            finish_date=self.finish_date,
            data=dict(self.data or {}),
            notes=self.notes or "",
            processing_time=self.processing_time,
        )


class TTableModel(UUIDAuditBase):
    """Working record of one application.

    Attributes:
        app_id: Application identifier, unique.
        document: Merged business field values.
        processing_time: When the record was last written.
    """

    __tablename__ = "workflow_ttables"
    __table_args__ = (Index("ix_workflow_ttables_app_id", "app_id", unique=True),)

    app_id: Mapped[str] = mapped_column(String(255))
    document: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    processing_time: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))

    def to_ttable(self) -> TTable:
        """Convert the row into a TTable."""
        return TTable(app_id=self.app_id, fields=dict(self.document or {}), processing_time=self.processing_time)
