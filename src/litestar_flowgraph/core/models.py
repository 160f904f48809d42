"""Concrete data models for litestar-flowgraph.

This module provides the dataclasses returned by the process log and the TTable
projector.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple

from litestar_flowgraph.core.types import Document

__all__ = [
    "DependencyStatus",
    "PersistenceFailure",
    "ProcessLogEntry",
    "Progress",
    "TTable",
]


@dataclass
class ProcessLogEntry:
    """One execution of a workflow step for an application.

    Attributes:
        id: Monotonic log id; higher ids are more recent.
        app_id: Application (case) identifier.
        ttable: Name of the working record table.
        user_id: User who started or last updated the step.
        source_id: Workflow node or edge label that produced the entry.
        workflow_id: Numeric workflow id.
        edge_id: Id of the edge being executed.
        status: Free text state, e.g. ``process`` or ``finished``.
        action_date: When the step started.
        finish_date: When the step was last marked with a status.
        data: Opaque step payload.
        notes: Free text notes; the workflow version for ``start`` entries.
        processing_time: When the entry was last written.
    """

    id: int
    app_id: str
    ttable: str
    user_id: str
    source_id: str
    workflow_id: int
    edge_id: str
    status: str
    action_date: datetime
    processing_time: datetime
    finish_date: datetime | None = None
    data: Document = field(default_factory=dict)
    notes: str = ""


@dataclass
class DependencyStatus:
    """Current state of a prior step for one application.

    Attributes:
        app_id: Application identifier.
        workflow_id: Numeric workflow id.
        edge_id: Edge id recorded by the most recent matching entry.
        status: Status of the most recent matching entry.
        satisfied: Whether that status is ``finished``.
    """

    app_id: str
    workflow_id: int
    edge_id: str
    status: str
    satisfied: bool


class Progress(NamedTuple):
    """How far an application has advanced through a workflow.

    Attributes:
        total_steps: Number of edges in the workflow graph.
        current_step: Number of distinct sources logged for the application.
    """

    total_steps: int
    current_step: int


@dataclass
class TTable:
    """Mutable working record of one application.

    Attributes:
        app_id: Application identifier; one TTable per application.
        fields: Business field values merged in by workflow steps.
        processing_time: When the record was last merged or written.

    Example:
        >>> ttable = TTable(app_id="APP-1", fields={"income": 1200})
        >>> ttable["income"]
        1200
    """

    app_id: str
    fields: Document = field(default_factory=dict)
    processing_time: datetime | None = None

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def get(self, key: str, default: Any = None) -> Any:
        """Get a field value.

        Args:
            key: The field name.
            default: Value returned when the field is missing.

        Returns:
            The field value or ``default``.
        """
        return self.fields.get(key, default)

    def to_document(self) -> Document:
        """Flatten the record into a single document (as sent to connectors)."""
        document: Document = {**self.fields, "app_id": self.app_id}
        if self.processing_time is not None:
            document["processing_time"] = self.processing_time.isoformat()
        return document


@dataclass
class PersistenceFailure:
    """A background TTable write that did not land.

    Attributes:
        app_id: Application whose record failed to persist.
        error: The failure.
        occurred_at: When the failure was observed.
    """

    app_id: str
    error: Exception
    occurred_at: datetime
