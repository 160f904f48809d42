"""Database persistence layer for litestar-flowgraph.

This module provides SQLAlchemy models and repositories for persisting
workflow graphs, process log entries and application TTables.
"""

from __future__ import annotations

from litestar_flowgraph.db.models import ProcessLogModel, TTableModel, WorkflowConfigModel
from litestar_flowgraph.db.repositories import ProcessLogRepository, TTableRepository, WorkflowConfigRepository

__all__ = [
    "ProcessLogModel",
    "ProcessLogRepository",
    "TTableModel",
    "TTableRepository",
    "WorkflowConfigModel",
    "WorkflowConfigRepository",
]
