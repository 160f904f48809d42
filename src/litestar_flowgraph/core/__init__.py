"""Core domain module for litestar-flowgraph.

This module exports the fundamental building blocks: graph documents, log and
TTable models, result wrapper, merge helpers, protocols and types.
"""

from __future__ import annotations

from litestar_flowgraph.core.definition import (
    Edge,
    EdgeData,
    Node,
    WorkflowGraph,
    normalize_flows_code,
    parse_workflow_id,
)
from litestar_flowgraph.core.merge import collect_stage_results, collect_temp_results, merge_documents
from litestar_flowgraph.core.models import DependencyStatus, PersistenceFailure, ProcessLogEntry, Progress, TTable
from litestar_flowgraph.core.protocols import EventBus, ProcessConnector, StepAction
from litestar_flowgraph.core.result import StoreResult
from litestar_flowgraph.core.types import ANY_LABEL, END, START, Clock, Document, EdgeType, LogStatus, utc_now

__all__ = [
    "ANY_LABEL",
    "END",
    "START",
    "Clock",
    "DependencyStatus",
    "Document",
    "Edge",
    "EdgeData",
    "EdgeType",
    "EventBus",
    "LogStatus",
    "Node",
    "PersistenceFailure",
    "ProcessConnector",
    "ProcessLogEntry",
    "Progress",
    "StepAction",
    "StoreResult",
    "TTable",
    "WorkflowGraph",
    "collect_stage_results",
    "collect_temp_results",
    "merge_documents",
    "normalize_flows_code",
    "parse_workflow_id",
    "utc_now",
]
