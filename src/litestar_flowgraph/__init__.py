"""Litestar FlowGraph - Workflow graph engine for Litestar.

This package navigates JSON workflow graphs, records step executions in a
process log with dependency checks and progress, and maintains a per
application working record (TTable) that steps merge decision results into.

Key Features:
    - Label based edge navigation with a terminal fallback edge
    - Process log with dependency checks and progress
    - TTable merging with background persistence
    - httpx based connectors for external process services
    - Litestar plugin for dependency injection

Example:
    >>> from litestar_flowgraph import WorkflowGraph, get_next_action
    >>>
    >>> graph = WorkflowGraph.from_document(
    ...     {
    ...         "flows_code": "W1",
    ...         "nodes": [{"id": "start"}, {"id": "A"}],
    ...         "edges": [{"source": "start", "target": "A", "data": {"label": "go", "id": "e1"}}],
    ...     }
    ... )
    >>> get_next_action(graph, "", "go").target
    'A'
"""

from __future__ import annotations

from litestar_flowgraph.__metadata__ import __project__, __version__
from litestar_flowgraph.core import (
    DependencyStatus,
    Edge,
    EdgeData,
    LogStatus,
    Node,
    ProcessLogEntry,
    Progress,
    StoreResult,
    TTable,
    WorkflowGraph,
)
from litestar_flowgraph.engine import (
    GraphNavigator,
    ProcessLog,
    StepOutcome,
    StepOutcomeKind,
    TTablePersistenceQueue,
    TTableProjector,
    WorkflowDefinitionStore,
    WorkflowStepRunner,
    get_next_action,
)
from litestar_flowgraph.exceptions import (
    ConnectorError,
    FlowGraphError,
    InvalidWorkflowCodeError,
    StoreUnavailableError,
    TTableNotFoundError,
    WorkflowDefinitionNotFoundError,
    WorkflowValidationError,
)
from litestar_flowgraph.plugin import FlowGraphPlugin, FlowGraphPluginConfig

__all__ = (
    "ConnectorError",
    "DependencyStatus",
    "Edge",
    "EdgeData",
    "FlowGraphError",
    "FlowGraphPlugin",
    "FlowGraphPluginConfig",
    "GraphNavigator",
    "InvalidWorkflowCodeError",
    "LogStatus",
    "Node",
    "ProcessLog",
    "ProcessLogEntry",
    "Progress",
    "StepOutcome",
    "StepOutcomeKind",
    "StoreResult",
    "StoreUnavailableError",
    "TTable",
    "TTableNotFoundError",
    "TTablePersistenceQueue",
    "TTableProjector",
    "WorkflowDefinitionNotFoundError",
    "WorkflowDefinitionStore",
    "WorkflowGraph",
    "WorkflowStepRunner",
    "WorkflowValidationError",
    "__project__",
    "__version__",
    "get_next_action",
)
