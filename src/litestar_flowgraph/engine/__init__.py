"""Workflow graph engine services.

This module provides the navigator and the store backed services a workflow step
uses: definition store, process log, TTable projector, the background
persistence queue and the step runner tying them together.
"""

from __future__ import annotations

from litestar_flowgraph.engine.base import StoreService
from litestar_flowgraph.engine.definitions import WorkflowDefinitionStore
from litestar_flowgraph.engine.navigator import GraphNavigator, get_next_action
from litestar_flowgraph.engine.persistence import PERSIST_FAILED_EVENT, TTablePersistenceQueue
from litestar_flowgraph.engine.process_log import ProcessLog
from litestar_flowgraph.engine.runner import ConnectorStepAction, StepOutcome, StepOutcomeKind, WorkflowStepRunner
from litestar_flowgraph.engine.ttable import TTableProjector

__all__ = [
    "PERSIST_FAILED_EVENT",
    "ConnectorStepAction",
    "GraphNavigator",
    "ProcessLog",
    "StepOutcome",
    "StepOutcomeKind",
    "StoreService",
    "TTablePersistenceQueue",
    "TTableProjector",
    "WorkflowDefinitionStore",
    "WorkflowStepRunner",
    "get_next_action",
]
