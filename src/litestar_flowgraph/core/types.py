"""Core type definitions for litestar-flowgraph.

This module defines the enums, constants and type aliases shared by the graph
navigator, the process log and the TTable projector.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeAlias

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)


__all__ = [
    "ANY_LABEL",
    "END",
    "START",
    "Clock",
    "Document",
    "EdgeType",
    "LogStatus",
    "utc_now",
]

START = "start"
"""Node id a workflow starts from; blank source ids resolve to it."""

END = "end"
"""Source and target of the synthetic terminal edge."""

ANY_LABEL = "..."
"""Label sentinel meaning "do not filter on label"."""


class LogStatus(StrEnum):
    """Well known process log statuses.

    The log stores free text, so other values are allowed; only ``FINISHED``
    has meaning for dependency checks (compared case-insensitively).

    Attributes:
        PROCESS: The step has started and is running.
        FINISHED: The step completed; dependants may run.
        FAILED: The step's external call failed.
    """

    PROCESS = "process"
    FINISHED = "finished"
    FAILED = "failed"


class EdgeType(StrEnum):
    """Edge ``data.type`` values the engine itself produces.

    Attributes:
        END: Synthetic terminal edge returned when navigation finds no path.
    """

    END = "end"


Document: TypeAlias = dict[str, Any]
"""Type alias for a JSON-like document."""

Clock: TypeAlias = Callable[[], datetime]
"""Callable returning the current (timezone aware) time."""


def utc_now() -> datetime:
    """Return the current UTC time.

    Returns:
        A timezone aware datetime.
    """
    return datetime.now(timezone.utc)
