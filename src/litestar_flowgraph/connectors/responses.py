"""Accessors for decision-flow response bodies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from litestar_flowgraph.core.merge import collect_temp_results

if TYPE_CHECKING:
    from litestar_flowgraph.core.types import Document

__all__ = ["extract_stages", "extract_temp_results", "is_error_response"]


def extract_stages(output: Document | None) -> list[Document]:
    """Return the ``data.stages`` list of a decision-flow response.

    Args:
        output: The response body.

    Returns:
        The stage objects; an empty list when the response carries none.
    """
    data = (output or {}).get("data")
    stages = data.get("stages") if isinstance(data, dict) else None
    if not isinstance(stages, list):
        return []
    return [stage for stage in stages if isinstance(stage, dict)]


def extract_temp_results(output: Document | None) -> Document:
    """Return the non-empty ``data.temp_results`` of a decision-flow response."""
    return collect_temp_results(output)


def is_error_response(output: Document | None) -> bool:
    """Whether a response reports an error in its ``status`` field."""
    status = (output or {}).get("status")
    return isinstance(status, str) and status.casefold() == "error"
