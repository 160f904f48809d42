"""Core protocols for litestar-flowgraph.

This module defines the Protocol-based interfaces of the collaborators the engine
consumes but does not implement: the event bus failures are published to and the
external process connectors steps call out to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from litestar_flowgraph.core.definition import Edge
    from litestar_flowgraph.core.models import TTable
    from litestar_flowgraph.core.types import Document

__all__ = ["EventBus", "ProcessConnector", "StepAction"]


@runtime_checkable
class EventBus(Protocol):
    """Anything events can be emitted on.

    Example:
        >>> class PrintBus:
        ...     async def emit(self, event_type: str, **kwargs: Any) -> None:
        ...         print(event_type, kwargs)
    """

    async def emit(self, event_type: str, **kwargs: Any) -> None:
        """Emit an event.

        Args:
            event_type: Dotted event name, e.g. ``ttable.persist_failed``.
            **kwargs: Event payload.
        """
        ...


@runtime_checkable
class ProcessConnector(Protocol):
    """An external request/response service (OCR, decision flow, ...).

    The engine does not interpret connector payloads beyond the
    ``data.stages`` / ``data.temp_results`` keys of decision-flow responses.
    """

    async def call(self, name: str, payload: Document) -> Document:
        """Send ``payload`` to the connector registered as ``name``.

        Args:
            name: Connector name.
            payload: JSON-like request body.

        Returns:
            The JSON-like response body.

        Raises:
            ConnectorError: If the call fails.
        """
        ...


class StepAction(Protocol):
    """The external work a step performs between log insert and log update."""

    async def __call__(self, edge: Edge, ttable: TTable | None) -> Document | None:
        """Run the step.

        Args:
            edge: The edge being executed.
            ttable: The application's working record, if one exists.

        Returns:
            The connector response, folded into the TTable when it carries
            decision-flow results.
        """
        ...
