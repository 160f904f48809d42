"""Workflow graph navigation.

This module provides lookups over a workflow graph and the core navigation step:
given the current source node and an optional label, find the next edge. A
missing path is never an error; it resolves to a synthetic terminal edge.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from litestar_flowgraph.core.definition import Edge
from litestar_flowgraph.core.types import ANY_LABEL, START

if TYPE_CHECKING:
    from litestar_flowgraph.core.definition import Node, WorkflowGraph

__all__ = ["GraphNavigator", "get_next_action"]

logger = logging.getLogger(__name__)


class GraphNavigator:
    """Navigation index over a workflow graph.

    Source and target lookups compare ids exactly (case-sensitive) while node
    lookups ignore case, matching how stored graphs have always been resolved.

    Attributes:
        graph: The workflow graph this navigator indexes.
        _outgoing: Map of source id to its edges, in document order.
        _incoming: Map of target id to its edges, in document order.
        _nodes: Map of casefolded node id to the first node with that id.
    """

    def __init__(self, graph: WorkflowGraph) -> None:
        """Initialize a navigator for a graph.

        Args:
            graph: The workflow graph to navigate.
        """
        self.graph = graph
        self._outgoing: dict[str, list[Edge]] = {}
        self._incoming: dict[str, list[Edge]] = {}
        self._nodes: dict[str, Node] = {}
        self._build_index()

    def _build_index(self) -> None:
        """Build adjacency maps from the graph edges and nodes."""
        for edge in self.graph.edges:
            self._outgoing.setdefault(edge.source, []).append(edge)
            self._incoming.setdefault(edge.target, []).append(edge)
        for node in self.graph.nodes:
            self._nodes.setdefault(node.id.casefold(), node)

    @classmethod
    def from_graph(cls, graph: WorkflowGraph) -> GraphNavigator:
        """Create a navigator for a graph.

        Args:
            graph: The workflow graph.

        Returns:
            A GraphNavigator instance.
        """
        return cls(graph)

    def outgoing(self, source_id: str) -> list[Edge]:
        """Get the outgoing edges of a source, in document order."""
        return list(self._outgoing.get(source_id, []))

    def incoming(self, target_id: str) -> list[Edge]:
        """Get the incoming edges of a target, in document order."""
        return list(self._incoming.get(target_id, []))

    def find_edge_by_source(self, source_id: str | None) -> Edge | None:
        """Find the first edge leaving ``source_id``.

        Args:
            source_id: Exact source id.

        Returns:
            The first matching edge in document order, or None.
        """
        edges = self._outgoing.get(source_id) if source_id is not None else None
        return edges[0] if edges else None

    def find_edge_by_source_and_label(self, source_id: str | None, label: str | None) -> Edge | None:
        """Find the first edge leaving ``source_id`` with the given label.

        Args:
            source_id: Exact source id; None means ``start``.
            label: Exact label; None matches any label.

        Returns:
            The first matching edge in document order, or None.
        """
        for edge in self._outgoing.get(START if source_id is None else source_id, []):
            if label is None or edge.label == label:
                return edge
        return None

    def find_edge_by_target(self, target_id: str | None, label: str | None = None) -> Edge | None:
        """Find the first edge entering ``target_id``, optionally with a label.

        Args:
            target_id: Exact target id.
            label: Exact label; None matches any label.

        Returns:
            The first matching edge in document order, or None.
        """
        if target_id is None:
            return None
        for edge in self._incoming.get(target_id, []):
            if label is None or edge.label == label:
                return edge
        return None

    def find_node_by_id(self, node_id: str | None) -> Node | None:
        """Find a node by id, ignoring case.

        Args:
            node_id: The node id.

        Returns:
            The node, or None.
        """
        if node_id is None:
            return None
        return self._nodes.get(node_id.casefold())

    def get_next_action(self, source_id: str | None, label: str | None = ANY_LABEL) -> Edge:
        """Resolve the edge a workflow takes next.

        A blank ``source_id`` means ``start``. A blank label or the ``...``
        sentinel means "any label". When nothing matches, a fresh terminal edge
        is returned so step execution never fails on incomplete graphs.

        Args:
            source_id: The node the application currently sits on.
            label: The branch label chosen by the previous step.

        Returns:
            The next edge, or a terminal edge with a unique id.

        Example:
            >>> navigator.get_next_action("", "go").target
            'A'
            >>> navigator.get_next_action("A").is_end
            True
        """
        source = source_id if source_id and source_id.strip() else START
        try:
            if label and label.strip() and label != ANY_LABEL:
                edge = self.find_edge_by_source_and_label(source, label)
            else:
                edge = self.find_edge_by_source(source)
        except Exception:
            logger.exception("Next action lookup from %r failed", source)
            edge = None

        if edge is None:
            logger.debug("No edge from %r (label %r) in %s; routing to end", source, label, self.graph.flows_code)
            return Edge.end()
        return edge

    def is_terminal(self, node_id: str) -> bool:
        """Check whether a node has no outgoing edges.

        Args:
            node_id: Exact node id.

        Returns:
            True if navigating from the node yields the terminal edge.
        """
        return not self._outgoing.get(node_id)


def get_next_action(graph: WorkflowGraph, source_id: str | None, label: str | None = ANY_LABEL) -> Edge:
    """Resolve the next edge of ``graph`` without keeping a navigator around.

    Args:
        graph: The workflow graph.
        source_id: The current node; blank means ``start``.
        label: The branch label; blank or ``...`` means any.

    Returns:
        The next edge, or a terminal edge.
    """
    return GraphNavigator(graph).get_next_action(source_id, label)
