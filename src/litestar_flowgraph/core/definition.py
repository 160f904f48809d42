"""Workflow graph document structures.

Workflow graphs are authored in an external visual editor and arrive as JSON
documents with ``nodes`` and ``edges`` arrays. This module maps those documents to
typed dataclasses while keeping unknown attributes in ``extra`` maps so a
document survives a load/save round trip unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from litestar_flowgraph.core.types import ANY_LABEL, END, Document, EdgeType
from litestar_flowgraph.exceptions import InvalidWorkflowCodeError

__all__ = [
    "Edge",
    "EdgeData",
    "Node",
    "WorkflowGraph",
    "normalize_flows_code",
    "parse_workflow_id",
]

_EDGE_DATA_KEYS = ("label", "id", "type")
_EDGE_KEYS = ("source", "target", "data")
_GRAPH_KEYS = ("flows_code", "header", "nodes", "edges", "processing_time", "_id")


def normalize_flows_code(code: str | int) -> str:
    """Return the canonical ``W<id>`` form of a workflow code.

    Args:
        code: A code such as ``"W12"``, ``"12"`` or ``12``.

    Returns:
        The code prefixed with ``W`` unless it already is.

    Example:
        >>> normalize_flows_code(12)
        'W12'
        >>> normalize_flows_code("W12")
        'W12'
    """
    text = str(code)
    return text if text.startswith("W") else f"W{text}"


def parse_workflow_id(code: str | int) -> int:
    """Parse the numeric workflow id out of a workflow code.

    Args:
        code: A code such as ``"W12"``, ``"12"`` or ``12``.

    Returns:
        The numeric id.

    Raises:
        InvalidWorkflowCodeError: If the code is not numeric once the ``W`` is removed.
    """
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    text = str(code).strip()
    if text.startswith("W"):
        text = text[1:]
    try:
        return int(text)
    except ValueError as e:
        raise InvalidWorkflowCodeError(code) from e


@dataclass
class Node:
    """A workflow node.

    Attributes:
        id: Node identifier, compared case-insensitively.
        extra: Every other attribute of the node document.
    """

    id: str
    extra: Document = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Document) -> Node:
        """Build a node from its document form."""
        extra = {k: v for k, v in document.items() if k != "id"}
        return cls(id=str(document.get("id", "")), extra=extra)

    def to_document(self) -> Document:
        """Serialize the node back to its document form."""
        return {"id": self.id, **self.extra}


@dataclass
class EdgeData:
    """The ``data`` payload of an edge.

    Attributes:
        label: Discriminator among the outgoing edges of one source.
        id: Edge identifier written to the process log.
        type: Edge type, e.g. the connector the step calls.
        extra: Every other attribute of the payload.
    """

    label: str = ""
    id: str = ""
    type: str = ""
    extra: Document = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Document | None) -> EdgeData:
        """Build edge data from its document form."""
        document = document or {}
        extra = {k: v for k, v in document.items() if k not in _EDGE_DATA_KEYS}
        return cls(
            label=_as_text(document.get("label")),
            id=_as_text(document.get("id")),
            type=_as_text(document.get("type")),
            extra=extra,
        )

    def to_document(self) -> Document:
        """Serialize the edge data back to its document form."""
        return {"label": self.label, "id": self.id, "type": self.type, **self.extra}


@dataclass
class Edge:
    """A directed, labeled transition between two nodes.

    Edges are not unique: one source may have several outgoing edges told apart
    by ``data.label``. Targets need not exist among the graph nodes.

    Attributes:
        source: Id of the source node.
        target: Id of the target node.
        data: Label, id and type of the edge.
        extra: Every other attribute of the edge document.

    Example:
        >>> edge = Edge(source="review", target="approve", data=EdgeData(label="ok"))
        >>> edge.label
        'ok'
    """

    source: str
    target: str
    data: EdgeData = field(default_factory=EdgeData)
    extra: Document = field(default_factory=dict)

    @property
    def label(self) -> str:
        """The edge label."""
        return self.data.label

    @property
    def id(self) -> str:
        """The edge id."""
        return self.data.id

    @property
    def type(self) -> str:
        """The edge type."""
        return self.data.type

    @classmethod
    def end(cls) -> Edge:
        """Create a synthetic terminal edge with a fresh id.

        Returns:
            An edge from ``end`` to ``end`` typed ``end``.
        """
        return cls(
            source=END,
            target=END,
            data=EdgeData(label=ANY_LABEL, id=str(uuid4()), type=EdgeType.END.value),
        )

    @property
    def is_end(self) -> bool:
        """Whether this is a terminal edge."""
        return self.source == END and self.target == END

    @classmethod
    def from_document(cls, document: Document) -> Edge:
        """Build an edge from its document form."""
        extra = {k: v for k, v in document.items() if k not in _EDGE_KEYS}
        return cls(
            source=_as_text(document.get("source")),
            target=_as_text(document.get("target")),
            data=EdgeData.from_document(document.get("data")),
            extra=extra,
        )

    def to_document(self) -> Document:
        """Serialize the edge back to its document form."""
        return {**self.extra, "source": self.source, "target": self.target, "data": self.data.to_document()}


@dataclass
class WorkflowGraph:
    """A stored workflow definition.

    Attributes:
        flows_code: Canonical ``W<id>`` code identifying the workflow.
        nodes: Workflow nodes, unique by id (case-insensitive).
        edges: Workflow edges in document order.
        header: Free-form header; ``version`` and ``flows_id`` are read from it.
        extra: Every other top-level attribute of the document.
        processing_time: When the document was last written.

    Example:
        >>> graph = WorkflowGraph.from_document(
        ...     {
        ...         "flows_code": "W12",
        ...         "header": {"version": "1.0"},
        ...         "nodes": [{"id": "start"}, {"id": "review"}],
        ...         "edges": [{"source": "start", "target": "review", "data": {"label": "go"}}],
        ...     }
        ... )
        >>> graph.workflow_id
        12
    """

    flows_code: str
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    header: Document = field(default_factory=dict)
    extra: Document = field(default_factory=dict)
    processing_time: datetime | None = None

    @property
    def version(self) -> str | None:
        """The workflow version string from the header, if any."""
        version = self.header.get("version")
        return None if version is None else str(version)

    @property
    def workflow_id(self) -> int:
        """The numeric workflow id parsed from ``flows_code``.

        Raises:
            InvalidWorkflowCodeError: If the code is not ``W<number>``.
        """
        return parse_workflow_id(self.flows_code)

    @classmethod
    def from_document(cls, document: Document) -> WorkflowGraph:
        """Build a graph from its document form.

        Args:
            document: The stored or authored graph document.

        Returns:
            The typed graph.
        """
        processing_time = document.get("processing_time")
        return cls(
            flows_code=normalize_flows_code(document.get("flows_code", "")),
            nodes=[Node.from_document(n) for n in document.get("nodes") or []],
            edges=[Edge.from_document(e) for e in document.get("edges") or []],
            header=dict(document.get("header") or {}),
            extra={k: v for k, v in document.items() if k not in _GRAPH_KEYS},
            processing_time=processing_time if isinstance(processing_time, datetime) else None,
        )

    def to_document(self) -> Document:
        """Serialize the graph back to its document form."""
        document: Document = {
            **self.extra,
            "flows_code": self.flows_code,
            "header": dict(self.header),
            "nodes": [n.to_document() for n in self.nodes],
            "edges": [e.to_document() for e in self.edges],
        }
        if self.processing_time is not None:
            document["processing_time"] = self.processing_time.isoformat()
        return document

    def validate(self) -> list[str]:
        """Validate the graph structure.

        Missing edge targets are not errors: navigation resolves them to the
        terminal edge.

        Returns:
            List of validation error messages. Empty list if valid.
        """
        errors: list[str] = []

        if self.flows_code in ("", "W"):
            errors.append("Workflow code is empty")

        seen: set[str] = set()
        for node in self.nodes:
            if not node.id:
                errors.append("Node without id")
                continue
            key = node.id.casefold()
            if key in seen:
                errors.append(f"Duplicate node id '{node.id}'")
            seen.add(key)

        for i, edge in enumerate(self.edges):
            if not edge.source:
                errors.append(f"Edge {i}: missing source")
            if not edge.target:
                errors.append(f"Edge {i}: missing target")

        return errors

    def to_mermaid(self) -> str:
        """Generate a MermaidJS graph representation of the workflow.

        Returns:
            MermaidJS graph definition as a string.

        Example:
            >>> print(graph.to_mermaid())
            graph TD
                start[start]
                review[review]
                start -->|go| review
        """
        lines = ["graph TD"]
        lines.extend(f"    {_mermaid_id(node.id)}[{node.id}]" for node in self.nodes)
        for edge in self.edges:
            label = f"|{edge.label.replace('|', '')}|" if edge.label and edge.label != ANY_LABEL else ""
            lines.append(f"    {_mermaid_id(edge.source)} -->{label} {_mermaid_id(edge.target)}")
        return "\n".join(lines)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _mermaid_id(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in value) or "_"
