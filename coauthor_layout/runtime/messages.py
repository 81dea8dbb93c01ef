"""Message protocol between the execution host and its layout worker."""

from typing import Dict, List, Literal, Sequence, Tuple

from pydantic import BaseModel, Field

from ..core.models import Edge, Node


class WireNode(BaseModel):
    """The node fields the layout engine reads; payload stays with the caller."""
    id: str
    is_center: bool = False
    paper_count: int = Field(default=0, ge=0)

    @classmethod
    def from_node(cls, node: Node) -> "WireNode":
        return cls(id=node.id, is_center=node.is_center, paper_count=node.paper_count)

    def to_node(self) -> Node:
        return Node(id=self.id, is_center=self.is_center, paper_count=self.paper_count)


class WireEdge(BaseModel):
    id: str
    source: str
    target: str
    weight: float = Field(default=1.0, gt=0)

    @classmethod
    def from_edge(cls, edge: Edge) -> "WireEdge":
        return cls(id=edge.id, source=edge.source, target=edge.target, weight=edge.weight)

    def to_edge(self) -> Edge:
        return Edge(id=self.id, source=self.source, target=self.target, weight=self.weight)


class ComputeMessage(BaseModel):
    """Host -> worker: compute one layout."""
    type: Literal["compute"] = "compute"
    request_id: int
    nodes: List[WireNode]
    edges: List[WireEdge]
    viewport_width: float
    viewport_height: float
    center_node_id: str

    @classmethod
    def from_request(cls, request_id: int, nodes: Sequence[Node], edges: Sequence[Edge],
                     viewport_width: float, viewport_height: float,
                     center_node_id: str) -> "ComputeMessage":
        return cls(
            request_id=request_id,
            nodes=[WireNode.from_node(n) for n in nodes],
            edges=[WireEdge.from_edge(e) for e in edges],
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            center_node_id=center_node_id,
        )


class ResultMessage(BaseModel):
    """Worker -> host: computed positions."""
    type: Literal["result"] = "result"
    request_id: int
    positions: Dict[str, Tuple[float, float]]


class ErrorMessage(BaseModel):
    """Worker -> host: the computation failed.

    ``fatal`` is set when the worker thread itself is going away.
    """
    type: Literal["error"] = "error"
    request_id: int
    error: str
    fatal: bool = False
