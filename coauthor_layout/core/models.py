"""Data models for the coauthor layout engine."""

import math
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Tuple, TypeVar
from enum import Enum

P = TypeVar("P")

# node id -> (x, y) in viewport space
LayoutResult = Dict[str, Tuple[float, float]]

DEFAULT_NODE_SIZE = 10.0


def node_size(paper_count: Optional[int]) -> float:
    """Rendered size of a node; also used as its collision radius in the simulation."""
    return DEFAULT_NODE_SIZE + math.sqrt(paper_count or 1) * 5


class PublicationType(Enum):
    """Publication type used by the filter controls."""
    JOURNAL = "journal"
    CONFERENCE = "conference"
    BOOK = "book"
    PREPRINT = "preprint"
    OTHER = "other"


@dataclass(frozen=True)
class Node(Generic[P]):
    """Graph node as consumed by the layout engine.

    ``attributes`` is an opaque payload owned by the caller; the engine never reads it.
    """
    id: str
    is_center: bool = False
    paper_count: int = 0
    attributes: Optional[P] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Node id must be a non-empty string")
        if self.paper_count < 0:
            raise ValueError(f"Node {self.id} has negative paper count {self.paper_count}")

    @property
    def size(self) -> float:
        return node_size(self.paper_count)


@dataclass(frozen=True)
class Edge(Generic[P]):
    """Undirected graph edge; ``weight`` is the number of shared papers."""
    id: str
    source: str
    target: str
    weight: float = 1.0
    attributes: Optional[P] = None

    def __post_init__(self):
        if self.source == self.target:
            raise ValueError(f"Edge {self.id} is a self-loop on {self.source}")
        if not self.weight > 0:
            raise ValueError(f"Edge {self.id} has non-positive weight {self.weight}")


@dataclass
class Author:
    """Researcher as returned by the bibliographic service."""
    pid: str
    name: str
    url: str = ""
    aliases: List[str] = field(default_factory=list)
    paper_count: Optional[int] = None
    affiliation: Optional[str] = None


@dataclass
class PublicationAuthor:
    """Author entry on a publication record; ``pid`` may be missing."""
    name: str
    pid: Optional[str] = None


@dataclass
class Paper:
    """Compact paper reference carried on edges."""
    title: str
    year: Optional[str] = None
    venue: Optional[str] = None
    url: Optional[str] = None


@dataclass
class Publication:
    """Raw publication record."""
    key: str
    title: str
    pub_type: PublicationType = PublicationType.OTHER
    authors: Optional[List[PublicationAuthor]] = None
    year: Optional[str] = None
    venue: Optional[str] = None
    url: Optional[str] = None

    def to_paper(self) -> Paper:
        return Paper(title=self.title, year=self.year, venue=self.venue, url=self.url)


@dataclass
class CoauthorInfo:
    """Node payload: display data for a researcher."""
    label: str
    initials: str


@dataclass
class SharedPapers:
    """Edge payload: the papers two researchers share."""
    papers: List[Paper] = field(default_factory=list)
    is_coauthor_edge: bool = False


@dataclass
class PaperStats:
    """Statistics about authors per paper."""
    total_papers: int = 0
    avg_authors_per_paper: float = 0.0
    min_authors_per_paper: int = 0
    max_authors_per_paper: int = 0


@dataclass
class CoauthorGraph:
    """Coauthor graph centred on one researcher."""
    center_author: Author
    nodes: List[Node[CoauthorInfo]] = field(default_factory=list)
    edges: List[Edge[SharedPapers]] = field(default_factory=list)
    stats: PaperStats = field(default_factory=PaperStats)
    publications: List[Publication] = field(default_factory=list)

    @property
    def center_node_id(self) -> str:
        for node in self.nodes:
            if node.is_center:
                return node.id
        return self.center_author.pid
