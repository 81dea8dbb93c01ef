"""Coauthor network construction from publication records."""

import re
import logging
from collections import OrderedDict
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    Author, CoauthorGraph, CoauthorInfo, Edge, Node, Paper, PaperStats,
    Publication, PublicationType, SharedPapers
)

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """Create a stable id from an author name (used when the pid is missing)."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def get_initials(name: str) -> str:
    """Up to three upper-case initials from the parts of a name."""
    initials = [part[0] for part in name.split() if part and part[0].isascii() and part[0].isalpha()]
    return "".join(initials).upper()[:3]


def author_id(pid: Optional[str], name: str) -> str:
    return pid or slugify(name)


def filter_publications_by_type(publications: Iterable[Publication],
                                enabled_types: Optional[Iterable[PublicationType]]) -> List[Publication]:
    """Keep publications whose type is enabled; ``None`` enables every type."""
    publications = list(publications)
    if enabled_types is None:
        return publications
    enabled = set(enabled_types)
    return [pub for pub in publications if pub.pub_type in enabled]


class _Coauthor:
    __slots__ = ("author", "papers")

    def __init__(self, author: Author):
        self.author = author
        self.papers: List[Paper] = []


class CoauthorNetworkBuilder:
    """Builds the coauthor graph around one researcher."""

    def build(self, center: Author, publications: Iterable[Publication],
              enabled_types: Optional[Iterable[PublicationType]] = None) -> CoauthorGraph:
        """Build nodes and edges for ``center`` from (optionally filtered) publications."""
        publications = filter_publications_by_type(publications, enabled_types)
        logger.info(f"Building coauthor graph for {center.pid} from {len(publications)} publications")

        coauthors = self.extract_coauthors(center.pid, publications)

        nodes: List[Node[CoauthorInfo]] = [
            Node(
                id=center.pid,
                is_center=True,
                paper_count=len(publications),
                attributes=CoauthorInfo(label=center.name, initials=get_initials(center.name)),
            )
        ]
        for pid, coauthor in coauthors.items():
            nodes.append(Node(
                id=pid,
                is_center=False,
                paper_count=len(coauthor.papers),
                attributes=CoauthorInfo(label=coauthor.author.name,
                                        initials=get_initials(coauthor.author.name)),
            ))

        edges: List[Edge[SharedPapers]] = []
        for pid, coauthor in coauthors.items():
            edges.append(Edge(
                id=f"e{len(edges)}",
                source=center.pid,
                target=pid,
                weight=len(coauthor.papers),
                attributes=SharedPapers(papers=list(coauthor.papers), is_coauthor_edge=False),
            ))

        for (source, target), papers in self._coauthor_pairs(center.pid, publications, coauthors).items():
            edges.append(Edge(
                id=f"e{len(edges)}",
                source=source,
                target=target,
                weight=len(papers),
                attributes=SharedPapers(papers=papers, is_coauthor_edge=True),
            ))

        logger.info(f"Created coauthor graph with {len(nodes)} nodes and {len(edges)} edges")

        return CoauthorGraph(
            center_author=center,
            nodes=nodes,
            edges=edges,
            stats=calculate_paper_stats(publications),
            publications=publications,
        )

    def extract_coauthors(self, center_pid: str,
                          publications: List[Publication]) -> "OrderedDict[str, _Coauthor]":
        """Map coauthor id to the author and the papers shared with the centre."""
        coauthors: "OrderedDict[str, _Coauthor]" = OrderedDict()

        for pub in publications:
            if not pub.authors:
                continue
            paper = pub.to_paper()
            for entry in pub.authors:
                pid = author_id(entry.pid, entry.name)
                if pid == center_pid:
                    continue
                if pid not in coauthors:
                    coauthors[pid] = _Coauthor(Author(pid=pid, name=entry.name))
                coauthors[pid].papers.append(paper)

        return coauthors

    def _coauthor_pairs(self, center_pid: str, publications: List[Publication],
                        coauthors: Dict[str, _Coauthor]) -> Dict[Tuple[str, str], List[Paper]]:
        """Papers shared by each pair of coauthors, deduplicated by title."""
        pairs: Dict[Tuple[str, str], List[Paper]] = OrderedDict()
        seen_titles: Dict[Tuple[str, str], Set[str]] = {}

        for pub in publications:
            if not pub.authors:
                continue

            present = []
            for entry in pub.authors:
                pid = author_id(entry.pid, entry.name)
                if pid != center_pid and pid in coauthors and pid not in present:
                    present.append(pid)

            paper = pub.to_paper()
            for a, b in combinations(present, 2):
                key = (a, b) if a < b else (b, a)
                titles = seen_titles.setdefault(key, set())
                if paper.title in titles:
                    continue
                titles.add(paper.title)
                pairs.setdefault(key, []).append(paper)

        return pairs


def calculate_paper_stats(publications: List[Publication]) -> PaperStats:
    """Statistics about authors per paper; a paper without an author list counts as solo."""
    if not publications:
        return PaperStats()

    counts = [len(pub.authors) if pub.authors else 1 for pub in publications]
    return PaperStats(
        total_papers=len(publications),
        avg_authors_per_paper=round(sum(counts) / len(counts), 1),
        min_authors_per_paper=min(counts),
        max_authors_per_paper=max(counts),
    )


def get_graph_stats(graph: CoauthorGraph, top_k: int = 5) -> Dict[str, object]:
    """Summary numbers for the graph header."""
    labels = {node.id: node.attributes.label if node.attributes else node.id for node in graph.nodes}
    center_edges = [e for e in graph.edges if not (e.attributes and e.attributes.is_coauthor_edge)]
    top = sorted(center_edges, key=lambda e: e.weight, reverse=True)[:top_k]

    return {
        "total_coauthors": max(0, len(graph.nodes) - 1),
        "total_edges": len(graph.edges),
        "total_papers": sum(e.weight for e in graph.edges),
        "top_coauthors": [{"name": labels.get(e.target, "Unknown"), "papers": e.weight} for e in top],
    }
