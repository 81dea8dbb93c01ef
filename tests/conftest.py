"""Shared fixtures for the layout test-suite."""

import pytest

from coauthor_layout.core.models import Author, Edge, Node, Publication, PublicationAuthor, PublicationType


def star_graph(leaf_count: int, center_id: str = "center", ring: bool = False):
    """A centre connected to ``leaf_count`` leaves, optionally with a ring between leaves."""
    nodes = [Node(id=center_id, is_center=True, paper_count=leaf_count)]
    edges = []
    for i in range(leaf_count):
        nodes.append(Node(id=f"n{i}", paper_count=1 + i % 4))
        edges.append(Edge(id=f"e{len(edges)}", source=center_id, target=f"n{i}", weight=1 + i % 3))
    if ring and leaf_count > 2:
        for i in range(leaf_count):
            edges.append(Edge(id=f"e{len(edges)}", source=f"n{i}", target=f"n{(i + 1) % leaf_count}"))
    return nodes, edges


@pytest.fixture
def small_star():
    return star_graph(4)


@pytest.fixture
def center_author():
    return Author(pid="a/Smith:Jane", name="Jane Smith")


@pytest.fixture
def publications():
    return [
        Publication(
            key="j1", title="Graph Layouts", pub_type=PublicationType.JOURNAL, year="2020",
            authors=[
                PublicationAuthor(name="Jane Smith", pid="a/Smith:Jane"),
                PublicationAuthor(name="Bob Lee", pid="l/Lee:Bob"),
                PublicationAuthor(name="Carol Diaz"),
            ],
        ),
        Publication(
            key="c1", title="Force Models", pub_type=PublicationType.CONFERENCE, year="2021",
            authors=[
                PublicationAuthor(name="Jane Smith", pid="a/Smith:Jane"),
                PublicationAuthor(name="Bob Lee", pid="l/Lee:Bob"),
            ],
        ),
        Publication(
            key="c2", title="Graph Layouts", pub_type=PublicationType.CONFERENCE, year="2021",
            authors=[
                PublicationAuthor(name="Jane Smith", pid="a/Smith:Jane"),
                PublicationAuthor(name="Bob Lee", pid="l/Lee:Bob"),
                PublicationAuthor(name="Carol Diaz"),
            ],
        ),
        Publication(key="p1", title="Solo Preprint", pub_type=PublicationType.PREPRINT, year="2022"),
    ]


@pytest.fixture
def make_star():
    return star_graph
