"""Multigraphs of state migration events with timing on edges."""

from __future__ import annotations

import itertools
from dataclasses import dataclass

_ids = itertools.count()


@dataclass
class Edge:
    """A migration from one state to another over a time interval."""

    from_state: int
    to_state: int
    start_time: float
    end_time: float

    @property
    def mid_time(self):
        return (self.start_time + self.end_time) / 2.0


class MultiDAG:
    """Migration events between labelled states; each graph gets a unique id."""

    def __init__(self, statenames):
        self.statenames = list(statenames)
        self.edges = []
        self.id = next(_ids)

    @property
    def nedges(self):
        return len(self.edges)

    def add_edge(self, from_state, to_state, start_time, end_time):
        """Add and return an edge."""
        edge = Edge(from_state, to_state, start_time, end_time)
        self.edges.append(edge)
        return edge

    def to_dot(self):
        """The graph as a single line of dot, labelled by edge midpoint times."""
        parts = [f"digraph G{self.id} {{ graph [sortv={self.id}]; rankdir=LR;"]
        for e in self.edges:
            src = self.statenames[e.from_state]
            dst = self.statenames[e.to_state]
            parts.append(
                f'  {src}_G{self.id} -> {dst}_G{self.id} [label="{e.mid_time:.4f}"];'
            )
        parts.append("}\n")
        return "".join(parts)

    def write_dot(self, out):
        """Write :meth:`to_dot` to a text stream."""
        out.write(self.to_dot())


class MultiDAGSet:
    """An ordered collection of :class:`MultiDAG` objects."""

    def __init__(self):
        self.dags = []

    def add(self, dag):
        self.dags.append(dag)

    def __len__(self):
        return len(self.dags)

    def __iter__(self):
        return iter(self.dags)

    def write_dot(self, out):
        """Write every graph, one line each."""
        for dag in self.dags:
            dag.write_dot(out)