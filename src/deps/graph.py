"""Directed graph of package dependencies.

Vertices are integer indexes added on demand; an edge v -> w means the
package at v depends on the package at w. The graph only lives for the
duration of one dependency walk.
"""

import logging

logger = logging.getLogger(__name__)

_WHITE, _GRAY, _BLACK = 0, 1, 2


class DependencyGraph:
    """Minimal mutable directed graph with an acyclicity check."""

    def __init__(self):
        self._edges: list[set[int]] = []

    def add_vertex(self) -> int:
        """Add a vertex and return its index."""
        self._edges.append(set())
        return len(self._edges) - 1

    def add_edge(self, v: int, w: int) -> None:
        """Add an edge from vertex v to vertex w.

        Raises:
            IndexError: If either vertex does not exist
        """
        if not (0 <= v < len(self._edges) and 0 <= w < len(self._edges)):
            raise IndexError(f"Edge {v} -> {w} references unknown vertex")
        self._edges[v].add(w)
        logger.debug(f"Added edge {v} -> {w}")

    def remove_edge(self, v: int, w: int) -> None:
        self._edges[v].discard(w)

    def has_edge(self, v: int, w: int) -> bool:
        return w in self._edges[v]

    @property
    def order(self) -> int:
        """Number of vertices."""
        return len(self._edges)

    def successors(self, v: int) -> list[int]:
        return sorted(self._edges[v])

    def is_acyclic(self) -> bool:
        """Return True if the graph has no directed cycle.

        Iterative three-color DFS; a self-loop counts as a cycle.
        """
        color = [_WHITE] * len(self._edges)
        for start in range(len(self._edges)):
            if color[start] != _WHITE:
                continue
            color[start] = _GRAY
            stack = [(start, iter(self.successors(start)))]
            while stack:
                v, children = stack[-1]
                for w in children:
                    if color[w] == _GRAY:
                        return False
                    if color[w] == _WHITE:
                        color[w] = _GRAY
                        stack.append((w, iter(self.successors(w))))
                        break
                else:
                    color[v] = _BLACK
                    stack.pop()
        return True

    def topological_order(self) -> list[int]:
        """Return vertices with every dependency before its dependents.

        Ties keep ascending vertex order for stable output.

        Raises:
            ValueError: If the graph contains a cycle
        """
        if not self.is_acyclic():
            raise ValueError("Graph contains a cycle")

        ordered: list[int] = []
        done: set[int] = set()
        for start in range(len(self._edges)):
            if start in done:
                continue
            stack = [(start, iter(self.successors(start)))]
            while stack:
                v, children = stack[-1]
                for w in children:
                    if w not in done:
                        stack.append((w, iter(self.successors(w))))
                        break
                else:
                    stack.pop()
                    if v not in done:
                        done.add(v)
                        ordered.append(v)
        return ordered
