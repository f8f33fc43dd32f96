"""
Lookup path recording.

A LookupPath is owned by the caller and handed to a lookup, which only
appends the nodes it visits.
"""

from typing import Generic, Iterator, List, TypeVar

TNode = TypeVar("TNode")


class LookupPath(Generic[TNode]):
    """Ordered, append-only record of nodes visited during a lookup."""

    def __init__(self):
        self._nodes: List[TNode] = []

    def add_node(self, node: TNode) -> None:
        """Record a visited node."""
        self._nodes.append(node)

    def get_path(self) -> List[TNode]:
        """Visited nodes in visit order (a copy)."""
        return list(self._nodes)

    def get_labels(self) -> List[str]:
        """Raw ids of the visited nodes, for display."""
        return [node.raw_id for node in self._nodes]

    def clear(self) -> None:
        self._nodes.clear()

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TNode]:
        return iter(list(self._nodes))

    def __repr__(self) -> str:
        return f"LookupPath({' -> '.join(self.get_labels())})"
