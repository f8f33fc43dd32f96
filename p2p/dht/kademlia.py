"""
Kademlia DHT Node

Each node keeps:
- An identity in the XOR keyspace (hash of its raw id)
- A routing table: the K closest known nodes, sorted by XOR distance
- A local key -> value store

Lookups are greedy: a node forwards the search to the neighbor closest to
the target until no neighbor is closer than the current node. When a node
learns about a new peer it hands over any stored keys for which that peer
is now the closest reachable node.
"""

from typing import Any, Dict, List, Optional, Set, Tuple, Union
from threading import RLock
import logging

from kadmesh.core.identity import Identity, xor_distance
from kadmesh.core.trace import LookupPath
from .config import DHTConfig
from .observer import DHTObserver, LoggingObserver

logger = logging.getLogger(__name__)


KeyLike = Union[str, Identity]


class DHTNode:
    """
    A node in the Kademlia DHT.

    The routing table is a single flat list capped at K entries, ordered by
    (XOR distance to this node, identity value). It never contains this
    node or two entries with the same identity.
    """

    def __init__(
        self,
        raw_id: str,
        config: Optional[DHTConfig] = None,
        observer: Optional[DHTObserver] = None
    ):
        """
        Create a node.

        Args:
            raw_id: Label the node identity is derived from
            config: Network settings (routing table size, hash algorithm, ...)
            observer: Event sink (defaults to LoggingObserver)
        """
        self.config = config or DHTConfig()
        self.observer = observer or LoggingObserver()

        self.raw_id = raw_id
        self.identity = Identity.derive(raw_id, self.config.hash_algorithm)

        # K closest known nodes, closest first
        self.routing_table: List["DHTNode"] = []

        # Local storage (key identity -> value)
        self.data: Dict[Identity, Any] = {}

        self._lock = RLock()

        self.observer.node_created(self)

    def _identity(self, key: KeyLike) -> Identity:
        return Identity.to_identity(key, self.config.hash_algorithm)

    @staticmethod
    def _order_key(node: "DHTNode", target: Identity) -> Tuple[int, int]:
        # Distance first, identity value breaks ties
        return (xor_distance(node.identity, target), node.identity.value)

    # ===== Local storage =====

    def store_data(self, key: KeyLike, value: Any) -> None:
        """
        Store a value in this node's local store.

        Args:
            key: Raw key or key identity
            value: Opaque value
        """
        key_id = self._identity(key)
        with self._lock:
            self.data[key_id] = value
        self.observer.data_stored(self, key_id, value)

    def get_data(self, key: KeyLike) -> Optional[Any]:
        """
        Read a value from this node's local store.

        Returns:
            The stored value, or None if this node holds nothing for key
        """
        key_id = self._identity(key)
        with self._lock:
            found = key_id in self.data
            value = self.data.get(key_id)
        self.observer.data_retrieved(self, key_id, found)
        return value

    def has_data(self, key: KeyLike) -> bool:
        with self._lock:
            return self._identity(key) in self.data

    def remove_data(self, key: KeyLike) -> Optional[Any]:
        """Delete a key locally and return its value (None if absent)."""
        with self._lock:
            return self.data.pop(self._identity(key), None)

    def size(self) -> int:
        """Get number of locally stored keys."""
        with self._lock:
            return len(self.data)

    # ===== Routing table =====

    def knows(self, node: "DHTNode") -> bool:
        """Check if a node with the same identity is in the routing table."""
        with self._lock:
            return any(entry.identity == node.identity for entry in self.routing_table)

    def add_to_routing_table(self, node: "DHTNode") -> bool:
        """
        Add a node to the routing table.

        Self and already-known identities are ignored. After insertion the
        table is re-sorted and trimmed back to K entries by dropping the
        farthest one. With rebalancing enabled, stored keys that the new
        node is now responsible for are handed over to it.

        Args:
            node: Node to learn about

        Returns:
            True if the node was inserted, False if it was ignored
        """
        if node.identity == self.identity:
            return False

        with self._lock:
            if self.knows(node):
                return False

            self.routing_table.append(node)
            self.routing_table.sort(key=lambda n: self._order_key(n, self.identity))

            if len(self.routing_table) > self.config.k:
                evicted = self.routing_table.pop()
                logger.debug(f"Node {self.raw_id} evicted {evicted.raw_id} from routing table")

        if self.config.rebalance_on_join:
            self.transfer_data(node)

        return True

    def transfer_data(self, new_node: "DHTNode") -> int:
        """
        Hand over stored keys for which new_node is now the closest node.

        The closest node is found with a lookup starting at this node, so
        only nodes reachable through the routing tables are considered.

        Args:
            new_node: The node that was just learned about

        Returns:
            Number of keys migrated
        """
        with self._lock:
            keys = list(self.data)

        migrated = 0
        for key_id in keys:
            closest = self.find_closest_node(key_id)
            if closest.identity != new_node.identity:
                continue

            # Value may have changed during the lookup
            with self._lock:
                if key_id not in self.data:
                    continue
                value = self.data.pop(key_id)

            new_node.store_data(key_id, value)
            self.observer.data_migrated(self, new_node, key_id)
            migrated += 1

        return migrated

    def get_closest_known_node(self, target: KeyLike) -> "DHTNode":
        """
        Closest routing-table entry to target.

        Returns:
            The closest known node, or this node if the routing table is empty
        """
        target_id = self._identity(target)
        with self._lock:
            known = list(self.routing_table)

        if not known:
            return self

        return min(known, key=lambda n: self._order_key(n, target_id))

    def find_closest_node(
        self,
        target: KeyLike,
        path: Optional[LookupPath] = None,
        visited: Optional[Set[Identity]] = None
    ) -> "DHTNode":
        """
        Greedy nearest-node lookup.

        The search moves to the closest known neighbor while it is strictly
        closer to the target than the current node. The result is a local
        optimum of the routing graph reachable from this node, not
        necessarily the globally closest member.

        Args:
            target: Raw key or key identity to locate
            path: Optional caller-owned path; every visited node is appended
            visited: Identities already expanded in this lookup

        Returns:
            The closest node found (never None)
        """
        target_id = self._identity(target)
        if visited is None:
            visited = set()

        if path is not None:
            path.add_node(self)

        # Cycle guard
        if self.identity in visited:
            return self
        visited.add(self.identity)

        candidate = self.get_closest_known_node(target_id)
        if candidate.identity == self.identity:
            return self

        if xor_distance(self.identity, target_id) <= xor_distance(candidate.identity, target_id):
            return self

        return candidate.find_closest_node(target_id, path, visited)

    def get_stats(self) -> Dict:
        """Get node statistics."""
        with self._lock:
            return {
                "raw_id": self.raw_id,
                "node_id": self.identity.short + "...",
                "routing_table": [n.raw_id for n in self.routing_table],
                "routing_table_size": len(self.routing_table),
                "max_routing_table_size": self.config.k,
                "local_storage_keys": len(self.data),
            }

    def __repr__(self) -> str:
        return f"DHTNode({self.raw_id!r}, {self.identity.short}...)"
