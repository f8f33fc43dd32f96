"""
Kademlia DHT network.

Owns the member nodes, wires their routing tables together on join and
dispatches store/retrieve requests through an arbitrary member.
"""

import random
from threading import RLock
from typing import Any, Dict, List, Optional, Union
import logging

from kadmesh.core.identity import Identity
from kadmesh.core.trace import LookupPath
from .config import DHTConfig
from .kademlia import DHTNode
from .observer import DHTObserver, LoggingObserver

logger = logging.getLogger(__name__)


class EmptyNetworkError(Exception):
    """Raised when an operation needs a member node but the network has none."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"No nodes in the network to {operation}")


class KademliaDHT:
    """
    In-process Kademlia network.

    Joining is fully pairwise: every member learns about the new node and
    the new node learns about every member. Store and retrieve start their
    lookup at a member picked uniformly at random.
    """

    def __init__(
        self,
        config: Optional[DHTConfig] = None,
        observer: Optional[DHTObserver] = None
    ):
        """
        Initialize an empty network.

        Args:
            config: Settings for the network and the nodes it creates
            observer: Event sink (defaults to LoggingObserver)
        """
        self.config = config or DHTConfig()
        self.observer = observer or LoggingObserver()

        # Members keyed by identity, in join order
        self._members: Dict[Identity, DHTNode] = {}

        self._rng = random.Random(self.config.seed)
        self._lock = RLock()

    @property
    def nodes(self) -> List[DHTNode]:
        """Member nodes in join order."""
        with self._lock:
            return list(self._members.values())

    def create_node(self, raw_id: str) -> DHTNode:
        """Create a node that shares this network's config and observer."""
        return DHTNode(raw_id, config=self.config, observer=self.observer)

    def join(self, new_node: DHTNode) -> bool:
        """
        Add a node to the network.

        Args:
            new_node: Node to add

        Returns:
            True if the node joined, False if its identity was already a member
        """
        if new_node.identity.hash_algorithm != self.config.hash_algorithm:
            raise ValueError(
                f"Node {new_node.raw_id} uses {new_node.identity.hash_algorithm}, "
                f"network uses {self.config.hash_algorithm}"
            )

        with self._lock:
            if new_node.identity in self._members:
                logger.warning(f"Node {new_node.raw_id} is already a member, ignoring join")
                return False

            self._members[new_node.identity] = new_node
            self.observer.node_joined(new_node, len(self._members))

            if len(self._members) == 1:
                return True

            for existing in list(self._members.values()):
                existing.add_to_routing_table(new_node)
                new_node.add_to_routing_table(existing)

            return True

    def get_random_node(self) -> DHTNode:
        """
        Pick an arbitrary member to start a lookup from.

        Raises:
            EmptyNetworkError: If the network has no members
        """
        with self._lock:
            if not self._members:
                raise EmptyNetworkError("select an entry node")
            return self._rng.choice(list(self._members.values()))

    def locate(self, key: Union[str, Identity], path: Optional[LookupPath] = None) -> DHTNode:
        """
        Find the node responsible for key.

        Args:
            key: Raw key or key identity
            path: Optional caller-owned path recording the lookup

        Returns:
            Closest node reached from a random entry node

        Raises:
            EmptyNetworkError: If the network has no members
        """
        key_id = Identity.to_identity(key, self.config.hash_algorithm)
        entry = self.get_random_node()
        return entry.find_closest_node(key_id, path)

    def store_data(self, key: str, value: Any, path: Optional[LookupPath] = None) -> bool:
        """
        Store a value at the node closest to key.

        Args:
            key: Raw key
            value: Opaque value
            path: Optional caller-owned path recording the lookup

        Returns:
            True if stored, False if the network is empty
        """
        with self._lock:
            if not self._members:
                self.observer.empty_network("store")
                return False

            key_id = Identity.to_identity(key, self.config.hash_algorithm)
            closest = self.locate(key_id, path)
            closest.store_data(key_id, value)
            return True

    def retrieve_data(self, key: str, path: Optional[LookupPath] = None) -> Optional[Any]:
        """
        Retrieve a value from the node closest to key.

        Returns:
            The value, or None if the network is empty or the closest node
            holds nothing for key
        """
        with self._lock:
            if not self._members:
                self.observer.empty_network("retrieve")
                return None

            key_id = Identity.to_identity(key, self.config.hash_algorithm)
            closest = self.locate(key_id, path)
            return closest.get_data(key_id)

    def get_node(self, raw_id: str) -> Optional[DHTNode]:
        """Member with the given raw id, or None."""
        with self._lock:
            return self._members.get(Identity.derive(raw_id, self.config.hash_algorithm))

    def find_holders(self, key: Union[str, Identity]) -> List[DHTNode]:
        """Members whose local store holds key."""
        key_id = Identity.to_identity(key, self.config.hash_algorithm)
        return [node for node in self.nodes if node.has_data(key_id)]

    def get_stats(self) -> Dict:
        """Get network statistics."""
        nodes = self.nodes
        return {
            "total_nodes": len(nodes),
            "k": self.config.k,
            "hash_algorithm": self.config.hash_algorithm,
            "rebalance_on_join": self.config.rebalance_on_join,
            "stored_keys": sum(node.size() for node in nodes),
            "nodes": [node.get_stats() for node in nodes],
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def __contains__(self, node: DHTNode) -> bool:
        with self._lock:
            return node.identity in self._members
