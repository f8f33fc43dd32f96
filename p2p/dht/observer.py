"""
DHT event observers.

Nodes and networks report what they do through a DHTObserver. The
default LoggingObserver turns events into log records; tests and tools
can subclass DHTObserver to collect them instead.
"""

from typing import Any
import logging

from kadmesh.core.identity import Identity

logger = logging.getLogger(__name__)


class DHTObserver:
    """Receives DHT events. Every hook is a no-op by default."""

    def node_created(self, node) -> None:
        pass

    def node_joined(self, node, network_size: int) -> None:
        pass

    def data_stored(self, node, key: Identity, value: Any) -> None:
        pass

    def data_retrieved(self, node, key: Identity, found: bool) -> None:
        pass

    def data_migrated(self, source, target, key: Identity) -> None:
        pass

    def empty_network(self, operation: str) -> None:
        pass


class LoggingObserver(DHTObserver):
    """Observer that writes every event to the standard logging system."""

    def node_created(self, node) -> None:
        logger.info(f"Node created: {node.raw_id} ({node.identity.short}...)")

    def node_joined(self, node, network_size: int) -> None:
        logger.info(f"Node joined network: {node.raw_id} (size: {network_size})")

    def data_stored(self, node, key: Identity, value: Any) -> None:
        logger.info(f"Stored key {key.raw!r} ({key.short}...) at node {node.raw_id}")

    def data_retrieved(self, node, key: Identity, found: bool) -> None:
        status = "hit" if found else "miss"
        logger.debug(f"Lookup {status} for key {key.raw!r} at node {node.raw_id}")

    def data_migrated(self, source, target, key: Identity) -> None:
        logger.info(f"Migrated key {key.raw!r} from {source.raw_id} to {target.raw_id}")

    def empty_network(self, operation: str) -> None:
        logger.error(f"No nodes in the network to {operation} data")
