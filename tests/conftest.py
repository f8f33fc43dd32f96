"""
Pytest configuration and fixtures for kadmesh tests
"""

import pytest

from kadmesh.p2p.dht.config import DHTConfig
from kadmesh.p2p.dht.kademlia import DHTNode
from kadmesh.p2p.dht.network import KademliaDHT
from kadmesh.p2p.dht.observer import DHTObserver


class RecordingObserver(DHTObserver):
    """Collects events as (name, details) tuples."""

    def __init__(self):
        self.events = []

    def names(self):
        return [name for name, _ in self.events]

    def node_created(self, node):
        self.events.append(("node_created", node.raw_id))

    def node_joined(self, node, network_size):
        self.events.append(("node_joined", (node.raw_id, network_size)))

    def data_stored(self, node, key, value):
        self.events.append(("data_stored", (node.raw_id, key.raw, value)))

    def data_retrieved(self, node, key, found):
        self.events.append(("data_retrieved", (node.raw_id, key.raw, found)))

    def data_migrated(self, source, target, key):
        self.events.append(("data_migrated", (source.raw_id, target.raw_id, key.raw)))

    def empty_network(self, operation):
        self.events.append(("empty_network", operation))


@pytest.fixture
def observer():
    """Fixture providing an event-recording observer."""
    return RecordingObserver()


@pytest.fixture
def config():
    """Fixture providing a seeded default configuration."""
    return DHTConfig(seed=42)


@pytest.fixture
def dht(config, observer):
    """Fixture providing an empty network."""
    return KademliaDHT(config=config, observer=observer)


@pytest.fixture
def make_node(config, observer):
    """Fixture providing a node factory bound to the test config."""
    def _make(raw_id, node_config=None):
        return DHTNode(raw_id, config=node_config or config, observer=observer)
    return _make
