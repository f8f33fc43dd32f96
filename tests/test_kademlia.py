"""
DHT node tests: routing table maintenance, greedy lookup and migration.
"""

import pytest

from kadmesh.core.identity import derive, xor_distance
from kadmesh.core.trace import LookupPath
from kadmesh.p2p.dht.config import DHTConfig, K
from kadmesh.p2p.dht.kademlia import DHTNode


def assert_routing_table_invariants(node):
    table = node.routing_table
    identities = [entry.identity for entry in table]
    distances = [xor_distance(node.identity, i) for i in identities]

    assert len(table) <= node.config.k
    assert node.identity not in identities
    assert len(set(identities)) == len(identities)
    assert distances == sorted(distances)


@pytest.mark.unit
class TestDHTConfig:
    """Test DHT configuration."""

    def test_defaults(self):
        """Test default configuration values."""
        config = DHTConfig()

        assert config.k == K == 2
        assert config.hash_algorithm == "keccak256"
        assert config.rebalance_on_join is True
        assert config.seed is None

    def test_invalid_values(self):
        """Test validation of routing table size and hash algorithm."""
        with pytest.raises(ValueError):
            DHTConfig(k=0)
        with pytest.raises(ValueError):
            DHTConfig(hash_algorithm="crc32")

    def test_dict_round_trip(self):
        """Test configuration serialization."""
        config = DHTConfig(k=4, hash_algorithm="sha256", rebalance_on_join=False, seed=7)
        assert DHTConfig.from_dict(config.to_dict()) == config


@pytest.mark.unit
class TestRoutingTable:
    """Test routing table maintenance."""

    def test_ignores_self(self, make_node):
        """Test that a node never adds its own identity."""
        node = make_node("nodeA")

        assert node.add_to_routing_table(node) is False
        assert node.add_to_routing_table(make_node("nodeA")) is False
        assert node.routing_table == []

    def test_ignores_duplicates(self, make_node):
        """Test that known identities are not added twice."""
        node = make_node("nodeA")
        peer = make_node("nodeB")

        assert node.add_to_routing_table(peer) is True
        assert node.add_to_routing_table(peer) is False
        assert node.add_to_routing_table(make_node("nodeB")) is False
        assert node.routing_table == [peer]

    def test_bounded_sorted_unique(self, make_node):
        """Test routing table invariants after every insertion."""
        node = make_node("nodeA")
        for i in range(30):
            node.add_to_routing_table(make_node(f"peer_{i}"))
            assert_routing_table_invariants(node)

        assert len(node.routing_table) == K

    def test_keeps_k_closest(self, observer):
        """Test that eviction keeps the K closest nodes."""
        config = DHTConfig(k=5)

        node = DHTNode("nodeA", config=config, observer=observer)
        peers = [DHTNode(f"peer_{i}", config=config, observer=observer) for i in range(25)]
        for peer in peers:
            node.add_to_routing_table(peer)

        expected = sorted(peers, key=lambda p: xor_distance(node.identity, p.identity))[:5]
        assert [p.raw_id for p in node.routing_table] == [p.raw_id for p in expected]
        assert_routing_table_invariants(node)

    def test_get_closest_known_node(self, make_node):
        """Test selection of the closest routing table entry."""
        node = make_node("nodeA")
        assert node.get_closest_known_node("anything") is node

        peer_b = make_node("nodeB")
        peer_c = make_node("nodeC")
        node.add_to_routing_table(peer_b)
        node.add_to_routing_table(peer_c)

        assert node.get_closest_known_node("nodeB") is peer_b
        assert node.get_closest_known_node(derive("nodeC")) is peer_c


@pytest.mark.unit
class TestLocalStorage:
    """Test the node's local key/value store."""

    def test_store_and_get(self, make_node, observer):
        """Test storing and reading a value locally."""
        node = make_node("nodeA")
        node.store_data("key1", "value1")

        assert node.get_data("key1") == "value1"
        assert node.get_data(derive("key1")) == "value1"
        assert node.data[derive("key1")] == "value1"
        assert ("data_stored", ("nodeA", "key1", "value1")) in observer.events
        assert ("data_retrieved", ("nodeA", "key1", True)) in observer.events

    def test_missing_key(self, make_node, observer):
        """Test reading a key the node does not hold."""
        node = make_node("nodeA")

        assert node.get_data("missing") is None
        assert node.has_data("missing") is False
        assert ("data_retrieved", ("nodeA", "missing", False)) in observer.events

    def test_remove_data(self, make_node):
        """Test deleting a key locally."""
        node = make_node("nodeA")
        node.store_data("key1", "value1")

        assert node.remove_data("key1") == "value1"
        assert node.remove_data("key1") is None
        assert node.has_data("key1") is False

    def test_size(self, make_node):
        """Test local key count."""
        node = make_node("nodeA")
        assert node.size() == 0

        node.store_data("key1", "value1")
        node.store_data("key2", "value2")
        node.store_data("key1", "value3")
        assert node.size() == 2


@pytest.mark.unit
class TestFindClosestNode:
    """Test greedy nearest-node lookup."""

    def test_lone_node_returns_itself(self, make_node):
        """Test lookup on a node with an empty routing table."""
        node = make_node("nodeA")
        path = LookupPath()

        assert node.find_closest_node("key1", path) is node
        assert path.get_path() == [node]

    def test_follows_closer_neighbor(self, make_node):
        """Test that lookup moves to a strictly closer neighbor."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.add_to_routing_table(node_b)

        path = LookupPath()
        assert node_a.find_closest_node("nodeB", path) is node_b
        assert path.get_labels() == ["nodeA", "nodeB"]

    def test_stays_when_self_is_closest(self, make_node):
        """Test that lookup stops when no neighbor is closer."""
        node_a = make_node("nodeA")
        node_a.add_to_routing_table(make_node("nodeB"))

        assert node_a.find_closest_node("nodeA") is node_a

    def test_cycle_guard(self, make_node):
        """Test that an already visited node ends the lookup."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.add_to_routing_table(node_b)

        path = LookupPath()
        result = node_a.find_closest_node("nodeB", path, visited={node_a.identity})

        assert result is node_a
        assert path.get_labels() == ["nodeA"]

    def test_visited_travels_with_lookup(self, make_node):
        """Test that the visited set is shared across hops."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.add_to_routing_table(node_b)

        visited = set()
        node_a.find_closest_node("nodeB", visited=visited)
        assert visited == {node_a.identity, node_b.identity}

    def test_result_is_local_optimum(self, make_node):
        """Test lookup termination and strictly decreasing hop distances."""
        nodes = [make_node(f"node_{i}") for i in range(12)]
        for node in nodes:
            for other in nodes:
                node.add_to_routing_table(other)

        for i in range(20):
            target = derive(f"key_{i}")
            path = LookupPath()
            result = nodes[i % len(nodes)].find_closest_node(target, path)

            assert result is not None
            assert len(path) <= len(nodes) + 1
            best = xor_distance(result.identity, target)
            assert all(xor_distance(n.identity, target) >= best for n in result.routing_table)

            # Each hop gets strictly closer
            distances = [xor_distance(n.identity, target) for n in path.get_path()]
            assert distances == sorted(distances, reverse=True)
            assert len(set(distances)) == len(distances)


@pytest.mark.unit
class TestTransferData:
    """Test data migration when a closer node is learned."""

    def test_migrates_to_closer_node(self, make_node, observer):
        """Test that a key moves to a newly learned closer node."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.store_data("nodeB", "value")

        node_a.add_to_routing_table(node_b)

        assert node_b.get_data("nodeB") == "value"
        assert node_a.has_data("nodeB") is False
        assert ("data_migrated", ("nodeA", "nodeB", "nodeB")) in observer.events

    def test_keeps_data_it_is_closest_to(self, make_node):
        """Test that a key stays when the holder is still closest."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.store_data("nodeA", "value")

        node_a.add_to_routing_table(node_b)

        assert node_a.get_data("nodeA") == "value"
        assert node_b.has_data("nodeA") is False

    def test_transfer_data_count(self, make_node):
        """Test the number of migrated keys."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.store_data("nodeB", 1)
        node_a.store_data("nodeA", 2)
        node_a.routing_table.append(node_b)

        assert node_a.transfer_data(node_b) == 1
        assert node_a.transfer_data(node_b) == 0

    def test_write_during_transfer_is_not_lost(self, make_node, monkeypatch):
        """Test that a value stored while migration runs is the one migrated."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.store_data("nodeB", "v1")
        node_a.routing_table.append(node_b)

        lookup = node_a.find_closest_node

        def lookup_with_concurrent_write(target, path=None, visited=None):
            node_a.store_data("nodeB", "v2")
            return lookup(target, path, visited)

        monkeypatch.setattr(node_a, "find_closest_node", lookup_with_concurrent_write)

        assert node_a.transfer_data(node_b) == 1
        assert node_b.get_data("nodeB") == "v2"
        assert node_a.has_data("nodeB") is False

    def test_key_removed_during_transfer_is_skipped(self, make_node, monkeypatch):
        """Test that a key deleted while migration runs is not resurrected."""
        node_a = make_node("nodeA")
        node_b = make_node("nodeB")
        node_a.store_data("nodeB", "v1")
        node_a.routing_table.append(node_b)

        lookup = node_a.find_closest_node

        def lookup_with_concurrent_delete(target, path=None, visited=None):
            node_a.remove_data("nodeB")
            return lookup(target, path, visited)

        monkeypatch.setattr(node_a, "find_closest_node", lookup_with_concurrent_delete)

        assert node_a.transfer_data(node_b) == 0
        assert node_b.has_data("nodeB") is False

    def test_rebalance_disabled(self, observer):
        """Test that no data moves when rebalancing is off."""
        config = DHTConfig(rebalance_on_join=False)
        node_a = DHTNode("nodeA", config=config, observer=observer)
        node_b = DHTNode("nodeB", config=config, observer=observer)
        node_a.store_data("nodeB", "value")

        node_a.add_to_routing_table(node_b)

        assert node_a.get_data("nodeB") == "value"
        assert node_b.has_data("nodeB") is False
        assert "data_migrated" not in observer.names()

    def test_get_stats(self, make_node):
        """Test node statistics."""
        node_a = make_node("nodeA")
        node_a.add_to_routing_table(make_node("nodeB"))
        node_a.store_data("nodeA", "value")

        stats = node_a.get_stats()
        assert stats["raw_id"] == "nodeA"
        assert stats["routing_table"] == ["nodeB"]
        assert stats["local_storage_keys"] == 1
        assert stats["max_routing_table_size"] == K
