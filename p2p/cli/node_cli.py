#!/usr/bin/env python3
"""
kadmesh Network Simulator CLI

Command-line interface for building in-process Kademlia networks.

Commands:
- demo: Run the reference scenario (five nodes, two keys, lookup paths)
- simulate: Build a network from labels, store and retrieve keys
- distance: Show identities of two labels and their XOR distance
- stats: Display routing tables and storage per node
"""

import sys
import argparse
import logging
from typing import List, Optional

from kadmesh.core.identity import HASH_FUNCTIONS, DEFAULT_HASH_ALGORITHM, Identity, xor_distance
from kadmesh.core.trace import LookupPath
from kadmesh.p2p.dht.config import DHTConfig, K
from kadmesh.p2p.dht.network import KademliaDHT

logger = logging.getLogger(__name__)


DEMO_NODES = ["nodeA", "nodeB", "nodeC", "nodeD"]


class KadmeshCLI:
    """
    CLI for kadmesh network simulation.

    Each command builds a fresh in-process network from its arguments.
    """

    def build_config(self, args) -> DHTConfig:
        """Map common flags to a DHTConfig."""
        return DHTConfig(
            k=args.k,
            hash_algorithm=args.hash,
            rebalance_on_join=not args.no_rebalance,
            seed=args.seed,
        )

    def build_network(self, args, labels: List[str]) -> KademliaDHT:
        """Create a network and join one node per label."""
        dht = KademliaDHT(config=self.build_config(args))
        for label in labels:
            dht.join(dht.create_node(label))
        return dht

    def _retrieve_with_path(self, dht: KademliaDHT, key: str) -> None:
        path = LookupPath()
        value = dht.retrieve_data(key, path=path)
        print(f"  {key!r} -> {value!r}")
        print(f"  path: {' -> '.join(path.get_labels())}")

    def demo(self, args):
        """Run the reference scenario."""
        print("🌐 kadmesh demo")
        print("=" * 60)

        dht = self.build_network(args, DEMO_NODES)

        dht.store_data("key1", "Stored in DHT")
        dht.join(dht.create_node("nodeE"))

        print("\nRetrieved data from DHT:")
        self._retrieve_with_path(dht, "key1")

        dht.store_data("key2", "Key2 value")

        print("\nRetrieved data from DHT:")
        self._retrieve_with_path(dht, "key2")

        return 0

    def simulate(self, args):
        """Build a network, store and retrieve keys."""
        if not args.nodes:
            print("❌ At least one node label is required (--nodes)")
            return 1

        dht = self.build_network(args, args.nodes)
        print(f"🌐 Network with {len(dht)} nodes (k={dht.config.k})")

        for item in args.put or []:
            key, sep, value = item.partition("=")
            if not sep:
                print(f"❌ Invalid --put value {item!r}, expected key=value")
                return 1

            dht.store_data(key, value)
            holders = ", ".join(node.raw_id for node in dht.find_holders(key)) or "-"
            print(f"📥 Stored {key!r} at: {holders}")

        for key in args.get or []:
            print(f"\n📤 Retrieving {key!r}:")
            self._retrieve_with_path(dht, key)

        return 0

    def distance(self, args):
        """Show identities of two labels and their XOR distance."""
        a = Identity.derive(args.a, args.hash)
        b = Identity.derive(args.b, args.hash)

        print(f"{args.a:<20} {a.hex}")
        print(f"{args.b:<20} {b.hex}")
        print(f"{'XOR distance':<20} {xor_distance(a, b)}")
        return 0

    def get_stats(self, args):
        """Display network statistics."""
        dht = self.build_network(args, args.nodes or DEMO_NODES)
        stats = dht.get_stats()

        print("📊 kadmesh Network Statistics")
        print("=" * 60)
        print(f"  {'Total Nodes':<25} {stats['total_nodes']}")
        print(f"  {'Routing Table Size (k)':<25} {stats['k']}")
        print(f"  {'Hash Algorithm':<25} {stats['hash_algorithm']}")
        print(f"  {'Rebalance On Join':<25} {stats['rebalance_on_join']}")
        print(f"  {'Stored Keys':<25} {stats['stored_keys']}")

        print(f"\n{'Node':<12} {'Node ID':<20} {'Keys':<6} {'Routing Table'}")
        print("-" * 60)
        for node in stats["nodes"]:
            print(
                f"{node['raw_id']:<12} "
                f"{node['node_id']:<20} "
                f"{node['local_storage_keys']:<6} "
                f"{', '.join(node['routing_table'])}"
            )

        return 0

    def create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("--k", type=int, default=K, help="Routing table size")
        common.add_argument(
            "--hash", default=DEFAULT_HASH_ALGORITHM,
            choices=sorted(HASH_FUNCTIONS), help="Identity hash algorithm"
        )
        common.add_argument("--seed", type=int, default=None, help="Entry-node selection seed")
        common.add_argument(
            "--no-rebalance", action="store_true",
            help="Do not migrate data when nodes join"
        )

        parser = argparse.ArgumentParser(
            description="kadmesh Kademlia Network Simulator",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        parser.add_argument(
            "--log-level", default="WARNING",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
        )

        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("demo", parents=[common], help="Run the reference scenario")

        simulate_parser = subparsers.add_parser("simulate", parents=[common], help="Simulate a network")
        simulate_parser.add_argument("--nodes", nargs="+", help="Node labels, in join order")
        simulate_parser.add_argument("--put", nargs="+", help="key=value pairs to store")
        simulate_parser.add_argument("--get", nargs="+", help="Keys to retrieve")

        distance_parser = subparsers.add_parser("distance", parents=[common], help="XOR distance of two labels")
        distance_parser.add_argument("a", help="First label")
        distance_parser.add_argument("b", help="Second label")

        stats_parser = subparsers.add_parser("stats", parents=[common], help="Display statistics")
        stats_parser.add_argument("--nodes", nargs="+", help="Node labels, in join order")

        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run CLI (entry point)."""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format="%(asctime)s %(name)s %(levelname)s %(message)s"
        )

        try:
            if args.command == "demo":
                return self.demo(args)
            elif args.command == "simulate":
                return self.simulate(args)
            elif args.command == "distance":
                return self.distance(args)
            elif args.command == "stats":
                return self.get_stats(args)
        except ValueError as e:
            print(f"❌ {e}")
            return 1

        print("❌ Unknown command. Use --help for usage.")
        return 1


def main():
    """CLI entry point."""
    cli = KadmeshCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
