"""
Kademlia DHT (Distributed Hash Table)

Provides in-process key placement and lookup using the Kademlia XOR metric.
"""

from .config import DHTConfig, K
from .observer import DHTObserver, LoggingObserver
from .kademlia import DHTNode
from .network import KademliaDHT, EmptyNetworkError

__all__ = [
    "DHTConfig",
    "K",
    "DHTObserver",
    "LoggingObserver",
    "DHTNode",
    "KademliaDHT",
    "EmptyNetworkError",
]
