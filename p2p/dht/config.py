"""
DHT configuration.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from kadmesh.core.identity import DEFAULT_HASH_ALGORITHM, HASH_FUNCTIONS


# Kademlia constants
K = 2  # Routing table size (k closest known nodes)


@dataclass
class DHTConfig:
    """Settings shared by every node of a network."""

    k: int = K
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    rebalance_on_join: bool = True  # Migrate data to closer nodes when they join
    seed: Optional[int] = None  # Entry-node selection seed (None = system randomness)

    def __post_init__(self):
        if self.k < 1:
            raise ValueError(f"Routing table size must be positive, got {self.k}")
        if self.hash_algorithm not in HASH_FUNCTIONS:
            raise ValueError(f"Unsupported hash algorithm: {self.hash_algorithm}")

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict) -> "DHTConfig":
        """Deserialize from dictionary."""
        return DHTConfig(
            k=data.get("k", K),
            hash_algorithm=data.get("hash_algorithm", DEFAULT_HASH_ALGORITHM),
            rebalance_on_join=data.get("rebalance_on_join", True),
            seed=data.get("seed"),
        )
