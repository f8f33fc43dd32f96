"""
kadmesh Core Module

Shared building blocks for the DHT:
- Identity derivation (Keccak-256, SHA-256, SHA3-256, BLAKE2b)
- XOR distance
- Lookup path recording
"""

from kadmesh.core.identity import Identity, derive, xor_distance, HASH_FUNCTIONS, DEFAULT_HASH_ALGORITHM
from kadmesh.core.trace import LookupPath

__all__ = [
    "Identity",
    "derive",
    "xor_distance",
    "HASH_FUNCTIONS",
    "DEFAULT_HASH_ALGORITHM",
    "LookupPath",
]
