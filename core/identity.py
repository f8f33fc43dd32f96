"""
Identity derivation for the XOR keyspace.

Node identities and data keys are both derived from raw labels with the
same one-way hash, so they live in one distance space.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Callable, Dict, Union
import logging

from Crypto.Hash import keccak

logger = logging.getLogger(__name__)


DEFAULT_HASH_ALGORITHM = "keccak256"


def _keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


# Supported hash algorithms (raw bytes -> digest bytes)
HASH_FUNCTIONS: Dict[str, Callable[[bytes], bytes]] = {
    "keccak256": _keccak256,
    "sha256": lambda data: hashlib.sha256(data).digest(),
    "sha3_256": lambda data: hashlib.sha3_256(data).digest(),
    "blake2b": lambda data: hashlib.blake2b(data).digest(),
}


@dataclass(frozen=True)
class Identity:
    """
    Opaque identifier in the XOR keyspace.

    Equality and hashing use only the digest; the raw label is kept
    for display.
    """
    digest: bytes
    raw: str = field(default="", compare=False)
    hash_algorithm: str = field(default=DEFAULT_HASH_ALGORITHM, compare=False)

    @classmethod
    def derive(cls, raw: str, hash_algorithm: str = DEFAULT_HASH_ALGORITHM) -> "Identity":
        """
        Derive an identity from a raw label.

        Args:
            raw: Any string (the empty string is valid)
            hash_algorithm: One of HASH_FUNCTIONS

        Returns:
            Identity holding the digest of the UTF-8 encoded label
        """
        if hash_algorithm not in HASH_FUNCTIONS:
            raise ValueError(f"Unsupported hash algorithm: {hash_algorithm}")

        digest = HASH_FUNCTIONS[hash_algorithm](raw.encode("utf-8"))
        return cls(digest=digest, raw=raw, hash_algorithm=hash_algorithm)

    @classmethod
    def to_identity(
        cls,
        key: Union[str, "Identity"],
        hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    ) -> "Identity":
        """Return key unchanged if it is already an Identity, else derive it."""
        if isinstance(key, Identity):
            return key
        return cls.derive(key, hash_algorithm)

    @property
    def value(self) -> int:
        """Digest as a big-endian unsigned integer."""
        return int.from_bytes(self.digest, byteorder="big")

    @property
    def hex(self) -> str:
        """0x-prefixed hex digest."""
        return "0x" + self.digest.hex()

    @property
    def short(self) -> str:
        """First 16 hex characters, for log lines."""
        return self.digest.hex()[:16]

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"Identity({self.hash_algorithm}:{self.raw!r}:{self.short}...)"


def derive(raw: str, hash_algorithm: str = DEFAULT_HASH_ALGORITHM) -> Identity:
    """Module-level shortcut for Identity.derive."""
    return Identity.derive(raw, hash_algorithm)


def xor_distance(id1: Identity, id2: Identity) -> int:
    """
    Calculate XOR distance between two identities.

    XOR metric properties:
    - d(x,x) = 0
    - d(x,y) > 0 for x != y
    - d(x,y) = d(y,x)

    This raw integer value is the only distance used for ordering,
    lookups and placement.

    Args:
        id1: First identity
        id2: Second identity

    Returns:
        Non-negative integer distance
    """
    if id1.hash_algorithm != id2.hash_algorithm:
        raise ValueError(
            f"Cannot compare identities from different hash algorithms: "
            f"{id1.hash_algorithm} vs {id2.hash_algorithm}"
        )
    return id1.value ^ id2.value
