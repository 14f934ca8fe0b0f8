"""Merkle tree commitment over hashlib digests."""

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional

# --- Constants ---

SUPPORTED_HASHES = ("sha256", "blake2s")
HASH_SIZE = 32

LEAF_TAG = b"\x00"
NODE_TAG = b"\x01"

# --- Type Aliases ---

MerkleRoot = bytes
LeafData = bytes


def hash_bytes(hashfn: str, *parts: bytes) -> bytes:
    """Digest the concatenation of `parts` with the named hash function."""
    if hashfn not in SUPPORTED_HASHES:
        raise ValueError(f"hashfn must be one of {SUPPORTED_HASHES}, got {hashfn!r}")
    h = hashlib.new(hashfn)
    for part in parts:
        h.update(part)
    return h.digest()


ZERO_HASH = bytes(HASH_SIZE)


# --- Data Classes ---

@dataclass
class QueryProof:
    """Opened leaf plus its authentication path.

    Attributes:
        leaf: Raw leaf bytes at the queried index
        mp: Sibling digests per level, from leaf to root; each level holds
            (arity - 1) digests in child order with the opened child removed
    """
    leaf: LeafData = b""
    mp: List[List[bytes]] = field(default_factory=list)


# --- Merkle Tree ---

class MerkleTree:
    """Variable-arity Merkle tree; short levels are padded with ZERO_HASH."""

    def __init__(self, arity: int = 2, hashfn: str = "sha256"):
        if arity not in [2, 4]:
            raise ValueError(f"arity must be 2 or 4, got {arity}")
        if hashfn not in SUPPORTED_HASHES:
            raise ValueError(f"hashfn must be one of {SUPPORTED_HASHES}, got {hashfn!r}")

        self.arity = arity
        self.hashfn = hashfn

        self.height = 0
        self.levels: List[List[bytes]] = []
        self.source_data: Optional[List[LeafData]] = None

    # --- Core Operations ---

    def hash_leaf(self, leaf: LeafData) -> bytes:
        return hash_bytes(self.hashfn, LEAF_TAG, leaf)

    def hash_node(self, children: List[bytes]) -> bytes:
        return hash_bytes(self.hashfn, NODE_TAG, *children)

    def merkelize(self, leaves: List[LeafData]) -> None:
        """Build the tree bottom-up from raw leaf data."""
        self.height = len(leaves)
        self.source_data = list(leaves)
        self.levels = []

        if self.height == 0:
            return

        level = [self.hash_leaf(leaf) for leaf in leaves]
        self.levels.append(level)

        while len(level) > 1:
            extra_zeros = (self.arity - (len(level) % self.arity)) % self.arity
            padded = level + [ZERO_HASH] * extra_zeros
            level = [
                self.hash_node(padded[i:i + self.arity])
                for i in range(0, len(padded), self.arity)
            ]
            self.levels.append(level)

    def get_root(self) -> MerkleRoot:
        """Return the Merkle root commitment."""
        if not self.levels:
            return ZERO_HASH
        return self.levels[-1][0]

    def get_group_proof(self, idx: int) -> List[List[bytes]]:
        """Sibling digests for leaf `idx`, grouped per level."""
        proof: List[List[bytes]] = []
        for level in self.levels[:-1]:
            curr_idx = idx % self.arity
            si = idx - curr_idx
            siblings = []
            for i in range(self.arity):
                if i != curr_idx:
                    pos = si + i
                    siblings.append(level[pos] if pos < len(level) else ZERO_HASH)
            proof.append(siblings)
            idx //= self.arity
        return proof

    def get_query_proof(self, idx: int) -> QueryProof:
        """Leaf data and authentication path for leaf `idx`.

        Raises:
            ValueError: If the tree is empty or idx is out of range
        """
        if self.source_data is None:
            raise ValueError("Source data not stored - cannot extract leaf values")
        if idx < 0 or idx >= self.height:
            raise ValueError(f"Query index {idx} out of range [0, {self.height})")
        return QueryProof(leaf=self.source_data[idx], mp=self.get_group_proof(idx))

    def verify_group_proof(
        self,
        root: MerkleRoot,
        proof: List[List[bytes]],
        idx: int,
        leaf_data: LeafData
    ) -> bool:
        """Recompute the root from an opened leaf and its siblings."""
        computed = self.hash_leaf(leaf_data)

        for level_siblings in proof:
            if len(level_siblings) != self.arity - 1:
                return False
            curr_idx = idx % self.arity
            idx = idx // self.arity

            children = list(level_siblings)
            children.insert(curr_idx, computed)
            computed = self.hash_node(children)

        return idx == 0 and computed == root


# --- Proof Size Utilities ---

def merkle_proof_length(n_leaves: int, arity: int) -> int:
    """Number of sibling levels on the path from any of `n_leaves` leaves to the root."""
    length = 0
    while n_leaves > 1:
        n_leaves = -(-n_leaves // arity)
        length += 1
    return length
