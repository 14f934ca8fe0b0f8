"""Primitives - codec, fields and hash commitments."""

from bigint2.primitives.codec import (
    PAIR,
    SCALAR,
    WordReader,
    decode,
    encode,
    from_hex,
    shape_of,
)
from bigint2.primitives.field import FF, GOLDILOCKS_PRIME, bytes_to_ff, ext_add, ext_sub
from bigint2.primitives.merkle_tree import HASH_SIZE, MerkleTree, QueryProof
from bigint2.primitives.transcript import Transcript

__all__ = [
    # Codec
    "encode",
    "decode",
    "shape_of",
    "from_hex",
    "WordReader",
    "SCALAR",
    "PAIR",
    # Field
    "FF",
    "GOLDILOCKS_PRIME",
    "bytes_to_ff",
    "ext_add",
    "ext_sub",
    # Merkle Tree
    "MerkleTree",
    "QueryProof",
    "HASH_SIZE",
    # Transcript
    "Transcript",
]
