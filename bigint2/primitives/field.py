"""Finite fields used by the pipeline.

FF is the Goldilocks prime field; transcript challenges are squeezed into it.
The degree-2 extension-field reference semantics work on pairs (c0, c1) of
residues mod p: addition and subtraction act component-wise, so plain integer
arithmetic suffices and any modulus p > 0 is accepted.
"""

from typing import Tuple

import galois
import numpy as np

# --- Field Construction ---

GOLDILOCKS_PRIME = 0xFFFFFFFF00000001

FF = galois.GF(GOLDILOCKS_PRIME)
"""Base field GF(p) - Goldilocks prime field."""

EXTENSION_DEGREE = 2

ExtElement = Tuple[int, int]


# --- Challenge Conversion ---

def bytes_to_ff(data: bytes) -> FF:
    """Interpret each 8-byte little-endian chunk as an element of FF (reduced mod p)."""
    usable = len(data) - len(data) % 8
    words = np.frombuffer(data[:usable], dtype="<u8")
    return FF([int(w) % GOLDILOCKS_PRIME for w in words])


# --- Extension Field Reference Arithmetic ---

def _check_ext(elem: ExtElement, p: int) -> None:
    if len(elem) != EXTENSION_DEGREE:
        raise ValueError(f"extension element must have {EXTENSION_DEGREE} components, got {len(elem)}")
    if p < 1:
        raise ValueError(f"modulus must be positive, got {p}")


def ext_add(a: ExtElement, b: ExtElement, p: int) -> ExtElement:
    """Component-wise (a + b) mod p."""
    _check_ext(a, p)
    _check_ext(b, p)
    return tuple((x + y) % p for x, y in zip(a, b))


def ext_sub(a: ExtElement, b: ExtElement, p: int) -> ExtElement:
    """Component-wise (a - b) mod p, each component in [0, p)."""
    _check_ext(a, p)
    _check_ext(b, p)
    return tuple((x - y) % p for x, y in zip(a, b))
