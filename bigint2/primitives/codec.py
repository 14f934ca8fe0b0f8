"""Canonical word encoding for arbitrary-precision operands.

Every integer is written as a length-prefixed sequence of little-endian u32
limbs: [n_words, limb_0, ..., limb_{n-1}]. The most significant limb is never
zero, so zero encodes as the single word [0]. Tuples are flattened
depth-first and their members concatenated in order, so ((a0, a1), (b0, b1), p)
and (a0, a1, b0, b1, p) produce the same stream.

Circuit input and journal output share this format.
"""

from typing import List, Tuple, Union

import numpy as np

from bigint2.errors import DecodeError

# --- Constants ---

WORD_SIZE = 4
WORD_BITS = 32
WORD_DTYPE = np.dtype("<u4")

# --- Type Aliases ---

Operand = Union[int, Tuple["Operand", ...]]
Shape = Union[type, Tuple["Shape", ...]]

SCALAR: Shape = int
PAIR: Shape = (int, int)


# --- Limb Conversion ---

def _check_operand(value: object) -> int:
    # bool is an int subclass but never a valid operand
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"operand must be a non-negative int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"operand must be non-negative, got {value}")
    return value


def int_to_limbs(value: int) -> np.ndarray:
    """Split a non-negative integer into little-endian u32 limbs (no zero top limb)."""
    value = _check_operand(value)
    n_words = (value.bit_length() + WORD_BITS - 1) // WORD_BITS
    return np.frombuffer(value.to_bytes(n_words * WORD_SIZE, "little"), dtype=WORD_DTYPE)


def limbs_to_int(limbs: np.ndarray) -> int:
    """Reassemble little-endian u32 limbs into an integer."""
    return int.from_bytes(np.asarray(limbs, dtype=WORD_DTYPE).tobytes(), "little")


def encode_int(value: int) -> np.ndarray:
    """Length-prefixed word encoding of a single integer."""
    limbs = int_to_limbs(value)
    return np.concatenate((np.array([len(limbs)], dtype=WORD_DTYPE), limbs))


def flatten(operands: Operand) -> List[int]:
    """Depth-first flattening of an operand tree into its integers."""
    if isinstance(operands, (tuple, list)):
        result: List[int] = []
        for item in operands:
            result.extend(flatten(item))
        return result
    return [_check_operand(operands)]


def shape_of(value: Operand) -> Shape:
    """Shape descriptor matching the structure of a value."""
    if isinstance(value, (tuple, list)):
        return tuple(shape_of(v) for v in value)
    return int


# --- Encoding ---

def encode(operands: Operand) -> bytes:
    """Encode an integer or (nested) tuple of integers into canonical bytes."""
    values = flatten(operands)
    if not values:
        return b""
    words = np.concatenate([encode_int(v) for v in values])
    return words.astype(WORD_DTYPE).tobytes()


def bytes_to_words(data: bytes) -> np.ndarray:
    """View a byte string as u32 words; the length must be word aligned."""
    if len(data) % WORD_SIZE != 0:
        raise DecodeError(f"Byte length {len(data)} is not a multiple of {WORD_SIZE}")
    return np.frombuffer(bytes(data), dtype=WORD_DTYPE)


# --- Decoding ---

class WordReader:
    """Sequential reader over an encoded word stream.

    Used both by decode() and by the execution engine to serve READ
    instructions from the circuit input.
    """

    def __init__(self, data: bytes) -> None:
        self.words = bytes_to_words(data)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.words) - self.pos

    def read_word(self) -> int:
        if self.pos >= len(self.words):
            raise DecodeError(f"Stream truncated at word {self.pos}")
        word = int(self.words[self.pos])
        self.pos += 1
        return word

    def read_int(self) -> int:
        n_words = self.read_word()
        if n_words > self.remaining:
            raise DecodeError(
                f"Integer declares {n_words} limbs but only {self.remaining} words remain"
            )
        limbs = self.words[self.pos:self.pos + n_words]
        if n_words > 0 and limbs[-1] == 0:
            raise DecodeError(f"Non-canonical integer at word {self.pos - 1}: zero top limb")
        self.pos += n_words
        return limbs_to_int(limbs)

    def read_shape(self, shape: Shape) -> Operand:
        if shape is int:
            return self.read_int()
        if isinstance(shape, tuple):
            return tuple(self.read_shape(s) for s in shape)
        raise TypeError(f"Invalid shape descriptor: {shape!r}")

    def finish(self) -> None:
        """Fail if any words are left unread."""
        if self.remaining:
            raise DecodeError(f"{self.remaining} trailing words after decoding")


def decode(data: bytes, shape: Shape = SCALAR) -> Operand:
    """Decode bytes into an integer or tuple matching `shape` exactly.

    Raises:
        DecodeError: On misaligned, truncated, non-canonical or oversized input.
    """
    reader = WordReader(data)
    value = reader.read_shape(shape)
    reader.finish()
    return value


# --- Hex Helpers ---

def from_hex(text: str) -> int:
    """Parse a big-endian hex string (optional 0x prefix) into an integer."""
    digits = text[2:] if text.lower().startswith("0x") else text
    if not digits:
        raise ValueError("empty hex string")
    return int(digits, 16)


def to_hex(value: Operand) -> Union[str, Tuple]:
    if isinstance(value, tuple):
        return tuple(to_hex(v) for v in value)
    return f"0x{value:02x}"
