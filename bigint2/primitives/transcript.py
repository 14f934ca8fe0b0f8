"""
Fiat-Shamir transcript over a hashlib digest chain.

The transcript absorbs byte strings and produces challenges in a
deterministic, pseudorandom manner. The prover and verifier must absorb the
same values in the same order to derive the same query positions.
"""

from typing import List

from bigint2.primitives.field import bytes_to_ff
from bigint2.primitives.merkle_tree import hash_bytes


class Transcript:
    """
    Fiat-Shamir transcript.

    Attributes:
        hashfn: hashlib algorithm name
        state: Current chaining digest
        pending: Absorbed inputs not yet folded into the state
        out: Squeezed output buffer (field elements)
    """

    def __init__(self, hashfn: str = "sha256", domain: bytes = b"bigint2"):
        self.hashfn = hashfn
        self.state = hash_bytes(hashfn, b"transcript:", domain)
        self.pending: List[bytes] = []
        self.out: List[int] = []
        self.out_cursor = 0
        self.squeeze_counter = 0

    def put(self, data: bytes) -> None:
        """Absorb a length-prefixed byte string."""
        self.pending.append(len(data).to_bytes(8, "little") + bytes(data))
        self.out_cursor = 0  # Invalidate cached output

    def put_int(self, value: int) -> None:
        self.put(value.to_bytes(8, "little"))

    def _update_state(self) -> None:
        self.state = hash_bytes(self.hashfn, self.state, *self.pending)
        self.pending = []
        self.squeeze_counter = 0

    def _get_fields1(self) -> int:
        """Squeeze one Goldilocks element."""
        if self.pending:
            self._update_state()
        if self.out_cursor == 0:
            block = hash_bytes(
                self.hashfn, self.state, b"squeeze", self.squeeze_counter.to_bytes(8, "little")
            )
            self.squeeze_counter += 1
            self.out = [int(x) for x in bytes_to_ff(block)]
            self.out_cursor = len(self.out)

        result = self.out[len(self.out) - self.out_cursor]
        self.out_cursor -= 1
        return result

    def get_permutations(self, n: int, n_bits: int) -> List[int]:
        """
        Generate n values, each using n_bits bits, in range [0, 2^n_bits).

        Bits are drawn from squeezed field elements, 63 bits per element.
        """
        if n_bits == 0:
            return [0] * n

        n_fields = ((n * n_bits - 1) // 63) + 1
        fields = [self._get_fields1() for _ in range(n_fields)]

        result = []
        cur_bit = 0
        cur_field = 0

        for _ in range(n):
            a = 0
            for j in range(n_bits):
                bit = (fields[cur_field] >> cur_bit) & 1
                a += bit << j

                cur_bit += 1
                if cur_bit == 63:
                    cur_bit = 0
                    cur_field += 1

            result.append(a)

        return result
