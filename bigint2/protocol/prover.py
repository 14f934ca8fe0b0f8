"""Proof generation for completed sessions.

The seal commits to the full execution trace with a Merkle tree and opens a
Fiat-Shamir sampled subset of rows (each together with its successor), every
COMMIT row and the final HALT row. The opened set is closed under register
dataflow: each opened row comes with the rows that last wrote its source
registers, so the verifier can chain every committed value back to the
inputs. The verifier re-derives the sample from the transcript, so the prover
cannot choose which rows are checked after the commitment is fixed.

Statistics are a measurement only; they carry no cryptographic weight.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Union

from bigint2.circuits.isa import Instruction, Opcode, find_writer
from bigint2.errors import ProofError, ProvingError
from bigint2.primitives.codec import encode_int
from bigint2.primitives.merkle_tree import SUPPORTED_HASHES, MerkleTree, hash_bytes
from bigint2.primitives.transcript import Transcript
from bigint2.protocol.session import Session, Success, TraceRow

logger = logging.getLogger(__name__)

SEAL_VERSION = 1
MAX_QUERIES = 1024


# --- Configuration ---

@dataclass(frozen=True)
class ProverOpts:
    """Prover parameters.

    Attributes:
        n_queries: Number of sampled row openings
        merkle_arity: Trace tree branching factor (2 or 4)
        hashfn: hashlib algorithm for tree and transcript
        min_po2: Lower bound on the padded trace size exponent
    """
    n_queries: int = 16
    merkle_arity: int = 2
    hashfn: str = "sha256"
    min_po2: int = 4

    def __post_init__(self) -> None:
        if not 1 <= self.n_queries <= MAX_QUERIES:
            raise ValueError(f"n_queries must be in [1, {MAX_QUERIES}], got {self.n_queries}")
        if self.merkle_arity not in (2, 4):
            raise ValueError(f"merkle_arity must be 2 or 4, got {self.merkle_arity}")
        if self.hashfn not in SUPPORTED_HASHES:
            raise ValueError(f"hashfn must be one of {SUPPORTED_HASHES}, got {self.hashfn!r}")

    @classmethod
    def fast(cls) -> "ProverOpts":
        """Few queries; for tests and development."""
        return cls(n_queries=4)

    @classmethod
    def default(cls) -> "ProverOpts":
        return cls()

    @classmethod
    def from_dict(cls, d: Dict) -> "ProverOpts":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ProverOpts":
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict:
        return asdict(self)


# --- Proof Artifacts ---

@dataclass(frozen=True)
class SessionStats:
    """Execution statistics for observability.

    Attributes:
        user_cycles: Executed instructions
        po2: log2 of the padded trace size
        total_cycles: 2**po2
    """
    user_cycles: int
    po2: int
    total_cycles: int


@dataclass(frozen=True)
class Receipt:
    """Journal plus opaque seal attesting the execution of `image_id`."""
    image_id: str
    journal: bytes
    seal: bytes

    def verify(self, artifact) -> None:
        """Raise ProofError unless the seal verifies against `artifact`."""
        from bigint2.protocol.verifier import verify_receipt

        if not verify_receipt(self, artifact):
            raise ProofError(f"Receipt for image {self.image_id} failed verification")


@dataclass(frozen=True)
class ProveInfo:
    receipt: Receipt
    stats: SessionStats


# --- Shared Prover/Verifier Helpers ---

def compute_po2(n_rows: int, min_po2: int) -> int:
    return max(min_po2, (n_rows - 1).bit_length())


def seed_transcript(
    hashfn: str, image_id: str, journal_digest: bytes, user_cycles: int, trace_root: bytes
) -> Transcript:
    """Absorb the public statement and trace commitment in a fixed order."""
    transcript = Transcript(hashfn=hashfn)
    transcript.put(bytes.fromhex(image_id))
    transcript.put(journal_digest)
    transcript.put_int(user_cycles)
    transcript.put(trace_root)
    return transcript


def query_indices(transcript: Transcript, n_queries: int, n_rows: int) -> Set[int]:
    """Sampled rows and their successors."""
    n_bits = max(1, (n_rows - 1).bit_length())
    indices: Set[int] = set()
    for q in transcript.get_permutations(n_queries, n_bits):
        idx = q % n_rows
        indices.add(idx)
        if idx + 1 < n_rows:
            indices.add(idx + 1)
    return indices


def dependency_closure(instructions: Sequence[Instruction], roots: Set[int]) -> Set[int]:
    """Close `roots` under the rows that define each row's source registers."""
    closed: Set[int] = set()
    stack = list(roots)
    while stack:
        pc = stack.pop()
        if pc in closed:
            continue
        closed.add(pc)
        for reg in instructions[pc].reads():
            writer = find_writer(instructions, pc, reg)
            if writer is not None:
                stack.append(writer)
    return closed


def opened_rows(
    transcript: Transcript, instructions: Sequence[Instruction], n_queries: int
) -> Set[int]:
    """Rows a seal must open: sample, COMMIT rows, final row, and their dependencies."""
    n_rows = len(instructions)
    roots = query_indices(transcript, n_queries, n_rows)
    roots.update(pc for pc, ins in enumerate(instructions) if ins.opcode == Opcode.COMMIT)
    roots.add(n_rows - 1)
    return dependency_closure(instructions, roots)


# --- Prover ---

class Prover:
    """Generates receipts for successful sessions."""

    def __init__(self, opts: Optional[ProverOpts] = None) -> None:
        self.opts = opts or ProverOpts.default()

    def prove(self, session: Session) -> ProveInfo:
        """Prove a completed session.

        Raises:
            ProvingError: If the session did not halt successfully or its
                trace and journal are inconsistent
        """
        if not isinstance(session, Success):
            raise ProvingError(f"Cannot prove session with exit code {session.exit_code}")
        trace = session.trace
        self._check_trace(trace, session.journal)

        n_rows = len(trace)
        opts = self.opts

        tree = MerkleTree(arity=opts.merkle_arity, hashfn=opts.hashfn)
        tree.merkelize([row.to_leaf() for row in trace])
        root = tree.get_root()

        journal_digest = hash_bytes(opts.hashfn, session.journal)
        transcript = seed_transcript(opts.hashfn, session.image_id, journal_digest, n_rows, root)

        # Straight-line execution: row i ran instruction i
        instructions = [Instruction(Opcode(row.opcode), row.a, row.b, row.c) for row in trace]
        indices = opened_rows(transcript, instructions, opts.n_queries)

        openings = []
        for idx in sorted(indices):
            qp = tree.get_query_proof(idx)
            openings.append({
                "index": idx,
                "leaf": qp.leaf.hex(),
                "mp": [[s.hex() for s in level] for level in qp.mp],
            })

        po2 = compute_po2(n_rows, opts.min_po2)
        seal = {
            "version": SEAL_VERSION,
            "hashfn": opts.hashfn,
            "merkle_arity": opts.merkle_arity,
            "n_queries": opts.n_queries,
            "image_id": session.image_id,
            "journal_digest": journal_digest.hex(),
            "user_cycles": n_rows,
            "po2": po2,
            "trace_root": root.hex(),
            "openings": openings,
        }
        seal_bytes = json.dumps(seal, sort_keys=True, separators=(",", ":")).encode()

        stats = SessionStats(user_cycles=n_rows, po2=po2, total_cycles=1 << po2)
        logger.debug(
            "Proved image %s: %d user cycles, %d openings, seal %d bytes",
            session.image_id[:16], n_rows, len(openings), len(seal_bytes),
        )
        return ProveInfo(Receipt(session.image_id, session.journal, seal_bytes), stats)

    @staticmethod
    def _check_trace(trace: List[TraceRow], journal: bytes) -> None:
        if not trace:
            raise ProvingError("Session trace is empty")

        for i, row in enumerate(trace):
            if row.cycle != i or row.pc != i:
                raise ProvingError(f"Malformed trace: row {i} has cycle {row.cycle}, pc {row.pc}")
            try:
                Opcode(row.opcode)
            except ValueError:
                raise ProvingError(f"Malformed trace: row {i} has opcode {row.opcode}") from None

        last = trace[-1]
        if last.opcode != Opcode.HALT or last.a != 0:
            raise ProvingError("Session trace does not end in HALT 0")

        committed = b"".join(
            encode_int(row.value).tobytes() for row in trace if row.opcode == Opcode.COMMIT
        )
        if committed != journal:
            raise ProvingError("Journal does not match committed trace rows")


def prove(session: Session, opts: Optional[ProverOpts] = None) -> ProveInfo:
    """Convenience wrapper around Prover(opts).prove(session)."""
    return Prover(opts).prove(session)
