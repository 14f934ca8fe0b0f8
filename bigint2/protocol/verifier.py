"""Receipt verification.

Verification consists of several phases:
1. Statement check - image id and journal digest match the receipt
2. Transcript reconstruction - re-derive the sampled row indices from the
   trace commitment, exactly as the prover did
3. Merkle check - every opened row authenticates against the trace root
4. Row check - each opened row agrees with the program instruction at its pc
   and satisfies that instruction's arithmetic constraint
5. Dataflow check - the register values a row consumed equal the values its
   defining rows wrote
6. Boundary check - the last row is HALT 0 and the COMMIT rows reproduce
   the journal

The verifier needs the artifact (not the session): straight-line programs
execute instruction i at cycle i, so the program fixes which rows are COMMIT
rows and how many rows a successful run has.
"""

import json
import logging
from typing import Dict, List, Optional, Sequence

from bigint2.circuits.isa import Instruction, Opcode, find_writer, load_program
from bigint2.errors import DecodeError, LoadError
from bigint2.primitives.codec import encode_int
from bigint2.primitives.merkle_tree import (
    SUPPORTED_HASHES,
    MerkleTree,
    hash_bytes,
    merkle_proof_length,
)
from bigint2.protocol.prover import (
    MAX_QUERIES,
    SEAL_VERSION,
    Receipt,
    compute_po2,
    opened_rows,
    seed_transcript,
)
from bigint2.protocol.registry import CircuitArtifact
from bigint2.protocol.session import TraceRow

logger = logging.getLogger(__name__)


# --- Main Entry Point ---

def verify_receipt(receipt: Receipt, artifact: CircuitArtifact, min_queries: int = 1) -> bool:
    """Verify a receipt against the artifact it claims to execute.

    Args:
        receipt: Journal and seal to check
        artifact: Circuit the receipt claims to execute
        min_queries: Reject seals sampled with fewer queries than this

    Returns:
        True if the seal is valid, False otherwise (the reason is logged)
    """
    if receipt.image_id != artifact.image_id:
        logger.error("Image id mismatch: receipt %s, artifact %s", receipt.image_id, artifact.image_id)
        return False

    seal = _parse_seal(receipt.seal)
    if seal is None:
        return False

    try:
        program = load_program(artifact.blob)
    except LoadError as e:
        logger.error("Cannot load artifact %s: %s", artifact.name, e)
        return False

    hashfn = seal["hashfn"]
    n_rows = seal["user_cycles"]
    if seal["n_queries"] < min_queries:
        logger.error("Seal uses %d queries, at least %d required", seal["n_queries"], min_queries)
        return False

    # --- Statement ---
    if seal["image_id"] != receipt.image_id:
        logger.error("Seal is bound to a different image id")
        return False
    journal_digest = hash_bytes(hashfn, receipt.journal)
    if seal["journal_digest"] != journal_digest.hex():
        logger.error("Journal digest mismatch")
        return False
    if n_rows != len(program):
        logger.error("Seal claims %d cycles, program has %d instructions", n_rows, len(program))
        return False
    if seal["po2"] < compute_po2(n_rows, 0):
        logger.error("po2 %d too small for %d cycles", seal["po2"], n_rows)
        return False

    # --- Transcript ---
    root = bytes.fromhex(seal["trace_root"])
    transcript = seed_transcript(hashfn, receipt.image_id, journal_digest, n_rows, root)
    commit_rows = [pc for pc, ins in enumerate(program.instructions) if ins.opcode == Opcode.COMMIT]
    expected = opened_rows(transcript, program.instructions, seal["n_queries"])

    opened = {o["index"]: o for o in seal["openings"]}
    if set(opened) != expected or len(opened) != len(seal["openings"]):
        logger.error("Opened rows do not match the transcript sample")
        return False

    # --- Merkle + row constraints ---
    tree = MerkleTree(arity=seal["merkle_arity"], hashfn=hashfn)
    path_length = merkle_proof_length(n_rows, tree.arity)
    rows: Dict[int, TraceRow] = {}
    for idx in sorted(opened):
        opening = opened[idx]
        leaf = bytes.fromhex(opening["leaf"])
        mp = [[bytes.fromhex(s) for s in level] for level in opening["mp"]]
        if len(mp) != path_length:
            logger.error("Row %d has a path of %d levels, expected %d", idx, len(mp), path_length)
            return False
        if not tree.verify_group_proof(root, mp, idx, leaf):
            logger.error("Merkle path verification failed for row %d", idx)
            return False
        try:
            row = TraceRow.from_leaf(leaf)
        except DecodeError as e:
            logger.error("Malformed row %d: %s", idx, e)
            return False
        if row.cycle != idx or row.pc != idx:
            logger.error("Row %d has cycle %d, pc %d", idx, row.cycle, row.pc)
            return False
        if not check_row(row, program.instructions[idx]):
            logger.error("Constraint check failed for row %d (%s)", idx, program.instructions[idx])
            return False
        rows[idx] = row

    # --- Dataflow ---
    for idx, row in rows.items():
        if not check_sources(row, idx, program.instructions, rows):
            logger.error("Row %d reads values its defining rows did not write", idx)
            return False

    # --- Boundary ---
    last = rows[n_rows - 1]
    if last.opcode != Opcode.HALT or last.a != 0:
        logger.error("Final row is not HALT 0")
        return False

    committed = b"".join(encode_int(rows[i].value).tobytes() for i in commit_rows)
    if committed != receipt.journal:
        logger.error("COMMIT rows do not reproduce the journal")
        return False

    return True


# --- Row Constraints ---

def check_row(row: TraceRow, ins: Instruction) -> bool:
    """Check that an opened row executes `ins` correctly in isolation."""
    if (row.opcode, row.a, row.b, row.c) != (int(ins.opcode), ins.a, ins.b, ins.c):
        return False

    op = ins.opcode
    lhs, rhs, value = row.lhs, row.rhs, row.value

    if op in (Opcode.READ, Opcode.COMMIT):
        return lhs == 0 and rhs == 0
    if op == Opcode.CONST:
        return lhs == 0 and rhs == 0 and value == ins.b
    if op == Opcode.HALT:
        return lhs == 0 and rhs == 0 and value == 0
    if op == Opcode.ADD:
        return value == lhs + rhs
    if op == Opcode.SUB:
        return lhs >= rhs and value == lhs - rhs
    if op == Opcode.MUL:
        return value == lhs * rhs
    if op == Opcode.MOD:
        return rhs != 0 and value == lhs % rhs
    if op == Opcode.INV:
        return rhs != 0 and value < rhs and (lhs * value) % rhs == 1 % rhs
    return False


def check_sources(
    row: TraceRow, pc: int, instructions: Sequence[Instruction], rows: Dict[int, TraceRow]
) -> bool:
    """Check that the register values `row` consumed are the ones last written.

    Registers never written read as zero. `rows` must hold every defining row.
    """
    ins = instructions[pc]
    consumed = (row.value,) if ins.opcode == Opcode.COMMIT else (row.lhs, row.rhs)
    for reg, seen in zip(ins.reads(), consumed):
        writer = find_writer(instructions, pc, reg)
        if writer is None:
            defined = 0
        elif writer in rows:
            defined = rows[writer].value
        else:
            return False
        if seen != defined:
            return False
    return True


# --- Seal Parsing ---

_SEAL_FIELDS = {
    "version": int,
    "hashfn": str,
    "merkle_arity": int,
    "n_queries": int,
    "image_id": str,
    "journal_digest": str,
    "user_cycles": int,
    "po2": int,
    "trace_root": str,
    "openings": list,
}


def _parse_seal(seal: bytes) -> Optional[dict]:
    try:
        j = json.loads(seal)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Seal is not valid JSON: %s", e)
        return None

    if not isinstance(j, dict):
        logger.error("Seal is not a JSON object")
        return None
    for name, typ in _SEAL_FIELDS.items():
        if not isinstance(j.get(name), typ):
            logger.error("Seal field %r missing or not %s", name, typ.__name__)
            return None
    if j["version"] != SEAL_VERSION:
        logger.error("Unsupported seal version %d", j["version"])
        return None
    if j["hashfn"] not in SUPPORTED_HASHES or j["merkle_arity"] not in (2, 4):
        logger.error("Unsupported seal parameters: %s, arity %d", j["hashfn"], j["merkle_arity"])
        return None
    if j["user_cycles"] < 1 or j["n_queries"] < 1:
        logger.error("Seal has no cycles or no queries")
        return None
    if j["n_queries"] > MAX_QUERIES:
        logger.error("Seal uses %d queries, at most %d allowed", j["n_queries"], MAX_QUERIES)
        return None

    try:
        _check_openings(j["openings"])
        bytes.fromhex(j["trace_root"])
    except (TypeError, ValueError, KeyError) as e:
        logger.error("Malformed seal openings: %s", e)
        return None
    return j


def _check_openings(openings: List) -> None:
    for o in openings:
        if not isinstance(o["index"], int):
            raise TypeError("opening index must be an int")
        bytes.fromhex(o["leaf"])
        for level in o["mp"]:
            for s in level:
                bytes.fromhex(s)
