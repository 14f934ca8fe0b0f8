"""Circuit instruction set and binary artifact format.

A circuit artifact is a straight-line register program. The binary layout is
little-endian u32 words:

    magic "BIG2" | version | n_regs | n_instrs | n_instrs * [opcode, a, b, c]

Registers hold unbounded non-negative integers. All arithmetic is exact; only
MOD and INV reduce. Instruction semantics (rd = a, ra = b, rb = c unless noted):

    READ   rd            rd = next integer from the input stream
    CONST  rd, imm       rd = imm (u32 immediate in b)
    ADD    rd, ra, rb    rd = ra + rb
    SUB    rd, ra, rb    rd = ra - rb, halts EXIT_UNDERFLOW if ra < rb
    MUL    rd, ra, rb    rd = ra * rb
    MOD    rd, ra, rb    rd = ra mod rb, halts EXIT_ZERO_MODULUS if rb == 0
    INV    rd, ra, rb    rd = ra^-1 mod rb, halts EXIT_NOT_INVERTIBLE if gcd != 1
    COMMIT ra            append encode(ra) to the journal (register in a)
    HALT   code          stop with exit code `code` (immediate in a)
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from bigint2.errors import LoadError
from bigint2.primitives.codec import WORD_DTYPE, WORD_SIZE

# --- Format Constants ---

MAGIC = b"BIG2"
VERSION = 1
HEADER_WORDS = 3  # version, n_regs, n_instrs (after magic)
INSTRUCTION_WORDS = 4
MAX_REGISTERS = 64

# --- Guest Exit Codes ---

EXIT_SUCCESS = 0
EXIT_INPUT_ERROR = 1
EXIT_NOT_INVERTIBLE = 2
EXIT_ZERO_MODULUS = 3
EXIT_UNDERFLOW = 4


class Opcode(IntEnum):
    READ = 1
    CONST = 2
    ADD = 3
    SUB = 4
    MUL = 5
    MOD = 6
    INV = 7
    COMMIT = 8
    HALT = 9


# Which of (a, b, c) name registers, per opcode
REGISTER_OPERANDS = {
    Opcode.READ: (True, False, False),
    Opcode.CONST: (True, False, False),
    Opcode.ADD: (True, True, True),
    Opcode.SUB: (True, True, True),
    Opcode.MUL: (True, True, True),
    Opcode.MOD: (True, True, True),
    Opcode.INV: (True, True, True),
    Opcode.COMMIT: (True, False, False),
    Opcode.HALT: (False, False, False),
}

_BINARY_OPS = (Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.MOD, Opcode.INV)


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    a: int = 0
    b: int = 0
    c: int = 0

    def __str__(self) -> str:
        return f"{self.opcode.name} {self.a} {self.b} {self.c}"

    def reads(self) -> Tuple[int, ...]:
        """Source registers, in (lhs, rhs) order; COMMIT reads a."""
        if self.opcode in _BINARY_OPS:
            return (self.b, self.c)
        if self.opcode == Opcode.COMMIT:
            return (self.a,)
        return ()

    def writes(self) -> Optional[int]:
        """Destination register, or None."""
        if self.opcode in _BINARY_OPS or self.opcode in (Opcode.READ, Opcode.CONST):
            return self.a
        return None


@dataclass(frozen=True)
class Program:
    """A loaded, validated circuit program."""
    n_regs: int
    instructions: Tuple[Instruction, ...]

    def __len__(self) -> int:
        return len(self.instructions)


# --- Assembly ---

def assemble(instructions: List[Instruction], n_regs: int) -> bytes:
    """Serialize a program into an artifact blob."""
    program = Program(n_regs=n_regs, instructions=tuple(instructions))
    validate_program(program)

    header = np.array([VERSION, n_regs, len(instructions)], dtype=WORD_DTYPE)
    body = np.array(
        [[int(ins.opcode), ins.a, ins.b, ins.c] for ins in instructions],
        dtype=WORD_DTYPE,
    ).reshape(-1)
    return MAGIC + header.tobytes() + body.tobytes()


# --- Loading ---

def load_program(blob: bytes) -> Program:
    """Parse and validate an artifact blob.

    Raises:
        LoadError: If the blob is malformed or fails validation
    """
    if blob[:len(MAGIC)] != MAGIC:
        raise LoadError(f"Invalid magic: expected {MAGIC!r}, got {bytes(blob[:len(MAGIC)])!r}")

    body = blob[len(MAGIC):]
    if len(body) % WORD_SIZE != 0 or len(body) < HEADER_WORDS * WORD_SIZE:
        raise LoadError(f"Truncated artifact: {len(blob)} bytes")
    words = np.frombuffer(body, dtype=WORD_DTYPE)

    version, n_regs, n_instrs = (int(w) for w in words[:HEADER_WORDS])
    if version != VERSION:
        raise LoadError(f"Unsupported version: expected {VERSION}, got {version}")

    expected = HEADER_WORDS + n_instrs * INSTRUCTION_WORDS
    if len(words) != expected:
        raise LoadError(f"Artifact declares {n_instrs} instructions but holds {len(words)} words")

    rows = words[HEADER_WORDS:].reshape(n_instrs, INSTRUCTION_WORDS)
    instructions = []
    for pc, (op, a, b, c) in enumerate(rows):
        try:
            opcode = Opcode(int(op))
        except ValueError:
            raise LoadError(f"Invalid opcode {int(op)} at pc {pc}") from None
        instructions.append(Instruction(opcode, int(a), int(b), int(c)))

    program = Program(n_regs=n_regs, instructions=tuple(instructions))
    validate_program(program)
    return program


def validate_program(program: Program) -> None:
    """Check register bounds and that the program ends in HALT."""
    if not 0 < program.n_regs <= MAX_REGISTERS:
        raise LoadError(f"Register count must be in [1, {MAX_REGISTERS}], got {program.n_regs}")
    if not program.instructions:
        raise LoadError("Empty program")
    if program.instructions[-1].opcode != Opcode.HALT:
        raise LoadError("Program must end with HALT")

    for pc, ins in enumerate(program.instructions):
        for operand, is_reg in zip((ins.a, ins.b, ins.c), REGISTER_OPERANDS[ins.opcode]):
            if is_reg and operand >= program.n_regs:
                raise LoadError(f"Register r{operand} out of range at pc {pc} ({ins})")
        if ins.opcode == Opcode.HALT and pc != len(program.instructions) - 1:
            raise LoadError(f"HALT before end of program at pc {pc}")


# --- Dataflow ---

def find_writer(instructions: Sequence[Instruction], pc: int, reg: int) -> Optional[int]:
    """pc of the last instruction before `pc` that writes `reg` (None: still zero)."""
    for prev in range(pc - 1, -1, -1):
        if instructions[prev].writes() == reg:
            return prev
    return None
