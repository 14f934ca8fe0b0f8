"""Session: the immutable record of one circuit execution.

A session is one of three variants:

    Success       halted with code 0; journal holds the committed output
    AbnormalHalt  the circuit stopped itself with a non-zero code
    Fault         the engine stopped the run (session limit, resource limit)

Callers dispatch on the variant instead of catching exceptions for expected
abnormal halts. All variants carry the execution trace recorded so far.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

import numpy as np

from bigint2.errors import ExecutionFault
from bigint2.primitives.codec import WORD_DTYPE, WordReader, encode_int

# --- Exit Codes ---


class ExitKind(Enum):
    HALTED = "Halted"
    SESSION_LIMIT = "SessionLimit"
    FAULT = "Fault"


@dataclass(frozen=True)
class ExitCode:
    kind: ExitKind
    user_code: int = 0

    @classmethod
    def halted(cls, code: int) -> "ExitCode":
        return cls(ExitKind.HALTED, code)

    @property
    def is_success(self) -> bool:
        return self.kind == ExitKind.HALTED and self.user_code == 0

    def __str__(self) -> str:
        if self.kind == ExitKind.HALTED:
            return f"Halted({self.user_code})"
        return self.kind.value


EXIT_OK = ExitCode.halted(0)


# --- Trace ---

ROW_HEADER_WORDS = 6


@dataclass(frozen=True)
class TraceRow:
    """One executed instruction.

    Attributes:
        cycle: Row index in the trace
        pc: Program counter of the instruction
        opcode, a, b, c: The instruction as stored in the artifact
        lhs, rhs: Source register values (0 where unused)
        value: Destination/committed register value (0 where unused)
    """
    cycle: int
    pc: int
    opcode: int
    a: int
    b: int
    c: int
    lhs: int = 0
    rhs: int = 0
    value: int = 0

    def to_leaf(self) -> bytes:
        """Canonical byte encoding used as a Merkle leaf."""
        header = np.array(
            [self.cycle, self.pc, self.opcode, self.a, self.b, self.c], dtype=WORD_DTYPE
        )
        words = np.concatenate(
            (header, encode_int(self.lhs), encode_int(self.rhs), encode_int(self.value))
        )
        return words.tobytes()

    @classmethod
    def from_leaf(cls, leaf: bytes) -> "TraceRow":
        """Inverse of to_leaf(); raises DecodeError on malformed bytes."""
        reader = WordReader(leaf)
        header = [reader.read_word() for _ in range(ROW_HEADER_WORDS)]
        lhs = reader.read_int()
        rhs = reader.read_int()
        value = reader.read_int()
        reader.finish()
        return cls(*header, lhs=lhs, rhs=rhs, value=value)


Trace = Tuple[TraceRow, ...]


# --- Session Variants ---

@dataclass(frozen=True)
class Session:
    image_id: str
    trace: Trace

    @property
    def user_cycles(self) -> int:
        return len(self.trace)

    def raise_for_fault(self) -> None:
        """Raise the engine fault for Fault sessions; no-op otherwise."""


@dataclass(frozen=True)
class Success(Session):
    journal: bytes = b""
    exit_code: ExitCode = EXIT_OK


@dataclass(frozen=True)
class AbnormalHalt(Session):
    exit_code: ExitCode = field(default=ExitCode.halted(1))
    journal: bytes = b""


@dataclass(frozen=True)
class Fault(Session):
    error: ExecutionFault = field(default_factory=lambda: ExecutionFault("unknown fault"))
    exit_code: ExitCode = ExitCode(ExitKind.FAULT)
    journal: bytes = b""

    def raise_for_fault(self) -> None:
        raise self.error
