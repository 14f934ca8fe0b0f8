"""Execution engine: runs a circuit artifact against encoded input.

Execution is deterministic: the session depends only on the artifact bytes,
the input bytes and the ExecutorConfig limits. The engine does not judge the
arithmetic; it records what the program did.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from bigint2.circuits.isa import (
    EXIT_INPUT_ERROR,
    EXIT_NOT_INVERTIBLE,
    EXIT_UNDERFLOW,
    EXIT_ZERO_MODULUS,
    Instruction,
    Opcode,
    Program,
    load_program,
)
from bigint2.errors import DecodeError, ExecutionFault, SessionLimitError
from bigint2.primitives.codec import Operand, WordReader, encode, encode_int
from bigint2.protocol.registry import CircuitArtifact, CircuitRegistry
from bigint2.protocol.session import (
    AbnormalHalt,
    ExitCode,
    ExitKind,
    Fault,
    Session,
    Success,
    TraceRow,
)

logger = logging.getLogger(__name__)


# --- Configuration ---

@dataclass(frozen=True)
class ExecutorConfig:
    """Engine resource limits.

    Attributes:
        session_limit: Maximum number of executed instructions
        max_register_bits: Largest register value (in bits) before the run faults
    """
    session_limit: int = 1 << 16
    max_register_bits: int = 1 << 16

    @classmethod
    def from_dict(cls, d: Dict) -> "ExecutorConfig":
        return cls(**{k: int(v) for k, v in d.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ExecutorConfig":
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict:
        return asdict(self)


class _Halt(Exception):
    """Internal signal: the circuit stopped itself with a non-zero code."""

    def __init__(self, code: int, reason: str) -> None:
        super().__init__(reason)
        self.code = code


# --- Engine ---

class ExecutionEngine:
    """Runs artifacts from a CircuitRegistry.

    Usage:
        engine = ExecutionEngine(CircuitRegistry.default())
        session = engine.execute_operation("modadd", (4, 7, 3))
    """

    def __init__(self, registry: CircuitRegistry, config: Optional[ExecutorConfig] = None) -> None:
        self.registry = registry
        self.config = config or ExecutorConfig()

    def load(self, artifact: CircuitArtifact) -> Program:
        """Parse and validate an artifact; raises LoadError."""
        return load_program(artifact.blob)

    def execute_operation(self, operation: str, operands: Operand) -> Session:
        """Look up `operation`, encode `operands` and execute."""
        artifact = self.registry.lookup(operation)
        return self.execute(artifact, encode(operands))

    def execute(self, artifact: CircuitArtifact, input_data: bytes) -> Session:
        """Execute an artifact.

        Returns:
            Success, AbnormalHalt or Fault. Only LoadError is raised.
        """
        program = self.load(artifact)
        image_id = artifact.image_id
        trace: List[TraceRow] = []
        journal = bytearray()
        regs = [0] * program.n_regs

        try:
            reader = WordReader(input_data)
        except DecodeError:
            return AbnormalHalt(image_id, (), ExitCode.halted(EXIT_INPUT_ERROR), b"")

        try:
            for pc, ins in enumerate(program.instructions):
                if len(trace) >= self.config.session_limit:
                    raise SessionLimitError(
                        f"Session limit of {self.config.session_limit} cycles exceeded"
                    )
                row = self._step(len(trace), pc, ins, regs, reader, journal)
                trace.append(row)
                if ins.opcode == Opcode.HALT:
                    code = ins.a
                    if code != 0:
                        raise _Halt(code, f"HALT {code}")
                    break
        except _Halt as halt:
            logger.debug("%s halted abnormally: %s (code %d)", artifact.name, halt, halt.code)
            return AbnormalHalt(image_id, tuple(trace), ExitCode.halted(halt.code), bytes(journal))
        except ExecutionFault as fault:
            kind = ExitKind.SESSION_LIMIT if isinstance(fault, SessionLimitError) else ExitKind.FAULT
            logger.debug("%s faulted: %s", artifact.name, fault)
            return Fault(image_id, tuple(trace), error=fault, exit_code=ExitCode(kind))

        logger.debug("%s halted after %d cycles", artifact.name, len(trace))
        return Success(image_id, tuple(trace), journal=bytes(journal))

    # --- Internal Helpers ---

    def _check_size(self, value: int, pc: int) -> int:
        if value.bit_length() > self.config.max_register_bits:
            raise ExecutionFault(
                f"Register value of {value.bit_length()} bits at pc {pc} exceeds "
                f"limit of {self.config.max_register_bits}"
            )
        return value

    def _step(
        self,
        cycle: int,
        pc: int,
        ins: Instruction,
        regs: List[int],
        reader: WordReader,
        journal: bytearray,
    ) -> TraceRow:
        """Execute one instruction, mutating regs/journal, and return its trace row."""
        op = ins.opcode
        row = dict(cycle=cycle, pc=pc, opcode=int(op), a=ins.a, b=ins.b, c=ins.c)

        if op == Opcode.READ:
            try:
                value = reader.read_int()
            except DecodeError as e:
                raise _Halt(EXIT_INPUT_ERROR, f"input error at pc {pc}: {e}") from e
            regs[ins.a] = self._check_size(value, pc)
            return TraceRow(**row, value=value)

        if op == Opcode.CONST:
            regs[ins.a] = ins.b
            return TraceRow(**row, value=ins.b)

        if op == Opcode.COMMIT:
            value = regs[ins.a]
            journal.extend(encode_int(value).tobytes())
            return TraceRow(**row, value=value)

        if op == Opcode.HALT:
            return TraceRow(**row)

        lhs, rhs = regs[ins.b], regs[ins.c]
        if op == Opcode.ADD:
            value = lhs + rhs
        elif op == Opcode.SUB:
            if lhs < rhs:
                raise _Halt(EXIT_UNDERFLOW, f"subtraction underflow at pc {pc}")
            value = lhs - rhs
        elif op == Opcode.MUL:
            value = lhs * rhs
        elif op == Opcode.MOD:
            if rhs == 0:
                raise _Halt(EXIT_ZERO_MODULUS, f"reduction by zero at pc {pc}")
            value = lhs % rhs
        elif op == Opcode.INV:
            if rhs == 0:
                raise _Halt(EXIT_ZERO_MODULUS, f"inverse modulo zero at pc {pc}")
            try:
                value = pow(lhs, -1, rhs)
            except ValueError:
                raise _Halt(EXIT_NOT_INVERTIBLE, f"{lhs} has no inverse modulo {rhs}") from None
        else:
            raise ExecutionFault(f"Unhandled opcode {op} at pc {pc}")

        regs[ins.a] = self._check_size(value, pc)
        return TraceRow(**row, lhs=lhs, rhs=rhs, value=value)
