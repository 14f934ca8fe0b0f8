"""Circuits - instruction set, artifact format and the built-in programs."""

from bigint2.circuits.isa import Instruction, Opcode, Program, assemble, load_program
from bigint2.circuits.programs import OPERATIONS, Operation, get_operation, operation_names

__all__ = [
    "Instruction",
    "Opcode",
    "Program",
    "assemble",
    "load_program",
    "Operation",
    "OPERATIONS",
    "get_operation",
    "operation_names",
]
