"""Built-in big-integer circuits and their operation descriptors."""

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from bigint2.circuits.isa import EXIT_SUCCESS, Instruction, Opcode, assemble
from bigint2.errors import UnknownOperationError
from bigint2.primitives.codec import PAIR, SCALAR, Operand, Shape, shape_of
from bigint2.primitives.field import ext_add, ext_sub

Ins = Instruction
Op = Opcode


@dataclass(frozen=True)
class Operation:
    """Fixed arity, shapes and reference semantics of one circuit operation.

    Attributes:
        name: Registry key
        input_shape: Operand structure, e.g. (int, int, int) or ((int, int), (int, int), int)
        output_shape: Journal structure (SCALAR or PAIR)
        n_regs: Register file size of the program
        instructions: Straight-line program body
        reference: Pure-Python semantics used to derive expected values
    """
    name: str
    input_shape: Shape
    output_shape: Shape
    n_regs: int
    instructions: Tuple[Instruction, ...]
    reference: Callable[..., Operand]

    @property
    def arity(self) -> int:
        return len(self.input_shape)

    def assemble(self) -> bytes:
        return assemble(list(self.instructions), self.n_regs)

    def check_operands(self, operands: Operand) -> None:
        if shape_of(operands) != self.input_shape:
            raise ValueError(f"{self.name} expects operands shaped {self.input_shape}")

    def expected(self, operands: Operand) -> Operand:
        """Reference result for operands shaped like input_shape."""
        self.check_operands(operands)
        return self.reference(*operands)


# --- Reference Semantics ---

def _modadd(a: int, b: int, m: int) -> int:
    return (a + b) % m


def _modsub(a: int, b: int, m: int) -> int:
    return (a - b) % m


def _modmul(a: int, b: int, m: int) -> int:
    return (a * b) % m


def _modinv(a: int, m: int) -> int:
    return pow(a, -1, m)


# --- Programs ---
# Input registers are filled in operand order by the leading READs.

_MODADD = (
    Ins(Op.READ, 0), Ins(Op.READ, 1), Ins(Op.READ, 2),
    Ins(Op.ADD, 3, 0, 1),
    Ins(Op.MOD, 3, 3, 2),
    Ins(Op.COMMIT, 3),
    Ins(Op.HALT, EXIT_SUCCESS),
)

# (a mod m) + m - (b mod m) is never negative
_MODSUB = (
    Ins(Op.READ, 0), Ins(Op.READ, 1), Ins(Op.READ, 2),
    Ins(Op.MOD, 0, 0, 2),
    Ins(Op.MOD, 1, 1, 2),
    Ins(Op.ADD, 3, 0, 2),
    Ins(Op.SUB, 3, 3, 1),
    Ins(Op.MOD, 3, 3, 2),
    Ins(Op.COMMIT, 3),
    Ins(Op.HALT, EXIT_SUCCESS),
)

_MODMUL = (
    Ins(Op.READ, 0), Ins(Op.READ, 1), Ins(Op.READ, 2),
    Ins(Op.MUL, 3, 0, 1),
    Ins(Op.MOD, 3, 3, 2),
    Ins(Op.COMMIT, 3),
    Ins(Op.HALT, EXIT_SUCCESS),
)

_MODINV = (
    Ins(Op.READ, 0), Ins(Op.READ, 1),
    Ins(Op.INV, 2, 0, 1),
    Ins(Op.COMMIT, 2),
    Ins(Op.HALT, EXIT_SUCCESS),
)

# r0..r3 = a0, a1, b0, b1; r4 = p
_EXTFIELDADD = (
    Ins(Op.READ, 0), Ins(Op.READ, 1), Ins(Op.READ, 2), Ins(Op.READ, 3), Ins(Op.READ, 4),
    Ins(Op.ADD, 5, 0, 2),
    Ins(Op.MOD, 5, 5, 4),
    Ins(Op.ADD, 6, 1, 3),
    Ins(Op.MOD, 6, 6, 4),
    Ins(Op.COMMIT, 5),
    Ins(Op.COMMIT, 6),
    Ins(Op.HALT, EXIT_SUCCESS),
)

_EXTFIELDSUB = (
    Ins(Op.READ, 0), Ins(Op.READ, 1), Ins(Op.READ, 2), Ins(Op.READ, 3), Ins(Op.READ, 4),
    Ins(Op.MOD, 0, 0, 4),
    Ins(Op.MOD, 1, 1, 4),
    Ins(Op.MOD, 2, 2, 4),
    Ins(Op.MOD, 3, 3, 4),
    Ins(Op.ADD, 5, 0, 4),
    Ins(Op.SUB, 5, 5, 2),
    Ins(Op.MOD, 5, 5, 4),
    Ins(Op.ADD, 6, 1, 4),
    Ins(Op.SUB, 6, 6, 3),
    Ins(Op.MOD, 6, 6, 4),
    Ins(Op.COMMIT, 5),
    Ins(Op.COMMIT, 6),
    Ins(Op.HALT, EXIT_SUCCESS),
)

_SCALAR3 = (int, int, int)
_EXT_INPUT = (PAIR, PAIR, int)

OPERATIONS: Dict[str, Operation] = {
    op.name: op
    for op in [
        Operation("modadd", _SCALAR3, SCALAR, 4, _MODADD, _modadd),
        Operation("modsub", _SCALAR3, SCALAR, 4, _MODSUB, _modsub),
        Operation("modmul", _SCALAR3, SCALAR, 4, _MODMUL, _modmul),
        Operation("modinv", (int, int), SCALAR, 3, _MODINV, _modinv),
        Operation("extfieldadd", _EXT_INPUT, PAIR, 7, _EXTFIELDADD, ext_add),
        Operation("extfieldsub", _EXT_INPUT, PAIR, 7, _EXTFIELDSUB, ext_sub),
    ]
}


def get_operation(name: str) -> Operation:
    try:
        return OPERATIONS[name]
    except KeyError:
        raise UnknownOperationError(name) from None


def operation_names() -> List[str]:
    return list(OPERATIONS)
