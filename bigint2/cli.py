"""Command-line entry point.

Usage:
    bigint2 list
    bigint2 run modmul 4 7 5 --expect 3
    bigint2 run extfieldsub 1 2 3 4 7 --opts fast -v
    bigint2 run modinv 3 7 --manifest build/circuits --no-prove
    bigint2 export build/circuits

Operands and expected values are big-endian hex (optional 0x prefix), listed
flat in operand order; pairs are grouped by the operation's input shape.

Exit status: 0 on success, 1 on a validation or pipeline failure, 2 on usage
errors.
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from bigint2.circuits.programs import OPERATIONS, get_operation, operation_names
from bigint2.errors import Bigint2Error
from bigint2.primitives.codec import Operand, Shape, from_hex, to_hex
from bigint2.protocol.executor import ExecutionEngine
from bigint2.protocol.hooks import LoggingHooks
from bigint2.protocol.pipeline import verify_operation
from bigint2.protocol.prover import Prover, ProverOpts
from bigint2.protocol.registry import CircuitRegistry

EXIT_FAILURE = 1


# --- Argument Helpers ---

def shape_size(shape: Shape) -> int:
    """Number of integers in a value of `shape`."""
    if isinstance(shape, tuple):
        return sum(shape_size(s) for s in shape)
    return 1


def group_operands(values: Sequence[int], shape: Shape) -> Operand:
    """Arrange a flat list of integers into `shape` (depth-first)."""
    if len(values) != shape_size(shape):
        raise ValueError(f"expected {shape_size(shape)} values, got {len(values)}")

    it = iter(values)

    def take(s: Shape) -> Operand:
        if isinstance(s, tuple):
            return tuple(take(x) for x in s)
        return next(it)

    return take(shape)


def parse_hex_list(texts: Sequence[str]) -> List[int]:
    try:
        return [from_hex(t) for t in texts]
    except ValueError as e:
        raise ValueError(f"invalid hex operand: {e}") from None


def load_prover_opts(choice: str) -> ProverOpts:
    """'fast', 'default' or the path of a JSON ProverOpts file."""
    if choice == "fast":
        return ProverOpts.fast()
    if choice == "default":
        return ProverOpts.default()
    return ProverOpts.from_json(choice)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Log runtime and cycle counts")

    parser = argparse.ArgumentParser(
        prog="bigint2",
        description="Execute and prove modular big-integer circuits.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", parents=[common], help="List operations and their image ids")

    run = sub.add_parser("run", parents=[common], help="Execute, validate and prove one operation")
    run.add_argument("operation", choices=operation_names(), help="Operation name")
    run.add_argument("operands", nargs="+", metavar="HEX", help="Operands in hex, flattened")
    run.add_argument("--expect", nargs="+", metavar="HEX", help="Expected result in hex")
    run.add_argument("--no-prove", action="store_true", help="Skip proof generation")
    run.add_argument(
        "--opts",
        default="fast",
        help="Prover options: 'fast', 'default' or a JSON file (default: fast)",
    )
    run.add_argument("--manifest", help="Load circuits from a manifest file or directory")
    run.add_argument("--concurrent", action="store_true", help="Decode while proving")

    export = sub.add_parser("export", parents=[common], help="Write circuit artifacts and a manifest")
    export.add_argument("directory", help="Output directory")

    return parser


# --- Commands ---

def cmd_list(args: argparse.Namespace) -> int:
    registry = CircuitRegistry.default()
    for name, image_id in registry.image_ids().items():
        op = OPERATIONS[name]
        print(f"{name:<12} arity={op.arity}  image_id={image_id}")
    return 0


def cmd_run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    op = get_operation(args.operation)
    try:
        operands = group_operands(parse_hex_list(args.operands), op.input_shape)
        expected = None
        if args.expect is not None:
            expected = group_operands(parse_hex_list(args.expect), op.output_shape)
    except ValueError as e:
        parser.error(f"{op.name}: {e}")

    prover = None
    if not args.no_prove:
        try:
            prover = Prover(load_prover_opts(args.opts))
        except (OSError, ValueError, TypeError) as e:
            parser.error(f"invalid --opts {args.opts!r}: {e}")

    registry = CircuitRegistry.from_manifest(args.manifest) if args.manifest else CircuitRegistry.default()
    engine = ExecutionEngine(registry)

    report = verify_operation(
        engine, op.name, operands, expected,
        prover=prover, hooks=LoggingHooks(), concurrent=args.concurrent,
    )

    print(f"{op.name}: {to_hex(report.value)}")
    print(f"  exit code:   {report.exit_code}")
    print(f"  user cycles: {report.user_cycles}")
    if report.stats is not None:
        print(f"  po2:         {report.stats.po2}")
        print(f"  seal:        {len(report.prove_info.receipt.seal)} bytes (verified)")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    manifest = CircuitRegistry.default().export(args.directory)
    print(f"Wrote manifest: {manifest}")
    return 0


# --- Main ---

def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "list":
            return cmd_list(args)
        if args.command == "run":
            return cmd_run(args, parser)
        return cmd_export(args)
    except Bigint2Error as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
