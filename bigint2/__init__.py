"""
bigint2 - execution and proof verification for modular big-integer circuits

Runs fixed-function arithmetic circuits (modadd, modsub, modmul, modinv,
extfieldadd, extfieldsub) on arbitrary-precision operands, checks that each
run halted cleanly with the expected result, and produces a hash-based proof
that the run was executed faithfully.

Usage:
    from bigint2 import CircuitRegistry, ExecutionEngine, Prover, ProverOpts, verify_operation

    engine = ExecutionEngine(CircuitRegistry.default())
    report = verify_operation(engine, "modmul", (4, 7, 5), prover=Prover(ProverOpts.fast()))
    assert report.value == 3
    print(report.stats.user_cycles)
"""

from bigint2.errors import (
    Bigint2Error,
    DecodeError,
    ExecutionFault,
    LoadError,
    ProofError,
    ProvingError,
    SemanticMismatchError,
    SessionLimitError,
    TerminationError,
    UnknownOperationError,
    ValidationError,
)

from bigint2.primitives.codec import PAIR, SCALAR, decode, encode, from_hex

from bigint2.circuits.programs import OPERATIONS, get_operation

from bigint2.protocol import (
    AbnormalHalt,
    CircuitArtifact,
    CircuitRegistry,
    ExecutionEngine,
    ExecutorConfig,
    ExitCode,
    Fault,
    Job,
    JobResult,
    LoggingHooks,
    PipelineHooks,
    ProveInfo,
    Prover,
    ProverOpts,
    Receipt,
    ResultValidator,
    Session,
    SessionStats,
    Success,
    TimingHooks,
    ValidationReport,
    verify_many,
    verify_operation,
    verify_receipt,
)

__version__ = "0.1.0"
__all__ = [
    # Errors
    "Bigint2Error",
    "UnknownOperationError",
    "LoadError",
    "ExecutionFault",
    "SessionLimitError",
    "ProvingError",
    "ValidationError",
    "TerminationError",
    "DecodeError",
    "SemanticMismatchError",
    "ProofError",
    # Codec
    "encode",
    "decode",
    "from_hex",
    "SCALAR",
    "PAIR",
    # Operations
    "OPERATIONS",
    "get_operation",
    # Registry and execution
    "CircuitArtifact",
    "CircuitRegistry",
    "ExecutionEngine",
    "ExecutorConfig",
    "Session",
    "Success",
    "AbnormalHalt",
    "Fault",
    "ExitCode",
    # Proving
    "Prover",
    "ProverOpts",
    "ProveInfo",
    "Receipt",
    "SessionStats",
    "verify_receipt",
    # Validation and pipeline
    "ResultValidator",
    "ValidationReport",
    "verify_operation",
    "verify_many",
    "Job",
    "JobResult",
    "PipelineHooks",
    "TimingHooks",
    "LoggingHooks",
]
