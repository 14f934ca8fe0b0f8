"""Protocol - registry, execution, proving and validation."""

from bigint2.protocol.registry import CircuitArtifact, CircuitRegistry

from bigint2.protocol.session import AbnormalHalt, ExitCode, Fault, Session, Success, TraceRow

from bigint2.protocol.executor import ExecutionEngine, ExecutorConfig

from bigint2.protocol.prover import ProveInfo, Prover, ProverOpts, Receipt, SessionStats, prove

from bigint2.protocol.verifier import verify_receipt

from bigint2.protocol.validator import ResultValidator, ValidationReport

from bigint2.protocol.hooks import LoggingHooks, PipelineHooks, TimingHooks

from bigint2.protocol.pipeline import Job, JobResult, verify_many, verify_operation

__all__ = [
    # Registry
    "CircuitArtifact",
    "CircuitRegistry",
    # Sessions
    "Session",
    "Success",
    "AbnormalHalt",
    "Fault",
    "ExitCode",
    "TraceRow",
    # Execution
    "ExecutionEngine",
    "ExecutorConfig",
    # Proving
    "Prover",
    "ProverOpts",
    "ProveInfo",
    "Receipt",
    "SessionStats",
    "prove",
    "verify_receipt",
    # Validation
    "ResultValidator",
    "ValidationReport",
    # Pipeline
    "verify_operation",
    "verify_many",
    "Job",
    "JobResult",
    "PipelineHooks",
    "TimingHooks",
    "LoggingHooks",
]
