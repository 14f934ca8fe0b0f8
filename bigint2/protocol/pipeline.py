"""End-to-end verification: encode -> execute -> decode/prove -> validate.

Each pipeline is synchronous and owns its session and proof. Independent
pipelines share only the read-only registry, so verify_many() can run them on
a thread pool without coordination.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

from bigint2.circuits.programs import get_operation
from bigint2.primitives.codec import Operand, encode
from bigint2.protocol.executor import ExecutionEngine
from bigint2.protocol.hooks import PipelineHooks
from bigint2.protocol.prover import Prover
from bigint2.protocol.validator import ResultValidator, ValidationReport

logger = logging.getLogger(__name__)


def verify_operation(
    engine: ExecutionEngine,
    operation: str,
    operands: Operand,
    expected: Optional[Operand] = None,
    prover: Optional[Prover] = None,
    hooks: Optional[PipelineHooks] = None,
    concurrent: bool = False,
) -> ValidationReport:
    """Execute one operation and validate its result.

    Args:
        engine: Execution engine (holds the registry)
        operation: Operation name, e.g. "modmul"
        operands: Operands shaped like the operation's input shape
        expected: Expected result; defaults to the operation's reference result
        prover: If set, the session is also proven and the receipt verified
        hooks: Observability hooks
        concurrent: Decode and prove in parallel

    Raises:
        UnknownOperationError, LoadError, ExecutionFault, ValidationError
    """
    op = get_operation(operation)
    artifact = engine.registry.lookup(operation)
    hooks = hooks or PipelineHooks()

    op.check_operands(operands)

    with hooks.span("execute", operation):
        session = engine.execute(artifact, encode(operands))
    logger.debug("%s session: %s after %d cycles", operation, session.exit_code, session.user_cycles)

    validator = ResultValidator(op, artifact=artifact, prover=prover, hooks=hooks)
    if expected is None:
        # Abnormal halts are reported before the reference is consulted
        validator.check_termination(session)
        expected = op.expected(operands)
    return validator.validate(session, expected, concurrent=concurrent)


# --- Batches ---

@dataclass(frozen=True)
class Job:
    operation: str
    operands: Operand
    expected: Optional[Operand] = None


@dataclass(frozen=True)
class JobResult:
    """Either a report or the error that stopped the job."""
    job: Job
    report: Optional[ValidationReport] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def verify_many(
    engine: ExecutionEngine,
    jobs: Sequence[Job],
    prover: Optional[Prover] = None,
    hooks: Optional[PipelineHooks] = None,
    max_workers: Optional[int] = None,
) -> List[JobResult]:
    """Run independent pipelines in parallel; results are returned in job order.

    Errors are captured per job, never retried.
    """

    def run(job: Job) -> JobResult:
        try:
            report = verify_operation(
                engine, job.operation, job.operands, job.expected, prover=prover, hooks=hooks
            )
        except Exception as e:
            logger.debug("Job %s failed: %s", job.operation, e)
            return JobResult(job, error=e)
        return JobResult(job, report=report)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(run, jobs))
