"""Result validation: the consumer-facing check on a session.

A validation succeeds only if every step holds:
1. the session halted with Halted(0)
2. the journal decodes into the operation's output shape
3. the decoded value equals the expected value
4. if a prover is configured, the session proves and the receipt verifies

The first violated step raises; there is no partial success.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Union

from bigint2.circuits.programs import Operation, get_operation
from bigint2.errors import ProofError, ProvingError, SemanticMismatchError, TerminationError
from bigint2.primitives.codec import Operand, decode
from bigint2.protocol.hooks import PipelineHooks
from bigint2.protocol.prover import ProveInfo, Prover, SessionStats
from bigint2.protocol.registry import CircuitArtifact
from bigint2.protocol.session import AbnormalHalt, ExitCode, Fault, Session, Success


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of a successful validation."""
    operation: str
    value: Operand
    exit_code: ExitCode
    user_cycles: int
    prove_info: Optional[ProveInfo] = None

    @property
    def stats(self) -> Optional[SessionStats]:
        return self.prove_info.stats if self.prove_info is not None else None


def _normalize(value: Operand) -> Operand:
    if isinstance(value, (tuple, list)):
        return tuple(_normalize(v) for v in value)
    return value


class ResultValidator:
    """Validates sessions of one operation.

    Args:
        operation: Operation descriptor or name
        artifact: Artifact the session ran; required when a prover is given
        prover: If set, every validation also proves and verifies
        hooks: Observability hooks (timing spans)
    """

    def __init__(
        self,
        operation: Union[Operation, str],
        artifact: Optional[CircuitArtifact] = None,
        prover: Optional[Prover] = None,
        hooks: Optional[PipelineHooks] = None,
    ) -> None:
        self.operation = get_operation(operation) if isinstance(operation, str) else operation
        if prover is not None and artifact is None:
            raise ValueError("an artifact is required to verify proofs")
        self.artifact = artifact
        self.prover = prover
        self.hooks = hooks or PipelineHooks()

    # --- Steps ---

    def check_termination(self, session: Session) -> None:
        if isinstance(session, Fault):
            session.raise_for_fault()
        if isinstance(session, AbnormalHalt) or not session.exit_code.is_success:
            raise TerminationError(session.exit_code)
        if not isinstance(session, Success):
            raise TypeError(f"Unknown session variant {type(session).__name__}")

    def decode(self, session: Success) -> Operand:
        with self.hooks.span("decode", self.operation.name):
            return decode(session.journal, self.operation.output_shape)

    def compare(self, actual: Operand, expected: Operand) -> None:
        if _normalize(actual) != _normalize(expected):
            raise SemanticMismatchError(expected, actual)

    def prove(self, session: Success) -> ProveInfo:
        name = self.operation.name
        try:
            with self.hooks.span("prove", name):
                info = self.prover.prove(session)
        except ProvingError as e:
            raise ProofError(f"Proof generation failed for {name}: {e}") from e
        with self.hooks.span("verify", name):
            info.receipt.verify(self.artifact)
        return info

    # --- Entry Point ---

    def validate(self, session: Session, expected: Operand, concurrent: bool = False) -> ValidationReport:
        """Run all validation steps.

        Args:
            session: Session produced by the execution engine
            expected: Expected result (int or pair)
            concurrent: Decode and prove in parallel threads

        Raises:
            ExecutionFault: The session is a Fault
            TerminationError, DecodeError, SemanticMismatchError, ProofError
        """
        self.check_termination(session)

        prove_info = None
        if self.prover is not None and concurrent:
            with ThreadPoolExecutor(max_workers=1) as pool:
                proof_future = pool.submit(self.prove, session)
                try:
                    value = self.decode(session)
                    self.compare(value, expected)
                finally:
                    # Join the proof before surfacing a decode or compare error
                    proof_exc = proof_future.exception()
                if proof_exc is not None:
                    raise proof_exc
                prove_info = proof_future.result()
        else:
            value = self.decode(session)
            self.compare(value, expected)
            if self.prover is not None:
                prove_info = self.prove(session)

        report = ValidationReport(
            operation=self.operation.name,
            value=value,
            exit_code=session.exit_code,
            user_cycles=session.user_cycles,
            prove_info=prove_info,
        )
        self.hooks.on_report(report)
        return report
