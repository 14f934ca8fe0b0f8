"""Tests for the ResultValidator."""

import dataclasses

import pytest

from bigint2.errors import (
    DecodeError,
    ExecutionFault,
    ProofError,
    SemanticMismatchError,
    SessionLimitError,
    TerminationError,
    ValidationError,
)
from bigint2.protocol.hooks import TimingHooks
from bigint2.protocol.session import ExitCode
from bigint2.protocol.validator import ResultValidator, ValidationReport


@pytest.fixture
def modadd_session(engine):
    return engine.execute_operation("modadd", (4, 7, 3))


class TestValidate:
    """Test the validation steps in order."""

    def test_success(self, modadd_session):
        report = ResultValidator("modadd").validate(modadd_session, 2)
        assert isinstance(report, ValidationReport)
        assert report.operation == "modadd"
        assert report.value == 2
        assert report.exit_code == ExitCode.halted(0)
        assert report.user_cycles == modadd_session.user_cycles
        assert report.prove_info is None
        assert report.stats is None

    def test_abnormal_halt(self, engine):
        session = engine.execute_operation("modinv", (2, 4))
        with pytest.raises(TerminationError) as exc_info:
            ResultValidator("modinv").validate(session, 0)
        assert exc_info.value.exit_code == ExitCode.halted(2)
        assert "Halted(2)" in str(exc_info.value)

    def test_fault_raises_execution_fault(self, small_engine):
        session = small_engine.execute_operation("modadd", (4, 7, 3))
        with pytest.raises(SessionLimitError):
            ResultValidator("modadd").validate(session, 2)

    def test_fault_is_not_a_validation_error(self, small_engine):
        session = small_engine.execute_operation("modadd", (4, 7, 3))
        with pytest.raises(ExecutionFault) as exc_info:
            ResultValidator("modadd").validate(session, 2)
        assert not isinstance(exc_info.value, ValidationError)

    def test_decode_error(self, modadd_session):
        """A scalar journal does not satisfy a pair shape."""
        with pytest.raises(DecodeError):
            ResultValidator("extfieldadd").validate(modadd_session, (2, 0))

    def test_malformed_journal(self, modadd_session):
        forged = dataclasses.replace(modadd_session, journal=b"\x01\x00")
        with pytest.raises(DecodeError):
            ResultValidator("modadd").validate(forged, 2)

    def test_mismatch(self, modadd_session):
        with pytest.raises(SemanticMismatchError) as exc_info:
            ResultValidator("modadd").validate(modadd_session, 3)
        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2

    def test_list_expected(self, engine):
        session = engine.execute_operation("extfieldadd", ((4, 6), (3, 4), 7))
        report = ResultValidator("extfieldadd").validate(session, [0, 3])
        assert report.value == (0, 3)


class TestValidateWithProof:
    """Test validation with a configured prover."""

    def test_prover_requires_artifact(self, prover):
        with pytest.raises(ValueError):
            ResultValidator("modadd", prover=prover)

    def test_proof_attached(self, modadd_session, registry, prover):
        validator = ResultValidator("modadd", artifact=registry.lookup("modadd"), prover=prover)
        report = validator.validate(modadd_session, 2)
        assert report.prove_info is not None
        assert report.stats.user_cycles == modadd_session.user_cycles
        assert report.stats.user_cycles >= 0

    def test_proof_generation_failure(self, modadd_session, registry, prover):
        """A session whose trace cannot be proven surfaces as ProofError."""
        forged = dataclasses.replace(modadd_session, trace=())
        validator = ResultValidator("modadd", artifact=registry.lookup("modadd"), prover=prover)
        with pytest.raises(ProofError):
            validator.validate(forged, 2)

    def test_verification_failure(self, modadd_session, registry, prover):
        validator = ResultValidator("modadd", artifact=registry.lookup("modmul"), prover=prover)
        with pytest.raises(ProofError):
            validator.validate(modadd_session, 2)

    def test_mismatch_checked_before_proof(self, modadd_session, registry, prover):
        hooks = TimingHooks()
        validator = ResultValidator(
            "modadd", artifact=registry.lookup("modadd"), prover=prover, hooks=hooks
        )
        with pytest.raises(SemanticMismatchError):
            validator.validate(modadd_session, 1)
        assert "modadd.prove" not in hooks.timings


class TestConcurrentValidate:
    """Test decode and prove running in parallel."""

    def test_same_report(self, modadd_session, registry, prover):
        validator = ResultValidator("modadd", artifact=registry.lookup("modadd"), prover=prover)
        sequential = validator.validate(modadd_session, 2)
        concurrent = validator.validate(modadd_session, 2, concurrent=True)
        assert concurrent == sequential

    def test_mismatch(self, modadd_session, registry, prover):
        validator = ResultValidator("modadd", artifact=registry.lookup("modadd"), prover=prover)
        with pytest.raises(SemanticMismatchError):
            validator.validate(modadd_session, 1, concurrent=True)

    def test_proof_failure(self, modadd_session, registry, prover):
        validator = ResultValidator("modadd", artifact=registry.lookup("modmul"), prover=prover)
        with pytest.raises(ProofError):
            validator.validate(modadd_session, 2, concurrent=True)

    def test_stages_timed(self, modadd_session, registry, prover):
        hooks = TimingHooks()
        validator = ResultValidator(
            "modadd", artifact=registry.lookup("modadd"), prover=prover, hooks=hooks
        )
        validator.validate(modadd_session, 2, concurrent=True)
        assert {"modadd.decode", "modadd.prove", "modadd.verify"} <= set(hooks.timings)
