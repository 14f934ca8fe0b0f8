"""End-to-end tests for the verification pipeline.

Covers the concrete operation scenarios (each with a verifying proof), the
arithmetic properties of every circuit, batching and observability hooks.
"""

import logging
import random
import time

import galois
import pytest

from bigint2.circuits.isa import EXIT_NOT_INVERTIBLE, EXIT_ZERO_MODULUS
from bigint2.errors import (
    SemanticMismatchError,
    SessionLimitError,
    TerminationError,
    UnknownOperationError,
)
from bigint2.primitives.codec import from_hex
from bigint2.protocol.hooks import LoggingHooks, TimingHooks
from bigint2.protocol.pipeline import Job, verify_many, verify_operation
from bigint2.protocol.session import ExitCode
from bigint2.protocol.verifier import verify_receipt

P25519 = 2**255 - 19
GOLDILOCKS = 0xFFFFFFFF00000001
BN254 = 0x30644E72E131A029B85045B68181585D2833E84879B9709143E1F593F0000001
SECP256K1 = 2**256 - 2**32 - 977
PRIMES = [7, 65537, GOLDILOCKS, P25519]


def h(*texts):
    return tuple(from_hex(t) for t in texts)


SCENARIOS = [
    ("modadd", h("0x04", "0x07", "0x03"), from_hex("0x02")),
    ("modinv", h("0x02", "0x05"), from_hex("0x03")),
    ("modmul", h("0x04", "0x07", "0x05"), from_hex("0x03")),
    ("modsub", h("0x04", "0x07", "0x05"), from_hex("0x02")),
    ("extfieldadd", (h("0x04", "0x06"), h("0x03", "0x04"), from_hex("0x07")), h("0x00", "0x03")),
    ("extfieldsub", (h("0x02", "0x06"), h("0x03", "0x02"), from_hex("0x07")), h("0x06", "0x04")),
]


class TestScenarios:
    """Test the concrete operation scenarios with proofs."""

    @pytest.mark.parametrize("operation,operands,expected", SCENARIOS)
    def test_scenario(self, engine, registry, prover, operation, operands, expected):
        report = verify_operation(engine, operation, operands, expected, prover=prover)
        assert report.value == expected
        assert report.exit_code == ExitCode.halted(0)
        assert report.stats.user_cycles >= 0
        assert report.stats.user_cycles == report.user_cycles
        assert verify_receipt(report.prove_info.receipt, registry.lookup(operation))

    @pytest.mark.parametrize("operation,operands,expected", SCENARIOS)
    def test_default_expected(self, engine, operation, operands, expected):
        """Without an expected value, the reference semantics decide."""
        assert verify_operation(engine, operation, operands).value == expected

    @pytest.mark.parametrize("operation,operands,expected", SCENARIOS)
    def test_concurrent(self, engine, prover, operation, operands, expected):
        report = verify_operation(engine, operation, operands, expected, prover=prover, concurrent=True)
        assert report.value == expected
        assert report.prove_info is not None


class TestFailures:
    """Test how pipeline failures surface."""

    def test_not_invertible(self, engine):
        with pytest.raises(TerminationError) as exc_info:
            verify_operation(engine, "modinv", (6, 9))
        assert exc_info.value.exit_code == ExitCode.halted(EXIT_NOT_INVERTIBLE)

    def test_zero_modulus(self, engine):
        """Reported as an abnormal halt before any reference is computed."""
        with pytest.raises(TerminationError) as exc_info:
            verify_operation(engine, "modmul", (4, 7, 0))
        assert exc_info.value.exit_code.user_code == EXIT_ZERO_MODULUS

    def test_wrong_expected(self, engine):
        with pytest.raises(SemanticMismatchError):
            verify_operation(engine, "modadd", (4, 7, 3), expected=1)

    def test_wrong_shape(self, engine):
        with pytest.raises(ValueError):
            verify_operation(engine, "modadd", (4, 7))
        with pytest.raises(ValueError):
            verify_operation(engine, "extfieldadd", (4, 6, 3, 4, 7))

    def test_unknown_operation(self, engine):
        with pytest.raises(UnknownOperationError):
            verify_operation(engine, "modexp", (1, 2, 3))

    def test_session_limit(self, small_engine):
        with pytest.raises(SessionLimitError):
            verify_operation(small_engine, "modadd", (4, 7, 3))

    def test_modinv_zero(self, engine):
        """Zero has no inverse modulo any m > 1."""
        with pytest.raises(TerminationError) as exc_info:
            verify_operation(engine, "modinv", (0, 5))
        assert exc_info.value.exit_code.user_code == EXIT_NOT_INVERTIBLE


class TestProperties:
    """Test arithmetic properties over random operands."""

    def test_modular_closure(self, engine):
        rng = random.Random(7)
        for _ in range(20):
            m = rng.getrandbits(rng.randrange(2, 400)) + 1
            a, b = rng.getrandbits(500), rng.getrandbits(500)
            for name in ("modadd", "modsub", "modmul"):
                r = verify_operation(engine, name, (a, b, m)).value
                assert 0 <= r < m

    def test_subtraction_non_negative(self, engine):
        rng = random.Random(11)
        for _ in range(20):
            m = rng.getrandbits(256) + 1
            a = rng.randrange(m)
            b = rng.randrange(a, m) if a < m - 1 else a
            r = verify_operation(engine, "modsub", (a, b, m)).value
            assert 0 <= r < m
            assert r == (a - b) % m

    def test_inverse(self, engine):
        rng = random.Random(13)
        for p in PRIMES:
            for _ in range(5):
                a = rng.randrange(1, p)
                r = verify_operation(engine, "modinv", (a, p)).value
                assert (a * r) % p == 1
                assert 0 <= r < p

    def test_inverse_matches_galois(self, engine):
        for p in (7, 65537):
            GF = galois.GF(p)
            for a in (1, 2, p - 1):
                assert verify_operation(engine, "modinv", (a, p)).value == int(GF(a) ** -1)

    def test_inverse_unreduced_operand(self, engine):
        """Operands at or above the modulus are reduced implicitly."""
        r = verify_operation(engine, "modinv", (12, 5)).value
        assert (12 * r) % 5 == 1

    def test_extfield_additive_inverse(self, engine):
        rng = random.Random(17)
        for p in PRIMES:
            for _ in range(3):
                a = (rng.randrange(p), rng.randrange(p))
                neg = tuple(-c % p for c in a)
                assert verify_operation(engine, "extfieldadd", (a, neg, p)).value == (0, 0)
                assert verify_operation(engine, "extfieldsub", (a, a, p)).value == (0, 0)

    def test_extfield_sub_undoes_add(self, engine):
        rng = random.Random(19)
        p = P25519
        for _ in range(5):
            a = (rng.randrange(p), rng.randrange(p))
            b = (rng.randrange(p), rng.randrange(p))
            s = verify_operation(engine, "extfieldadd", (a, b, p)).value
            assert verify_operation(engine, "extfieldsub", (s, b, p)).value == a

    def test_extfield_components_in_range(self, engine):
        p = 65537
        a, b = (1, p + 5), (p * 3, 2 * p - 1)
        r0, r1 = verify_operation(engine, "extfieldsub", (a, b, p)).value
        assert 0 <= r0 < p and 0 <= r1 < p

    def test_determinism(self, engine, prover):
        operands = ((2**100 + 3, 5), (7, 2**90), P25519)
        first = verify_operation(engine, "extfieldsub", operands, prover=prover)
        second = verify_operation(engine, "extfieldsub", operands, prover=prover)
        assert first == second
        assert first.prove_info.receipt.seal == second.prove_info.receipt.seal


class TestExtensionFieldReference:
    """Test default expected values for extension-field operations."""

    @pytest.mark.parametrize("p", [BN254, SECP256K1])
    def test_large_prime_default_expected(self, engine, p):
        """Deriving the reference result stays as cheap as running the circuit."""
        start = time.perf_counter()
        assert verify_operation(engine, "extfieldadd", ((4, 6), (3, p - 4), p)).value == (7, 2)
        assert verify_operation(engine, "extfieldsub", ((0, 6), (1, 2), p)).value == (p - 1, 4)
        assert time.perf_counter() - start < 10.0

    def test_composite_modulus(self, engine):
        assert verify_operation(engine, "extfieldadd", ((4, 6), (3, 4), 8)).value == (7, 2)
        assert verify_operation(engine, "extfieldsub", ((2, 6), (3, 2), 9)).value == (8, 4)

    def test_composite_modulus_with_proof(self, engine, prover):
        report = verify_operation(engine, "extfieldsub", ((2, 6), (3, 2), 15), prover=prover)
        assert report.value == (14, 4)
        assert report.prove_info is not None


class TestVerifyMany:
    """Test batched pipelines."""

    def test_results_in_job_order(self, engine, prover):
        jobs = [Job(name, operands, expected) for name, operands, expected in SCENARIOS]
        results = verify_many(engine, jobs, prover=prover, max_workers=4)
        assert [r.job for r in results] == jobs
        assert all(r.ok for r in results)
        assert [r.report.value for r in results] == [e for _, _, e in SCENARIOS]

    def test_errors_captured_per_job(self, engine):
        jobs = [
            Job("modadd", (4, 7, 3)),
            Job("modinv", (2, 4)),
            Job("modpow", (1, 2, 3)),
            Job("modmul", (4, 7, 5), expected=4),
        ]
        results = verify_many(engine, jobs)
        assert results[0].ok and results[0].report.value == 2
        assert isinstance(results[1].error, TerminationError)
        assert isinstance(results[2].error, UnknownOperationError)
        assert isinstance(results[3].error, SemanticMismatchError)
        assert not any(r.ok for r in results[1:])

    def test_shared_hooks(self, engine):
        hooks = TimingHooks()
        verify_many(engine, [Job("modadd", (1, 2, 3)), Job("modmul", (1, 2, 3))], hooks=hooks)
        assert "modadd.execute" in hooks.timings
        assert "modmul.decode" in hooks.timings


class TestHooks:
    """Test observability hooks."""

    def test_timing_hooks(self, engine, prover):
        hooks = TimingHooks()
        verify_operation(engine, "modmul", (4, 7, 5), prover=prover, hooks=hooks)
        for stage in ("execute", "decode", "prove", "verify"):
            assert len(hooks.timings[f"modmul.{stage}"]) == 1
        assert hooks.total("modmul") >= hooks.last_run("modmul") > 0
        assert "modmul.prove" in hooks.summary()

    def test_last_run_covers_latest_samples(self, engine):
        hooks = TimingHooks()
        verify_operation(engine, "modadd", (1, 2, 3), hooks=hooks)
        verify_operation(engine, "modadd", (1, 2, 3), hooks=hooks)
        assert len(hooks.timings["modadd.execute"]) == 2
        assert hooks.last_run("modadd") <= hooks.total("modadd")

    def test_logging_hooks(self, engine, prover, caplog):
        caplog.set_level(logging.INFO, logger="bigint2.protocol.hooks")
        verify_operation(engine, "modmul", (4, 7, 5), prover=prover, hooks=LoggingHooks())
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("modmul runtime:") and m.endswith("ms") for m in messages)
        assert "modmul user cycles: 7" in messages

    def test_logging_hooks_without_proof(self, engine, caplog):
        caplog.set_level(logging.INFO, logger="bigint2.protocol.hooks")
        verify_operation(engine, "modadd", (1, 2, 3), hooks=LoggingHooks())
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("modadd runtime:") for m in messages)
        assert not any("user cycles" in m for m in messages)
