"""
Pytest configuration for bigint2 tests.

Provides a shared registry, engine and prover. The registry is read-only, so
module-wide fixtures are safe to reuse across tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to the path so tests run without an install
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from bigint2.protocol.executor import ExecutionEngine, ExecutorConfig
from bigint2.protocol.prover import Prover, ProverOpts
from bigint2.protocol.registry import CircuitRegistry

# A 255-bit prime (2^255 - 19) and a 64-bit prime (Goldilocks)
P25519 = 2**255 - 19
GOLDILOCKS = 0xFFFFFFFF00000001


@pytest.fixture(scope="session")
def registry() -> CircuitRegistry:
    return CircuitRegistry.default()


@pytest.fixture(scope="session")
def engine(registry) -> ExecutionEngine:
    return ExecutionEngine(registry)


@pytest.fixture
def small_engine(registry) -> ExecutionEngine:
    """Engine with tight limits for fault tests."""
    return ExecutionEngine(registry, ExecutorConfig(session_limit=3, max_register_bits=64))


@pytest.fixture(scope="session")
def prover() -> Prover:
    return Prover(ProverOpts.fast())
