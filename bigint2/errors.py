"""Error taxonomy for the execution and proof pipeline.

Every failure is surfaced to the immediate caller. Abnormal circuit halts are
not errors at the engine level (they are returned as session data); they only
become a TerminationError once a ResultValidator inspects the session.
"""


class Bigint2Error(Exception):
    """Base class for all pipeline errors."""


class UnknownOperationError(Bigint2Error, LookupError):
    """No circuit artifact is registered under the requested operation name."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Unknown operation: {operation!r}")
        self.operation = operation


class LoadError(Bigint2Error):
    """A circuit artifact could not be initialized."""


class ExecutionFault(Bigint2Error):
    """Engine-internal fault (resource exhaustion, session limit)."""


class SessionLimitError(ExecutionFault):
    """The run exceeded the configured cycle budget."""


class ProvingError(Bigint2Error):
    """A session could not be proven (incomplete or malformed)."""


# --- Validation ---

class ValidationError(Bigint2Error):
    """Base class for failures reported by the ResultValidator."""


class TerminationError(ValidationError):
    """Session did not halt with the successful exit code."""

    def __init__(self, exit_code) -> None:
        super().__init__(f"Session terminated with {exit_code}, expected Halted(0)")
        self.exit_code = exit_code


class DecodeError(ValidationError, ValueError):
    """Journal bytes do not match the expected output shape."""


class SemanticMismatchError(ValidationError):
    """Decoded result differs from the expected value."""

    def __init__(self, expected, actual) -> None:
        super().__init__(f"Result mismatch: expected {expected!r}, got {actual!r}")
        self.expected = expected
        self.actual = actual


class ProofError(ValidationError):
    """Proof generation or verification failed."""
