# errors.py
"""
Error taxonomy of the engine.

Per-sample numeric failures (IntegrationFailure, OutOfBounds) are raised
and caught inside the executors, where they only kill the offending
sample. Structural mismatches (DimensionMismatch, ExecutorNotSet) are
reported to the caller.
"""


class ChaosError(Exception):
    """Base class for all engine errors."""


class IntegrationFailure(ChaosError):
    """The ODE solver did not converge for a sample."""


class OutOfBounds(ChaosError):
    """A state left the valid region (non-finite or beyond the bounds)."""


class DimensionMismatch(ChaosError, ValueError):
    """A map, ODE system or force law does not match the sample arity."""


class ExecutorNotSet(ChaosError, RuntimeError):
    """Execution was requested before data and an executor were configured."""
