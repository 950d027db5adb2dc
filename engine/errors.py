"""Engine error taxonomy.

Every error is terminal for a single projection. Nothing inside the engine
catches these to substitute a default.
"""

from __future__ import annotations

from decimal import Decimal


class EngineError(Exception):
    """Base class for projection failures."""


class ValidationError(EngineError, ValueError):
    """Malformed or out-of-range input.

    Carries every (field, message) issue found, so a caller validating a
    list of rules sees all offending entries at once.
    """

    def __init__(self, issues: list[tuple[str, str]]):
        self.issues = list(issues)
        super().__init__("; ".join(f"{f}: {m}" for f, m in self.issues))

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([(field, message)])

    @property
    def fields(self) -> list[str]:
        return [f for f, _ in self.issues]

    def prefixed(self, prefix: str) -> "ValidationError":
        """Same issues with every field name qualified by prefix."""
        return ValidationError([(f"{prefix}.{f}", m) for f, m in self.issues])


class DivergenceError(EngineError, ArithmeticError):
    """Circular solver failed to converge within the iteration cap."""

    def __init__(self, year: int, last_delta: Decimal, iterations: int):
        self.year = year
        self.last_delta = last_delta
        self.iterations = iterations
        super().__init__(
            f"Year {year}: interest did not converge after {iterations} "
            f"iterations (last delta {last_delta})"
        )


class ConfigurationError(EngineError, ValueError):
    """Inconsistent global settings."""


class ProjectionCancelled(EngineError):
    """Caller signalled cancellation; raised at a year boundary."""

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"Projection cancelled before year {year}")
