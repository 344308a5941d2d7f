"""
Exception hierarchy for the splitting driver and proof reconstruction.

Unsatisfiability of the split loop is *not* an error: it is reported as an
``UnsatVerdict`` value (see ``chcsplit.split``).  Everything here signals a
broken invariant or a failing collaborator and is never retried.
"""

from __future__ import annotations

from typing import Any, Optional


class ChcSplitError(Exception):
    """Base class for all chcsplit errors."""


class ConfigError(ChcSplitError):
    """Malformed configuration file."""


class UnknownSample(ChcSplitError, KeyError):
    """A dependency or lookup referenced a sample that is neither real nor registered."""

    def __init__(self, sample: Any, action: str = "lookup"):
        self.sample = sample
        self.action = action
        super().__init__(f"trying to {action} unknown positive sample {sample}")

    def __str__(self) -> str:
        # KeyError quotes its argument, we want the plain message.
        return self.args[0]


class SplitError(ChcSplitError):
    """Preprocessing failed while isolating a negative clause."""

    def __init__(self, clause: int, cause: BaseException):
        self.clause = clause
        super().__init__(f"while splitting on negative clause #{clause}: {cause}")


class ReconstructionError(ChcSplitError):
    """Proof reconstruction failed for a clause or a sample."""

    def __init__(self, message: str, clause: Optional[int] = None, sample: Any = None):
        self.clause = clause
        self.sample = sample
        super().__init__(message)


class IllegalClause(ReconstructionError):
    """A clause without RHS was used where a sample must be witnessed."""

    def __init__(self, clause: int):
        super().__init__(
            f"proof reconstruction, illegal clause-level call on clause #{clause} (no rhs)",
            clause=clause,
        )


class UnreconstructableSample(ReconstructionError):
    """No clause of the original instance witnesses a target sample."""

    def __init__(self, sample: Any, rendered: Optional[str] = None):
        super().__init__(f"could not reconstruct sample {rendered or sample}", sample=sample)


class OracleError(ChcSplitError):
    """The oracle could not decide a query."""


class LearnerError(ChcSplitError):
    """The learner failed to produce a candidate or a verdict."""
