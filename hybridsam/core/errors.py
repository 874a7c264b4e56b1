"""
hybridsam/core/errors.py

Typed errors raised by elimination, pruning and incremental updates.

Each error carries an ErrorKind so callers can branch on the kind of failure
without matching on exception classes.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

from hybridsam.core.keys import Key, format_assignment, key_name


class ErrorKind(Enum):
    ORDERING_VIOLATION = "ordering_violation"
    CARDINALITY_MISMATCH = "cardinality_mismatch"
    INCONSISTENT_ASSIGNMENT = "inconsistent_assignment"
    SINGULAR_ELIMINATION = "singular_elimination"


class HybridError(Exception):
    """Base class for all hybridsam domain errors."""
    kind: ErrorKind


class OrderingViolation(HybridError):
    """A discrete key is eliminated while a mixture still depends on it."""
    kind = ErrorKind.ORDERING_VIOLATION


class CardinalityMismatch(HybridError, ValueError):
    """A mixture factor's components disagree with its declared keys."""
    kind = ErrorKind.CARDINALITY_MISMATCH


class InconsistentAssignment(HybridError, LookupError):
    """
    The assignment selects a pruned branch.

    The assignment is infeasible under the current approximation; this is
    not a programming error.
    """
    kind = ErrorKind.INCONSISTENT_ASSIGNMENT

    def __init__(self, assignment: Mapping[Key, int], where: str = ""):
        self.assignment = dict(assignment)
        msg = f"Assignment {format_assignment(assignment)} was pruned"
        if where:
            msg += f" in {where}"
        super().__init__(msg)


class SingularElimination(HybridError, ArithmeticError):
    """The Gaussian system of one discrete branch is rank deficient."""
    kind = ErrorKind.SINGULAR_ELIMINATION

    def __init__(
        self,
        frontal_keys: Sequence[Key],
        assignment: Optional[Mapping[Key, int]] = None,
        detail: str = "",
    ):
        self.frontal_keys: Tuple[Key, ...] = tuple(frontal_keys)
        self.assignment = dict(assignment) if assignment is not None else None
        self.detail = detail
        names = " ".join(key_name(k) for k in self.frontal_keys)
        msg = f"Singular system eliminating [{names}]"
        if self.assignment:
            msg += f" for {format_assignment(self.assignment)}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)

    def with_assignment(self, assignment: Mapping[Key, int]) -> "SingularElimination":
        return SingularElimination(self.frontal_keys, assignment, self.detail)
