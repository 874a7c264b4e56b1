"""
Core module: keys, assignments, variant tags and error kinds.
"""

from hybridsam.core.keys import (
    Key,
    Assignment,
    DiscreteKey,
    symbol,
    shorthand,
    symbol_category,
    symbol_index,
    key_name,
    sorted_discrete_keys,
    assignments,
)
from hybridsam.core.kinds import FactorKind, ConditionalKind
from hybridsam.core.errors import (
    ErrorKind,
    HybridError,
    OrderingViolation,
    CardinalityMismatch,
    InconsistentAssignment,
    SingularElimination,
)

__all__ = [
    "Key",
    "Assignment",
    "DiscreteKey",
    "symbol",
    "shorthand",
    "symbol_category",
    "symbol_index",
    "key_name",
    "sorted_discrete_keys",
    "assignments",
    "FactorKind",
    "ConditionalKind",
    "ErrorKind",
    "HybridError",
    "OrderingViolation",
    "CardinalityMismatch",
    "InconsistentAssignment",
    "SingularElimination",
]
