"""
hybridsam/algebra/semiring.py

Semirings behind the two elimination policies.

A commutative semiring (S, ⊕, ⊗, 0, 1) over nonnegative reals. Factors are
always combined with ⊗ = *; the semiring supplies add_reduce, the ⊕ that
folds the alternatives of an eliminated discrete variable (0 when empty).

Sum-Product uses the probability semiring and computes marginals.
Max-Product replaces ⊕ by max and computes most-probable explanations.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Protocol, Union

import numpy as np


class Semiring(Protocol):
    """Protocol for scalar semiring operations."""
    name: str
    zero: Any

    def add_reduce(self, xs: Iterable[Any]) -> Any: ...


@dataclass(frozen=True)
class ProbSemiring:
    """Nonnegative reals with ⊕ = +."""
    name: str = "sum-product"
    zero: float = 0.0

    def add_reduce(self, xs: Iterable[Any]) -> float:
        return float(np.sum(np.fromiter(xs, dtype=np.float64)))


@dataclass(frozen=True)
class MaxProductSemiring:
    """Nonnegative reals with ⊕ = max."""
    name: str = "max-product"
    zero: float = 0.0

    def add_reduce(self, xs: Iterable[Any]) -> float:
        arr = np.fromiter(xs, dtype=np.float64)
        if arr.size == 0:
            return self.zero
        return float(np.max(arr))


class EliminationPolicy(Enum):
    """How a discrete variable is removed: marginalized or maximized."""
    SUM_PRODUCT = "sum-product"
    MAX_PRODUCT = "max-product"

    @property
    def semiring(self) -> Semiring:
        return _SEMIRINGS[self]


DEFAULT_POLICY = EliminationPolicy.MAX_PRODUCT

_SEMIRINGS: Dict[EliminationPolicy, Semiring] = {
    EliminationPolicy.SUM_PRODUCT: ProbSemiring(),
    EliminationPolicy.MAX_PRODUCT: MaxProductSemiring(),
}

_POLICY_NAMES: Dict[str, EliminationPolicy] = {
    "sum": EliminationPolicy.SUM_PRODUCT,
    "sum-product": EliminationPolicy.SUM_PRODUCT,
    "sum_product": EliminationPolicy.SUM_PRODUCT,
    "max": EliminationPolicy.MAX_PRODUCT,
    "max-product": EliminationPolicy.MAX_PRODUCT,
    "max_product": EliminationPolicy.MAX_PRODUCT,
}


def get_policy(policy: Union[EliminationPolicy, str, None] = None) -> EliminationPolicy:
    """
    Resolve a policy given as an enum member, a name, or None (the default).

    Args:
        policy: EliminationPolicy, one of "sum", "sum-product", "max",
            "max-product" (case-insensitive), or None

    Returns:
        EliminationPolicy
    """
    if policy is None:
        return DEFAULT_POLICY
    if isinstance(policy, EliminationPolicy):
        return policy
    if isinstance(policy, str):
        try:
            return _POLICY_NAMES[policy.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown elimination policy {policy!r}; expected one of {sorted(_POLICY_NAMES)}"
            ) from None
    raise TypeError(f"Policy must be an EliminationPolicy or str, got {type(policy).__name__}")


def get_semiring(policy: Union[EliminationPolicy, str, None] = None) -> Semiring:
    return get_policy(policy).semiring
