"""
hybridsam/discrete/factor.py

Tabular discrete factors stored as decision trees.

A DecisionTreeFactor is a nonnegative function of an assignment of its
DiscreteKeys. Products take the union of keys; eliminating keys reduces
them with the ⊕ of a semiring (sum or max).
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence, Tuple, Union

import numpy as np

from hybridsam.algebra.decision_tree import DecisionTree, combine
from hybridsam.algebra.semiring import MaxProductSemiring, ProbSemiring, Semiring
from hybridsam.core.keys import Assignment, DiscreteKey, Key, assignments, key_name
from hybridsam.core.kinds import FactorKind


def parse_table(table: Union[str, Sequence[float], np.ndarray]) -> List[float]:
    """Table values from a whitespace separated string or a sequence."""
    if isinstance(table, str):
        return [float(tok) for tok in table.split()]
    return [float(v) for v in np.asarray(table, dtype=np.float64).ravel()]


class DecisionTreeFactor:
    """
    Discrete factor over DiscreteKeys.

    Attributes:
        tree: DecisionTree[float] holding the table
    """
    kind = FactorKind.DISCRETE
    continuous_keys: Tuple[Key, ...] = ()

    def __init__(self, tree: DecisionTree[float]):
        self.tree = tree

    @classmethod
    def from_table(
        cls,
        keys: Sequence[DiscreteKey],
        table: Union[str, Sequence[float], np.ndarray],
    ) -> "DecisionTreeFactor":
        """
        Build from values listed in assignment order of `keys`.

        The first key varies slowest, e.g. keys (a, b) with table "1 2 3 4"
        gives f(a=0,b=1) = 2 and f(a=1,b=0) = 3.
        """
        values = parse_table(table)
        if any(v < 0.0 for v in values):
            raise ValueError("Discrete factor values must be nonnegative")
        return cls(DecisionTree.from_leaves(keys, values))

    @classmethod
    def constant(cls, value: float) -> "DecisionTreeFactor":
        return cls(DecisionTree.leaf(float(value)))

    @property
    def discrete_keys(self) -> Tuple[DiscreteKey, ...]:
        return self.tree.keys

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.tree.key_ids

    def __call__(self, assignment: Mapping[Key, int]) -> float:
        return self.tree(assignment)

    def evaluate(self, assignment: Mapping[Key, int]) -> float:
        return self.tree(assignment)

    def __mul__(self, other: "DecisionTreeFactor") -> "DecisionTreeFactor":
        return DecisionTreeFactor(combine(self.tree, other.tree, lambda a, b: a * b))

    def combine(self, other: "DecisionTreeFactor") -> "DecisionTreeFactor":
        """Product with another discrete factor."""
        return self * other

    def divide(self, other: "DecisionTreeFactor") -> "DecisionTreeFactor":
        """Pointwise ratio, with 0 wherever the divisor is 0."""
        return DecisionTreeFactor(combine(self.tree, other.tree, lambda a, b: a / b if b != 0.0 else 0.0))

    def reduce(self, frontal_keys: Iterable[Key], semiring: Semiring) -> "DecisionTreeFactor":
        """
        Eliminate `frontal_keys` with the semiring's ⊕.

        Args:
            frontal_keys: Keys to eliminate; each must be a key of the factor
            semiring: ProbSemiring (sum) or MaxProductSemiring (max)

        Returns:
            Factor over the remaining keys
        """
        frontal = set(frontal_keys)
        missing = frontal - set(self.keys)
        if missing:
            names = " ".join(key_name(k) for k in sorted(missing))
            raise KeyError(f"Cannot eliminate [{names}]: not keys of this factor")
        frontal_dks = [dk for dk in self.discrete_keys if dk.key in frontal]
        remaining = [dk for dk in self.discrete_keys if dk.key not in frontal]

        def reduce_at(a: Assignment) -> float:
            return semiring.add_reduce(self.tree({**a, **f}) for f in assignments(frontal_dks))

        return DecisionTreeFactor(DecisionTree.from_function(remaining, reduce_at))

    def sum(self, frontal_keys: Iterable[Key]) -> "DecisionTreeFactor":
        return self.reduce(frontal_keys, ProbSemiring())

    def max(self, frontal_keys: Iterable[Key]) -> "DecisionTreeFactor":
        return self.reduce(frontal_keys, MaxProductSemiring())

    def total(self) -> float:
        return self.tree.fold(lambda acc, v: acc + v, 0.0)

    def enumerate(self) -> List[Tuple[Assignment, float]]:
        """(assignment, value) pairs in canonical order."""
        return self.tree.enumerate()

    def argmax(self) -> Tuple[Assignment, float]:
        """Most probable assignment; the first in canonical order on ties."""
        best_a: Assignment = {}
        best_v = -np.inf
        for a, v in self.enumerate():
            if v > best_v:
                best_a, best_v = a, v
        return best_a, best_v

    def nr_nonzero(self) -> int:
        return self.tree.count(lambda v: v is not None and v > 0.0)

    def equals(self, other: "DecisionTreeFactor", tol: float = 1e-9) -> bool:
        return self.tree.equals(other.tree, lambda a, b: abs(a - b) <= tol)

    def __repr__(self) -> str:
        names = " ".join(key_name(k) for k in self.keys)
        return f"DecisionTreeFactor([{names}], leaves={self.tree.nr_leaves()})"
