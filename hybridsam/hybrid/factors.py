"""
hybridsam/hybrid/factors.py

Mixture factors: a continuous factor selected by a discrete assignment.

Components are stored in a DecisionTree[Optional[JacobianFactor]]. A None
component marks a branch that has been pruned away.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

from hybridsam.algebra.decision_tree import DecisionTree
from hybridsam.core.errors import CardinalityMismatch
from hybridsam.core.keys import DiscreteKey, Key, key_name, sorted_discrete_keys
from hybridsam.core.kinds import FactorKind
from hybridsam.linear.gaussian import JacobianFactor, collect_dims


class MixtureFactor:
    """
    Hybrid factor on continuous keys whose Gaussian depends on discrete keys.

    Attributes:
        continuous_keys: Continuous keys shared by all components
        discrete_keys: DiscreteKeys selecting the component, sorted
        factors: DecisionTree[Optional[JacobianFactor]]
    """
    kind = FactorKind.HYBRID

    def __init__(
        self,
        continuous_keys: Sequence[Key],
        discrete_keys: Sequence[DiscreteKey],
        factors: Union[DecisionTree[Optional[JacobianFactor]], Sequence[Optional[JacobianFactor]]],
    ):
        """
        Args:
            continuous_keys: Continuous keys of every component
            discrete_keys: DiscreteKeys the components depend on
            factors: A decision tree of components, or a list of components
                in assignment order of `discrete_keys` (first key slowest)

        Raises:
            CardinalityMismatch: the number of components does not match the
                discrete keys, or a component's keys differ from
                `continuous_keys`
        """
        self.continuous_keys: Tuple[Key, ...] = tuple(continuous_keys)
        if not isinstance(factors, DecisionTree):
            expected = 1
            for dk in discrete_keys:
                expected *= dk.cardinality
            if len(factors) != expected:
                raise CardinalityMismatch(
                    f"Mixture on {len(discrete_keys)} discrete keys needs {expected} components, "
                    f"got {len(factors)}"
                )
            factors = DecisionTree.from_leaves(discrete_keys, list(factors))
        if factors.key_ids != tuple(dk.key for dk in sorted_discrete_keys(discrete_keys)):
            raise CardinalityMismatch("Component tree keys differ from the mixture's discrete keys")
        self.discrete_keys: Tuple[DiscreteKey, ...] = factors.keys
        self.factors = factors

        expected_keys = set(self.continuous_keys)
        for f in factors.leaves():
            if f is None:
                continue
            if len(f.keys) != len(self.continuous_keys) or set(f.keys) != expected_keys:
                names = " ".join(key_name(k) for k in f.keys)
                raise CardinalityMismatch(
                    f"Component on [{names}] does not match the mixture's "
                    f"{len(self.continuous_keys)} continuous keys"
                )
        self._dims = collect_dims(f for f in factors.leaves() if f is not None)

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.continuous_keys + tuple(dk.key for dk in self.discrete_keys)

    @property
    def dims(self) -> Dict[Key, int]:
        return dict(self._dims)

    def factor_for(self, assignment: Mapping[Key, int]) -> Optional[JacobianFactor]:
        """Component selected by `assignment`; None for a pruned branch."""
        return self.factors(assignment)

    def nr_components(self) -> int:
        return self.factors.count(lambda f: f is not None)

    def equals(self, other: "MixtureFactor", tol: float = 1e-9) -> bool:
        def same(a, b):
            if a is None or b is None:
                return a is b
            return a.equals(b, tol)

        return (
            isinstance(other, MixtureFactor)
            and set(self.continuous_keys) == set(other.continuous_keys)
            and self.factors.equals(other.factors, same)
        )

    def __repr__(self) -> str:
        c = " ".join(key_name(k) for k in self.continuous_keys)
        d = " ".join(key_name(dk.key) for dk in self.discrete_keys)
        return f"MixtureFactor([{c}; {d}], components={self.nr_components()})"
