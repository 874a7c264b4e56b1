"""
hybridsam/hybrid/conditional.py

Conditionals produced by hybrid elimination.

GaussianMixture: a GaussianConditional per discrete assignment, stored in a
DecisionTree[Optional[GaussianConditional]] (None for a pruned branch).

HybridConditional: tagged variant over DiscreteConditional,
GaussianConditional and GaussianMixture. Code that handles conditionals
dispatches on `kind`.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Tuple, Union

from hybridsam.algebra.decision_tree import DecisionTree
from hybridsam.core.errors import InconsistentAssignment
from hybridsam.core.keys import DiscreteKey, Key, key_name
from hybridsam.core.kinds import ConditionalKind
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.factors import MixtureFactor
from hybridsam.linear.gaussian import GaussianConditional, JacobianFactor


class GaussianMixture:
    """
    Gaussian conditional on continuous frontals whose parameters depend on
    discrete parents.

    Attributes:
        frontals: Continuous frontal keys
        continuous_parents: Continuous parent keys
        discrete_keys: DiscreteKeys the components depend on, sorted
        conditionals: DecisionTree[Optional[GaussianConditional]]
    """
    kind = ConditionalKind.HYBRID

    def __init__(
        self,
        frontals: Sequence[Key],
        continuous_parents: Sequence[Key],
        conditionals: DecisionTree[Optional[GaussianConditional]],
    ):
        self.frontals: Tuple[Key, ...] = tuple(frontals)
        self.continuous_parents: Tuple[Key, ...] = tuple(continuous_parents)
        self.conditionals = conditionals

    @property
    def discrete_keys(self) -> Tuple[DiscreteKey, ...]:
        return self.conditionals.keys

    @property
    def parents(self) -> Tuple[Key, ...]:
        """Continuous parents first, then discrete parents."""
        return self.continuous_parents + self.conditionals.key_ids

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.frontals + self.parents

    def __call__(self, assignment: Mapping[Key, int]) -> Optional[GaussianConditional]:
        """Component at `assignment`, None if pruned."""
        return self.conditionals(assignment)

    def choose(self, assignment: Mapping[Key, int]) -> GaussianConditional:
        """
        Component at a full assignment.

        Raises:
            InconsistentAssignment: the branch has been pruned
        """
        c = self.conditionals(assignment)
        if c is None:
            raise InconsistentAssignment(
                {dk.key: assignment[dk.key] for dk in self.discrete_keys}, where=repr(self)
            )
        return c

    def nr_components(self) -> int:
        """Number of non-pruned components."""
        return self.conditionals.count(lambda c: c is not None)

    def with_conditionals(self, conditionals: DecisionTree[Optional[GaussianConditional]]) -> "GaussianMixture":
        return GaussianMixture(self.frontals, self.continuous_parents, conditionals)

    def to_factor(self) -> MixtureFactor:
        """The mixture as a factor on frontals and continuous parents."""
        tree = self.conditionals.map(lambda c: c.to_factor() if c is not None else None)
        return MixtureFactor(self.frontals + self.continuous_parents, self.discrete_keys, tree)

    def equals(self, other: "GaussianMixture", tol: float = 1e-9) -> bool:
        def same(a, b):
            if a is None or b is None:
                return a is b
            return a.equals(b, tol)

        return (
            isinstance(other, GaussianMixture)
            and self.frontals == other.frontals
            and self.continuous_parents == other.continuous_parents
            and self.conditionals.equals(other.conditionals, same)
        )

    def __repr__(self) -> str:
        f = " ".join(key_name(k) for k in self.frontals)
        p = " ".join(key_name(k) for k in self.parents)
        return f"GaussianMixture(p({f} | {p}), components={self.nr_components()})"


Inner = Union[DiscreteConditional, GaussianConditional, GaussianMixture]


class HybridConditional:
    """
    Tagged variant over the three conditional types.

    Attributes:
        inner: The wrapped conditional
        kind: ConditionalKind of `inner`
    """

    def __init__(self, inner: Inner):
        if inner.kind not in (ConditionalKind.CONTINUOUS, ConditionalKind.DISCRETE, ConditionalKind.HYBRID):
            raise TypeError(f"Not a conditional: {inner!r}")
        self.inner = inner
        self.kind: ConditionalKind = inner.kind

    def is_continuous(self) -> bool:
        return self.kind is ConditionalKind.CONTINUOUS

    def is_discrete(self) -> bool:
        return self.kind is ConditionalKind.DISCRETE

    def is_hybrid(self) -> bool:
        return self.kind is ConditionalKind.HYBRID

    def as_gaussian(self) -> GaussianConditional:
        if not self.is_continuous():
            raise TypeError(f"{self!r} is not a GaussianConditional")
        return self.inner

    def as_discrete(self) -> DiscreteConditional:
        if not self.is_discrete():
            raise TypeError(f"{self!r} is not a DiscreteConditional")
        return self.inner

    def as_mixture(self) -> GaussianMixture:
        if not self.is_hybrid():
            raise TypeError(f"{self!r} is not a GaussianMixture")
        return self.inner

    @property
    def frontals(self) -> Tuple[Key, ...]:
        if self.kind is ConditionalKind.DISCRETE:
            return self.inner.frontal_keys
        return self.inner.frontals

    @property
    def parents(self) -> Tuple[Key, ...]:
        if self.kind is ConditionalKind.DISCRETE:
            return self.inner.parent_keys
        return self.inner.parents

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.frontals + self.parents

    @property
    def discrete_keys(self) -> Tuple[DiscreteKey, ...]:
        if self.kind is ConditionalKind.CONTINUOUS:
            return ()
        return self.inner.discrete_keys

    @property
    def continuous_keys(self) -> Tuple[Key, ...]:
        if self.kind is ConditionalKind.DISCRETE:
            return ()
        if self.kind is ConditionalKind.HYBRID:
            return self.inner.frontals + self.inner.continuous_parents
        return self.inner.keys

    def to_factor(self) -> Union[JacobianFactor, DecisionTreeFactor, MixtureFactor]:
        """The conditional as a factor of the matching kind."""
        return self.inner.to_factor()

    def choose(self, assignment: Mapping[Key, int]) -> Optional[GaussianConditional]:
        """Plain Gaussian conditional at `assignment`; None for discrete conditionals."""
        if self.kind is ConditionalKind.HYBRID:
            return self.inner.choose(assignment)
        if self.kind is ConditionalKind.CONTINUOUS:
            return self.inner
        return None

    def equals(self, other: "HybridConditional", tol: float = 1e-9) -> bool:
        return (
            isinstance(other, HybridConditional)
            and self.kind is other.kind
            and self.inner.equals(other.inner, tol)
        )

    def __repr__(self) -> str:
        return f"HybridConditional({self.inner!r})"
