"""
hybridsam/hybrid/bayes_net.py

Hybrid Bayes nets: conditionals in elimination order.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Mapping, Sequence, Union

from hybridsam.core.keys import DiscreteKey, Key, sorted_discrete_keys
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.conditional import GaussianMixture, HybridConditional, Inner
from hybridsam.hybrid.pruning import prune_conditionals
from hybridsam.linear.gaussian import GaussianBayesNet, GaussianConditional


def as_hybrid(conditional: Union[HybridConditional, Inner]) -> HybridConditional:
    if isinstance(conditional, HybridConditional):
        return conditional
    return HybridConditional(conditional)


def choose_conditionals(conditionals: Iterable[HybridConditional], assignment: Mapping[Key, int]) -> GaussianBayesNet:
    """Gaussian conditionals selected by a full discrete assignment."""
    chosen = []
    for c in conditionals:
        g = c.choose(assignment)
        if g is not None:
            chosen.append(g)
    return GaussianBayesNet(chosen)


class HybridBayesNet:
    """
    Ordered sequence of HybridConditionals, frontals before parents.
    """

    def __init__(self, conditionals: Iterable[Union[HybridConditional, Inner]] = ()):
        self.conditionals: List[HybridConditional] = [as_hybrid(c) for c in conditionals]

    def push_back(self, conditional: Union[HybridConditional, Inner]) -> None:
        self.conditionals.append(as_hybrid(conditional))

    def add(self, key: DiscreteKey, spec: str, parents: Sequence[DiscreteKey] = ()) -> None:
        """Append P(key | parents) given as a signature string, e.g. "1/2 3/2"."""
        self.push_back(DiscreteConditional.from_signature(key, parents, spec))

    def __len__(self) -> int:
        return len(self.conditionals)

    def __iter__(self) -> Iterator[HybridConditional]:
        return iter(self.conditionals)

    def __getitem__(self, i: int) -> HybridConditional:
        return self.conditionals[i]

    def at_gaussian(self, i: int) -> GaussianConditional:
        return self.conditionals[i].as_gaussian()

    def at_discrete(self, i: int) -> DiscreteConditional:
        return self.conditionals[i].as_discrete()

    def at_mixture(self, i: int) -> GaussianMixture:
        return self.conditionals[i].as_mixture()

    def discrete_keys(self) -> List[DiscreteKey]:
        return list(sorted_discrete_keys(dk for c in self.conditionals for dk in c.discrete_keys))

    def choose(self, assignment: Mapping[Key, int]) -> GaussianBayesNet:
        """
        Project every conditional to the Gaussian at `assignment`.

        Raises:
            InconsistentAssignment: a selected branch has been pruned
            KeyError: `assignment` misses a discrete key of a mixture
        """
        return choose_conditionals(self.conditionals, assignment)

    def optimize(self, assignment: Mapping[Key, int]):
        """Continuous MAP estimate given the discrete assignment."""
        return self.choose(assignment).optimize()

    def prune(self, target: Union[Key, DecisionTreeFactor], max_nr_leaves: int) -> "HybridBayesNet":
        """Pruned copy; the input is left unchanged."""
        return HybridBayesNet(prune_conditionals(self.conditionals, target, max_nr_leaves))

    def equals(self, other: "HybridBayesNet", tol: float = 1e-9) -> bool:
        return len(self) == len(other) and all(a.equals(b, tol) for a, b in zip(self, other))

    def __repr__(self) -> str:
        return f"HybridBayesNet(size={len(self)})"
