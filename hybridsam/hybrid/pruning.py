"""
hybridsam/hybrid/pruning.py

Probability-based pruning of the discrete mode space.

Given a discrete table (the DiscreteConditional owning a target key joined
with its discrete ancestors, or an explicit DecisionTreeFactor), keep its
`max_nr_leaves` most probable assignments:

- leaves with nonzero mass are ranked by value, highest first, ties broken
  by canonical order (lexicographic, lowest key most significant);
- the target conditional reads 0.0 on every other leaf, kept leaves are the
  very same values as before;
- every GaussianMixture leaf whose assignment, restricted to the keys it
  shares with the table, extends to no kept assignment becomes None.

Pruning returns new conditionals; the inputs are not modified.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from hybridsam.algebra.decision_tree import DecisionTree
from hybridsam.core.keys import Assignment, Key, key_name, project
from hybridsam.core.kinds import ConditionalKind
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.conditional import GaussianMixture, HybridConditional

_logger = logging.getLogger(__name__)

Target = Union[Key, DecisionTreeFactor, DiscreteConditional]


class KeepSet:
    """
    Kept assignments of a discrete table, with membership by projection.

    Attributes:
        keys: Keys of the table, sorted
        kept: Kept assignments, best first
    """

    def __init__(self, keys: Sequence[Key], kept: Sequence[Assignment]):
        self.keys: Tuple[Key, ...] = tuple(keys)
        self.kept: List[Assignment] = list(kept)
        self._projections: Dict[Tuple[Key, ...], Set[Tuple[int, ...]]] = {}

    def __len__(self) -> int:
        return len(self.kept)

    def _projected(self, shared: Tuple[Key, ...]) -> Set[Tuple[int, ...]]:
        proj = self._projections.get(shared)
        if proj is None:
            proj = {project(a, shared) for a in self.kept}
            self._projections[shared] = proj
        return proj

    def allows(self, assignment: Mapping[Key, int]) -> bool:
        """True if `assignment` extends to some kept assignment on the shared keys."""
        shared = tuple(k for k in self.keys if k in assignment)
        if not shared:
            return True
        return project(assignment, shared) in self._projected(shared)


def top_assignments(tree: DecisionTree[float], max_nr_leaves: int) -> KeepSet:
    """
    The `max_nr_leaves` most probable assignments of a discrete table.

    Only leaves with nonzero mass are candidates, so fewer may be returned.
    """
    if max_nr_leaves < 1:
        raise ValueError(f"max_nr_leaves must be at least 1, got {max_nr_leaves}")
    candidates = [(a, v) for a, v in tree.enumerate() if v is not None and v > 0.0]
    # sorted() is stable, so equal values keep canonical order
    ranked = sorted(candidates, key=lambda av: -av[1])
    return KeepSet(tree.key_ids, [a for a, _ in ranked[:max_nr_leaves]])


def joint_table(conditionals: Sequence[HybridConditional], index: int) -> DecisionTree[float]:
    """
    Table of a discrete conditional joined with its discrete ancestors,
    reduced back onto the conditional's own keys.

    Ancestors are multiplied in until no parent is left open; the extra keys
    are then maxed out of a Max-Product lookup and summed out otherwise.
    """
    target = conditionals[index].as_discrete()
    if not target.parents:
        return target.tree
    joint = target.to_factor()
    eliminated = set(target.frontal_keys)
    pending = set(target.parent_keys)
    used = {index}
    while pending:
        found = None
        for i, c in enumerate(conditionals):
            if i not in used and c.kind is ConditionalKind.DISCRETE and pending.intersection(c.frontals):
                found = i
                break
        if found is None:
            break
        used.add(found)
        parent = conditionals[found].as_discrete()
        joint = joint * parent.to_factor()
        eliminated.update(parent.frontal_keys)
        pending = (pending | set(parent.parent_keys)) - eliminated

    extra = [k for k in joint.keys if k not in target.keys]
    if extra:
        joint = joint.max(extra) if target.is_lookup else joint.sum(extra)
    return joint.tree


def resolve_target(
    conditionals: Sequence[HybridConditional],
    target: Target,
) -> Tuple[Optional[int], DecisionTree[float]]:
    """
    Locate the table to rank.

    Returns:
        (index of the target conditional or None, its table)

    Raises:
        KeyError: no discrete conditional has the target key as a frontal
    """
    if isinstance(target, DecisionTreeFactor):
        return None, target.tree
    if isinstance(target, DiscreteConditional):
        for i, c in enumerate(conditionals):
            if c.inner is target:
                return i, joint_table(conditionals, i)
        return None, target.tree
    for i, c in enumerate(conditionals):
        if c.kind is ConditionalKind.DISCRETE and target in c.frontals:
            return i, joint_table(conditionals, i)
    raise KeyError(f"No discrete conditional on {key_name(target)}")


def prune_mixture(mixture: GaussianMixture, keep: KeepSet) -> GaussianMixture:
    """Null every component whose assignment is not allowed by `keep`."""
    tree = mixture.conditionals.prune(lambda a, c: c is not None and keep.allows(a))
    return mixture.with_conditionals(tree)


def prune_discrete(conditional: DiscreteConditional, keep: KeepSet) -> DiscreteConditional:
    """Zero the leaves of the ranked conditional that were not kept."""
    kept = {project(a, keep.keys) for a in keep.kept}
    tree = conditional.tree.prune(lambda a, v: project(a, keep.keys) in kept, replacement=0.0)
    return conditional.with_tree(tree)


def prune_conditionals(
    conditionals: Sequence[HybridConditional],
    target: Target,
    max_nr_leaves: int,
) -> List[HybridConditional]:
    """
    Prune a sequence of conditionals against a discrete target.

    Args:
        conditionals: Conditionals of a Bayes net or Bayes tree
        target: Discrete key, DecisionTreeFactor or DiscreteConditional
        max_nr_leaves: Number of assignments to keep

    Returns:
        New conditionals, position by position
    """
    index, table = resolve_target(conditionals, target)
    keep = top_assignments(table, max_nr_leaves)
    _logger.debug(
        "Pruning to %d of %d leaves over [%s]",
        len(keep), table.nr_leaves(), " ".join(key_name(k) for k in keep.keys),
    )

    out: List[HybridConditional] = []
    for i, c in enumerate(conditionals):
        if i == index:
            out.append(HybridConditional(prune_discrete(c.as_discrete(), keep)))
        elif c.kind is ConditionalKind.HYBRID:
            out.append(HybridConditional(prune_mixture(c.as_mixture(), keep)))
        else:
            out.append(c)
    return out
