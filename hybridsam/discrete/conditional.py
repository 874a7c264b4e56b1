"""
hybridsam/discrete/conditional.py

Discrete conditionals P(frontals | parents).

Produced by discrete elimination. Under Sum-Product the table is normalized
over the frontals for every parent assignment. Under Max-Product the table is
a lookup used to pick the best frontal values given the parents: the product
of the eliminated factors divided by its max over the frontals, or the plain
product when there are no parents.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Sequence, Tuple

from hybridsam.algebra.decision_tree import DecisionTree
from hybridsam.core.keys import Assignment, DiscreteKey, Key, assignments, key_name
from hybridsam.core.kinds import ConditionalKind
from hybridsam.discrete.factor import DecisionTreeFactor


class DiscreteConditional:
    """
    Conditional table over discrete frontals given discrete parents.

    Attributes:
        frontals: DiscreteKeys eliminated, in elimination order
        parents: Remaining DiscreteKeys, sorted
        tree: DecisionTree[float] over frontals and parents
        is_lookup: True when the table is a Max-Product lookup
    """
    kind = ConditionalKind.DISCRETE

    def __init__(
        self,
        frontals: Sequence[DiscreteKey],
        parents: Sequence[DiscreteKey],
        tree: DecisionTree[float],
        is_lookup: bool = False,
    ):
        self.frontals: Tuple[DiscreteKey, ...] = tuple(frontals)
        self.parents: Tuple[DiscreteKey, ...] = tuple(parents)
        expected = sorted(dk.key for dk in self.frontals + self.parents)
        if list(tree.key_ids) != expected:
            raise ValueError("Conditional table keys must be exactly its frontals and parents")
        self.tree = tree
        self.is_lookup = is_lookup

    @classmethod
    def from_signature(
        cls,
        key: DiscreteKey,
        parents: Sequence[DiscreteKey] = (),
        spec: str = "",
    ) -> "DiscreteConditional":
        """
        Build P(key | parents) from a signature string.

        Rows are separated by whitespace, one per parent assignment (first
        parent slowest); values within a row are separated by '/' and are
        normalized, e.g. P(m2 | m1) with spec "1/2 3/2".
        """
        rows = [row for row in re.split(r"\s+", spec.strip()) if row]
        nr_rows = 1
        for dk in parents:
            nr_rows *= dk.cardinality
        if len(rows) != nr_rows:
            raise ValueError(f"Signature for {key!r} needs {nr_rows} rows, got {len(rows)}")
        table = {}
        for pa, row in zip(assignments(parents), rows):
            values = [float(v) for v in row.split("/")]
            if len(values) != key.cardinality:
                raise ValueError(f"Row {row!r} needs {key.cardinality} values for {key!r}")
            total = sum(values)
            if total <= 0.0 or any(v < 0.0 for v in values):
                raise ValueError(f"Row {row!r} must be nonnegative with positive sum")
            for v, p in enumerate(values):
                table[(v,) + tuple(pa[dk.key] for dk in parents)] = p / total

        ids = [key.key] + [dk.key for dk in parents]
        tree = DecisionTree.from_function(
            (key,) + tuple(parents), lambda a: table[tuple(a[k] for k in ids)]
        )
        return cls((key,), sorted(parents), tree)

    @classmethod
    def from_joint(cls, joint: DecisionTreeFactor, frontal_keys: Iterable[Key]) -> "DiscreteConditional":
        """Normalize `joint` over `frontal_keys`: joint / sum_frontals(joint)."""
        frontal_keys = list(frontal_keys)
        marginal = joint.sum(frontal_keys)
        frontals, parents = _split(joint.discrete_keys, frontal_keys)
        return cls(frontals, parents, joint.divide(marginal).tree)

    @classmethod
    def lookup(cls, product: DecisionTreeFactor, frontal_keys: Iterable[Key]) -> "DiscreteConditional":
        """
        Max-Product lookup table.

        With parents the table is product / max_frontals(product), so the best
        frontal values read 1.0 for every parent assignment and the tables of a
        chain of cliques multiply back to the product they came from. Without
        parents the unnormalized product is kept.
        """
        frontal_keys = list(frontal_keys)
        frontals, parents = _split(product.discrete_keys, frontal_keys)
        if parents:
            product = product.divide(product.max(frontal_keys))
        return cls(frontals, parents, product.tree, is_lookup=True)

    @property
    def frontal_keys(self) -> Tuple[Key, ...]:
        return tuple(dk.key for dk in self.frontals)

    @property
    def parent_keys(self) -> Tuple[Key, ...]:
        return tuple(dk.key for dk in self.parents)

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.frontal_keys + self.parent_keys

    @property
    def discrete_keys(self) -> Tuple[DiscreteKey, ...]:
        return self.tree.keys

    def __call__(self, assignment: Mapping[Key, int]) -> float:
        return self.tree(assignment)

    def evaluate(self, assignment: Mapping[Key, int]) -> float:
        return self.tree(assignment)

    def enumerate(self) -> List[Tuple[Assignment, float]]:
        return self.tree.enumerate()

    def argmax(self, parent_values: Mapping[Key, int]) -> Assignment:
        """Best frontal values given the parents; first in canonical order on ties."""
        restricted = self.tree.restrict(parent_values)
        return DecisionTreeFactor(restricted).argmax()[0]

    def to_factor(self) -> DecisionTreeFactor:
        return DecisionTreeFactor(self.tree)

    def with_tree(self, tree: DecisionTree[float]) -> "DiscreteConditional":
        return DiscreteConditional(self.frontals, self.parents, tree, self.is_lookup)

    def equals(self, other: "DiscreteConditional", tol: float = 1e-9) -> bool:
        return (
            isinstance(other, DiscreteConditional)
            and self.frontal_keys == other.frontal_keys
            and self.parent_keys == other.parent_keys
            and self.tree.equals(other.tree, lambda a, b: abs(a - b) <= tol)
        )

    def __repr__(self) -> str:
        f = " ".join(key_name(k) for k in self.frontal_keys)
        p = " ".join(key_name(k) for k in self.parent_keys)
        return f"DiscreteConditional(P({f} | {p}))" if p else f"DiscreteConditional(P({f}))"


def _split(keys: Sequence[DiscreteKey], frontal_keys: List[Key]):
    by_key = {dk.key: dk for dk in keys}
    missing = [k for k in frontal_keys if k not in by_key]
    if missing:
        raise KeyError(f"Frontal keys [{' '.join(key_name(k) for k in missing)}] not in table")
    frontals = tuple(by_key[k] for k in frontal_keys)
    parents = tuple(dk for dk in keys if dk.key not in frontal_keys)
    return frontals, parents
