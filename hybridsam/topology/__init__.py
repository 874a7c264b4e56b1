"""
Topology module: variable index, orderings, elimination and junction trees.
"""

from hybridsam.topology.structure import FactorScope, VariableIndex
from hybridsam.topology.ordering import default_ordering, check_ordering, frontal_groups, flatten
from hybridsam.topology.elimination_tree import (
    build_elimination_tree,
    build_junction_tree,
    cluster_postorder,
    describe,
)

__all__ = [
    "FactorScope",
    "VariableIndex",
    "default_ordering",
    "check_ordering",
    "frontal_groups",
    "flatten",
    "build_elimination_tree",
    "build_junction_tree",
    "cluster_postorder",
    "describe",
]
