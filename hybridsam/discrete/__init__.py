"""
Discrete module: decision-tree factors and conditionals.
"""

from hybridsam.discrete.factor import DecisionTreeFactor, parse_table
from hybridsam.discrete.conditional import DiscreteConditional

__all__ = [
    "DecisionTreeFactor",
    "DiscreteConditional",
    "parse_table",
]
