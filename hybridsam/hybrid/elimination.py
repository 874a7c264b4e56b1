"""
hybridsam/hybrid/elimination.py

One hybrid elimination step: remove a frontal block from the factors that
touch it.

Continuous frontals:
1. Partition the factors into continuous, discrete and mixture factors.
2. Enumerate the assignments of the DiscreteKeys of the mixtures.
3. Per assignment, resolve every mixture to its component and run QR
   elimination together with the continuous factors.
4. Assemble the per-assignment conditionals into a GaussianMixture.
5. If a continuous separator remains, the per-assignment remaining factors
   form a MixtureFactor; otherwise the per-assignment scalars form a discrete
   factor, multiplied with the discrete factors of the step.
6. Without mixtures this is plain Gaussian elimination.

Discrete frontals: multiply the discrete factors and eliminate with the
policy's semiring (sum or max).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from hybridsam.algebra.decision_tree import DecisionTree
from hybridsam.algebra.semiring import EliminationPolicy, get_policy
from hybridsam.core.errors import OrderingViolation, SingularElimination
from hybridsam.core.keys import Assignment, Key, key_name, sorted_discrete_keys
from hybridsam.core.kinds import FactorKind
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.conditional import GaussianMixture, HybridConditional
from hybridsam.hybrid.factors import MixtureFactor
from hybridsam.linear.gaussian import JacobianFactor, collect_dims, eliminate_gaussian

_logger = logging.getLogger(__name__)

Factor = Union[JacobianFactor, DecisionTreeFactor, MixtureFactor]


@dataclass(frozen=True)
class EliminationResult:
    """
    Output of one elimination step.

    Attributes:
        conditional: Conditional on the frontal block
        factors: Residual factors handed back to the working set
    """
    conditional: HybridConditional
    factors: Tuple[Factor, ...]


def _names(keys: Sequence[Key]) -> str:
    return " ".join(key_name(k) for k in keys)


def partition(factors: Sequence[Factor]):
    """Split factors into (continuous, discrete, mixture) lists."""
    continuous: List[JacobianFactor] = []
    discrete: List[DecisionTreeFactor] = []
    mixtures: List[MixtureFactor] = []
    for f in factors:
        if f.kind is FactorKind.CONTINUOUS:
            continuous.append(f)
        elif f.kind is FactorKind.DISCRETE:
            discrete.append(f)
        elif f.kind is FactorKind.HYBRID:
            mixtures.append(f)
        else:
            raise TypeError(f"Unknown factor kind {f.kind!r}")
    return continuous, discrete, mixtures


def eliminate(
    factors: Sequence[Factor],
    frontal_keys: Sequence[Key],
    policy: Union[EliminationPolicy, str, None] = None,
    rank_tol: float = 1e-9,
) -> EliminationResult:
    """
    Eliminate a frontal block, dispatching on whether it is discrete.

    Raises:
        OrderingViolation: the block mixes discrete and continuous keys, or a
            discrete frontal is still selected by a mixture
    """
    discrete_ids = {dk.key for f in factors for dk in f.discrete_keys}
    is_discrete = [k in discrete_ids for k in frontal_keys]
    if all(is_discrete):
        return eliminate_discrete(factors, frontal_keys, policy)
    if any(is_discrete):
        raise OrderingViolation(f"Frontal block [{_names(frontal_keys)}] mixes discrete and continuous keys")
    return eliminate_continuous(factors, frontal_keys, rank_tol=rank_tol)


def eliminate_discrete(
    factors: Sequence[Factor],
    frontal_keys: Sequence[Key],
    policy: Union[EliminationPolicy, str, None] = None,
) -> EliminationResult:
    """
    Eliminate discrete frontals from discrete factors.

    Sum-Product: conditional = product / sum_frontals(product),
    residual = sum_frontals(product).
    Max-Product: conditional = product / max_frontals(product) (the plain
    product when no parents remain),
    residual = max_frontals(product).
    """
    policy = get_policy(policy)
    frontal = set(frontal_keys)
    product: Optional[DecisionTreeFactor] = None
    for f in factors:
        if f.kind is FactorKind.HYBRID:
            raise OrderingViolation(
                f"Discrete keys [{_names(frontal_keys)}] eliminated while {f!r} still depends on them"
            )
        if f.kind is FactorKind.CONTINUOUS:
            raise OrderingViolation(
                f"Discrete keys [{_names(frontal_keys)}] eliminated together with continuous {f!r}"
            )
        product = f if product is None else product * f
    if product is None:
        raise ValueError(f"No factors to eliminate [{_names(frontal_keys)}]")

    residual = product.reduce(frontal, policy.semiring)
    if policy is EliminationPolicy.SUM_PRODUCT:
        conditional = DiscreteConditional.from_joint(product, frontal_keys)
    else:
        conditional = DiscreteConditional.lookup(product, frontal_keys)

    _logger.debug(
        "Eliminated discrete [%s] (%s) from %d factors", _names(frontal_keys), policy.value, len(factors)
    )
    remaining: Tuple[Factor, ...] = (residual,) if residual.keys else ()
    return EliminationResult(HybridConditional(conditional), remaining)


def eliminate_continuous(
    factors: Sequence[Factor],
    frontal_keys: Sequence[Key],
    rank_tol: float = 1e-9,
) -> EliminationResult:
    """
    Eliminate continuous frontals from continuous, discrete and mixture factors.

    Raises:
        SingularElimination: a branch is rank deficient; carries the
            assignment of that branch
    """
    frontal_keys = tuple(frontal_keys)
    continuous, discrete, mixtures = partition(factors)
    frontal = set(frontal_keys)

    touched = set()
    for f in continuous:
        touched.update(f.keys)
    for m in mixtures:
        touched.update(m.continuous_keys)
    missing = frontal - touched
    if missing:
        raise ValueError(f"No continuous factor involves [{_names(sorted(missing))}]")
    separator = tuple(sorted(touched - frontal))
    dims = collect_dims(continuous + [c for m in mixtures for c in m.factors.leaves() if c is not None])

    if not mixtures:
        conditional, remaining, _ = eliminate_gaussian(continuous, frontal_keys, separator, dims, rank_tol)
        residuals: Tuple[Factor, ...] = tuple(discrete)
        if remaining is not None:
            residuals = (remaining,) + residuals
        return EliminationResult(HybridConditional(conditional), residuals)

    discrete_keys = sorted_discrete_keys(dk for m in mixtures for dk in m.discrete_keys)

    def eliminate_branch(assignment: Assignment):
        components = [m.factor_for(assignment) for m in mixtures]
        if any(c is None for c in components):
            return None, None, 0.0
        try:
            return eliminate_gaussian(continuous + components, frontal_keys, separator, dims, rank_tol)
        except SingularElimination as e:
            raise e.with_assignment(assignment) from e

    results = DecisionTree.from_function(discrete_keys, eliminate_branch)
    mixture = GaussianMixture(frontal_keys, separator, results.map(lambda r: r[0]))

    if separator:
        residual: Factor = MixtureFactor(separator, discrete_keys, results.map(lambda r: r[1]))
        residuals = (residual,) + tuple(discrete)
    else:
        scalars = DecisionTreeFactor(results.map(lambda r: r[2]))
        for f in discrete:
            scalars = scalars * f
        residuals = (scalars,)

    _logger.debug(
        "Eliminated [%s] over %d discrete keys: %d of %d branches feasible",
        _names(frontal_keys), len(discrete_keys), mixture.nr_components(), results.nr_leaves(),
    )
    return EliminationResult(HybridConditional(mixture), residuals)
