"""
hybridsam/switching.py

Linearized switching-chain model.

Continuous states x1..xK on a line, binary modes m1..m(K-1). Between x_k and
x_(k+1) the motion is either "still" (mean 0) or "moving" (mean 1),
selected by m_k. x1 has a prior and x2..xK are measured. The graph is
linearized at x_k = k against measurements z_k = k - 1, so that the
all-moving explanation has zero error.

Factor layout of the linearized graph:
    0            prior on x1
    1 .. K-1     mixtures on (x_k, x_(k+1); m_k)
    K .. 2K-2    measurements on x2 .. xK
    2K-1 ..      P(m1) = "1/1", then P(m_(k+1) | m_k) = "1/2 3/2"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from hybridsam.core.keys import DiscreteKey, Key, shorthand
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.hybrid.factor_graph import HybridGaussianFactorGraph
from hybridsam.hybrid.factors import MixtureFactor
from hybridsam.linear.gaussian import JacobianFactor

X = shorthand("x")
M = shorthand("m")


@dataclass
class Switching:
    """
    Switching chain of K states.

    Attributes:
        K: Number of continuous states
        between_sigma: Standard deviation of the motion model
        prior_sigma: Standard deviation of the prior and the measurements
        modes: DiscreteKeys m1..m(K-1)
        linearized_factor_graph: The linearized hybrid factor graph
    """
    K: int
    between_sigma: float = 1.0
    prior_sigma: float = 0.1
    modes: List[DiscreteKey] = field(init=False)
    linearized_factor_graph: HybridGaussianFactorGraph = field(init=False)

    def __post_init__(self):
        if self.K < 2:
            raise ValueError(f"A switching chain needs at least 2 states, got {self.K}")
        self.modes = [DiscreteKey(M(k), 2) for k in range(1, self.K)]
        self.linearized_factor_graph = self._linearize()

    def linearization_point(self, k: int) -> float:
        return float(k)

    def measurement(self, k: int) -> float:
        return float(k - 1)

    def _unary(self, k: int) -> JacobianFactor:
        error = self.linearization_point(k) - self.measurement(k)
        return JacobianFactor([(X(k), 1.0)], -error, sigmas=self.prior_sigma)

    def _between(self, k: int, mean: float) -> JacobianFactor:
        error = self.linearization_point(k + 1) - self.linearization_point(k) - mean
        return JacobianFactor([(X(k), -1.0), (X(k + 1), 1.0)], -error, sigmas=self.between_sigma)

    def _linearize(self) -> HybridGaussianFactorGraph:
        graph = HybridGaussianFactorGraph()
        graph.add(self._unary(1))
        for k in range(1, self.K):
            still, moving = self._between(k, 0.0), self._between(k, 1.0)
            graph.add(MixtureFactor([X(k), X(k + 1)], [self.modes[k - 1]], [still, moving]))
        for k in range(2, self.K + 1):
            graph.add(self._unary(k))
        if self.modes:
            graph.add(DiscreteConditional.from_signature(self.modes[0], (), "1/1"))
        for k in range(1, self.K - 1):
            graph.add(DiscreteConditional.from_signature(self.modes[k], [self.modes[k - 1]], "1/2 3/2"))
        return graph

    def continuous_ordering(self) -> List[Key]:
        return [X(k) for k in range(1, self.K + 1)]

    def ordering(self) -> List[Key]:
        """Continuous states, then modes."""
        return self.continuous_ordering() + [dk.key for dk in self.modes]
