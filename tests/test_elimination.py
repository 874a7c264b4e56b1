"""
Tests for hybrid elimination: mixture factors, sequential and multifrontal
elimination of the switching chain.
"""

import numpy as np
import pytest

from hybridsam.algebra.semiring import EliminationPolicy
from hybridsam.core.errors import (
    CardinalityMismatch,
    ErrorKind,
    OrderingViolation,
    SingularElimination,
)
from hybridsam.core.keys import DiscreteKey, assignments
from hybridsam.core.kinds import ConditionalKind, FactorKind
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.elimination import eliminate, eliminate_continuous
from hybridsam.hybrid.factor_graph import HybridGaussianFactorGraph
from hybridsam.hybrid.factors import MixtureFactor
from hybridsam.linear.gaussian import JacobianFactor
from hybridsam.switching import M, X, Switching


class TestMixtureFactor:
    @pytest.fixture
    def mode(self):
        return DiscreteKey(M(1), 2)

    def test_components_by_assignment(self, mode):
        still = JacobianFactor([(X(1), -1.0), (X(2), 1.0)], -1.0)
        moving = JacobianFactor([(X(1), -1.0), (X(2), 1.0)], 0.0)
        f = MixtureFactor([X(1), X(2)], [mode], [still, moving])
        assert f.kind is FactorKind.HYBRID
        assert f.keys == (X(1), X(2), M(1))
        assert f.factor_for({M(1): 0}) is still
        assert f.factor_for({M(1): 1}) is moving
        assert f.nr_components() == 2

    def test_wrong_component_count(self, mode):
        comp = JacobianFactor([(X(1), 1.0)], 0.0)
        with pytest.raises(CardinalityMismatch) as info:
            MixtureFactor([X(1)], [mode], [comp])
        assert info.value.kind is ErrorKind.CARDINALITY_MISMATCH

    def test_component_key_count_mismatch(self, mode):
        one = JacobianFactor([(X(1), 1.0)], 0.0)
        two = JacobianFactor([(X(1), 1.0), (X(2), 1.0)], 0.0)
        with pytest.raises(CardinalityMismatch):
            MixtureFactor([X(1)], [mode], [one, two])

    def test_cardinality_mismatch_is_value_error(self, mode):
        with pytest.raises(ValueError):
            MixtureFactor([X(1)], [mode], [])


class TestHybridStep:
    def test_no_discrete_keys_degrades_to_gaussian(self):
        factors = [
            JacobianFactor([(X(1), 10.0)], -10.0),
            JacobianFactor([(X(1), -1.0), (X(2), 1.0)], -1.0),
        ]
        result = eliminate_continuous(factors, [X(1)])
        assert result.conditional.kind is ConditionalKind.CONTINUOUS
        (remaining,) = result.factors
        assert remaining.kind is FactorKind.CONTINUOUS
        assert remaining.keys == (X(2),)

    def test_keyless_constant_is_dropped(self):
        factors = [JacobianFactor([(X(1), 1.0)], 0.0), JacobianFactor([(X(1), 1.0)], 2.0)]
        result = eliminate_continuous(factors, [X(1)])
        assert result.factors == ()

    def test_separator_gives_mixture_residual(self):
        s = Switching(2)
        result = eliminate(list(s.linearized_factor_graph)[:2], [X(1)])
        assert result.conditional.kind is ConditionalKind.HYBRID
        (residual,) = result.factors
        assert residual.kind is FactorKind.HYBRID
        assert residual.continuous_keys == (X(2),)
        assert residual.keys == (X(2), M(1))

    def test_no_separator_gives_discrete_scalars(self):
        mode = DiscreteKey(M(1), 2)
        comps = [JacobianFactor([(X(1), 1.0)], 0.0), JacobianFactor([(X(1), 1.0)], 2.0)]
        prior = JacobianFactor([(X(1), 1.0)], 0.0)
        weights = DecisionTreeFactor.from_table([mode], "0.25 0.75")
        result = eliminate([prior, MixtureFactor([X(1)], [mode], comps), weights], [X(1)])
        (residual,) = result.factors
        assert residual.kind is FactorKind.DISCRETE
        assert residual({M(1): 0}) == pytest.approx(0.25)
        assert residual({M(1): 1}) == pytest.approx(0.75 * np.exp(-1.0))

    def test_pruned_component_gives_null_branch(self):
        mode = DiscreteKey(M(1), 2)
        comps = [JacobianFactor([(X(1), 1.0)], 0.0), None]
        result = eliminate([MixtureFactor([X(1)], [mode], comps)], [X(1)])
        mixture = result.conditional.as_mixture()
        assert mixture({M(1): 1}) is None
        assert mixture.nr_components() == 1
        (residual,) = result.factors
        assert residual({M(1): 1}) == 0.0

    def test_singular_branch_carries_assignment(self):
        mode = DiscreteKey(M(1), 2)
        comps = [JacobianFactor([(X(1), 1.0)], 0.0), JacobianFactor([(X(1), 0.0)], 0.0)]
        with pytest.raises(SingularElimination) as info:
            eliminate([MixtureFactor([X(1)], [mode], comps)], [X(1)])
        assert info.value.assignment == {M(1): 1}
        assert info.value.detail == "rank deficient frontal block"
        assert "rank deficient frontal block" in str(info.value)

    def test_mixed_frontal_block(self):
        s = Switching(2)
        with pytest.raises(OrderingViolation):
            eliminate(list(s.linearized_factor_graph), [X(1), M(1)])


class TestSequentialElimination:
    @pytest.fixture
    def switching(self):
        return Switching(3)

    def test_partial_elimination(self, switching):
        graph = switching.linearized_factor_graph
        net, remaining = graph.eliminate_partial_sequential(switching.continuous_ordering())
        assert len(net) == 3
        assert net[0].frontals == (X(1),)
        assert net[0].parents == (X(2), M(1))
        assert net[1].frontals == (X(2),)
        assert net[1].parents == (X(3), M(1), M(2))
        assert net[2].frontals == (X(3),)
        assert net[2].parents == (M(1), M(2))
        assert len(remaining) == 3
        assert all(f.kind is FactorKind.DISCRETE for f in remaining)
        # Untouched originals first, then the residual
        assert remaining[0].keys == (M(1),)
        assert remaining[1].keys == (M(1), M(2))
        assert remaining[2].keys == (M(1), M(2))

    def test_first_conditional_values(self, switching):
        net = switching.linearized_factor_graph.eliminate_sequential(switching.ordering())
        mixture = net.at_mixture(0)
        c0 = mixture({M(1): 0})
        assert c0.R[0, 0] == pytest.approx(10.0499, abs=1e-4)
        assert c0.S_block(X(2))[0, 0] == pytest.approx(-0.0995037, abs=1e-6)
        assert c0.d[0] == pytest.approx(-9.85087, abs=1e-5)
        c1 = mixture({M(1): 1})
        assert c1.d[0] == pytest.approx(-9.95037, abs=1e-5)

    def test_mode_probabilities(self, switching):
        net = switching.linearized_factor_graph.eliminate_sequential(switching.ordering())
        # m1 is eliminated while every mode factor touches it, so its lookup
        # times P(m2) is the joint over (m1, m2)
        lookup, marginal = net.at_discrete(3), net.at_discrete(4)
        assert lookup.frontal_keys == (M(1),)
        assert lookup({M(1): 1, M(2): 0}) == pytest.approx(1.0)
        assert lookup({M(1): 0, M(2): 1}) == pytest.approx(1.0)
        expected = {(0, 0): 0.0619233, (1, 0): 0.183743, (0, 1): 0.204159, (1, 1): 0.2}
        for (m1, m2), value in expected.items():
            a = {M(1): m1, M(2): m2}
            assert lookup(a) * marginal(a) == pytest.approx(value, abs=1e-5)

    def test_default_ordering(self, switching):
        graph = switching.linearized_factor_graph
        a = graph.eliminate_sequential()
        b = graph.eliminate_sequential(switching.ordering())
        assert a.equals(b)

    def test_sum_product_normalizes(self, switching):
        graph = switching.linearized_factor_graph
        net = graph.eliminate_sequential(
            switching.continuous_ordering() + [(M(1), M(2))], policy=EliminationPolicy.SUM_PRODUCT
        )
        joint = net.at_discrete(3)
        values = [v for _, v in joint.enumerate()]
        assert sum(values) == pytest.approx(1.0)
        # Same ratios as the Max-Product lookup
        assert joint({M(1): 1, M(2): 1}) / joint({M(1): 0, M(2): 0}) == pytest.approx(
            0.2 / 0.0619233, rel=1e-4
        )

    def test_choose_matches_fixed_mode_elimination(self, switching):
        graph = switching.linearized_factor_graph
        net = graph.eliminate_sequential(switching.ordering())
        for assignment in assignments(switching.modes):
            chosen = net.choose(assignment)
            fixed = graph.fix_discrete(assignment).eliminate_sequential(switching.continuous_ordering())
            assert len(chosen) == len(fixed)
            for c, f in zip(chosen, fixed):
                assert c.equals(f.as_gaussian(), tol=1e-9)

    def test_choose_missing_key(self, switching):
        net = switching.linearized_factor_graph.eliminate_sequential()
        with pytest.raises(KeyError):
            net.choose({M(1): 0})

    def test_optimize_all_moving(self, switching):
        net = switching.linearized_factor_graph.eliminate_sequential()
        delta = net.optimize({M(1): 1, M(2): 1})
        # Moving explains the measurements exactly: x_k = k - 1
        for k in range(1, 4):
            assert delta[X(k)][0] == pytest.approx(-1.0)

    def test_discrete_before_continuous(self, switching):
        with pytest.raises(OrderingViolation):
            switching.linearized_factor_graph.eliminate_sequential([M(1), X(1), X(2), X(3), M(2)])

    def test_unknown_key(self, switching):
        with pytest.raises(KeyError):
            switching.linearized_factor_graph.eliminate_sequential([X(7)])

    def test_incomplete_ordering(self, switching):
        with pytest.raises(ValueError):
            switching.linearized_factor_graph.eliminate_sequential(switching.continuous_ordering())

    def test_plain_and_hybrid_parts(self):
        mode = DiscreteKey(M(1), 2)
        X10, X11 = X(10), X(11)
        graph = HybridGaussianFactorGraph([
            JacobianFactor([(X10, 1.0)], 0.0),
            JacobianFactor([(X10, -1.0), (X11, 1.0)], 1.0),
            MixtureFactor(
                [X(1)], [mode],
                [JacobianFactor([(X(1), 1.0)], 0.0), JacobianFactor([(X(1), 2.0)], 1.0)],
            ),
            DecisionTreeFactor.from_table([mode], "0.5 0.5"),
        ])
        net = graph.eliminate_sequential()
        kinds = [c.kind for c in net]
        assert kinds == [
            ConditionalKind.HYBRID,
            ConditionalKind.CONTINUOUS,
            ConditionalKind.CONTINUOUS,
            ConditionalKind.DISCRETE,
        ]
        assert net.at_gaussian(1).frontals == (X10,)
        assert net.at_gaussian(1).parents == (X11,)
        with pytest.raises(TypeError):
            net.at_gaussian(0)


class TestMultifrontalElimination:
    @pytest.fixture
    def switching(self):
        return Switching(3)

    def test_clique_structure(self, switching):
        tree = switching.linearized_factor_graph.eliminate_multifrontal(switching.ordering())
        assert tree.size() == 3
        assert tree[X(1)].frontals == (X(1),)
        assert tree[X(1)].separator == (X(2), M(1))
        assert tree[X(2)] is tree[X(3)]
        assert tree[X(2)].frontals == (X(2), X(3))
        assert tree[X(2)].separator == (M(1), M(2))
        assert tree[M(1)] is tree[M(2)]
        assert tree[M(1)].frontals == (M(1), M(2))
        assert tree[X(1)].parent is tree[X(2)]
        assert tree[X(2)].parent is tree[M(1)]
        assert tree[M(1)].parent is None

    def test_mode_probabilities(self, switching):
        tree = switching.linearized_factor_graph.eliminate_multifrontal()
        joint = tree[M(1)].conditional.as_discrete()
        assert joint({M(1): 0, M(2): 0}) == pytest.approx(0.0619233, abs=1e-5)
        assert joint({M(1): 1, M(2): 0}) == pytest.approx(0.183743, abs=1e-5)
        assert joint({M(1): 0, M(2): 1}) == pytest.approx(0.204159, abs=1e-5)
        assert joint({M(1): 1, M(2): 1}) == pytest.approx(0.2, abs=1e-5)

    def test_same_conditionals_as_grouped_sequential(self, switching):
        graph = switching.linearized_factor_graph
        tree = graph.eliminate_multifrontal(switching.ordering())
        groups = [c.frontals for c in tree.conditionals()]
        net = graph.eliminate_sequential(groups)
        assert len(net) == tree.size()
        by_frontals = {c.frontals: c for c in net}
        for clique in tree.cliques():
            assert clique.conditional.equals(by_frontals[clique.frontals], tol=1e-9)

    def test_partial_multifrontal(self, switching):
        graph = switching.linearized_factor_graph
        tree, remaining = graph.eliminate_partial_multifrontal(switching.continuous_ordering())
        assert tree.size() == 2
        assert len(tree.roots) == 1
        assert tree.roots[0].frontals == (X(2), X(3))
        assert len(remaining) == 3
        assert remaining[-1].keys == (M(1), M(2))

    def test_choose(self, switching):
        graph = switching.linearized_factor_graph
        tree = graph.eliminate_multifrontal()
        net = graph.eliminate_sequential()
        for assignment in assignments(switching.modes):
            a = tree.optimize(assignment)
            b = net.optimize(assignment)
            for k in switching.continuous_ordering():
                assert np.allclose(a[k], b[k])
