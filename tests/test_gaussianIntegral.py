"""Unit tests for the Gaussian-polytope probability computations."""

import numpy as np
import polytope as pc
import pytest
from numpy.testing import assert_allclose
from scipy.stats import multivariate_normal, norm

from sreach.exceptions import SrtInvalidArgsError
from sreach.gaussianIntegral import qscmvnv, iteratedQscmvnv, getProbPolytope, \
    computeReachProb, _primes
from sreach.masterClasses import settings, LtiSystem, Tube
from sreach.pointBased import reachProbability
from sreach.randomVectors import RandomVector


@pytest.fixture
def options():
    return settings(main={'verbose': False})


def box(lower, upper):
    """Half-space representation of an axis-aligned box."""
    n = len(lower)
    return np.vstack([np.eye(n), -np.eye(n)]), np.concatenate([upper, -np.array(lower)])


def test_primes():
    assert list(_primes(8)) == [2, 3, 5, 7, 11, 13, 17, 19]
    assert len(_primes(300)) == 300


class TestQscmvnv:

    def test_orthant_against_scipy(self, options):
        cov = np.array([[1.0, 0.5, 0.2],
                        [0.5, 2.0, -0.3],
                        [0.2, -0.3, 1.5]])
        b = np.array([0.5, 1.0, -0.2])

        prob, err = iteratedQscmvnv(cov, np.eye(3), b, 1e-4, options=options)
        expected = multivariate_normal(np.zeros(3), cov).cdf(b)

        assert abs(prob - expected) < 1e-3
        assert err >= 0

    def test_independent_box(self, options):
        sigma = np.array([0.5, 1.0, 2.0, 0.8])
        lower = np.array([-1.0, -0.5, -3.0, 0.0])
        upper = np.array([1.0, 2.0, 1.0, 2.0])
        A, b = box(lower, upper)

        prob, _ = iteratedQscmvnv(np.diag(sigma**2), A, b, 1e-4, options=options)
        expected = np.prod(norm.cdf(upper / sigma) - norm.cdf(lower / sigma))

        assert abs(prob - expected) < 1e-3

    def test_correlated_polytope_against_monte_carlo(self, options):
        rng = np.random.default_rng(0)
        cov = np.array([[1.0, 0.8], [0.8, 1.0]])
        A = np.array([[1, 1], [-1, 2], [0.5, -1], [-1, -1]])
        b = np.array([1.5, 2.0, 1.0, 1.0])

        prob, _ = iteratedQscmvnv(cov, A, b, 1e-4, options=options)

        samples = rng.multivariate_normal(np.zeros(2), cov, size=400000)
        expected = np.mean(np.all(samples @ A.T <= b, axis=1))

        assert abs(prob - expected) < 5e-3

    def test_more_constraints_than_variables(self, options):
        # Rows beyond the rank of the covariance are handled by the bounds
        A, b = box([-1, -1], [1, 1])
        cov = np.array([[1.0, 0.3], [0.3, 0.5]])

        prob, _ = iteratedQscmvnv(cov, A, b, 1e-4, options=options)

        rng = np.random.default_rng(1)
        samples = rng.multivariate_normal(np.zeros(2), cov, size=400000)
        expected = np.mean(np.all(samples @ A.T <= b, axis=1))

        assert abs(prob - expected) < 5e-3

    def test_single_variable_is_exact(self):
        rng = np.random.default_rng(0)
        prob, err = qscmvnv(np.array([[4.0]]), np.array([[1.0], [-1.0]]),
                            np.array([1.0, 2.0]), 100, 12, rng)

        assert_allclose(prob, norm.cdf(0.5) - norm.cdf(-1.0))
        assert err == 0

    def test_no_constraints(self, options):
        prob, err = iteratedQscmvnv(np.eye(2), np.zeros((0, 2)), np.zeros(0),
                                    1e-3, options=options)
        assert prob == 1
        assert err == 0

    def test_empty_polytope(self, options):
        A = np.array([[1.0, 0.0], [-1.0, 0.0]])
        b = np.array([-1.0, -1.0])

        prob, _ = iteratedQscmvnv(np.eye(2), A, b, 1e-3, options=options)
        assert prob <= 1e-3

    def test_deterministic_covariance(self, options):
        A, b = box([-1, -1], [1, 1])

        inside, _ = getProbPolytope([0.5, 0.5], np.zeros((2, 2)), A, b, 1e-3, options)
        outside, _ = getProbPolytope([1.5, 0.5], np.zeros((2, 2)), A, b, 1e-3, options)

        assert inside == 1
        assert outside == 0

    def test_degenerate_covariance(self, options):
        # x2 is deterministic (zero), only x1 is random
        A, b = box([-1, -1], [1, 1])
        prob, _ = getProbPolytope([0, 0], np.diag([1.0, 0.0]), A, b, 1e-3, options)

        assert_allclose(prob, norm.cdf(1) - norm.cdf(-1), atol=1e-8)

    def test_monotone_in_polytope(self, options):
        cov = np.array([[1.0, 0.4, 0.0], [0.4, 1.0, 0.2], [0.0, 0.2, 0.6]])
        probs = []
        for width in [0.5, 1.0, 2.0]:
            A, b = box(-width*np.ones(3), width*np.ones(3))
            probs.append(iteratedQscmvnv(cov, A, b, 1e-4, options=options)[0])

        assert probs[0] <= probs[1] + 1e-4
        assert probs[1] <= probs[2] + 1e-4

    def test_deterministic_for_fixed_seed(self, options):
        cov = np.array([[1.0, 0.5, 0.1], [0.5, 1.0, 0.3], [0.1, 0.3, 1.0]])
        A, b = box([-1, -1, -1], [1, 1, 1])

        first = iteratedQscmvnv(cov, A, b, 1e-3, options=options)
        second = iteratedQscmvnv(cov, A, b, 1e-3, options=options)

        assert first == second


class TestInvalidCovariance:

    def test_asymmetric(self, options):
        with pytest.raises(SrtInvalidArgsError, match=r'\(M \+ M\^T\)/2'):
            iteratedQscmvnv(np.array([[1, 0.5], [0, 1]]), np.eye(2), np.ones(2),
                            1e-3, options=options)

    def test_indefinite(self, options):
        with pytest.raises(SrtInvalidArgsError):
            iteratedQscmvnv(np.diag([1, -0.5]), np.eye(2), np.ones(2), 1e-3,
                            options=options)

    def test_dimension_mismatch(self, options):
        with pytest.raises(SrtInvalidArgsError):
            getProbPolytope([0, 0], np.eye(2), np.eye(3), np.ones(3), 1e-3, options)


class TestIterationCap:

    def test_cap_reached_warns(self, capsys):
        options = settings(integral={'lattice_points': 10, 'max_iterations': 1})
        cov = np.array([[1.0, 0.9, 0.5], [0.9, 1.0, 0.7], [0.5, 0.7, 1.0]])
        A, b = box([-0.3, -1, -0.5], [1, 0.2, 2])

        prob, err = iteratedQscmvnv(cov, A, b, 1e-12, max_iterations=1, options=options)

        assert 0 <= prob <= 1
        assert err > 0
        assert 'quadrature stopped' in capsys.readouterr().out


class TestComputeReachProb:

    def test_clamped_at_desired_accuracy(self, options):
        A, b = box([-1], [1])
        prob = computeReachProb([], np.array([10.0]), np.array([[0.01]]),
                                np.zeros((1, 0)), A, b, 1e-3, options)

        assert prob == 1e-3

    def test_input_shifts_mean(self, options):
        A, b = box([-1], [1])
        H = np.array([[1.0]])

        far = computeReachProb([0.0], np.array([3.0]), np.array([[0.25]]), H,
                               A, b, 1e-3, options)
        near = computeReachProb([-3.0], np.array([3.0]), np.array([[0.25]]), H,
                                A, b, 1e-3, options)

        assert far == 1e-3
        assert_allclose(near, norm.cdf(2) - norm.cdf(-2), atol=1e-8)


class TestUnitScaling:

    def test_small_covariance(self, options):
        A, b = box([-1e-5, -1e-5], [1e-5, 1e-5])
        prob, _ = getProbPolytope([0, 0], 1e-10*np.eye(2), A, b, 1e-4, options)

        expected = (norm.cdf(1) - norm.cdf(-1))**2
        assert abs(prob - expected) < 1e-3

    @pytest.mark.parametrize("scale", [1e-4, 1e-6, 1e3])
    def test_scaled_problem_has_same_probability(self, options, scale):
        cov = np.array([[1.0, 0.5, 0.1], [0.5, 1.0, 0.3], [0.1, 0.3, 0.8]])
        A, b = box([-1, -0.5, -2], [1, 1.5, 0.5])

        reference, _ = iteratedQscmvnv(cov, A, b, 1e-4, options=options)
        scaled, _ = iteratedQscmvnv(scale**2 * cov, A, scale * b, 1e-4,
                                    options=options)

        assert abs(scaled - reference) < 1e-4

    def test_scaled_reach_probability(self, options):
        scale = 1e-4
        probs = []
        for s in [1, scale]:
            sys = LtiSystem(state_matrix=np.array([[1, 0.25], [0, 1]]),
                            input_matrix=np.array([[0.25**2/2], [0.25]]),
                            input_space=pc.box2poly([[-0.1*s, 0.1*s]]),
                            disturbance=RandomVector('Gaussian', np.zeros(2),
                                                     0.005 * s**2 * np.eye(2)))
            tube = Tube.viability(pc.box2poly([[-0.2*s, 0.2*s]] * 2), 6)
            probs.append(reachProbability(sys, [0, 0], 6, tube,
                                          input_policy=np.zeros(6), options=options))

        assert 0 < probs[0] < 0.9
        assert abs(probs[1] - probs[0]) < 2e-3
