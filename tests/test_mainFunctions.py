"""Unit tests for the concatenation of the dynamics over the time horizon."""

import numpy as np
import polytope as pc
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from sreach.exceptions import SrtInvalidArgsError
from sreach.mainFunctions import getConcatMats, getConcatInputSpace, \
    getConcatTargetTube, getHmatMeanCovForXSansInput
from sreach.masterClasses import LtiSystem, LtvSystem
from sreach.randomVectors import RandomVector


def simulate(sys, x0, inputs, disturbances):
    """Simulate the system step by step and stack the states x[1..N]."""
    x = np.array(x0, dtype=float)
    states = []
    for k, (u, w) in enumerate(zip(inputs, disturbances)):
        x = sys.getStateMatrix(k) @ x + sys.getInputMatrix(k) @ u + \
            sys.getDisturbanceMatrix(k) @ w
        states.append(x)
    return np.concatenate(states)


class TestConcatMats:

    def test_shapes(self, double_integrator):
        Abar, H, G = getConcatMats(double_integrator, 6)

        assert Abar.shape == (12, 2)
        assert H.shape == (12, 6)
        assert G.shape == (12, 12)

    def test_zero_input_zero_disturbance(self, double_integrator):
        Abar, H, G = getConcatMats(double_integrator, 5)
        x0 = np.array([0.3, -0.7])

        expected = simulate(double_integrator, x0, np.zeros((5, 1)), np.zeros((5, 2)))
        assert_allclose(Abar @ x0, expected, atol=1e-8)

    def test_matches_simulation(self, double_integrator):
        rng = np.random.default_rng(3)
        N = 4
        x0 = rng.standard_normal(2)
        U = rng.standard_normal((N, 1))
        W = rng.standard_normal((N, 2))

        Abar, H, G = getConcatMats(double_integrator, N)
        expected = simulate(double_integrator, x0, U, W)

        assert_allclose(Abar @ x0 + H @ U.flatten() + G @ W.flatten(), expected,
                        atol=1e-10)

    def test_block_lower_triangular(self, double_integrator):
        N = 6
        n = double_integrator.state_dim
        m = double_integrator.input_dim
        _, H, _ = getConcatMats(double_integrator, N)

        for k in range(N):
            # Input at step k has no influence on the states up to step k
            assert np.all(H[:k*n, k*m:(k+1)*m] == 0)

    def test_time_varying(self):
        sys = LtvSystem(state_matrix=lambda t: np.array([[1, 0.1*(t+1)], [0, 1]]),
                        input_matrix=lambda t: np.array([[0], [1 + t]]),
                        input_space=pc.box2poly([[-1, 1]]))
        N = 3
        x0 = np.array([1.0, 2.0])
        U = np.array([[0.5], [-0.2], [0.1]])

        Abar, H, G = getConcatMats(sys, N)
        expected = simulate(sys, x0, U, np.zeros((N, 0)))

        assert G.shape == (6, 0)
        assert_allclose(Abar @ x0 + H @ U.flatten(), expected, atol=1e-12)

    def test_cache(self, double_integrator):
        cache = {}
        first = getConcatMats(double_integrator, 3, cache)
        second = getConcatMats(double_integrator, 3, cache)

        assert (double_integrator, 3) in cache
        assert first is second

    def test_cache_with_rebuilt_systems(self):
        # Systems are created and dropped in turn; every call must see its own system
        cache = {}
        for i in range(1, 50):
            sys = LtiSystem(state_matrix=[[i]])
            Abar, _, _ = getConcatMats(sys, 1, cache)
            assert_array_equal(Abar, [[i]])
            del sys

        assert len(cache) == 49

    @pytest.mark.parametrize("horizon", [0, -2, 2.5, True, '3', [3]])
    def test_invalid_horizon(self, double_integrator, horizon):
        with pytest.raises(SrtInvalidArgsError):
            getConcatMats(double_integrator, horizon)


class TestConcatSets:

    def test_input_space(self, double_integrator):
        A_u, b_u = getConcatInputSpace(double_integrator, 3)

        assert A_u.shape == (6, 3)
        assert np.all(A_u @ np.full(3, 0.1) <= b_u + 1e-12)
        assert not np.all(A_u @ np.array([0, 0.2, 0]) <= b_u)

    def test_input_space_uncontrolled(self):
        sys = LtiSystem(state_matrix=np.eye(2))
        with pytest.raises(SrtInvalidArgsError):
            getConcatInputSpace(sys, 3)

    def test_target_tube(self, safe_box):
        target = pc.box2poly([[-0.5, 0.5], [-0.5, 0.5]])
        A, b = getConcatTargetTube(safe_box, target, 3)

        assert A.shape == (12, 6)
        X_ok = np.array([0.9, 0.9, -0.9, 0.9, 0.4, -0.4])
        X_miss = np.array([0.9, 0.9, -0.9, 0.9, 0.6, 0.0])

        assert np.all(A @ X_ok <= b)
        assert not np.all(A @ X_miss <= b)

    def test_target_tube_horizon_one(self, safe_box):
        target = pc.box2poly([[-0.5, 0.5], [-0.5, 0.5]])
        A, b = getConcatTargetTube(safe_box, target, 1)

        assert_array_equal(A, target.A)


class TestMeanCov:

    def test_deterministic_initial_state(self, double_integrator):
        x0 = np.array([0.1, 0.2])
        trajectory = getHmatMeanCovForXSansInput(double_integrator, x0, 4)

        G = trajectory.G
        assert_allclose(trajectory.mean_X_sans_input, trajectory.Abar @ x0)
        assert_allclose(trajectory.cov_X_sans_input,
                        G @ np.kron(np.eye(4), 0.005*np.eye(2)) @ G.T)

    def test_random_initial_state(self, double_integrator):
        x0 = RandomVector('Gaussian', [0.1, 0.2], 0.01*np.eye(2))
        trajectory = getHmatMeanCovForXSansInput(double_integrator, x0, 4)

        Abar, G = trajectory.Abar, trajectory.G
        expected = Abar @ (0.01*np.eye(2)) @ Abar.T + \
            G @ np.kron(np.eye(4), 0.005*np.eye(2)) @ G.T
        assert_allclose(trajectory.cov_X_sans_input, expected)

    def test_disturbance_mean(self):
        sys = LtiSystem(state_matrix=np.eye(1),
                        disturbance=RandomVector('Gaussian', [0.5], [[1]]))
        trajectory = getHmatMeanCovForXSansInput(sys, [0], 3)

        assert_allclose(trajectory.mean_X_sans_input, [0.5, 1.0, 1.5])
        assert_allclose(np.diag(trajectory.cov_X_sans_input), [1, 2, 3])

    def test_bounded_disturbance(self):
        sys = LtiSystem(state_matrix=np.eye(2),
                        disturbance=pc.box2poly([[-1, 1], [-1, 1]]))
        with pytest.raises(SrtInvalidArgsError):
            getHmatMeanCovForXSansInput(sys, [0, 0], 3)

    def test_initial_state_dimension(self, double_integrator):
        with pytest.raises(SrtInvalidArgsError):
            getHmatMeanCovForXSansInput(double_integrator, [0, 0, 0], 3)
