"""Unit tests for the reach probability and the open-loop controller synthesis."""

import pickle

import numpy as np
import polytope as pc
import pytest
from numpy.testing import assert_allclose
from scipy.stats import norm

from sreach.exceptions import SrtInvalidArgsError
from sreach.mainFunctions import getConcatInputSpace, getHmatMeanCovForXSansInput
from sreach.masterClasses import LtiSystem, Tube
from sreach.pointBased import negLogReachProb, projectOntoPolytope, \
    refineInputVector, reachProbability, synthesizeOpenLoopPolicy
from sreach.randomVectors import RandomVector


@pytest.fixture(scope="module")
def random_walk():
    """Scalar random walk x[k+1] = x[k] + w[k], w ~ N(0,1)."""
    return LtiSystem(state_matrix=np.eye(1),
                     disturbance=RandomVector('Gaussian', [0], [[1]]))


# Box [-0.1,0.1]^3 of stacked inputs
INPUT_BOX = pc.box2poly([[-0.1, 0.1]] * 3)


def quadratic(u):
    return float(np.sum((np.asarray(u) - 0.3)**2))


class TestReachProbability:

    def test_single_step(self, random_walk, quiet_options):
        tube = Tube.viability(pc.box2poly([[-1, 1]]), 1)
        prob = reachProbability(random_walk, [0], 1, tube, options=quiet_options)

        assert_allclose(prob, norm.cdf(1) - norm.cdf(-1), atol=1e-8)

    def test_decreasing_in_horizon(self, random_walk, quiet_options):
        tube = Tube.viability(pc.box2poly([[-2, 2]]), 4)

        probs = [reachProbability(random_walk, [0], N, tube, options=quiet_options)
                 for N in [1, 2, 4]]

        assert probs[0] >= probs[1] - 1e-3
        assert probs[1] >= probs[2] - 1e-3

    def test_controlled(self, double_integrator, viability_tube, quiet_options):
        prob = reachProbability(double_integrator, [0, 0], 6, viability_tube,
                                input_policy=np.zeros(6), options=quiet_options)

        assert 0.9 < prob <= 1

    def test_missing_policy(self, double_integrator, viability_tube, quiet_options):
        with pytest.raises(SrtInvalidArgsError):
            reachProbability(double_integrator, [0, 0], 6, viability_tube,
                             options=quiet_options)

    def test_policy_length(self, double_integrator, viability_tube, quiet_options):
        with pytest.raises(SrtInvalidArgsError):
            reachProbability(double_integrator, [0, 0], 6, viability_tube,
                             input_policy=np.zeros(5), options=quiet_options)

    def test_policy_for_uncontrolled_system(self, random_walk, quiet_options):
        tube = Tube.viability(pc.box2poly([[-1, 1]]), 2)
        with pytest.raises(SrtInvalidArgsError):
            reachProbability(random_walk, [0], 2, tube, input_policy=[0, 0],
                             options=quiet_options)

    def test_horizon_longer_than_tube(self, random_walk, quiet_options):
        tube = Tube.viability(pc.box2poly([[-1, 1]]), 2)
        with pytest.raises(SrtInvalidArgsError):
            reachProbability(random_walk, [0], 3, tube, options=quiet_options)

    def test_invalid_accuracy(self, random_walk, quiet_options):
        tube = Tube.viability(pc.box2poly([[-1, 1]]), 2)
        with pytest.raises(SrtInvalidArgsError):
            reachProbability(random_walk, [0], 2, tube, desired_accuracy=1.5,
                             options=quiet_options)

    def test_tube_dimension(self, random_walk, viability_tube, quiet_options):
        with pytest.raises(SrtInvalidArgsError):
            reachProbability(random_walk, [0], 2, viability_tube,
                             options=quiet_options)


class TestNegLogReachProb:

    def test_value_and_pickle(self, double_integrator, viability_tube, quiet_options):
        trajectory = getHmatMeanCovForXSansInput(double_integrator, [0, 0], 6)
        A, b = viability_tube.concat()

        objective = negLogReachProb(trajectory.mean_X_sans_input,
                                    trajectory.cov_X_sans_input, trajectory.H,
                                    A, b, 1e-3, quiet_options)
        copy = pickle.loads(pickle.dumps(objective))

        value = objective(np.zeros(6))
        assert value >= 0
        assert value == copy(np.zeros(6))

    def test_finite_far_outside(self, double_integrator, viability_tube,
                                quiet_options):
        trajectory = getHmatMeanCovForXSansInput(double_integrator, [5, 5], 6)
        A, b = viability_tube.concat()

        objective = negLogReachProb(trajectory.mean_X_sans_input,
                                    trajectory.cov_X_sans_input, trajectory.H,
                                    A, b, 1e-3, quiet_options)

        assert_allclose(objective(np.zeros(6)), -np.log(1e-3))


class TestRefineInputVector:

    A_u, b_u = INPUT_BOX.A, INPUT_BOX.b

    def test_cobyla_improves(self, quiet_options):
        seed = np.zeros(3)
        x, value = refineInputVector(quadratic, seed, self.A_u, self.b_u,
                                     quiet_options)

        assert value <= quadratic(seed)
        assert_allclose(x, [0.1, 0.1, 0.1], atol=1e-3)
        assert np.all(self.A_u @ x <= self.b_u + 1e-5)

    def test_never_worse_than_seed(self, quiet_options):
        seed = np.full(3, 0.1)
        options = quiet_options.setOptions(category='refine', max_iterations=5)
        x, value = refineInputVector(quadratic, seed, self.A_u, self.b_u, options)

        assert value <= quadratic(seed)

    def test_time_limit_returns_seed(self, quiet_options):
        seed = np.full(3, -0.05)
        options = quiet_options.setOptions(category='refine', time_limit=1e-9)
        x, value = refineInputVector(quadratic, seed, self.A_u, self.b_u, options)

        assert_allclose(x, seed)
        assert value == quadratic(seed)

    def test_differential_evolution(self, quiet_options):
        seed = np.zeros(3)
        options = quiet_options.setOptions(category='refine',
                                           method='differential_evolution',
                                           max_iterations=20, popsize=5)
        x, value = refineInputVector(quadratic, seed, self.A_u, self.b_u, options)

        assert value <= quadratic(seed)
        assert np.all(self.A_u @ x <= self.b_u + 1e-5)

    def test_projection(self, quiet_options):
        y = projectOntoPolytope(np.array([1.0, -0.05, -1.0]), self.A_u, self.b_u,
                                quiet_options)

        assert_allclose(y, [0.1, -0.05, -0.1], atol=1e-5)


class TestSynthesizeOpenLoopPolicy:

    @pytest.mark.slow
    def test_double_integrator(self, double_integrator, viability_tube,
                               quiet_options):
        prob, u = synthesizeOpenLoopPolicy(double_integrator, [0, 0],
                                           viability_tube, options=quiet_options)

        assert 0.9 < prob <= 1
        assert u.shape == (6,)
        assert np.all(np.abs(u) <= 0.1 + 1e-5)

        # Reported probability is achieved by the returned policy
        achieved = reachProbability(double_integrator, [0, 0], 6, viability_tube,
                                    input_policy=u, options=quiet_options)
        assert abs(achieved - prob) < 5e-3

    @pytest.mark.slow
    def test_reach_avoid(self, double_integrator, safe_box, quiet_options):
        target = pc.box2poly([[-0.5, 0.5], [-0.5, 0.5]])
        tube = Tube.reachAvoid(safe_box, target, 5)
        prob, u = synthesizeOpenLoopPolicy(double_integrator, [0.3, 0.2], tube,
                                           options=quiet_options)

        achieved = reachProbability(double_integrator, [0.3, 0.2], 5, tube,
                                    input_policy=u, options=quiet_options)
        A_u, b_u = getConcatInputSpace(double_integrator, 5)

        assert 0 < prob <= 1
        assert abs(achieved - prob) < 5e-3
        assert np.all(A_u @ u <= b_u + 1e-5)

    def test_unreachable_target(self, double_integrator, safe_box, quiet_options):
        target = pc.box2poly([[0.9, 1], [-1, 1]])
        tube = Tube.reachAvoid(safe_box, target, 6)
        prob, u = synthesizeOpenLoopPolicy(double_integrator, [0, 0], tube,
                                           options=quiet_options)

        assert prob == -1
        assert u.shape == (6,)
        assert np.all(np.isnan(u))

    def test_negligible_probability_is_clamped(self, quiet_options):
        # Best achievable probability is about 8e-4, below the accuracy
        sys = LtiSystem(state_matrix=np.eye(1), input_matrix=np.eye(1),
                        input_space=pc.box2poly([[-0.1, 0.1]]),
                        disturbance=RandomVector('Gaussian', [0], [[1]]))
        tube = Tube.viability(pc.box2poly([[-1e-3, 1e-3]]), 1)
        prob, u = synthesizeOpenLoopPolicy(sys, [0], tube, desired_accuracy=1e-3,
                                           options=quiet_options)

        assert_allclose(prob, 1e-3)
        assert np.all(np.abs(u) <= 0.1 + 1e-5)

    def test_uncontrolled(self, random_walk, quiet_options):
        tube = Tube.viability(pc.box2poly([[-1, 1]]), 1)
        prob, u = synthesizeOpenLoopPolicy(random_walk, [0], tube,
                                           options=quiet_options)

        assert_allclose(prob, norm.cdf(1) - norm.cdf(-1), atol=1e-8)
        assert u.size == 0

    def test_invalid_system(self, viability_tube):
        with pytest.raises(SrtInvalidArgsError):
            synthesizeOpenLoopPolicy(np.eye(2), [0, 0], viability_tube)
