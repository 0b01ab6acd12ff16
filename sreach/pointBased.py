#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Reach probability of a target tube for a given initial state, and synthesis
of an open-loop controller that maximizes it. The controller is seeded by a
convex relaxation and refined with a derivative-free optimizer on the
negative log of the (quadrature-based) reach probability.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
import cvxpy as cp              # Import CVXPY for the projection problem
import polytope as pc           # Import polytope package
from scipy.optimize import minimize, differential_evolution, LinearConstraint

from .chanceOpen import getOpenLoopSeed
from .commons import asVector, checkDesiredAccuracy, checkTimeHorizon, \
    printWarning, tic, tocDiff
from .exceptions import SrtInvalidArgsError
from .gaussianIntegral import computeReachProb, getProbPolytope
from .mainFunctions import getConcatInputSpace, getHmatMeanCovForXSansInput
from .masterClasses import LinearSystem, Tube, settings

# Tolerance on the input constraints of a refined input vector
CONSTRAINT_TOL = 1e-8

class negLogReachProb(object):
    '''
    Objective J(U) = -log(reach probability under input U). Instances only
    hold arrays and settings, and can therefore be sent to worker processes.
    '''

    def __init__(self, mean_X_sans_input, cov_X_sans_input, H, A, b,
                 desired_accuracy, options=None):

        self.mean_X_sans_input = np.array(mean_X_sans_input, dtype=float)
        self.cov_X_sans_input = np.array(cov_X_sans_input, dtype=float)
        self.H = np.array(H, dtype=float)
        self.A = np.array(A, dtype=float)
        self.b = np.array(b, dtype=float)
        self.desired_accuracy = desired_accuracy
        self.options = settings() if options is None else options

    def __call__(self, input_vector):

        return -np.log(computeReachProb(input_vector, self.mean_X_sans_input,
                                        self.cov_X_sans_input, self.H,
                                        self.A, self.b, self.desired_accuracy,
                                        self.options))

class _DeadlineReached(Exception):
    pass

class _TrackedObjective(object):
    '''
    Wrapper that remembers the best feasible point evaluated so far, and that
    interrupts the optimizer once the deadline has passed.
    '''

    def __init__(self, objective, A_u, b_u, deadline=None):

        self.objective = objective
        self.A_u = A_u
        self.b_u = b_u
        self.deadline = deadline

        self.best_x = None
        self.best_value = np.inf

    def __call__(self, x):

        if self.deadline is not None and tic() > self.deadline:
            raise _DeadlineReached

        value = self.objective(x)

        if value < self.best_value and \
                np.all(self.A_u @ x <= self.b_u + CONSTRAINT_TOL):
            self.best_x = np.array(x, dtype=float)
            self.best_value = value

        return value

def projectOntoPolytope(x, A, b, options=None):
    '''
    Euclidean projection of x onto the polytope {y : A y <= b}.
    '''

    if options is None:
        options = settings()

    y = cp.Variable(len(x))
    problem = cp.Problem(cp.Minimize(cp.sum_squares(y - x)), [A @ y <= b])

    try:
        problem.solve(solver=options.chance['solver'])
    except cp.error.SolverError as err:
        raise SrtInvalidArgsError('Projection onto the input space failed: '+
                                  str(err)) from err

    if y.value is None:
        raise SrtInvalidArgsError('Projection onto the input space failed '+
                                  '(status: '+str(problem.status)+')')

    return np.array(y.value, dtype=float)

def _initialStep(A_u, b_u, bounds=None):

    # Quarter of the smallest width of the input space
    if bounds is None:
        bounds = _boundingBox(A_u, b_u)
    widths = np.array([u - l for l,u in bounds])

    return float(0.25 * np.min(widths))

def _boundingBox(A_u, b_u):

    lower, upper = pc.Polytope(A_u, b_u).bounding_box

    return list(zip(np.array(lower, dtype=float).flatten(),
                    np.array(upper, dtype=float).flatten()))

def refineInputVector(objective, seed, A_u, b_u, options=None):
    '''
    Minimize the objective over the input polytope {U : A_u U <= b_u},
    starting from the seed.

    Parameters
    ----------
    objective : callable
        Objective function (e.g., a negLogReachProb object).
    seed : ndarray
        Initial input vector (satisfying the input constraints).
    A_u, b_u : ndarray
        Concatenated input space.
    options : settings, optional
        Uses the 'refine' category ('cobyla' or 'differential_evolution').

    Returns
    -------
    input_vector : ndarray
        Refined input vector (never worse than the seed).
    value : float
        Objective value of the refined input vector.

    '''

    if options is None:
        options = settings()
    refine = options.refine
    verbose = options.main['verbose']

    seed = np.array(seed, dtype=float).flatten()
    A_u = np.array(A_u, dtype=float)
    b_u = np.array(b_u, dtype=float).flatten()

    deadline = None if refine['time_limit'] is None else tic() + refine['time_limit']
    tracked = _TrackedObjective(objective, A_u, b_u, deadline)

    seed_value = objective(seed)
    tracked.best_x, tracked.best_value = seed, seed_value

    constraint = LinearConstraint(A_u, -np.inf, b_u)

    if refine['method'] == 'cobyla':

        rhobeg = _initialStep(A_u, b_u) if refine['rhobeg'] == 'auto' \
            else refine['rhobeg']

        try:
            result = minimize(tracked, seed, method='COBYLA',
                              constraints=[constraint],
                              options={'maxiter': refine['max_iterations'],
                                       'rhobeg': rhobeg,
                                       'tol': refine['tol']})
            x = result.x

        except _DeadlineReached:
            if verbose:
                printWarning('Warning: refinement stopped at the time limit')
            x = tracked.best_x

    else:

        bounds = _boundingBox(A_u, b_u)

        def _stopAtDeadline(intermediate_result):
            if deadline is not None and tic() > deadline:
                raise StopIteration

        lower = np.array([l for l,u in bounds])
        upper = np.array([u for l,u in bounds])

        result = differential_evolution(objective, bounds,
                                        constraints=constraint,
                                        x0=np.clip(seed, lower, upper),
                                        rng=options.integral['seed'],
                                        workers=refine['workers'],
                                        updating='immediate' if refine['workers'] == 1
                                            else 'deferred',
                                        popsize=refine['popsize'],
                                        maxiter=refine['max_iterations'],
                                        tol=refine['tol'],
                                        callback=_stopAtDeadline,
                                        polish=False)
        x = result.x

    x = np.array(x, dtype=float)

    # Recover from (small) violations of the input constraints
    if np.any(A_u @ x > b_u + CONSTRAINT_TOL):
        if verbose:
            print(' -- Refined input violates the input space; project it back')
        x = projectOntoPolytope(x, A_u, b_u, options)

    value = objective(x)

    if tracked.best_x is not None and tracked.best_value < value:
        x, value = tracked.best_x, tracked.best_value

    if value > seed_value:
        return seed, seed_value

    return x, value

def _checkQuery(sys, safety_tube, options, desired_accuracy):

    if not isinstance(sys, LinearSystem):
        raise SrtInvalidArgsError('Expected a LinearSystem object')
    if not isinstance(safety_tube, Tube):
        raise SrtInvalidArgsError('Expected the safety tube to be a Tube object')
    if safety_tube.dim != sys.state_dim:
        raise SrtInvalidArgsError('Safety tube and system have different dimensions')

    if options is None:
        options = settings()
    if desired_accuracy is None:
        desired_accuracy = options.integral['desired_accuracy']

    return options, checkDesiredAccuracy(desired_accuracy)

def reachProbability(sys, initial_state, time_horizon, safety_tube,
                     desired_accuracy=None, input_policy=None, options=None):
    '''
    Probability that the trajectory x[1..N] stays in the safety tube, for an
    uncontrolled system or for a controlled system under an open-loop input
    policy.

    Returns
    -------
    float
        Reach probability estimate.

    '''

    options, desired_accuracy = _checkQuery(sys, safety_tube, options,
                                            desired_accuracy)
    N = checkTimeHorizon(time_horizon)

    if N > safety_tube.time_horizon:
        raise SrtInvalidArgsError('Time horizon exceeds the length of the safety tube')

    trajectory = getHmatMeanCovForXSansInput(sys, initial_state, N)
    A, b = safety_tube.concat(N)

    mean_X = np.array(trajectory.mean_X_sans_input)

    if sys.is_controlled:
        if input_policy is None:
            raise SrtInvalidArgsError('Expected an input policy for a controlled system')

        input_policy = asVector(input_policy, 'input_policy')
        if len(input_policy) != sys.input_dim * N:
            raise SrtInvalidArgsError('Expected an input policy of length '+
                                      str(sys.input_dim * N))
        mean_X = mean_X + trajectory.H @ input_policy

    elif input_policy is not None and np.size(input_policy) > 0:
        raise SrtInvalidArgsError('Uncontrolled system does not take an input policy')

    prob, _ = getProbPolytope(mean_X, trajectory.cov_X_sans_input, A, b,
                              desired_accuracy, options)

    return prob

def synthesizeOpenLoopPolicy(sys, initial_state, safety_tube,
                             desired_accuracy=None, options=None):
    '''
    Open-loop controller that maximizes the probability of staying in the
    safety tube.

    Parameters
    ----------
    sys : LinearSystem
        System with a Gaussian disturbance.
    initial_state : ndarray or RandomVector
        Initial state.
    safety_tube : Tube
        Safety tube (its length fixes the time horizon).
    desired_accuracy : float, optional
        Accuracy of the reach probability quadrature.
    options : settings, optional
        Settings of the computation.

    Returns
    -------
    lb_reach_prob : float
        Lower bound on the maximal reach probability, or -1 if no feasible
        initial input was found. The objective clamps the probability at
        desired_accuracy, so a value equal to desired_accuracy only means
        that the reach probability is negligible (it is not a certified
        bound in that case).
    input_vector : ndarray
        Open-loop input vector of length input_dim*N (NaN if infeasible,
        empty for uncontrolled systems).

    '''

    options, desired_accuracy = _checkQuery(sys, safety_tube, options,
                                            desired_accuracy)
    verbose = options.main['verbose']
    N = safety_tube.time_horizon

    if not sys.is_controlled:
        prob = reachProbability(sys, initial_state, N, safety_tube,
                                desired_accuracy, options=options)
        return prob, np.zeros(0)

    start = tic()

    trajectory = getHmatMeanCovForXSansInput(sys, initial_state, N)
    A, b = safety_tube.concat(N)
    A_u, b_u = getConcatInputSpace(sys, N)

    if verbose:
        print('\nCompute the seed input vector...')

    seed = getOpenLoopSeed(trajectory.mean_X_sans_input,
                           trajectory.cov_X_sans_input, trajectory.H,
                           A, b, A_u, b_u, options)

    if not seed.is_feasible:
        if verbose:
            printWarning('Warning: no feasible initial input found; the reach '+
                         'probability is reported as -1')
        return -1.0, np.full(sys.input_dim * N, np.nan)

    objective = negLogReachProb(trajectory.mean_X_sans_input,
                                trajectory.cov_X_sans_input, trajectory.H,
                                A, b, desired_accuracy, options)

    if verbose:
        print('Refine the input vector ('+options.refine['method']+')...')

    input_vector, value = refineInputVector(objective, seed.input_vector,
                                            A_u, b_u, options)

    lb_reach_prob = float(np.clip(np.exp(-value), 0, 1))

    if verbose:
        print(' -- Lower bound on the reach probability: {:.4f}'.format(lb_reach_prob))
        tocDiff(start, label='Controller synthesis time')

    return lb_reach_prob, input_vector
