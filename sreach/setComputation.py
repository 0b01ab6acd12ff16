#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Initial state (within an affine hull of interest) that maximizes the reach
probability of a target tube under an open-loop controller. This state is the
starting point for the ray-shooting computation of the open-loop
underapproximation of the stochastic reach-avoid set.

Reference:
 A. Vinod and M. Oishi, "Scalable underapproximative verification of
 stochastic LTI systems using convexity and compactness", HSCC, 2018.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
import cvxpy as cp              # Import CVXPY for the initialization
from scipy.linalg import block_diag, null_space

from .commons import asColumnMatrix, asVector, checkDesiredAccuracy, \
    checkTimeHorizon, printWarning, tic, tocDiff
from .exceptions import SrtInvalidArgsError
from .mainFunctions import getConcatInputSpace, getHmatMeanCovForXSansInput
from .masterClasses import LinearSystem, Tube, checkPolytope, settings
from .pointBased import negLogReachProb, refineInputVector

def _affineHull(affine_hull, state_dim):
    '''
    Particular solution and (orthonormal) null space basis of the affine hull
    {x : Ae x = be}. Without an affine hull, the full state space is used.
    '''

    if affine_hull is None:
        return np.zeros(state_dim), np.eye(state_dim), None, None

    Ae, be = affine_hull
    Ae = asColumnMatrix(Ae, 'affine hull matrix')
    be = asVector(be, 'affine hull vector')

    if Ae.shape != (len(be), state_dim):
        raise SrtInvalidArgsError('Affine hull has incorrect dimensions')

    x_p, _, _, _ = np.linalg.lstsq(Ae, be, rcond=None)

    if not np.allclose(Ae @ x_p, be):
        raise SrtInvalidArgsError('Affine hull is empty')

    return x_p, null_space(Ae), Ae, be

def computeXmaxForReachAvoidSet(sys, time_horizon, safe_set, safety_tube,
                                affine_hull=None, desired_accuracy=None,
                                options=None):
    '''
    Compute the initial state xmax in the safe set (and the affine hull) with
    the largest reach probability under an open-loop controller.

    Parameters
    ----------
    sys : LinearSystem
        System with a Gaussian disturbance.
    time_horizon : int
        Time horizon N.
    safe_set : polytope.Polytope
        Set in which the initial state must lie.
    safety_tube : Tube
        Target tube (steps 1..N are used).
    affine_hull : tuple (Ae, be), optional
        Affine hull {x : Ae x = be} in which the initial state must lie.
    desired_accuracy : float, optional
        Accuracy of the reach probability quadrature.
    options : settings, optional
        Settings of the computation.

    Returns
    -------
    max_reach_prob : float
        Maximum reach probability (-1 if no initial state with a feasible
        mean trajectory exists). Never below desired_accuracy otherwise,
        since the objective clamps negligible probabilities.
    xmax : ndarray
        Initial state that attains the maximum.
    input_vector : ndarray
        Open-loop controller for xmax.

    '''

    if not isinstance(sys, LinearSystem):
        raise SrtInvalidArgsError('Expected a LinearSystem object')
    if not isinstance(safety_tube, Tube):
        raise SrtInvalidArgsError('Expected the safety tube to be a Tube object')

    N = checkTimeHorizon(time_horizon)
    checkPolytope(safe_set, sys.state_dim, 'Safe set')

    if options is None:
        options = settings()
    if desired_accuracy is None:
        desired_accuracy = options.integral['desired_accuracy']
    desired_accuracy = checkDesiredAccuracy(desired_accuracy)
    verbose = options.main['verbose']

    start = tic()

    n = sys.state_dim
    m = sys.input_dim

    # Mean trajectory for a zero initial state captures the disturbance only
    trajectory = getHmatMeanCovForXSansInput(sys, np.zeros(n), N)
    Abar = np.array(trajectory.Abar)
    H = np.array(trajectory.H)
    mean_X_sans_x0 = np.array(trajectory.mean_X_sans_input)

    A, b = safety_tube.concat(N)

    if m > 0:
        A_u, b_u = getConcatInputSpace(sys, N)
    else:
        A_u, b_u = np.zeros((0, 0)), np.zeros(0)

    x_p, null_basis, Ae, be = _affineHull(affine_hull, n)

    safe_A = np.array(safe_set.A, dtype=float)
    safe_b = np.array(safe_set.b, dtype=float).flatten()

    # Initialization: initial state deepest in the safe set (Chebyshev
    # center) with a feasible mean trajectory
    x0 = cp.Variable(n)
    R = cp.Variable()

    mean_X = Abar @ x0 + mean_X_sans_x0
    if m > 0:
        U = cp.Variable(m*N)
        mean_X = mean_X + H @ U

    constraints = [R >= 0,
                   A @ mean_X <= b,
                   safe_A @ x0 + R * np.linalg.norm(safe_A, axis=1) <= safe_b]
    if m > 0:
        constraints += [A_u @ U <= b_u]
    if Ae is not None:
        constraints += [Ae @ x0 == be]

    objective = R - 0.01 * cp.norm(U) if m > 0 else R
    problem = cp.Problem(cp.Maximize(objective), constraints)

    try:
        problem.solve(solver=options.chance['solver'])
    except cp.error.SolverError as err:
        raise SrtInvalidArgsError('Initialization of xmax failed: '+str(err)) from err

    if problem.status not in [cp.OPTIMAL, cp.OPTIMAL_INACCURATE] or x0.value is None:
        if verbose:
            printWarning('Warning: no initial state with a feasible mean '+
                         'trajectory; the reach probability is reported as -1')
        return -1.0, np.full(n, np.nan), np.full(m*N, np.nan)

    # Decision vector [U; z] with x0 = x_p + null_basis z
    z0 = null_basis.T @ (x0.value - x_p)
    seed = np.concatenate([U.value if m > 0 else np.zeros(0), z0])

    H_aug = np.hstack([H, Abar @ null_basis])
    objective = negLogReachProb(Abar @ x_p + mean_X_sans_x0,
                                trajectory.cov_X_sans_input, H_aug, A, b,
                                desired_accuracy, options)

    A_aug = block_diag(A_u, safe_A @ null_basis)
    b_aug = np.concatenate([b_u, safe_b - safe_A @ x_p])

    if verbose:
        print('Refine the initial state and input vector ('+
              options.refine['method']+')...')

    decision, value = refineInputVector(objective, seed, A_aug, b_aug, options)

    max_reach_prob = float(np.clip(np.exp(-value), 0, 1))
    input_vector = decision[:m*N]
    xmax = x_p + null_basis @ decision[m*N:]

    if verbose:
        print(' -- Maximum reach probability: {:.4f}'.format(max_reach_prob))
        tocDiff(start, label='Computation time of xmax')

    return max_reach_prob, xmax, input_vector
