#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Initial (seed) input vector for the open-loop controller synthesis, computed
from a convex chance-constrained relaxation of the reach problem, with a
penalty problem on the mean trajectory as fallback.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
import cvxpy as cp              # Import CVXPY for the convex programs
from scipy.special import ndtri

from .commons import printWarning
from .exceptions import SrtInvalidArgsError
from .gaussianIntegral import covarianceScale
from .masterClasses import settings

class seedResult(object):
    '''
    Outcome of the seed stage: either feasible (with an input vector and a
    lower bound on the reach probability) or infeasible.
    '''

    def __init__(self, status, input_vector=None, lower_bound=-1.0, method=None):

        self.status = status
        self.input_vector = input_vector
        self.lower_bound = lower_bound
        self.method = method

    @classmethod
    def feasible(cls, input_vector, lower_bound, method):
        return cls('feasible', np.array(input_vector, dtype=float).flatten(),
                   float(lower_bound), method)

    @classmethod
    def infeasible(cls):
        return cls('infeasible')

    @property
    def is_feasible(self):
        return self.status == 'feasible'

    def __repr__(self):

        if self.is_feasible:
            return 'seedResult(feasible, lower bound {:.4f}, method {:s})'.format(
                self.lower_bound, self.method)
        else:
            return 'seedResult(infeasible)'

def getPiecewiseAffineBound(risk_min, risk_max, pwa_points):
    '''
    Chords of the convex function delta -> Phi^{-1}(1 - delta) on the interval
    [risk_min, risk_max], with logarithmically spaced breakpoints. The
    maximum of the chords is an upper bound of the function on the interval.

    Returns
    -------
    slopes : ndarray
        Slope of every chord.
    intercepts : ndarray
        Intercept of every chord.

    '''

    breakpoints = np.logspace(np.log10(risk_min), np.log10(risk_max), pwa_points)
    values = -ndtri(breakpoints)

    slopes = np.diff(values) / np.diff(breakpoints)
    intercepts = values[:-1] - slopes * breakpoints[:-1]

    return slopes, intercepts

def _stochasticRows(A, cov, tolerance):
    '''
    Standard deviation of every row a_i^T X, and which rows are uncertain.
    The threshold is relative to the row norm and the covariance scale.
    '''

    cov = np.array(cov, dtype=float)

    sigma = np.sqrt(np.maximum(np.einsum('ij,jk,ik->i', A, cov, A), 0))
    threshold = tolerance * np.linalg.norm(A, axis=1) * np.sqrt(covarianceScale(cov))

    return sigma, sigma > threshold

def getChanceConstrainedSeed(mean_X_sans_input, cov_X_sans_input, H, A, b,
                             A_u, b_u, options=None):
    '''
    Solve the risk allocation problem

        minimize    sum(delta)
        subject to  a_i^T mean_X + sigma_i Phi^{-1}(1 - delta_i) <= b_i
                    A_u U <= b_u,

    where mean_X = mean_X_sans_input + H U, sigma_i is the standard deviation
    of a_i^T X, and Phi^{-1}(1 - delta) is replaced by its piecewise-affine
    upper bound. Boole's inequality gives the lower bound 1 - sum(delta) on
    the reach probability.

    Returns
    -------
    seedResult
        Feasible result, or infeasible if the linear program has no solution.

    '''

    if options is None:
        options = settings()
    chance = options.chance

    A = np.array(A, dtype=float)
    b = np.array(b, dtype=float).flatten()
    H = np.array(H, dtype=float)

    sigma, stochastic = _stochasticRows(A, cov_X_sans_input,
                                        options.integral['psd_tolerance'])

    slopes, intercepts = getPiecewiseAffineBound(chance['risk_min'],
                                                 chance['risk_max'],
                                                 chance['pwa_points'])

    U = cp.Variable(H.shape[1])
    mean_X = mean_X_sans_input + H @ U

    constraints = [A_u @ U <= b_u]

    # Rows without uncertainty are imposed on the mean trajectory
    if np.any(~stochastic):
        constraints += [A[~stochastic] @ mean_X <= b[~stochastic]]

    n_risks = int(np.sum(stochastic))
    if n_risks > 0:
        delta = cp.Variable(n_risks)
        constraints += [delta >= chance['risk_min'], delta <= chance['risk_max']]

        for slope, intercept in zip(slopes, intercepts):
            constraints += [A[stochastic] @ mean_X +
                            cp.multiply(sigma[stochastic], slope*delta + intercept)
                            <= b[stochastic]]

        objective = cp.Minimize(cp.sum(delta))
    else:
        delta = None
        objective = cp.Minimize(0)

    problem = cp.Problem(objective, constraints)
    problem.solve(solver=chance['solver'])

    if problem.status not in [cp.OPTIMAL, cp.OPTIMAL_INACCURATE] or U.value is None:
        return seedResult.infeasible()

    risk = float(np.sum(delta.value)) if delta is not None else 0.0

    return seedResult.feasible(U.value, max(0, 1 - risk), 'chance-constrained')

def getPenaltySeed(mean_X_sans_input, H, A, b, A_u, b_u, options=None):
    '''
    Minimize the violation of the tube constraints by the mean trajectory,

        minimize    ||s||_2
        subject to  A mean_X <= b + s,  s >= 0,  A_u U <= b_u.

    The seed is feasible (with a trivial lower bound of zero) if the
    violation is below the slack tolerance.
    '''

    if options is None:
        options = settings()

    H = np.array(H, dtype=float)

    U = cp.Variable(H.shape[1])
    slack = cp.Variable(len(b))
    mean_X = mean_X_sans_input + H @ U

    constraints = [A @ mean_X <= b + slack,
                   slack >= 0,
                   A_u @ U <= b_u]

    problem = cp.Problem(cp.Minimize(cp.norm(slack, 2)), constraints)

    try:
        problem.solve(solver=options.chance['solver'])
    except cp.error.SolverError as err:
        raise SrtInvalidArgsError('Penalty problem for the initial input '+
                                  'could not be solved: '+str(err)) from err

    if problem.status in [cp.OPTIMAL, cp.OPTIMAL_INACCURATE] and \
            U.value is not None and \
            np.linalg.norm(slack.value) < options.chance['slack_tolerance']:
        return seedResult.feasible(U.value, 0.0, 'penalty')

    return seedResult.infeasible()

def getOpenLoopSeed(mean_X_sans_input, cov_X_sans_input, H, A, b, A_u, b_u,
                    options=None):
    '''
    Seed stage of the open-loop controller synthesis: the chance-constrained
    linear program, followed by the penalty problem if the former is
    infeasible or fails.
    '''

    if options is None:
        options = settings()
    verbose = options.main['verbose']

    try:
        result = getChanceConstrainedSeed(mean_X_sans_input, cov_X_sans_input,
                                          H, A, b, A_u, b_u, options)
    except cp.error.SolverError as err:
        if verbose:
            printWarning('Warning: chance-constrained problem failed ('+str(err)+
                         '); use the penalty problem instead')
        result = seedResult.infeasible()

    if result.is_feasible:
        if verbose:
            print(' -- Chance-constrained seed with lower bound {:.4f}'.format(
                result.lower_bound))
        return result

    if verbose:
        print(' -- Chance-constrained problem infeasible; minimize the '+
              'constraint violation of the mean trajectory')

    return getPenaltySeed(mean_X_sans_input, H, A, b, A_u, b_u, options)
