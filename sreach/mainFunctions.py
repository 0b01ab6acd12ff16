#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Concatenation of the dynamics over the time horizon: the stacked trajectory
x[1..N] is the affine function Abar x0 + H U + G W of the initial state, the
stacked input U and the stacked disturbance W.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
from scipy.linalg import block_diag

from collections import namedtuple

from .commons import asVector, checkTimeHorizon, readOnly
from .exceptions import SrtInvalidArgsError
from .masterClasses import LinearSystem, checkPolytope
from .randomVectors import RandomVector

ConcatenatedTrajectory = namedtuple('ConcatenatedTrajectory',
    ['Abar', 'H', 'G', 'mean_X_sans_input', 'cov_X_sans_input'])

def getConcatMats(sys, time_horizon, cache=None):
    '''
    Compute the concatenated matrices of the system over the time horizon.

    Parameters
    ----------
    sys : LinearSystem
        Linear (time-invariant or time-varying) system.
    time_horizon : int
        Time horizon N.
    cache : dict, optional
        Dictionary (owned by the caller) in which the matrices are stored,
        keyed by the system object (which the key keeps alive) and the time
        horizon.

    Returns
    -------
    Abar : ndarray
        Map from the initial state to the stacked trajectory (nN x n).
    H : ndarray
        Block lower-triangular map from the stacked input (nN x mN).
    G : ndarray
        Block lower-triangular map from the stacked disturbance (nN x dN).

    '''

    if not isinstance(sys, LinearSystem):
        raise SrtInvalidArgsError('Expected a LinearSystem object')

    N = checkTimeHorizon(time_horizon)

    if cache is not None and (sys, N) in cache:
        return cache[(sys, N)]

    n = sys.state_dim
    m = sys.input_dim
    d = sys.disturbance_dim

    Abar = np.zeros((n*N, n))
    H = np.zeros((n*N, m*N))
    G = np.zeros((n*N, d*N))

    # Block row k holds x[k+1] = A_k x[k] + B_k u[k] + F_k w[k]
    prev_Abar = np.eye(n)
    prev_H = np.zeros((n, m*N))
    prev_G = np.zeros((n, d*N))

    for k in range(N):

        A_k = sys.getStateMatrix(k)
        rows = slice(k*n, (k+1)*n)

        Abar[rows, :] = A_k @ prev_Abar
        H[rows, :] = A_k @ prev_H
        G[rows, :] = A_k @ prev_G

        H[rows, k*m:(k+1)*m] = sys.getInputMatrix(k)
        G[rows, k*d:(k+1)*d] = sys.getDisturbanceMatrix(k)

        prev_Abar = Abar[rows, :]
        prev_H = H[rows, :]
        prev_G = G[rows, :]

    result = (readOnly(Abar), readOnly(H), readOnly(G))

    if cache is not None:
        cache[(sys, N)] = result

    return result

def getConcatInputSpace(sys, time_horizon):
    '''
    Half-space representation of the input space repeated over the horizon.
    '''

    if not isinstance(sys, LinearSystem):
        raise SrtInvalidArgsError('Expected a LinearSystem object')
    if not sys.is_controlled:
        raise SrtInvalidArgsError('Expected a controlled system with an input space')

    N = checkTimeHorizon(time_horizon)

    A_u = np.kron(np.eye(N), np.array(sys.input_space.A, dtype=float))
    b_u = np.kron(np.ones(N), np.array(sys.input_space.b, dtype=float).flatten())

    return A_u, b_u

def getConcatTargetTube(safe_set, target_set, time_horizon):
    '''
    Half-space representation of safe_set^(N-1) x target_set, i.e., stay in
    the safe set during steps 1..N-1 and reach the target set at step N.
    '''

    N = checkTimeHorizon(time_horizon)

    checkPolytope(safe_set, None, 'Safe set')
    checkPolytope(target_set, safe_set.dim, 'Target set')

    safe_A = np.array(safe_set.A, dtype=float)
    safe_b = np.array(safe_set.b, dtype=float).flatten()

    A = block_diag(np.kron(np.eye(N-1), safe_A),
                   np.array(target_set.A, dtype=float))
    b = np.concatenate([np.kron(np.ones(N-1), safe_b),
                        np.array(target_set.b, dtype=float).flatten()])

    return A, b

def getHmatMeanCovForXSansInput(sys, initial_state, time_horizon, cache=None):
    '''
    Compute the concatenated matrices, as well as the mean and covariance of
    the stacked trajectory under zero input.

    Parameters
    ----------
    sys : LinearSystem
        System with a Gaussian disturbance (or without disturbance).
    initial_state : ndarray or RandomVector
        Deterministic initial state, or a Gaussian random initial state.
    time_horizon : int
        Time horizon N.

    Returns
    -------
    ConcatenatedTrajectory
        Named tuple with Abar, H, G, and the mean and covariance of x[1..N].

    '''

    Abar, H, G = getConcatMats(sys, time_horizon, cache)

    if isinstance(initial_state, RandomVector):
        if initial_state.dim != sys.state_dim:
            raise SrtInvalidArgsError('Initial state has incorrect dimensions')
        mean_x0 = initial_state.mean
        cov_X = Abar @ initial_state.cov @ Abar.T
    else:
        mean_x0 = asVector(initial_state, 'initial_state')
        if len(mean_x0) != sys.state_dim:
            raise SrtInvalidArgsError('Initial state has incorrect dimensions')
        cov_X = np.zeros((len(Abar), len(Abar)))

    mean_X = Abar @ mean_x0

    if sys.disturbance_dim > 0:
        if not isinstance(sys.disturbance, RandomVector):
            raise SrtInvalidArgsError('Expected a Gaussian disturbance to '+
                                      'compute the trajectory mean and covariance')

        W = sys.disturbance.concat(time_horizon)
        mean_X = mean_X + G @ W.mean
        cov_X = cov_X + G @ W.cov @ G.T

    # Remove round-off asymmetry
    cov_X = (cov_X + cov_X.T) / 2

    return ConcatenatedTrajectory(Abar, H, G, readOnly(mean_X), readOnly(cov_X))
