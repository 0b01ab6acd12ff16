#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Monte Carlo simulations to validate the reach probability of an open-loop
controller.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations

from .commons import asVector
from .exceptions import SrtInvalidArgsError
from .mainFunctions import getConcatMats
from .masterClasses import LinearSystem, Tube
from .randomVectors import RandomVector

def monteCarloReachProb(sys, initial_state, safety_tube, input_vector=None,
                        n_samples=10000, seed=None):
    '''
    Empirical probability that simulated trajectories x[1..N] stay in the
    safety tube under the open-loop input vector.

    Parameters
    ----------
    sys : LinearSystem
        System with a Gaussian disturbance.
    initial_state : ndarray or RandomVector
        Initial state.
    safety_tube : Tube
        Safety tube (its length fixes the time horizon).
    input_vector : ndarray, optional
        Stacked input of length input_dim*N (zero if None).
    n_samples : int
        Number of simulated trajectories.
    seed : int, optional
        Seed of the random number generator.

    Returns
    -------
    float
        Fraction of the trajectories that stay in the tube.

    '''

    if not isinstance(sys, LinearSystem):
        raise SrtInvalidArgsError('Expected a LinearSystem object')
    if not isinstance(safety_tube, Tube) or safety_tube.dim != sys.state_dim:
        raise SrtInvalidArgsError('Expected a Tube object of the state dimension')
    if isinstance(n_samples, bool) or not isinstance(n_samples, (int, np.integer)) \
            or n_samples < 1:
        raise SrtInvalidArgsError('Expected a positive integer number of samples')

    N = safety_tube.time_horizon
    Abar, H, G = getConcatMats(sys, N)

    rng = np.random.default_rng(seed)

    # Initial states (every column is a sample)
    if isinstance(initial_state, RandomVector):
        X0 = initial_state.getRealizations(n_samples, rng)
    else:
        x0 = asVector(initial_state, 'initial_state')
        if len(x0) != sys.state_dim:
            raise SrtInvalidArgsError('Initial state has incorrect dimensions')
        X0 = np.tile(x0[:, np.newaxis], (1, n_samples))

    X = Abar @ X0

    if sys.is_controlled:
        if input_vector is None:
            input_vector = np.zeros(sys.input_dim * N)
        input_vector = asVector(input_vector, 'input_vector')
        if len(input_vector) != sys.input_dim * N:
            raise SrtInvalidArgsError('Expected an input vector of length '+
                                      str(sys.input_dim * N))
        X += (H @ input_vector)[:, np.newaxis]

    if sys.disturbance_dim > 0:
        if not isinstance(sys.disturbance, RandomVector):
            raise SrtInvalidArgsError('Monte Carlo simulations require a '+
                                      'Gaussian disturbance')
        W = sys.disturbance.concat(N).getRealizations(n_samples, rng)
        X += G @ W

    return float(np.mean(safety_tube.contains(X)))
