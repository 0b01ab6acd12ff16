#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Underapproximation of the stochastic level set (the set of initial states
with a reach probability of at least beta) through the Lagrangian recursion
V_N = T_N, V_k = T_k intersected with Pre(V_{k+1} - F E), in which E is a
disturbance set with probability beta^(1/N) and '-' the Pontryagin difference.

Reference:
 J. Gleason, A. Vinod and M. Oishi, "Underapproximation of reach-avoid sets
 for discrete-time stochastic systems via Lagrangian methods", CDC, 2017.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
import polytope as pc           # Import polytope package

from .commons import printWarning, tic, tocDiff
from .exceptions import SrtInvalidArgsError
from .masterClasses import LinearSystem, Tube, settings
from .randomVectors import Ellipsoid, RandomVector

def getBoundedDisturbanceSet(sys, probability, bounded_set_method='ellipsoid',
                             n_samples=100, options=None):
    '''
    Set of the disturbance that contains it with (at least) the given
    probability.

    Parameters
    ----------
    sys : LinearSystem
        System with a Gaussian (or bounded) disturbance.
    probability : float
        Required probability of the set.
    bounded_set_method : str
        'ellipsoid' for the confidence ellipsoid, or 'random' for the
        polytope bounding the ellipsoid in `n_samples` random directions.

    Returns
    -------
    Ellipsoid or polytope.Polytope
        Disturbance set (None for a system without disturbance).

    '''

    if sys.disturbance is None:
        return None

    # A bounded disturbance is used as is (probability one)
    if isinstance(sys.disturbance, pc.Polytope):
        return sys.disturbance

    ellipsoid = Ellipsoid.fromRandomVector(sys.disturbance, probability)

    if bounded_set_method == 'ellipsoid':
        return ellipsoid

    if options is None:
        options = settings()
    rng = np.random.default_rng(options.integral['seed'])

    # Random directions, plus the coordinate axes such that the set is bounded
    d = sys.disturbance_dim
    directions = rng.standard_normal((int(n_samples), d))
    directions = np.vstack([directions, np.eye(d), -np.eye(d)])
    directions /= np.linalg.norm(directions, axis=1)[:, np.newaxis]

    return pc.Polytope(directions, ellipsoid.support(directions))

def _supportFunction(bounded_set, F, directions):
    '''
    Support function of F * bounded_set for every row of `directions`.
    '''

    if isinstance(bounded_set, Ellipsoid):
        return bounded_set.applyLinearMap(F).support(directions)

    vertices = pc.extreme(bounded_set)
    if vertices is None:
        raise SrtInvalidArgsError('Vertices of the disturbance set could not be computed')

    return np.max(directions @ F @ vertices.T, axis=1)

def pontryaginDifference(P, bounded_set, F):
    '''
    Pontryagin difference P - F E = {x : x + F w in P for all w in E} of the
    polytope P = {x : H x <= h}, i.e., {x : H x <= h - support_{FE}(H)}.
    '''

    if bounded_set is None:
        return P

    H = np.array(P.A, dtype=float)
    h = np.array(P.b, dtype=float).flatten()

    return pc.Polytope(H, h - _supportFunction(bounded_set, F, H))

def preImage(sys, P, t=0, options=None):
    '''
    One-step pre-image {x : A x + B u in P for some u in the input space}.
    '''

    if options is None:
        options = settings()

    A = sys.getStateMatrix(t)
    H = np.array(P.A, dtype=float)
    h = np.array(P.b, dtype=float).flatten()

    if not sys.is_controlled:
        return pc.Polytope(H @ A, h)

    B = sys.getInputMatrix(t)
    n = sys.state_dim
    m = sys.input_dim

    U_A = np.array(sys.input_space.A, dtype=float)
    U_b = np.array(sys.input_space.b, dtype=float).flatten()

    # Polytope in the joint (state, input) space
    lifted = pc.Polytope(np.block([[H @ A, H @ B],
                                   [np.zeros((len(U_b), n)), U_A]]),
                         np.concatenate([h, U_b]))

    # Dimensions of the projection are one-based
    return pc.projection(lifted, list(range(1, n+1)),
                         solver=options.levelset['projection_solver'])

def getApproxStochasticLevelSetViaLagrangian(sys, beta, target_tube,
                                             bounded_set_method='ellipsoid',
                                             n_samples=100, options=None):
    '''
    Underapproximation of the beta stochastic level set of the target tube.

    Parameters
    ----------
    sys : LinearSystem
        Linear system.
    beta : float
        Probability threshold in (0,1).
    target_tube : Tube
        Target tube (steps 0..N).
    bounded_set_method : str, default='ellipsoid'
        Method to compute the bounded disturbance set ('ellipsoid' or
        'random').
    n_samples : int, default=100
        Number of random directions for the 'random' method.
    options : settings, optional
        Settings of the computation.

    Returns
    -------
    polytope.Polytope
        Underapproximation of the level set (can be empty).

    '''

    if not isinstance(sys, LinearSystem):
        raise SrtInvalidArgsError('Expected a LinearSystem object')
    if not isinstance(target_tube, Tube):
        raise SrtInvalidArgsError('Expected the target tube to be a Tube object')
    if target_tube.dim != sys.state_dim:
        raise SrtInvalidArgsError('Target tube and system have different dimensions')
    if isinstance(beta, bool) or not isinstance(beta, (int, float)) or not 0 < beta < 1:
        raise SrtInvalidArgsError('Expected beta to be in (0,1)')
    if bounded_set_method not in ['ellipsoid', 'random']:
        raise SrtInvalidArgsError('Unknown bounded set method: '+str(bounded_set_method))
    if bounded_set_method == 'random' and \
            (isinstance(n_samples, bool) or not isinstance(n_samples, (int, np.integer))
             or n_samples < 1):
        raise SrtInvalidArgsError('Expected a positive integer number of samples')
    if sys.disturbance is not None and \
            not isinstance(sys.disturbance, (RandomVector, pc.Polytope)):
        raise SrtInvalidArgsError('Unsupported disturbance')

    if options is None:
        options = settings()
    verbose = options.main['verbose']

    start = tic()
    N = target_tube.time_horizon

    bounded_set = getBoundedDisturbanceSet(sys, beta**(1/N), bounded_set_method,
                                           n_samples, options)

    level_set = target_tube[N]

    for k in range(N-1, -1, -1):

        F = sys.getDisturbanceMatrix(k)
        robust = pontryaginDifference(level_set, bounded_set, F)

        if not pc.is_fulldim(robust):
            if verbose:
                printWarning('Warning: level set is empty from time step '+str(k))
            return pc.Polytope()

        level_set = pc.reduce(target_tube[k].intersect(preImage(sys, robust, k, options)))

        if not pc.is_fulldim(level_set):
            if verbose:
                printWarning('Warning: level set is empty from time step '+str(k))
            return pc.Polytope()

        if verbose:
            print(' -- Level set at time step '+str(k)+' has '+
                  str(len(level_set.b))+' facets')

    if verbose:
        tocDiff(start, label='Level set computation time')

    return level_set
