#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Probability that a Gaussian random vector lies in a polytope, computed with
Genz's quasi-Monte Carlo algorithm for multivariate normal probabilities over
general linear constraints (separation of variables on a randomized lattice
rule, with variable prioritization).

Reference:
 A. Genz, "Numerical computation of multivariate normal probabilities",
 J. Comput. Graph. Stat., 1992.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
from scipy.special import ndtr, ndtri

from .commons import asColumnMatrix, asVector, printWarning
from .exceptions import SrtInvalidArgsError
from .masterClasses import settings

# Integration bounds are clipped to [-BOUND_CLIP, BOUND_CLIP]
BOUND_CLIP = 9.0

# Threshold below which a coefficient of the triangularized constraints is zero
COEF_TOL = 1e-10

def _primes(count):
    '''
    Return the first `count` prime numbers (sieve of Eratosthenes).
    '''

    limit = max(16, int(count * (np.log(count + 1) + np.log(np.log(count + 3)) + 3)))

    while True:
        sieve = np.ones(limit+1, dtype=bool)
        sieve[:2] = False
        for i in range(2, int(np.sqrt(limit)) + 1):
            if sieve[i]:
                sieve[i*i::i] = False
        primes = np.flatnonzero(sieve)

        if len(primes) >= count:
            return primes[:count]
        limit *= 2

def covarianceScale(cov):
    '''
    Largest absolute entry of the covariance, used to make the tolerances
    relative (one for an all-zero or empty matrix).
    '''

    scale = np.max(np.abs(cov), initial=0)

    return float(scale) if scale > 0 else 1.0

def _checkCovariance(cov, tolerance):
    '''
    Check that the covariance is symmetric and positive semidefinite up to
    the tolerance (relative to the largest entry of the matrix, such that
    the result does not depend on the units).
    '''

    cov = asColumnMatrix(cov, 'covariance matrix')

    if cov.shape[0] != cov.shape[1]:
        raise SrtInvalidArgsError('Expected a square covariance matrix')

    scale = covarianceScale(cov)

    if np.max(np.abs(cov - cov.T), initial=0) > tolerance * scale:
        raise SrtInvalidArgsError('Covariance matrix is not symmetric; pass '+
                                  '(M + M^T)/2 instead of M')

    cov = (cov + cov.T) / 2
    eig_vals, eig_vecs = np.linalg.eigh(cov)

    if np.min(eig_vals, initial=0) < -tolerance * scale:
        raise SrtInvalidArgsError('Covariance matrix has negative eigenvalues; '+
                                  'pass a positive semidefinite (M + M^T)/2')

    return eig_vals, eig_vecs, scale

class _ReducedProblem(object):
    '''
    Triangularized standard normal problem Pr[T y <= c], y ~ N(0, I), in
    which the constraints are grouped by the last variable they involve.
    '''

    def __init__(self, cov, A, b, tolerance):

        # Trivial outcomes (probability zero or one) are stored in `exact`
        self.exact = None

        eig_vals, eig_vecs, scale = _checkCovariance(cov, tolerance)

        if len(b) == 0:
            self.exact = 1.0
            return

        # Rank revealing factor of the covariance: cov = L L^T
        keep = eig_vals > tolerance * scale
        L = eig_vecs[:, keep] * np.sqrt(eig_vals[keep])

        M = A @ L
        c = np.array(b, dtype=float)

        # Rows that do not depend on the random vector are deterministic
        norms = np.linalg.norm(M, axis=1) if M.shape[1] > 0 else np.zeros(len(c))
        deterministic = norms <= tolerance * np.linalg.norm(A, axis=1) * np.sqrt(scale)

        if np.any(c[deterministic] < 0):
            self.exact = 0.0
            return

        M = M[~deterministic] / norms[~deterministic, np.newaxis]
        c = c[~deterministic] / norms[~deterministic]

        if len(c) == 0:
            self.exact = 1.0
            return

        T, c, dim = self._triangularize(M, c)

        self.dim = dim
        self.T = T[:, :dim]
        self.c = c

        self._groupConstraints()

    @staticmethod
    def _triangularize(T, c):

        m, r = T.shape
        y = np.zeros(r)
        T = T.copy()
        c = c.copy()

        dim = 0

        for i in range(min(r, m)):

            # Bounds of the remaining constraints on the next variable
            s = T[i:, :i] @ y[:i]
            ss = np.linalg.norm(T[i:, i:], axis=1)

            valid = ss > COEF_TOL
            if not np.any(valid):
                break

            bl = np.full(len(ss), BOUND_CLIP)
            bl[valid] = np.clip((c[i:][valid] - s[valid]) / ss[valid],
                                -BOUND_CLIP, BOUND_CLIP)

            # Moments of the standard normal truncated to (-inf, bl]
            prob = np.maximum(ndtr(bl), 1e-300)
            pdf = np.exp(-bl**2 / 2) / np.sqrt(2*np.pi)
            mn = -pdf / prob
            vr = 1 - bl * pdf / prob - mn**2
            vr[~valid] = np.inf

            # Prioritize the most restrictive constraint
            j = i + int(np.argmin(vr))

            T[[i, j]] = T[[j, i]]
            c[[i, j]] = c[[j, i]]
            y[i] = mn[j - i]

            # Householder reflection that zeroes row i beyond column i
            v = T[i, i:].copy()
            alpha = -np.copysign(np.linalg.norm(v), v[0])
            u = v
            u[0] -= alpha
            unorm = u @ u

            if unorm > 0:
                T[:, i:] -= np.outer(T[:, i:] @ u, 2 * u / unorm)

            if T[i, i] < 0:
                T[:, i] = -T[:, i]

            T[i, i+1:] = 0
            dim = i + 1

        return T, c, dim

    def _groupConstraints(self):

        T = self.T
        significant = np.abs(T) > COEF_TOL

        # Index of the last variable that every constraint involves
        has_coef = np.any(significant, axis=1)

        if np.any(self.c[~has_coef] < 0):
            self.exact = 0.0
            return

        last = np.where(has_coef,
                        T.shape[1] - 1 - np.argmax(significant[:, ::-1], axis=1),
                        -1)

        self.groups = []
        for k in range(self.dim):
            rows = np.flatnonzero(last == k)
            coef = T[rows, k]
            self.groups.append((rows[coef > 0], rows[coef < 0]))

    def _bounds(self, k, z):
        '''
        Lower and upper bound of variable k for the given values (columns of
        z) of the preceding variables.
        '''

        upper_rows, lower_rows = self.groups[k]
        npts = z.shape[1]

        lo = np.full(npts, -BOUND_CLIP)
        up = np.full(npts, BOUND_CLIP)

        if len(upper_rows) > 0:
            rhs = self.c[upper_rows, np.newaxis] - self.T[upper_rows, :k] @ z[:k]
            up = np.minimum(up, np.min(rhs / self.T[upper_rows, k, np.newaxis], axis=0))

        if len(lower_rows) > 0:
            rhs = self.c[lower_rows, np.newaxis] - self.T[lower_rows, :k] @ z[:k]
            lo = np.maximum(lo, np.max(rhs / self.T[lower_rows, k, np.newaxis], axis=0))

        return np.clip(lo, -BOUND_CLIP, BOUND_CLIP), np.clip(up, -BOUND_CLIP, BOUND_CLIP)

    def integrand(self, x):
        '''
        Evaluate the separation-of-variables integrand for the points in the
        unit cube (columns of x, dimension dim-1).
        '''

        npts = x.shape[1] if x.ndim == 2 else 1
        z = np.zeros((self.dim, npts))
        value = np.ones(npts)

        for k in range(self.dim):

            lo, up = self._bounds(k, z)

            phi_lo = ndtr(lo)
            e = np.maximum(ndtr(up) - phi_lo, 0)
            value *= e

            if k < self.dim - 1:
                w = np.clip(phi_lo + x[k] * e, 1e-16, 1 - 1e-16)
                z[k] = ndtri(w)

        return value

def _latticeEstimates(problem, n_points, randomizations, rng):
    '''
    Randomized Richtmyer lattice rule with the tent (baker's) periodization;
    returns one estimate per random shift.
    '''

    ndim = problem.dim - 1
    q = np.sqrt(_primes(ndim))
    j = np.arange(1, n_points+1)

    base = np.outer(q, j)

    estimates = np.zeros(randomizations)
    for i in range(randomizations):
        shift = rng.random(ndim)
        x = np.abs(2 * np.mod(base + shift[:, np.newaxis], 1) - 1)
        estimates[i] = np.mean(problem.integrand(x))

    return estimates

def qscmvnv(cov, A, b, n_points, randomizations, rng, tolerance=1e-8):
    '''
    Estimate Pr[A x <= b] for x ~ N(0, cov).

    Parameters
    ----------
    cov : ndarray
        Covariance matrix (symmetric, positive semidefinite).
    A, b : ndarray
        Half-space representation of the polytope.
    n_points : int
        Number of lattice points per randomization.
    randomizations : int
        Number of random shifts of the lattice.
    rng : numpy.random.Generator
        Source of the random shifts.

    Returns
    -------
    prob : float
        Probability estimate.
    err : float
        Error estimate (three times the standard error).

    '''

    A = np.array(A, dtype=float, ndmin=2)
    b = asVector(b, 'b') if np.size(b) > 0 else np.zeros(0)

    if len(b) > 0 and A.shape != (len(b), np.shape(cov)[0]):
        raise SrtInvalidArgsError('Polytope and covariance have incompatible dimensions')

    problem = _ReducedProblem(cov, A, b, tolerance)

    if problem.exact is not None:
        return problem.exact, 0.0

    # A single variable is integrated exactly
    if problem.dim == 1:
        return float(problem.integrand(np.zeros((0, 1)))[0]), 0.0

    estimates = _latticeEstimates(problem, n_points, randomizations, rng)

    prob = float(np.mean(estimates))
    err = float(3 * np.std(estimates, ddof=1) / np.sqrt(randomizations))

    return prob, err

def iteratedQscmvnv(cov, A, b, desired_accuracy, max_iterations=10, options=None):
    '''
    Repeat the lattice rule with doubled point counts (and fresh random
    shifts) until the error estimate is below `desired_accuracy` or the
    maximum number of iterations is reached. The estimates of all rounds are
    combined with inverse-variance weights.

    Returns
    -------
    prob : float
        Probability estimate.
    err : float
        Error estimate.

    '''

    if options is None:
        options = settings()

    if max_iterations < 1:
        raise SrtInvalidArgsError('Expected a positive number of iterations')

    integral = options.integral
    rng = np.random.default_rng(integral['seed'])

    n_points = integral['lattice_points']

    weight_sum = 0
    weighted_prob = 0

    try:
        for i in range(max_iterations):

            prob_i, err_i = qscmvnv(cov, A, b, n_points, integral['randomizations'],
                                    rng, integral['psd_tolerance'])

            if not np.isfinite(prob_i) or not np.isfinite(err_i):
                raise SrtInvalidArgsError('Quadrature returned a non-finite '+
                                          'estimate; check the covariance matrix')

            if err_i == 0:
                return prob_i, 0.0

            weight = 1 / err_i**2
            weight_sum += weight
            weighted_prob += weight * prob_i

            prob = weighted_prob / weight_sum
            err = 1 / np.sqrt(weight_sum)

            if err <= desired_accuracy:
                break

            n_points *= 2

        else:
            if options.main['verbose']:
                printWarning('Warning: quadrature stopped after '+str(max_iterations)+
                             ' iterations with error estimate {:1.2e}'.format(err))

    except np.linalg.LinAlgError as exc:
        raise SrtInvalidArgsError('Quadrature failed: '+str(exc)) from exc

    return float(np.clip(prob, 0, 1)), float(err)

def getProbPolytope(mean, cov, A, b, desired_accuracy, options=None):
    '''
    Probability that x ~ N(mean, cov) satisfies A x <= b.
    '''

    if options is None:
        options = settings()
    if desired_accuracy is None:
        desired_accuracy = options.integral['desired_accuracy']

    mean = asVector(mean, 'mean')
    A = np.array(A, dtype=float, ndmin=2)
    b = np.array(b, dtype=float).flatten()

    if len(b) == 0:
        return 1.0, 0.0

    if A.shape[1] != len(mean):
        raise SrtInvalidArgsError('Polytope and mean have incompatible dimensions')

    return iteratedQscmvnv(cov, A, b - A @ mean, desired_accuracy,
                           options.integral['max_iterations'], options)

def computeReachProb(input_vector, mean_X_sans_input, cov_X_sans_input, H, A, b,
                     desired_accuracy, options=None):
    '''
    Probability that the stacked trajectory under the given input lies in
    the polytope {x : A x <= b}.

    The returned probability is never smaller than `desired_accuracy`, such
    that its logarithm is finite. Candidates with a negligible probability
    therefore all get the same (low) value.

    Parameters
    ----------
    input_vector : ndarray
        Stacked input (empty for uncontrolled systems).
    mean_X_sans_input, cov_X_sans_input : ndarray
        Mean and covariance of the stacked trajectory under zero input.
    H : ndarray
        Input-to-trajectory matrix.
    A, b : ndarray
        Concatenated target tube.
    desired_accuracy : float
        Accuracy of the quadrature (and lower clamp of the result).

    Returns
    -------
    float
        Reach probability in [desired_accuracy, 1].

    '''

    mean_X = np.array(mean_X_sans_input, dtype=float)

    input_vector = np.array(input_vector, dtype=float).flatten()
    if len(input_vector) > 0:
        mean_X = mean_X + np.array(H) @ input_vector

    prob, _ = getProbPolytope(mean_X, cov_X_sans_input, A, b, desired_accuracy,
                              options)

    return float(np.clip(prob, desired_accuracy, 1))
