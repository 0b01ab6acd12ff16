#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Random vectors (disturbances, random initial states) and ellipsoids. The
ellipsoid shares its shape matrix validation with the covariance of the
Gaussian random vector.
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
from scipy.stats import chi2

from .commons import asColumnMatrix, asVector, checkShapeMatrix, readOnly
from .exceptions import SrtInvalidArgsError

class RandomVector(object):
    '''
    Gaussian random vector with a given mean and covariance
    '''

    def __init__(self, distribution, mean, cov, verbose=True):
        '''
        Initialize the random vector.

        Parameters
        ----------
        distribution : str
            Distribution family. Only 'Gaussian' is supported.
        mean : ndarray
            Mean vector.
        cov : ndarray
            Covariance matrix (made symmetric if numerically asymmetric).

        Returns
        -------
        None.

        '''

        if str(distribution).lower() != 'gaussian':
            raise SrtInvalidArgsError('Unsupported distribution: '+str(distribution))

        mean = asVector(mean, 'mean')
        cov = checkShapeMatrix(cov, name='Covariance matrix', verbose=verbose)

        if cov.shape[0] != len(mean):
            raise SrtInvalidArgsError('Mean and covariance have different dimensions')

        self.type = 'Gaussian'
        self._mean = readOnly(mean)
        self._cov = readOnly(cov)

    @property
    def mean(self):
        return self._mean

    @property
    def cov(self):
        return self._cov

    @property
    def dim(self):
        return len(self._mean)

    def __repr__(self):

        return '{:d}-dimensional Gaussian random vector'.format(self.dim)

    def concat(self, time_horizon):
        '''
        Random vector of `time_horizon` independent copies of this vector.
        '''

        return RandomVector('Gaussian',
                            np.tile(self._mean, time_horizon),
                            np.kron(np.eye(time_horizon), self._cov),
                            verbose=False)

    def applyLinearMap(self, F, offset=None):
        '''
        Return the random vector F x + offset.
        '''

        F = asColumnMatrix(F, 'linear map')

        if F.shape[1] != self.dim:
            raise SrtInvalidArgsError('Linear map has incorrect dimensions')

        mean = F @ self._mean
        if offset is not None:
            mean = mean + asVector(offset, 'offset')

        return RandomVector('Gaussian', mean, F @ self._cov @ F.T, verbose=False)

    def getRealizations(self, n_realizations, seed=None):
        '''
        Draw realizations of the random vector.

        Returns
        -------
        ndarray
            Array of size dim x n_realizations (every column is a sample).

        '''

        rng = np.random.default_rng(seed)

        samples = rng.multivariate_normal(self._mean, self._cov,
                                          size=int(n_realizations),
                                          method='eigh')

        return samples.T

    def getProbPolytope(self, polytope, desired_accuracy=None, options=None):
        '''
        Probability that the random vector lies in the given polytope.
        '''

        from .gaussianIntegral import getProbPolytope

        if polytope.dim != self.dim:
            raise SrtInvalidArgsError('Polytope and random vector have different dimensions')

        prob, _ = getProbPolytope(self._mean, self._cov, polytope.A, polytope.b,
                                  desired_accuracy, options)

        return prob

class Ellipsoid(object):
    '''
    Ellipsoid {x : (x - c)^T Q^{-1} (x - c) <= 1}. The shape matrix Q may be
    singular, in which case the ellipsoid is lower-dimensional.
    '''

    def __init__(self, center, shape_matrix, verbose=True):

        center = asVector(center, 'center')
        shape_matrix = checkShapeMatrix(shape_matrix, name='Shape matrix',
                                        verbose=verbose)

        if len(center) != shape_matrix.shape[0]:
            raise SrtInvalidArgsError('Center and shape matrix have different dimensions')

        self._center = readOnly(center)
        self._shape_matrix = readOnly(shape_matrix)

    @property
    def center(self):
        return self._center

    @property
    def shape_matrix(self):
        return self._shape_matrix

    @property
    def dim(self):
        return len(self._center)

    def __repr__(self):

        return '{:d}-dimensional ellipsoid'.format(self.dim)

    @classmethod
    def fromRandomVector(cls, random_vector, probability):
        '''
        Confidence ellipsoid of a Gaussian random vector, i.e. the ellipsoid
        centered at the mean that contains the vector with the given
        probability.
        '''

        if not 0 < probability < 1:
            raise SrtInvalidArgsError('Expected a probability in (0,1)')

        radius_sq = chi2.ppf(probability, df=random_vector.dim)

        return cls(random_vector.mean, radius_sq * random_vector.cov, verbose=False)

    def _sqrtShapeMatrix(self):

        # Symmetric square root; works for singular shape matrices as well
        eig_vals, eig_vecs = np.linalg.eigh(self._shape_matrix)

        return eig_vecs @ np.diag(np.sqrt(np.maximum(eig_vals, 0))) @ eig_vecs.T

    def support(self, l):
        '''
        Support function of the ellipsoid.

        Parameters
        ----------
        l : ndarray
            Query direction (vector of size dim), or a collection of query
            directions stacked as rows.

        Returns
        -------
        ndarray or float
            max_{y in ellipsoid} l^T y (for every query direction)

        '''

        l = np.array(l, dtype=float)
        single = l.ndim == 1
        l = np.atleast_2d(l)

        if l.shape[1] != self.dim:
            raise SrtInvalidArgsError('l has incorrect dimensions.')

        val = l @ self._center + np.linalg.norm(l @ self._sqrtShapeMatrix(), axis=1)

        return val[0] if single else val

    def contains(self, points, abs_tol=1e-9):
        '''
        Check (for every column of `points`) whether it lies in the ellipsoid.
        '''

        points = np.array(points, dtype=float)
        if points.ndim == 1:
            points = points[:, np.newaxis]

        diff = points - self._center[:, np.newaxis]

        # Points must lie in the range of the shape matrix
        coords, _, _, _ = np.linalg.lstsq(self._shape_matrix, diff, rcond=None)
        residual = np.linalg.norm(self._shape_matrix @ coords - diff, axis=0)

        return np.logical_and(np.sum(diff * coords, axis=0) <= 1 + abs_tol,
                              residual <= abs_tol)

    def applyLinearMap(self, F):
        '''
        Return the ellipsoid F * E = {F x : x in E}.
        '''

        return applyLinearMapToEllipsoid(F, self)

def applyLinearMapToEllipsoid(F, ellipsoid):
    '''
    Image of an ellipsoid under the linear map F, which is the ellipsoid
    with center F c and shape matrix F Q F^T.

    Parameters
    ----------
    F : ndarray
        Matrix of size m x dim.
    ellipsoid : Ellipsoid
        Ellipsoid to transform.

    Returns
    -------
    Ellipsoid
        Transformed ellipsoid (a new object).

    '''

    if not isinstance(ellipsoid, Ellipsoid):
        raise SrtInvalidArgsError('Expected an Ellipsoid object')

    F = asColumnMatrix(F, 'linear map')

    if F.shape[1] != ellipsoid.dim:
        raise SrtInvalidArgsError('Linear map has incorrect dimensions')

    return Ellipsoid(F @ ellipsoid.center,
                     F @ ellipsoid.shape_matrix @ F.T, verbose=False)
