#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Common helper functions (console output, timing and matrix checks)
______________________________________________________________________________
"""

import time                     # Import to time the computations
import numpy as np              # Import Numpy for computations

from .exceptions import SrtInvalidArgsError

# Machine precision used for the shape matrix checks
EPS = np.finfo(float).eps

def printWarning(text):
    '''
    Print a warning to the console in a colored (yellow) font.
    '''
    
    print('\u001b[33m'+str(text)+'\u001b[0m')
    
def printSuccess(text):
    
    print('\u001b[32m'+str(text)+'\u001b[0m')
    
def tic():
    '''
    Start a timer and return its starting point.
    '''
    
    return time.perf_counter()

def tocDiff(start, verbose=True, label='Time elapsed'):
    '''
    Return (and optionally print) the time elapsed since `start`.

    Parameters
    ----------
    start : float
        Starting point returned by tic().
    verbose : Boolean, default=True
        If True, the elapsed time is printed.

    Returns
    -------
    float
        Elapsed time in seconds.

    '''
    
    diff = time.perf_counter() - start
    
    if verbose:
        print(' -- '+label+': '+str(np.round(diff, 3))+' sec.')
    
    return diff

def asColumnMatrix(x, name='argument'):
    '''
    Convert a numeric input to a finite, two-dimensional float array.
    '''
    
    x = np.array(x, dtype=float, ndmin=2)
    
    if x.ndim != 2:
        raise SrtInvalidArgsError('Expected '+name+' to be a matrix')
    if not np.all(np.isfinite(x)):
        raise SrtInvalidArgsError('Expected '+name+' to have finite entries')
    
    return x

def asVector(x, name='argument'):
    '''
    Convert a numeric input to a finite, one-dimensional float array.
    '''
    
    x = np.array(x, dtype=float)
    
    if x.ndim == 2 and 1 in x.shape:
        x = x.flatten()
    elif x.ndim == 0:
        x = np.reshape(x, (1,))
    
    if x.ndim != 1:
        raise SrtInvalidArgsError('Expected '+name+' to be a vector')
    if not np.all(np.isfinite(x)):
        raise SrtInvalidArgsError('Expected '+name+' to have finite entries')
    
    return x

def readOnly(x):
    
    x = np.array(x, dtype=float)
    x.setflags(write=False)
    
    return x

def checkShapeMatrix(matrix, name='Shape matrix', verbose=True):
    '''
    Validate a (covariance or ellipsoid shape) matrix. A non-symmetric
    matrix is replaced by its symmetric part. Eigenvalues below -2*eps are an
    error; eigenvalues in (-2*eps, eps] only trigger a warning, since the
    matrix then describes a degenerate (deterministic) direction. Both
    thresholds are relative to the largest absolute entry of the matrix.

    Parameters
    ----------
    matrix : ndarray
        Square matrix to check.
    name : str
        Name used in the error and warning messages.

    Returns
    -------
    ndarray
        Symmetric version of the matrix.

    '''
    
    matrix = asColumnMatrix(matrix, name)
    
    if matrix.shape[0] != matrix.shape[1] or matrix.size == 0:
        raise SrtInvalidArgsError(name+' must be a non-empty square matrix')
    
    symm_matrix = (matrix + matrix.T) / 2
    max_err = np.max(np.abs(matrix - symm_matrix))
    scale = np.max(np.abs(symm_matrix))
    scale = scale if scale > 0 else 1.0
    
    if max_err > EPS * scale and verbose:
        printWarning('Warning: non-symmetric '+name.lower()+' made symmetric '+
                     '(max element-wise error: {:1.3e})'.format(max_err))
    
    min_eig_val = np.min(np.linalg.eigvalsh(symm_matrix))
    
    if min_eig_val <= -2*EPS*scale:
        raise SrtInvalidArgsError(name+' can not have negative eigenvalues')
    elif min_eig_val <= EPS*scale and verbose:
        printWarning('Warning: '+name.lower()+' is singular, the random vector '+
                     'might have a deterministic component')
    
    return symm_matrix

def checkTimeHorizon(time_horizon):
    '''
    Ensure that the time horizon is a positive integer scalar.
    '''
    
    if isinstance(time_horizon, (bool, np.bool_)) or \
            not isinstance(time_horizon, (int, np.integer)) or time_horizon <= 0:
        raise SrtInvalidArgsError('Expected a scalar positive integer time_horizon')
    
    return int(time_horizon)

def checkDesiredAccuracy(desired_accuracy):
    
    if isinstance(desired_accuracy, (bool, np.bool_)) or \
            not isinstance(desired_accuracy, (int, float, np.integer, np.floating)) or \
            not (0 < float(desired_accuracy) < 1):
        raise SrtInvalidArgsError('Expected a scalar desired_accuracy in (0,1)')
    
    return float(desired_accuracy)
