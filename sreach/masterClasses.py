#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Master classes: option settings, linear (time-invariant and time-varying)
systems and safety tubes.
______________________________________________________________________________
"""

import copy
import numpy as np              # Import Numpy for computations
import polytope as pc           # Import polytope package

from scipy.linalg import block_diag
from types import MappingProxyType

from .commons import asColumnMatrix, readOnly, checkTimeHorizon
from .exceptions import SrtInvalidArgsError
from .randomVectors import RandomVector

def _defaultOptions():

    # Main settings
    main = dict()
    main['verbose']             = True

    # Settings for the Gaussian-polytope quadrature
    integral = dict()
    integral['desired_accuracy'] = 1e-3
    integral['max_iterations']  = 10 # Maximum number of refinement rounds
    integral['lattice_points']  = 500 # Lattice points per randomization (first round)
    integral['randomizations']  = 12 # Number of random lattice shifts
    integral['seed']            = 0
    integral['psd_tolerance']   = 1e-8

    # Settings for the chance-constrained seed problem
    chance = dict()
    chance['pwa_points']        = 20 # Breakpoints of the piecewise-affine bound
    chance['risk_min']          = 1e-8
    chance['risk_max']          = 0.5
    chance['slack_tolerance']   = 1e-2
    chance['solver']            = None # Use the default solver of cvxpy

    # Settings for the derivative-free refinement
    refine = dict()
    refine['method']            = ['cobyla', 'differential_evolution'][0]
    refine['max_iterations']    = 200
    refine['rhobeg']            = 'auto'
    refine['tol']               = 1e-4
    refine['time_limit']        = None # Wall-clock limit in seconds
    refine['workers']           = 1
    refine['popsize']           = 15

    # Settings for the Lagrangian level set computation
    levelset = dict()
    levelset['projection_solver'] = None # Let polytope choose the method

    return {'main': main, 'integral': integral, 'chance': chance,
            'refine': refine, 'levelset': levelset}

def _checkOption(category, key, value):

    if category == 'main' and key == 'verbose':
        if not isinstance(value, (bool, np.bool_)):
            raise SrtInvalidArgsError('Expected verbose to be a boolean')

    elif key in ['desired_accuracy', 'slack_tolerance', 'psd_tolerance',
                 'risk_min', 'risk_max', 'tol']:
        if isinstance(value, bool) or not isinstance(value, (int, float)) \
                or not value > 0:
            raise SrtInvalidArgsError('Expected '+key+' to be a positive scalar')
        if key in ['desired_accuracy', 'risk_min', 'risk_max'] and not value < 1:
            raise SrtInvalidArgsError('Expected '+key+' to be in (0,1)')

    elif key in ['max_iterations', 'lattice_points', 'randomizations',
                 'pwa_points', 'popsize']:
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) \
                or value < 1:
            raise SrtInvalidArgsError('Expected '+key+' to be a positive integer')
        if key in ['randomizations', 'pwa_points'] and value < 2:
            raise SrtInvalidArgsError('Expected '+key+' to be at least 2')

    elif key == 'method':
        if value not in ['cobyla', 'differential_evolution']:
            raise SrtInvalidArgsError('Unknown refinement method: '+str(value))

    elif key == 'time_limit':
        if value is not None and (isinstance(value, bool) or
                                  not isinstance(value, (int, float)) or value <= 0):
            raise SrtInvalidArgsError('Expected time_limit to be None or positive')

    elif key == 'rhobeg':
        if value != 'auto' and (isinstance(value, bool) or
                                not isinstance(value, (int, float)) or value <= 0):
            raise SrtInvalidArgsError('Expected rhobeg to be "auto" or positive')

def _rebuildSettings(options):

    return settings(**options)

class settings(object):
    '''
    Immutable collection of option categories. Every category is a read-only
    mapping; use setOptions() to obtain an updated copy.
    '''

    _categories = ('main', 'integral', 'chance', 'refine', 'levelset')

    def __init__(self, **categories):

        options = _defaultOptions()

        for category, values in categories.items():
            if category not in options:
                raise SrtInvalidArgsError('Unknown settings category: '+str(category))

            for key, value in values.items():
                if key not in options[category]:
                    raise SrtInvalidArgsError('Unknown option "'+str(key)+
                                              '" in category "'+str(category)+'"')
                _checkOption(category, key, value)
                options[category][key] = value

        if not options['chance']['risk_min'] < options['chance']['risk_max']:
            raise SrtInvalidArgsError('Expected risk_min to be smaller than risk_max')

        for category in self._categories:
            object.__setattr__(self, category,
                               MappingProxyType(options[category]))

    def __setattr__(self, name, value):

        raise AttributeError('settings are immutable; use setOptions() instead')

    def __reduce__(self):

        return (_rebuildSettings, (self.asDict(),))

    def __repr__(self):

        return 'settings('+', '.join(str(c)+'='+str(dict(getattr(self, c)))
                                     for c in self._categories)+')'

    def asDict(self):

        return {category: dict(getattr(self, category))
                for category in self._categories}

    def setOptions(self, category=None, **kwargs):
        '''
        Return a new settings object in which the given options are changed.

        Parameters
        ----------
        category : str, default=None
            Category in which the options are changed ('main' if None).
        **kwargs
            Options to change.

        Returns
        -------
        settings
            New settings object (the current object is not modified).

        '''

        if category is None:
            category = 'main'

        options = self.asDict()

        if category not in options:
            raise SrtInvalidArgsError('Unknown settings category: '+str(category))

        for key, value in kwargs.items():
            if key not in options[category]:
                raise SrtInvalidArgsError('Unknown option "'+str(key)+
                                          '" in category "'+str(category)+'"')
            options[category][str(key)] = value

        new = settings(**options)

        if new.main['verbose']:
            for key, value in kwargs.items():
                print(' >> Changed "'+str(key)+'" in "'+str(category)+'" to "'+str(value)+'"')

        return new

def checkPolytope(P, dim, name):

    if not isinstance(P, pc.Polytope):
        raise SrtInvalidArgsError('Expected '+name+' to be a polytope.Polytope')
    if dim is not None and P.dim != dim:
        raise SrtInvalidArgsError(name+' has incorrect dimensions')
    if not pc.is_fulldim(P):
        raise SrtInvalidArgsError(name+' must be a non-empty (full-dimensional) polytope')

    return P

class LinearSystem(object):
    '''
    Shared interface of the time-invariant and time-varying linear systems
    x[k+1] = A_k x[k] + B_k u[k] + F_k w[k].
    '''

    def __setattr__(self, name, value):

        if self.__dict__.get('_frozen', False):
            raise AttributeError('systems are immutable once constructed')
        object.__setattr__(self, name, value)

    def __repr__(self):

        return '{:s} ({:s}): state dim {:d}, input dim {:d}, disturbance dim {:d}'.format(
            type(self).__name__, self.kind, self.state_dim, self.input_dim,
            self.disturbance_dim)

    @property
    def kind(self):
        '''
        Tag of the system variant, 'controlled' or 'uncontrolled'.
        '''

        return 'controlled' if self.input_dim > 0 else 'uncontrolled'

    @property
    def is_controlled(self):
        return self.input_dim > 0

    @property
    def is_stochastic(self):
        return isinstance(self.disturbance, RandomVector)

    def _setSpaces(self, input_space, disturbance):

        if self.input_dim > 0:
            if input_space is None:
                raise SrtInvalidArgsError('Expected an input_space when an input_matrix is given')
            self.input_space = checkPolytope(input_space, self.input_dim, 'Input space')
        elif input_space is not None:
            raise SrtInvalidArgsError('Input space given without an input_matrix')
        else:
            self.input_space = None

        if disturbance is None:
            if self.disturbance_dim > 0:
                raise SrtInvalidArgsError('Expected a disturbance when a disturbance_matrix is given')
            self.disturbance = None

        elif isinstance(disturbance, RandomVector):
            if disturbance.dim != self.disturbance_dim:
                raise SrtInvalidArgsError('Disturbance and disturbance matrix have different dimensions')
            self.disturbance = disturbance

        elif isinstance(disturbance, pc.Polytope):
            self.disturbance = checkPolytope(disturbance, self.disturbance_dim,
                                              'Disturbance set')
        else:
            raise SrtInvalidArgsError('Expected the disturbance to be a RandomVector or a polytope')

    @staticmethod
    def _disturbanceDim(disturbance):

        if isinstance(disturbance, RandomVector):
            return disturbance.dim
        elif isinstance(disturbance, pc.Polytope):
            return disturbance.dim
        else:
            raise SrtInvalidArgsError('Expected the disturbance to be a RandomVector or a polytope')

class LtiSystem(LinearSystem):
    '''
    Linear time-invariant system. All matrices are copied and made read-only.
    '''

    def __init__(self, state_matrix, input_matrix=None, input_space=None,
                 disturbance_matrix=None, disturbance=None):

        A = asColumnMatrix(state_matrix, 'state_matrix')
        if A.shape[0] != A.shape[1] or A.size == 0:
            raise SrtInvalidArgsError('Expected a non-empty square state_matrix')

        self.state_dim = A.shape[0]
        self.A = readOnly(A)

        # Input matrix
        if input_matrix is None:
            self.B = readOnly(np.zeros((self.state_dim, 0)))
        else:
            B = asColumnMatrix(input_matrix, 'input_matrix')
            if B.shape[0] != self.state_dim:
                # Accept a single input given as a flat vector
                if B.shape[0] == 1 and B.shape[1] == self.state_dim:
                    B = B.T
                else:
                    raise SrtInvalidArgsError('input_matrix has incorrect number of rows')
            self.B = readOnly(B)
        self.input_dim = self.B.shape[1]

        # Disturbance matrix
        if disturbance_matrix is None:
            if disturbance is not None:
                if self._disturbanceDim(disturbance) != self.state_dim:
                    raise SrtInvalidArgsError('Expected a disturbance_matrix for '+
                        'a disturbance of a different dimension than the state')
                self.F = readOnly(np.eye(self.state_dim))
            else:
                self.F = readOnly(np.zeros((self.state_dim, 0)))
        else:
            F = asColumnMatrix(disturbance_matrix, 'disturbance_matrix')
            if F.shape[0] != self.state_dim:
                raise SrtInvalidArgsError('disturbance_matrix has incorrect number of rows')
            self.F = readOnly(F)
        self.disturbance_dim = self.F.shape[1]

        self._setSpaces(input_space, disturbance)

        self._frozen = True

    def getStateMatrix(self, t=0):
        return self.A

    def getInputMatrix(self, t=0):
        return self.B

    def getDisturbanceMatrix(self, t=0):
        return self.F

class LtvSystem(LinearSystem):
    '''
    Linear time-varying system. Every matrix is either a constant array or a
    callable that returns the matrix at time step t.
    '''

    def __init__(self, state_matrix, input_matrix=None, input_space=None,
                 disturbance_matrix=None, disturbance=None):

        self._state_matrix = self._wrap(state_matrix)
        self._input_matrix = self._wrap(input_matrix)
        self._disturbance_matrix = self._wrap(disturbance_matrix)

        # Dimensions are fixed by the matrices at time zero
        A0 = asColumnMatrix(self._state_matrix(0), 'state_matrix')
        if A0.shape[0] != A0.shape[1] or A0.size == 0:
            raise SrtInvalidArgsError('Expected a non-empty square state_matrix')
        self.state_dim = A0.shape[0]

        if input_matrix is None:
            self.input_dim = 0
        else:
            self.input_dim = asColumnMatrix(self._input_matrix(0), 'input_matrix').shape[1]

        if disturbance_matrix is None:
            if disturbance is not None:
                if self._disturbanceDim(disturbance) != self.state_dim:
                    raise SrtInvalidArgsError('Expected a disturbance_matrix for '+
                        'a disturbance of a different dimension than the state')
                self._disturbance_matrix = self._wrap(np.eye(self.state_dim))
                self.disturbance_dim = self.state_dim
            else:
                self.disturbance_dim = 0
        else:
            self.disturbance_dim = asColumnMatrix(self._disturbance_matrix(0),
                                                  'disturbance_matrix').shape[1]

        # Validate the matrices at time zero
        self.getStateMatrix(0)
        self.getInputMatrix(0)
        self.getDisturbanceMatrix(0)

        self._setSpaces(input_space, disturbance)

        self._frozen = True

    @staticmethod
    def _wrap(matrix):

        if matrix is None or callable(matrix):
            return matrix

        matrix = readOnly(asColumnMatrix(matrix))
        return lambda t: matrix

    def _evaluate(self, function, t, shape, name):

        if function is None:
            return readOnly(np.zeros(shape))

        M = asColumnMatrix(function(t), name)
        if M.shape != shape:
            raise SrtInvalidArgsError(name+' at time '+str(t)+' has shape '+
                                      str(M.shape)+' instead of '+str(shape))
        return readOnly(M)

    def getStateMatrix(self, t=0):
        return self._evaluate(self._state_matrix, t,
                              (self.state_dim, self.state_dim), 'state_matrix')

    def getInputMatrix(self, t=0):
        return self._evaluate(self._input_matrix, t,
                              (self.state_dim, self.input_dim), 'input_matrix')

    def getDisturbanceMatrix(self, t=0):
        return self._evaluate(self._disturbance_matrix, t,
                              (self.state_dim, self.disturbance_dim), 'disturbance_matrix')

class Tube(object):
    '''
    Sequence of polytopes, one for every time step 0..N, in which the state
    trajectory must remain.
    '''

    def __init__(self, *sets):

        if len(sets) == 1 and isinstance(sets[0], (list, tuple)):
            sets = sets[0]

        if len(sets) < 2:
            raise SrtInvalidArgsError('Expected a tube of at least two sets (time steps 0 and 1)')

        dim = sets[0].dim if isinstance(sets[0], pc.Polytope) else None

        self._sets = tuple(checkPolytope(P, dim, 'Tube set '+str(i))
                           for i,P in enumerate(sets))
        self.dim = dim

    @classmethod
    def reachAvoid(cls, safe_set, target_set, time_horizon):
        '''
        Tube that is the safe set for time steps 0..N-1 and the target set at
        time step N.
        '''

        N = checkTimeHorizon(time_horizon)
        return cls([safe_set]*N + [target_set])

    @classmethod
    def viability(cls, safe_set, time_horizon):

        N = checkTimeHorizon(time_horizon)
        return cls([safe_set]*(N+1))

    @property
    def time_horizon(self):
        return len(self._sets) - 1

    def __len__(self):
        return len(self._sets)

    def __getitem__(self, index):
        return self._sets[index]

    def __iter__(self):
        return iter(self._sets)

    def __repr__(self):
        return 'Tube of length {:d} in dimension {:d}'.format(len(self), self.dim)

    def __deepcopy__(self, memo):
        return Tube([copy.deepcopy(P, memo) for P in self._sets])

    def concat(self, time_horizon=None):
        '''
        Half-space representation (A, b) of the stacked tube sets for time
        steps 1..N (block diagonal in A).
        '''

        if time_horizon is None:
            time_horizon = self.time_horizon
        N = checkTimeHorizon(time_horizon)

        if N > self.time_horizon:
            raise SrtInvalidArgsError('Time horizon exceeds the length of the tube')

        A_list = [np.array(self._sets[k].A, dtype=float) for k in range(1, N+1)]
        b_list = [np.array(self._sets[k].b, dtype=float).flatten() for k in range(1, N+1)]

        return block_diag(*A_list), np.concatenate(b_list)

    def contains(self, trajectories, abs_tol=1e-9):
        '''
        Check which stacked trajectories x[1..N] (columns of `trajectories`)
        remain in the tube.
        '''

        trajectories = np.array(trajectories, dtype=float)
        if trajectories.ndim == 1:
            trajectories = trajectories[:, np.newaxis]

        N = self.time_horizon
        if trajectories.shape[0] != self.dim*N:
            raise SrtInvalidArgsError('Expected trajectories with {:d} rows'.format(self.dim*N))

        A, b = self.concat(N)

        return np.all(A @ trajectories <= b[:, np.newaxis] + abs_tol, axis=0)

class benchmark_master(object):
    '''
    Base class of the preset benchmark models (see modelDefinitions).
    '''

    def __init__(self, preset):

        self.name = type(self).__name__

        # Time horizon of the reach-avoid problem
        self.horizon = preset.horizon

        self.system = None
        self.x0 = None
        self.safe_set = None
        self.target_set = None

    def __repr__(self):

        return 'Benchmark "'+self.name+'" with horizon '+str(self.horizon)

    def getTube(self):
        '''
        Reach-avoid tube: the safe set until the horizon, and the target set
        at the horizon.
        '''

        return Tube.reachAvoid(self.safe_set, self.target_set, self.horizon)
