#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Preset benchmark models. Every model class defines the initial state, the
safe and target sets in its constructor, and the linear system in setModel().
______________________________________________________________________________
"""

import numpy as np              # Import Numpy for computations
import polytope as pc           # Import polytope package

from . import masterClasses as master
from .randomVectors import RandomVector

class double_integrator(master.benchmark_master):

    def __init__(self, preset):
        '''
        Initialize the double integrator class (viability of a box).

        Returns
        -------
        None.

        '''

        # Initialize superclass
        master.benchmark_master.__init__(self, preset)

        # Authority limit for the control u, both positive and negative
        self.uMin = [-0.1]
        self.uMax = [0.1]

        # Safe set K = [-1,1]^2, which is also the target set
        self.safe_set = pc.box2poly([[-1, 1], [-1, 1]])
        self.target_set = pc.box2poly([[-1, 1], [-1, 1]])

        self.x0 = np.array([0, 0])

    def setModel(self):
        '''
        Set linear dynamical system.

        Returns
        -------
        None.

        '''

        # Discretization step size
        self.tau = 0.25

        # State transition matrix
        A = np.array([[1, self.tau],
                      [0, 1]])

        # Input matrix
        B = np.array([[self.tau**2/2],
                      [self.tau]])

        # Covariance of the process noise
        w_cov = np.eye(2) * 0.005

        self.system = master.LtiSystem(
            state_matrix = A,
            input_matrix = B,
            input_space = pc.box2poly(np.column_stack((self.uMin, self.uMax))),
            disturbance_matrix = np.eye(2),
            disturbance = RandomVector('Gaussian', np.zeros(2), w_cov))

class package_delivery(master.benchmark_master):

    def __init__(self, preset):
        '''
        Package delivery benchmark from:
        Huijgevoort et al. (2023). "SySCoRe: Synthesis via Stochastic Coupling Relations"
        (https://arxiv.org/abs/2302.12294)

        Returns
        -------
        None.

        '''

        # Initialize superclass
        master.benchmark_master.__init__(self, preset)

        # Authority limit for the control u, both positive and negative
        self.uMin = [-1, -1]
        self.uMax = [1, 1]

        # Stay within the area, and deliver the package in the goal region
        self.safe_set = pc.box2poly([[-5, 5], [-5, 5]])
        self.target_set = pc.box2poly([[-5, -2], [-5, -2]])

        self.x0 = np.array([4.25, -4.25])

    def setModel(self):

        # Discretization step size
        self.tau = 1

        # State transition matrix
        A = np.eye(2) + np.array([[0.9-1, 0],
                                  [0,   0.8-1]]) * self.tau

        # Input matrix
        B = np.array([[1.4, 0],
                      [0, 1.4]]) * self.tau

        # Covariance of the process noise
        w_cov = np.eye(2) * 0.1 * self.tau**2

        self.system = master.LtiSystem(
            state_matrix = A,
            input_matrix = B,
            input_space = pc.box2poly(np.column_stack((self.uMin, self.uMax))),
            disturbance = RandomVector('Gaussian', np.zeros(2), w_cov))

class drifting_particle(master.benchmark_master):

    def __init__(self, preset):
        '''
        Uncontrolled particle that drifts towards the edge of a box.
        '''

        # Initialize superclass
        master.benchmark_master.__init__(self, preset)

        self.safe_set = pc.box2poly([[-1, 1], [-1, 1]])
        self.target_set = pc.box2poly([[-1, 1], [-1, 1]])

        self.x0 = np.array([0.5, 0])

    def setModel(self):

        A = np.array([[0.95, 0.05],
                      [0, 0.9]])

        # Constant drift in the first state variable
        w_mean = np.array([0.02, 0])
        w_cov = np.eye(2) * 0.01

        self.system = master.LtiSystem(
            state_matrix = A,
            disturbance = RandomVector('Gaussian', w_mean, w_cov))
