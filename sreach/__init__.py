#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Stochastic reachability of target tubes for linear systems with Gaussian
disturbances: reach probabilities, open-loop controller synthesis and
underapproximations of stochastic reach sets.
______________________________________________________________________________
"""

from .exceptions import SrtBaseException, SrtInvalidArgsError
from .masterClasses import settings, LtiSystem, LtvSystem, Tube
from .randomVectors import RandomVector, Ellipsoid, applyLinearMapToEllipsoid
from .mainFunctions import ConcatenatedTrajectory, getConcatMats, \
    getConcatInputSpace, getConcatTargetTube, getHmatMeanCovForXSansInput
from .gaussianIntegral import qscmvnv, iteratedQscmvnv, getProbPolytope, \
    computeReachProb
from .chanceOpen import seedResult, getChanceConstrainedSeed, getPenaltySeed, \
    getOpenLoopSeed
from .pointBased import negLogReachProb, refineInputVector, reachProbability, \
    synthesizeOpenLoopPolicy
from .setComputation import computeXmaxForReachAvoidSet
from .levelSet import getApproxStochasticLevelSetViaLagrangian
from .monteCarlo import monteCarloReachProb

__version__ = '1.0.0'
