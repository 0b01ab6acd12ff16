#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Driver script: synthesize an open-loop controller for one of the benchmark
models, and (optionally) validate it with Monte Carlo simulations and compute
a Lagrangian underapproximation of the stochastic level set.
______________________________________________________________________________
"""

# Load general packages
from datetime import datetime   # Import Datetime to get current date/time
from tabulate import tabulate
import numpy as np              # Import Numpy for computations
import polytope as pc           # Import polytope package
from inspect import getmembers, isclass # To get list of all available models

# Load main classes and methods
from sreach import modelDefinitions
from sreach.commons import printSuccess, printWarning, tic, tocDiff
from sreach.levelSet import getApproxStochasticLevelSetViaLagrangian
from sreach.masterClasses import settings, benchmark_master
from sreach.monteCarlo import monteCarloReachProb
from sreach.pointBased import synthesizeOpenLoopPolicy
from sreach.preprocessing.user_interface import user_choice, parse_arguments

def main(preset):

    current_time = datetime.now().strftime("%H:%M:%S")
    print('Program started at {}'.format(current_time))
    print('\n',tabulate(vars(preset).items(), headers=["Argument", "Value"]),'\n')

    #-------------------------------------------------------------------------
    # Load model classes
    #-------------------------------------------------------------------------

    # Retreive a list of all available models
    modelClasses = dict((name, cls) for name, cls in
                        getmembers(modelDefinitions, isclass)
                        if issubclass(cls, benchmark_master) and
                        cls is not benchmark_master)

    if preset.application == -1:
        preset.application, _  = user_choice('application',
                                             sorted(modelClasses.keys()))

    if preset.application not in modelClasses:
        raise SystemExit('Unknown application: '+str(preset.application))

    # Create model object
    model = modelClasses[preset.application](preset)
    model.setModel()

    #-------------------------------------------------------------------------
    # Create settings object + change manual settings
    #-------------------------------------------------------------------------

    setup = settings()
    setup = setup.setOptions(category='main', verbose=preset.verbose)
    setup = setup.setOptions(category='integral', desired_accuracy=preset.accuracy)
    setup = setup.setOptions(category='refine', method=preset.method)

    print('\n+++++++++++++++++++++++++++++++++++++++++++++++++++++\n')
    print('MODEL: '+str(model))
    print('\n+++++++++++++++++++++++++++++++++++++++++++++++++++++\n')

    tube = model.getTube()
    results = [['Application', model.name],
               ['System', model.system.kind],
               ['Initial state', np.round(model.x0, 3)]]

    #-------------------------------------------------------------------------
    # Open-loop controller synthesis
    #-------------------------------------------------------------------------

    start = tic()
    lb_reach_prob, input_vector = synthesizeOpenLoopPolicy(
        model.system, model.x0, tube, preset.accuracy, setup)
    results += [['Reach probability (lower bound)', np.round(lb_reach_prob, 4)],
                ['Synthesis time [s]', np.round(tocDiff(start, verbose=False), 2)]]

    if lb_reach_prob < 0:
        printWarning('Warning: no feasible open-loop controller found')
    elif len(input_vector) > 0:
        printSuccess('Open-loop controller found')
        results += [['Open-loop inputs', np.round(input_vector, 4)]]

    #-------------------------------------------------------------------------
    # Monte Carlo validation
    #-------------------------------------------------------------------------

    if preset.monte_carlo_iterations > 0 and lb_reach_prob >= 0:
        mc_prob = monteCarloReachProb(model.system, model.x0, tube,
                                      input_vector if len(input_vector) > 0 else None,
                                      preset.monte_carlo_iterations, seed=0)
        results += [['Reach probability (Monte Carlo)', np.round(mc_prob, 4)]]

    #-------------------------------------------------------------------------
    # Lagrangian underapproximation of the level set
    #-------------------------------------------------------------------------

    if 0 < preset.level_set_beta < 1:
        start = tic()
        level_set = getApproxStochasticLevelSetViaLagrangian(
            model.system, preset.level_set_beta, tube, options=setup)
        nonempty = not pc.is_empty(level_set)
        results += [['Level set facets', len(level_set.b) if nonempty else 0],
                    ['Level set volume', np.round(level_set.volume, 4) if nonempty else 0],
                    ['Level set time [s]', np.round(tocDiff(start, verbose=False), 2)]]

    print('\n',tabulate(results, headers=["Result", "Value"]),'\n')

    datestring_end = datetime.now().strftime("%m-%d-%Y %H-%M-%S")
    print('\n+++++++++++++++++++++++++++++++++++++++++++++++++++++\n')
    print('APPLICATION FINISHED AT', datestring_end)

    return results

if __name__ == '__main__':

    preset = parse_arguments(run_in_vscode = False)
    main(preset)
