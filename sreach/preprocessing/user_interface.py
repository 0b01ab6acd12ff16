#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Command line arguments and interactive choices of the driver script.
______________________________________________________________________________
"""

import sys

import argparse

def parse_arguments(run_in_vscode=False, argv=None):
    """
    Function to parse arguments provided

    Parameters
    ----------
    :run_in_vscode: Ignore the command line arguments (use the defaults)
    :argv: List of arguments to parse instead of the command line

    Returns
    -------
    :args: Namespace with all arguments

    """

    if run_in_vscode:
        argv = []
    elif argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Stochastic reachability of target tubes")

    parser.add_argument('--application', type=str, action="store", dest='application',
                        default=-1, help="Application/class name")

    parser.add_argument('--horizon', type=int, action="store", dest='horizon',
                        default=6, help="Time horizon (nr discrete steps) for the reach-avoid problem")

    parser.add_argument('--accuracy', type=float, action="store", dest='accuracy',
                        default=1e-3, help="Desired accuracy of the Gaussian quadrature")

    parser.add_argument('--method', type=str, action="store", dest='method',
                        default='cobyla', choices=['cobyla', 'differential_evolution'],
                        help="Derivative-free method to refine the open-loop controller")

    parser.add_argument('--monte_carlo_iterations', type=int, action="store", dest='monte_carlo_iterations',
                        default=-1, help="Number of Monte Carlo iterations (if -1 is given, no MC is performed)")

    parser.add_argument('--level_set_beta', type=float, action="store", dest='level_set_beta',
                        default=-1, help="Probability threshold of the Lagrangian level set (if -1 is given, no level set is computed)")

    parser.add_argument('--verbose', dest='verbose', action='store_true',
                        help="If true, progress of the computations is printed")
    parser.set_defaults(verbose=False)

    # Now, parse the command line arguments and store the
    # values in the `args` variable
    args = parser.parse_args(argv)

    if args.horizon < 1:
        parser.error('the horizon must be a positive integer')
    if not 0 < args.accuracy < 1:
        parser.error('the accuracy must be in (0,1)')

    return args

def user_choice(title, items):
    '''
    Lets a user choose between the entries of `items`

    Parameters
    ----------
    title : str
        Title which to show above the choice.
    items : list
        List of strings for the items to choose from.

    Returns
    -------
    choice : str
        String of the chosen item.
    choice_id : int
        Integer index of the chosen item.

    '''

    if len(items) > 1:
        # List of items provided, so let user choose

        print('\nMake a choice for:',str(title))
        for i,item in enumerate(items):
            print(' -- Type',str(i),'for',str(item))
        output = -1
        while output not in range(len(items)):
            try:
                output = int(input('Please choose your option: '))
            except ValueError:
                output = -1

        choice = items[output]
        print('\n >> Choice provided is',output,'('+str(choice)+')\n')

        choice_id = output

    else:
        # Zero or one item provided

        print('\nSingle item provided; return the first item')

        choice = items[0] if len(items) > 0 else None
        choice_id = 0

    return choice, choice_id
