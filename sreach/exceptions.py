#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
 ______________________________________
|                                      |
|   STOCHASTIC REACHABILITY TOOLBOX    |
|______________________________________|

Exceptions raised by the toolbox. Infeasibility of a reach-avoid problem is
not an exception: it is reported as a result (see chanceOpen.seedResult).
______________________________________________________________________________
"""

class SrtBaseException(Exception):
    '''
    Base exception for all errors raised inside the toolbox
    '''
    
    def __init__(self, message='', mnemonic='runtime'):
        
        Exception.__init__(self, message)
        
        self.mnemonic = mnemonic
        
    @property
    def identifier(self):
        
        return 'SReachTools:'+self.mnemonic
        
class SrtInvalidArgsError(SrtBaseException, ValueError):
    '''
    Malformed system, tube, horizon, accuracy or covariance. Numerical
    failures inside the quadrature or a solver are re-raised as this error,
    so callers only have to handle a single fault type.
    '''
    
    def __init__(self, message=''):
        
        SrtBaseException.__init__(self, message, mnemonic='invalidArgs')
