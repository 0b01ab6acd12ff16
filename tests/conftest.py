"""Pytest configuration and shared fixtures for the stochastic reachability tests."""

import sys
from pathlib import Path

import numpy as np
import polytope as pc
import pytest

# Add the repository root to the path for imports
root_path = Path(__file__).parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

from sreach.masterClasses import settings, LtiSystem, Tube
from sreach.randomVectors import RandomVector


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests that run an optimization or a large simulation",
    )


@pytest.fixture(scope="session")
def quiet_options():
    """Default settings without console output."""
    return settings(main={'verbose': False})


@pytest.fixture(scope="session")
def safe_box():
    """Safe set [-1,1]^2."""
    return pc.box2poly([[-1, 1], [-1, 1]])


@pytest.fixture(scope="session")
def double_integrator():
    """Double integrator with bounded input and Gaussian disturbance."""
    T = 0.25
    return LtiSystem(
        state_matrix=np.array([[1, T], [0, 1]]),
        input_matrix=np.array([[T**2/2], [T]]),
        input_space=pc.box2poly([[-0.1, 0.1]]),
        disturbance_matrix=np.eye(2),
        disturbance=RandomVector('Gaussian', np.zeros(2), 0.005*np.eye(2)))


@pytest.fixture(scope="session")
def viability_tube(safe_box):
    """Horizon-6 tube of the [-1,1]^2 box."""
    return Tube.viability(safe_box, 6)
