"""
Root conftest.py - Fixtures shared across all tests.

Provides seeded random generators, a small set of bounded priors and a
linear forward map whose exact solution is known.
"""

import numpy as np
import pytest

from closurecal.parameters import FreeParameters, ScaledLogitNormal

N_OBS = 10


@pytest.fixture
def rng():
    """Seeded generator; every test gets a fresh one."""
    return np.random.default_rng(42)


@pytest.fixture
def two_parameters():
    """Two bounded parameters with different scales."""
    return FreeParameters({
        'a': ScaledLogitNormal(mean=0.5, std=0.1, lower=0.0, upper=1.0),
        'b': ScaledLogitNormal(mean=2.0, std=0.5, lower=0.0, upper=5.0),
    })


def padded_output(theta: np.ndarray, n_obs: int = N_OBS) -> np.ndarray:
    """Place physical parameters in the first rows of a zero (Nobs, N) array."""
    theta = np.atleast_2d(theta)
    G = np.zeros((n_obs, theta.shape[1]))
    G[:theta.shape[0]] = theta
    return G


@pytest.fixture
def padded_forward_map(two_parameters):
    """Unconstrained forward map returning physical values padded to Nobs rows."""
    def forward_map(X):
        return padded_output(two_parameters.to_constrained(X))
    return forward_map


@pytest.fixture
def pad():
    """The padding helper used by ``padded_forward_map``."""
    return padded_output
