# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Ensemble Kalman Inversion update.

Implements the stochastic (perturbed-observation) EKI step, which moves each
ensemble member toward a perturbed copy of the observations with a gain
computed from the ensemble's own statistics. No derivative of the forward
map is needed.

References:
    Iglesias, M.A., Law, K.J.H. & Stuart, A.M. (2013). Ensemble Kalman
    methods for inverse problems. Inverse Problems, 29, 045001.
"""

import logging

import numpy as np
from scipy import linalg

from closurecal.core.exceptions import DimensionMismatchError, require

from .ensemble import column_has_nonfinite, cross_covariance

logger = logging.getLogger(__name__)


def kalman_gain(X: np.ndarray, G: np.ndarray, noise_covariance: np.ndarray) -> np.ndarray:
    """Compute ``K = C_θG (C_GG + Γy)⁻¹``.

    Args:
        X: Unconstrained ensemble, shape (Nθ, Nensemble).
        G: Forward-map output, shape (Nobs, Nensemble).
        noise_covariance: Observation noise covariance Γy, shape (Nobs, Nobs).

    Returns:
        Kalman gain, shape (Nθ, Nobs).
    """
    C_xg = cross_covariance(X, G)   # (Nθ, Nobs)
    C_gg = cross_covariance(G, G)   # (Nobs, Nobs)
    innovation_cov = C_gg + noise_covariance

    # K = C_xg S⁻¹ with S symmetric, so K = (S⁻¹ C_xgᵀ)ᵀ
    try:
        factor = linalg.cho_factor(innovation_cov, lower=True)
        return linalg.cho_solve(factor, C_xg.T).T
    except linalg.LinAlgError:
        logger.warning("Innovation covariance not positive definite, using least-squares solve")
        return linalg.lstsq(innovation_cov, C_xg.T)[0].T


def ensemble_kalman_update(
    X: np.ndarray,
    G: np.ndarray,
    y: np.ndarray,
    noise_covariance: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """Perform one stochastic EKI step.

    Each member ``j`` becomes ``X_j + K (y + η_j - G_j)`` with independent
    ``η_j ~ N(0, Γy)``.

    Args:
        X: Unconstrained ensemble, shape (Nθ, Nensemble).
        G: Forward-map output for ``X``, shape (Nobs, Nensemble).
        y: Observations, shape (Nobs,).
        noise_covariance: Γy, shape (Nobs, Nobs).
        rng: Random source for the observation perturbations.

    Returns:
        Updated ensemble, shape (Nθ, Nensemble).

    Raises:
        CalibrationError: If ``G`` contains non-finite values.
        DimensionMismatchError: If the shapes are inconsistent.
    """
    n_members = X.shape[1]
    n_obs = y.shape[0]

    if G.shape != (n_obs, n_members):
        raise DimensionMismatchError(
            f"Forward map output has shape {G.shape}, expected ({n_obs}, {n_members})"
        )
    require(
        not column_has_nonfinite(G).any(),
        "Non-finite forward map output reached the ensemble update; "
        "failed particles must be resampled first",
    )

    K = kalman_gain(X, G, noise_covariance)

    # One perturbation per member, as columns
    perturbations = rng.multivariate_normal(np.zeros(n_obs), noise_covariance, size=n_members).T
    innovation = y[:, np.newaxis] + perturbations - G   # (Nobs, Nensemble)

    return X + K @ innovation
