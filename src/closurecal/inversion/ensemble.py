# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Ensemble state helpers.

The ensemble is an ``(Nθ, Nensemble)`` array of unconstrained parameters with
one column per member; forward-map output is ``(Nobs, Nensemble)``. These
helpers compute the column statistics shared by the update, the resampler
and the iteration summaries.
"""

import numpy as np

from closurecal.parameters.transforms import PriorsLike, as_prior_list, to_unconstrained


def initial_ensemble(priors: PriorsLike, ensemble_size: int, rng: np.random.Generator) -> np.ndarray:
    """Draw the iteration-0 ensemble from the unconstrained priors.

    Args:
        priors: Priors in parameter order.
        ensemble_size: Number of ensemble members (columns).
        rng: Random source.

    Returns:
        Unconstrained ensemble, shape (Nθ, ensemble_size).
    """
    prior_list = as_prior_list(priors)
    X = np.empty((len(prior_list), ensemble_size))
    for i, prior in enumerate(prior_list):
        X[i] = to_unconstrained(prior).rvs(size=ensemble_size, random_state=rng)
    return X


def ensemble_covariance(X: np.ndarray) -> np.ndarray:
    """Unbiased covariance of the ensemble columns, always 2-D."""
    return np.atleast_2d(np.cov(X, rowvar=True, ddof=1))


def cross_covariance(X: np.ndarray, G: np.ndarray) -> np.ndarray:
    """Unbiased cross-covariance between the columns of ``X`` and ``G``."""
    n_members = X.shape[1]
    X_anom = X - X.mean(axis=1, keepdims=True)
    G_anom = G - G.mean(axis=1, keepdims=True)
    return X_anom @ G_anom.T / (n_members - 1)


def column_has_nonfinite(G: np.ndarray) -> np.ndarray:
    """Boolean vector marking columns of ``G`` with any NaN or inf."""
    return ~np.all(np.isfinite(G), axis=0)


def mean_square_errors(y: np.ndarray, G: np.ndarray) -> np.ndarray:
    """Per-member mean squared error against the observations."""
    return np.mean((np.asarray(y)[:, np.newaxis] - G) ** 2, axis=0)
