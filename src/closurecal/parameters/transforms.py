# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Transforms between constrained (physical) and unconstrained parameter space.

All array functions take the priors in parameter order and an array whose
first axis runs over parameters: either a length-Nθ vector or an
``(Nθ, Nensemble)`` matrix with one column per ensemble member.
"""

from typing import Mapping, Sequence, Union

import numpy as np

from closurecal.core.exceptions import DimensionMismatchError

from .priors import ScaledLogitNormal

PriorsLike = Union[Sequence[ScaledLogitNormal], Mapping[str, ScaledLogitNormal], object]


def as_prior_list(priors: PriorsLike) -> list:
    """Accept a sequence of priors, a name->prior mapping or FreeParameters."""
    inner = getattr(priors, 'priors', None)
    if isinstance(inner, Mapping):
        priors = inner
    if isinstance(priors, Mapping):
        return list(priors.values())
    return list(priors)


def _check_rows(prior_list: list, X: np.ndarray) -> None:
    if X.ndim not in (1, 2) or X.shape[0] != len(prior_list):
        raise DimensionMismatchError(
            f"Expected {len(prior_list)} parameter rows, got array of shape {X.shape}"
        )


def to_unconstrained(prior: ScaledLogitNormal):
    """Return the unconstrained-space distribution of ``prior`` (standard normal)."""
    return prior.unconstrained_distribution()


def to_constrained(priors: PriorsLike, X) -> np.ndarray:
    """Map unconstrained parameters to physical units, row by row.

    Args:
        priors: Priors in parameter order.
        X: Unconstrained array, shape (Nθ,) or (Nθ, Nensemble).

    Returns:
        Array of the same shape with every row inside its prior's bounds.
    """
    prior_list = as_prior_list(priors)
    X = np.asarray(X, dtype=float)
    _check_rows(prior_list, X)

    theta = np.empty_like(X)
    for i, prior in enumerate(prior_list):
        theta[i] = prior.to_constrained(X[i])
    return theta


def to_unconstrained_values(priors: PriorsLike, theta) -> np.ndarray:
    """Inverse of :func:`to_constrained` for values strictly inside the bounds."""
    prior_list = as_prior_list(priors)
    theta = np.asarray(theta, dtype=float)
    _check_rows(prior_list, theta)

    X = np.empty_like(theta)
    for i, prior in enumerate(prior_list):
        X[i] = prior.to_unconstrained(theta[i])
    return X


def covariance_to_constrained(priors: PriorsLike, X, covariance) -> np.ndarray:
    """Propagate an unconstrained covariance estimate to physical units.

    Uses the delta method: ``J Σ Jᵀ`` with ``J = diag(dθ/dx)`` evaluated at
    the ensemble mean of ``X``. This is a first-order approximation; it is
    exact only for a linear transform and degrades as the ensemble spreads
    into the curved tails of the logistic map near the bounds. Treat the
    resulting variances as approximate.

    Args:
        priors: Priors in parameter order.
        X: Unconstrained ensemble, shape (Nθ, Nensemble) or (Nθ,).
        covariance: Unconstrained covariance, shape (Nθ, Nθ).

    Returns:
        Approximate constrained covariance, shape (Nθ, Nθ).
    """
    prior_list = as_prior_list(priors)
    X = np.asarray(X, dtype=float)
    _check_rows(prior_list, X)
    covariance = np.atleast_2d(np.asarray(covariance, dtype=float))

    n_params = len(prior_list)
    if covariance.shape != (n_params, n_params):
        raise DimensionMismatchError(
            f"Expected covariance of shape ({n_params}, {n_params}), got {covariance.shape}"
        )

    x_bar = X.mean(axis=1) if X.ndim == 2 else X
    jacobian = np.array([prior.derivative(x_bar[i]) for i, prior in enumerate(prior_list)])

    return jacobian[:, np.newaxis] * covariance * jacobian[np.newaxis, :]
