# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Inversion diagnostics.

Provides convergence statistics across iterations:
- Iteration history table (MSE, ensemble mean and variance)
- Ensemble spread and collapse detection
- Relative error reduction
"""

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from .summary import IterationSummary

logger = logging.getLogger(__name__)


def summaries_to_frame(summaries: Sequence[IterationSummary]) -> pd.DataFrame:
    """Tabulate iteration summaries, one row per iteration.

    Columns are ``mse_min``, ``mse_mean``, ``mse_max`` followed by
    ``mean_<name>`` and ``var_<name>`` for every parameter.

    Args:
        summaries: Iteration summaries in iteration order.

    Returns:
        DataFrame indexed by iteration.
    """
    rows = []
    for summary in summaries:
        mse = summary.mean_square_errors
        row = {
            'iteration': summary.iteration,
            'mse_min': float(np.min(mse)),
            'mse_mean': float(np.mean(mse)),
            'mse_max': float(np.max(mse)),
        }
        for name in summary.names:
            row[f'mean_{name}'] = summary.ensemble_mean[name]
        for name in summary.names:
            row[f'var_{name}'] = summary.ensemble_var[name]
        rows.append(row)

    return pd.DataFrame(rows).set_index('iteration')


def ensemble_spread(X: np.ndarray) -> np.ndarray:
    """Per-parameter standard deviation of the unconstrained ensemble.

    Args:
        X: Unconstrained ensemble, shape (Nθ, Nensemble).

    Returns:
        Spread of each parameter, shape (Nθ,).
    """
    return np.std(X, axis=1, ddof=1)


def has_collapsed(X: np.ndarray, tol: float = 1e-8) -> bool:
    """True when every parameter's ensemble spread is below ``tol``.

    A collapsed ensemble has a vanishing Kalman gain and will not move.
    """
    collapsed = bool(np.all(ensemble_spread(X) < tol))
    if collapsed:
        logger.warning(f"Ensemble has collapsed (spread < {tol:g} for all parameters)")
    return collapsed


def error_reduction(summaries: Sequence[IterationSummary]) -> float:
    """Relative reduction of the mean MSE from the first to the last summary.

    Returns 0.0 for fewer than two summaries or a zero initial error.
    """
    if len(summaries) < 2:
        return 0.0
    first = float(np.mean(summaries[0].mean_square_errors))
    last = float(np.mean(summaries[-1].mean_square_errors))
    if first <= 1e-12:
        return 0.0
    return (first - last) / first
