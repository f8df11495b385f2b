# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Ensemble Kalman Inversion (EKI) engine.
"""

from .diagnostics import ensemble_spread, error_reduction, has_collapsed, summaries_to_frame
from .driver import EnsembleKalmanInversion, calibrate, construct, construct_noise_covariance, iterate
from .eki_update import ensemble_kalman_update, kalman_gain
from .ensemble import column_has_nonfinite, initial_ensemble, mean_square_errors
from .resampling import EnsembleDistribution, Resampler
from .summary import IterationSummary, build_summary

__all__ = [
    "EnsembleKalmanInversion",
    "EnsembleDistribution",
    "IterationSummary",
    "Resampler",
    "build_summary",
    "calibrate",
    "column_has_nonfinite",
    "construct",
    "construct_noise_covariance",
    "ensemble_kalman_update",
    "ensemble_spread",
    "error_reduction",
    "has_collapsed",
    "initial_ensemble",
    "iterate",
    "kalman_gain",
    "mean_square_errors",
    "summaries_to_frame",
]
