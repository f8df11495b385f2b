# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Free parameters, bounded priors and the constrained/unconstrained transforms.
"""

from .free_parameters import (
    ClosureParameters,
    FreeParameters,
    closures_for_ensemble,
    constrained_forward_map,
)
from .priors import ScaledLogitNormal
from .transforms import (
    covariance_to_constrained,
    to_constrained,
    to_unconstrained,
    to_unconstrained_values,
)

__all__ = [
    "ClosureParameters",
    "FreeParameters",
    "ScaledLogitNormal",
    "closures_for_ensemble",
    "constrained_forward_map",
    "covariance_to_constrained",
    "to_constrained",
    "to_unconstrained",
    "to_unconstrained_values",
]
