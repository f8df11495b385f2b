# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Observation normalization and concatenation into the vector ``y``.
"""

from .normalization import IdentityNormalization, Normalization, ZScore
from .output_map import ConcatenatedOutputMap, ObservationSeries, concatenate_observations

__all__ = [
    "ConcatenatedOutputMap",
    "IdentityNormalization",
    "Normalization",
    "ObservationSeries",
    "ZScore",
    "concatenate_observations",
]
