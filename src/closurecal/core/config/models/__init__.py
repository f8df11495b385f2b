# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""Typed configuration models."""

from .base import FROZEN_CONFIG
from .inversion import (
    CalibrationConfig,
    EKIConfig,
    PriorConfig,
    ResamplerConfig,
    ResamplingDistributionType,
)

__all__ = [
    "FROZEN_CONFIG",
    "CalibrationConfig",
    "EKIConfig",
    "PriorConfig",
    "ResamplerConfig",
    "ResamplingDistributionType",
]
