# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Configuration for closurecal.

Re-exports the Pydantic models so callers can write
``from closurecal.core.config import CalibrationConfig``.
"""

from .models import (
    CalibrationConfig,
    EKIConfig,
    PriorConfig,
    ResamplerConfig,
)

__all__ = [
    "CalibrationConfig",
    "EKIConfig",
    "PriorConfig",
    "ResamplerConfig",
]
