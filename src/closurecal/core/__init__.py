# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""Core infrastructure: exceptions, configuration and logging."""

from .exceptions import (
    CalibrationError,
    ClosurecalError,
    ConfigurationError,
    DimensionMismatchError,
    ExcessiveFailureError,
    InvalidPriorError,
    ResamplingExhaustedError,
)
from .logging_utils import configure_logging

__all__ = [
    "CalibrationError",
    "ClosurecalError",
    "ConfigurationError",
    "DimensionMismatchError",
    "ExcessiveFailureError",
    "InvalidPriorError",
    "ResamplingExhaustedError",
    "configure_logging",
]
