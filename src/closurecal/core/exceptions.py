# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Custom exception hierarchy for closurecal.

This module defines a hierarchy of exceptions that provide clear, specific
error types for the failure modes of an ensemble Kalman inversion: malformed
priors and settings at construction time, and forward-map failures while
iterating.
"""

import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence


class ClosurecalError(Exception):
    """
    Base exception for all closurecal-specific errors.

    All custom exceptions in closurecal should inherit from this class.
    This allows catching all closurecal errors with a single except clause.
    """
    pass


class ConfigurationError(ClosurecalError):
    """
    Configuration-related errors.

    Raised when:
    - Required configuration keys are missing
    - Configuration values are invalid
    - Configuration file cannot be loaded or parsed
    - A closure is asked to override a field it does not declare calibratable
    """
    pass


class InvalidPriorError(ConfigurationError):
    """
    Malformed prior distribution.

    Raised when:
    - The bounds do not strictly contain the target mean
    - The standard deviation is not positive
    - No bounded distribution with the requested mean can reach the
      requested standard deviation
    """
    pass


class CalibrationError(ClosurecalError):
    """
    Inversion failures.

    Raised when:
    - The ensemble update sees non-finite forward-map output
    - The forward map returns an array of the wrong shape
    - Too many ensemble members fail to produce a forward-map output
    """
    pass


class DimensionMismatchError(CalibrationError):
    """
    Forward-map output shape disagrees with the observations.

    Raised when:
    - The number of output rows differs from the observation vector length
    - The number of output columns differs from the ensemble size
    """
    pass


class ExcessiveFailureError(CalibrationError):
    """
    Too many ensemble members failed in a single forward-map evaluation.

    Aborts the current ``iterate`` call. Carries the failure fraction, the
    indices of failed ensemble members and their physical parameter values
    so that the caller can narrow priors or shorten the forward run.
    """

    def __init__(
        self,
        failure_fraction: float,
        failed_indices: Sequence[int],
        failed_parameters: Optional[List[Dict[str, float]]] = None,
        message: Optional[str] = None,
    ):
        self.failure_fraction = float(failure_fraction)
        self.failed_indices = [int(i) for i in failed_indices]
        self.failed_parameters = failed_parameters or []

        if message is None:
            message = (
                f"The forward map for {len(self.failed_indices)} particles "
                f"({100 * self.failure_fraction:.1f}%) included non-finite values. Consider\n"
                "    1. Increasing Resampler.acceptable_failure_fraction,\n"
                "    2. Reducing the time-step of the forward simulation,\n"
                "    3. Evolving the forward simulation for less time,\n"
                "    4. Narrowing the parameter priors."
            )
        super().__init__(message)


class ResamplingExhaustedError(CalibrationError):
    """
    Resampling could not find enough successful replacement particles.

    Raised when:
    - ``Resampler.max_batches`` full-ensemble batches were evaluated without
      accumulating the required number of finite forward-map outputs
    """
    pass


# =============================================================================
# Validation Helpers
# =============================================================================


def require(condition: bool, message: str, error_type: type = None) -> None:
    """
    Validate a condition, raising an exception if it fails.

    This replaces assert statements with proper validation that cannot be
    disabled with python -O.

    Args:
        condition: The condition that must be True
        message: Error message if condition is False
        error_type: Exception type to raise (default: CalibrationError)

    Raises:
        CalibrationError (or specified error_type) if condition is False

    Example:
        >>> require(np.all(np.isfinite(G)), "Forward map output must be finite")
    """
    if error_type is None:
        error_type = CalibrationError
    if not condition:
        raise error_type(message)


@contextmanager
def calibration_error_handler(
    operation: str,
    logger: Optional[logging.Logger] = None,
    reraise: bool = True,
    error_type: type = CalibrationError
):
    """
    Context manager for standardized error handling.

    closurecal errors pass through untouched; anything else is logged and
    converted to ``error_type``.

    Args:
        operation: Description of the operation being performed (for logging)
        logger: Logger instance for error messages. If None, errors are not logged.
        reraise: Whether to re-raise the exception after handling (default: True)
        error_type: closurecal exception type to convert generic exceptions to

    Example:
        >>> with calibration_error_handler("forward map evaluation", logger):
        ...     G = forward_map(X)
    """
    try:
        yield
    except ClosurecalError:
        if logger:
            logger.error(f"Error during {operation}", exc_info=True)
        if reraise:
            raise
    except Exception as e:
        if logger:
            logger.error(f"Error during {operation}: {e}", exc_info=True)
        if reraise:
            raise error_type(f"Failed during {operation}: {e}") from e


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Base
    'ClosurecalError',
    # Domain exceptions
    'ConfigurationError',
    'InvalidPriorError',
    'CalibrationError',
    'DimensionMismatchError',
    'ExcessiveFailureError',
    'ResamplingExhaustedError',
    # Helpers
    'require',
    'calibration_error_handler',
]
