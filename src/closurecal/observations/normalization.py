# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Normalizations for observed time series.

A normalization is fit once on the observed data and then applied, with the
same constants, to both the observations and the matching model output, so
that fields with different units contribute comparably to the mismatch.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np

from closurecal.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Normalization(ABC):
    """Abstract base class for normalizations."""

    @abstractmethod
    def fit(self, observed: np.ndarray) -> 'Normalization':
        """Compute normalization constants from observed data."""
        ...

    @abstractmethod
    def normalize(self, values: np.ndarray) -> np.ndarray:
        """Apply the fitted normalization."""
        ...


class IdentityNormalization(Normalization):
    """Leave values unchanged."""

    def fit(self, observed: np.ndarray) -> 'IdentityNormalization':
        return self

    def normalize(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values, dtype=float)


class ZScore(Normalization):
    """Subtract the observed mean and divide by the observed std.

    A constant observed series has zero spread; its std is replaced by 1 so
    that only the mean is removed.
    """

    def __init__(self):
        self.mean = None
        self.std = None

    def fit(self, observed: np.ndarray) -> 'ZScore':
        observed = np.asarray(observed, dtype=float)
        finite = observed[np.isfinite(observed)]
        if finite.size == 0:
            raise ConfigurationError("Cannot fit ZScore to data without finite values")

        self.mean = float(np.mean(finite))
        std = float(np.std(finite))
        if std < 1e-12:
            logger.warning("Observed series has zero variance; ZScore will only remove the mean")
            std = 1.0
        self.std = std
        return self

    def normalize(self, values: np.ndarray) -> np.ndarray:
        if self.mean is None:
            raise ConfigurationError("ZScore.normalize called before fit")
        return (np.asarray(values, dtype=float) - self.mean) / self.std
