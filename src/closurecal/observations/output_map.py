# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Observation vector assembly.

Concatenates normalized observed series into the fixed-length vector ``y``
and maps per-member model output onto the same layout, giving the
``(Nobs, Nensemble)`` forward-map output expected by the inversion.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from closurecal.core.exceptions import ConfigurationError, DimensionMismatchError

from .normalization import IdentityNormalization, Normalization


@dataclass
class ObservationSeries:
    """One observed field.

    Attributes:
        name: Field name, matching the key of the model output.
        values: Observed values of any shape (e.g. time x depth).
        normalization: Fit on ``values`` when the output map is built.
    """
    name: str
    values: np.ndarray
    normalization: Normalization = field(default_factory=IdentityNormalization)

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=float)


class ConcatenatedOutputMap:
    """Shared layout for observations and forward-map output.

    Calling the instance returns the observation vector ``y``, so it can be
    passed directly as the ``observations`` argument of the inversion.

    Args:
        series: Observed fields, in concatenation order.
    """

    def __init__(self, series: Sequence[ObservationSeries]):
        if not series:
            raise ConfigurationError("At least one observation series is required")
        names = [s.name for s in series]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate observation names: {names}")

        self.series: List[ObservationSeries] = list(series)
        for s in self.series:
            s.normalization.fit(s.values)

        self._y = np.concatenate([s.normalization.normalize(s.values).ravel() for s in self.series])

    @property
    def n_obs(self) -> int:
        return self._y.size

    def __call__(self) -> np.ndarray:
        return self._y.copy()

    def map_outputs(self, outputs: Dict[str, np.ndarray]) -> np.ndarray:
        """Normalize and stack model output for a whole ensemble.

        Args:
            outputs: Field name -> array of shape (Nensemble, *series shape).

        Returns:
            Forward-map output of shape (Nobs, Nensemble).
        """
        blocks = []
        n_members = None
        for s in self.series:
            if s.name not in outputs:
                raise DimensionMismatchError(f"Model output is missing field '{s.name}'")
            values = np.asarray(outputs[s.name], dtype=float)
            if values.shape[1:] != s.values.shape:
                raise DimensionMismatchError(
                    f"Field '{s.name}' has per-member shape {values.shape[1:]}, "
                    f"expected {s.values.shape}"
                )
            if n_members is None:
                n_members = values.shape[0]
            elif values.shape[0] != n_members:
                raise DimensionMismatchError(
                    f"Field '{s.name}' has {values.shape[0]} members, expected {n_members}"
                )
            normalized = s.normalization.normalize(values)
            blocks.append(normalized.reshape(n_members, -1).T)

        return np.concatenate(blocks, axis=0)


def concatenate_observations(series: Sequence[ObservationSeries]) -> np.ndarray:
    """Normalized, concatenated observation vector for ``series``."""
    return ConcatenatedOutputMap(series)()
