# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Per-iteration summaries of an ensemble Kalman inversion.

A summary is recorded once for every completed iteration (iteration 0 is
the prior draw) and never modified afterwards. All parameter statistics are
reported in physical (constrained) units.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

import numpy as np

from closurecal.parameters.free_parameters import FreeParameters
from closurecal.parameters.transforms import covariance_to_constrained

from .ensemble import ensemble_covariance, mean_square_errors


def _readonly(array) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class IterationSummary:
    """Snapshot of the ensemble after one iteration.

    Mappings are read-only views and arrays are not writeable.

    Attributes:
        parameters: Physical parameters for every member, in member order.
        ensemble_mean: Physical image of the unconstrained ensemble mean.
        ensemble_cov: Approximate physical covariance (delta method).
        ensemble_var: Diagonal of ``ensemble_cov`` by parameter name.
        mean_square_errors: Per-member MSE against the observations.
        iteration: Iteration index, 0 for the prior draw.
    """
    parameters: Tuple[Mapping[str, float], ...]
    ensemble_mean: Mapping[str, float]
    ensemble_cov: np.ndarray
    ensemble_var: Mapping[str, float]
    mean_square_errors: np.ndarray
    iteration: int

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self.ensemble_mean)

    @property
    def best_particle(self) -> int:
        """Index of the member with the smallest mean squared error."""
        return int(np.argmin(self.mean_square_errors))

    @property
    def worst_particle(self) -> int:
        return int(np.argmax(self.mean_square_errors))

    def describe(self) -> str:
        return (
            f"IterationSummary for {len(self.parameters)} particles and "
            f"{len(self.ensemble_mean)} parameters at iteration {self.iteration}"
        )

    def __str__(self) -> str:
        names = self.names
        matrix = np.array([[p[name] for p in self.parameters] for name in names])
        best, worst = self.best_particle, self.worst_particle

        lines = [
            self.describe(),
            "                      " + "".join(_name_cell(n) for n in names),
            "       ensemble_mean: " + "".join(_value_cell(self.ensemble_mean[n]) for n in names),
            _particle_line("best", self.mean_square_errors[best], self.parameters[best], names),
            _particle_line("worst", self.mean_square_errors[worst], self.parameters[worst], names),
            "             minimum: " + "".join(_value_cell(v) for v in matrix.min(axis=1)),
            "             maximum: " + "".join(_value_cell(v) for v in matrix.max(axis=1)),
            "   ensemble_variance: " + "".join(_value_cell(self.ensemble_var[n]) for n in names),
        ]
        return "\n".join(lines)


def _name_cell(name: str) -> str:
    return f"{name[:9]:>10s} | "


def _value_cell(value: float) -> str:
    return f"{value: .3e} | "


def _particle_line(label: str, error: float, parameters: Mapping[str, float], names) -> str:
    cells = "".join(_value_cell(parameters[n]) for n in names)
    return f"{label:>11s} particle: {cells}error = {error:.6e}"


def build_summary(
    free_parameters: FreeParameters,
    y: np.ndarray,
    X: np.ndarray,
    G: np.ndarray,
    iteration: int,
) -> IterationSummary:
    """Summarize the unconstrained ensemble ``X`` and its outputs ``G``.

    The mean is the pointwise physical image of the unconstrained mean, and
    the covariance is propagated with the delta method, so both are
    approximations of the physical ensemble statistics rather than sample
    moments of the physical ensemble.
    """
    names = free_parameters.names

    theta = free_parameters.to_constrained(X)
    x_bar = X.mean(axis=1)
    theta_bar = free_parameters.to_constrained(x_bar)

    covariance = covariance_to_constrained(free_parameters, X, ensemble_covariance(X))
    variance = np.diag(covariance)

    return IterationSummary(
        parameters=tuple(MappingProxyType(p) for p in free_parameters.named_columns(theta)),
        ensemble_mean=MappingProxyType(free_parameters.named(theta_bar)),
        ensemble_cov=_readonly(covariance),
        ensemble_var=MappingProxyType({name: float(v) for name, v in zip(names, variance)}),
        mean_square_errors=_readonly(mean_square_errors(y, G)),
        iteration=int(iteration),
    )
