# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Bounded priors for free parameters.

A ``ScaledLogitNormal`` prior describes a physical parameter by its target
mean, standard deviation and hard bounds. Sampling happens in an
unconstrained space where the parameter is standard normal; the map back to
physical units is

    θ = lower + (upper - lower) * expit(offset + scale * x),    x ~ N(0, 1)

with ``offset`` and ``scale`` fit once, at construction, so that θ has the
requested mean and standard deviation.
"""

from dataclasses import dataclass, field

import numpy as np
from numpy.polynomial.hermite_e import hermegauss
from scipy import optimize, special, stats

from closurecal.core.exceptions import InvalidPriorError

# Gauss-Hermite (probabilists') rule for expectations under N(0, 1)
_QUADRATURE_ORDER = 121
_NODES, _WEIGHTS = hermegauss(_QUADRATURE_ORDER)
_WEIGHTS = _WEIGHTS / np.sqrt(2 * np.pi)

_FIT_TOLERANCE = 1e-8


def _unit_moments(offset: float, scale: float):
    """Mean and std of expit(offset + scale * x) for x ~ N(0, 1)."""
    values = special.expit(offset + scale * _NODES)
    mean = np.dot(_WEIGHTS, values)
    var = np.dot(_WEIGHTS, (values - mean) ** 2)
    return mean, np.sqrt(max(var, 0.0))


def _fit_logit_normal(unit_mean: float, unit_std: float):
    """Solve for (offset, scale) matching a mean and std on (0, 1).

    Returns None when the solver does not reach the tolerance.
    """

    def residual(z):
        offset, log_scale = z
        mean, std = _unit_moments(offset, np.exp(log_scale))
        return [(mean - unit_mean) / unit_std, (std - unit_std) / unit_std]

    offset0 = special.logit(unit_mean)
    scale0 = unit_std / (unit_mean * (1 - unit_mean))
    solution = optimize.root(residual, x0=[offset0, np.log(scale0)], method='hybr')

    error = np.max(np.abs(residual(solution.x)))
    if not solution.success or not error <= _FIT_TOLERANCE:
        return None

    offset, log_scale = solution.x
    return float(offset), float(np.exp(log_scale))


@dataclass(frozen=True)
class ScaledLogitNormal:
    """Prior on ``(lower, upper)`` with a given mean and standard deviation.

    Args:
        mean: Target mean in physical units.
        std: Target standard deviation in physical units.
        lower: Hard lower bound (exclusive).
        upper: Hard upper bound (exclusive).

    Raises:
        InvalidPriorError: If ``lower < mean < upper`` fails, ``std <= 0``, or
            no distribution on the bounds can have this mean and std.
    """
    mean: float
    std: float
    lower: float
    upper: float
    offset: float = field(init=False, repr=False)
    scale: float = field(init=False, repr=False)

    def __post_init__(self):
        if not all(np.isfinite([self.mean, self.std, self.lower, self.upper])):
            raise InvalidPriorError(f"Prior values must be finite, got {self}")
        if not self.lower < self.mean < self.upper:
            raise InvalidPriorError(
                f"Bounds ({self.lower}, {self.upper}) must strictly contain the mean {self.mean}"
            )
        if self.std <= 0:
            raise InvalidPriorError(f"Standard deviation must be positive, got {self.std}")

        width = self.upper - self.lower
        unit_mean = (self.mean - self.lower) / width
        unit_std = self.std / width

        # Bhatia-Davis bound: no distribution on (0, 1) exceeds this variance
        if unit_std ** 2 >= unit_mean * (1 - unit_mean):
            raise InvalidPriorError(
                f"Standard deviation {self.std} is too large for mean {self.mean} "
                f"on ({self.lower}, {self.upper})"
            )

        fit = _fit_logit_normal(unit_mean, unit_std)
        if fit is None:
            max_std = width * np.sqrt(unit_mean * (1 - unit_mean))
            raise InvalidPriorError(
                f"Standard deviation {self.std} is too close to the largest attainable "
                f"value {max_std:.6g} for mean {self.mean} on ({self.lower}, {self.upper})"
            )
        offset, scale = fit
        object.__setattr__(self, 'offset', offset)
        object.__setattr__(self, 'scale', scale)

    @classmethod
    def from_config(cls, prior_config) -> 'ScaledLogitNormal':
        """Build from a ``PriorConfig``."""
        return cls(
            mean=prior_config.mean,
            std=prior_config.std,
            lower=prior_config.lower,
            upper=prior_config.upper,
        )

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def unconstrained_distribution(self):
        """The distribution of the unconstrained coordinate: N(0, 1)."""
        return stats.norm(loc=0.0, scale=1.0)

    def to_constrained(self, x):
        """Map unconstrained values to the open interval ``(lower, upper)``."""
        x = np.asarray(x, dtype=float)
        theta = self.lower + self.width * special.expit(self.offset + self.scale * x)
        # expit saturates to exactly 0 or 1 for |z| > ~37
        inner_lower = np.nextafter(self.lower, self.upper)
        inner_upper = np.nextafter(self.upper, self.lower)
        return np.clip(theta, inner_lower, inner_upper)

    def to_unconstrained(self, theta):
        """Exact inverse of :meth:`to_constrained` for values inside the bounds."""
        theta = np.asarray(theta, dtype=float)
        unit = (theta - self.lower) / self.width
        return (special.logit(unit) - self.offset) / self.scale

    def derivative(self, x):
        """dθ/dx evaluated at unconstrained ``x``."""
        p = special.expit(self.offset + self.scale * np.asarray(x, dtype=float))
        return self.width * self.scale * p * (1 - p)
