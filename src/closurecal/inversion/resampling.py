# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Failed-particle detection and ensemble repair.

A forward-map column containing NaN or inf marks a failed ensemble member.
The resampler either aborts (too many failures) or replaces failed members
with fresh draws from a Gaussian fit to the ensemble, keeping only draws
whose forward map succeeds. The forward model can only be run for a full
ensemble, so replacement candidates are always evaluated in batches of
``Nensemble`` and successes are harvested across as many batches as needed.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np

from closurecal.core.exceptions import (
    ConfigurationError,
    ExcessiveFailureError,
    ResamplingExhaustedError,
    require,
)
from closurecal.parameters.free_parameters import FreeParameters

from .ensemble import column_has_nonfinite, ensemble_covariance, mean_square_errors

logger = logging.getLogger(__name__)


class EnsembleDistribution(str, Enum):
    """Which ensemble columns the replacement Gaussian is fit to."""
    FULL_ENSEMBLE = 'full'
    SUCCESSFUL_ONLY = 'successful'


class Resampler:
    """Resampling policy applied after every forward-map evaluation.

    Args:
        only_failed_particles: Replace only failed members (True) or refresh
            the whole ensemble after every evaluation (False).
        acceptable_failure_fraction: Largest tolerated fraction of failed
            members, in [0, 1]. Above it the inversion aborts.
        distribution: Fit the replacement Gaussian to the full ensemble or to
            successful members only.
        max_batches: Stop with ResamplingExhaustedError after this many
            candidate batches. None keeps sampling until enough succeed.
    """

    def __init__(
        self,
        only_failed_particles: bool = True,
        acceptable_failure_fraction: float = 0.0,
        distribution: EnsembleDistribution = EnsembleDistribution.FULL_ENSEMBLE,
        max_batches: Optional[int] = None,
    ):
        if not 0.0 <= acceptable_failure_fraction <= 1.0:
            raise ConfigurationError(
                f"acceptable_failure_fraction must be in [0, 1], got {acceptable_failure_fraction}"
            )
        if max_batches is not None and max_batches < 1:
            raise ConfigurationError(f"max_batches must be at least 1, got {max_batches}")

        self.only_failed_particles = only_failed_particles
        self.acceptable_failure_fraction = float(acceptable_failure_fraction)
        self.distribution = EnsembleDistribution(distribution)
        self.max_batches = max_batches

    @classmethod
    def from_config(cls, resampler_config) -> 'Resampler':
        """Build from a ``ResamplerConfig``."""
        return cls(
            only_failed_particles=resampler_config.only_failed_particles,
            acceptable_failure_fraction=resampler_config.acceptable_failure_fraction,
            distribution=EnsembleDistribution(resampler_config.distribution),
            max_batches=resampler_config.max_batches,
        )

    def __repr__(self) -> str:
        return (
            f"Resampler(only_failed_particles={self.only_failed_particles}, "
            f"acceptable_failure_fraction={self.acceptable_failure_fraction}, "
            f"distribution={self.distribution.value}, max_batches={self.max_batches})"
        )

    def fit_distribution(self, X: np.ndarray, G: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Mean and covariance of the Gaussian used to draw replacements."""
        columns = X
        if self.distribution is EnsembleDistribution.SUCCESSFUL_ONLY:
            successful = ~column_has_nonfinite(G)
            if successful.sum() >= 2:
                columns = X[:, successful]
            else:
                logger.warning(
                    "Only %d successful particle(s); fitting the resampling "
                    "distribution to the full ensemble instead", int(successful.sum())
                )
        return columns.mean(axis=1), ensemble_covariance(columns)

    def sample(
        self,
        X: np.ndarray,
        G: np.ndarray,
        n_sample: int,
        forward_map: Callable[[np.ndarray], np.ndarray],
        rng: np.random.Generator,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Draw ``n_sample`` particles whose forward map succeeds.

        Returns:
            Parameters of shape (Nθ, n_sample) and outputs of shape
            (Nobs, n_sample).
        """
        n_params, n_members = X.shape
        n_obs = G.shape[0]
        mean, covariance = self.fit_distribution(X, G)

        found_X = np.zeros((n_params, 0))
        found_G = np.zeros((n_obs, 0))
        n_batches = 0

        while found_X.shape[1] < n_sample:
            if self.max_batches is not None and n_batches >= self.max_batches:
                raise ResamplingExhaustedError(
                    f"Found only {found_X.shape[1]} of {n_sample} successful particles "
                    f"after {n_batches} batches of {n_members}"
                )

            logger.info(f"Re-sampling ensemble members (found {found_X.shape[1]} of {n_sample})...")

            # The forward model must always run a full ensemble
            X_sample = rng.multivariate_normal(mean, covariance, size=n_members, method='svd').T
            G_sample = np.asarray(forward_map(X_sample), dtype=float)
            n_batches += 1

            success = ~column_has_nonfinite(G_sample)
            logger.info(f"    ... found {int(success.sum())} successful particles.")

            found_X = np.concatenate([found_X, X_sample[:, success]], axis=1)
            found_G = np.concatenate([found_G, G_sample[:, success]], axis=1)

        return found_X[:, :n_sample], found_G[:, :n_sample]

    def resample(
        self,
        X: np.ndarray,
        G: np.ndarray,
        forward_map: Callable[[np.ndarray], np.ndarray],
        rng: np.random.Generator,
        free_parameters: FreeParameters,
        y: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Check ``G`` for failed members and repair ``X`` and ``G`` in place.

        Args:
            X: Unconstrained ensemble, shape (Nθ, Nensemble).
            G: Forward-map output for ``X``, shape (Nobs, Nensemble).
            forward_map: Batched unconstrained forward map.
            rng: Random source for replacement draws.
            free_parameters: Used to report failed members in physical units.
            y: Observations, used to report the error of replacements.

        Returns:
            The (possibly modified) ``X`` and ``G``.

        Raises:
            ExcessiveFailureError: If the failed fraction exceeds
                ``acceptable_failure_fraction``.
            ResamplingExhaustedError: If ``max_batches`` runs out.
        """
        failed = column_has_nonfinite(G)
        failed_columns = np.flatnonzero(failed)
        n_failed = len(failed_columns)
        failure_fraction = n_failed / X.shape[1]

        if n_failed > 0:
            theta = free_parameters.to_constrained(X[:, failed_columns])
            failed_parameters = free_parameters.named_columns(theta)
            particles = "particle" if n_failed == 1 else "particles"
            logger.warning(
                f"The forward map for {n_failed} {particles} ({100 * failure_fraction:.1f}%) "
                f"included non-finite values. The failed particles are:\n"
                + _particle_table(free_parameters, failed_columns, failed_parameters)
            )

            if failure_fraction > self.acceptable_failure_fraction:
                raise ExcessiveFailureError(failure_fraction, failed_columns, failed_parameters)

        if n_failed == 0 and self.only_failed_particles:
            return X, G

        if self.only_failed_particles:
            n_sample = n_failed
            replace_columns = failed_columns
        else:
            n_sample = X.shape[1]
            replace_columns = np.arange(X.shape[1])

        found_X, found_G = self.sample(X, G, n_sample, forward_map, rng)

        X[:, replace_columns] = found_X
        G[:, replace_columns] = found_G

        require(
            not column_has_nonfinite(G).any(),
            "Resampled forward-map output still contains non-finite values",
        )

        if self.only_failed_particles:
            theta = free_parameters.to_constrained(X[:, replace_columns])
            errors = mean_square_errors(y, G[:, replace_columns]) if y is not None else None
            logger.info(
                "The replacements for failed particles are\n"
                + _particle_table(free_parameters, replace_columns,
                                  free_parameters.named_columns(theta), errors)
            )

        return X, G


def _particle_table(free_parameters, columns, parameters, errors=None) -> str:
    header = "               " + "".join(f"{name[:9]:>10s} | " for name in free_parameters.names)
    rows = [header]
    for i, (k, values) in enumerate(zip(columns, parameters)):
        cells = "".join(f"{values[name]: .3e} | " for name in free_parameters.names)
        error = f" error = {errors[i]:.6e}" if errors is not None else ""
        rows.append(f" particle {int(k):3d}: {cells}{error}")
    return "\n".join(rows)
