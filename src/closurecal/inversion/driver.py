# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Ensemble Kalman Inversion driver.

Iteratively "solves" the inverse problem

    y = G(θ) + η,    η ~ N(0, Γy)

for parameters θ, where ``y`` is a normalized observation vector and ``G`` a
forward map predicting it. Each iteration applies the EKI update to the
previous iteration's outputs, evaluates the forward map on the new ensemble,
repairs failed members and records an ``IterationSummary``.
"""

import logging
import time
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np
from tqdm import tqdm

from closurecal.core.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    calibration_error_handler,
)
from closurecal.parameters.free_parameters import FreeParameters

from .diagnostics import has_collapsed
from .eki_update import ensemble_kalman_update
from .ensemble import initial_ensemble
from .resampling import Resampler
from .summary import IterationSummary, build_summary

logger = logging.getLogger(__name__)

ForwardMap = Callable[[np.ndarray], np.ndarray]
ObservationsLike = Union[np.ndarray, Callable[[], np.ndarray]]


def construct_noise_covariance(noise_covariance, y: np.ndarray) -> np.ndarray:
    """Expand a scalar noise level to ``noise * I`` or validate a matrix."""
    n_obs = len(y)
    if np.ndim(noise_covariance) == 0:
        if not noise_covariance > 0:
            raise ConfigurationError(f"Scalar noise covariance must be positive, got {noise_covariance}")
        return float(noise_covariance) * np.eye(n_obs)

    matrix = np.asarray(noise_covariance, dtype=float)
    if matrix.shape != (n_obs, n_obs):
        raise ConfigurationError(
            f"Noise covariance has shape {matrix.shape}, expected ({n_obs}, {n_obs})"
        )
    if not np.allclose(matrix, matrix.T):
        raise ConfigurationError("Noise covariance must be symmetric")
    return matrix


def _observation_vector(observations: ObservationsLike) -> np.ndarray:
    y = observations() if callable(observations) else observations
    y = np.asarray(y, dtype=float)
    if y.ndim == 2 and y.shape[1] == 1:
        y = y[:, 0]
    if y.ndim != 1 or y.size == 0:
        raise ConfigurationError(f"Observations must be a non-empty vector, got shape {y.shape}")
    if not np.all(np.isfinite(y)):
        raise ConfigurationError("Observations must be finite")
    return y


class EnsembleKalmanInversion:
    """State of an ensemble Kalman inversion.

    Use :meth:`construct` to build one; it draws and evaluates the
    iteration-0 ensemble. The ensemble and its forward-map output are owned
    by this object and changed only by :meth:`iterate`.

    Attributes:
        free_parameters: Names and priors, in row order.
        forward_map: Batched unconstrained forward map.
        mapped_observations: Observation vector ``y``.
        noise_covariance: Observation noise covariance ``Γy``.
        resampler: Failed-particle policy.
        rng: Random source for every draw of the inversion.
        iteration: Index of the last completed iteration.
        unconstrained_parameters: Current ensemble, shape (Nθ, Nensemble).
        forward_map_output: Outputs for the current ensemble, (Nobs, Nensemble).
    """

    def __init__(
        self,
        free_parameters: FreeParameters,
        forward_map: ForwardMap,
        mapped_observations: np.ndarray,
        noise_covariance: np.ndarray,
        resampler: Resampler,
        rng: np.random.Generator,
        unconstrained_parameters: np.ndarray,
    ):
        self.free_parameters = free_parameters
        self.forward_map = forward_map
        self.mapped_observations = mapped_observations
        self.noise_covariance = noise_covariance
        self.resampler = resampler
        self.rng = rng
        self.iteration = 0
        self.unconstrained_parameters = unconstrained_parameters
        self.forward_map_output: Optional[np.ndarray] = None
        self._summaries = []

    @classmethod
    def construct(
        cls,
        free_parameters: FreeParameters,
        ensemble_size: int,
        noise_covariance,
        forward_map: ForwardMap,
        observations: ObservationsLike,
        resampler: Optional[Resampler] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        unconstrained_parameters: Optional[np.ndarray] = None,
        forward_map_output: Optional[np.ndarray] = None,
    ) -> 'EnsembleKalmanInversion':
        """Build an inversion and record its iteration-0 summary.

        Args:
            free_parameters: Names and priors of the calibrated parameters.
            ensemble_size: Number of ensemble members (>= 2).
            noise_covariance: Scalar noise level (expanded to ``noise * I``)
                or an (Nobs, Nobs) matrix.
            forward_map: Maps (Nθ, Nensemble) unconstrained parameters to
                (Nobs, Nensemble) outputs; non-finite values mark failures.
            observations: Observation vector ``y`` or a zero-argument callable
                returning it.
            resampler: Failed-particle policy (default: ``Resampler()``).
            seed: Seed for a new ``numpy.random.Generator`` when ``rng`` is None.
            rng: Explicit random source.
            unconstrained_parameters: Use this initial ensemble instead of
                drawing one from the priors.
            forward_map_output: Outputs for ``unconstrained_parameters``;
                skips the initial forward-map evaluation.

        Raises:
            ConfigurationError: For an invalid ensemble size, observations or
                noise covariance.
            DimensionMismatchError: If the forward-map output does not have
                shape (len(y), ensemble_size).
        """
        if ensemble_size < 2:
            raise ConfigurationError(f"ensemble_size must be at least 2, got {ensemble_size}")

        y = _observation_vector(observations)
        gamma_y = construct_noise_covariance(noise_covariance, y)
        rng = rng if rng is not None else np.random.default_rng(seed)

        if unconstrained_parameters is None:
            X = initial_ensemble(free_parameters, ensemble_size, rng)
        else:
            X = np.array(unconstrained_parameters, dtype=float)
            if X.shape != (len(free_parameters), ensemble_size):
                raise DimensionMismatchError(
                    f"Initial ensemble has shape {X.shape}, "
                    f"expected ({len(free_parameters)}, {ensemble_size})"
                )

        eki = cls(
            free_parameters=free_parameters,
            forward_map=forward_map,
            mapped_observations=y,
            noise_covariance=gamma_y,
            resampler=resampler if resampler is not None else Resampler(),
            rng=rng,
            unconstrained_parameters=X,
        )

        if forward_map_output is None:
            G = eki._evaluate(X)
        else:
            G = eki._check_output(np.array(forward_map_output, dtype=float), ensemble_size)

        X, G = eki.resampler.resample(X, G, eki._evaluate, rng, free_parameters, y)

        eki.unconstrained_parameters = X
        eki.forward_map_output = G
        eki._summaries.append(build_summary(free_parameters, y, X, G, iteration=0))

        logger.info(
            f"Constructed EKI with {len(free_parameters)} parameters, "
            f"{ensemble_size} members and {len(y)} observations"
        )
        return eki

    @classmethod
    def from_config(
        cls,
        config,
        forward_map: ForwardMap,
        observations: ObservationsLike,
        **kwargs,
    ) -> 'EnsembleKalmanInversion':
        """Build an inversion from a ``CalibrationConfig``."""
        return cls.construct(
            free_parameters=FreeParameters.from_config(config.parameters),
            ensemble_size=config.eki.ensemble_size,
            noise_covariance=config.eki.noise_covariance,
            forward_map=forward_map,
            observations=observations,
            resampler=Resampler.from_config(config.resampler),
            seed=config.eki.seed,
            **kwargs,
        )

    @property
    def ensemble_size(self) -> int:
        return self.unconstrained_parameters.shape[1]

    @property
    def iteration_summaries(self) -> Tuple[IterationSummary, ...]:
        """Recorded summaries; ``iteration_summaries[k]`` is iteration ``k``."""
        return tuple(self._summaries)

    def __repr__(self) -> str:
        return (
            "EnsembleKalmanInversion\n"
            f"├── free_parameters: {self.free_parameters!r}\n"
            f"├── mapped_observations: {self.mapped_observations.shape[0]}-element vector\n"
            f"├── noise_covariance: {self.noise_covariance.shape} matrix\n"
            f"├── iteration: {self.iteration}\n"
            f"├── resampler: {self.resampler!r}\n"
            f"├── unconstrained_parameters: {self.unconstrained_parameters.shape} array\n"
            f"└── forward_map_output: {self.forward_map_output.shape} array"
        )

    def _check_output(self, G: np.ndarray, n_members: int) -> np.ndarray:
        expected = (len(self.mapped_observations), n_members)
        if G.ndim != 2 or G.shape != expected:
            raise DimensionMismatchError(
                f"Forward map output has shape {G.shape}, expected {expected}"
            )
        return G

    def _evaluate(self, X: np.ndarray) -> np.ndarray:
        """Run the forward map on a full ensemble and validate its shape."""
        with calibration_error_handler("forward map evaluation", logger):
            G = np.array(self.forward_map(X), dtype=float)
        return self._check_output(G, X.shape[1])

    def step(self) -> IterationSummary:
        """Advance the inversion by one iteration.

        The new ensemble is committed only after its forward map has been
        evaluated and repaired, so a failed step leaves the state at the last
        completed iteration.
        """
        X = ensemble_kalman_update(
            self.unconstrained_parameters,
            self.forward_map_output,
            self.mapped_observations,
            self.noise_covariance,
            self.rng,
        )
        G = self._evaluate(X)
        X, G = self.resampler.resample(
            X, G, self._evaluate, self.rng, self.free_parameters, self.mapped_observations
        )

        summary = build_summary(
            self.free_parameters, self.mapped_observations, X, G, iteration=self.iteration + 1
        )

        self.unconstrained_parameters = X
        self.forward_map_output = G
        self.iteration += 1
        self._summaries.append(summary)

        if has_collapsed(X):
            logger.info(
                f"Iteration {self.iteration}: the ensemble has no spread left, "
                "so further iterations will not move it"
            )
        return summary

    def iterate(self, iterations: int = 1, show_progress: bool = False) -> Dict[str, float]:
        """Run ``iterations`` EKI steps and return the best-estimate parameters.

        Calling again continues from the last recorded iteration.

        Args:
            iterations: Number of steps; 0 leaves the state unchanged.
            show_progress: Display a tqdm progress bar.

        Returns:
            Physical ensemble mean of the last summary, by parameter name.

        Raises:
            ExcessiveFailureError: If too many members fail in one step.
        """
        if iterations < 0:
            raise ConfigurationError(f"iterations must be non-negative, got {iterations}")

        start_time = time.time()
        iterator = range(iterations)
        if show_progress:
            iterator = tqdm(iterator, desc="EKI iterations", unit="iter")

        for i in iterator:
            summary = self.step()
            mse = summary.mean_square_errors
            logger.info(
                f"EKI {i + 1}/{iterations} (iteration {summary.iteration}) | "
                f"Best MSE: {mse.min():.4e} | Mean MSE: {mse.mean():.4e} | "
                f"Elapsed: {time.time() - start_time:.1f}s"
            )

        return dict(self._summaries[-1].ensemble_mean)


def construct(*args, **kwargs) -> EnsembleKalmanInversion:
    """Functional alias for :meth:`EnsembleKalmanInversion.construct`."""
    return EnsembleKalmanInversion.construct(*args, **kwargs)


def iterate(eki: EnsembleKalmanInversion, iterations: int = 1, show_progress: bool = False) -> Dict[str, float]:
    """Functional alias for :meth:`EnsembleKalmanInversion.iterate`."""
    return eki.iterate(iterations, show_progress=show_progress)


def calibrate(config, forward_map: ForwardMap, observations: ObservationsLike, **kwargs) -> EnsembleKalmanInversion:
    """Build an inversion from ``config`` and run ``config.eki.iterations`` steps."""
    eki = EnsembleKalmanInversion.from_config(config, forward_map, observations, **kwargs)
    eki.iterate(config.eki.iterations, show_progress=config.eki.show_progress)
    return eki
