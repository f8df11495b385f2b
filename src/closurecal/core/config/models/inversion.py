# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Ensemble Kalman Inversion configuration models.

Contains PriorConfig for one bounded free parameter, ResamplerConfig for
failed-particle handling, EKIConfig for the inversion loop itself, and
CalibrationConfig as the parent container.
"""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .base import FROZEN_CONFIG

# Supported resampling distributions
ResamplingDistributionType = Literal['full', 'successful']


class PriorConfig(BaseModel):
    """Bounded prior for a single free parameter, in physical units."""
    model_config = FROZEN_CONFIG

    name: str = Field(alias='NAME', min_length=1)
    mean: float = Field(alias='MEAN')
    std: float = Field(alias='STD', gt=0)
    lower: float = Field(alias='LOWER')
    upper: float = Field(alias='UPPER')

    @model_validator(mode='after')
    def _check_bounds(self) -> 'PriorConfig':
        if not self.lower < self.mean < self.upper:
            raise ValueError(
                f"Prior '{self.name}': bounds ({self.lower}, {self.upper}) "
                f"must strictly contain the mean {self.mean}"
            )
        return self


class ResamplerConfig(BaseModel):
    """Failed-particle detection and replacement settings"""
    model_config = FROZEN_CONFIG

    only_failed_particles: bool = Field(default=True, alias='RESAMPLE_ONLY_FAILED')
    acceptable_failure_fraction: float = Field(
        default=0.0, alias='ACCEPTABLE_FAILURE_FRACTION', ge=0.0, le=1.0
    )
    distribution: ResamplingDistributionType = Field(
        default='full', alias='RESAMPLE_DISTRIBUTION',
        description="Fit replacement Gaussian to 'full' ensemble or 'successful' members only"
    )
    max_batches: Optional[int] = Field(
        default=None, alias='RESAMPLE_MAX_BATCHES', ge=1,
        description='Give up after this many full-ensemble batches (None = never)'
    )


class EKIConfig(BaseModel):
    """Ensemble Kalman Inversion loop settings"""
    model_config = FROZEN_CONFIG

    ensemble_size: int = Field(default=20, alias='ENSEMBLE_SIZE', ge=2)
    noise_covariance: float = Field(
        default=1e-2, alias='NOISE_COVARIANCE', gt=0,
        description='Scalar observation noise variance, expanded to noise * I'
    )
    iterations: int = Field(default=10, alias='NUMBER_OF_ITERATIONS', ge=0)
    seed: Optional[int] = Field(default=None, alias='EKI_SEED')
    show_progress: bool = Field(default=False, alias='SHOW_PROGRESS')


class CalibrationConfig(BaseModel):
    """Top-level calibration configuration."""
    model_config = FROZEN_CONFIG

    parameters: List[PriorConfig] = Field(alias='PARAMETERS', min_length=1)
    eki: EKIConfig = Field(default_factory=EKIConfig, alias='EKI')
    resampler: ResamplerConfig = Field(default_factory=ResamplerConfig, alias='RESAMPLER')

    @field_validator('parameters')
    @classmethod
    def _unique_names(cls, value: List[PriorConfig]) -> List[PriorConfig]:
        names = [p.name for p in value]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate parameter names: {duplicates}")
        return value

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        overrides: Optional[Dict[str, Any]] = None,
        *,
        use_env: bool = True,
    ) -> 'CalibrationConfig':
        """Load configuration from a YAML file. See ``from_file_factory``."""
        from closurecal.core.config.factories import from_file_factory
        return from_file_factory(cls, Path(path), overrides, use_env=use_env)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'CalibrationConfig':
        """Validate a nested or flat configuration dictionary."""
        from closurecal.core.config.factories import from_dict_factory
        return from_dict_factory(cls, config)
