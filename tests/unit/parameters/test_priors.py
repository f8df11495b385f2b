"""Tests for the ScaledLogitNormal prior."""

import dataclasses

import numpy as np
import pytest

from closurecal.core.config import PriorConfig
from closurecal.core.exceptions import InvalidPriorError
from closurecal.parameters import ScaledLogitNormal


class TestValidation:

    @pytest.mark.parametrize('kwargs', [
        dict(mean=1.5, std=0.1, lower=0.0, upper=1.0),    # mean above bounds
        dict(mean=0.0, std=0.1, lower=0.0, upper=1.0),    # mean on a bound
        dict(mean=0.5, std=0.1, lower=1.0, upper=0.0),    # reversed bounds
        dict(mean=0.5, std=0.0, lower=0.0, upper=1.0),
        dict(mean=0.5, std=-0.1, lower=0.0, upper=1.0),
        dict(mean=0.5, std=0.5, lower=0.0, upper=1.0),    # variance at the Bhatia-Davis limit
        dict(mean=0.9, std=0.4, lower=0.0, upper=1.0),
        dict(mean=np.nan, std=0.1, lower=0.0, upper=1.0),
        dict(mean=0.5, std=0.1, lower=0.0, upper=np.inf),
    ])
    def test_invalid_prior(self, kwargs):
        with pytest.raises(InvalidPriorError):
            ScaledLogitNormal(**kwargs)

    def test_std_near_attainable_maximum(self):
        with pytest.raises(InvalidPriorError, match="too close to the largest attainable value 0.5"):
            ScaledLogitNormal(mean=0.5, std=0.49, lower=0.0, upper=1.0)

    def test_wide_but_attainable_std(self):
        prior = ScaledLogitNormal(mean=0.5, std=0.45, lower=0.0, upper=1.0)
        assert prior.scale > 0

    def test_frozen(self):
        prior = ScaledLogitNormal(mean=0.5, std=0.1, lower=0.0, upper=1.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            prior.mean = 0.6

    def test_from_config(self):
        config = PriorConfig(NAME='C_D', MEAN=2.9, STD=0.5, LOWER=0.0, UPPER=10.0)
        prior = ScaledLogitNormal.from_config(config)
        assert (prior.mean, prior.std, prior.lower, prior.upper) == (2.9, 0.5, 0.0, 10.0)


class TestMomentMatching:
    """Pushing N(0, 1) samples through the transform reproduces the target moments."""

    @pytest.mark.parametrize('mean, std, lower, upper', [
        (0.5, 0.1, 0.0, 1.0),
        (0.2, 0.1, 0.0, 1.0),
        (300.0, 50.0, 100.0, 1000.0),
        (-1.0, 0.3, -2.0, 0.5),
    ])
    def test_sample_moments(self, mean, std, lower, upper):
        rng = np.random.default_rng(0)
        prior = ScaledLogitNormal(mean=mean, std=std, lower=lower, upper=upper)

        x = prior.unconstrained_distribution().rvs(size=400_000, random_state=rng)
        theta = prior.to_constrained(x)

        assert abs(theta.mean() - mean) < 0.01 * std
        assert abs(theta.std() - std) < 0.01 * std

    def test_symmetric_prior_has_zero_offset(self):
        prior = ScaledLogitNormal(mean=0.5, std=0.1, lower=0.0, upper=1.0)
        assert abs(prior.offset) < 1e-6
        assert prior.scale > 0

    def test_unconstrained_distribution_is_standard_normal(self):
        dist = ScaledLogitNormal(mean=0.5, std=0.1, lower=0.0, upper=1.0).unconstrained_distribution()
        assert dist.mean() == 0.0
        assert dist.std() == 1.0


class TestTransform:

    @pytest.fixture
    def prior(self):
        return ScaledLogitNormal(mean=2.0, std=0.5, lower=0.0, upper=5.0)

    def test_extreme_inputs_stay_inside_bounds(self, prior):
        theta = prior.to_constrained(np.array([-1e6, -50.0, 0.0, 50.0, 1e6]))
        assert np.all(theta > prior.lower)
        assert np.all(theta < prior.upper)
        assert np.all(np.isfinite(prior.to_unconstrained(theta)))

    def test_monotone(self, prior):
        theta = prior.to_constrained(np.linspace(-5, 5, 101))
        assert np.all(np.diff(theta) > 0)

    def test_round_trip(self, prior):
        x = np.linspace(-5, 5, 41)
        np.testing.assert_allclose(prior.to_unconstrained(prior.to_constrained(x)), x, atol=1e-8)

    def test_derivative_matches_finite_difference(self, prior):
        x = np.array([-2.0, 0.0, 1.5])
        h = 1e-6
        numerical = (prior.to_constrained(x + h) - prior.to_constrained(x - h)) / (2 * h)
        np.testing.assert_allclose(prior.derivative(x), numerical, rtol=1e-6)
