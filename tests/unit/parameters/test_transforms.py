"""Tests for constrained/unconstrained transforms."""

import numpy as np
import pytest

from closurecal.core.exceptions import DimensionMismatchError
from closurecal.parameters import (
    covariance_to_constrained,
    to_constrained,
    to_unconstrained,
    to_unconstrained_values,
)


class TestArrayTransforms:

    def test_shape_and_bounds(self, two_parameters, rng):
        X = rng.normal(scale=10.0, size=(2, 50))
        theta = to_constrained(two_parameters, X)

        assert theta.shape == (2, 50)
        for i, prior in enumerate(two_parameters.priors.values()):
            assert np.all((theta[i] > prior.lower) & (theta[i] < prior.upper))

    def test_vector_input(self, two_parameters):
        theta = to_constrained(two_parameters, np.zeros(2))
        assert theta.shape == (2,)

    def test_accepts_mapping_and_sequence(self, two_parameters, rng):
        X = rng.normal(size=(2, 5))
        expected = to_constrained(two_parameters, X)
        np.testing.assert_array_equal(to_constrained(two_parameters.priors, X), expected)
        np.testing.assert_array_equal(to_constrained(list(two_parameters.priors.values()), X), expected)

    def test_row_mismatch(self, two_parameters):
        with pytest.raises(DimensionMismatchError):
            to_constrained(two_parameters, np.zeros((3, 4)))

    def test_round_trip(self, two_parameters, rng):
        X = rng.normal(size=(2, 20))
        theta = to_constrained(two_parameters, X)
        np.testing.assert_allclose(to_unconstrained_values(two_parameters, theta), X, atol=1e-9)

    def test_unconstrained_distribution(self, two_parameters):
        dist = to_unconstrained(two_parameters.priors['b'])
        assert dist.mean() == 0.0
        assert dist.var() == 1.0


class TestCovarianceToConstrained:

    def test_delta_method(self, two_parameters, rng):
        X = rng.normal(size=(2, 30))
        cov = np.cov(X)
        x_bar = X.mean(axis=1)
        priors = list(two_parameters.priors.values())
        J = np.array([p.derivative(x_bar[i]) for i, p in enumerate(priors)])

        result = covariance_to_constrained(two_parameters, X, cov)

        np.testing.assert_allclose(result, np.diag(J) @ cov @ np.diag(J))
        np.testing.assert_allclose(result, result.T)

    def test_close_to_sample_covariance_for_narrow_ensemble(self, two_parameters, rng):
        X = rng.normal(scale=0.01, size=(2, 2000))
        result = covariance_to_constrained(two_parameters, X, np.cov(X))
        sample = np.cov(to_constrained(two_parameters, X))
        np.testing.assert_allclose(np.diag(result), np.diag(sample), rtol=0.05)

    def test_shape_mismatch(self, two_parameters):
        with pytest.raises(DimensionMismatchError):
            covariance_to_constrained(two_parameters, np.zeros((2, 4)), np.eye(3))
