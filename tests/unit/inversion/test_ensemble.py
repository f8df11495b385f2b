"""Tests for ensemble statistics helpers."""

import numpy as np

from closurecal.inversion.ensemble import (
    column_has_nonfinite,
    cross_covariance,
    ensemble_covariance,
    initial_ensemble,
    mean_square_errors,
)


class TestInitialEnsemble:

    def test_shape(self, two_parameters, rng):
        X = initial_ensemble(two_parameters, 25, rng)
        assert X.shape == (2, 25)

    def test_reproducible_with_same_seed(self, two_parameters):
        X1 = initial_ensemble(two_parameters, 10, np.random.default_rng(3))
        X2 = initial_ensemble(two_parameters, 10, np.random.default_rng(3))
        np.testing.assert_array_equal(X1, X2)

    def test_standard_normal(self, two_parameters, rng):
        X = initial_ensemble(two_parameters, 20_000, rng)
        np.testing.assert_allclose(X.mean(axis=1), 0.0, atol=0.05)
        np.testing.assert_allclose(X.std(axis=1), 1.0, atol=0.05)


class TestStatistics:

    def test_cross_covariance_matches_numpy(self, rng):
        X = rng.normal(size=(2, 15))
        G = rng.normal(size=(4, 15))
        expected = np.cov(np.vstack([X, G]))[:2, 2:]
        np.testing.assert_allclose(cross_covariance(X, G), expected)

    def test_ensemble_covariance_is_2d(self, rng):
        cov = ensemble_covariance(rng.normal(size=(1, 10)))
        assert cov.shape == (1, 1)

    def test_column_has_nonfinite(self):
        G = np.ones((3, 4))
        G[1, 0] = np.nan
        G[2, 3] = np.inf
        np.testing.assert_array_equal(column_has_nonfinite(G), [True, False, False, True])

    def test_mean_square_errors(self):
        y = np.array([1.0, 2.0])
        G = np.array([[1.0, 0.0], [2.0, 0.0]])
        np.testing.assert_allclose(mean_square_errors(y, G), [0.0, 2.5])
