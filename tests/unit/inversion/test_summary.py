"""Tests for IterationSummary."""

import dataclasses

import numpy as np
import pytest

from closurecal.inversion import construct
from closurecal.inversion.summary import build_summary


@pytest.fixture
def summary(two_parameters, rng, padded_forward_map):
    X = rng.normal(size=(2, 8))
    G = padded_forward_map(X)
    y = padded_forward_map(np.zeros((2, 1)))[:, 0]
    return build_summary(two_parameters, y, X, G, iteration=3), X, G, y


@pytest.fixture
def eki(two_parameters, padded_forward_map, pad):
    observations = pad(np.array([[0.3], [2.5]]))[:, 0]
    return construct(two_parameters, 5, 0.01, padded_forward_map, observations, seed=1)


class TestBuildSummary:

    def test_contents(self, summary, two_parameters):
        s, X, G, y = summary

        assert s.iteration == 3
        assert s.names == ('a', 'b')
        assert len(s.parameters) == 8
        theta = two_parameters.to_constrained(X)
        assert dict(s.parameters[5]) == pytest.approx({'a': theta[0, 5], 'b': theta[1, 5]})

        mean_theta = two_parameters.to_constrained(X.mean(axis=1))
        assert dict(s.ensemble_mean) == pytest.approx({'a': mean_theta[0], 'b': mean_theta[1]})

        np.testing.assert_allclose(s.mean_square_errors, np.mean((y[:, None] - G) ** 2, axis=0))
        assert s.ensemble_cov.shape == (2, 2)
        assert dict(s.ensemble_var) == pytest.approx({'a': s.ensemble_cov[0, 0], 'b': s.ensemble_cov[1, 1]})
        assert all(v > 0 for v in s.ensemble_var.values())

    def test_best_and_worst(self, summary):
        s, *_ = summary
        assert s.mean_square_errors[s.best_particle] == s.mean_square_errors.min()
        assert s.mean_square_errors[s.worst_particle] == s.mean_square_errors.max()

    def test_immutable(self, summary):
        s, *_ = summary
        with pytest.raises(dataclasses.FrozenInstanceError):
            s.iteration = 4
        with pytest.raises(ValueError):
            s.mean_square_errors[0] = 0.0
        with pytest.raises(ValueError):
            s.ensemble_cov[0, 0] = 0.0
        with pytest.raises(TypeError):
            s.ensemble_mean['a'] = 99.0
        with pytest.raises(TypeError):
            s.ensemble_var['a'] = 0.0
        with pytest.raises(TypeError):
            s.parameters[0]['b'] = 0.0

    def test_recorded_summary_cannot_be_rewritten(self, eki):
        first = eki.iteration_summaries[0]
        mean_a = first.ensemble_mean['a']
        with pytest.raises(TypeError):
            first.ensemble_mean['a'] = 99.0
        assert eki.iteration_summaries[0].ensemble_mean['a'] == mean_a

    def test_does_not_alias_inputs(self, two_parameters, rng, padded_forward_map):
        X = rng.normal(size=(2, 8))
        G = padded_forward_map(X)
        s = build_summary(two_parameters, np.zeros(10), X, G, iteration=0)
        errors = s.mean_square_errors.copy()

        G[:] = 100.0

        np.testing.assert_array_equal(s.mean_square_errors, errors)

    def test_str(self, summary):
        s, *_ = summary
        text = str(s)
        assert text.startswith("IterationSummary for 8 particles and 2 parameters at iteration 3")
        assert "ensemble_mean" in text
        assert "best particle" in text
        assert "worst particle" in text
        assert "ensemble_variance" in text
