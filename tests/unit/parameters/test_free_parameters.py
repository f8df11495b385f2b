"""Tests for FreeParameters and calibratable closures."""

from dataclasses import dataclass
from typing import ClassVar, Tuple

import numpy as np
import pytest

from closurecal.core.config import PriorConfig
from closurecal.core.exceptions import ConfigurationError
from closurecal.parameters import (
    ClosureParameters,
    FreeParameters,
    ScaledLogitNormal,
    closures_for_ensemble,
    constrained_forward_map,
)


@dataclass(frozen=True)
class TKEClosure(ClosureParameters):
    calibratable_fields: ClassVar[Tuple[str, ...]] = ('C_D', 'C_L')
    C_D: float = 2.9
    C_L: float = 1.1
    max_length: float = 100.0


@pytest.fixture
def tke_parameters():
    return FreeParameters({
        'C_D': ScaledLogitNormal(mean=2.9, std=0.5, lower=0.0, upper=10.0),
        'C_L': ScaledLogitNormal(mean=1.1, std=0.2, lower=0.0, upper=5.0),
    })


class TestClosureParameters:

    def test_with_parameters_returns_new_closure(self):
        closure = TKEClosure()
        updated = closure.with_parameters(C_D=3.5)

        assert updated.C_D == 3.5
        assert updated.C_L == closure.C_L
        assert updated.max_length == closure.max_length
        assert closure.C_D == 2.9

    def test_rejects_non_calibratable_field(self):
        with pytest.raises(ConfigurationError, match="max_length"):
            TKEClosure().with_parameters(max_length=10.0)

    def test_rejects_unknown_field(self):
        with pytest.raises(ConfigurationError):
            TKEClosure().with_parameters(C_X=1.0)


class TestFreeParameters:

    def test_order_and_length(self, tke_parameters):
        assert tke_parameters.names == ('C_D', 'C_L')
        assert len(tke_parameters) == 2
        assert list(tke_parameters) == ['C_D', 'C_L']
        assert repr(tke_parameters) == "FreeParameters(C_D, C_L)"

    def test_empty(self):
        with pytest.raises(ConfigurationError):
            FreeParameters({})

    def test_from_config(self):
        configs = [
            PriorConfig(NAME='b', MEAN=2.0, STD=0.5, LOWER=0.0, UPPER=5.0),
            PriorConfig(NAME='a', MEAN=0.5, STD=0.1, LOWER=0.0, UPPER=1.0),
        ]
        free = FreeParameters.from_config(configs)
        assert free.names == ('b', 'a')
        assert free.priors['a'].upper == 1.0

    def test_validate_against(self, tke_parameters):
        tke_parameters.validate_against(TKEClosure)

        other = FreeParameters({'max_length': ScaledLogitNormal(mean=50.0, std=5.0, lower=0.0, upper=200.0)})
        with pytest.raises(ConfigurationError):
            other.validate_against(TKEClosure)

    def test_named_columns(self, tke_parameters):
        theta = np.array([[1.0, 2.0, 3.0], [0.5, 0.6, 0.7]])
        columns = tke_parameters.named_columns(theta)
        assert len(columns) == 3
        assert columns[1] == {'C_D': 2.0, 'C_L': 0.6}


class TestEnsembleHelpers:

    def test_closures_for_ensemble(self, tke_parameters, rng):
        X = rng.normal(size=(2, 4))
        theta = tke_parameters.to_constrained(X)

        closures = closures_for_ensemble(tke_parameters, TKEClosure(max_length=50.0), theta)

        assert len(closures) == 4
        for k, closure in enumerate(closures):
            assert closure.C_D == pytest.approx(theta[0, k])
            assert closure.C_L == pytest.approx(theta[1, k])
            assert closure.max_length == 50.0

    def test_constrained_forward_map(self, tke_parameters, rng):
        seen = []

        def physical_map(theta):
            seen.append(theta)
            return theta.sum(axis=0, keepdims=True)

        forward_map = constrained_forward_map(tke_parameters, physical_map)
        X = rng.normal(size=(2, 6))
        G = forward_map(X)

        np.testing.assert_allclose(seen[0], tke_parameters.to_constrained(X))
        assert G.shape == (1, 6)
