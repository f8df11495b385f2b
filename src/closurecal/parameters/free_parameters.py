# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Free parameters and calibratable closures.

A closure type declares, once and statically, which of its numeric fields
may be calibrated. The inversion engine never inspects closure fields: it
works with ordered ``FreeParameters`` and hands physical values back to the
forward model, which builds new closures through ``with_parameters``.

Example:
    >>> @dataclass(frozen=True)
    ... class TKEClosure(ClosureParameters):
    ...     calibratable_fields: ClassVar[Tuple[str, ...]] = ('C_D', 'C_L')
    ...     C_D: float = 2.9
    ...     C_L: float = 1.1
    ...     max_length: float = 100.0
    >>> TKEClosure().with_parameters(C_D=3.1).C_D
    3.1
"""

import dataclasses
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from closurecal.core.exceptions import ConfigurationError

from .priors import ScaledLogitNormal
from .transforms import to_constrained


class ClosureParameters:
    """Mixin for frozen dataclass closures with declared calibratable fields.

    Subclasses set ``calibratable_fields`` to the ordered names of the
    numeric fields exposed for calibration.
    """

    calibratable_fields: ClassVar[Tuple[str, ...]] = ()

    def with_parameters(self, **overrides: float) -> 'ClosureParameters':
        """Return a new closure with the named calibratable fields replaced."""
        unknown = sorted(set(overrides) - set(self.calibratable_fields))
        if unknown:
            raise ConfigurationError(
                f"{type(self).__name__} does not declare {unknown} as calibratable; "
                f"calibratable fields are {list(self.calibratable_fields)}"
            )
        return dataclasses.replace(self, **{k: float(v) for k, v in overrides.items()})


class FreeParameters:
    """Ordered collection of named priors.

    The order of ``names`` fixes the row order of every ``(Nθ, Nensemble)``
    parameter array in the inversion.

    Args:
        priors: Mapping of parameter name to prior, in calibration order.
    """

    def __init__(self, priors: Mapping[str, ScaledLogitNormal]):
        if not priors:
            raise ConfigurationError("At least one free parameter is required")
        self.priors: Dict[str, ScaledLogitNormal] = dict(priors)
        self.names: Tuple[str, ...] = tuple(self.priors)

    @classmethod
    def from_config(cls, prior_configs: Sequence) -> 'FreeParameters':
        """Build from a list of ``PriorConfig``."""
        return cls({p.name: ScaledLogitNormal.from_config(p) for p in prior_configs})

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self):
        return iter(self.names)

    def __repr__(self) -> str:
        return f"FreeParameters({', '.join(self.names)})"

    def validate_against(self, closure_type: type) -> None:
        """Check that every free parameter is calibratable on ``closure_type``."""
        declared = set(getattr(closure_type, 'calibratable_fields', ()))
        missing = [name for name in self.names if name not in declared]
        if missing:
            raise ConfigurationError(
                f"{closure_type.__name__} does not declare {missing} as calibratable"
            )

    def to_constrained(self, X) -> np.ndarray:
        return to_constrained(self.priors, X)

    def named(self, theta_column) -> Dict[str, float]:
        """Pair one physical parameter vector with the parameter names."""
        return {name: float(v) for name, v in zip(self.names, np.ravel(theta_column))}

    def named_columns(self, theta) -> List[Dict[str, float]]:
        """Split an ``(Nθ, Nensemble)`` physical array into per-member dicts."""
        theta = np.asarray(theta, dtype=float)
        return [self.named(theta[:, k]) for k in range(theta.shape[1])]


def closures_for_ensemble(
    free_parameters: FreeParameters,
    closure: ClosureParameters,
    theta,
) -> List[ClosureParameters]:
    """One closure per ensemble column, with the free parameters overridden.

    Args:
        free_parameters: Parameter names in row order.
        closure: Template closure holding the non-calibrated values.
        theta: Physical parameters, shape (Nθ, Nensemble).
    """
    return [closure.with_parameters(**values) for values in free_parameters.named_columns(theta)]


def constrained_forward_map(
    free_parameters: FreeParameters,
    physical_map: Callable[[np.ndarray], Any],
) -> Callable[[np.ndarray], np.ndarray]:
    """Wrap a physical-space forward map into the unconstrained contract.

    ``physical_map`` receives an ``(Nθ, Nensemble)`` array in physical units
    and returns ``(Nobs, Nensemble)`` output; the returned callable accepts
    unconstrained parameters instead.
    """

    def inverting_forward_map(X: np.ndarray) -> np.ndarray:
        theta = free_parameters.to_constrained(X)
        return np.asarray(physical_map(theta), dtype=float)

    return inverting_forward_map
