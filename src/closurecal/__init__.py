# src/closurecal/__init__.py
try:
    from .closurecal_version import __version__
except ImportError:
    try:
        from importlib.metadata import version, PackageNotFoundError
        __version__ = version("closurecal")
    except (ImportError, PackageNotFoundError):
        __version__ = "0.0.0"

from .core import configure_logging
from .core.config import CalibrationConfig
from .inversion import EnsembleKalmanInversion, Resampler, calibrate, construct, iterate
from .parameters import FreeParameters, ScaledLogitNormal

__all__ = [
    "CalibrationConfig",
    "EnsembleKalmanInversion",
    "FreeParameters",
    "Resampler",
    "ScaledLogitNormal",
    "__version__",
    "calibrate",
    "configure_logging",
    "construct",
    "iterate",
]
