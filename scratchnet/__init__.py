"""scratchnet public API."""

from .core import activations  # noqa: F401
from .core.errors import ConfigurationError, InvalidInputError, ShapeMismatchError
from .core.types import (
    BatchStart,
    EpochEnd,
    EpochStart,
    FitCompleted,
    FitFailed,
    FitParams,
    ParameterBuffer,
    Sample,
)
from .layers import Convolutional2d, Dense, Flatten, Input, Pooling2d
from .optimizers import Adam, RmsProp, Sgd, SgdMomentum, build_optimizer
from .training import FitStream, Network, accuracy

__all__ = [
    "Network",
    "FitStream",
    "FitParams",
    "Sample",
    "ParameterBuffer",
    "Input",
    "Flatten",
    "Pooling2d",
    "Dense",
    "Convolutional2d",
    "Sgd",
    "SgdMomentum",
    "RmsProp",
    "Adam",
    "build_optimizer",
    "accuracy",
    "activations",
    "EpochStart",
    "BatchStart",
    "EpochEnd",
    "FitCompleted",
    "FitFailed",
    "ConfigurationError",
    "ShapeMismatchError",
    "InvalidInputError",
]
