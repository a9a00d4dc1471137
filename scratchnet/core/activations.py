"""Activation functions and their registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

import numpy as np

from .errors import ConfigurationError
from .types import Array


def sigmoid(z: Array) -> Array:
    """Return the logistic sigmoid of ``z``."""

    return 1.0 / (1.0 + np.exp(-z))


def relu(z: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(z, 0.0)


def softmax(z: Array) -> Array:
    """Return the softmax of a vector, shifted by its maximum for stability."""

    shifted = np.exp(z - np.max(z))
    return shifted / np.sum(shifted)


def sigmoid_derivative(preactivation: Array, activation: Array) -> Array:
    return activation * (1.0 - activation)


def relu_derivative(preactivation: Array, activation: Array) -> Array:
    return (preactivation > 0).astype(np.float64)


Derivative = Callable[[Array, Array], Array]


@dataclass(frozen=True)
class Activation:
    """Activation function paired with its derivative and weight initializer."""

    name: str
    fn: Callable[[Array], Array]
    derivative: Optional[Derivative]
    initializer: str

    def __call__(self, z: Array) -> Array:
        return self.fn(z)

    def derivative_at(self, preactivation: Array, activation: Array) -> Array:
        if self.derivative is None:
            raise ConfigurationError(
                f"Activation {self.name!r} has no standalone derivative; "
                "it can only be used on the output layer"
            )
        return self.derivative(preactivation, activation)


_REGISTRY: Dict[str, Activation] = {
    "sigmoid": Activation("sigmoid", sigmoid, sigmoid_derivative, "xavier"),
    "softmax": Activation("softmax", softmax, None, "xavier"),
    "relu": Activation("relu", relu, relu_derivative, "he"),
}


def resolve(name: str) -> Activation:
    try:
        return _REGISTRY[name]
    except KeyError:
        available = ", ".join(sorted(_REGISTRY))
        raise ConfigurationError(
            f"Unknown activation function {name!r}. Available: {available}"
        ) from None


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = ["Activation", "relu", "sigmoid", "softmax", "resolve", "names"]
