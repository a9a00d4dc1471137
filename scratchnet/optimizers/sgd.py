"""Plain and momentum gradient descent."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.types import Array, ParameterBuffer
from .base import Optimizer, State, zeros_like


@dataclass
class Sgd(Optimizer):
    """``param -= learning_rate * grad``."""

    name = "sgd"

    def _update(self, params: Array, gradient: Array, state: State) -> None:
        params -= self.learning_rate * gradient


@dataclass
class SgdMomentum(Optimizer):
    """Gradient descent with a per-parameter velocity.

    ``velocity = momentum * velocity - learning_rate * grad`` followed by
    ``param += velocity``.
    """

    name = "momentum"

    momentum: float = 0.9

    def _new_state(self, parameters: ParameterBuffer) -> State:
        return {"velocity": zeros_like(parameters)}

    def _update(self, params: Array, gradient: Array, state: State) -> None:
        velocity = state["velocity"]
        velocity *= self.momentum
        velocity -= self.learning_rate * gradient
        params += velocity
