"""RMSProp."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.types import Array, ParameterBuffer
from .base import Optimizer, State, zeros_like


@dataclass
class RmsProp(Optimizer):
    name = "rmsprop"

    decay_rate: float = 0.9
    epsilon: float = 1e-8

    def _new_state(self, parameters: ParameterBuffer) -> State:
        return {"avg_square_gradient": zeros_like(parameters)}

    def _update(self, params: Array, gradient: Array, state: State) -> None:
        avg = state["avg_square_gradient"]
        avg *= self.decay_rate
        avg += (1.0 - self.decay_rate) * np.square(gradient)
        params -= self.learning_rate * gradient / (np.sqrt(avg) + self.epsilon)
