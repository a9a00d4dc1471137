"""Adam with bias-corrected moment estimates."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ..core.types import Array, ParameterBuffer
from .base import Optimizer, State, zeros_like


@dataclass
class Adam(Optimizer):
    """Adam optimizer.

    The timestep is shared by all layers and advances once per batch in
    :meth:`begin_step`, so every layer of a batch sees the same bias
    correction.
    """

    name = "adam"

    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    timestep: int = field(default=0, init=False)

    def initialize_states(self, network) -> None:
        super().initialize_states(network)
        self.timestep = 0

    def begin_step(self) -> None:
        self.timestep += 1

    def _new_state(self, parameters: ParameterBuffer) -> State:
        return {"first_moment": zeros_like(parameters), "second_moment": zeros_like(parameters)}

    def _update(self, params: Array, gradient: Array, state: State) -> None:
        t = max(self.timestep, 1)
        m = state["first_moment"]
        v = state["second_moment"]
        m *= self.beta1
        m += (1.0 - self.beta1) * gradient
        v *= self.beta2
        v += (1.0 - self.beta2) * np.square(gradient)
        m_hat = m / (1.0 - self.beta1**t)
        v_hat = v / (1.0 - self.beta2**t)
        params -= self.learning_rate * m_hat / (np.sqrt(v_hat) + self.epsilon)
