"""Optimizer contract operating on flat parameter buffers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Dict, List

import numpy as np

from ..core.types import Array, ParameterBuffer

if TYPE_CHECKING:  # pragma: no cover
    from ..layers.base import TrainableLayer
    from ..training.network import Network

logger = logging.getLogger(__name__)

State = Dict[str, Array]


@dataclass
class Optimizer:
    """Base optimizer.

    Each trainable layer gets one state record whose arrays have exactly the
    size of that layer's parameter buffer.  Subclasses only implement
    :meth:`_new_state` and :meth:`_update`; they never look at the layer type.
    """

    name: ClassVar[str] = "base"

    learning_rate: float
    states: List[State] = field(default_factory=list, init=False, repr=False)

    def initialize_states(self, network: "Network") -> None:
        self.states = [self._new_state(layer.parameters) for layer in network.trainable_layers]

    def begin_step(self) -> None:
        """Hook called once per batch before the layers are updated."""

    def apply_gradient(
        self,
        layer: "TrainableLayer",
        weights_gradient: Array,
        biases_gradient: Array,
        layer_index: int,
    ) -> None:
        parameters = layer.parameters
        gradient = parameters.pack(weights_gradient, biases_gradient)
        state = self._state_for(layer_index, parameters)
        self._update(parameters.data, gradient, state)

    def _state_for(self, layer_index: int, parameters: ParameterBuffer) -> State:
        while len(self.states) <= layer_index:
            self.states.append(self._new_state(parameters))
        state = self.states[layer_index]
        if any(value.shape != parameters.data.shape for value in state.values()):
            logger.warning(
                "Re-creating %s state for layer %d: parameters changed to %s",
                self.name,
                layer_index,
                parameters,
            )
            state = self._new_state(parameters)
            self.states[layer_index] = state
        return state

    def _new_state(self, parameters: ParameterBuffer) -> State:
        return {}

    def _update(self, params: Array, gradient: Array, state: State) -> None:
        raise NotImplementedError


def zeros_like(parameters: ParameterBuffer) -> Array:
    return np.zeros_like(parameters.data)


__all__ = ["Optimizer", "State", "zeros_like"]
