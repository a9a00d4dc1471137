"""Fully connected layer."""

from __future__ import annotations

from typing import ClassVar, Optional, Tuple

import numpy as np

from ..core import activations, initializers
from ..core.errors import ConfigurationError
from ..core.types import Array, LayerGradients, ParameterBuffer, TensorShape
from .base import ParameterGradients, check_declared, check_tensor, flat_shape


class Dense(ParameterGradients):
    """``activation(weights @ x + biases)`` with ``weights`` of shape (out, in).

    Hidden layers are differentiated through :meth:`backward`.  The output
    layer is differentiated through :meth:`output_backward`, which takes the
    raw ``prediction - target`` vector: for softmax that vector already is the
    delta, for sigmoid it is multiplied by the sigmoid derivative.
    """

    kind: ClassVar[str] = "dense"
    trainable: ClassVar[bool] = True

    def __init__(
        self,
        units: int,
        activation: str = "relu",
        input_shape: Optional[TensorShape] = None,
    ) -> None:
        if int(units) < 1:
            raise ConfigurationError(f"Dense layer needs at least one unit, got {units}")
        self.activation = activations.resolve(activation)
        # fail fast on the initializer paired with the activation
        initializers.limit(self.activation.initializer, 1, 1)
        self.units = int(units)
        self.declared_shape = input_shape
        self.input_shape: Optional[int] = None
        self.output_shape: int = self.units
        self.parameters: Optional[ParameterBuffer] = None
        self.deltas: Optional[Array] = None
        self._input: Optional[Array] = None
        self._preactivation: Optional[Array] = None
        self._activation: Optional[Array] = None

    @property
    def activation_name(self) -> str:
        return self.activation.name

    def parameter_shapes(self, previous_shape: TensorShape) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        check_declared("Dense", self.declared_shape, previous_shape)
        fan_in = flat_shape("Dense", previous_shape)
        return (self.units, fan_in), (self.units,)

    def initialize(self, previous_shape: TensorShape, rng: np.random.Generator) -> TensorShape:
        (_, fan_in), _ = self.parameter_shapes(previous_shape)
        self.input_shape = fan_in
        weights = initializers.uniform(
            self.activation.initializer, (self.units, fan_in), fan_in, self.units, rng
        )
        self.parameters = ParameterBuffer.from_arrays(weights, np.zeros(self.units))
        return self.output_shape

    def forward(self, inputs: Array) -> Array:
        inputs = check_tensor("Dense", inputs, self.input_shape)
        preactivation = self.parameters.weights @ inputs + self.parameters.biases
        activation = self.activation(preactivation)
        self._input = inputs
        self._preactivation = preactivation
        self._activation = activation
        return activation

    def activation_function_derivative(self) -> Array:
        """Derivative of the activation at the cached forward pass."""

        return self.activation.derivative_at(self._preactivation, self._activation)

    def _gradients(self, deltas: Array) -> LayerGradients:
        self.deltas = deltas
        weights_gradient = np.outer(deltas, self._input)
        gradient_wrt_input = self.parameters.weights.T @ deltas
        return LayerGradients(gradient_wrt_input, weights_gradient, deltas.copy())

    def backward(self, gradient_wrt_output: Array) -> LayerGradients:
        gradient = check_tensor("Dense", gradient_wrt_output, self.output_shape)
        return self._gradients(gradient * self.activation_function_derivative())

    def output_deltas(self, losses: Array) -> Array:
        losses = check_tensor("Dense", losses, self.output_shape)
        if self.activation.name == "sigmoid":
            return losses * self.activation_function_derivative()
        return losses

    def output_layer_weights_gradient(self, losses: Array) -> Array:
        self.deltas = self.output_deltas(losses)
        return np.outer(self.deltas, self._input)

    def output_layer_biases_gradient(self, losses: Array) -> Array:
        return self.output_deltas(losses)

    def output_backward(self, losses: Array) -> LayerGradients:
        """Gradients of the output layer from ``prediction - target``."""

        return self._gradients(self.output_deltas(losses))

    def __repr__(self) -> str:
        return f"Dense({self.units}, {self.activation.name!r})"
