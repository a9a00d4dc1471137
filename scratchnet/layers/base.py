"""Layer contracts shared by every layer kind."""

from __future__ import annotations

from typing import ClassVar, Optional, Protocol, Tuple

import numpy as np

from ..core.errors import InvalidInputError, ShapeMismatchError
from ..core.types import Array, LayerGradients, ParameterBuffer, TensorShape, as_tensor


class Layer(Protocol):
    """Capability set implemented by all layers."""

    kind: ClassVar[str]
    trainable: ClassVar[bool]
    input_shape: Optional[TensorShape]
    output_shape: Optional[TensorShape]

    def initialize(self, previous_shape: TensorShape, rng: np.random.Generator) -> TensorShape:
        """Adopt ``previous_shape`` as input shape and return the output shape."""

    def forward(self, inputs: Array) -> Array:
        """Run inference, caching whatever ``backward`` needs."""

    def backward(self, gradient_wrt_output: Array):
        """Return the gradient with respect to the layer input."""


class TrainableLayer(Layer, Protocol):
    """Layers that own weights and biases."""

    parameters: ParameterBuffer

    def parameter_shapes(self, previous_shape: TensorShape) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        """Weight and bias shapes for ``previous_shape``, without touching the layer."""

    def initialize_gradient(self) -> ParameterBuffer: ...

    def accumulate_gradient(self, acc: ParameterBuffer, gradient: LayerGradients) -> ParameterBuffer: ...

    def average_gradient(self, acc: ParameterBuffer, batch_size: int) -> ParameterBuffer: ...

    def activation_function_derivative(self) -> Array: ...

    def backward(self, gradient_wrt_output: Array) -> LayerGradients: ...


def spatial_shape(layer: str, shape: TensorShape) -> Tuple[int, int, int]:
    """Validate that ``shape`` is a (channels, height, width) triple."""

    if isinstance(shape, (int, np.integer)) or len(shape) != 3:
        raise ShapeMismatchError(
            f"{layer} expects a (channels, height, width) input, got {shape!r}"
        )
    channels, height, width = (int(d) for d in shape)
    if min(channels, height, width) < 1:
        raise ShapeMismatchError(f"{layer} received a degenerate input shape {shape!r}")
    return channels, height, width


def flat_shape(layer: str, shape: TensorShape) -> int:
    """Validate that ``shape`` is a flat vector length."""

    if not isinstance(shape, (int, np.integer)):
        raise ShapeMismatchError(
            f"{layer} expects a flat vector input, got {shape!r}; insert a Flatten layer"
        )
    if int(shape) < 1:
        raise ShapeMismatchError(f"{layer} received a degenerate input length {shape!r}")
    return int(shape)


def normalize_shape(shape) -> TensorShape:
    if isinstance(shape, (int, np.integer)):
        return int(shape)
    shape = tuple(int(d) for d in shape)
    if len(shape) == 1:
        return shape[0]
    return shape


def check_declared(layer: str, declared: Optional[TensorShape], previous: TensorShape) -> None:
    if declared is not None and normalize_shape(declared) != normalize_shape(previous):
        raise ShapeMismatchError(
            f"{layer} declares input shape {declared!r} but the previous layer "
            f"produces {previous!r}"
        )


def check_tensor(layer: str, tensor: Array, expected: TensorShape) -> Array:
    tensor = as_tensor(tensor)
    expected_tuple = (expected,) if isinstance(expected, int) else tuple(expected)
    if tensor.shape != expected_tuple:
        raise ShapeMismatchError(
            f"{layer} expected a tensor of shape {expected_tuple}, got {tensor.shape}"
        )
    return tensor


class ParameterGradients:
    """Gradient bookkeeping shared by the trainable layers."""

    parameters: Optional[ParameterBuffer]
    input_shape: Optional[TensorShape]

    def initialize_gradient(self) -> ParameterBuffer:
        return self.parameters.zeros_like()

    def accumulate_gradient(self, acc: ParameterBuffer, gradient: LayerGradients) -> ParameterBuffer:
        acc.data += acc.pack(gradient.weights, gradient.biases)
        return acc

    def average_gradient(self, acc: ParameterBuffer, batch_size: int) -> ParameterBuffer:
        if batch_size < 1:
            raise InvalidInputError("Cannot average a gradient over an empty batch")
        acc.data /= batch_size
        return acc

    def import_weights(self, weights: Array, biases: Array, previous_shape: TensorShape) -> None:
        """Overwrite the parameters with externally trained values.

        Shapes are validated before anything is touched, so a failed import
        leaves the layer as it was.
        """

        reshape = self.parameters is None or self.input_shape != normalize_shape(previous_shape)
        expected_w, expected_b = (
            self.parameter_shapes(previous_shape) if reshape else self.parameters.shape
        )
        weights = as_tensor(weights)
        biases = as_tensor(biases)
        if weights.shape != expected_w or biases.shape != expected_b:
            raise ShapeMismatchError(
                f"{type(self).__name__} expects weights {expected_w} and biases "
                f"{expected_b}, got {weights.shape} and {biases.shape}"
            )
        if reshape:
            self.initialize(previous_shape, np.random.default_rng(0))
        self.parameters.data[:] = self.parameters.pack(weights, biases)


__all__ = [
    "Layer",
    "TrainableLayer",
    "ParameterGradients",
    "check_declared",
    "check_tensor",
    "flat_shape",
    "normalize_shape",
    "spatial_shape",
]
