"""Input layer declaring the tensor shape fed to the network."""

from __future__ import annotations

from typing import ClassVar

import numpy as np

from ..core.errors import ShapeMismatchError
from ..core.types import Array, TensorShape
from .base import check_declared, check_tensor, normalize_shape


class Input:
    """Identity layer; the first layer of every network."""

    kind: ClassVar[str] = "input"
    trainable: ClassVar[bool] = False

    def __init__(self, input_shape: TensorShape) -> None:
        shape = normalize_shape(input_shape)
        dims = (shape,) if isinstance(shape, int) else shape
        if len(dims) not in (1, 3) or min(dims) < 1:
            raise ShapeMismatchError(
                f"Input shape must be a vector length or (channels, height, width), got {input_shape!r}"
            )
        self.input_shape: TensorShape = shape
        self.output_shape: TensorShape = shape

    def initialize(self, previous_shape: TensorShape, rng: np.random.Generator | None = None) -> TensorShape:
        check_declared("Input", self.input_shape, previous_shape)
        return self.output_shape

    def forward(self, inputs: Array) -> Array:
        return check_tensor("Input", inputs, self.input_shape)

    def backward(self, gradient_wrt_output: Array) -> Array:
        raise RuntimeError("Gradients never flow back past the input layer")

    def __repr__(self) -> str:
        return f"Input({self.input_shape!r})"
