"""Flatten a (channels, height, width) tensor into a vector."""

from __future__ import annotations

from typing import ClassVar, Optional, Tuple

import numpy as np

from ..core.types import Array, TensorShape
from .base import check_declared, check_tensor, spatial_shape


class Flatten:
    """Channel-major, then row-major, flattening.

    ``backward`` reshapes with the same C-order traversal so that
    ``backward(forward(x))`` reproduces ``x``.
    """

    kind: ClassVar[str] = "flatten"
    trainable: ClassVar[bool] = False

    def __init__(self, input_shape: Optional[TensorShape] = None) -> None:
        self.declared_shape = input_shape
        self.input_shape: Optional[Tuple[int, int, int]] = None
        self.output_shape: Optional[int] = None

    def initialize(self, previous_shape: TensorShape, rng: np.random.Generator | None = None) -> TensorShape:
        check_declared("Flatten", self.declared_shape, previous_shape)
        self.input_shape = spatial_shape("Flatten", previous_shape)
        channels, height, width = self.input_shape
        self.output_shape = channels * height * width
        return self.output_shape

    def forward(self, inputs: Array) -> Array:
        return check_tensor("Flatten", inputs, self.input_shape).reshape(-1)

    def backward(self, gradient_wrt_output: Array) -> Array:
        gradient = check_tensor("Flatten", gradient_wrt_output, self.output_shape)
        return gradient.reshape(self.input_shape)

    def __repr__(self) -> str:
        return "Flatten()"
