"""Two-dimensional max and average pooling."""

from __future__ import annotations

from typing import ClassVar, Optional, Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..core.errors import ConfigurationError, ShapeMismatchError
from ..core.types import Array, TensorShape
from .base import check_declared, check_tensor, spatial_shape

_METHODS = ("max", "avg")


def windows(image: Array, window: Tuple[int, int], stride: int) -> Array:
    """Return strided ``(..., out_h, out_w, win_h, win_w)`` views of ``image``."""

    view = sliding_window_view(image, window, axis=(-2, -1))
    return view[..., ::stride, ::stride, :, :]


class Pooling2d:
    """Per-channel pooling over ``pool_size`` windows.

    In ``max`` mode the forward pass records, for every output cell, which
    input cell won its window.  ``backward`` routes each output gradient to
    that cell only.  In ``avg`` mode the gradient is spread evenly over the
    window.  Contributions of overlapping windows are summed.
    """

    kind: ClassVar[str] = "pooling2d"
    trainable: ClassVar[bool] = False

    def __init__(
        self,
        pool_size: Sequence[int] = (2, 2),
        stride: int = 2,
        method: str = "max",
        input_shape: Optional[TensorShape] = None,
    ) -> None:
        if method not in _METHODS:
            raise ConfigurationError(f"Unknown pooling method {method!r}; use 'max' or 'avg'")
        pool_h, pool_w = (int(d) for d in pool_size)
        if pool_h < 1 or pool_w < 1 or int(stride) < 1:
            raise ConfigurationError("Pool size and stride must be positive")
        self.pool_size = (pool_h, pool_w)
        self.stride = int(stride)
        self.method = method
        self.declared_shape = input_shape
        self.input_shape: Optional[Tuple[int, int, int]] = None
        self.output_shape: Optional[Tuple[int, int, int]] = None
        self.mask: Optional[Array] = None
        self._winners: Optional[Tuple[Array, Array]] = None

    def initialize(self, previous_shape: TensorShape, rng: np.random.Generator | None = None) -> TensorShape:
        check_declared("Pooling2d", self.declared_shape, previous_shape)
        channels, height, width = spatial_shape("Pooling2d", previous_shape)
        out_h = (height - self.pool_size[0]) // self.stride + 1
        out_w = (width - self.pool_size[1]) // self.stride + 1
        if out_h < 1 or out_w < 1:
            raise ShapeMismatchError(
                f"Pool size {self.pool_size} does not fit input {previous_shape!r}"
            )
        self.input_shape = (channels, height, width)
        self.output_shape = (channels, out_h, out_w)
        return self.output_shape

    def forward(self, inputs: Array) -> Array:
        inputs = check_tensor("Pooling2d", inputs, self.input_shape)
        view = windows(inputs, self.pool_size, self.stride)
        if self.method == "avg":
            return view.mean(axis=(-2, -1))

        channels, out_h, out_w = self.output_shape
        flat = view.reshape(channels, out_h, out_w, -1)
        winner = np.argmax(flat, axis=-1)
        row_offset, col_offset = np.divmod(winner, self.pool_size[1])
        rows = np.arange(out_h)[None, :, None] * self.stride + row_offset
        cols = np.arange(out_w)[None, None, :] * self.stride + col_offset
        self._winners = (rows, cols)
        self.mask = np.zeros(self.input_shape, dtype=bool)
        channel_idx = np.broadcast_to(np.arange(channels)[:, None, None], rows.shape)
        self.mask[channel_idx, rows, cols] = True
        return np.take_along_axis(flat, winner[..., None], axis=-1)[..., 0]

    def backward(self, gradient_wrt_output: Array) -> Array:
        gradient = check_tensor("Pooling2d", gradient_wrt_output, self.output_shape)
        result = np.zeros(self.input_shape, dtype=np.float64)
        if self.method == "avg":
            share = gradient / (self.pool_size[0] * self.pool_size[1])
            _, out_h, out_w = self.output_shape
            pool_h, pool_w = self.pool_size
            for i in range(out_h):
                for j in range(out_w):
                    top, left = i * self.stride, j * self.stride
                    result[:, top : top + pool_h, left : left + pool_w] += share[:, i, j, None, None]
            return result

        if self._winners is None:
            raise RuntimeError("Pooling2d.backward called before forward")
        rows, cols = self._winners
        channel_idx = np.broadcast_to(np.arange(self.input_shape[0])[:, None, None], rows.shape)
        np.add.at(result, (channel_idx, rows, cols), gradient)
        return result

    def __repr__(self) -> str:
        return f"Pooling2d(pool_size={self.pool_size}, stride={self.stride}, method={self.method!r})"
