"""Two-dimensional convolution (cross-correlation) layer."""

from __future__ import annotations

from typing import ClassVar, Optional, Sequence, Tuple

import numpy as np

from ..core import activations, initializers
from ..core.errors import ConfigurationError, ShapeMismatchError
from ..core.types import Array, LayerGradients, ParameterBuffer, TensorShape
from .base import ParameterGradients, check_declared, check_tensor, spatial_shape
from .pooling import windows


def pad(image: Array, padding: Tuple[int, int]) -> Array:
    """Zero-pad the two trailing axes of ``image``."""

    pad_h, pad_w = padding
    if pad_h == 0 and pad_w == 0:
        return image
    widths = [(0, 0)] * (image.ndim - 2) + [(pad_h, pad_h), (pad_w, pad_w)]
    return np.pad(image, widths, mode="constant")


def dilate(image: Array, stride: int) -> Array:
    """Insert ``stride - 1`` zeros between neighbouring cells of the trailing axes."""

    if stride == 1:
        return image
    height, width = image.shape[-2:]
    out = np.zeros(image.shape[:-2] + ((height - 1) * stride + 1, (width - 1) * stride + 1))
    out[..., ::stride, ::stride] = image
    return out


def flip(kernel: Array) -> Array:
    """Rotate the trailing two axes by 180 degrees."""

    return kernel[..., ::-1, ::-1]


class Convolutional2d(ParameterGradients):
    """``filters`` kernels of shape (in_channels, kernel_h, kernel_w).

    Weights have shape (filters, in_channels, kernel_h, kernel_w) and there is
    one bias per filter.
    """

    kind: ClassVar[str] = "conv2d"
    trainable: ClassVar[bool] = True

    def __init__(
        self,
        filters: int,
        kernel_size: Sequence[int] = (3, 3),
        padding: int = 0,
        stride: int = 1,
        activation: str = "relu",
        input_shape: Optional[TensorShape] = None,
    ) -> None:
        self.activation = activations.resolve(activation)
        if self.activation.derivative is None:
            raise ConfigurationError(
                f"Activation {activation!r} is not supported by Convolutional2d"
            )
        kernel_h, kernel_w = (int(d) for d in kernel_size)
        if int(filters) < 1 or kernel_h < 1 or kernel_w < 1:
            raise ConfigurationError("Filters and kernel size must be positive")
        if int(padding) < 0 or int(stride) < 1:
            raise ConfigurationError("Padding must be >= 0 and stride >= 1")
        self.filters = int(filters)
        self.kernel_size = (kernel_h, kernel_w)
        self.padding = int(padding)
        self.stride = int(stride)
        self.declared_shape = input_shape
        self.input_shape: Optional[Tuple[int, int, int]] = None
        self.output_shape: Optional[Tuple[int, int, int]] = None
        self.parameters: Optional[ParameterBuffer] = None
        self._padded_input: Optional[Array] = None
        self._preactivation: Optional[Array] = None
        self._activation: Optional[Array] = None

    @property
    def activation_name(self) -> str:
        return self.activation.name

    def _output_spatial(self, previous_shape: TensorShape) -> Tuple[int, int]:
        _, height, width = spatial_shape("Convolutional2d", previous_shape)
        kernel_h, kernel_w = self.kernel_size
        out_h = (height + 2 * self.padding - kernel_h) // self.stride + 1
        out_w = (width + 2 * self.padding - kernel_w) // self.stride + 1
        if out_h < 1 or out_w < 1:
            raise ShapeMismatchError(
                f"Kernel {self.kernel_size} with padding {self.padding} does not fit "
                f"input {previous_shape!r}"
            )
        return out_h, out_w

    def parameter_shapes(self, previous_shape: TensorShape) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        check_declared("Convolutional2d", self.declared_shape, previous_shape)
        self._output_spatial(previous_shape)
        channels = spatial_shape("Convolutional2d", previous_shape)[0]
        return (self.filters, channels) + self.kernel_size, (self.filters,)

    def initialize(self, previous_shape: TensorShape, rng: np.random.Generator) -> TensorShape:
        weights_shape, _ = self.parameter_shapes(previous_shape)
        out_h, out_w = self._output_spatial(previous_shape)
        self.input_shape = spatial_shape("Convolutional2d", previous_shape)
        self.output_shape = (self.filters, out_h, out_w)

        _, channels, kernel_h, kernel_w = weights_shape
        receptive = kernel_h * kernel_w
        weights = initializers.uniform(
            self.activation.initializer,
            weights_shape,
            channels * receptive,
            self.filters * receptive,
            rng,
        )
        self.parameters = ParameterBuffer.from_arrays(weights, np.zeros(self.filters))
        return self.output_shape

    def forward(self, inputs: Array) -> Array:
        inputs = check_tensor("Convolutional2d", inputs, self.input_shape)
        padded = pad(inputs, (self.padding, self.padding))
        patches = windows(padded, self.kernel_size, self.stride)
        # patches: (channels, out_h, out_w, kernel_h, kernel_w)
        preactivation = np.einsum("cijkl,fckl->fij", patches, self.parameters.weights)
        preactivation += self.parameters.biases[:, None, None]
        activation = self.activation(preactivation)
        self._padded_input = padded
        self._preactivation = preactivation
        self._activation = activation
        return activation

    def activation_function_derivative(self) -> Array:
        return self.activation.derivative_at(self._preactivation, self._activation)

    def backward(self, gradient_wrt_output: Array) -> LayerGradients:
        gradient = check_tensor("Convolutional2d", gradient_wrt_output, self.output_shape)
        deltas = gradient * self.activation_function_derivative()
        biases_gradient = deltas.sum(axis=(1, 2))

        # correlate the padded input with each delta map used as the kernel
        patches = windows(self._padded_input, self.kernel_size, self.stride)
        weights_gradient = np.einsum("fij,cijkl->fckl", deltas, patches)

        # full convolution: dilated, padded deltas against the flipped kernels
        kernel_h, kernel_w = self.kernel_size
        spread = pad(dilate(deltas, self.stride), (kernel_h - 1, kernel_w - 1))
        delta_patches = windows(spread, self.kernel_size, 1)
        covered = np.einsum("fyxkl,fckl->cyx", delta_patches, flip(self.parameters.weights))

        padded_gradient = np.zeros(self._padded_input.shape)
        padded_gradient[:, : covered.shape[1], : covered.shape[2]] = covered
        _, height, width = self.input_shape
        p = self.padding
        gradient_wrt_input = padded_gradient[:, p : p + height, p : p + width]
        return LayerGradients(gradient_wrt_input, weights_gradient, biases_gradient)

    def __repr__(self) -> str:
        return (
            f"Convolutional2d({self.filters}, kernel_size={self.kernel_size}, "
            f"padding={self.padding}, stride={self.stride}, activation={self.activation.name!r})"
        )
