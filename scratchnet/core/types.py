"""Core typing contracts for scratchnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, NamedTuple, Tuple, Union

import numpy as np

from .errors import InvalidInputError

Array = np.ndarray
TensorShape = Union[int, Tuple[int, int, int]]


def as_tensor(value) -> Array:
    return np.asarray(value, dtype=np.float64)


@dataclass(frozen=True)
class Sample:
    """An input tensor paired with its target vector."""

    inputs: Array
    target: Array

    def __post_init__(self) -> None:
        inputs = np.array(self.inputs, dtype=np.float64)
        target = np.array(self.target, dtype=np.float64).reshape(-1)
        inputs.setflags(write=False)
        target.setflags(write=False)
        object.__setattr__(self, "inputs", inputs)
        object.__setattr__(self, "target", target)


@dataclass(frozen=True)
class FitParams:
    """Hyper-parameters of :meth:`scratchnet.training.network.Network.fit`."""

    epochs: int = 1
    batch_size: int = 32
    validation_split: float = 0.1

    def __post_init__(self) -> None:
        for name in ("epochs", "batch_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidInputError(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise InvalidInputError(f"{name} must be >= 1, got {value}")
            object.__setattr__(self, name, int(value))
        if not 0.0 < float(self.validation_split) < 1.0:
            raise InvalidInputError(
                f"validation_split must lie in (0, 1), got {self.validation_split}"
            )
        object.__setattr__(self, "validation_split", float(self.validation_split))


class ParameterBuffer:
    """Weights and biases stored in one contiguous buffer.

    ``weights`` and ``biases`` are views into ``data``; updating ``data`` in
    place updates both.  Optimizers only ever see ``data``.
    """

    def __init__(
        self,
        weights_shape: Tuple[int, ...],
        biases_shape: Tuple[int, ...],
        data: Array | None = None,
    ) -> None:
        self.weights_shape = tuple(int(d) for d in weights_shape)
        self.biases_shape = tuple(int(d) for d in biases_shape)
        self._split = int(np.prod(self.weights_shape))
        size = self._split + int(np.prod(self.biases_shape))
        if data is None:
            data = np.zeros(size, dtype=np.float64)
        data = np.ascontiguousarray(data, dtype=np.float64).reshape(-1)
        if data.size != size:
            raise ValueError(f"Buffer of size {data.size} does not hold {size} parameters")
        self.data = data

    @classmethod
    def zeros(cls, weights_shape, biases_shape) -> "ParameterBuffer":
        return cls(weights_shape, biases_shape)

    @classmethod
    def from_arrays(cls, weights: Array, biases: Array) -> "ParameterBuffer":
        weights = as_tensor(weights)
        biases = as_tensor(biases)
        buffer = cls(weights.shape, biases.shape)
        buffer.data[:] = buffer.pack(weights, biases)
        return buffer

    @property
    def weights(self) -> Array:
        return self.data[: self._split].reshape(self.weights_shape)

    @property
    def biases(self) -> Array:
        return self.data[self._split :].reshape(self.biases_shape)

    @property
    def size(self) -> int:
        return int(self.data.size)

    @property
    def shape(self) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        return self.weights_shape, self.biases_shape

    def pack(self, weights: Array, biases: Array) -> Array:
        """Flatten ``weights``/``biases`` into this buffer's layout."""

        weights = as_tensor(weights)
        biases = as_tensor(biases)
        if weights.shape != self.weights_shape or biases.shape != self.biases_shape:
            raise ValueError(
                f"Expected weights {self.weights_shape} and biases {self.biases_shape}, "
                f"got {weights.shape} and {biases.shape}"
            )
        return np.concatenate([weights.reshape(-1), biases.reshape(-1)])

    def zeros_like(self) -> "ParameterBuffer":
        return ParameterBuffer(self.weights_shape, self.biases_shape)

    def copy(self) -> "ParameterBuffer":
        return ParameterBuffer(self.weights_shape, self.biases_shape, self.data.copy())

    def __repr__(self) -> str:
        return f"ParameterBuffer(weights={self.weights_shape}, biases={self.biases_shape})"


class LayerGradients(NamedTuple):
    """Backward-pass result of a trainable layer."""

    gradient_wrt_input: Array
    weights: Array
    biases: Array


@dataclass(frozen=True)
class EpochStart:
    kind: ClassVar[str] = "epoch_start"
    epoch: int
    total_epochs: int

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "epoch": self.epoch, "total_epochs": self.total_epochs}


@dataclass(frozen=True)
class BatchStart:
    kind: ClassVar[str] = "batch_start"
    batch: int
    total_batches: int

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "batch": self.batch, "total_batches": self.total_batches}


@dataclass(frozen=True)
class EpochEnd:
    kind: ClassVar[str] = "epoch_end"
    epoch: int
    val_accuracy: float

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "epoch": self.epoch, "val_accuracy": self.val_accuracy}


@dataclass(frozen=True)
class FitCompleted:
    """Terminal event of a successful (or cancelled) fit."""

    kind: ClassVar[str] = "completed"
    epochs_run: int
    cancelled: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "epochs_run": self.epochs_run, "cancelled": self.cancelled}


@dataclass(frozen=True)
class FitFailed:
    """Terminal event carrying the exception that stopped training."""

    kind: ClassVar[str] = "failed"
    error: BaseException = field(compare=False)

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.kind, "error": f"{type(self.error).__name__}: {self.error}"}


FitEvent = Union[EpochStart, BatchStart, EpochEnd, FitCompleted, FitFailed]
TERMINAL_EVENTS = (FitCompleted, FitFailed)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`scratchnet.training.pipelines.run_pipeline`."""

    epochs: int
    test_accuracy: float
    metrics_path: str
    manifest_path: str
    checkpoint_path: str
    summary_path: str = ""


__all__ = [
    "Array",
    "TensorShape",
    "Sample",
    "FitParams",
    "ParameterBuffer",
    "LayerGradients",
    "EpochStart",
    "BatchStart",
    "EpochEnd",
    "FitCompleted",
    "FitFailed",
    "FitEvent",
    "TERMINAL_EVENTS",
    "RunResult",
    "as_tensor",
]
