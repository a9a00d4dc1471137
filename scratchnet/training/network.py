"""Network orchestrator: shape propagation, backpropagation and training."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Callable, Dict, List, Mapping, MutableSequence, Optional, Sequence, Tuple

import numpy as np

from ..core.errors import ConfigurationError, InvalidInputError, ShapeMismatchError
from ..core.types import (
    Array,
    BatchStart,
    EpochEnd,
    EpochStart,
    FitCompleted,
    FitEvent,
    FitParams,
    ParameterBuffer,
    Sample,
)
from ..layers.base import Layer, TrainableLayer
from ..optimizers.base import Optimizer
from .metrics import accuracy

logger = logging.getLogger(__name__)

Emit = Callable[[FitEvent], None]


def _discard(event: FitEvent) -> None:
    return None


class Network:
    """Linear stack of layers trained with mini-batch gradient descent.

    The first layer must be :class:`~scratchnet.layers.Input` and the last a
    :class:`~scratchnet.layers.Dense` layer.  All randomness (weight
    initialization and shuffling) comes from ``rng`` or, when it is not
    given, from a generator seeded with ``seed``.
    """

    def __init__(
        self,
        layers: Sequence[Layer],
        optimizer: Optimizer,
        *,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if not layers:
            raise ConfigurationError("A network needs at least an Input and a Dense layer")
        self.layers: List[Layer] = list(layers)
        self.trainable_layers: List[TrainableLayer] = [
            layer for layer in self.layers if layer.trainable
        ]
        self.optimizer = optimizer
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.initialized = False

    # ------------------------------------------------------------------
    # Construction

    def initialize(self) -> None:
        """Propagate shapes through the stack and draw the initial weights."""

        first, last = self.layers[0], self.layers[-1]
        if first.kind != "input":
            raise ConfigurationError(f"The first layer must be Input, got {first!r}")
        if last.kind != "dense":
            raise ConfigurationError(f"The last layer must be Dense, got {last!r}")
        for position, layer in enumerate(self.layers[1:], start=1):
            if layer.kind == "input":
                raise ConfigurationError(f"Input layer found at position {position}")
            if layer is not last and getattr(layer, "activation_name", None) == "softmax":
                raise ConfigurationError(
                    f"Softmax is only supported on the output layer (position {position})"
                )

        previous = first.input_shape
        for position, layer in enumerate(self.layers):
            try:
                previous = layer.initialize(previous, self.rng)
            except ShapeMismatchError as exc:
                raise ShapeMismatchError(f"Layer {position} ({layer!r}): {exc}") from exc
            logger.debug("Layer %d %r -> %r", position, layer, previous)
        self.initialized = True
        logger.info(
            "Initialized network with %d layers and %d parameters",
            len(self.layers),
            self.parameter_count(),
        )

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise RuntimeError("Network.initialize() must be called first")

    # ------------------------------------------------------------------
    # Inference and gradients

    def predict(self, inputs: Array) -> Array:
        self._require_initialized()
        output = inputs
        for layer in self.layers:
            output = layer.forward(output)
        return output

    def gradient(self, batch: Sequence[Sample]) -> List[ParameterBuffer]:
        """Average per-sample gradients of every trainable layer over ``batch``."""

        self._require_initialized()
        if not batch:
            raise InvalidInputError("Cannot compute the gradient of an empty batch")
        sums = [layer.initialize_gradient() for layer in self.trainable_layers]
        output_layer = self.layers[-1]

        for sample in batch:
            prediction = self.predict(sample.inputs)
            if sample.target.shape != prediction.shape:
                raise ShapeMismatchError(
                    f"Target of shape {sample.target.shape} does not match "
                    f"prediction of shape {prediction.shape}"
                )
            losses = prediction - sample.target

            result = output_layer.output_backward(losses)
            per_layer = [result]
            gradient = result.gradient_wrt_input
            # input and output layers are not walked
            for layer in reversed(self.layers[1:-1]):
                if layer.trainable:
                    result = layer.backward(gradient)
                    per_layer.append(result)
                    gradient = result.gradient_wrt_input
                else:
                    gradient = layer.backward(gradient)
            per_layer.reverse()

            for idx, (layer, layer_gradient) in enumerate(zip(self.trainable_layers, per_layer)):
                sums[idx] = layer.accumulate_gradient(sums[idx], layer_gradient)

        return [
            layer.average_gradient(acc, len(batch))
            for layer, acc in zip(self.trainable_layers, sums)
        ]

    def apply_gradient(self, gradients: Sequence[ParameterBuffer]) -> None:
        if len(gradients) != len(self.trainable_layers):
            raise InvalidInputError(
                f"Expected {len(self.trainable_layers)} layer gradients, got {len(gradients)}"
            )
        self.optimizer.begin_step()
        for idx, (layer, gradient) in enumerate(zip(self.trainable_layers, gradients)):
            self.optimizer.apply_gradient(layer, gradient.weights, gradient.biases, idx)

    # ------------------------------------------------------------------
    # Training loop

    def shuffle(self, items: Sequence[Sample]) -> List[Sample]:
        return [items[i] for i in self.rng.permutation(len(items))]

    def split(
        self, data: Sequence[Sample], validation_split: float
    ) -> Tuple[List[Sample], List[Sample]]:
        """Shuffle ``data`` and hold out the trailing ``validation_split`` fraction."""

        shuffled = self.shuffle(data)
        n_val = max(1, int(len(shuffled) * validation_split))
        if n_val >= len(shuffled):
            raise InvalidInputError(
                f"{len(shuffled)} samples cannot be split into training and "
                f"validation sets with validation_split={validation_split}"
            )
        cut = len(shuffled) - n_val
        return shuffled[:cut], shuffled[cut:]

    def run_epoch(self, training_data: Sequence[Sample], batch_size: int, emit: Emit = _discard) -> None:
        shuffled = self.shuffle(training_data)
        total_batches = math.ceil(len(shuffled) / batch_size)
        for index in range(total_batches):
            emit(BatchStart(batch=index, total_batches=total_batches))
            batch = shuffled[index * batch_size : (index + 1) * batch_size]
            self.apply_gradient(self.gradient(batch))
            logger.debug("Applied batch %d/%d (%d samples)", index + 1, total_batches, len(batch))

    def train(
        self,
        inputs: Sequence[Array],
        outputs: Sequence[Array],
        params: Optional[FitParams] = None,
        *,
        emit: Emit = _discard,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> FitCompleted:
        """Run the epoch loop synchronously, reporting progress through ``emit``.

        ``should_stop`` is polled before every epoch; returning ``True`` ends
        training early with a cancelled :class:`FitCompleted`.
        """

        self._require_initialized()
        params = params or FitParams()
        data = samples_from(inputs, outputs)
        self.optimizer.initialize_states(self)
        training, validation = self.split(data, params.validation_split)
        logger.info(
            "Training on %d samples, validating on %d, %d epochs of batch size %d",
            len(training),
            len(validation),
            params.epochs,
            params.batch_size,
        )

        for epoch in range(params.epochs):
            if should_stop is not None and should_stop():
                logger.info("Training cancelled after %d epochs", epoch)
                return FitCompleted(epochs_run=epoch, cancelled=True)
            emit(EpochStart(epoch=epoch, total_epochs=params.epochs))
            self.run_epoch(training, params.batch_size, emit)
            val_accuracy = accuracy(self, validation)
            logger.info("Epoch %d/%d val_accuracy=%.4f", epoch + 1, params.epochs, val_accuracy)
            emit(EpochEnd(epoch=epoch, val_accuracy=val_accuracy))
        return FitCompleted(epochs_run=params.epochs)

    def fit(
        self,
        inputs: Sequence[Array],
        outputs: Sequence[Array],
        params: Optional[FitParams] = None,
        **options,
    ):
        """Train on a background worker and return the stream of fit events."""

        from .stream import FitStream

        if params is None:
            params = FitParams(**options)
        elif options:
            raise TypeError("Pass either a FitParams instance or keyword options, not both")
        return FitStream(self, inputs, outputs, params)

    # ------------------------------------------------------------------
    # Parameters

    def parameter_count(self) -> int:
        return int(sum(layer.parameters.size for layer in self.trainable_layers))

    def describe(self) -> List[Dict[str, object]]:
        return [
            {
                "index": position,
                "kind": layer.kind,
                "input_shape": layer.input_shape,
                "output_shape": layer.output_shape,
                "parameters": layer.parameters.size if layer.trainable and layer.parameters else 0,
            }
            for position, layer in enumerate(self.layers)
        ]

    def state_dict(self) -> Dict[str, Array]:
        self._require_initialized()
        state: Dict[str, Array] = {}
        for position, layer in enumerate(self.layers):
            if layer.trainable:
                state[f"W{position}"] = layer.parameters.weights.copy()
                state[f"b{position}"] = layer.parameters.biases.copy()
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        self._require_initialized()
        for position, layer in enumerate(self.layers):
            if not layer.trainable:
                continue
            for key in (f"W{position}", f"b{position}"):
                if key not in state:
                    raise KeyError(f"Missing parameter {key} in state dict")
            try:
                packed = layer.parameters.pack(state[f"W{position}"], state[f"b{position}"])
            except ValueError as exc:
                raise ShapeMismatchError(f"Layer {position}: {exc}") from exc
            layer.parameters.data[:] = packed

    def save_checkpoint(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as handle:
            np.savez_compressed(handle, **self.state_dict())
        return path

    def load_checkpoint(self, path: str | Path) -> None:
        with np.load(Path(path)) as payload:
            self.load_state_dict({name: payload[name] for name in payload.files})

    def import_weights(
        self, blobs: Mapping[int, Mapping[str, Array]], *, layout: str = "native"
    ) -> None:
        """Overwrite parameters from externally trained weights.

        ``blobs`` maps a layer position to ``{"weights": ..., "biases": ...}``.
        With ``layout="keras"`` dense kernels are expected as (in, out) and
        convolution kernels as (kernel_h, kernel_w, in, out).
        """

        if layout not in {"native", "keras"}:
            raise ConfigurationError(f"Unknown weight layout {layout!r}")
        if not self.initialized:
            self.initialize()
        for position in sorted(blobs):
            if not 0 < position < len(self.layers):
                raise ConfigurationError(f"No layer at position {position}")
            layer = self.layers[position]
            if not layer.trainable:
                raise ConfigurationError(f"Layer {position} ({layer!r}) has no parameters")
            weights = np.asarray(blobs[position]["weights"], dtype=np.float64)
            biases = np.asarray(blobs[position]["biases"], dtype=np.float64)
            if layout == "keras":
                weights = weights.T if layer.kind == "dense" else weights.transpose(3, 2, 0, 1)
            layer.import_weights(weights, biases, self.layers[position - 1].output_shape)
            logger.info("Imported weights for layer %d (%r)", position, layer)


def samples_from(inputs: Sequence[Array], outputs: Sequence[Array]) -> List[Sample]:
    """Pair parallel input and target sequences into :class:`Sample` objects."""

    if len(inputs) != len(outputs):
        raise InvalidInputError(
            f"Got {len(inputs)} inputs but {len(outputs)} targets"
        )
    if len(inputs) == 0:
        raise InvalidInputError("Cannot train on an empty data set")
    samples: MutableSequence[Sample] = []
    for x, y in zip(inputs, outputs):
        samples.append(Sample(inputs=x, target=y))
    return list(samples)


__all__ = ["Network", "samples_from"]
