"""Evaluation helpers for trained networks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Sequence

import numpy as np

from ..core.errors import InvalidInputError
from ..core.types import Array, Sample

if TYPE_CHECKING:  # pragma: no cover
    from .network import Network


def accuracy_from_predictions(predictions: Array, targets: Array) -> float:
    """Fraction of rows whose predicted argmax class equals the target's.

    Single-unit outputs are binary scores: a row counts as correct when the
    prediction and the target fall on the same side of 0.5.
    """

    predictions = np.asarray(predictions, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    if predictions.shape[0] == 0:
        raise InvalidInputError("Cannot compute accuracy of an empty sample set")
    if predictions.shape != targets.shape:
        raise InvalidInputError(
            f"Predictions {predictions.shape} and targets {targets.shape} differ in shape"
        )
    if predictions.ndim == 2 and predictions.shape[1] == 1:
        return float(np.mean((predictions[:, 0] >= 0.5) == (targets[:, 0] >= 0.5)))
    return float(np.mean(np.argmax(predictions, axis=1) == np.argmax(targets, axis=1)))


def predict_all(network: "Network", samples: Sequence[Sample]) -> Array:
    return np.stack([network.predict(sample.inputs) for sample in samples])


def accuracy(network: "Network", samples: Sequence[Sample]) -> float:
    """Accuracy of ``network`` over a labelled sample set."""

    if not samples:
        raise InvalidInputError("Cannot compute accuracy of an empty sample set")
    targets = np.stack([sample.target for sample in samples])
    return accuracy_from_predictions(predict_all(network, samples), targets)


def compute_metrics(
    names: Iterable[str], network: "Network", samples: Sequence[Sample]
) -> Mapping[str, float]:
    """Evaluate the named metrics (``accuracy``, ``loss``) on ``samples``."""

    if not samples:
        raise InvalidInputError("Cannot compute metrics of an empty sample set")
    predictions = predict_all(network, samples)
    targets = np.stack([sample.target for sample in samples])
    results: Dict[str, float] = {}
    for name in names:
        key = name.lower()
        if key == "accuracy":
            results[key] = accuracy_from_predictions(predictions, targets)
        elif key == "loss":
            results[key] = float(np.mean(np.square(predictions - targets)))
        else:
            raise KeyError(f"Unknown metric: {name}")
    return results


__all__ = ["accuracy", "accuracy_from_predictions", "compute_metrics", "predict_all"]
