"""Datasets stored in a local ``.npz`` archive."""

from __future__ import annotations

import hashlib
from pathlib import Path

import numpy as np

from .registry import DatasetSpec, one_hot, register_dataset, train_test_split


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


@register_dataset("npz")
def load_npz(
    path: str,
    inputs_key: str = "x",
    targets_key: str = "y",
    num_classes: int | None = None,
    input_shape: list[int] | None = None,
    scale: float = 1.0,
    max_items: int | None = None,
    test_split: float = 0.2,
    seed: int = 0,
    **_: object,
) -> DatasetSpec:
    """Load ``inputs_key``/``targets_key`` arrays from a local archive.

    Integer labels are one-hot encoded; ``input_shape`` reshapes each sample
    (e.g. ``[1, 28, 28]`` for flat digit images).
    """

    archive = Path(path)
    if not archive.exists():
        raise FileNotFoundError(f"Dataset archive not found: {archive}")
    with np.load(archive) as payload:
        inputs = np.asarray(payload[inputs_key], dtype=np.float64) * scale
        labels = np.asarray(payload[targets_key])
    if max_items is not None:
        inputs, labels = inputs[:max_items], labels[:max_items]
    if labels.ndim == 1:
        classes = int(num_classes or labels.max() + 1)
        targets = one_hot(labels, classes)
    else:
        targets = labels.astype(np.float64)
        classes = int(targets.shape[1])
    if input_shape is not None:
        inputs = inputs.reshape((len(inputs),) + tuple(int(d) for d in input_shape))
    shape = inputs.shape[1:]
    x_train, y_train, x_test, y_test = train_test_split(inputs, targets, test_split, seed)
    return DatasetSpec(
        name=archive.stem,
        inputs=x_train,
        targets=y_train,
        test_inputs=x_test,
        test_targets=y_test,
        input_shape=int(shape[0]) if len(shape) == 1 else tuple(int(d) for d in shape),
        num_classes=classes,
        provenance={"type": "npz", "path": str(archive), "checksum": _sha256(archive)},
    )
