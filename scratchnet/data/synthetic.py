"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import DatasetSpec, one_hot, register_dataset, train_test_split


@register_dataset("blobs")
def make_blobs(
    n_samples: int = 300,
    n_features: int = 2,
    n_classes: int = 3,
    spread: float = 0.4,
    test_split: float = 0.2,
    seed: int = 0,
    **_: object,
) -> DatasetSpec:
    """Gaussian clusters around random centers; flat vector inputs."""

    rng = np.random.default_rng(seed)
    centers = rng.uniform(-2.0, 2.0, size=(n_classes, n_features))
    labels = np.arange(n_samples) % n_classes
    inputs = centers[labels] + spread * rng.standard_normal((n_samples, n_features))
    targets = one_hot(labels, n_classes)
    x_train, y_train, x_test, y_test = train_test_split(inputs, targets, test_split, seed)
    return DatasetSpec(
        name="blobs",
        inputs=x_train,
        targets=y_train,
        test_inputs=x_test,
        test_targets=y_test,
        input_shape=n_features,
        num_classes=n_classes,
        provenance={
            "type": "blobs",
            "n_samples": n_samples,
            "n_features": n_features,
            "n_classes": n_classes,
            "spread": spread,
            "seed": seed,
        },
    )


def _bar_image(kind: int, size: int, rng: np.random.Generator, noise: float) -> np.ndarray:
    image = np.zeros((size, size), dtype=np.float64)
    offset = int(rng.integers(0, size))
    if kind == 0:
        image[offset, :] = 1.0
    elif kind == 1:
        image[:, offset] = 1.0
    else:
        np.fill_diagonal(image, 1.0)
        image = np.roll(image, offset - size // 2, axis=1)
    image += noise * rng.standard_normal(image.shape)
    return image


@register_dataset("bars")
def make_bars(
    n_samples: int = 240,
    size: int = 8,
    noise: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
    **_: object,
) -> DatasetSpec:
    """Single-channel images containing a horizontal, vertical or diagonal bar."""

    rng = np.random.default_rng(seed)
    labels = np.arange(n_samples) % 3
    inputs = np.stack([_bar_image(int(k), size, rng, noise) for k in labels])[:, None, :, :]
    targets = one_hot(labels, 3)
    x_train, y_train, x_test, y_test = train_test_split(inputs, targets, test_split, seed)
    return DatasetSpec(
        name="bars",
        inputs=x_train,
        targets=y_train,
        test_inputs=x_test,
        test_targets=y_test,
        input_shape=(1, size, size),
        num_classes=3,
        provenance={"type": "bars", "n_samples": n_samples, "size": size, "noise": noise, "seed": seed},
    )
