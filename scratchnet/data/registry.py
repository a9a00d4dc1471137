"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping

import numpy as np

from ..core.types import Array, TensorShape


@dataclass(frozen=True)
class DatasetSpec:
    """In-memory dataset with a held-out test split.

    Attributes
    ----------
    inputs, targets:
        Samples used by :meth:`Network.fit`; ``fit`` carves its own
        validation set out of these.
    test_inputs, test_targets:
        Samples only used for the final accuracy report.
    input_shape:
        Shape of one input sample, as declared on the ``Input`` layer.
    num_classes:
        Width of the one-hot targets.
    provenance:
        Free-form metadata recorded in the run manifest.
    """

    name: str
    inputs: Array
    targets: Array
    test_inputs: Array
    test_targets: Array
    input_shape: TensorShape
    num_classes: int
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": int(len(self.inputs)), "test": int(len(self.test_inputs))}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("bars")
        def make_bars(**kwargs):
            ...

    or directly::

        register_dataset("bars", make_bars)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Return the :class:`DatasetSpec` built by the factory named ``dataset``."""

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def one_hot(labels: Array, num_classes: int) -> Array:
    labels = np.asarray(labels).reshape(-1).astype(int)
    out = np.zeros((labels.shape[0], num_classes), dtype=np.float64)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out


def train_test_split(
    inputs: Array, targets: Array, test_split: float, seed: int
) -> tuple[Array, Array, Array, Array]:
    rng = np.random.default_rng(seed)
    order = rng.permutation(len(inputs))
    n_test = int(round(len(inputs) * test_split))
    test_idx, train_idx = order[:n_test], order[n_test:]
    return inputs[train_idx], targets[train_idx], inputs[test_idx], targets[test_idx]


def _validate_spec(spec: DatasetSpec) -> None:
    if len(spec.inputs) != len(spec.targets):
        raise ValueError(f"Dataset {spec.name!r} has mismatched inputs and targets")
    if len(spec.test_inputs) != len(spec.test_targets):
        raise ValueError(f"Dataset {spec.name!r} has mismatched test inputs and targets")
    if spec.targets.ndim != 2 or spec.targets.shape[1] != spec.num_classes:
        raise ValueError(
            f"Dataset {spec.name!r} targets must be one-hot with {spec.num_classes} columns"
        )
    expected = (spec.input_shape,) if isinstance(spec.input_shape, int) else tuple(spec.input_shape)
    if tuple(spec.inputs.shape[1:]) != expected:
        raise ValueError(
            f"Dataset {spec.name!r} samples have shape {spec.inputs.shape[1:]}, "
            f"expected {expected}"
        )


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "one_hot",
    "register_dataset",
    "train_test_split",
]
