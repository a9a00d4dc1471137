"""Dataset registry and built-in loaders."""

from . import npz as _npz  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset

__all__ = ["DatasetSpec", "available_datasets", "get_dataset", "register_dataset"]
