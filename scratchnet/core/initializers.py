"""Uniform weight initializers."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import ConfigurationError
from .types import Array


def limit(name: str, fan_in: int, fan_out: int) -> float:
    """Return the half-width of the uniform sampling interval."""

    if name == "xavier":
        return float(np.sqrt(6.0 / (fan_in + fan_out)))
    if name == "he":
        return float(np.sqrt(6.0 / fan_in))
    raise ConfigurationError(f"Unknown weight initializer {name!r}; use 'xavier' or 'he'")


def uniform(
    name: str,
    shape: Tuple[int, ...],
    fan_in: int,
    fan_out: int,
    rng: np.random.Generator,
) -> Array:
    bound = limit(name, fan_in, fan_out)
    return rng.uniform(-bound, bound, size=shape)


__all__ = ["limit", "uniform"]
