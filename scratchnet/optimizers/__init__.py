"""Gradient-based optimizers."""

from __future__ import annotations

from typing import Dict, Type

from ..core.errors import ConfigurationError
from .adam import Adam
from .base import Optimizer
from .rmsprop import RmsProp
from .sgd import Sgd, SgdMomentum

REGISTRY: Dict[str, Type[Optimizer]] = {
    cls.name: cls for cls in (Sgd, SgdMomentum, RmsProp, Adam)
}


def build_optimizer(name: str, **options: float) -> Optimizer:
    """Instantiate the optimizer registered under ``name``."""

    try:
        cls = REGISTRY[name.lower()]
    except KeyError:
        available = ", ".join(sorted(REGISTRY))
        raise ConfigurationError(f"Unknown optimizer {name!r}. Available: {available}") from None
    try:
        return cls(**options)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid options for optimizer {name!r}: {exc}") from exc


__all__ = ["Optimizer", "Sgd", "SgdMomentum", "RmsProp", "Adam", "REGISTRY", "build_optimizer"]
